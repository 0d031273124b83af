from datetime import date, datetime, timezone

import pytest

from landops.time_utils import day_bounds, project_weeks, to_date, utc_iso, work_week


def test_utc_iso_handles_naive_and_none():
    assert utc_iso(None) is None
    assert utc_iso(datetime(2024, 5, 1, 12, 0)) == "2024-05-01T12:00:00+00:00"


def test_to_date_accepts_strings_and_datetimes():
    assert to_date("2024-05-01") == date(2024, 5, 1)
    assert to_date("2024-05-01T10:00:00Z") == date(2024, 5, 1)
    assert to_date(datetime(2024, 5, 1, 23, 0, tzinfo=timezone.utc)) == date(2024, 5, 1)
    assert to_date("") is None


def test_day_bounds():
    assert day_bounds("2024-05-01", date(2024, 5, 3)) == ("2024-05-01T00:00:00", "2024-05-03T23:59:59")
    with pytest.raises(ValueError):
        day_bounds("2024-05-03", "2024-05-01")


@pytest.mark.parametrize(
    "reference, friday",
    [
        (date(2024, 5, 3), date(2024, 5, 3)),  # Friday
        (date(2024, 5, 6), date(2024, 5, 3)),  # Monday
        (date(2024, 5, 9), date(2024, 5, 3)),  # Thursday
        (date(2024, 5, 10), date(2024, 5, 10)),
    ],
)
def test_work_week_runs_friday_to_thursday(reference, friday):
    start, end = work_week(reference)
    assert start.date() == friday
    assert start.weekday() == 4
    assert end.weekday() == 3
    assert (end.date() - start.date()).days == 6


def test_work_week_previous():
    start, _ = work_week(date(2024, 5, 9), weeks_back=1)
    assert start.date() == date(2024, 4, 26)


def test_project_weeks_start_on_monday():
    weeks = project_weeks("2024-05-01", "2024-05-14")
    assert weeks == [
        (date(2024, 4, 29), date(2024, 5, 5)),
        (date(2024, 5, 6), date(2024, 5, 12)),
        (date(2024, 5, 13), date(2024, 5, 19)),
    ]
    assert project_weeks("2024-05-10", "2024-05-01") == []
