from datetime import date

import pytest

from landops.data_sanitize import assert_jsonable
from landops.services import reports


@pytest.fixture
def worked(fake_client):
    fake_client.seed("profiles", [{"id": "u1", "full_name": "Alice"}, {"id": "u2", "full_name": "Bob"}])
    fake_client.seed("events", [{"id": "e1", "title": "Garden", "status": "in_progress"}])
    fake_client.seed(
        "tasks_done",
        [
            {"id": "t1", "event_id": "e1", "name": "Paving", "amount": "10 m2"},
            {"id": "t2", "event_id": "e1", "name": "Turf", "amount": "20 m2"},
        ],
    )
    fake_client.seed(
        "task_progress_entries",
        [
            {"task_id": "t1", "event_id": "e1", "user_id": "u1", "hours_spent": 3, "amount_completed": 4,
             "created_at": "2024-05-06T09:00:00+00:00"},
            {"task_id": "t2", "event_id": "e1", "user_id": "u1", "hours_spent": 2, "amount_completed": 5,
             "created_at": "2024-05-07T10:00:00+00:00"},
            {"task_id": "t1", "event_id": "e1", "user_id": "u2", "hours_spent": 4, "amount_completed": 6,
             "created_at": "2024-05-20T09:00:00+00:00"},
        ],
    )
    fake_client.seed(
        "additional_tasks",
        [
            {"id": "a1", "event_id": "e1", "description": "Fix fence", "created_at": "2024-05-06T12:00:00+00:00"},
            {"id": "a2", "event_id": "e1", "description": "Later job", "created_at": "2024-06-01T12:00:00+00:00"},
        ],
    )
    fake_client.seed(
        "additional_task_progress_entries",
        [
            {"task_id": "a1", "event_id": "e1", "user_id": "u1", "hours_spent": 1.5, "progress_percentage": 50,
             "created_at": "2024-05-08T08:00:00+00:00"},
        ],
    )
    return fake_client


def test_hours_worked_per_user_and_task(worked):
    report = reports.hours_worked("e1")
    assert_jsonable(report)
    assert report["total_hours"] == 9.0
    alice, bob = report["users"]
    assert alice["full_name"] == "Alice"
    assert alice["total_hours"] == 5.0
    assert alice["tasks"] == [
        {"task_name": "Paving", "unit": "m2", "hours_spent": 3.0, "amount_completed": 4.0},
        {"task_name": "Turf", "unit": "m2", "hours_spent": 2.0, "amount_completed": 5.0},
    ]
    assert bob["total_hours"] == 4.0


def test_hours_worked_empty(fake_client):
    assert reports.hours_worked("nothing") == {"event_id": "nothing", "users": [], "total_hours": 0.0}


def test_project_performance_uses_whole_days(worked):
    report = reports.project_performance("e1", "2024-05-06", "2024-05-07")
    assert_jsonable(report)
    assert report["start"] == "2024-05-06T00:00:00"
    assert report["end"] == "2024-05-07T23:59:59"
    assert report["total_hours"] == 5.0
    (alice,) = report["users"]
    assert alice["task_hours"] == {"Paving": 3.0, "Turf": 2.0}
    assert [t["description"] for t in report["additional_tasks"]] == ["Fix fence"]
    assert report["additional_materials"] == []


def test_project_performance_rejects_reversed_range(worked):
    with pytest.raises(ValueError):
        reports.project_performance("e1", "2024-05-07", "2024-05-06")


def test_weekly_worker_hours_combines_task_kinds(worked):
    report = reports.weekly_worker_hours("u1", date(2024, 5, 9))
    assert_jsonable(report)
    assert report["week_start"] == "2024-05-03T00:00:00+00:00"
    assert report["week_end"].startswith("2024-05-09T23:59:59")
    assert report["total_hours"] == 6.5
    assert [e["task_name"] for e in report["entries"]] == ["Fix fence", "Turf", "Paving"]
    assert set(report["entries"][0]) == {"created_at", "hours_spent", "task_name", "event_id", "event_title"}
    (garden,) = report["events"]
    assert garden["event_title"] == "Garden"
    assert garden["total_hours"] == 6.5
    assert garden["tasks"] == {"Fix fence": 1.5, "Paving": 3.0, "Turf": 2.0}


def test_weekly_worker_hours_last_week(worked):
    report = reports.weekly_worker_hours("u1", date(2024, 5, 16), last_week=True)
    assert report["week_start"].startswith("2024-05-03")
    assert report["total_hours"] == 6.5


def test_weekly_worker_hours_empty_week(worked):
    report = reports.weekly_worker_hours("u2", date(2024, 5, 9))
    assert report["entries"] == []
    assert report["total_hours"] == 0.0


def test_list_workers(worked):
    assert [w["full_name"] for w in reports.list_workers()] == ["Alice", "Bob"]
    assert [w["full_name"] for w in reports.list_workers("bo")] == ["Bob"]
