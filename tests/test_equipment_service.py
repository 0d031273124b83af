import pytest

from landops.errors import EquipmentUnavailableError
from landops.services import equipment


@pytest.fixture
def barrows(fake_client):
    (row,) = fake_client.seed(
        "equipment",
        [{"name": "Wheelbarrow", "type": "tool", "quantity": 3, "in_use_quantity": 0, "status": "free_to_use"}],
    )
    return row


def _equipment(fake_client, equipment_id):
    return next(r for r in fake_client.rows("equipment") if r["id"] == equipment_id)


def test_add_equipment_defaults(fake_client):
    row = equipment.add_equipment({"name": " Mini digger ", "type": "machine", "quantity": 0})
    assert row["name"] == "Mini digger"
    assert row["quantity"] == 1
    assert row["in_use_quantity"] == 0
    assert row["status"] == "free_to_use"


def test_add_equipment_rejects_unknown_type(fake_client):
    with pytest.raises(ValueError):
        equipment.add_equipment({"name": "Truck", "type": "vehicle"})


def test_list_equipment_filters_and_reports_display_status(fake_client, barrows):
    fake_client.seed(
        "equipment",
        [{"name": "Excavator", "type": "machine", "quantity": 1, "in_use_quantity": 1, "status": "in_use"}],
    )
    tools = equipment.list_equipment(kind="tool")
    assert [r["name"] for r in tools] == ["Wheelbarrow"]
    machines = equipment.list_equipment(search="excav")
    assert machines[0]["display_status"] == "in_use"


def test_assign_and_release_keep_counts_in_step(fake_client, barrows):
    usage = equipment.assign_equipment(barrows["id"], "ev1", 2, "2024-05-01", "2024-05-03")
    row = _equipment(fake_client, barrows["id"])
    assert row["in_use_quantity"] == 2
    assert row["status"] == "free_to_use"
    assert usage["is_returned"] is False

    equipment.assign_equipment(barrows["id"], "ev2", 1, "2024-05-01", "2024-05-03")
    assert _equipment(fake_client, barrows["id"])["status"] == "in_use"

    released = equipment.release_usage(usage["id"])
    assert released["is_returned"] is True
    assert released["return_date"]
    row = _equipment(fake_client, barrows["id"])
    assert row["in_use_quantity"] == 1
    assert row["status"] == "free_to_use"


def test_assign_more_than_available_raises(fake_client, barrows):
    equipment.assign_equipment(barrows["id"], "ev1", 3, "2024-05-01", "2024-05-03")
    with pytest.raises(EquipmentUnavailableError):
        equipment.assign_equipment(barrows["id"], "ev2", 1, "2024-05-01", "2024-05-03")
    assert len(fake_client.rows("equipment_usage")) == 1


def test_release_is_idempotent(fake_client, barrows):
    usage = equipment.assign_equipment(barrows["id"], "ev1", 1, "2024-05-01", "2024-05-03")
    equipment.release_usage(usage["id"])
    equipment.release_usage(usage["id"])
    assert _equipment(fake_client, barrows["id"])["in_use_quantity"] == 0


def test_broken_equipment_stays_broken_after_release(fake_client, barrows):
    usage = equipment.assign_equipment(barrows["id"], "ev1", 1, "2024-05-01", "2024-05-03")
    equipment.mark_broken(barrows["id"])
    equipment.release_usage(usage["id"])
    assert _equipment(fake_client, barrows["id"])["status"] == "broken"
    with pytest.raises(EquipmentUnavailableError):
        equipment.assign_equipment(barrows["id"], "ev1", 1, "2024-05-01", "2024-05-03")


def test_mark_free_requires_nothing_in_use(fake_client, barrows):
    usage = equipment.assign_equipment(barrows["id"], "ev1", 1, "2024-05-01", "2024-05-03")
    equipment.mark_broken(barrows["id"])
    with pytest.raises(EquipmentUnavailableError):
        equipment.mark_free(barrows["id"])
    equipment.release_usage(usage["id"])
    assert equipment.mark_free(barrows["id"])["status"] == "free_to_use"


def test_edit_equipment_never_drops_below_in_use(fake_client, barrows):
    equipment.assign_equipment(barrows["id"], "ev1", 2, "2024-05-01", "2024-05-03")
    row = equipment.edit_equipment(barrows["id"], {"quantity": 1, "description": "Green ones"})
    assert row["quantity"] == 2
    assert row["description"] == "Green ones"


def test_release_event_equipment_and_listing(fake_client, barrows):
    equipment.assign_equipment(barrows["id"], "ev1", 1, "2024-05-01", "2024-05-03")
    equipment.assign_equipment(barrows["id"], "ev1", 1, "2024-05-01", "2024-05-03")
    equipment.assign_equipment(barrows["id"], "ev2", 1, "2024-05-01", "2024-05-03")
    fake_client.seed("events", [{"id": "ev1", "title": "Garden A"}, {"id": "ev2", "title": "Garden B"}])

    listed = equipment.list_event_equipment("ev1")
    assert len(listed) == 2
    assert listed[0]["equipment"]["name"] == "Wheelbarrow"
    assert {u["event_title"] for u in equipment.equipment_in_use()} == {"Garden A", "Garden B"}

    assert equipment.release_event_equipment("ev1") == 2
    assert equipment.list_event_equipment("ev1") == []
    assert _equipment(fake_client, barrows["id"])["in_use_quantity"] == 1


def test_missing_equipment_raises_lookup(fake_client):
    with pytest.raises(LookupError):
        equipment.get_equipment("nope")


def test_edit_equipment_quantity_refreshes_status(fake_client, barrows):
    equipment.edit_equipment(barrows["id"], {"quantity": 2})
    equipment.assign_equipment(barrows["id"], "ev1", 2, "2024-05-01", "2024-05-03")
    assert _equipment(fake_client, barrows["id"])["status"] == "in_use"

    row = equipment.edit_equipment(barrows["id"], {"quantity": 5})
    assert row["status"] == "free_to_use"
    assert _equipment(fake_client, barrows["id"])["status"] == "free_to_use"


def test_edit_equipment_quantity_keeps_broken(fake_client, barrows):
    equipment.mark_broken(barrows["id"])
    equipment.edit_equipment(barrows["id"], {"quantity": 6})
    row = _equipment(fake_client, barrows["id"])
    assert row["quantity"] == 6
    assert row["status"] == "broken"
