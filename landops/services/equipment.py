"""Equipment inventory and its assignment to events.

Every unit handed to an event is recorded in ``equipment_usage``; the
equipment row keeps ``in_use_quantity`` in step so availability can be read
without summing usages. Releasing a usage marks it returned and gives the
units back.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from landops import db_tables
from landops.cache import cached, invalidate
from landops.errors import EquipmentUnavailableError
from landops.payloads import clean_row
from landops.progress import (
    assign_quantity,
    clamp_equipment_quantity,
    display_status,
    release_quantity,
    resized_status,
)
from landops.supabase_client import get_client
from landops.time_utils import now_iso
from landops.utils.supa import execute, first_row, rows

__all__ = [
    "EQUIPMENT_TYPES",
    "list_equipment",
    "get_equipment",
    "add_equipment",
    "edit_equipment",
    "assign_equipment",
    "mark_broken",
    "mark_free",
    "release_usage",
    "release_event_equipment",
    "list_event_equipment",
    "equipment_in_use",
]

logger = logging.getLogger(__name__)

EQUIPMENT_TYPES = ("machine", "tool")
EQUIPMENT_STATUSES = ("free_to_use", "in_use", "broken")
_EDITABLE = {"name", "description", "type", "quantity"}


def _client():
    client = get_client()
    if client is None:  # pragma: no cover - defensive
        raise RuntimeError("Supabase client not configured")
    return client


def _with_display(row: Dict[str, Any]) -> Dict[str, Any]:
    out = dict(row)
    out["display_status"] = display_status(row)
    return out


@cached("equipment")
def list_equipment(kind: Optional[str] = None, search: str = "") -> List[Dict[str, Any]]:
    query = _client().table(db_tables.EQUIPMENT).select("*").order("name")
    if kind:
        query = query.eq("type", kind)
    data = rows(execute("list_equipment", query))
    term = (search or "").strip().lower()
    if term:
        data = [
            r
            for r in data
            if term in str(r.get("name") or "").lower()
            or term in str(r.get("description") or "").lower()
        ]
    return [_with_display(r) for r in data]


def get_equipment(equipment_id: str) -> Dict[str, Any]:
    res = execute(
        "get_equipment",
        _client().table(db_tables.EQUIPMENT).select("*").eq("id", equipment_id).limit(1),
    )
    row = first_row(res)
    if not row:
        raise LookupError(f"Equipment {equipment_id} not found")
    return row


def add_equipment(data: Dict[str, Any]) -> Dict[str, Any]:
    payload = clean_row(data, _EDITABLE | {"status"})
    if not payload.get("name"):
        raise ValueError("name is required")
    payload.setdefault("type", "tool")
    if payload["type"] not in EQUIPMENT_TYPES:
        raise ValueError(f"type must be one of {', '.join(EQUIPMENT_TYPES)}")
    payload["quantity"] = clamp_equipment_quantity(payload.get("quantity", 1), 0)
    payload.setdefault("status", "free_to_use")
    if payload["status"] not in EQUIPMENT_STATUSES:
        raise ValueError(f"status must be one of {', '.join(EQUIPMENT_STATUSES)}")
    payload["in_use_quantity"] = 0
    res = execute("add_equipment", _client().table(db_tables.EQUIPMENT).insert(payload))
    row = first_row(res)
    if not row:
        raise RuntimeError("Supabase did not return the created equipment")
    logger.info("Added equipment %s (%s x%s)", row.get("name"), row.get("type"), row.get("quantity"))
    invalidate("equipment")
    return row


def edit_equipment(equipment_id: str, patch: Dict[str, Any]) -> Dict[str, Any]:
    current = get_equipment(equipment_id)
    clean = clean_row(patch, _EDITABLE)
    if "type" in clean and clean["type"] not in EQUIPMENT_TYPES:
        raise ValueError(f"type must be one of {', '.join(EQUIPMENT_TYPES)}")
    if "quantity" in clean:
        clean["quantity"] = clamp_equipment_quantity(
            clean["quantity"], current.get("in_use_quantity")
        )
        clean["status"] = resized_status(current, clean["quantity"])
    if not clean:
        return current
    res = execute(
        "edit_equipment",
        _client().table(db_tables.EQUIPMENT).update(clean).eq("id", equipment_id),
    )
    invalidate("equipment")
    return first_row(res) or {**current, **clean}


def assign_equipment(
    equipment_id: str,
    event_id: str,
    quantity: int,
    start_date: Any,
    end_date: Any,
) -> Dict[str, Any]:
    """Hand ``quantity`` units to an event for the given period."""

    if not event_id:
        raise ValueError("event_id is required")
    if not start_date or not end_date:
        raise ValueError("start_date and end_date are required")
    equipment = get_equipment(equipment_id)
    new_in_use, new_status = assign_quantity(equipment, quantity)

    client = _client()
    usage_payload = clean_row(
        {
            "equipment_id": equipment_id,
            "event_id": event_id,
            "start_date": start_date,
            "end_date": end_date,
            "quantity": int(quantity),
            "is_returned": False,
        },
        {"equipment_id", "event_id", "start_date", "end_date", "quantity", "is_returned"},
    )
    usage = first_row(
        execute("assign_equipment", client.table(db_tables.EQUIPMENT_USAGE).insert(usage_payload))
    )
    execute(
        "assign_equipment",
        client.table(db_tables.EQUIPMENT)
        .update({"in_use_quantity": new_in_use, "status": new_status})
        .eq("id", equipment_id),
    )
    logger.info(
        "Assigned %s x %s to event %s (%s in use)",
        quantity,
        equipment.get("name"),
        event_id,
        new_in_use,
    )
    invalidate("equipment", "equipment_usage")
    return usage or usage_payload


def mark_broken(equipment_id: str) -> Dict[str, Any]:
    get_equipment(equipment_id)
    res = execute(
        "mark_broken",
        _client().table(db_tables.EQUIPMENT).update({"status": "broken"}).eq("id", equipment_id),
    )
    logger.info("Equipment %s marked broken", equipment_id)
    invalidate("equipment")
    return first_row(res) or {"id": equipment_id, "status": "broken"}


def mark_free(equipment_id: str) -> Dict[str, Any]:
    equipment = get_equipment(equipment_id)
    in_use = int(equipment.get("in_use_quantity") or 0)
    if in_use > 0:
        raise EquipmentUnavailableError(
            f"{equipment.get('name') or 'Equipment'} still has {in_use} unit(s) in use"
        )
    res = execute(
        "mark_free",
        _client().table(db_tables.EQUIPMENT).update({"status": "free_to_use"}).eq("id", equipment_id),
    )
    invalidate("equipment")
    return first_row(res) or {**equipment, "status": "free_to_use"}


def _get_usage(usage_id: str) -> Dict[str, Any]:
    res = execute(
        "get_usage",
        _client().table(db_tables.EQUIPMENT_USAGE).select("*").eq("id", usage_id).limit(1),
    )
    row = first_row(res)
    if not row:
        raise LookupError(f"Equipment usage {usage_id} not found")
    return row


def release_usage(usage_id: str) -> Dict[str, Any]:
    """Mark a usage returned and give its units back to the equipment."""

    usage = _get_usage(usage_id)
    if usage.get("is_returned"):
        logger.warning("Equipment usage %s already returned", usage_id)
        return usage

    equipment = get_equipment(usage["equipment_id"])
    new_in_use, new_status = release_quantity(equipment, usage.get("quantity"))
    returned_at = now_iso()

    client = _client()
    execute(
        "release_usage",
        client.table(db_tables.EQUIPMENT_USAGE)
        .update({"is_returned": True, "return_date": returned_at})
        .eq("id", usage_id),
    )
    execute(
        "release_usage",
        client.table(db_tables.EQUIPMENT)
        .update({"in_use_quantity": new_in_use, "status": new_status})
        .eq("id", usage["equipment_id"]),
    )
    logger.info(
        "Released %s x %s from event %s",
        usage.get("quantity"),
        equipment.get("name"),
        usage.get("event_id"),
    )
    invalidate("equipment", "equipment_usage")
    return {**usage, "is_returned": True, "return_date": returned_at}


def _open_usages(event_id: Optional[str] = None) -> List[Dict[str, Any]]:
    query = _client().table(db_tables.EQUIPMENT_USAGE).select("*").eq("is_returned", False)
    if event_id:
        query = query.eq("event_id", event_id)
    return rows(execute("list_usages", query))


def release_event_equipment(event_id: str) -> int:
    usages = _open_usages(event_id)
    for usage in usages:
        release_usage(usage["id"])
    return len(usages)


def _attach_equipment(usages: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    ids = sorted({u["equipment_id"] for u in usages if u.get("equipment_id")})
    if not ids:
        return usages
    res = execute(
        "load_equipment",
        _client().table(db_tables.EQUIPMENT).select("*").in_("id", ids),
    )
    by_id = {r["id"]: r for r in rows(res)}
    return [{**u, "equipment": by_id.get(u.get("equipment_id"))} for u in usages]


@cached("equipment_usage", "equipment")
def list_event_equipment(event_id: str) -> List[Dict[str, Any]]:
    return _attach_equipment(_open_usages(event_id))


@cached("equipment_usage", "equipment", "events")
def equipment_in_use() -> List[Dict[str, Any]]:
    """Unreturned usages with their equipment and event title (dashboard)."""

    usages = _attach_equipment(_open_usages())
    event_ids = sorted({u["event_id"] for u in usages if u.get("event_id")})
    titles: Dict[str, str] = {}
    if event_ids:
        res = execute(
            "equipment_in_use",
            _client().table(db_tables.EVENTS).select("id, title, status").in_("id", event_ids),
        )
        titles = {r["id"]: r.get("title") for r in rows(res)}
    return [{**u, "event_title": titles.get(u.get("event_id"))} for u in usages]
