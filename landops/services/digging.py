"""Digging setup: excavators and barrows/dumpers with their sizes.

Each digging machine is mirrored into the general ``equipment`` inventory (by
name) so it can be assigned to events like any other equipment.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping, Optional

from landops import db_tables
from landops.cache import cached, invalidate
from landops.payloads import clean_row
from landops.progress import clamp_equipment_quantity, resized_status
from landops.supabase_client import get_client
from landops.utils.supa import execute, first_row, rows

__all__ = [
    "DIGGER_SIZES",
    "SIZE_COLUMN",
    "list_digging_equipment",
    "add_digging_equipment",
    "edit_digging_equipment",
    "delete_digging_equipment",
]

logger = logging.getLogger(__name__)

# tonnes
DIGGER_SIZES: Dict[str, tuple] = {
    "excavator": (0.02, 1, 2, 3, 6, 11, 21, 31, 41),
    "barrows_dumpers": (0.1, 0.125, 0.15, 0.3, 0.5, 1, 3, 5, 10),
}
SIZE_COLUMN = "size (in tones)"


def _client():
    client = get_client()
    if client is None:  # pragma: no cover - defensive
        raise RuntimeError("Supabase client not configured")
    return client


def _equipment_type(digging_type: str) -> str:
    return "machine" if digging_type == "excavator" else "tool"


def _validated(data: Mapping[str, Any], *, partial: bool = False) -> Dict[str, Any]:
    payload = clean_row(data, {"name", "description", "type", "quantity", SIZE_COLUMN})
    if not partial or "name" in payload:
        if not payload.get("name"):
            raise ValueError("name is required")
    if not partial:
        payload.setdefault("type", "excavator")
    kind = payload.get("type")
    if kind is not None and kind not in DIGGER_SIZES:
        raise ValueError(f"type must be one of {', '.join(DIGGER_SIZES)}")
    if "quantity" in payload or not partial:
        payload["quantity"] = clamp_equipment_quantity(payload.get("quantity", 1), 0)
    size = payload.get(SIZE_COLUMN)
    if size is not None:
        size = float(size)
        if kind is not None and size not in DIGGER_SIZES[kind]:
            raise ValueError(f"{size} t is not an available {kind} size")
        payload[SIZE_COLUMN] = size
    return payload


@cached("setup_digging")
def list_digging_equipment(search: str = "") -> List[Dict[str, Any]]:
    data = rows(
        execute(
            "list_digging_equipment",
            _client().table(db_tables.SETUP_DIGGING).select("*").order("name"),
        )
    )
    term = (search or "").strip().lower()
    if not term:
        return data
    return [
        r
        for r in data
        if term in str(r.get("name") or "").lower()
        or term in str(r.get("description") or "").lower()
    ]


def _get(digging_id: str) -> Dict[str, Any]:
    res = execute(
        "get_digging_equipment",
        _client().table(db_tables.SETUP_DIGGING).select("*").eq("id", digging_id).limit(1),
    )
    row = first_row(res)
    if not row:
        raise LookupError(f"Digging equipment {digging_id} not found")
    return row


def _mirror_row(name: Any) -> Optional[Dict[str, Any]]:
    try:
        res = execute(
            "get_equipment_mirror",
            _client().table(db_tables.EQUIPMENT).select("*").eq("name", name).limit(1),
        )
    except RuntimeError as exc:
        logger.warning("Equipment mirror for %r not loaded: %s", name, exc)
        return None
    return first_row(res)


def add_digging_equipment(data: Mapping[str, Any]) -> Dict[str, Any]:
    payload = _validated(data)
    if payload.get(SIZE_COLUMN) is None:
        payload[SIZE_COLUMN] = float(DIGGER_SIZES[payload["type"]][0])
    payload.update(status="free_to_use", in_use_quantity=0)

    client = _client()
    row = first_row(execute("add_digging_equipment", client.table(db_tables.SETUP_DIGGING).insert(payload)))
    mirror = {
        "name": payload["name"],
        "description": payload.get("description"),
        "type": _equipment_type(payload["type"]),
        "quantity": payload["quantity"],
        "status": "free_to_use",
        "in_use_quantity": 0,
    }
    try:
        execute("add_digging_equipment", client.table(db_tables.EQUIPMENT).insert(mirror))
    except RuntimeError as exc:
        logger.warning("Equipment mirror for %r not created: %s", payload["name"], exc)
    logger.info("Added %s %r (%s t)", payload["type"], payload["name"], payload[SIZE_COLUMN])
    invalidate("setup_digging", "equipment")
    return row or payload


def edit_digging_equipment(digging_id: str, patch: Mapping[str, Any]) -> Dict[str, Any]:
    original = _get(digging_id)
    merged_type = patch.get("type") or original.get("type")
    clean = _validated({**patch, "type": merged_type}, partial=True)
    if SIZE_COLUMN not in clean and merged_type != original.get("type"):
        clean[SIZE_COLUMN] = float(DIGGER_SIZES[merged_type][0])
    # status and in_use_quantity are owned by equipment assignment
    clean.pop("status", None)

    client = _client()
    mirror = {k: clean[k] for k in ("name", "description") if k in clean}
    mirror["type"] = _equipment_type(merged_type)
    if "quantity" in clean:
        current = _mirror_row(original.get("name")) or {}
        in_use = max(
            int(current.get("in_use_quantity") or 0),
            int(original.get("in_use_quantity") or 0),
        )
        clean["quantity"] = clamp_equipment_quantity(clean["quantity"], in_use)
        if current:
            mirror["quantity"] = clean["quantity"]
            mirror["status"] = resized_status(current, clean["quantity"])

    res = execute(
        "edit_digging_equipment",
        client.table(db_tables.SETUP_DIGGING).update(clean).eq("id", digging_id),
    )
    try:
        execute(
            "edit_digging_equipment",
            client.table(db_tables.EQUIPMENT).update(mirror).eq("name", original.get("name")),
        )
    except RuntimeError as exc:
        logger.warning("Equipment mirror for %r not updated: %s", original.get("name"), exc)
    invalidate("setup_digging", "equipment")
    return first_row(res) or {**original, **clean}


def delete_digging_equipment(digging_id: str) -> None:
    original = _get(digging_id)
    client = _client()
    execute(
        "delete_digging_equipment",
        client.table(db_tables.SETUP_DIGGING).delete().eq("id", digging_id),
    )
    try:
        execute(
            "delete_digging_equipment",
            client.table(db_tables.EQUIPMENT).delete().eq("name", original.get("name")),
        )
    except RuntimeError as exc:
        logger.warning("Equipment mirror for %r not deleted: %s", original.get("name"), exc)
    logger.info("Deleted digging equipment %r", original.get("name"))
    invalidate("setup_digging", "equipment")
