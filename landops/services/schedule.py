"""Calendar day notes and materials scheduled for a given day."""
from __future__ import annotations

import logging
import math
from datetime import date
from typing import Any, Dict, Iterable, List, Optional

from landops import db_tables
from landops.cache import cached, invalidate
from landops.supabase_client import get_client
from landops.time_utils import to_date
from landops.utils.supa import execute, first_row, rows

__all__ = [
    "list_day_notes",
    "add_day_note",
    "delete_day_note",
    "list_calendar_materials",
    "schedule_material",
]

logger = logging.getLogger(__name__)


def _client():
    client = get_client()
    if client is None:  # pragma: no cover - defensive
        raise RuntimeError("Supabase client not configured")
    return client


def _day(value: Any) -> str:
    try:
        day = to_date(value)
    except ValueError:
        raise ValueError(f"Invalid date: {value!r}") from None
    if day is None:
        raise ValueError("date is required")
    return day.isoformat()


def _lookup(table: str, ids: Iterable[Any], columns: str) -> Dict[Any, Dict[str, Any]]:
    wanted = sorted({i for i in ids if i}, key=str)
    if not wanted:
        return {}
    res = execute(f"load {table}", _client().table(table).select(columns).in_("id", wanted))
    return {r["id"]: r for r in rows(res)}


def _with_names(data: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    titles = _lookup(db_tables.EVENTS, (r.get("event_id") for r in data), "id, title")
    people = _lookup(db_tables.PROFILES, (r.get("user_id") for r in data), "id, full_name, email")
    out = []
    for r in data:
        person = people.get(r.get("user_id")) or {}
        out.append(
            {
                **r,
                "event_title": (titles.get(r.get("event_id")) or {}).get("title"),
                "author": person.get("full_name") or person.get("email"),
            }
        )
    return out


@cached("day_notes", "events", "profiles")
def list_day_notes(day: Optional[date | str] = None, event_id: Optional[str] = None) -> List[Dict[str, Any]]:
    """Notes newest first; all of them when ``day`` is not given."""

    query = _client().table(db_tables.DAY_NOTES).select("*").order("created_at", desc=True)
    if day is not None:
        query = query.eq("date", _day(day))
    if event_id:
        query = query.eq("event_id", event_id)
    return _with_names(rows(execute("list_day_notes", query)))


def add_day_note(event_id: str, user_id: Optional[str], content: str, day: date | str) -> Dict[str, Any]:
    text = (content or "").strip()
    if not event_id:
        raise ValueError("event_id is required")
    if not text:
        raise ValueError("content is required")
    payload = {"event_id": event_id, "user_id": user_id, "content": text, "date": _day(day)}
    row = first_row(execute("add_day_note", _client().table(db_tables.DAY_NOTES).insert(payload)))
    logger.info("Added day note for event %s on %s", event_id, payload["date"])
    invalidate("day_notes")
    return row or payload


def delete_day_note(note_id: str) -> None:
    res = execute("delete_day_note", _client().table(db_tables.DAY_NOTES).delete().eq("id", note_id))
    if not rows(res):
        raise LookupError(f"Day note {note_id} not found")
    logger.info("Deleted day note %s", note_id)
    invalidate("day_notes")


@cached("calendar_materials", "events", "profiles")
def list_calendar_materials(day: date | str, event_id: Optional[str] = None) -> List[Dict[str, Any]]:
    query = (
        _client()
        .table(db_tables.CALENDAR_MATERIALS)
        .select("*")
        .eq("date", _day(day))
        .order("created_at", desc=True)
    )
    if event_id:
        query = query.eq("event_id", event_id)
    return _with_names(rows(execute("list_calendar_materials", query)))


def schedule_material(
    event_id: str,
    user_id: Optional[str],
    material: str,
    quantity: Any,
    unit: str,
    day: date | str,
    notes: Optional[str] = "",
) -> Dict[str, Any]:
    """Book ``quantity`` of a material for an event on a calendar day."""

    name = (material or "").strip()
    unit_text = (unit or "").strip()
    if not event_id:
        raise ValueError("event_id is required")
    if not name:
        raise ValueError("material is required")
    if not unit_text:
        raise ValueError("unit is required")
    try:
        qty = float(quantity)
    except (TypeError, ValueError):
        raise ValueError("quantity must be a number") from None
    if not math.isfinite(qty) or qty <= 0:
        raise ValueError("quantity must be greater than zero")

    payload = {
        "event_id": event_id,
        "user_id": user_id,
        "material": name,
        "quantity": qty,
        "unit": unit_text,
        "date": _day(day),
        "notes": (notes or "").strip() or None,
    }
    row = first_row(
        execute("schedule_material", _client().table(db_tables.CALENDAR_MATERIALS).insert(payload))
    )
    logger.info("Scheduled %s %s of %s for event %s on %s", qty, unit_text, name, event_id, payload["date"])
    invalidate("calendar_materials")
    return row or payload
