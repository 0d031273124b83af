"""Service layer for events (landscaping projects).

Listing helpers back the dashboard, calendar and performance views. Creating an
event also creates its tasks and required materials from the catalog
templates, and status changes go through the forward-only lifecycle in
:mod:`landops.progress`.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Mapping, Optional

from landops import db_tables
from landops.cache import cached, invalidate
from landops.errors import EventStatusError
from landops.payloads import build_event_payload, build_material_payload, build_task_payload
from landops.progress import (
    STATUS_ORDER,
    can_transition,
    consolidate_materials,
    status_sort_key,
    summarize_event,
)
from landops.services import equipment, tasks
from landops.supabase_client import get_client
from landops.utils.supa import execute, first_row, rows

__all__ = [
    "list_events",
    "list_open_events",
    "list_active_events",
    "calendar_events",
    "list_projects_for_performance",
    "get_event",
    "create_event",
    "update_event_status",
    "event_overview",
]

logger = logging.getLogger(__name__)

_ACTIVE_STATUSES = ["scheduled", "in_progress"]


def _client():
    client = get_client()
    if client is None:  # pragma: no cover - defensive
        raise RuntimeError("Supabase client not configured")
    return client


def _events_query(search: str = ""):
    query = _client().table(db_tables.EVENTS).select("*")
    term = (search or "").strip()
    if term:
        query = query.ilike("title", f"%{term}%")
    return query


@cached("events")
def list_events(search: str = "") -> List[Dict[str, Any]]:
    query = _events_query(search).order("start_date", desc=True)
    return rows(execute("list_events", query))


@cached("events")
def list_open_events() -> List[Dict[str, Any]]:
    query = _events_query().neq("status", "finished").order("start_date", desc=True)
    return rows(execute("list_open_events", query))


@cached("events")
def list_active_events() -> List[Dict[str, Any]]:
    query = _events_query().in_("status", _ACTIVE_STATUSES).order("start_date")
    return rows(execute("list_active_events", query))


@cached("events")
def calendar_events(status: Optional[str] = None) -> List[Dict[str, Any]]:
    query = _events_query().neq("status", "finished")
    if status:
        query = query.eq("status", status)
    return rows(execute("calendar_events", query.order("start_date")))


@cached("events")
def list_projects_for_performance(search: str = "") -> List[Dict[str, Any]]:
    data = rows(execute("list_projects", _events_query(search).order("start_date", desc=True)))
    # stable sort keeps newest-first inside each status group
    return sorted(data, key=lambda e: status_sort_key(e.get("status")))


def _fetch_event(event_id: str) -> Dict[str, Any]:
    res = execute(
        "get_event",
        _client().table(db_tables.EVENTS).select("*").eq("id", event_id).limit(1),
    )
    row = first_row(res)
    if not row:
        raise LookupError(f"Event {event_id} not found")
    return row


@cached("event", "events")
def get_event(event_id: str) -> Dict[str, Any]:
    return _fetch_event(event_id)


def _templates(table: str, ids: Iterable[Any]) -> Dict[Any, Dict[str, Any]]:
    wanted = sorted({i for i in ids if i}, key=str)
    if not wanted:
        return {}
    res = execute("load_templates", _client().table(table).select("*").in_("id", wanted))
    return {r["id"]: r for r in rows(res)}


def create_event(
    payload: Mapping[str, Any],
    task_inputs: Iterable[Mapping[str, Any]] = (),
    material_inputs: Iterable[Mapping[str, Any]] = (),
    user_id: Optional[str] = None,
) -> Dict[str, Any]:
    """Insert an event with its tasks and required materials.

    ``task_inputs`` items carry ``template_id`` and ``quantity`` (optionally
    ``name`` and ``unit``); ``material_inputs`` items carry ``template_id`` and
    ``quantity``. Inputs pointing at unknown templates are skipped.
    """

    event_payload = build_event_payload(payload, created_by=user_id)
    if event_payload["status"] not in STATUS_ORDER:
        raise EventStatusError(f"Unknown status {event_payload['status']!r}")
    task_inputs = list(task_inputs)
    material_inputs = list(material_inputs)
    if material_inputs:
        event_payload["has_materials"] = True

    client = _client()
    event = first_row(execute("create_event", client.table(db_tables.EVENTS).insert(event_payload)))
    if not event:
        raise RuntimeError("Supabase did not return the created event")
    event_id = event["id"]

    task_templates = _templates(db_tables.TASK_TEMPLATES, (t.get("template_id") for t in task_inputs))
    task_rows = []
    for item in task_inputs:
        template = task_templates.get(item.get("template_id"))
        if not template:
            logger.warning("Skipping task with unknown template %s", item.get("template_id"))
            continue
        task_rows.append(
            build_task_payload(
                event_id=event_id,
                template=template,
                quantity=item.get("quantity"),
                user_id=user_id,
                name=item.get("name"),
                unit=item.get("unit"),
            )
        )
    if task_rows:
        execute("create_event_tasks", client.table(db_tables.TASKS_DONE).insert(task_rows))

    material_templates = _templates(
        db_tables.MATERIAL_TEMPLATES, (m.get("template_id") for m in material_inputs)
    )
    material_rows = []
    for item in material_inputs:
        template = material_templates.get(item.get("template_id"))
        if not template:
            logger.warning("Skipping material with unknown template %s", item.get("template_id"))
            continue
        material_rows.append(
            build_material_payload(
                event_id=event_id,
                name=template.get("name"),
                unit=template.get("unit"),
                quantity=item.get("quantity"),
            )
        )
    if material_rows:
        execute("create_event_materials", client.table(db_tables.MATERIALS_DELIVERED).insert(material_rows))

    logger.info(
        "Created event %s %r with %d task(s) and %d material(s)",
        event_id,
        event.get("title"),
        len(task_rows),
        len(material_rows),
    )
    invalidate("events", "event", "tasks", "task_progress", "materials")
    return event


def update_event_status(event_id: str, new_status: str) -> Dict[str, Any]:
    event = _fetch_event(event_id)
    current = event.get("status")
    if new_status == current:
        return event
    if not can_transition(current, new_status):
        raise EventStatusError(f"Cannot move event from {current} to {new_status}")
    if new_status == "finished":
        progresses = tasks.fetch_event_progress(event_id)
        unfinished = [p.name for p in progresses if not p.is_complete]
        if unfinished:
            raise EventStatusError(
                "Event cannot be finished while tasks are incomplete: " + ", ".join(unfinished)
            )

    execute(
        "update_event_status",
        _client().table(db_tables.EVENTS).update({"status": new_status}).eq("id", event_id),
    )
    logger.info("Event %s status %s -> %s", event_id, current, new_status)
    if new_status == "finished":
        equipment.release_event_equipment(event_id)
    invalidate("event", "events", "equipment", "equipment_usage")
    return {**event, "status": new_status}


@cached(
    "event",
    "events",
    "tasks",
    "task_progress",
    "materials",
    "material_deliveries",
    "equipment",
    "equipment_usage",
)
def event_overview(event_id: str) -> Dict[str, Any]:
    """Everything the event detail page shows, in one call."""

    event = _fetch_event(event_id)
    progresses = tasks.fetch_event_progress(event_id)

    client = _client()
    materials = rows(
        execute(
            "event_overview",
            client.table(db_tables.MATERIALS_DELIVERED).select("*").eq("event_id", event_id),
        )
    )
    deliveries = rows(
        execute(
            "event_overview",
            client.table(db_tables.MATERIAL_DELIVERIES).select("*").eq("event_id", event_id),
        )
    )
    return {
        "event": event,
        "tasks": progresses,
        "progress": summarize_event(progresses),
        "materials": consolidate_materials(materials, deliveries),
        "equipment": equipment.list_event_equipment(event_id),
    }
