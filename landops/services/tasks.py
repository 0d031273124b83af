"""Tasks done on events and the progress entries recorded against them."""
from __future__ import annotations

import logging
import math
from typing import Any, Dict, List, Optional

from landops import db_tables
from landops.cache import cached, invalidate
from landops.payloads import build_progress_entry, build_task_payload, clean_row
from landops.progress import (
    TaskProgress,
    derive_event_status,
    parse_task_amount,
    summarize_task,
    summarize_tasks,
)
from landops.services import equipment
from landops.supabase_client import get_client
from landops.utils.supa import execute, first_row, rows

__all__ = [
    "list_task_templates",
    "add_task_template",
    "update_task_template",
    "delete_task_template",
    "list_event_tasks",
    "fetch_event_progress",
    "get_task_progress",
    "add_task_to_event",
    "record_task_progress",
    "list_progress_entries",
    "delete_progress_entry",
    "sync_event_status",
    "event_hours_total",
]

logger = logging.getLogger(__name__)


def _client():
    client = get_client()
    if client is None:  # pragma: no cover - defensive
        raise RuntimeError("Supabase client not configured")
    return client


@cached("task_templates")
def list_task_templates(search: str = "") -> List[Dict[str, Any]]:
    query = _client().table(db_tables.TASK_TEMPLATES).select("*").order("name")
    term = (search or "").strip()
    if term:
        query = query.ilike("name", f"%{term}%")
    return rows(execute("list_task_templates", query))


def _template_fields(data: Dict[str, Any], *, partial: bool = False) -> Dict[str, Any]:
    clean = clean_row(data, {"name", "description", "unit", "estimated_hours"})
    if not partial or "name" in clean:
        if not clean.get("name"):
            raise ValueError("name is required")
    if "estimated_hours" in clean or not partial:
        try:
            hours = float(clean.get("estimated_hours") or 0)
        except (TypeError, ValueError):
            raise ValueError("estimated_hours must be a number") from None
        if not math.isfinite(hours) or hours < 0:
            raise ValueError("estimated_hours must be zero or more")
        clean["estimated_hours"] = hours
    return clean


def add_task_template(data: Dict[str, Any]) -> Dict[str, Any]:
    payload = _template_fields(data)
    payload.setdefault("description", "")
    payload.setdefault("unit", "")
    row = first_row(execute("add_task_template", _client().table(db_tables.EVENT_TASKS).insert(payload)))
    logger.info(
        "Added task template %r (%s h per %s)",
        payload["name"],
        payload["estimated_hours"],
        payload["unit"] or "unit",
    )
    invalidate("task_templates")
    return row or payload


def update_task_template(template_id: str, patch: Dict[str, Any]) -> Dict[str, Any]:
    clean = _template_fields(patch, partial=True)
    if not clean:
        raise ValueError("nothing to update")
    res = execute(
        "update_task_template",
        _client().table(db_tables.EVENT_TASKS).update(clean).eq("id", template_id),
    )
    row = first_row(res)
    if not row:
        raise LookupError(f"Task template {template_id} not found")
    invalidate("task_templates")
    return row


def delete_task_template(template_id: str) -> None:
    res = execute(
        "delete_task_template",
        _client().table(db_tables.EVENT_TASKS).delete().eq("id", template_id),
    )
    if not rows(res):
        raise LookupError(f"Task template {template_id} not found")
    logger.info("Deleted task template %s", template_id)
    invalidate("task_templates")


def _get_template(template_id: str) -> Optional[Dict[str, Any]]:
    res = execute(
        "get_task_template",
        _client().table(db_tables.TASK_TEMPLATES).select("*").eq("id", template_id).limit(1),
    )
    return first_row(res)


def _get_task(task_id: str) -> Dict[str, Any]:
    res = execute(
        "get_task",
        _client().table(db_tables.TASKS_DONE).select("*").eq("id", task_id).limit(1),
    )
    row = first_row(res)
    if not row:
        raise LookupError(f"Task {task_id} not found")
    return row


def _fetch_event_tasks(event_id: str) -> List[Dict[str, Any]]:
    query = (
        _client()
        .table(db_tables.TASKS_DONE)
        .select("*")
        .eq("event_id", event_id)
        .order("created_at", desc=True)
    )
    return rows(execute("list_event_tasks", query))


def _fetch_entries(event_id: str) -> List[Dict[str, Any]]:
    query = _client().table(db_tables.TASK_PROGRESS_ENTRIES).select("*").eq("event_id", event_id)
    return rows(execute("list_progress_entries", query))


def fetch_event_progress(event_id: str) -> List[TaskProgress]:
    """Uncached task progress for use inside mutations."""
    return summarize_tasks(_fetch_event_tasks(event_id), _fetch_entries(event_id))


@cached("tasks", "task_progress")
def list_event_tasks(event_id: str) -> List[TaskProgress]:
    return fetch_event_progress(event_id)


@cached("task_progress", "tasks")
def get_task_progress(task_id: str) -> TaskProgress:
    task = _get_task(task_id)
    res = execute(
        "get_task_progress",
        _client().table(db_tables.TASK_PROGRESS_ENTRIES).select("*").eq("task_id", task_id),
    )
    return summarize_task(task, rows(res))


def add_task_to_event(
    event_id: str,
    template_id: str,
    quantity: Any,
    user_id: Optional[str],
    name: Optional[str] = None,
) -> Dict[str, Any]:
    template = _get_template(template_id)
    if not template:
        raise LookupError(f"Task template {template_id} not found")
    payload = build_task_payload(
        event_id=event_id,
        template=template,
        quantity=quantity,
        user_id=user_id,
        name=name,
    )
    row = first_row(execute("add_task_to_event", _client().table(db_tables.TASKS_DONE).insert(payload)))
    logger.info("Added task %r (%s) to event %s", payload["name"], payload["amount"], event_id)
    invalidate("tasks", "task_progress", "event", "events")
    return row or payload


def sync_event_status(event_id: str) -> Optional[str]:
    """Re-derive the event status from its tasks and persist it when it moves.

    Reaching ``finished`` this way also releases the event's equipment.
    """

    res = execute(
        "sync_event_status",
        _client().table(db_tables.EVENTS).select("id, status").eq("id", event_id).limit(1),
    )
    event = first_row(res)
    if not event:
        raise LookupError(f"Event {event_id} not found")
    current = event.get("status")
    target = derive_event_status(current, fetch_event_progress(event_id))
    if target == current:
        return current

    execute(
        "sync_event_status",
        _client().table(db_tables.EVENTS).update({"status": target}).eq("id", event_id),
    )
    logger.info("Event %s status %s -> %s", event_id, current, target)
    if target == "finished":
        released = equipment.release_event_equipment(event_id)
        if released:
            logger.info("Released %s equipment usage(s) for finished event %s", released, event_id)
    invalidate("events", "event")
    return target


def record_task_progress(task_id: str, amount: Any, hours: Any, user_id: str) -> Dict[str, Any]:
    """Insert a progress entry and roll the result up to the task and the event."""

    task = _get_task(task_id)
    entry = build_progress_entry(task=task, user_id=user_id, amount=amount, hours=hours)
    client = _client()
    inserted = first_row(
        execute("record_task_progress", client.table(db_tables.TASK_PROGRESS_ENTRIES).insert(entry))
    )

    res = execute(
        "record_task_progress",
        client.table(db_tables.TASK_PROGRESS_ENTRIES).select("*").eq("task_id", task_id),
    )
    progress = summarize_task(task, rows(res))
    if progress.is_complete and not task.get("is_finished"):
        execute(
            "record_task_progress",
            client.table(db_tables.TASKS_DONE).update({"is_finished": True}).eq("id", task_id),
        )
        logger.info("Task %s complete (%s/%s %s)", task_id, progress.completed, progress.required, progress.unit)

    status = sync_event_status(task["event_id"])
    invalidate("task_progress", "tasks", "events", "event")
    return {"entry": inserted or entry, "task": progress, "event_status": status}


@cached("task_progress")
def event_hours_total(event_id: str) -> float:
    return sum(float(e.get("hours_spent") or 0) for e in _fetch_entries(event_id))


@cached("task_progress", "tasks")
def list_progress_entries(user_id: Optional[str] = None) -> List[Dict[str, Any]]:
    """Progress entries newest first, with task name and unit, for admin review."""

    client = _client()
    query = client.table(db_tables.TASK_PROGRESS_ENTRIES).select("*").order("created_at", desc=True)
    if user_id:
        query = query.eq("user_id", user_id)
    entries = rows(execute("list_progress_entries", query))
    task_ids = sorted({e["task_id"] for e in entries if e.get("task_id")}, key=str)
    by_id: Dict[Any, Dict[str, Any]] = {}
    if task_ids:
        res = execute(
            "list_progress_entries",
            client.table(db_tables.TASKS_DONE).select("id, name, amount").in_("id", task_ids),
        )
        by_id = {r["id"]: r for r in rows(res)}
    out = []
    for entry in entries:
        task = by_id.get(entry.get("task_id")) or {}
        _, unit = parse_task_amount(task.get("amount"))
        out.append({**entry, "task_name": task.get("name") or "Unknown task", "unit": unit})
    return out


def delete_progress_entry(entry_id: str) -> Dict[str, Any]:
    """Remove a progress entry and roll the task back.

    The task loses ``is_finished`` when the remaining entries no longer cover
    it. The event status is re-derived but never moves backwards.
    """

    client = _client()
    entry = first_row(
        execute(
            "delete_progress_entry",
            client.table(db_tables.TASK_PROGRESS_ENTRIES).select("*").eq("id", entry_id).limit(1),
        )
    )
    if not entry:
        raise LookupError(f"Progress entry {entry_id} not found")
    execute(
        "delete_progress_entry",
        client.table(db_tables.TASK_PROGRESS_ENTRIES).delete().eq("id", entry_id),
    )
    logger.info(
        "Deleted progress entry %s (%s done, %s h) from task %s",
        entry_id,
        entry.get("amount_completed"),
        entry.get("hours_spent"),
        entry.get("task_id"),
    )

    task = _get_task(entry["task_id"])
    res = execute(
        "delete_progress_entry",
        client.table(db_tables.TASK_PROGRESS_ENTRIES).select("*").eq("task_id", task["id"]),
    )
    progress = summarize_task(task, rows(res))
    if task.get("is_finished") and not progress.is_complete:
        execute(
            "delete_progress_entry",
            client.table(db_tables.TASKS_DONE).update({"is_finished": False}).eq("id", task["id"]),
        )
        logger.info("Task %s reopened (%s/%s %s)", task["id"], progress.completed, progress.required, progress.unit)

    status = sync_event_status(task["event_id"])
    invalidate("task_progress", "tasks", "events", "event", "reports")
    return {"entry": entry, "task": progress, "event_status": status}
