"""Additional (unplanned) work and materials added to an event after creation."""
from __future__ import annotations

import logging
import math
from typing import Any, Dict, Iterable, List, Mapping, Optional

from landops import db_tables
from landops.cache import cached, invalidate
from landops.payloads import build_material_payload, clean_row
from landops.progress import additional_task_progress, clamp_percent, group_by, hours_needed as template_hours
from landops.supabase_client import get_client
from landops.utils.supa import execute, first_row, rows

__all__ = [
    "list_additional_tasks",
    "add_additional_task",
    "record_additional_progress",
    "list_additional_materials",
    "add_additional_material",
]

logger = logging.getLogger(__name__)


def _client():
    client = get_client()
    if client is None:  # pragma: no cover - defensive
        raise RuntimeError("Supabase client not configured")
    return client


def _number(value: Any, field_name: str, *, minimum: float = 0.0) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise ValueError(f"{field_name} must be a number") from None
    if not math.isfinite(number):
        raise ValueError(f"{field_name} must be a finite number")
    if number < minimum:
        raise ValueError(f"{field_name} must be at least {minimum:g}")
    return number


@cached("additional_tasks")
def list_additional_tasks(event_id: str) -> List[Dict[str, Any]]:
    """Tasks newest first, each with progress and hours summed from its entries."""

    client = _client()
    tasks = rows(
        execute(
            "list_additional_tasks",
            client.table(db_tables.ADDITIONAL_TASKS)
            .select("*")
            .eq("event_id", event_id)
            .order("created_at", desc=True),
        )
    )
    entries = rows(
        execute(
            "list_additional_tasks",
            client.table(db_tables.ADDITIONAL_TASK_PROGRESS).select("*").eq("event_id", event_id),
        )
    )
    by_task = group_by(entries, "task_id")
    out = []
    for task in tasks:
        summary = additional_task_progress(by_task.get(task.get("id"), []))
        out.append(
            {
                **task,
                "progress": summary.progress,
                "hours_spent": summary.hours_spent,
                "is_finished": summary.is_finished,
            }
        )
    return out


def add_additional_task(
    event_id: str,
    user_id: str,
    description: str,
    start_date: Any,
    end_date: Any,
    quantity: Any,
    hours_needed: Any = None,
    template_id: Optional[str] = None,
    materials: Iterable[Mapping[str, Any]] = (),
) -> Dict[str, Any]:
    text = (description or "").strip()
    if not text:
        raise ValueError("description is required")
    if not start_date or not end_date:
        raise ValueError("start_date and end_date are required")
    qty = _number(quantity, "quantity")

    client = _client()
    if hours_needed in (None, ""):
        base = 0.0
        if template_id:
            res = execute(
                "add_additional_task",
                client.table(db_tables.TASK_TEMPLATES).select("*").eq("id", template_id).limit(1),
            )
            template = first_row(res)
            if not template:
                raise LookupError(f"Task template {template_id} not found")
            base = template.get("estimated_hours") or 0
        hours = template_hours(qty, base)
    else:
        hours = _number(hours_needed, "hours_needed")

    payload = clean_row(
        {
            "event_id": event_id,
            "user_id": user_id,
            "description": text,
            "start_date": start_date,
            "end_date": end_date,
            "hours_needed": hours,
            "quantity": qty,
            "hours_spent": 0,
            "progress": 0,
            "is_finished": False,
        },
        {
            "event_id",
            "user_id",
            "description",
            "start_date",
            "end_date",
            "hours_needed",
            "quantity",
            "hours_spent",
            "progress",
            "is_finished",
        },
    )
    task = first_row(execute("add_additional_task", client.table(db_tables.ADDITIONAL_TASKS).insert(payload)))

    material_rows = [
        build_material_payload(
            event_id=event_id,
            name=m.get("material"),
            unit=m.get("unit"),
            quantity=m.get("quantity"),
        )
        for m in materials
        if m.get("material") and m.get("quantity")
    ]
    if material_rows:
        execute("add_additional_task", client.table(db_tables.MATERIALS_DELIVERED).insert(material_rows))

    logger.info(
        "Added additional task %r to event %s (%s h, %d material(s))",
        text,
        event_id,
        hours,
        len(material_rows),
    )
    invalidate("additional_tasks", "materials")
    return task or payload


def record_additional_progress(
    task_id: str,
    user_id: str,
    progress_percentage: Any,
    hours_spent: Any,
    notes: Optional[str] = "",
) -> Dict[str, Any]:
    client = _client()
    task = first_row(
        execute(
            "record_additional_progress",
            client.table(db_tables.ADDITIONAL_TASKS).select("*").eq("id", task_id).limit(1),
        )
    )
    if not task:
        raise LookupError(f"Additional task {task_id} not found")

    pct = clamp_percent(_number(progress_percentage, "progress_percentage", minimum=float("-inf")))
    hours = _number(hours_spent, "hours_spent")
    entry = {
        "task_id": task_id,
        "user_id": user_id,
        "event_id": task.get("event_id"),
        "progress_percentage": pct,
        "hours_spent": hours,
        "notes": (notes or "").strip() or None,
    }
    execute("record_additional_progress", client.table(db_tables.ADDITIONAL_TASK_PROGRESS).insert(entry))

    entries = rows(
        execute(
            "record_additional_progress",
            client.table(db_tables.ADDITIONAL_TASK_PROGRESS).select("*").eq("task_id", task_id),
        )
    )
    summary = additional_task_progress(entries)
    update = {
        "progress": summary.progress,
        "hours_spent": summary.hours_spent,
        "is_finished": summary.is_finished,
    }
    execute(
        "record_additional_progress",
        client.table(db_tables.ADDITIONAL_TASKS).update(update).eq("id", task_id),
    )
    logger.info("Additional task %s at %s%% (%s h)", task_id, summary.progress, summary.hours_spent)
    invalidate("additional_tasks")
    return {**task, **update}


@cached("additional_materials")
def list_additional_materials(event_id: str) -> List[Dict[str, Any]]:
    query = (
        _client()
        .table(db_tables.ADDITIONAL_MATERIALS)
        .select("*")
        .eq("event_id", event_id)
        .order("created_at", desc=True)
    )
    return rows(execute("list_additional_materials", query))


def add_additional_material(
    event_id: str, user_id: Optional[str], material: str, quantity: Any, unit: str = ""
) -> Dict[str, Any]:
    name = (material or "").strip()
    if not name:
        raise ValueError("material is required")
    qty = _number(quantity, "quantity")
    if qty <= 0:
        raise ValueError("quantity must be greater than zero")
    payload = {
        "event_id": event_id,
        "user_id": user_id,
        "material": name,
        "quantity": qty,
        "unit": (unit or "").strip(),
    }
    row = first_row(
        execute("add_additional_material", _client().table(db_tables.ADDITIONAL_MATERIALS).insert(payload))
    )
    logger.info("Added additional material %s %s %s to event %s", qty, payload["unit"], name, event_id)
    invalidate("additional_materials")
    return row or payload
