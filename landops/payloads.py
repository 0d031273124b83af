"""Helpers for building sanitized insert payloads."""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, Mapping, Optional

from landops.progress import format_task_amount, hours_needed


def _clean_text(value: Any) -> Optional[str]:
    return (str(value) if value is not None else "").strip() or None


def _clean_value(value: Any) -> Any:
    if value is None:
        return None
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, str):
        return value.strip()
    if isinstance(value, (bool, int, float)):
        return value
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    return str(value)


def _positive(value: Any, field_name: str) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise ValueError(f"{field_name} must be a number") from None
    if number <= 0:
        raise ValueError(f"{field_name} must be greater than zero")
    return number


def build_event_payload(data: Mapping[str, Any], *, created_by: Optional[str]) -> Dict[str, Any]:
    title = _clean_text(data.get("title"))
    if not title:
        raise ValueError("title is required")
    start_date = _clean_value(data.get("start_date"))
    end_date = _clean_value(data.get("end_date"))
    if not start_date or not end_date:
        raise ValueError("start_date and end_date are required")
    payload: Dict[str, Any] = {
        "title": title,
        "description": _clean_text(data.get("description")) or "",
        "start_date": start_date,
        "end_date": end_date,
        "status": data.get("status") or "planned",
        "has_equipment": bool(data.get("has_equipment", False)),
        "has_materials": bool(data.get("has_materials", False)),
    }
    if created_by:
        payload["created_by"] = created_by
    return payload


def build_task_payload(
    *,
    event_id: str,
    template: Mapping[str, Any],
    quantity: Any,
    user_id: Optional[str],
    name: Optional[str] = None,
    unit: Optional[str] = None,
) -> Dict[str, Any]:
    """Compose a ``tasks_done`` row from a task template and a quantity."""

    qty = _positive(quantity, "quantity")
    task_unit = _clean_text(unit) or _clean_text(template.get("unit")) or ""
    base_hours = template.get("estimated_hours")
    payload: Dict[str, Any] = {
        "event_id": event_id,
        "name": _clean_text(name) or _clean_text(template.get("name")),
        "description": _clean_text(template.get("description")),
        "amount": format_task_amount(qty, task_unit),
        "hours_worked": hours_needed(qty, base_hours),
        "unit": task_unit or None,
        "is_finished": False,
    }
    if template.get("id") is not None:
        payload["event_task_id"] = template["id"]
    if user_id:
        payload["user_id"] = user_id
    return payload


def build_material_payload(
    *, event_id: str, name: Any, unit: Any, quantity: Any
) -> Dict[str, Any]:
    material_name = _clean_text(name)
    if not material_name:
        raise ValueError("material name is required")
    return {
        "event_id": event_id,
        "name": material_name,
        "amount": 0,
        "total_amount": _positive(quantity, "quantity"),
        "unit": _clean_text(unit) or "",
        "status": "pending",
    }


def build_progress_entry(
    *,
    task: Mapping[str, Any],
    user_id: str,
    amount: Any,
    hours: Any,
) -> Dict[str, Any]:
    return {
        "task_id": task["id"],
        "event_id": task["event_id"],
        "user_id": user_id,
        "amount_completed": _positive(amount, "amount"),
        "hours_spent": _positive(hours, "hours"),
        "event_tasks_id": task.get("event_task_id"),
    }


def build_delivery_payload(
    *,
    material: Mapping[str, Any],
    user_id: str,
    amount: Any,
    notes: Optional[str],
    delivered_at: str,
) -> Dict[str, Any]:
    return {
        "material_id": material["id"],
        "event_id": material["event_id"],
        "user_id": user_id,
        "amount": _positive(amount, "amount"),
        "notes": _clean_text(notes),
        "delivery_date": delivered_at,
    }


def clean_row(data: Mapping[str, Any], allowed: set[str]) -> Dict[str, Any]:
    """Keep allowed keys only, with values made JSON-friendly."""
    return {key: _clean_value(value) for key, value in data.items() if key in allowed}


__all__ = [
    "build_event_payload",
    "build_task_payload",
    "build_material_payload",
    "build_progress_entry",
    "build_delivery_payload",
    "clean_row",
]
