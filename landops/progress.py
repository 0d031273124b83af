"""Progress aggregation and lifecycle rules for events, tasks and materials.

Everything in this module is pure: rows come in as plain dicts (the shape the
Supabase client returns) and summaries go out as dataclasses. Services fetch
and persist; this module only does the arithmetic.

Task amounts are stored as text (``"5 walls"``). The leading number is the
required quantity, the rest is the unit. Progress entries add up to the
completed quantity and the hours spent; a task is complete once the completed
quantity reaches the required one.
"""

from __future__ import annotations

import math
import re
from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from landops.errors import EquipmentUnavailableError

STATUS_ORDER: Tuple[str, ...] = ("planned", "scheduled", "in_progress", "finished")
PERFORMANCE_ORDER: Dict[str, int] = {
    "in_progress": 1,
    "finished": 2,
    "scheduled": 3,
    "planned": 4,
}

OVER_BUDGET_PERCENT = 110.0
RECENT_DELIVERIES = 3

_LEADING_NUMBER = re.compile(r"^[-+]?(\d+(\.\d*)?|\.\d+)([eE][-+]?\d+)?")


def _num(value: Any, default: float = 0.0) -> float:
    if value is None or isinstance(value, bool):
        return default
    try:
        number = float(value)
    except (TypeError, ValueError):
        return default
    if math.isnan(number) or math.isinf(number):
        return default
    return number


def parse_task_amount(text: Any) -> Tuple[Optional[float], str]:
    """Split ``"5 walls"`` into ``(5.0, "walls")``.

    The quantity is ``None`` when the first token has no leading number.
    """
    parts = str(text or "").split()
    if not parts:
        return None, ""
    match = _LEADING_NUMBER.match(parts[0])
    quantity = float(match.group(0)) if match else None
    return quantity, " ".join(parts[1:])


def format_task_amount(quantity: Any, unit: Optional[str]) -> str:
    qty = _num(quantity)
    qty_text = str(int(qty)) if qty.is_integer() else f"{qty:g}"
    return f"{qty_text} {(unit or '').strip()}".strip()


def percent(part: Any, whole: Any) -> float:
    """``part / whole * 100``; a non-positive whole counts as met once reached."""
    p = _num(part)
    w = _num(whole)
    if w <= 0:
        return 100.0 if p >= w else 0.0
    return p / w * 100.0


def _share(part: float, whole: float) -> float:
    if whole <= 0 or part <= 0:
        return 0.0
    return part / whole * 100.0


def clamp_percent(value: Any, upper: float = 100.0) -> float:
    return min(max(_num(value), 0.0), upper)


def progress_band(pct: float) -> str:
    """Colour band for an hours ratio: ``ok`` / ``warning`` / ``over``."""
    if pct >= OVER_BUDGET_PERCENT:
        return "over"
    if pct > 100.0:
        return "warning"
    return "ok"


# ---------------------------------------------------------------------------
# Tasks
# ---------------------------------------------------------------------------
@dataclass
class TaskProgress:
    task_id: Optional[str]
    event_id: Optional[str]
    name: str
    required: Optional[float]
    unit: str
    completed: float = 0.0
    estimated_hours: float = 0.0
    hours_spent: float = 0.0

    @property
    def remaining(self) -> Optional[float]:
        if self.required is None:
            return None
        return self.required - self.completed

    @property
    def remaining_hours(self) -> float:
        return self.estimated_hours - self.hours_spent

    @property
    def percent_complete(self) -> float:
        if self.required is None:
            return 0.0
        return percent(self.completed, self.required)

    @property
    def is_complete(self) -> bool:
        return self.required is not None and self.completed >= self.required

    @property
    def hours_percent(self) -> float:
        return _share(self.hours_spent, self.estimated_hours)

    @property
    def hours_band(self) -> str:
        return progress_band(self.hours_percent)

    @property
    def bar_width(self) -> float:
        return clamp_percent(self.percent_complete)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data.update(
            remaining=self.remaining,
            remaining_hours=self.remaining_hours,
            percent_complete=round(self.percent_complete, 1),
            hours_percent=round(self.hours_percent, 1),
            hours_band=self.hours_band,
            is_complete=self.is_complete,
        )
        return data


def summarize_task(task: Mapping[str, Any], entries: Iterable[Mapping[str, Any]]) -> TaskProgress:
    required, unit = parse_task_amount(task.get("amount"))
    completed = 0.0
    hours = 0.0
    for entry in entries:
        completed += _num(entry.get("amount_completed"))
        hours += _num(entry.get("hours_spent"))
    name = task.get("task_name") or task.get("name") or str(task.get("amount") or "")
    return TaskProgress(
        task_id=task.get("id"),
        event_id=task.get("event_id"),
        name=str(name),
        required=required,
        unit=unit or str(task.get("unit") or ""),
        completed=completed,
        estimated_hours=_num(task.get("hours_worked")),
        hours_spent=hours,
    )


def group_by(rows: Iterable[Mapping[str, Any]], key: str) -> Dict[Any, List[Mapping[str, Any]]]:
    grouped: Dict[Any, List[Mapping[str, Any]]] = {}
    for row in rows:
        grouped.setdefault(row.get(key), []).append(row)
    return grouped


def summarize_tasks(
    tasks: Sequence[Mapping[str, Any]], entries: Iterable[Mapping[str, Any]]
) -> List[TaskProgress]:
    by_task = group_by(entries, "task_id")
    return [summarize_task(task, by_task.get(task.get("id"), [])) for task in tasks]


@dataclass
class EventProgress:
    task_count: int
    completion_percent: float
    estimated_hours: float
    hours_spent: float
    all_tasks_complete: bool

    @property
    def hours_percent(self) -> float:
        return _share(self.hours_spent, self.estimated_hours)

    @property
    def hours_band(self) -> str:
        return progress_band(self.hours_percent)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data.update(
            completion_percent=round(self.completion_percent, 1),
            hours_percent=round(self.hours_percent, 1),
            hours_band=self.hours_band,
        )
        return data


def summarize_event(
    progresses: Sequence[TaskProgress], hours_spent: Optional[float] = None
) -> EventProgress:
    """Roll task progress up to the event.

    Completion is the mean of per-task percentages, each capped at 100 so one
    over-delivered task cannot hide an unfinished one.
    """
    count = len(progresses)
    completion = (
        sum(clamp_percent(p.percent_complete) for p in progresses) / count if count else 0.0
    )
    spent = sum(p.hours_spent for p in progresses) if hours_spent is None else _num(hours_spent)
    return EventProgress(
        task_count=count,
        completion_percent=completion,
        estimated_hours=sum(p.estimated_hours for p in progresses),
        hours_spent=spent,
        all_tasks_complete=all(p.is_complete for p in progresses),
    )


# ---------------------------------------------------------------------------
# Materials
# ---------------------------------------------------------------------------
def _delivery_sort_key(delivery: Mapping[str, Any]) -> str:
    value = delivery.get("delivery_date")
    if isinstance(value, datetime):
        return value.isoformat()
    return str(value or "")


@dataclass
class MaterialProgress:
    name: str
    unit: str
    event_id: Optional[str]
    material_ids: List[str] = field(default_factory=list)
    required: float = 0.0
    deliveries: List[Dict[str, Any]] = field(default_factory=list)

    @property
    def material_id(self) -> Optional[str]:
        return self.material_ids[0] if self.material_ids else None

    @property
    def delivered(self) -> float:
        return sum(_num(d.get("amount")) for d in self.deliveries)

    @property
    def remaining(self) -> float:
        return self.required - self.delivered

    @property
    def percent_delivered(self) -> float:
        return percent(self.delivered, self.required)

    @property
    def is_delivered(self) -> bool:
        return self.percent_delivered >= 100.0

    @property
    def bar_width(self) -> float:
        return clamp_percent(self.percent_delivered)

    @property
    def recent_deliveries(self) -> List[Dict[str, Any]]:
        return self.deliveries[:RECENT_DELIVERIES]

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data.update(
            delivered=self.delivered,
            remaining=self.remaining,
            percent_delivered=round(self.percent_delivered, 1),
            is_delivered=self.is_delivered,
        )
        return data


def consolidate_materials(
    materials: Sequence[Mapping[str, Any]], deliveries: Iterable[Mapping[str, Any]]
) -> List[MaterialProgress]:
    """Merge material rows sharing ``(name, unit)`` and attach their deliveries."""
    by_material = group_by(deliveries, "material_id")
    merged: Dict[Tuple[str, str], MaterialProgress] = {}
    for row in materials:
        name = str(row.get("name") or "")
        unit = str(row.get("unit") or "")
        key = (name, unit)
        item = merged.get(key)
        if item is None:
            item = MaterialProgress(name=name, unit=unit, event_id=row.get("event_id"))
            merged[key] = item
        if row.get("id") is not None:
            item.material_ids.append(row["id"])
        item.required += _num(row.get("total_amount"))
        item.deliveries.extend(dict(d) for d in by_material.get(row.get("id"), []))
    for item in merged.values():
        item.deliveries.sort(key=_delivery_sort_key, reverse=True)
    return list(merged.values())


# ---------------------------------------------------------------------------
# Additional work
# ---------------------------------------------------------------------------
@dataclass
class AdditionalProgress:
    progress: float
    hours_spent: float

    @property
    def is_finished(self) -> bool:
        return self.progress >= 100.0


def additional_task_progress(entries: Iterable[Mapping[str, Any]]) -> AdditionalProgress:
    total = 0.0
    hours = 0.0
    for entry in entries:
        total += _num(entry.get("progress_percentage"))
        hours += _num(entry.get("hours_spent"))
    return AdditionalProgress(progress=min(total, 100.0), hours_spent=hours)


def hours_needed(quantity: Any, base_hours: Any) -> float:
    return _num(quantity) * _num(base_hours)


# ---------------------------------------------------------------------------
# Event lifecycle
# ---------------------------------------------------------------------------
def status_rank(status: Optional[str]) -> int:
    try:
        return STATUS_ORDER.index(str(status))
    except ValueError:
        return -1


def can_transition(current: Optional[str], new: str) -> bool:
    """Statuses only move forward; staying put is allowed."""
    if new not in STATUS_ORDER:
        return False
    return status_rank(new) >= status_rank(current)


def derive_event_status(current: Optional[str], progresses: Sequence[TaskProgress]) -> Optional[str]:
    if not progresses:
        return current
    target = "finished" if all(p.is_complete for p in progresses) else "in_progress"
    if status_rank(target) < status_rank(current):
        return current
    return target


def status_sort_key(status: Optional[str]) -> int:
    return PERFORMANCE_ORDER.get(str(status), 5)


# ---------------------------------------------------------------------------
# Equipment
# ---------------------------------------------------------------------------
def _qty(value: Any) -> int:
    return int(_num(value))


def available_quantity(equipment: Mapping[str, Any]) -> int:
    return max(0, _qty(equipment.get("quantity")) - _qty(equipment.get("in_use_quantity")))


def _status_for(in_use: int, quantity: int) -> str:
    return "in_use" if quantity > 0 and in_use >= quantity else "free_to_use"


def assign_quantity(equipment: Mapping[str, Any], quantity: Any) -> Tuple[int, str]:
    """Return ``(new_in_use_quantity, new_status)`` after assigning ``quantity`` units."""
    qty = _qty(quantity)
    if qty <= 0:
        raise ValueError("quantity must be positive")
    name = equipment.get("name") or "equipment"
    if equipment.get("status") == "broken":
        raise EquipmentUnavailableError(f"{name} is marked broken")
    available = available_quantity(equipment)
    if qty > available:
        raise EquipmentUnavailableError(f"Only {available} {name} available (requested {qty})")
    new_in_use = _qty(equipment.get("in_use_quantity")) + qty
    return new_in_use, _status_for(new_in_use, _qty(equipment.get("quantity")))


def release_quantity(equipment: Mapping[str, Any], quantity: Any) -> Tuple[int, str]:
    new_in_use = max(0, _qty(equipment.get("in_use_quantity")) - _qty(quantity))
    if equipment.get("status") == "broken":
        return new_in_use, "broken"
    return new_in_use, _status_for(new_in_use, _qty(equipment.get("quantity")))


def display_status(equipment: Mapping[str, Any]) -> str:
    status = equipment.get("status") or "free_to_use"
    if status == "broken":
        return status
    return "free_to_use" if available_quantity(equipment) > 0 else "in_use"


def clamp_equipment_quantity(quantity: Any, in_use: Any) -> int:
    return max(_qty(in_use), max(1, _qty(quantity)))


def resized_status(equipment: Mapping[str, Any], quantity: Any) -> str:
    """Status once ``quantity`` replaces the stored unit count; broken stays broken."""
    if equipment.get("status") == "broken":
        return "broken"
    return _status_for(_qty(equipment.get("in_use_quantity")), _qty(quantity))


__all__ = [
    "STATUS_ORDER",
    "TaskProgress",
    "EventProgress",
    "MaterialProgress",
    "AdditionalProgress",
    "parse_task_amount",
    "format_task_amount",
    "percent",
    "clamp_percent",
    "progress_band",
    "summarize_task",
    "group_by",
    "summarize_tasks",
    "summarize_event",
    "consolidate_materials",
    "additional_task_progress",
    "hours_needed",
    "status_rank",
    "can_transition",
    "derive_event_status",
    "status_sort_key",
    "available_quantity",
    "assign_quantity",
    "release_quantity",
    "display_status",
    "clamp_equipment_quantity",
    "resized_status",
]
