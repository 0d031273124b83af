"""Hours and performance reports built from progress entries.

Rows are pulled with plain filters, joined in memory and aggregated with
pandas. Every report returns JSON-safe primitives.
"""
from __future__ import annotations

import logging
from datetime import date, datetime
from typing import Any, Dict, Iterable, List, Optional

import pandas as pd

from landops import db_tables
from landops.cache import cached
from landops.data_sanitize import clean_jsonable
from landops.progress import parse_task_amount
from landops.supabase_client import get_client
from landops.time_utils import day_bounds, project_weeks, utc_iso, work_week
from landops.utils.supa import execute, rows

__all__ = [
    "hours_worked",
    "project_performance",
    "project_weeks",
    "work_week",
    "weekly_worker_hours",
    "list_workers",
]

logger = logging.getLogger(__name__)

UNKNOWN_TASK = "Unknown task"
ADDITIONAL_TASK = "Additional task"


def _client():
    client = get_client()
    if client is None:  # pragma: no cover - defensive
        raise RuntimeError("Supabase client not configured")
    return client


def _by_ids(table: str, ids: Iterable[Any], columns: str = "*") -> Dict[Any, Dict[str, Any]]:
    wanted = sorted({i for i in ids if i}, key=str)
    if not wanted:
        return {}
    res = execute(f"load {table}", _client().table(table).select(columns).in_("id", wanted))
    return {r["id"]: r for r in rows(res)}


def _names(user_ids: Iterable[Any]) -> Dict[Any, str]:
    profiles = _by_ids(db_tables.PROFILES, user_ids, "id, full_name, email")
    return {uid: p.get("full_name") or p.get("email") or str(uid) for uid, p in profiles.items()}


def _frame(data: List[Dict[str, Any]], numeric: Iterable[str]) -> pd.DataFrame:
    df = pd.DataFrame(data)
    for col in numeric:
        if col not in df.columns:
            df[col] = 0.0
        df[col] = pd.to_numeric(df[col], errors="coerce").fillna(0.0)
    return df


@cached("reports", "task_progress", "tasks", "profiles")
def hours_worked(event_id: str) -> Dict[str, Any]:
    """Hours and completed amount per worker and task for one event."""

    entries = rows(
        execute(
            "hours_worked",
            _client().table(db_tables.TASK_PROGRESS_ENTRIES).select("*").eq("event_id", event_id),
        )
    )
    if not entries:
        return {"event_id": event_id, "users": [], "total_hours": 0.0}

    tasks = _by_ids(db_tables.TASKS_DONE, (e.get("task_id") for e in entries))
    names = _names(e.get("user_id") for e in entries)

    df = _frame(entries, ("hours_spent", "amount_completed"))
    df["task_name"] = df["task_id"].map(
        lambda t: (tasks.get(t) or {}).get("name") or UNKNOWN_TASK
    )
    df["unit"] = df["task_id"].map(
        lambda t: parse_task_amount((tasks.get(t) or {}).get("amount"))[1]
    )
    df["user_id"] = df["user_id"].fillna("")

    per_task = (
        df.groupby(["user_id", "task_name", "unit"], sort=True)[["hours_spent", "amount_completed"]]
        .sum()
        .reset_index()
    )
    users = []
    for user_id, group in per_task.groupby("user_id", sort=True):
        users.append(
            {
                "user_id": user_id or None,
                "full_name": names.get(user_id) or "Unknown",
                "total_hours": group["hours_spent"].sum(),
                "tasks": group.drop(columns=["user_id"]).to_dict(orient="records"),
            }
        )
    return clean_jsonable(
        {"event_id": event_id, "users": users, "total_hours": df["hours_spent"].sum()}
    )


def _in_range(table: str, event_id: str, lo: str, hi: str) -> List[Dict[str, Any]]:
    query = (
        _client()
        .table(table)
        .select("*")
        .eq("event_id", event_id)
        .gte("created_at", lo)
        .lte("created_at", hi)
    )
    return rows(execute(f"project_performance {table}", query))


@cached("reports", "task_progress", "additional_tasks", "additional_materials", "profiles")
def project_performance(event_id: str, start: str | date, end: str | date) -> Dict[str, Any]:
    """Hours per worker (and per task) logged on a project between two days."""

    lo, hi = day_bounds(start, end)
    entries = _in_range(db_tables.TASK_PROGRESS_ENTRIES, event_id, lo, hi)
    additional_tasks = _in_range(db_tables.ADDITIONAL_TASKS, event_id, lo, hi)
    additional_materials = _in_range(db_tables.ADDITIONAL_MATERIALS, event_id, lo, hi)

    users: List[Dict[str, Any]] = []
    total = 0.0
    if entries:
        tasks = _by_ids(db_tables.TASKS_DONE, (e.get("task_id") for e in entries))
        names = _names(e.get("user_id") for e in entries)
        df = _frame(entries, ("hours_spent",))
        df["task_name"] = df["task_id"].map(
            lambda t: (tasks.get(t) or {}).get("name") or UNKNOWN_TASK
        )
        df["user_id"] = df["user_id"].fillna("")
        total = df["hours_spent"].sum()
        for user_id, group in df.groupby("user_id", sort=True):
            task_hours = group.groupby("task_name", sort=True)["hours_spent"].sum()
            users.append(
                {
                    "user_id": user_id or None,
                    "full_name": names.get(user_id) or "Unknown",
                    "total_hours": group["hours_spent"].sum(),
                    "task_hours": task_hours,
                }
            )
        users.sort(key=lambda u: u["total_hours"], reverse=True)

    logger.debug("Performance for %s between %s and %s: %d entries", event_id, lo, hi, len(entries))
    return clean_jsonable(
        {
            "event_id": event_id,
            "start": lo,
            "end": hi,
            "total_hours": total,
            "users": users,
            "additional_tasks": additional_tasks,
            "additional_materials": additional_materials,
        }
    )


def _user_week(table: str, user_id: str, lo: str, hi: str) -> List[Dict[str, Any]]:
    query = (
        _client()
        .table(table)
        .select("*")
        .eq("user_id", user_id)
        .gte("created_at", lo)
        .lte("created_at", hi)
    )
    return rows(execute(f"weekly_worker_hours {table}", query))


@cached("reports", "task_progress", "additional_tasks", "events")
def weekly_worker_hours(
    user_id: str, reference: Optional[date | datetime] = None, last_week: bool = False
) -> Dict[str, Any]:
    """Hours a worker logged in one Friday-to-Thursday work week."""

    start, end = work_week(reference, weeks_back=1 if last_week else 0)
    lo, hi = utc_iso(start), utc_iso(end)

    task_entries = _user_week(db_tables.TASK_PROGRESS_ENTRIES, user_id, lo, hi)
    extra_entries = _user_week(db_tables.ADDITIONAL_TASK_PROGRESS, user_id, lo, hi)
    tasks = _by_ids(db_tables.TASKS_DONE, (e.get("task_id") for e in task_entries))
    extra_tasks = _by_ids(db_tables.ADDITIONAL_TASKS, (e.get("task_id") for e in extra_entries))

    records = []
    for entry in task_entries:
        task = tasks.get(entry.get("task_id")) or {}
        records.append(
            {
                "created_at": entry.get("created_at"),
                "hours_spent": entry.get("hours_spent"),
                "task_name": task.get("name") or UNKNOWN_TASK,
                "event_id": entry.get("event_id") or task.get("event_id"),
            }
        )
    for entry in extra_entries:
        task = extra_tasks.get(entry.get("task_id")) or {}
        records.append(
            {
                "created_at": entry.get("created_at"),
                "hours_spent": entry.get("hours_spent"),
                "task_name": task.get("description") or ADDITIONAL_TASK,
                "event_id": task.get("event_id") or entry.get("event_id"),
            }
        )

    result: Dict[str, Any] = {
        "user_id": user_id,
        "week_start": start,
        "week_end": end,
        "entries": [],
        "total_hours": 0.0,
        "events": [],
    }
    if not records:
        return clean_jsonable(result)

    events = _by_ids(db_tables.EVENTS, (r["event_id"] for r in records), "id, title")
    df = _frame(records, ("hours_spent",))
    df["event_id"] = df["event_id"].fillna("")
    df["event_title"] = df["event_id"].map(lambda e: (events.get(e) or {}).get("title") or "")
    df = df.sort_values("created_at", ascending=False, kind="stable")

    per_event = []
    for (event_id, title), group in df.groupby(["event_id", "event_title"], sort=True):
        if not event_id:
            continue
        per_event.append(
            {
                "event_id": event_id,
                "event_title": title,
                "total_hours": group["hours_spent"].sum(),
                "tasks": group.groupby("task_name", sort=True)["hours_spent"].sum(),
            }
        )

    result.update(
        entries=df,
        total_hours=df["hours_spent"].sum(),
        events=per_event,
    )
    return clean_jsonable(result)


@cached("profiles")
def list_workers(search: str = "") -> List[Dict[str, Any]]:
    query = _client().table(db_tables.PROFILES).select("id, full_name, email, role").order("full_name")
    term = (search or "").strip()
    if term:
        query = query.ilike("full_name", f"%{term}%")
    return rows(execute("list_workers", query))
