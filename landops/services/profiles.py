"""User profiles and the roles an admin can hand out."""
from __future__ import annotations

import logging
from typing import Any, Dict, List

from landops import db_tables
from landops.cache import cached, invalidate
from landops.supabase_client import get_client
from landops.utils.supa import execute, first_row, rows

__all__ = ["ROLES", "ASSIGNABLE_ROLES", "list_profiles", "update_role"]

logger = logging.getLogger(__name__)

ROLES = ("user", "project_manager", "Team_Leader", "Admin", "boss")
# Admin and boss are granted in the backend only
ASSIGNABLE_ROLES = ("user", "project_manager", "Team_Leader")


def _client():
    client = get_client()
    if client is None:  # pragma: no cover - defensive
        raise RuntimeError("Supabase client not configured")
    return client


@cached("profiles")
def list_profiles(include_admins: bool = False) -> List[Dict[str, Any]]:
    query = _client().table(db_tables.PROFILES).select("id, email, full_name, role").order("full_name")
    if not include_admins:
        query = query.neq("role", "Admin")
    return rows(execute("list_profiles", query))


def update_role(user_id: str, role: str) -> Dict[str, Any]:
    if role not in ASSIGNABLE_ROLES:
        raise ValueError(f"role must be one of {', '.join(ASSIGNABLE_ROLES)}")
    client = _client()
    current = first_row(
        execute(
            "update_role",
            client.table(db_tables.PROFILES).select("id, full_name, role").eq("id", user_id).limit(1),
        )
    )
    if not current:
        raise LookupError(f"Profile {user_id} not found")
    if current.get("role") == "Admin":
        raise ValueError("Admin roles cannot be changed here")
    if current.get("role") == role:
        return current

    res = execute(
        "update_role",
        client.table(db_tables.PROFILES).update({"role": role}).eq("id", user_id),
    )
    logger.info("Role of %s changed %s -> %s", current.get("full_name") or user_id, current.get("role"), role)
    invalidate("profiles")
    return first_row(res) or {**current, "role": role}
