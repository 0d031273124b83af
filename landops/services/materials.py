"""Material catalog, per-event requirements and deliveries."""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping, Optional

from landops import db_tables
from landops.cache import cached, invalidate
from landops.errors import DeliveryExceedsRequiredError
from landops.payloads import build_delivery_payload, build_material_payload, clean_row
from landops.progress import MaterialProgress, consolidate_materials
from landops.supabase_client import get_client
from landops.time_utils import now_iso
from landops.utils.supa import execute, first_row, rows

__all__ = [
    "list_material_templates",
    "add_material_template",
    "update_material_template",
    "list_event_materials",
    "add_material_to_event",
    "list_deliveries",
    "record_delivery",
]

logger = logging.getLogger(__name__)

_TEMPLATE_FIELDS = {"name", "unit", "description"}


def _client():
    client = get_client()
    if client is None:  # pragma: no cover - defensive
        raise RuntimeError("Supabase client not configured")
    return client


@cached("material_templates")
def list_material_templates(search: str = "") -> List[Dict[str, Any]]:
    query = _client().table(db_tables.MATERIAL_TEMPLATES).select("*").order("name")
    term = (search or "").strip()
    if term:
        query = query.ilike("name", f"%{term}%")
    return rows(execute("list_material_templates", query))


def add_material_template(data: Mapping[str, Any]) -> Dict[str, Any]:
    payload = clean_row(data, _TEMPLATE_FIELDS)
    if not payload.get("name"):
        raise ValueError("name is required")
    if not payload.get("unit"):
        raise ValueError("unit is required")
    row = first_row(
        execute("add_material_template", _client().table(db_tables.MATERIAL_TEMPLATES).insert(payload))
    )
    invalidate("material_templates")
    return row or payload


def update_material_template(template_id: str, patch: Mapping[str, Any]) -> Dict[str, Any]:
    clean = clean_row(patch, _TEMPLATE_FIELDS)
    if "name" in clean and not clean["name"]:
        raise ValueError("name cannot be empty")
    if not clean:
        raise ValueError("nothing to update")
    res = execute(
        "update_material_template",
        _client().table(db_tables.MATERIAL_TEMPLATES).update(clean).eq("id", template_id),
    )
    row = first_row(res)
    if not row:
        raise LookupError(f"Material template {template_id} not found")
    invalidate("material_templates")
    return row


def _fetch_materials(event_id: str) -> List[Dict[str, Any]]:
    query = _client().table(db_tables.MATERIALS_DELIVERED).select("*").eq("event_id", event_id)
    return rows(execute("list_event_materials", query))


@cached("materials", "material_deliveries")
def list_event_materials(event_id: str) -> List[MaterialProgress]:
    res = execute(
        "list_event_materials",
        _client().table(db_tables.MATERIAL_DELIVERIES).select("*").eq("event_id", event_id),
    )
    return consolidate_materials(_fetch_materials(event_id), rows(res))


def add_material_to_event(event_id: str, template_id: str, quantity: Any) -> Dict[str, Any]:
    res = execute(
        "add_material_to_event",
        _client().table(db_tables.MATERIAL_TEMPLATES).select("*").eq("id", template_id).limit(1),
    )
    template = first_row(res)
    if not template:
        raise LookupError(f"Material template {template_id} not found")
    payload = build_material_payload(
        event_id=event_id, name=template.get("name"), unit=template.get("unit"), quantity=quantity
    )
    client = _client()
    row = first_row(execute("add_material_to_event", client.table(db_tables.MATERIALS_DELIVERED).insert(payload)))
    execute(
        "add_material_to_event",
        client.table(db_tables.EVENTS).update({"has_materials": True}).eq("id", event_id),
    )
    logger.info("Event %s needs %s %s of %s", event_id, payload["total_amount"], payload["unit"], payload["name"])
    invalidate("materials", "event", "events")
    return row or payload


def _fetch_deliveries(material_id: str) -> List[Dict[str, Any]]:
    query = (
        _client()
        .table(db_tables.MATERIAL_DELIVERIES)
        .select("*")
        .eq("material_id", material_id)
        .order("delivery_date", desc=True)
    )
    return rows(execute("list_deliveries", query))


@cached("material_deliveries")
def list_deliveries(material_id: str) -> List[Dict[str, Any]]:
    return _fetch_deliveries(material_id)


def record_delivery(
    material_id: str,
    amount: Any,
    user_id: str,
    notes: Optional[str] = "",
    allow_over: bool = False,
) -> Dict[str, Any]:
    """Record a delivery and bring the material row's delivered total up to date."""

    res = execute(
        "record_delivery",
        _client().table(db_tables.MATERIALS_DELIVERED).select("*").eq("id", material_id).limit(1),
    )
    material = first_row(res)
    if not material:
        raise LookupError(f"Material {material_id} not found")

    payload = build_delivery_payload(
        material=material,
        user_id=user_id,
        amount=amount,
        notes=notes,
        delivered_at=now_iso(),
    )
    required = float(material.get("total_amount") or 0)
    delivered = sum(float(d.get("amount") or 0) for d in _fetch_deliveries(material_id))
    remaining = required - delivered
    if payload["amount"] > remaining and not allow_over:
        raise DeliveryExceedsRequiredError(
            f"Delivery of {payload['amount']} {material.get('unit') or ''} exceeds the remaining "
            f"{max(remaining, 0)} for {material.get('name')}"
        )

    client = _client()
    row = first_row(execute("record_delivery", client.table(db_tables.MATERIAL_DELIVERIES).insert(payload)))
    new_total = delivered + payload["amount"]
    update: Dict[str, Any] = {"amount": new_total}
    if new_total >= required:
        update["status"] = "delivered"
    execute(
        "record_delivery",
        client.table(db_tables.MATERIALS_DELIVERED).update(update).eq("id", material_id),
    )
    logger.info(
        "Delivered %s %s of %s (%s/%s)",
        payload["amount"],
        material.get("unit") or "",
        material.get("name"),
        new_total,
        required,
    )
    invalidate("materials", "material_deliveries")
    return row or payload
