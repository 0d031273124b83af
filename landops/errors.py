"""Domain errors raised by landops services."""

from __future__ import annotations


class EventStatusError(ValueError):
    """Raised for an illegal event lifecycle transition."""


class EquipmentUnavailableError(ValueError):
    """Raised when equipment cannot cover the requested quantity."""


class DeliveryExceedsRequiredError(ValueError):
    """Raised when a delivery would push a material past its required total."""


__all__ = [
    "EventStatusError",
    "EquipmentUnavailableError",
    "DeliveryExceedsRequiredError",
]
