"""Entity-keyed request cache on top of ``st.cache_data``.

Readers register under one or more entity keys; every mutation invalidates the
keys it touched so the next read goes back to Supabase.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, List, TypeVar

import streamlit as st

from landops.config import load_settings

logger = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable[..., Any])

_REGISTRY: Dict[str, List[Any]] = {}


def cached(*keys: str) -> Callable[[F], F]:
    """Cache a reader with ``st.cache_data`` and register it under ``keys``."""

    if not keys:
        raise ValueError("cached() needs at least one entity key")

    def decorator(func: F) -> F:
        wrapped = st.cache_data(ttl=load_settings().cache_ttl_seconds, show_spinner=False)(func)
        for key in keys:
            _REGISTRY.setdefault(key, []).append(wrapped)
        return wrapped  # type: ignore[return-value]

    return decorator


def invalidate(*keys: str) -> None:
    """Clear every cached reader registered under ``keys``."""
    for key in keys:
        for reader in _REGISTRY.get(key, []):
            reader.clear()
    logger.debug("Invalidated cache keys: %s", ", ".join(keys))


def clear_all() -> None:
    for readers in _REGISTRY.values():
        for reader in readers:
            reader.clear()


def registered_keys() -> List[str]:
    return sorted(_REGISTRY)


__all__ = ["cached", "invalidate", "clear_all", "registered_keys"]
