"""Supabase client access for landops services."""

from __future__ import annotations

import logging

try:
    import streamlit as st
except Exception:  # pragma: no cover - running headless
    st = None  # type: ignore

from landops.utils.supa import SupabaseConfigError, get_client as _get_cached_client

__all__ = ["get_client"]

logger = logging.getLogger(__name__)


def _in_streamlit() -> bool:
    if st is None:
        return False
    try:
        return bool(st.runtime.exists())
    except Exception:  # pragma: no cover - older streamlit without runtime API
        return False


def get_client():
    """Return the shared Supabase client, surfacing config problems in the UI."""
    try:
        return _get_cached_client()
    except SupabaseConfigError as exc:
        logger.error("Supabase client unavailable: %s", exc)
        if _in_streamlit():
            st.error(str(exc))
            st.stop()
        raise
