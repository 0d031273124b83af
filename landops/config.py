"""Runtime settings for landops.

Values come from Streamlit secrets first (``[landops]`` / ``[supabase]``
sections) and fall back to ``LANDOPS_*`` / ``SUPABASE_*`` environment
variables. Nothing here requires credentials at import time.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Any, Optional

try:
    import streamlit as st
except Exception:  # pragma: no cover - allow headless usage (tests / CLI)
    st = None

ENV_PREFIX = "LANDOPS"


def _secret(section: str, key: str) -> Any:
    if st is None:
        return None
    try:
        return st.secrets[section][key]
    except Exception:
        return None


def _env(suffix: str) -> Optional[str]:
    value = os.getenv(f"{ENV_PREFIX}_{suffix}")
    if value is None or value.strip() == "":
        return None
    return value.strip()


def _float(value: Any, default: float) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def _int(value: Any, default: int) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


@dataclass(frozen=True)
class Settings:
    supabase_url: Optional[str]
    supabase_anon_key: Optional[str]
    cache_ttl_seconds: int = 60
    http_timeout: float = 10.0
    http_connect_timeout: float = 5.0
    log_level: str = "INFO"
    log_file: Optional[str] = None


def load_settings() -> Settings:
    """Read settings from secrets, then env, then defaults."""

    url = _secret("supabase", "url") or os.getenv("SUPABASE_URL")
    key = _secret("supabase", "anon_key") or os.getenv("SUPABASE_ANON_KEY")

    def pick(name: str) -> Any:
        value = _secret("landops", name)
        return value if value is not None else _env(name.upper())

    return Settings(
        supabase_url=url or None,
        supabase_anon_key=key or None,
        cache_ttl_seconds=_int(pick("cache_ttl_seconds"), 60),
        http_timeout=_float(pick("http_timeout"), 10.0),
        http_connect_timeout=_float(pick("http_connect_timeout"), 5.0),
        log_level=str(pick("log_level") or "INFO").upper(),
        log_file=pick("log_file") or None,
    )


__all__ = ["Settings", "load_settings"]
