from __future__ import annotations
from typing import Any, Dict, List, Optional
import logging
from functools import lru_cache

import httpx

try:
    import streamlit as st
except Exception:  # pragma: no cover - allow headless usage (tests / CLI)
    st = None

from postgrest.exceptions import APIError
from supabase import Client, ClientOptions, SupabaseException, create_client

from landops.config import load_settings

logger = logging.getLogger(__name__)


class SupabaseConfigError(RuntimeError):
    """Raised when Supabase credentials are missing from secrets or env."""


class SupabaseConnectionError(RuntimeError):
    """Raised when the client cannot reach Supabase within the timeout window."""


_MISSING_CONFIG_MSG = (
    "Supabase secrets missing. Add `[supabase].url` and `[supabase].anon_key` to "
    "`.streamlit/secrets.toml` or set SUPABASE_URL and SUPABASE_ANON_KEY environment "
    "variables."
)


def _read_supabase_config() -> Dict[str, str]:
    settings = load_settings()
    if not settings.supabase_url or not settings.supabase_anon_key:
        raise SupabaseConfigError(_MISSING_CONFIG_MSG)
    return {"url": settings.supabase_url, "anon_key": settings.supabase_anon_key}


def _build_client_options() -> ClientOptions:
    """Return Supabase client options with tighter HTTP timeouts."""

    settings = load_settings()
    timeout = httpx.Timeout(settings.http_timeout, connect=settings.http_connect_timeout)
    return ClientOptions(
        httpx_client=httpx.Client(timeout=timeout),
        postgrest_client_timeout=timeout,
        storage_client_timeout=timeout,
        function_client_timeout=timeout,
    )


def _close_options(options: ClientOptions) -> None:
    client = options.httpx_client
    if client is not None:
        client.close()


def _create_supabase_client() -> Client:
    cfg = _read_supabase_config()
    options = _build_client_options()
    try:
        return create_client(cfg["url"], cfg["anon_key"], options=options)
    except SupabaseException as exc:
        _close_options(options)
        raise SupabaseConfigError(str(exc) or _MISSING_CONFIG_MSG) from exc
    except httpx.HTTPStatusError as exc:
        _close_options(options)
        status = exc.response.status_code if exc.response is not None else "unknown"
        body = None
        if exc.response is not None:
            try:
                body = exc.response.text
            except Exception:  # pragma: no cover - defensive fallback
                body = None
        if body:
            preview = body.strip().replace("\n", " ")[:200]
            logger.error("Supabase client HTTP error: %s -> %s", status, preview)
        else:
            logger.error("Supabase client HTTP error: %s -> %s", status, exc)
        raise SupabaseConfigError(
            "Supabase responded with HTTP "
            f"{status}. Verify the Supabase URL/anon key in your Streamlit secrets or environment."
        ) from exc
    except httpx.HTTPError as exc:
        _close_options(options)
        logger.error("Supabase client connection failed: %s", exc)
        raise SupabaseConnectionError(
            "Unable to reach Supabase right now. Check your internet connection and try again."
        ) from exc


if st is not None:

    @st.cache_resource  # type: ignore[misc]
    def get_client() -> Client:
        """Return a cached Supabase client bound to anon key."""
        return _create_supabase_client()

else:

    @lru_cache(maxsize=1)
    def get_client() -> Client:
        """Fallback cached client when Streamlit is unavailable."""
        return _create_supabase_client()


def rows(res: Any) -> List[Dict[str, Any]]:
    """Return ``res.data`` as a list of dicts (single-row responses included)."""
    if res is None:
        return []
    data = getattr(res, "data", res)
    if isinstance(data, dict):
        return [data]
    if isinstance(data, list):
        return [r for r in data if isinstance(r, dict)]
    return []


def first_row(res: Any) -> Optional[Dict[str, Any]]:
    """
    PostgREST Python client returns `.data` as list-like.
    Return the first dict or None.
    """
    found = rows(res)
    return found[0] if found else None


def format_api_error(context: str, exc: APIError) -> str:
    message = getattr(exc, "message", None) or str(exc)
    hint = getattr(exc, "hint", "")
    details = getattr(exc, "details", "")
    parts = [f"{context}: {message}"]
    if details:
        parts.append(str(details))
    if hint:
        parts.append(str(hint))
    return " | ".join(parts)


def execute(context: str, query: Any) -> Any:
    """Run a PostgREST query, re-raising API errors with readable context."""
    try:
        return query.execute()
    except APIError as exc:
        raise RuntimeError(format_api_error(context, exc)) from exc


__all__ = [
    "get_client",
    "rows",
    "first_row",
    "format_api_error",
    "execute",
    "SupabaseConfigError",
    "SupabaseConnectionError",
]
