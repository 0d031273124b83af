import httpx
import pytest
from postgrest.exceptions import APIError

from landops import supabase_client
from landops.utils import supa
from landops.utils.supa import SupabaseConfigError, SupabaseConnectionError, execute, first_row, rows


class Resp:
    def __init__(self, data):
        self.data = data


def test_first_row_basic():
    assert first_row(Resp([{"a": 1}])) == {"a": 1}
    assert first_row(Resp([])) is None
    assert first_row(None) is None


def test_rows_accepts_single_row_payloads():
    assert rows(Resp({"a": 1})) == [{"a": 1}]
    assert rows(Resp([{"a": 1}, "junk"])) == [{"a": 1}]
    assert rows(Resp(None)) == []


def test_missing_credentials(monkeypatch):
    monkeypatch.delenv("SUPABASE_URL", raising=False)
    monkeypatch.delenv("SUPABASE_ANON_KEY", raising=False)
    monkeypatch.setattr("landops.config._secret", lambda section, key: None)
    with pytest.raises(SupabaseConfigError):
        supa._read_supabase_config()  # pylint: disable=protected-access


def test_create_supabase_client_http_status_error(monkeypatch):
    monkeypatch.setenv("SUPABASE_URL", "https://example.supabase.co")
    monkeypatch.setenv("SUPABASE_ANON_KEY", "anon-key")
    monkeypatch.setattr("landops.config._secret", lambda section, key: None)

    request = httpx.Request("GET", "https://example.supabase.co")
    response = httpx.Response(404, request=request, text="Not Found")

    def _raise_http_status(*args, **kwargs):  # pragma: no cover - helper for test
        raise httpx.HTTPStatusError("not found", request=request, response=response)

    monkeypatch.setattr(supa, "create_client", _raise_http_status)

    with pytest.raises(SupabaseConfigError) as excinfo:
        supa._create_supabase_client()  # pylint: disable=protected-access

    assert "HTTP 404" in str(excinfo.value)


def test_create_supabase_client_connection_error(monkeypatch):
    monkeypatch.setenv("SUPABASE_URL", "https://example.supabase.co")
    monkeypatch.setenv("SUPABASE_ANON_KEY", "anon-key")
    monkeypatch.setattr("landops.config._secret", lambda section, key: None)

    def _raise_connect(*args, **kwargs):  # pragma: no cover - helper for test
        raise httpx.ConnectError("offline")

    monkeypatch.setattr(supa, "create_client", _raise_connect)

    with pytest.raises(SupabaseConnectionError):
        supa._create_supabase_client()  # pylint: disable=protected-access


def test_execute_formats_api_errors():
    class Failing:
        def execute(self):
            raise APIError({"message": "permission denied", "code": "42501", "hint": "check RLS", "details": ""})

    with pytest.raises(RuntimeError) as excinfo:
        execute("list_events", Failing())
    assert str(excinfo.value) == "list_events: permission denied | check RLS"


def test_get_client_reraises_config_error_headless(monkeypatch):
    def _missing():
        raise SupabaseConfigError("missing")

    monkeypatch.setattr(supabase_client, "_get_cached_client", _missing)
    monkeypatch.setattr(supabase_client, "_in_streamlit", lambda: False)
    with pytest.raises(SupabaseConfigError):
        supabase_client.get_client()
