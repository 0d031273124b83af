import logging

import numpy as np
import pandas as pd
import pytest

from landops import config
from landops.data_sanitize import assert_jsonable, clean_jsonable
from landops.logging_setup import setup_logging
from landops.progress import TaskProgress


@pytest.fixture
def no_secrets(monkeypatch):
    monkeypatch.setattr(config, "_secret", lambda section, key: None)


def test_settings_from_env(monkeypatch, no_secrets):
    monkeypatch.setenv("SUPABASE_URL", "https://x.supabase.co")
    monkeypatch.setenv("SUPABASE_ANON_KEY", "anon")
    monkeypatch.setenv("LANDOPS_CACHE_TTL_SECONDS", "15")
    monkeypatch.setenv("LANDOPS_HTTP_TIMEOUT", "not-a-number")
    monkeypatch.setenv("LANDOPS_LOG_LEVEL", "debug")
    settings = config.load_settings()
    assert settings.supabase_url == "https://x.supabase.co"
    assert settings.cache_ttl_seconds == 15
    assert settings.http_timeout == 10.0
    assert settings.log_level == "DEBUG"
    assert settings.log_file is None


def test_secrets_win_over_env(monkeypatch):
    secrets = {("supabase", "url"): "https://secret.supabase.co", ("landops", "cache_ttl_seconds"): 5}
    monkeypatch.setattr(config, "_secret", lambda section, key: secrets.get((section, key)))
    monkeypatch.setenv("SUPABASE_URL", "https://env.supabase.co")
    monkeypatch.setenv("LANDOPS_CACHE_TTL_SECONDS", "99")
    settings = config.load_settings()
    assert settings.supabase_url == "https://secret.supabase.co"
    assert settings.cache_ttl_seconds == 5


@pytest.fixture
def restore_root_logging():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    for handler in list(root.handlers):
        root.removeHandler(handler)
        if handler not in handlers:
            handler.close()
    for handler in handlers:
        root.addHandler(handler)
    root.setLevel(level)
    logging.captureWarnings(False)


def test_setup_logging_filters_third_party(tmp_path, capsys, restore_root_logging):
    log_file = tmp_path / "logs" / "landops.log"
    setup_logging("INFO", log_file)
    logging.getLogger("landops.services.events").info("event created")
    logging.getLogger("httpx").info("HTTP Request: GET")
    logging.getLogger("httpx").warning("slow response")
    err = capsys.readouterr().err
    assert "event created" in err
    assert "HTTP Request" not in err
    assert "slow response" in err
    for handler in logging.getLogger().handlers:
        handler.flush()
    assert "HTTP Request" in log_file.read_text(encoding="utf-8")


def test_clean_jsonable_handles_pandas_numpy_and_dataclasses():
    df = pd.DataFrame({"hours": [np.float64(1.5), np.nan], "n": [np.int64(2), np.int64(3)]})
    progress = TaskProgress("t", "e", "Turf", 2.0, "m2", completed=1.0)
    cleaned = clean_jsonable({"df": df, "total": np.float64(3.0), "task": progress, "ok": np.bool_(True)})
    assert_jsonable(cleaned)
    assert cleaned["df"] == [{"hours": 1.5, "n": 2}, {"hours": None, "n": 3}]
    assert cleaned["total"] == 3.0
    assert cleaned["task"]["percent_complete"] == 50.0
    assert cleaned["ok"] is True


def test_assert_jsonable_rejects_objects():
    with pytest.raises(RuntimeError):
        assert_jsonable({"x": object()})
