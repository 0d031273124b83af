import pytest

from fakes import FakeClient

from landops import cache
from landops.services import (
    additional,
    digging,
    equipment,
    events,
    materials,
    profiles,
    reports,
    schedule,
    tasks,
)

_SERVICE_MODULES = (additional, digging, equipment, events, materials, profiles, reports, schedule, tasks)


@pytest.fixture(autouse=True)
def _fresh_cache():
    cache.clear_all()
    yield
    cache.clear_all()


@pytest.fixture
def fake_client(monkeypatch):
    client = FakeClient()
    for module in _SERVICE_MODULES:
        monkeypatch.setattr(module, "get_client", lambda: client)
    return client
