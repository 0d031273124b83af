import pytest

from landops.services import profiles


@pytest.fixture
def people(fake_client):
    return fake_client.seed(
        "profiles",
        [
            {"id": "u1", "full_name": "Eero", "email": "eero@example.com", "role": "user"},
            {"id": "u2", "full_name": "Anna", "email": "anna@example.com", "role": "Admin"},
            {"id": "u3", "full_name": "Bea", "email": "bea@example.com", "role": "Team_Leader"},
        ],
    )


def test_list_profiles_hides_admins(fake_client, people):
    assert [p["full_name"] for p in profiles.list_profiles()] == ["Bea", "Eero"]
    assert [p["full_name"] for p in profiles.list_profiles(include_admins=True)] == ["Anna", "Bea", "Eero"]


def test_update_role(fake_client, people):
    assert profiles.list_profiles()[1]["role"] == "user"
    updated = profiles.update_role("u1", "project_manager")
    assert updated["role"] == "project_manager"
    assert profiles.list_profiles()[1]["role"] == "project_manager"


def test_update_role_rejects_unassignable_roles(fake_client, people):
    with pytest.raises(ValueError):
        profiles.update_role("u1", "Admin")
    with pytest.raises(ValueError):
        profiles.update_role("u2", "user")
    with pytest.raises(LookupError):
        profiles.update_role("nobody", "user")
    assert next(p for p in fake_client.rows("profiles") if p["id"] == "u1")["role"] == "user"


def test_same_role_is_a_no_op(fake_client, people):
    profiles.update_role("u3", "Team_Leader")
    assert ("profiles", "update") not in fake_client.calls
