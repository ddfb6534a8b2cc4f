"""
End-to-end route tests with FastAPI's TestClient.

The app is built without running its lifespan: state is wired to an
in-memory SQLite engine seeded with the demo organization. Bearer tokens are
user ids or external ids (1 = owner with all access, 2 = regional manager on "West",
3 = store user on "New York").
"""
from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from reviewhub.access import build_access_services
from reviewhub.db.init_db import _seed
from reviewhub.db.repository import SqlAlchemyAccessRepository
from reviewhub.db.session import get_db
from reviewhub.main import create_app
from reviewhub.security.config import AccessConfig, AccessConfigModel

OWNER, REGIONAL, STORE = 1, 2, 3
ACME = 1
WEST, CA = 1, 2
LA, SF, NYC = 1, 2, 3


def auth(user_id: int) -> dict[str, str]:
    return {"Authorization": f"Bearer {user_id}"}


@pytest.fixture
def client(session_factory):
    with session_factory() as db:
        _seed(db)

    config = AccessConfig(AccessConfigModel())
    app = create_app()
    app.state.access_config = config
    app.state.access = build_access_services(
        SqlAlchemyAccessRepository(session_factory),
        known_permissions=config.permission_names,
    )

    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    return TestClient(app)


def test_health(client):
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.json()["status"] == "ok"


def test_requires_authentication(client):
    assert client.get(f"/organizations/{ACME}/locations").status_code == 401
    assert client.get(f"/organizations/{ACME}/locations", headers={"Authorization": "Token 1"}).status_code == 400
    assert client.get(f"/organizations/{ACME}/locations", headers={"Authorization": "Bearer"}).status_code == 400
    assert client.get(f"/organizations/{ACME}/locations", headers={"Authorization": "Bearer auth0|nobody"}).status_code == 401


def test_identity_provider_subject_resolves_to_user(client):
    resp = client.get(f"/organizations/{ACME}/locations", headers={"Authorization": "Bearer auth0|regional"})
    assert resp.status_code == 200
    assert [loc["name"] for loc in resp.json()] == ["Los Angeles", "San Francisco"]


@pytest.mark.parametrize(
    ("user_id", "expected"),
    [
        (OWNER, ["Los Angeles", "New York", "San Francisco"]),
        (REGIONAL, ["Los Angeles", "San Francisco"]),
        (STORE, ["New York"]),
    ],
)
def test_location_list_is_scoped_to_grants(client, user_id, expected):
    resp = client.get(f"/organizations/{ACME}/locations", headers=auth(user_id))
    assert resp.status_code == 200
    assert [loc["name"] for loc in resp.json()] == expected


def test_location_detail_requires_view(client):
    assert client.get(f"/organizations/{ACME}/locations/{LA}", headers=auth(REGIONAL)).status_code == 200

    resp = client.get(f"/organizations/{ACME}/locations/{LA}", headers=auth(STORE))
    assert resp.status_code == 403
    assert resp.json()["detail"] == "Access denied"


def test_other_organization_is_forbidden(client):
    assert client.get("/organizations/2/locations", headers=auth(OWNER)).status_code == 403


def test_my_access_reports_merged_permissions(client):
    resp = client.get(f"/organizations/{ACME}/access/me", headers=auth(REGIONAL))
    assert resp.status_code == 200
    body = resp.json()
    assert body["locations"] == [
        {"location_id": LA, "permissions": ["respond", "view"]},
        {"location_id": SF, "permissions": ["respond", "view"]},
    ]
    assert body["dangling"] == []


def test_hierarchy_edits_require_admin_role(client):
    resp = client.post(f"/organizations/{ACME}/groups", json={"name": "East"}, headers=auth(STORE))
    assert resp.status_code == 403


def test_create_group_and_list(client):
    resp = client.post(
        f"/organizations/{ACME}/groups",
        json={"name": "East", "group_type": "Region"},
        headers=auth(OWNER),
    )
    assert resp.status_code == 201
    assert resp.json()["level"] == 0

    names = [g["name"] for g in client.get(f"/organizations/{ACME}/groups", headers=auth(STORE)).json()]
    assert names == ["East", "West", "California"]


def test_invalid_group_type_is_unprocessable(client):
    resp = client.post(
        f"/organizations/{ACME}/groups",
        json={"name": "Downtown", "group_type": "District"},
        headers=auth(OWNER),
    )
    assert resp.status_code == 422
    assert resp.json()["error"] == "HierarchyError"


def test_reparent_cycle_is_conflict(client):
    resp = client.put(
        f"/organizations/{ACME}/groups/{WEST}/parent",
        json={"parent_group_id": CA},
        headers=auth(OWNER),
    )
    assert resp.status_code == 409
    assert resp.json()["error"] == "CycleError"


def test_subtree_is_filtered_for_non_admins(client):
    owner_view = client.get(f"/organizations/{ACME}/groups/{WEST}/subtree", headers=auth(OWNER)).json()
    store_view = client.get(f"/organizations/{ACME}/groups/{WEST}/subtree", headers=auth(STORE)).json()

    assert {g["id"] for g in owner_view["groups"]} == {WEST, CA}
    assert {loc["id"] for loc in owner_view["locations"]} == {LA, SF}
    assert store_view["locations"] == []


def test_assigning_a_group_is_visible_on_next_request(client):
    resp = client.post(
        f"/organizations/{ACME}/access/users/{STORE}/group/{WEST}",
        json={"permissions": ["view"]},
        headers=auth(OWNER),
    )
    assert resp.status_code == 201
    assert resp.json()["kind"] == "group"

    me = client.get(f"/organizations/{ACME}/access/me", headers=auth(STORE)).json()
    assert {loc["location_id"] for loc in me["locations"]} == {LA, SF, NYC}


def test_unknown_permission_is_rejected(client):
    resp = client.post(
        f"/organizations/{ACME}/access/users/{STORE}/locations",
        json={"location_ids": [LA], "permissions": ["delete"]},
        headers=auth(OWNER),
    )
    assert resp.status_code == 422
    assert resp.json()["error"] == "InvalidGrant"


def test_assign_all_then_revoke(client):
    resp = client.post(f"/organizations/{ACME}/access/users/{STORE}/all", headers=auth(OWNER))
    assert resp.status_code == 200
    grant = resp.json()
    assert grant["kind"] == "all_locations"

    me = client.get(f"/organizations/{ACME}/access/me", headers=auth(STORE)).json()
    assert len(me["locations"]) == 3

    assert client.delete(f"/organizations/{ACME}/access/grants/{grant['id']}", headers=auth(OWNER)).status_code == 200
    me = client.get(f"/organizations/{ACME}/access/me", headers=auth(STORE)).json()
    assert me["locations"] == []


def test_unknown_group_is_not_found(client):
    resp = client.delete(f"/organizations/{ACME}/groups/999", headers=auth(OWNER))
    assert resp.status_code == 404


def test_create_and_move_location(client):
    resp = client.post(
        f"/organizations/{ACME}/locations",
        json={"name": "Seattle", "city": "Seattle", "state": "WA", "location_group_id": WEST},
        headers=auth(OWNER),
    )
    assert resp.status_code == 201
    seattle = resp.json()
    assert seattle["location_group_id"] == WEST

    regional = client.get(f"/organizations/{ACME}/locations", headers=auth(REGIONAL)).json()
    assert "Seattle" in [loc["name"] for loc in regional]

    resp = client.put(
        f"/organizations/{ACME}/locations/{seattle['id']}/group",
        json={"location_group_id": None},
        headers=auth(OWNER),
    )
    assert resp.status_code == 200
    regional = client.get(f"/organizations/{ACME}/locations", headers=auth(REGIONAL)).json()
    assert "Seattle" not in [loc["name"] for loc in regional]


def test_update_location_requires_edit_permission(client):
    resp = client.put(
        f"/organizations/{ACME}/locations/{LA}",
        json={"name": "LA Downtown", "zip_code": "90012"},
        headers=auth(OWNER),
    )
    assert resp.status_code == 200
    assert resp.json()["name"] == "LA Downtown"
    assert resp.json()["location_group_id"] == CA

    # Regional holds view and respond on West, not edit.
    resp = client.put(f"/organizations/{ACME}/locations/{LA}", json={"city": "LA"}, headers=auth(REGIONAL))
    assert resp.status_code == 403


def test_update_location_rejects_blank_name(client):
    resp = client.put(f"/organizations/{ACME}/locations/{NYC}", json={"name": ""}, headers=auth(OWNER))
    assert resp.status_code == 422
