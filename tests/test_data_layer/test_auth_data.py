"""
Tests for user loading and location scoping on ORM sessions.

Uses db_session fixture: in-memory SQLite, rolled back after each test.
"""
from __future__ import annotations

import pytest
from fastapi import HTTPException
from sqlalchemy import select

from reviewhub.db import filters as _filters  # noqa: F401  (register SQLAlchemy filters)
from reviewhub.models.access import User
from reviewhub.models.hierarchy import Location, Organization
from reviewhub.security.auth import load_user


def _organization(db_session) -> Organization:
    org = Organization(name="Acme", max_locations=5)
    db_session.add(org)
    db_session.flush()
    return org


def test_load_user_returns_user_with_organization(db_session):
    org = _organization(db_session)
    user = User(external_id="auth0|1", email="test@example.com", organization_id=org.id, role="Admin")
    db_session.add(user)
    db_session.commit()

    loaded = load_user(db_session, user.id)

    assert loaded.id == user.id
    assert loaded.organization is not None
    assert loaded.organization.name == "Acme"
    assert loaded.role == "Admin"


def test_load_user_raises_when_not_found(db_session):
    with pytest.raises(HTTPException) as exc_info:
        load_user(db_session, 99999)
    assert exc_info.value.status_code == 401


def test_load_user_raises_when_inactive(db_session):
    org = _organization(db_session)
    user = User(external_id="auth0|2", email="inactive@example.com", organization_id=org.id, is_active=False)
    db_session.add(user)
    db_session.commit()

    with pytest.raises(HTTPException) as exc_info:
        load_user(db_session, user.id)
    assert exc_info.value.status_code == 401


def test_location_scope_narrows_plain_queries(db_session):
    org = _organization(db_session)
    la = Location(organization_id=org.id, name="LA")
    nyc = Location(organization_id=org.id, name="NYC")
    db_session.add_all([la, nyc])
    db_session.commit()

    assert len(db_session.scalars(select(Location)).all()) == 2

    db_session.info["location_scope"] = frozenset({nyc.id})
    names = [loc.name for loc in db_session.scalars(select(Location)).all()]
    assert names == ["NYC"]

    db_session.info["location_scope"] = frozenset()
    assert db_session.scalars(select(Location)).all() == []


def test_load_user_accepts_external_id_and_numeric_token(db_session):
    org = _organization(db_session)
    user = User(external_id="auth0|3", email="ext@example.com", organization_id=org.id, role="Staff")
    db_session.add(user)
    db_session.commit()

    assert load_user(db_session, "auth0|3").id == user.id
    assert load_user(db_session, str(user.id)).id == user.id
    with pytest.raises(HTTPException) as exc_info:
        load_user(db_session, "auth0|missing")
    assert exc_info.value.status_code == 401
