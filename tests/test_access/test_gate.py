"""Tests for AuthorizationGate decisions, including fail-closed behaviour."""
from __future__ import annotations

import pytest

from reviewhub.access import AccessDenied, AllLocations, GroupSubtree, StoreUnavailable, build_access_services


class FailingRepository:
    """Every read fails the way an unreachable database would."""

    def __init__(self, inner):
        self._inner = inner

    def __getattr__(self, name):
        if name.startswith("load_"):
            def fail(*args, **kwargs):
                raise StoreUnavailable("database unreachable")

            return fail
        return getattr(self._inner, name)


def test_allows_granted_permission(services, acme):
    acme.grant(GroupSubtree(acme.west.id), ["view", "respond"])

    assert services.gate.authorize(acme.user.id, acme.org.id, acme.la.id, "respond")
    assert not services.gate.authorize(acme.user.id, acme.org.id, acme.la.id, "manage")
    assert not services.gate.authorize(acme.user.id, acme.org.id, acme.nyc.id, "view")


def test_full_access_allows_any_permission(services, acme):
    acme.grant(AllLocations())
    assert services.gate.authorize(acme.user.id, acme.org.id, acme.nyc.id, "manage")


def test_require_raises_access_denied(services, acme):
    with pytest.raises(AccessDenied) as exc_info:
        services.gate.require(acme.user.id, acme.org.id, acme.la.id, "edit")
    assert exc_info.value.location_id == acme.la.id
    assert exc_info.value.permission == "edit"


def test_unknown_organization_is_denied(services, acme):
    assert not services.gate.authorize(acme.user.id, 9999, acme.la.id, "view")
    assert services.gate.accessible_location_ids(acme.user.id, 9999) == frozenset()


def test_store_failure_fails_closed(acme, caplog):
    acme.grant(AllLocations())
    failing = build_access_services(FailingRepository(acme.repo))

    with caplog.at_level("WARNING", logger="reviewhub.access.gate"):
        allowed = failing.gate.authorize(acme.user.id, acme.org.id, acme.la.id, "view")

    assert allowed is False
    assert failing.gate.accessible_location_ids(acme.user.id, acme.org.id) == frozenset()
    assert "denying" in caplog.text
    with pytest.raises(AccessDenied):
        failing.gate.require(acme.user.id, acme.org.id, acme.la.id, "view")


def test_location_in_another_organization_is_denied(services, acme, repo):
    other = repo.add_organization("Other", max_locations=5)
    foreign = services.hierarchy.create_location(other.id, "Elsewhere")
    acme.grant(AllLocations())

    assert not services.gate.authorize(acme.user.id, acme.org.id, foreign.id, "view")
