"""Tests for AccessCache: hits, invalidation on writes and the stale-publish guard."""
from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
import threading

from reviewhub.access import AccessCache, AllLocations, GroupSubtree, SingleLocation


class CountingResolver:
    def __init__(self, inner):
        self.inner = inner
        self.calls = 0

    def resolve(self, user_id, organization_id):
        self.calls += 1
        return self.inner.resolve(user_id, organization_id)


class FakeClock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


def test_second_resolve_is_a_hit(services, acme):
    acme.grant(AllLocations())
    counting = CountingResolver(services.resolver)
    cache = AccessCache(counting)

    first = cache.resolve(acme.user.id, acme.org.id)
    second = cache.resolve(acme.user.id, acme.org.id)

    assert first is second
    assert counting.calls == 1
    assert cache.stats()["hits"] == 1


def test_grant_write_invalidates(services, acme):
    services.grants.assign_user_to_locations(acme.user.id, acme.org.id, [acme.nyc.id])
    assert services.cache.resolve(acme.user.id, acme.org.id).location_ids == {acme.nyc.id}

    services.grants.assign_user_to_group(acme.user.id, acme.org.id, acme.ca.id)

    assert services.cache.resolve(acme.user.id, acme.org.id).location_ids == {
        acme.nyc.id,
        acme.la.id,
        acme.sf.id,
    }


def test_regrouping_invalidates_every_user_of_the_organization(services, acme):
    other = acme.repo.add_user(acme.org.id)
    services.grants.assign_user_to_group(acme.user.id, acme.org.id, acme.west.id)
    services.grants.assign_user_to_group(other.id, acme.org.id, acme.west.id)
    for user_id in (acme.user.id, other.id):
        assert acme.nyc.id not in services.cache.resolve(user_id, acme.org.id).location_ids

    services.hierarchy.move_location(acme.nyc.id, acme.ca.id)

    for user_id in (acme.user.id, other.id):
        assert acme.nyc.id in services.cache.resolve(user_id, acme.org.id).location_ids


def test_revoking_a_grant_is_visible_immediately(services, acme):
    grant = services.grants.create_grant(acme.user.id, acme.org.id, SingleLocation(acme.la.id), ["view"])
    assert services.gate.authorize(acme.user.id, acme.org.id, acme.la.id, "view")

    services.grants.delete_grant(grant.id)

    assert not services.gate.authorize(acme.user.id, acme.org.id, acme.la.id, "view")


def test_invalidation_is_scoped_to_the_organization(services, acme, repo):
    other_org = repo.add_organization("Other", max_locations=5)
    other_user = repo.add_user(other_org.id)
    services.hierarchy.create_location(other_org.id, "Shop")
    services.grants.assign_user_to_all_locations(other_user.id, other_org.id)
    acme.grant(AllLocations())

    services.cache.resolve(acme.user.id, acme.org.id)
    services.cache.resolve(other_user.id, other_org.id)
    services.cache.invalidate(acme.org.id)

    assert services.cache.stats()["entries"] == 1


def test_invalidate_user_drops_only_that_user(services, acme):
    acme.grant(AllLocations())
    acme.grant(AllLocations(), user=acme.admin)
    services.cache.resolve(acme.user.id, acme.org.id)
    services.cache.resolve(acme.admin.id, acme.org.id)

    services.cache.invalidate_user(acme.user.id, acme.org.id)

    assert services.cache.stats()["entries"] == 1


def test_ttl_fallback_expires_entries(services, acme):
    acme.grant(AllLocations())
    clock = FakeClock()
    counting = CountingResolver(services.resolver)
    cache = AccessCache(counting, ttl_seconds=30, clock=clock)

    cache.resolve(acme.user.id, acme.org.id)
    clock.now = 29.0
    cache.resolve(acme.user.id, acme.org.id)
    assert counting.calls == 1

    clock.now = 30.0
    cache.resolve(acme.user.id, acme.org.id)
    assert counting.calls == 2


def test_resolution_started_before_invalidation_is_not_published(services, acme):
    acme.grant(GroupSubtree(acme.west.id))
    started = threading.Event()
    release = threading.Event()

    class SlowResolver:
        def resolve(self, user_id, organization_id):
            value = services.resolver.resolve(user_id, organization_id)
            started.set()
            release.wait(timeout=5)
            return value

    cache = AccessCache(SlowResolver())
    with ThreadPoolExecutor(max_workers=1) as pool:
        pending = pool.submit(cache.resolve, acme.user.id, acme.org.id)
        assert started.wait(timeout=5)
        # A write lands while the slow resolve is holding pre-write state.
        acme.repo.update_location_group(acme.nyc.id, acme.west.id)
        cache.invalidate(acme.org.id)
        release.set()
        stale = pending.result(timeout=5)

    assert acme.nyc.id not in stale.location_ids
    assert cache.stats()["entries"] == 0

    fresh = cache.resolve(acme.user.id, acme.org.id)
    assert acme.nyc.id in fresh.location_ids


def test_concurrent_readers_agree(services, acme):
    acme.grant(GroupSubtree(acme.west.id), ["view"])
    acme.grant(SingleLocation(acme.nyc.id), ["respond"])
    expected = dict(services.resolver.resolve(acme.user.id, acme.org.id).locations)

    with ThreadPoolExecutor(max_workers=8) as pool:
        results = list(pool.map(lambda _: services.cache.resolve(acme.user.id, acme.org.id), range(64)))

    assert all(dict(r.locations) == expected for r in results)
