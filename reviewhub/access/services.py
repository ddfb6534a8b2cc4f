from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

from .cache import AccessCache
from .gate import AuthorizationGate
from .grants import GrantStore
from .hierarchy import HierarchyStore
from .repository import AccessRepository
from .resolver import AccessResolver


@dataclass(frozen=True)
class AccessServices:
    """The access-control components, wired so every store write invalidates the cache."""

    repository: AccessRepository
    hierarchy: HierarchyStore
    grants: GrantStore
    resolver: AccessResolver
    cache: AccessCache
    gate: AuthorizationGate


def build_access_services(
    repository: AccessRepository,
    *,
    known_permissions: Iterable[str] | None = None,
    cache_ttl_seconds: float | None = None,
) -> AccessServices:
    hierarchy = HierarchyStore(repository)
    grants = GrantStore(repository, known_permissions=known_permissions)
    resolver = AccessResolver(repository, hierarchy)
    cache = AccessCache(resolver, ttl_seconds=cache_ttl_seconds)

    hierarchy.add_listener(cache.invalidate)
    grants.add_listener(cache.invalidate)

    return AccessServices(
        repository=repository,
        hierarchy=hierarchy,
        grants=grants,
        resolver=resolver,
        cache=cache,
        gate=AuthorizationGate(cache),
    )
