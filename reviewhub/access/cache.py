"""
Invalidation-aware cache of resolved access, keyed by (user, organization).

Each organization has a monotonic version. An entry remembers the version it
was computed under and is only served while that version is current. A
resolve reads the version before computing and publishes only if the version
is unchanged afterwards. So once invalidate(org) returns, no resolve for that
organization can serve or store a value computed from pre-invalidation state.

The lock guards the dictionaries only; it is never held while the resolver
talks to the store.
"""

from __future__ import annotations

from dataclasses import dataclass
import logging
import threading
import time
from typing import Any, Callable

from .resolver import AccessResolver
from .types import ResolvedAccess

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class _Entry:
    org_version: int
    user_version: int
    value: ResolvedAccess
    stored_at: float


class AccessCache:
    """
    Cache in front of AccessResolver.

    `ttl_seconds` is an optional fallback bound on entry age for deployments
    where invalidation cannot be confirmed; by default entries live until
    invalidated.
    """

    def __init__(
        self,
        resolver: AccessResolver,
        ttl_seconds: float | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._resolver = resolver
        self._ttl = ttl_seconds
        self._clock = clock
        self._lock = threading.Lock()
        self._entries: dict[tuple[int, int], _Entry] = {}
        self._org_versions: dict[int, int] = {}
        self._user_versions: dict[tuple[int, int], int] = {}
        self._hits = 0
        self._misses = 0

    def resolve(self, user_id: int, organization_id: int) -> ResolvedAccess:
        key = (user_id, organization_id)
        with self._lock:
            org_version = self._org_versions.get(organization_id, 0)
            user_version = self._user_versions.get(key, 0)
            entry = self._entries.get(key)
            if entry is not None and self._is_fresh(entry, org_version, user_version):
                self._hits += 1
                return entry.value
            self._misses += 1

        value = self._resolver.resolve(user_id, organization_id)

        with self._lock:
            if (
                self._org_versions.get(organization_id, 0) == org_version
                and self._user_versions.get(key, 0) == user_version
            ):
                self._entries[key] = _Entry(org_version, user_version, value, self._clock())
            else:
                logger.debug("Discarded stale resolution user=%s organization=%s", user_id, organization_id)
        return value

    def invalidate(self, organization_id: int) -> None:
        """Drop every cached resolution for the organization."""
        with self._lock:
            self._org_versions[organization_id] = self._org_versions.get(organization_id, 0) + 1
            stale = [key for key in self._entries if key[1] == organization_id]
            for key in stale:
                del self._entries[key]
        logger.debug("Invalidated access cache organization=%s entries=%d", organization_id, len(stale))

    def invalidate_user(self, user_id: int, organization_id: int) -> None:
        key = (user_id, organization_id)
        with self._lock:
            self._user_versions[key] = self._user_versions.get(key, 0) + 1
            self._entries.pop(key, None)

    def stats(self) -> dict[str, Any]:
        with self._lock:
            return {
                "entries": len(self._entries),
                "hits": self._hits,
                "misses": self._misses,
                "organizations": len({key[1] for key in self._entries}),
            }

    def _is_fresh(self, entry: _Entry, org_version: int, user_version: int) -> bool:
        if entry.org_version != org_version or entry.user_version != user_version:
            return False
        if self._ttl is not None and self._clock() - entry.stored_at >= self._ttl:
            return False
        return True
