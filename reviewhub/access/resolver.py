"""
Effective location access for a user within an organization.

Algorithm:
1. Load the organization (NotFound propagates) and the user's grants in it.
2. Load one hierarchy snapshot for the organization.
3. Expand every grant to location ids:
     AllLocations      -> every active location of the organization
     SingleLocation(L) -> L, if it is an active location of the organization
     GroupSubtree(G)   -> every active location beneath G (G included)
4. Merge: a location reached by several grants gets the union of their
   permission sets.

A grant whose target vanished contributes nothing and is reported as a
DanglingGrant on the result. It never aborts resolution of other grants.
"""

from __future__ import annotations

import logging

from .errors import NotFound
from .hierarchy import HierarchySnapshot, HierarchyStore
from .repository import AccessRepository
from .types import (
    AllLocations,
    DanglingGrant,
    Grant,
    GroupSubtree,
    ResolvedAccess,
    SingleLocation,
    merge_permissions,
)

logger = logging.getLogger(__name__)


class AccessResolver:
    def __init__(self, repository: AccessRepository, hierarchy: HierarchyStore) -> None:
        self._repository = repository
        self._hierarchy = hierarchy

    def resolve(self, user_id: int, organization_id: int) -> ResolvedAccess:
        organization = self._repository.load_organization(organization_id)
        if not organization.is_active:
            logger.info("Organization %s is inactive; user %s resolves to no locations", organization_id, user_id)
            return ResolvedAccess(user_id=user_id, organization_id=organization_id)

        grants = self._repository.load_grants(user_id, organization_id)
        if not grants:
            return ResolvedAccess(user_id=user_id, organization_id=organization_id)

        snapshot = self._hierarchy.snapshot(organization_id)
        merged: dict[int, frozenset[str]] = {}
        dangling: list[DanglingGrant] = []

        for grant in grants:
            if grant.invalid_reason is not None:
                logger.warning("Skipping grant %s for user %s: %s", grant.id, user_id, grant.invalid_reason)
                dangling.append(DanglingGrant(grant.id, grant.invalid_reason))
                continue
            if grant.organization_id != organization_id:
                dangling.append(DanglingGrant(grant.id, f"grant belongs to organization {grant.organization_id}"))
                continue
            try:
                location_ids = _expand(grant, snapshot)
            except NotFound as exc:
                logger.warning(
                    "Dangling grant %s for user %s in organization %s: %s",
                    grant.id,
                    user_id,
                    organization_id,
                    exc,
                )
                dangling.append(DanglingGrant(grant.id, str(exc)))
                continue

            for location_id in location_ids:
                current = merged.get(location_id)
                merged[location_id] = (
                    grant.permissions if current is None else merge_permissions(current, grant.permissions)
                )

        logger.debug(
            "Resolved user=%s organization=%s locations=%d dangling=%d",
            user_id,
            organization_id,
            len(merged),
            len(dangling),
        )
        return ResolvedAccess(
            user_id=user_id,
            organization_id=organization_id,
            locations=merged,
            dangling=tuple(dangling),
        )


def _expand(grant: Grant, snapshot: HierarchySnapshot) -> frozenset[int]:
    scope = grant.scope
    if isinstance(scope, AllLocations):
        return frozenset(loc.id for loc in snapshot.locations())
    if isinstance(scope, SingleLocation):
        return frozenset({snapshot.location(scope.location_id, include_inactive=False).id})
    if isinstance(scope, GroupSubtree):
        return snapshot.get_subtree(scope.group_id).location_ids
    raise TypeError(f"unsupported grant scope {scope!r}")
