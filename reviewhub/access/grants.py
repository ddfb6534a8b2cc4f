from __future__ import annotations

import logging
from typing import Any, Callable, Iterable

from .errors import InvalidGrant, NotFound, OrganizationMismatch
from .repository import AccessRepository
from .types import (
    FULL_ACCESS,
    WILDCARD,
    AllLocations,
    Grant,
    GrantScope,
    GroupSubtree,
    NewGrant,
    SingleLocation,
    normalize_permissions,
)

logger = logging.getLogger(__name__)

ChangeListener = Callable[[int], None]


class GrantStore:
    """
    UserLocationAccess records for a user within an organization.

    Targets are checked when a grant is written (existing, active, same
    organization). Resolution tolerates targets that disappear later.
    """

    def __init__(
        self,
        repository: AccessRepository,
        on_change: ChangeListener | None = None,
        known_permissions: Iterable[str] | None = None,
    ) -> None:
        self._repository = repository
        self._listeners: list[ChangeListener] = [on_change] if on_change else []
        self._known_permissions = frozenset(known_permissions) if known_permissions is not None else None

    def add_listener(self, listener: ChangeListener) -> None:
        self._listeners.append(listener)

    def _changed(self, organization_id: int) -> None:
        for listener in self._listeners:
            listener(organization_id)

    # ---- reads ------------------------------------------------------------------------

    def load_grants(self, user_id: int, organization_id: int) -> list[Grant]:
        return self._repository.load_grants(user_id, organization_id)

    # ---- writes -----------------------------------------------------------------------

    def create_grant(
        self,
        user_id: int,
        organization_id: int,
        scope: GrantScope,
        permissions: Any = None,
    ) -> Grant:
        new = self._prepare(user_id, organization_id, scope, permissions)
        grant = self._repository.create_grant(new)
        logger.info(
            "Granted user %s %s in organization %s perms=%s",
            user_id,
            _describe(scope),
            organization_id,
            sorted(grant.permissions),
        )
        self._changed(organization_id)
        return grant

    def delete_grant(self, grant_id: int) -> Grant:
        grant = self._repository.delete_grant(grant_id)
        logger.info("Revoked grant %s (user %s, organization %s)", grant.id, grant.user_id, grant.organization_id)
        self._changed(grant.organization_id)
        return grant

    def assign_user_to_locations(
        self,
        user_id: int,
        organization_id: int,
        location_ids: Iterable[int],
        permissions: Any = None,
    ) -> list[Grant]:
        """Replace the user's single-location grants with one grant per location."""
        new = [
            self._prepare(user_id, organization_id, SingleLocation(location_id), permissions)
            for location_id in dict.fromkeys(location_ids)
        ]
        if not new:
            self._check_user(user_id, organization_id)
        grants = self._repository.replace_grants(user_id, organization_id, new, replace=(SingleLocation,))
        logger.info("Assigned user %s to %d locations in organization %s", user_id, len(grants), organization_id)
        self._changed(organization_id)
        return grants

    def assign_user_to_group(
        self,
        user_id: int,
        organization_id: int,
        group_id: int,
        permissions: Any = None,
    ) -> Grant:
        """Add a group-subtree grant; existing grants are kept."""
        return self.create_grant(user_id, organization_id, GroupSubtree(group_id), permissions)

    def assign_user_to_all_locations(
        self,
        user_id: int,
        organization_id: int,
        permissions: Any = None,
    ) -> Grant:
        """Replace every grant the user holds in the organization with one all-locations grant."""
        new = self._prepare(user_id, organization_id, AllLocations(), permissions)
        (grant,) = self._repository.replace_grants(user_id, organization_id, [new], replace=None)
        logger.info("Assigned user %s to ALL locations in organization %s", user_id, organization_id)
        self._changed(organization_id)
        return grant

    # ---- validation -------------------------------------------------------------------

    def _prepare(self, user_id: int, organization_id: int, scope: GrantScope, permissions: Any) -> NewGrant:
        self._check_user(user_id, organization_id)
        self._check_target(organization_id, scope)
        return NewGrant(
            user_id=user_id,
            organization_id=organization_id,
            scope=scope,
            permissions=self._check_permissions(permissions),
        )

    def _check_user(self, user_id: int, organization_id: int) -> None:
        self._repository.load_organization(organization_id)
        user = self._repository.load_user(user_id)
        if user.organization_id != organization_id:
            raise OrganizationMismatch(f"user {user_id} is not a member of organization {organization_id}")
        if not user.is_active:
            raise InvalidGrant(f"user {user_id} is inactive")

    def _check_target(self, organization_id: int, scope: GrantScope) -> None:
        if isinstance(scope, AllLocations):
            return
        if isinstance(scope, SingleLocation):
            target = self._repository.load_location(scope.location_id)
            kind = "Location"
        elif isinstance(scope, GroupSubtree):
            target = self._repository.load_group(scope.group_id)
            kind = "LocationGroup"
        else:
            raise InvalidGrant(f"unsupported grant scope {scope!r}")
        if target.organization_id != organization_id:
            raise OrganizationMismatch(f"{_describe(scope)} is outside organization {organization_id}")
        if not target.is_active:
            raise NotFound(kind, target.id)

    def _check_permissions(self, permissions: Any) -> frozenset[str]:
        perms = normalize_permissions(permissions)
        if perms == FULL_ACCESS or self._known_permissions is None:
            return perms
        unknown = perms.difference(self._known_permissions | {WILDCARD})
        if unknown:
            raise InvalidGrant(f"unknown permissions: {sorted(unknown)}")
        return perms


def _describe(scope: GrantScope) -> str:
    if isinstance(scope, SingleLocation):
        return f"location {scope.location_id}"
    if isinstance(scope, GroupSubtree):
        return f"group {scope.group_id}"
    return "all locations"
