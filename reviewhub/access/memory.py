"""
In-memory AccessRepository.

Thread-safe (one re-entrant lock around every read and write), so reads see
a consistent state and every planner or check runs atomically with its write.
Useful for tests and for embedding the access core without a database.
"""

from __future__ import annotations

from dataclasses import replace
import itertools
import threading
from typing import Mapping, Sequence

from .errors import NotFound
from .repository import GroupPlanner, LocationCheck, ReparentPlanner
from .types import (
    Grant,
    GrantScope,
    GroupRecord,
    LocationRecord,
    NewGrant,
    OrganizationRecord,
    UserRecord,
)


class InMemoryAccessRepository:
    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._ids = itertools.count(1)
        self.organizations: dict[int, OrganizationRecord] = {}
        self.users: dict[int, UserRecord] = {}
        self.groups: dict[int, GroupRecord] = {}
        self.locations: dict[int, LocationRecord] = {}
        self.grants: dict[int, Grant] = {}

    def _next_id(self) -> int:
        return next(self._ids)

    # ---- seeding (not part of the repository contract) ---------------------------------

    def add_organization(self, name: str, **fields) -> OrganizationRecord:
        with self._lock:
            org = OrganizationRecord(id=self._next_id(), name=name, **fields)
            self.organizations[org.id] = org
            return org

    def add_user(self, organization_id: int | None, role: str | None = None, is_active: bool = True) -> UserRecord:
        with self._lock:
            user = UserRecord(id=self._next_id(), organization_id=organization_id, role=role, is_active=is_active)
            self.users[user.id] = user
            return user

    def add_group(
        self,
        organization_id: int,
        name: str,
        *,
        parent_group_id: int | None = None,
        level: int = 0,
        group_type: str | None = None,
        description: str | None = None,
    ) -> GroupRecord:
        with self._lock:
            group = GroupRecord(
                id=self._next_id(),
                organization_id=organization_id,
                name=name,
                parent_group_id=parent_group_id,
                group_type=group_type,
                level=level,
                description=description,
            )
            self.groups[group.id] = group
            return group

    # ---- reads -------------------------------------------------------------------------

    def load_organization(self, organization_id: int) -> OrganizationRecord:
        with self._lock:
            return _get(self.organizations, organization_id, "Organization")

    def load_user(self, user_id: int) -> UserRecord:
        with self._lock:
            return _get(self.users, user_id, "User")

    def load_group(self, group_id: int) -> GroupRecord:
        with self._lock:
            return _get(self.groups, group_id, "LocationGroup")

    def load_groups(self, organization_id: int) -> list[GroupRecord]:
        with self._lock:
            return [g for g in self.groups.values() if g.organization_id == organization_id]

    def load_location(self, location_id: int) -> LocationRecord:
        with self._lock:
            return _get(self.locations, location_id, "Location")

    def load_locations(self, organization_id: int) -> list[LocationRecord]:
        with self._lock:
            return [loc for loc in self.locations.values() if loc.organization_id == organization_id]

    def load_hierarchy(self, organization_id: int) -> tuple[list[GroupRecord], list[LocationRecord]]:
        with self._lock:
            return self.load_groups(organization_id), self.load_locations(organization_id)

    def load_grant(self, grant_id: int) -> Grant:
        with self._lock:
            return _get(self.grants, grant_id, "UserLocationAccess")

    def load_grants(self, user_id: int, organization_id: int) -> list[Grant]:
        with self._lock:
            return [
                g for g in self.grants.values() if g.user_id == user_id and g.organization_id == organization_id
            ]

    # ---- hierarchy writes --------------------------------------------------------------

    def create_group(
        self,
        organization_id: int,
        name: str,
        *,
        parent_group_id: int | None,
        planner: GroupPlanner,
        group_type: str | None = None,
        description: str | None = None,
    ) -> GroupRecord:
        with self._lock:
            level = planner(self.load_groups(organization_id))
            return self.add_group(
                organization_id,
                name,
                parent_group_id=parent_group_id,
                level=level,
                group_type=group_type,
                description=description,
            )

    def reparent_group(self, group_id: int, new_parent_id: int | None, planner: ReparentPlanner) -> GroupRecord:
        with self._lock:
            group = _get(self.groups, group_id, "LocationGroup")
            levels = planner(self.load_groups(group.organization_id))
            self.groups[group_id] = replace(group, parent_group_id=new_parent_id)
            for gid, level in levels.items():
                self.groups[gid] = replace(self.groups[gid], level=level)
            return self.groups[group_id]

    def deactivate_group(self, group_id: int) -> GroupRecord:
        with self._lock:
            group = replace(_get(self.groups, group_id, "LocationGroup"), is_active=False)
            self.groups[group_id] = group
            return group

    def delete_group(self, group_id: int) -> None:
        """Hard delete, leaving any grant on the group dangling."""
        with self._lock:
            _get(self.groups, group_id, "LocationGroup")
            del self.groups[group_id]

    def create_location(
        self,
        organization_id: int,
        name: str,
        *,
        location_group_id: int | None = None,
        details: Mapping[str, object] | None = None,
        check: LocationCheck | None = None,
    ) -> LocationRecord:
        details = details or {}
        with self._lock:
            if check is not None:
                check(self.load_groups(organization_id), self.load_locations(organization_id))
            location = LocationRecord(
                id=self._next_id(),
                organization_id=organization_id,
                name=name,
                location_group_id=location_group_id,
                manager_user_id=details.get("manager_user_id"),  # type: ignore[arg-type]
                city=details.get("city"),  # type: ignore[arg-type]
                state=details.get("state"),  # type: ignore[arg-type]
            )
            self.locations[location.id] = location
            return location

    def update_location(self, location_id: int, changes: Mapping[str, object]) -> LocationRecord:
        with self._lock:
            location = _get(self.locations, location_id, "Location")
            fields = {k: v for k, v in changes.items() if k in _UPDATABLE_LOCATION_FIELDS}
            location = replace(location, **fields)
            self.locations[location_id] = location
            return location

    def update_location_group(self, location_id: int, location_group_id: int | None) -> LocationRecord:
        with self._lock:
            location = replace(_get(self.locations, location_id, "Location"), location_group_id=location_group_id)
            self.locations[location_id] = location
            return location

    def deactivate_location(self, location_id: int) -> LocationRecord:
        with self._lock:
            location = replace(_get(self.locations, location_id, "Location"), is_active=False)
            self.locations[location_id] = location
            return location

    # ---- grant writes ------------------------------------------------------------------

    def create_grant(self, grant: NewGrant) -> Grant:
        with self._lock:
            stored = Grant(
                id=self._next_id(),
                user_id=grant.user_id,
                organization_id=grant.organization_id,
                scope=grant.scope,
                permissions=grant.permissions,
            )
            self.grants[stored.id] = stored
            return stored

    def delete_grant(self, grant_id: int) -> Grant:
        with self._lock:
            grant = _get(self.grants, grant_id, "UserLocationAccess")
            del self.grants[grant_id]
            return grant

    def replace_grants(
        self,
        user_id: int,
        organization_id: int,
        new_grants: Sequence[NewGrant],
        *,
        replace: tuple[type[GrantScope], ...] | None = None,
    ) -> list[Grant]:
        with self._lock:
            for grant in self.load_grants(user_id, organization_id):
                if replace is None or isinstance(grant.scope, replace):
                    del self.grants[grant.id]
            return [self.create_grant(g) for g in new_grants]


_UPDATABLE_LOCATION_FIELDS = frozenset({"name", "manager_user_id", "city", "state"})


def _get(table: dict, ident: int, kind: str):
    try:
        return table[ident]
    except KeyError:
        raise NotFound(kind, ident) from None

