"""
Plain records used by the access-control core.

Records are immutable snapshots of store rows. The core never follows live
object references: groups point at their parent by id and traversal works
over an id-keyed index (see hierarchy.py).
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import datetime
from types import MappingProxyType
from typing import Any, Mapping, Union

# ---- Permissions -----------------------------------------------------------------------

WILDCARD = "*"
FULL_ACCESS: frozenset[str] = frozenset({WILDCARD})

VIEW = "view"
EDIT = "edit"
RESPOND = "respond"
MANAGE = "manage"

# Default permission catalogue.
PERMISSIONS: tuple[str, ...] = (VIEW, EDIT, RESPOND, MANAGE)


def normalize_permissions(raw: Any) -> frozenset[str]:
    """
    Turn a stored permission payload into a permission set.

    Accepted shapes:
        None / "" / [] / {}             -> full access
        ["view", "respond"]             -> those names
        {"canEdit": true, "x": false}   -> names mapped to a truthy value
        '["view"]' or '{"canEdit": 1}'  -> JSON text of either shape above
    """

    if raw is None:
        return FULL_ACCESS
    if isinstance(raw, str):
        text = raw.strip()
        if not text:
            return FULL_ACCESS
        return normalize_permissions(json.loads(text))
    if isinstance(raw, Mapping):
        names = frozenset(str(k).strip() for k, v in raw.items() if v)
        return names or FULL_ACCESS
    names = frozenset(str(p).strip() for p in raw if str(p).strip())
    return names or FULL_ACCESS


def permits(permissions: frozenset[str], permission: str) -> bool:
    # An empty set never comes out of normalize_permissions; treat it as unrestricted anyway.
    return not permissions or WILDCARD in permissions or permission in permissions


def merge_permissions(*sets: frozenset[str]) -> frozenset[str]:
    """Union of permission sets; the wildcard absorbs everything else."""
    merged: set[str] = set()
    for s in sets:
        merged.update(s)
    if WILDCARD in merged:
        return FULL_ACCESS
    return frozenset(merged)


# ---- Hierarchy records -----------------------------------------------------------------


@dataclass(frozen=True)
class OrganizationRecord:
    id: int
    name: str
    hierarchy_levels: tuple[str, ...] = ()
    subscription_plan: str = "Free"
    subscription_expires_at: datetime | None = None
    max_locations: int = 1
    max_users: int = 1
    is_active: bool = True


@dataclass(frozen=True)
class GroupRecord:
    id: int
    organization_id: int
    name: str
    parent_group_id: int | None = None
    group_type: str | None = None
    level: int = 0
    description: str | None = None
    is_active: bool = True


@dataclass(frozen=True)
class LocationRecord:
    id: int
    organization_id: int
    name: str
    location_group_id: int | None = None
    manager_user_id: int | None = None
    city: str | None = None
    state: str | None = None
    is_active: bool = True


@dataclass(frozen=True)
class UserRecord:
    id: int
    organization_id: int | None
    role: str | None = None
    is_active: bool = True


@dataclass(frozen=True)
class Subtree:
    """A group plus every group and location beneath it."""

    root_id: int
    groups: tuple[GroupRecord, ...]
    locations: tuple[LocationRecord, ...]

    @property
    def group_ids(self) -> frozenset[int]:
        return frozenset(g.id for g in self.groups)

    @property
    def location_ids(self) -> frozenset[int]:
        return frozenset(loc.id for loc in self.locations)


# ---- Grants ----------------------------------------------------------------------------


@dataclass(frozen=True)
class AllLocations:
    """Every current and future location of the organization."""


@dataclass(frozen=True)
class SingleLocation:
    location_id: int


@dataclass(frozen=True)
class GroupSubtree:
    group_id: int


GrantScope = Union[AllLocations, SingleLocation, GroupSubtree]


@dataclass(frozen=True)
class NewGrant:
    """A grant that has not been stored yet."""

    user_id: int
    organization_id: int
    scope: GrantScope
    permissions: frozenset[str] = FULL_ACCESS


@dataclass(frozen=True)
class Grant:
    """A stored UserLocationAccess row."""

    id: int
    user_id: int
    organization_id: int
    scope: GrantScope
    permissions: frozenset[str] = FULL_ACCESS
    # Set when the stored row cannot be read; such a grant contributes nothing.
    invalid_reason: str | None = None


# ---- Resolution result -----------------------------------------------------------------


@dataclass(frozen=True)
class DanglingGrant:
    """A grant whose target no longer exists; it contributed nothing."""

    grant_id: int
    reason: str


@dataclass(frozen=True)
class ResolvedAccess:
    """Effective access of one user within one organization."""

    user_id: int
    organization_id: int
    locations: Mapping[int, frozenset[str]] = field(default_factory=dict)
    dangling: tuple[DanglingGrant, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "locations", MappingProxyType(dict(self.locations)))

    @property
    def location_ids(self) -> frozenset[int]:
        return frozenset(self.locations.keys())

    def permissions_for(self, location_id: int) -> frozenset[str] | None:
        return self.locations.get(location_id)

    def allows(self, location_id: int, permission: str) -> bool:
        perms = self.locations.get(location_id)
        if perms is None:
            return False
        return permits(perms, permission)
