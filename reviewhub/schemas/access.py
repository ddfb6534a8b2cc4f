from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field

from reviewhub.access import Grant, GroupSubtree, ResolvedAccess, SingleLocation


class GrantOut(BaseModel):
    id: int
    user_id: int
    organization_id: int
    kind: Literal["all_locations", "location", "group"]
    location_id: int | None = None
    location_group_id: int | None = None
    permissions: list[str]

    @classmethod
    def from_grant(cls, grant: Grant) -> GrantOut:
        scope = grant.scope
        out = cls(
            id=grant.id,
            user_id=grant.user_id,
            organization_id=grant.organization_id,
            kind="all_locations",
            permissions=sorted(grant.permissions),
        )
        if isinstance(scope, SingleLocation):
            out.kind = "location"
            out.location_id = scope.location_id
        elif isinstance(scope, GroupSubtree):
            out.kind = "group"
            out.location_group_id = scope.group_id
        return out


class LocationAccessOut(BaseModel):
    location_id: int
    permissions: list[str]


class DanglingGrantOut(BaseModel):
    grant_id: int
    reason: str


class ResolvedAccessOut(BaseModel):
    user_id: int
    organization_id: int
    locations: list[LocationAccessOut]
    dangling: list[DanglingGrantOut] = Field(default_factory=list)

    @classmethod
    def from_resolved(cls, access: ResolvedAccess) -> ResolvedAccessOut:
        return cls(
            user_id=access.user_id,
            organization_id=access.organization_id,
            locations=[
                LocationAccessOut(location_id=location_id, permissions=sorted(perms))
                for location_id, perms in sorted(access.locations.items())
            ],
            dangling=[DanglingGrantOut(grant_id=d.grant_id, reason=d.reason) for d in access.dangling],
        )


class GrantPermissionsIn(BaseModel):
    # Omitted or empty means full access.
    permissions: list[str] | None = None


class AssignLocationsIn(GrantPermissionsIn):
    location_ids: list[int]
