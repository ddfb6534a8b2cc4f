"""
Persistence collaborator used by the access-control core.

The core depends only on these signatures. Two implementations ship with the
project: `reviewhub.access.memory.InMemoryAccessRepository` and
`reviewhub.db.repository.SqlAlchemyAccessRepository`.

Contract notes:
- `load_*` of a single record raises NotFound when the id is unknown.
- `load_hierarchy` returns groups and locations from one consistent read.
- Write methods are atomic. `create_group`, `reparent_group` and
  `create_location` must run their planner or check against records read
  inside the same transaction that applies the result, with other hierarchy
  writers of the organization excluded for its duration.
- I/O failures and timeouts surface as StoreUnavailable.
"""

from __future__ import annotations

from typing import Callable, Mapping, Protocol, Sequence

from .types import (
    Grant,
    GrantScope,
    GroupRecord,
    LocationRecord,
    NewGrant,
    OrganizationRecord,
    UserRecord,
)

# Planners and checks receive records read inside the write transaction.

# Every group of the organization -> {group_id: new level} for the moved subtree.
ReparentPlanner = Callable[[Sequence[GroupRecord]], Mapping[int, int]]

# Every group of the organization -> level of the group being inserted.
GroupPlanner = Callable[[Sequence[GroupRecord]], int]

# Groups and locations of the organization; raises to abort the insert.
LocationCheck = Callable[[Sequence[GroupRecord], Sequence[LocationRecord]], None]


class AccessRepository(Protocol):
    # ---- reads -------------------------------------------------------------------------

    def load_organization(self, organization_id: int) -> OrganizationRecord: ...

    def load_user(self, user_id: int) -> UserRecord: ...

    def load_group(self, group_id: int) -> GroupRecord: ...

    def load_groups(self, organization_id: int) -> list[GroupRecord]: ...

    def load_location(self, location_id: int) -> LocationRecord: ...

    def load_locations(self, organization_id: int) -> list[LocationRecord]: ...

    def load_hierarchy(self, organization_id: int) -> tuple[list[GroupRecord], list[LocationRecord]]: ...

    def load_grant(self, grant_id: int) -> Grant: ...

    def load_grants(self, user_id: int, organization_id: int) -> list[Grant]: ...

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
    ) -> GroupRecord: ...

    def reparent_group(
        self,
        group_id: int,
        new_parent_id: int | None,
        planner: ReparentPlanner,
    ) -> GroupRecord: ...

    def deactivate_group(self, group_id: int) -> GroupRecord: ...

    def create_location(
        self,
        organization_id: int,
        name: str,
        *,
        location_group_id: int | None = None,
        details: Mapping[str, object] | None = None,
        check: LocationCheck | None = None,
    ) -> LocationRecord: ...

    def update_location(self, location_id: int, changes: Mapping[str, object]) -> LocationRecord: ...

    def update_location_group(self, location_id: int, location_group_id: int | None) -> LocationRecord: ...

    def deactivate_location(self, location_id: int) -> LocationRecord: ...

    # ---- grant writes ------------------------------------------------------------------

    def create_grant(self, grant: NewGrant) -> Grant: ...

    def delete_grant(self, grant_id: int) -> Grant: ...

    def replace_grants(
        self,
        user_id: int,
        organization_id: int,
        new_grants: Sequence[NewGrant],
        *,
        replace: tuple[type[GrantScope], ...] | None = None,
    ) -> list[Grant]:
        """
        Delete the user's grants in the organization whose scope is one of
        `replace` (all grants when None), then store `new_grants`. Atomic.
        """
        ...
