"""
Organization -> LocationGroup (self-referencing tree) -> Location.

Key ideas:
- Load one organization's groups and locations in a single read and index
  them by id (HierarchySnapshot). Parent/child links are ids, never live
  object references.
- Traversal and cycle checks are explicit graph walks over that index, so a
  walk always sees one consistent version of the tree.
- Writes go through HierarchyStore, which validates against a snapshot and
  notifies a change listener (the access cache) after the write succeeds.
"""

from __future__ import annotations

from collections import deque
import logging
from typing import Callable, Iterable, Mapping, Sequence

from .errors import CycleError, HierarchyError, NotFound, OrganizationMismatch, QuotaExceeded
from .repository import AccessRepository
from .types import GroupRecord, LocationRecord, Subtree

logger = logging.getLogger(__name__)

ChangeListener = Callable[[int], None]


# ---- Snapshot (pure, in-memory) ------------------------------------------------------


class HierarchySnapshot:
    """Id-keyed view of one organization's hierarchy."""

    def __init__(
        self,
        organization_id: int,
        groups: Iterable[GroupRecord],
        locations: Iterable[LocationRecord] = (),
    ) -> None:
        self.organization_id = organization_id
        self._groups: dict[int, GroupRecord] = {}
        self._locations: dict[int, LocationRecord] = {}
        # None is the organization root: root groups and ungrouped locations.
        self._child_groups: dict[int | None, list[int]] = {}
        self._child_locations: dict[int | None, list[int]] = {}

        for group in groups:
            if group.organization_id != organization_id:
                raise OrganizationMismatch(
                    f"group {group.id} belongs to organization {group.organization_id}, not {organization_id}"
                )
            self._groups[group.id] = group
        for group in self._groups.values():
            parent = group.parent_group_id if group.parent_group_id in self._groups else None
            self._child_groups.setdefault(parent, []).append(group.id)

        for location in locations:
            if location.organization_id != organization_id:
                raise OrganizationMismatch(
                    f"location {location.id} belongs to organization {location.organization_id}, not {organization_id}"
                )
            self._locations[location.id] = location
            parent = location.location_group_id if location.location_group_id in self._groups else None
            self._child_locations.setdefault(parent, []).append(location.id)

    # ---- lookups ----------------------------------------------------------------------

    def group(self, group_id: int, *, include_inactive: bool = True) -> GroupRecord:
        group = self._groups.get(group_id)
        if group is None or (not include_inactive and not group.is_active):
            raise NotFound("LocationGroup", group_id)
        return group

    def location(self, location_id: int, *, include_inactive: bool = True) -> LocationRecord:
        location = self._locations.get(location_id)
        if location is None or (not include_inactive and not location.is_active):
            raise NotFound("Location", location_id)
        return location

    def groups(self, *, include_inactive: bool = False) -> list[GroupRecord]:
        return [g for g in self._groups.values() if include_inactive or g.is_active]

    def locations(self, *, include_inactive: bool = False) -> list[LocationRecord]:
        return [loc for loc in self._locations.values() if include_inactive or loc.is_active]

    # ---- traversal --------------------------------------------------------------------

    def get_children(
        self,
        group_id: int | None,
        *,
        include_inactive: bool = False,
    ) -> tuple[list[GroupRecord], list[LocationRecord]]:
        """Direct child groups and locations of `group_id` (None = organization root)."""
        if group_id is not None:
            self.group(group_id, include_inactive=include_inactive)
        groups = [self._groups[i] for i in self._child_groups.get(group_id, [])]
        locations = [self._locations[i] for i in self._child_locations.get(group_id, [])]
        if not include_inactive:
            groups = [g for g in groups if g.is_active]
            locations = [loc for loc in locations if loc.is_active]
        return groups, locations

    def get_subtree(self, group_id: int, *, include_inactive: bool = False) -> Subtree:
        """
        Every group and location reachable from `group_id`, inclusive.

        Inactive groups are skipped together with everything beneath them
        unless `include_inactive` is set.
        """

        root = self.group(group_id, include_inactive=include_inactive)
        groups: list[GroupRecord] = []
        locations: list[LocationRecord] = []
        seen: set[int] = set()
        queue: deque[int] = deque([root.id])
        while queue:
            current = queue.popleft()
            if current in seen:
                # Only reachable if stored parent pointers already loop.
                raise CycleError(f"cycle detected in hierarchy at group {current}")
            seen.add(current)
            groups.append(self._groups[current])
            child_groups, child_locations = self.get_children(current, include_inactive=include_inactive)
            locations.extend(child_locations)
            queue.extend(g.id for g in child_groups)
        return Subtree(root_id=root.id, groups=tuple(groups), locations=tuple(locations))

    def ancestors(self, group_id: int) -> list[int]:
        """Parent chain of `group_id`, nearest first, up to the organization root."""
        chain: list[int] = []
        seen = {group_id}
        current = self.group(group_id).parent_group_id
        while current is not None:
            if current in seen:
                raise CycleError(f"cycle detected in hierarchy at group {current}")
            seen.add(current)
            chain.append(current)
            parent = self._groups.get(current)
            current = parent.parent_group_id if parent is not None else None
        return chain

    # ---- integrity --------------------------------------------------------------------

    def validate_reparent(self, group_id: int, new_parent_id: int | None) -> None:
        """
        Raise CycleError if `new_parent_id` is `group_id` itself or one of its
        descendants. Walks the ancestors of the new parent; if `group_id`
        appears the move would close a loop.
        """

        self.group(group_id)
        if new_parent_id is None:
            return
        if new_parent_id == group_id:
            raise CycleError(f"group {group_id} cannot be its own parent")
        self.group(new_parent_id)
        if group_id in self.ancestors(new_parent_id):
            raise CycleError(f"group {new_parent_id} is a descendant of group {group_id}")

    def plan_reparent(self, group_id: int, new_parent_id: int | None) -> dict[int, int]:
        """
        Validate the move and return the new level of every group in the
        moved subtree (inactive descendants included).
        """

        self.validate_reparent(group_id, new_parent_id)
        base = 0 if new_parent_id is None else self.group(new_parent_id).level + 1

        levels: dict[int, int] = {}
        queue: deque[tuple[int, int]] = deque([(group_id, base)])
        while queue:
            current, level = queue.popleft()
            if current in levels:
                raise CycleError(f"cycle detected in hierarchy at group {current}")
            levels[current] = level
            for child_id in self._child_groups.get(current, []):
                queue.append((child_id, level + 1))
        return levels

    def level_violations(self) -> list[int]:
        """Ids of groups whose level is not parent.level + 1 (or 0 at the root)."""
        bad: list[int] = []
        for group in self._groups.values():
            parent = self._groups.get(group.parent_group_id) if group.parent_group_id is not None else None
            expected = 0 if parent is None else parent.level + 1
            if group.level != expected:
                bad.append(group.id)
        return sorted(bad)


# ---- Store (repository-backed) -------------------------------------------------------


class HierarchyStore:
    """Read access to the hierarchy plus integrity-checked writes."""

    def __init__(self, repository: AccessRepository, on_change: ChangeListener | None = None) -> None:
        self._repository = repository
        self._listeners: list[ChangeListener] = [on_change] if on_change else []

    def add_listener(self, listener: ChangeListener) -> None:
        self._listeners.append(listener)

    def _changed(self, organization_id: int) -> None:
        for listener in self._listeners:
            listener(organization_id)

    # ---- reads ------------------------------------------------------------------------

    def snapshot(self, organization_id: int) -> HierarchySnapshot:
        groups, locations = self._repository.load_hierarchy(organization_id)
        return HierarchySnapshot(organization_id, groups, locations)

    def get_subtree(self, group_id: int, *, include_inactive: bool = False) -> Subtree:
        group = self._repository.load_group(group_id)
        return self.snapshot(group.organization_id).get_subtree(group_id, include_inactive=include_inactive)

    def get_children(self, group_id: int) -> tuple[list[GroupRecord], list[LocationRecord]]:
        group = self._repository.load_group(group_id)
        return self.snapshot(group.organization_id).get_children(group_id)

    def validate_reparent(self, group_id: int, new_parent_id: int | None) -> None:
        group = self._repository.load_group(group_id)
        self.snapshot(group.organization_id).validate_reparent(group_id, new_parent_id)

    def list_groups(self, organization_id: int) -> list[GroupRecord]:
        self._repository.load_organization(organization_id)
        groups = [g for g in self._repository.load_groups(organization_id) if g.is_active]
        return sorted(groups, key=lambda g: (g.level, g.name))

    def locations_in_group(self, group_id: int, *, recursive: bool = True) -> list[LocationRecord]:
        if recursive:
            return list(self.get_subtree(group_id).locations)
        return self.get_children(group_id)[1]

    # ---- group writes -----------------------------------------------------------------

    def create_group(
        self,
        organization_id: int,
        name: str,
        *,
        group_type: str | None = None,
        parent_group_id: int | None = None,
        description: str | None = None,
    ) -> GroupRecord:
        organization = self._repository.load_organization(organization_id)
        if not name.strip():
            raise HierarchyError("group name must not be empty")
        if group_type and organization.hierarchy_levels and group_type not in organization.hierarchy_levels:
            raise HierarchyError(
                f"group type {group_type!r} is not one of {list(organization.hierarchy_levels)}"
            )

        if parent_group_id is not None:
            parent = self._repository.load_group(parent_group_id)
            if parent.organization_id != organization_id:
                raise OrganizationMismatch(
                    f"parent group {parent_group_id} belongs to organization {parent.organization_id}"
                )

        def planner(groups: Sequence[GroupRecord]) -> int:
            if parent_group_id is None:
                return 0
            parent = HierarchySnapshot(organization_id, groups).group(parent_group_id)
            if not parent.is_active:
                raise HierarchyError(f"parent group {parent_group_id} is inactive")
            return parent.level + 1

        group = self._repository.create_group(
            organization_id,
            name.strip(),
            parent_group_id=parent_group_id,
            planner=planner,
            group_type=group_type,
            description=description,
        )
        logger.info(
            "Created location group %s (id=%s level=%s) for organization %s",
            group.name,
            group.id,
            group.level,
            organization_id,
        )
        self._changed(organization_id)
        return group

    def reparent_group(self, group_id: int, new_parent_id: int | None) -> GroupRecord:
        group = self._repository.load_group(group_id)
        organization_id = group.organization_id

        def planner(groups: Sequence[GroupRecord]) -> Mapping[int, int]:
            snapshot = HierarchySnapshot(organization_id, groups)
            if new_parent_id is not None and not snapshot.group(new_parent_id).is_active:
                raise HierarchyError(f"parent group {new_parent_id} is inactive")
            return snapshot.plan_reparent(group_id, new_parent_id)

        if new_parent_id is not None:
            parent = self._repository.load_group(new_parent_id)
            if parent.organization_id != organization_id:
                raise OrganizationMismatch(
                    f"parent group {new_parent_id} belongs to organization {parent.organization_id}"
                )

        try:
            moved = self._repository.reparent_group(group_id, new_parent_id, planner)
        except CycleError:
            logger.info("Rejected re-parent of group %s under %s: cycle", group_id, new_parent_id)
            raise
        logger.info("Re-parented group %s under %s (level=%s)", group_id, new_parent_id, moved.level)
        self._changed(organization_id)
        return moved

    def delete_group(self, group_id: int) -> GroupRecord:
        group = self._repository.deactivate_group(group_id)
        logger.info("Deactivated location group %s in organization %s", group_id, group.organization_id)
        self._changed(group.organization_id)
        return group

    # ---- location writes --------------------------------------------------------------

    def create_location(
        self,
        organization_id: int,
        name: str,
        *,
        location_group_id: int | None = None,
        details: Mapping[str, object] | None = None,
    ) -> LocationRecord:
        organization = self._repository.load_organization(organization_id)
        if not name.strip():
            raise HierarchyError("location name must not be empty")
        if location_group_id is not None:
            target = self._repository.load_group(location_group_id)
            if target.organization_id != organization_id:
                raise OrganizationMismatch(f"group {location_group_id} belongs to organization {target.organization_id}")

        def check(groups: Sequence[GroupRecord], locations: Sequence[LocationRecord]) -> None:
            if sum(1 for loc in locations if loc.is_active) >= organization.max_locations:
                raise QuotaExceeded(
                    f"organization {organization_id} allows {organization.max_locations} active locations"
                )
            if location_group_id is not None:
                group = HierarchySnapshot(organization_id, groups).group(location_group_id)
                if not group.is_active:
                    raise HierarchyError(f"group {location_group_id} is inactive")

        location = self._repository.create_location(
            organization_id,
            name.strip(),
            location_group_id=location_group_id,
            details=details,
            check=check,
        )
        logger.info("Created location %s (id=%s) for organization %s", location.name, location.id, organization_id)
        self._changed(organization_id)
        return location

    def update_location(self, location_id: int, changes: Mapping[str, object]) -> LocationRecord:
        """Edit a location's descriptive fields; grouping goes through move_location."""
        if "location_group_id" in changes:
            raise HierarchyError("use move_location to change a location's group")
        changes = dict(changes)
        if "name" in changes:
            name = str(changes["name"] or "").strip()
            if not name:
                raise HierarchyError("location name must not be empty")
            changes["name"] = name
        updated = self._repository.update_location(location_id, changes)
        logger.info("Updated location %s fields %s", location_id, sorted(changes))
        self._changed(updated.organization_id)
        return updated

    def move_location(self, location_id: int, location_group_id: int | None) -> LocationRecord:
        location = self._repository.load_location(location_id)
        if location_group_id is not None:
            self._check_group_target(location.organization_id, location_group_id)
        moved = self._repository.update_location_group(location_id, location_group_id)
        logger.info("Moved location %s to group %s", location_id, location_group_id)
        self._changed(moved.organization_id)
        return moved

    def deactivate_location(self, location_id: int) -> LocationRecord:
        location = self._repository.deactivate_location(location_id)
        logger.info("Deactivated location %s in organization %s", location_id, location.organization_id)
        self._changed(location.organization_id)
        return location

    def _check_group_target(self, organization_id: int, group_id: int) -> None:
        group = self._repository.load_group(group_id)
        if group.organization_id != organization_id:
            raise OrganizationMismatch(f"group {group_id} belongs to organization {group.organization_id}")
        if not group.is_active:
            raise HierarchyError(f"group {group_id} is inactive")
