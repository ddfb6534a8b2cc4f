"""
SQLAlchemy implementation of reviewhub.access.repository.AccessRepository.

Each method opens its own session from the factory and runs in one
transaction. ORM rows are converted to the core's immutable records before
the session closes, so nothing lazy-loads later.
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime
import logging
from typing import Mapping, Sequence

from sqlalchemy import delete, or_, select
from sqlalchemy.exc import InterfaceError, OperationalError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError
from sqlalchemy.orm import Session, sessionmaker

from reviewhub.access.errors import NotFound, StoreUnavailable
from reviewhub.access.repository import GroupPlanner, LocationCheck, ReparentPlanner
from reviewhub.access.types import (
    FULL_ACCESS,
    AllLocations,
    Grant,
    GrantScope,
    GroupRecord,
    GroupSubtree,
    LocationRecord,
    NewGrant,
    OrganizationRecord,
    SingleLocation,
    UserRecord,
    normalize_permissions,
)
from reviewhub.models.access import User, UserLocationAccess
from reviewhub.models.hierarchy import Location, LocationGroup, Organization

logger = logging.getLogger(__name__)

_LOCATION_DETAIL_FIELDS = frozenset(
    {
        "description",
        "address",
        "city",
        "state",
        "zip_code",
        "country",
        "latitude",
        "longitude",
        "phone_number",
        "email",
        "website",
        "manager_user_id",
    }
)


class SqlAlchemyAccessRepository:
    def __init__(self, session_factory: sessionmaker[Session]) -> None:
        self._session_factory = session_factory

    @contextmanager
    def _session(self) -> Iterator[Session]:
        try:
            with self._session_factory() as db, db.begin():
                yield db
        except (OperationalError, InterfaceError, PoolTimeoutError) as exc:
            logger.warning("Store unavailable: %s", type(exc).__name__)
            raise StoreUnavailable(str(exc)) from exc

    # ---- reads -------------------------------------------------------------------------

    def load_organization(self, organization_id: int) -> OrganizationRecord:
        with self._session() as db:
            return _organization_record(_get(db, Organization, organization_id))

    def load_user(self, user_id: int) -> UserRecord:
        with self._session() as db:
            user = _get(db, User, user_id)
            return UserRecord(id=user.id, organization_id=user.organization_id, role=user.role, is_active=user.is_active)

    def load_group(self, group_id: int) -> GroupRecord:
        with self._session() as db:
            return _group_record(_get(db, LocationGroup, group_id))

    def load_groups(self, organization_id: int) -> list[GroupRecord]:
        with self._session() as db:
            return _load_groups(db, organization_id)

    def load_location(self, location_id: int) -> LocationRecord:
        with self._session() as db:
            return _location_record(_get(db, Location, location_id))

    def load_locations(self, organization_id: int) -> list[LocationRecord]:
        with self._session() as db:
            return _load_locations(db, organization_id)

    def load_hierarchy(self, organization_id: int) -> tuple[list[GroupRecord], list[LocationRecord]]:
        with self._session() as db:
            return _load_groups(db, organization_id), _load_locations(db, organization_id)

    def load_grant(self, grant_id: int) -> Grant:
        with self._session() as db:
            return _grant_record(_get(db, UserLocationAccess, grant_id))

    def load_grants(self, user_id: int, organization_id: int) -> list[Grant]:
        with self._session() as db:
            rows = db.scalars(
                select(UserLocationAccess)
                .where(
                    UserLocationAccess.user_id == user_id,
                    UserLocationAccess.organization_id == organization_id,
                )
                .order_by(UserLocationAccess.id)
            ).all()
            return [_grant_record(row) for row in rows]

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
        with self._session() as db:
            _lock_organization(db, organization_id)
            level = planner(_load_groups(db, organization_id))
            group = LocationGroup(
                organization_id=organization_id,
                parent_group_id=parent_group_id,
                name=name,
                group_type=group_type,
                description=description,
                level=level,
                is_active=True,
            )
            db.add(group)
            db.flush()
            return _group_record(group)

    def reparent_group(self, group_id: int, new_parent_id: int | None, planner: ReparentPlanner) -> GroupRecord:
        with self._session() as db:
            group = _get(db, LocationGroup, group_id)
            _lock_organization(db, group.organization_id)
            rows = db.scalars(
                select(LocationGroup).where(LocationGroup.organization_id == group.organization_id)
            ).all()
            levels = planner([_group_record(row) for row in rows])

            by_id = {row.id: row for row in rows}
            now = datetime.utcnow()
            group.parent_group_id = new_parent_id
            group.updated_at = now
            for gid, level in levels.items():
                if by_id[gid].level != level:
                    by_id[gid].level = level
                    by_id[gid].updated_at = now
            db.flush()
            return _group_record(group)

    def deactivate_group(self, group_id: int) -> GroupRecord:
        with self._session() as db:
            group = _get(db, LocationGroup, group_id)
            group.is_active = False
            group.updated_at = datetime.utcnow()
            db.flush()
            return _group_record(group)

    def create_location(
        self,
        organization_id: int,
        name: str,
        *,
        location_group_id: int | None = None,
        details: Mapping[str, object] | None = None,
        check: LocationCheck | None = None,
    ) -> LocationRecord:
        extra = {k: v for k, v in (details or {}).items() if k in _LOCATION_DETAIL_FIELDS}
        with self._session() as db:
            _lock_organization(db, organization_id)
            if check is not None:
                check(_load_groups(db, organization_id), _load_locations(db, organization_id))
            location = Location(
                organization_id=organization_id,
                location_group_id=location_group_id,
                name=name,
                is_active=True,
                **extra,
            )
            db.add(location)
            db.flush()
            return _location_record(location)

    def update_location(self, location_id: int, changes: Mapping[str, object]) -> LocationRecord:
        fields = {k: v for k, v in changes.items() if k == "name" or k in _LOCATION_DETAIL_FIELDS}
        with self._session() as db:
            location = _get(db, Location, location_id)
            for key, value in fields.items():
                setattr(location, key, value)
            location.updated_at = datetime.utcnow()
            db.flush()
            return _location_record(location)

    def update_location_group(self, location_id: int, location_group_id: int | None) -> LocationRecord:
        with self._session() as db:
            location = _get(db, Location, location_id)
            location.location_group_id = location_group_id
            location.updated_at = datetime.utcnow()
            db.flush()
            return _location_record(location)

    def deactivate_location(self, location_id: int) -> LocationRecord:
        with self._session() as db:
            location = _get(db, Location, location_id)
            location.is_active = False
            location.updated_at = datetime.utcnow()
            db.flush()
            return _location_record(location)

    # ---- grant writes ------------------------------------------------------------------

    def create_grant(self, grant: NewGrant) -> Grant:
        with self._session() as db:
            return _add_grant(db, grant)

    def delete_grant(self, grant_id: int) -> Grant:
        with self._session() as db:
            row = _get(db, UserLocationAccess, grant_id)
            grant = _grant_record(row)
            db.delete(row)
            return grant

    def replace_grants(
        self,
        user_id: int,
        organization_id: int,
        new_grants: Sequence[NewGrant],
        *,
        replace: tuple[type[GrantScope], ...] | None = None,
    ) -> list[Grant]:
        with self._session() as db:
            stmt = delete(UserLocationAccess).where(
                UserLocationAccess.user_id == user_id,
                UserLocationAccess.organization_id == organization_id,
            )
            if replace is not None:
                shapes = []
                if SingleLocation in replace:
                    shapes.append(UserLocationAccess.location_id.is_not(None))
                if GroupSubtree in replace:
                    shapes.append(UserLocationAccess.location_group_id.is_not(None))
                if AllLocations in replace:
                    shapes.append(UserLocationAccess.has_all_locations_access.is_(True))
                if not shapes:
                    return [_add_grant(db, g) for g in new_grants]
                stmt = stmt.where(or_(*shapes))
            db.execute(stmt)
            return [_add_grant(db, g) for g in new_grants]


# ---- row <-> record helpers --------------------------------------------------------------


def _get(db: Session, model, ident: int):
    row = db.get(model, ident)
    if row is None:
        raise NotFound(model.__name__, ident)
    return row


def _lock_organization(db: Session, organization_id: int) -> None:
    # Serializes hierarchy writers for one organization (no-op on SQLite).
    db.execute(select(Organization.id).where(Organization.id == organization_id).with_for_update())


def _load_groups(db: Session, organization_id: int) -> list[GroupRecord]:
    rows = db.scalars(
        select(LocationGroup).where(LocationGroup.organization_id == organization_id).order_by(LocationGroup.id)
    ).all()
    return [_group_record(row) for row in rows]


def _load_locations(db: Session, organization_id: int) -> list[LocationRecord]:
    rows = db.scalars(
        select(Location).where(Location.organization_id == organization_id).order_by(Location.id)
    ).all()
    return [_location_record(row) for row in rows]


def _organization_record(row: Organization) -> OrganizationRecord:
    return OrganizationRecord(
        id=row.id,
        name=row.name,
        hierarchy_levels=tuple(row.hierarchy_levels or ()),
        subscription_plan=row.subscription_plan,
        subscription_expires_at=row.subscription_expires_at,
        max_locations=row.max_locations,
        max_users=row.max_users,
        is_active=row.is_active,
    )


def _group_record(row: LocationGroup) -> GroupRecord:
    return GroupRecord(
        id=row.id,
        organization_id=row.organization_id,
        name=row.name,
        parent_group_id=row.parent_group_id,
        group_type=row.group_type,
        level=row.level,
        description=row.description,
        is_active=row.is_active,
    )


def _location_record(row: Location) -> LocationRecord:
    return LocationRecord(
        id=row.id,
        organization_id=row.organization_id,
        name=row.name,
        location_group_id=row.location_group_id,
        manager_user_id=row.manager_user_id,
        city=row.city,
        state=row.state,
        is_active=row.is_active,
    )


def _grant_record(row: UserLocationAccess) -> Grant:
    scope: GrantScope
    if row.has_all_locations_access:
        scope = AllLocations()
    elif row.location_id is not None:
        scope = SingleLocation(row.location_id)
    elif row.location_group_id is not None:
        scope = GroupSubtree(row.location_group_id)
    else:
        raise ValueError(f"grant {row.id} has no access shape")
    try:
        permissions = normalize_permissions(row.permissions)
    except (TypeError, ValueError) as exc:
        logger.warning("Grant %s has unreadable permissions: %s", row.id, exc)
        return Grant(
            id=row.id,
            user_id=row.user_id,
            organization_id=row.organization_id,
            scope=scope,
            permissions=frozenset(),
            invalid_reason=f"unreadable permissions: {exc}",
        )
    return Grant(
        id=row.id,
        user_id=row.user_id,
        organization_id=row.organization_id,
        scope=scope,
        permissions=permissions,
    )


def _add_grant(db: Session, grant: NewGrant) -> Grant:
    scope = grant.scope
    row = UserLocationAccess(
        user_id=grant.user_id,
        organization_id=grant.organization_id,
        has_all_locations_access=isinstance(scope, AllLocations),
        location_id=scope.location_id if isinstance(scope, SingleLocation) else None,
        location_group_id=scope.group_id if isinstance(scope, GroupSubtree) else None,
        permissions=None if grant.permissions == FULL_ACCESS else sorted(grant.permissions),
    )
    db.add(row)
    db.flush()
    return _grant_record(row)
