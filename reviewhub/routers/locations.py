from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import select
from sqlalchemy.orm import Session

from reviewhub.access import AccessServices
from reviewhub.access.types import EDIT, VIEW
from reviewhub.db.session import get_db
from reviewhub.models.hierarchy import Location
from reviewhub.schemas.hierarchy import LocationCreate, LocationGroupUpdate, LocationOut, LocationUpdate
from reviewhub.security.context import CallerContext
from reviewhub.security.dependencies import (
    get_access_services,
    require_admin,
    require_location_permission,
    require_member,
)

router = APIRouter(prefix="/organizations/{organization_id}/locations", tags=["locations"])


@router.get("", response_model=list[LocationOut])
def list_locations(
    organization_id: int,
    caller: CallerContext = Depends(require_member),
    services: AccessServices = Depends(get_access_services),
    db: Session = Depends(get_db),
) -> list[Location]:
    # Scoped to the caller's accessible locations by reviewhub/db/filters.py.
    db.info["location_scope"] = services.gate.accessible_location_ids(caller.user_id, organization_id)
    stmt = (
        select(Location)
        .where(Location.organization_id == organization_id, Location.is_active.is_(True))
        .order_by(Location.name)
    )
    return list(db.scalars(stmt).all())


@router.get("/{location_id}", response_model=LocationOut)
def get_location(
    organization_id: int,
    location_id: int,
    caller: CallerContext = Depends(require_location_permission(VIEW)),
    db: Session = Depends(get_db),
) -> Location:
    location = db.get(Location, location_id)
    if location is None or location.organization_id != organization_id:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Location not found")
    return location


@router.post("", response_model=LocationOut, status_code=status.HTTP_201_CREATED)
def create_location(
    organization_id: int,
    body: LocationCreate,
    caller: CallerContext = Depends(require_admin),
    services: AccessServices = Depends(get_access_services),
):
    details = body.model_dump(exclude={"name", "location_group_id"}, exclude_none=True)
    return services.hierarchy.create_location(
        organization_id,
        body.name,
        location_group_id=body.location_group_id,
        details=details,
    )


@router.put("/{location_id}", response_model=LocationOut)
def update_location(
    organization_id: int,
    location_id: int,
    body: LocationUpdate,
    caller: CallerContext = Depends(require_location_permission(EDIT)),
    services: AccessServices = Depends(get_access_services),
):
    _ensure_in_organization(services, organization_id, location_id)
    return services.hierarchy.update_location(location_id, body.model_dump(exclude_unset=True))


@router.put("/{location_id}/group", response_model=LocationOut)
def move_location(
    organization_id: int,
    location_id: int,
    body: LocationGroupUpdate,
    caller: CallerContext = Depends(require_admin),
    services: AccessServices = Depends(get_access_services),
):
    _ensure_in_organization(services, organization_id, location_id)
    return services.hierarchy.move_location(location_id, body.location_group_id)


@router.delete("/{location_id}", response_model=LocationOut)
def delete_location(
    organization_id: int,
    location_id: int,
    caller: CallerContext = Depends(require_admin),
    services: AccessServices = Depends(get_access_services),
):
    _ensure_in_organization(services, organization_id, location_id)
    return services.hierarchy.deactivate_location(location_id)


def _ensure_in_organization(services: AccessServices, organization_id: int, location_id: int) -> None:
    location = services.repository.load_location(location_id)
    if location.organization_id != organization_id:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Location not found")
