from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status

from reviewhub.access import AccessServices
from reviewhub.schemas.access import AssignLocationsIn, GrantOut, GrantPermissionsIn, ResolvedAccessOut
from reviewhub.security.context import CallerContext
from reviewhub.security.dependencies import get_access_services, require_admin, require_member

router = APIRouter(prefix="/organizations/{organization_id}/access", tags=["access"])


@router.get("/me", response_model=ResolvedAccessOut)
def my_access(
    organization_id: int,
    caller: CallerContext = Depends(require_member),
    services: AccessServices = Depends(get_access_services),
) -> ResolvedAccessOut:
    return ResolvedAccessOut.from_resolved(services.cache.resolve(caller.user_id, organization_id))


@router.get("/users/{user_id}/grants", response_model=list[GrantOut])
def list_grants(
    organization_id: int,
    user_id: int,
    caller: CallerContext = Depends(require_admin),
    services: AccessServices = Depends(get_access_services),
) -> list[GrantOut]:
    return [GrantOut.from_grant(g) for g in services.grants.load_grants(user_id, organization_id)]


@router.post("/users/{user_id}/locations", response_model=list[GrantOut])
def assign_locations(
    organization_id: int,
    user_id: int,
    body: AssignLocationsIn,
    caller: CallerContext = Depends(require_admin),
    services: AccessServices = Depends(get_access_services),
) -> list[GrantOut]:
    grants = services.grants.assign_user_to_locations(user_id, organization_id, body.location_ids, body.permissions)
    return [GrantOut.from_grant(g) for g in grants]


@router.post("/users/{user_id}/group/{group_id}", response_model=GrantOut, status_code=status.HTTP_201_CREATED)
def assign_group(
    organization_id: int,
    user_id: int,
    group_id: int,
    body: GrantPermissionsIn | None = None,
    caller: CallerContext = Depends(require_admin),
    services: AccessServices = Depends(get_access_services),
) -> GrantOut:
    grant = services.grants.assign_user_to_group(user_id, organization_id, group_id, _permissions(body))
    return GrantOut.from_grant(grant)


@router.post("/users/{user_id}/all", response_model=GrantOut)
def assign_all_locations(
    organization_id: int,
    user_id: int,
    body: GrantPermissionsIn | None = None,
    caller: CallerContext = Depends(require_admin),
    services: AccessServices = Depends(get_access_services),
) -> GrantOut:
    grant = services.grants.assign_user_to_all_locations(user_id, organization_id, _permissions(body))
    return GrantOut.from_grant(grant)


@router.delete("/grants/{grant_id}", response_model=GrantOut)
def revoke_grant(
    organization_id: int,
    grant_id: int,
    caller: CallerContext = Depends(require_admin),
    services: AccessServices = Depends(get_access_services),
) -> GrantOut:
    existing = services.repository.load_grant(grant_id)
    if existing.organization_id != organization_id:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Grant not found")
    return GrantOut.from_grant(services.grants.delete_grant(grant_id))


def _permissions(body: GrantPermissionsIn | None) -> list[str] | None:
    return body.permissions if body is not None else None
