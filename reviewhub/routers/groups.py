from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status

from reviewhub.access import AccessServices
from reviewhub.schemas.hierarchy import GroupCreate, GroupOut, GroupParentUpdate, LocationOut, SubtreeOut
from reviewhub.security.context import CallerContext
from reviewhub.security.dependencies import get_access_services, require_admin, require_member

router = APIRouter(prefix="/organizations/{organization_id}/groups", tags=["groups"])


@router.get("", response_model=list[GroupOut])
def list_groups(
    organization_id: int,
    caller: CallerContext = Depends(require_member),
    services: AccessServices = Depends(get_access_services),
):
    return services.hierarchy.list_groups(organization_id)


@router.get("/{group_id}/subtree", response_model=SubtreeOut)
def get_subtree(
    organization_id: int,
    group_id: int,
    caller: CallerContext = Depends(require_member),
    services: AccessServices = Depends(get_access_services),
) -> SubtreeOut:
    _ensure_in_organization(services, organization_id, group_id)
    subtree = services.hierarchy.get_subtree(group_id)
    # Admins see the whole subtree; other members only the locations they can reach.
    visible = None if caller.is_admin else services.gate.accessible_location_ids(caller.user_id, organization_id)
    return SubtreeOut(
        root_id=subtree.root_id,
        groups=[GroupOut.model_validate(g) for g in subtree.groups],
        locations=[
            LocationOut.model_validate(loc)
            for loc in subtree.locations
            if visible is None or loc.id in visible
        ],
    )


@router.post("", response_model=GroupOut, status_code=status.HTTP_201_CREATED)
def create_group(
    organization_id: int,
    body: GroupCreate,
    caller: CallerContext = Depends(require_admin),
    services: AccessServices = Depends(get_access_services),
):
    return services.hierarchy.create_group(
        organization_id,
        body.name,
        group_type=body.group_type,
        parent_group_id=body.parent_group_id,
        description=body.description,
    )


@router.put("/{group_id}/parent", response_model=GroupOut)
def reparent_group(
    organization_id: int,
    group_id: int,
    body: GroupParentUpdate,
    caller: CallerContext = Depends(require_admin),
    services: AccessServices = Depends(get_access_services),
):
    _ensure_in_organization(services, organization_id, group_id)
    return services.hierarchy.reparent_group(group_id, body.parent_group_id)


@router.delete("/{group_id}", response_model=GroupOut)
def delete_group(
    organization_id: int,
    group_id: int,
    caller: CallerContext = Depends(require_admin),
    services: AccessServices = Depends(get_access_services),
):
    _ensure_in_organization(services, organization_id, group_id)
    return services.hierarchy.delete_group(group_id)


def _ensure_in_organization(services: AccessServices, organization_id: int, group_id: int) -> None:
    group = services.repository.load_group(group_id)
    if group.organization_id != organization_id:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Group not found")
