from __future__ import annotations

from collections.abc import Callable

from fastapi import Depends, HTTPException, Request, status
from sqlalchemy.orm import Session

from reviewhub.access import AccessServices
from reviewhub.db.session import get_db
from reviewhub.security.auth import extract_token, load_user
from reviewhub.security.config import AccessConfig
from reviewhub.security.context import CallerContext


def get_access_config(request: Request) -> AccessConfig:
    config = getattr(request.app.state, "access_config", None)
    if config is None:
        raise RuntimeError("Access config not loaded. Did app startup run?")
    return config


def get_access_services(request: Request) -> AccessServices:
    services = getattr(request.app.state, "access", None)
    if services is None:
        raise RuntimeError("Access services not built. Did app startup run?")
    return services


def get_caller(
    request: Request,
    config: AccessConfig = Depends(get_access_config),
    db: Session = Depends(get_db),
) -> CallerContext:
    token = extract_token(request, config)
    if token is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Authentication required")

    user = load_user(db, token)
    caller = CallerContext(
        user_id=user.id,
        organization_id=user.organization_id,
        role=user.role,
        is_admin=config.is_admin_role(user.role),
    )
    request.state.caller = caller
    return caller


def require_member(organization_id: int, caller: CallerContext = Depends(get_caller)) -> CallerContext:
    if not caller.is_member_of(organization_id):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not a member of this organization")
    return caller


def require_admin(organization_id: int, caller: CallerContext = Depends(require_member)) -> CallerContext:
    """Hierarchy and grant edits: an admin role within the caller's own organization."""
    if not caller.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"Insufficient role. Required an admin role, got {caller.role!r}",
        )
    return caller


def require_location_permission(permission: str) -> Callable[..., CallerContext]:
    """
    Dependency factory for routes with `{organization_id}` and `{location_id}`
    path parameters. Denials raise AccessDenied (mapped to 403).
    """

    def dependency(
        organization_id: int,
        location_id: int,
        caller: CallerContext = Depends(require_member),
        services: AccessServices = Depends(get_access_services),
    ) -> CallerContext:
        services.gate.require(caller.user_id, organization_id, location_id, permission)
        return caller

    return dependency
