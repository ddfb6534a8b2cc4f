from __future__ import annotations

import logging

from .cache import AccessCache
from .errors import AccessDenied
from .types import ResolvedAccess

logger = logging.getLogger(__name__)


class AuthorizationGate:
    """
    Single entry point for "may user U perform permission P on location L?".

    Fails closed: any error while resolving access (store unavailable,
    unknown organization, timeout, ...) is a deny.
    """

    def __init__(self, cache: AccessCache) -> None:
        self._cache = cache

    def _resolve(self, user_id: int, organization_id: int) -> ResolvedAccess | None:
        try:
            return self._cache.resolve(user_id, organization_id)
        except Exception:
            logger.warning(
                "Access resolution failed; denying user=%s organization=%s",
                user_id,
                organization_id,
                exc_info=True,
            )
            return None

    def authorize(self, user_id: int, organization_id: int, location_id: int, permission: str) -> bool:
        access = self._resolve(user_id, organization_id)
        if access is None:
            return False

        if access.allows(location_id, permission):
            logger.debug(
                "Access: allowed user=%s organization=%s location=%s permission=%s",
                user_id,
                organization_id,
                location_id,
                permission,
            )
            return True

        logger.debug(
            "Access: denied user=%s organization=%s location=%s permission=%s granted=%s",
            user_id,
            organization_id,
            location_id,
            permission,
            sorted(access.permissions_for(location_id) or ()),
        )
        return False

    def require(self, user_id: int, organization_id: int, location_id: int, permission: str) -> None:
        if not self.authorize(user_id, organization_id, location_id, permission):
            raise AccessDenied(user_id, location_id, permission)

    def accessible_location_ids(self, user_id: int, organization_id: int) -> frozenset[int]:
        access = self._resolve(user_id, organization_id)
        if access is None:
            return frozenset()
        return access.location_ids
