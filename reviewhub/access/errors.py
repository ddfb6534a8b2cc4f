"""Error taxonomy for the access-control core."""

from __future__ import annotations


class AccessError(Exception):
    """Base class for every error raised by reviewhub.access."""


class NotFound(AccessError, LookupError):
    """A referenced organization, group, location, user or grant does not exist."""

    def __init__(self, kind: str, ident: object) -> None:
        super().__init__(f"{kind} {ident!r} not found")
        self.kind = kind
        self.ident = ident


class CycleError(AccessError, ValueError):
    """Re-parenting a group would make the hierarchy cyclic."""


class OrganizationMismatch(AccessError, ValueError):
    """Two records that must share an organization do not."""


class HierarchyError(AccessError, ValueError):
    """A hierarchy write is invalid for a reason other than a cycle."""


class InvalidGrant(AccessError, ValueError):
    """A grant is malformed (unknown permission, inactive target, ...)."""


class QuotaExceeded(AccessError):
    """The organization's subscription limit would be exceeded."""


class StoreUnavailable(AccessError):
    """The backing store failed or timed out."""


class AccessDenied(AccessError):
    """The caller may not perform the requested permission on the location."""

    def __init__(self, user_id: int, location_id: int, permission: str) -> None:
        super().__init__(f"user {user_id} may not {permission!r} location {location_id}")
        self.user_id = user_id
        self.location_id = location_id
        self.permission = permission
