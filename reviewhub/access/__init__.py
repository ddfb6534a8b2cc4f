"""
Location access-control core.

Answers "which locations can user U act on, and with which permissions?"
for an Organization -> LocationGroup tree -> Location hierarchy and the
UserLocationAccess grant model.

This package has no dependency on other app packages (reviewhub.db,
reviewhub.routers, etc.). Storage is reached through AccessRepository.
"""

from .cache import AccessCache
from .errors import (
    AccessDenied,
    AccessError,
    CycleError,
    HierarchyError,
    InvalidGrant,
    NotFound,
    OrganizationMismatch,
    QuotaExceeded,
    StoreUnavailable,
)
from .gate import AuthorizationGate
from .grants import GrantStore
from .hierarchy import HierarchySnapshot, HierarchyStore
from .memory import InMemoryAccessRepository
from .repository import AccessRepository
from .resolver import AccessResolver
from .services import AccessServices, build_access_services
from .types import (
    FULL_ACCESS,
    AllLocations,
    DanglingGrant,
    Grant,
    GroupSubtree,
    ResolvedAccess,
    SingleLocation,
)

__all__ = [
    "AccessCache",
    "AccessDenied",
    "AccessError",
    "AccessRepository",
    "AccessResolver",
    "AccessServices",
    "AllLocations",
    "AuthorizationGate",
    "CycleError",
    "DanglingGrant",
    "FULL_ACCESS",
    "Grant",
    "GrantStore",
    "GroupSubtree",
    "HierarchyError",
    "HierarchySnapshot",
    "HierarchyStore",
    "InMemoryAccessRepository",
    "InvalidGrant",
    "NotFound",
    "OrganizationMismatch",
    "QuotaExceeded",
    "ResolvedAccess",
    "SingleLocation",
    "StoreUnavailable",
    "build_access_services",
]
