from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class CallerContext:
    """
    Per-request identity of the authenticated caller.

    Location-level decisions are not stored here; they come from the
    AuthorizationGate for each (organization, location, permission).
    """

    user_id: int
    organization_id: int | None
    role: str | None
    is_admin: bool

    def is_member_of(self, organization_id: int) -> bool:
        return self.organization_id == organization_id
