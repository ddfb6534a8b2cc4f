from __future__ import annotations

from datetime import datetime

from sqlalchemy import JSON, Boolean, CheckConstraint, DateTime, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from reviewhub.db.base import Base
from reviewhub.models.hierarchy import Location, LocationGroup, Organization


class User(Base):
    __tablename__ = "users"
    __table_args__ = (
        UniqueConstraint("external_id"),
        UniqueConstraint("email"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    # Identity-provider subject (e.g. the Auth0 user id).
    external_id: Mapped[str] = mapped_column(String(200), nullable=False)
    email: Mapped[str] = mapped_column(String(200), nullable=False)
    full_name: Mapped[str] = mapped_column(String(200), default="", nullable=False)

    organization_id: Mapped[int | None] = mapped_column(ForeignKey("organizations.id"), nullable=True, index=True)
    role: Mapped[str | None] = mapped_column(String(50), nullable=True)

    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)

    organization: Mapped[Organization | None] = relationship()
    location_accesses: Mapped[list["UserLocationAccess"]] = relationship(back_populates="user")


class UserLocationAccess(Base):
    """
    One access grant. Exactly one shape is set:
    - has_all_locations_access: every current and future location of the organization
    - location_id: that single location
    - location_group_id: the group and everything beneath it
    """

    __tablename__ = "user_location_access"
    __table_args__ = (
        CheckConstraint(
            "(has_all_locations_access AND location_id IS NULL AND location_group_id IS NULL)"
            " OR (NOT has_all_locations_access AND location_id IS NOT NULL AND location_group_id IS NULL)"
            " OR (NOT has_all_locations_access AND location_id IS NULL AND location_group_id IS NOT NULL)",
            name="ck_user_location_access_single_shape",
        ),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False, index=True)
    organization_id: Mapped[int] = mapped_column(ForeignKey("organizations.id"), nullable=False, index=True)

    has_all_locations_access: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    location_id: Mapped[int | None] = mapped_column(ForeignKey("locations.id"), nullable=True)
    location_group_id: Mapped[int | None] = mapped_column(ForeignKey("location_groups.id"), nullable=True)

    # List of permission names, or null for full access.
    permissions: Mapped[list[str] | None] = mapped_column(JSON, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    user: Mapped[User] = relationship(back_populates="location_accesses")
    location: Mapped[Location | None] = relationship()
    location_group: Mapped[LocationGroup | None] = relationship()
