from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class GroupOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    organization_id: int
    parent_group_id: int | None
    name: str
    group_type: str | None
    level: int
    description: str | None = None
    is_active: bool


class LocationOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    organization_id: int
    location_group_id: int | None
    name: str
    city: str | None = None
    state: str | None = None
    manager_user_id: int | None = None
    is_active: bool


class SubtreeOut(BaseModel):
    root_id: int
    groups: list[GroupOut]
    locations: list[LocationOut]


class GroupCreate(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    group_type: str | None = None
    parent_group_id: int | None = None
    description: str | None = None


class GroupParentUpdate(BaseModel):
    parent_group_id: int | None = None


class LocationCreate(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    location_group_id: int | None = None
    description: str | None = None
    address: str | None = None
    city: str | None = None
    state: str | None = None
    zip_code: str | None = None
    country: str | None = None
    phone_number: str | None = None
    email: str | None = None
    manager_user_id: int | None = None


class LocationGroupUpdate(BaseModel):
    location_group_id: int | None = None


class LocationUpdate(BaseModel):
    """Partial update; only fields present in the request body change."""

    name: str | None = Field(default=None, min_length=1, max_length=200)
    description: str | None = None
    address: str | None = None
    city: str | None = None
    state: str | None = None
    zip_code: str | None = None
    country: str | None = None
    phone_number: str | None = None
    email: str | None = None
    manager_user_id: int | None = None
