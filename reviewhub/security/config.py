from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, field_validator

from reviewhub.access.types import PERMISSIONS, WILDCARD


class AuthConfig(BaseModel):
    provider: str = "dummy"
    authorization_header: str = "Authorization"
    bearer_prefix: str = "Bearer"


class AccessConfigModel(BaseModel):
    auth: AuthConfig = Field(default_factory=AuthConfig)
    # Catalogue of location permissions a grant may name.
    permissions: list[str] = Field(default_factory=lambda: list(PERMISSIONS))
    # User roles allowed to edit the hierarchy and grants of their own organization.
    admin_roles: list[str] = Field(default_factory=lambda: ["Admin", "Owner"])

    @field_validator("permissions")
    @classmethod
    def _no_wildcard(cls, value: list[str]) -> list[str]:
        names = [p.strip() for p in value if p.strip()]
        if WILDCARD in names:
            raise ValueError("'*' is reserved for full access and cannot be listed")
        return names


class AccessConfig:
    """
    Runtime helper around the validated config.
    """

    def __init__(self, model: AccessConfigModel):
        self.model = model

    @property
    def auth(self) -> AuthConfig:
        return self.model.auth

    @property
    def permission_names(self) -> frozenset[str]:
        return frozenset(self.model.permissions)

    def is_admin_role(self, role: str | None) -> bool:
        return role is not None and role in self.model.admin_roles


def load_access_config(path: Path) -> AccessConfig:
    raw_text = path.read_text(encoding="utf-8")
    raw: dict[str, Any] = yaml.safe_load(raw_text) or {}

    if "access" not in raw:
        raise ValueError(f"Missing top-level 'access' key in config: {path}")

    model = AccessConfigModel.model_validate(raw["access"])
    return AccessConfig(model)
