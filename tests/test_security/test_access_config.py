"""Tests for loading the YAML access config."""
from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from reviewhub.access.types import EDIT, MANAGE, PERMISSIONS, RESPOND, VIEW
from reviewhub.security.config import load_access_config

REPO_ROOT = Path(__file__).resolve().parents[2]


def test_shipped_config_loads():
    config = load_access_config(REPO_ROOT / "config" / "access_config.yaml")
    assert config.permission_names == {VIEW, EDIT, RESPOND, MANAGE}
    assert config.auth.bearer_prefix == "Bearer"
    assert config.is_admin_role("Owner")
    assert not config.is_admin_role("Staff")
    assert not config.is_admin_role(None)


def test_missing_top_level_key_raises(tmp_path):
    path = tmp_path / "access.yaml"
    path.write_text("permissions: [view]\n", encoding="utf-8")
    with pytest.raises(ValueError, match="top-level 'access'"):
        load_access_config(path)


def test_wildcard_cannot_be_listed(tmp_path):
    path = tmp_path / "access.yaml"
    path.write_text("access:\n  permissions: [view, '*']\n", encoding="utf-8")
    with pytest.raises(ValidationError):
        load_access_config(path)


def test_defaults_apply_to_empty_section(tmp_path):
    path = tmp_path / "access.yaml"
    path.write_text("access: {}\n", encoding="utf-8")
    config = load_access_config(path)
    assert config.permission_names == frozenset(PERMISSIONS)
    assert config.is_admin_role("Admin")
