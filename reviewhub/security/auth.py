"""
Caller identification.

A bearer token names the calling user in one of two ways:
- a numeric token is a `User.id` (local development and tests)
- anything else is an identity-provider subject matched against
  `User.external_id` (e.g. "auth0|regional")

Signature checks on provider tokens happen upstream of this service; by the
time a request reaches us the subject is trusted.
"""

from __future__ import annotations

import logging

from fastapi import HTTPException, Request, status
from sqlalchemy import select
from sqlalchemy.orm import Session

from reviewhub.models.access import User
from reviewhub.security.config import AccessConfig

logger = logging.getLogger(__name__)


def extract_token(request: Request, config: AccessConfig) -> str | None:
    """Bearer token from the configured header, or None when the header is absent."""
    header_name = config.auth.authorization_header
    scheme = config.auth.bearer_prefix

    raw = request.headers.get(header_name)
    if not raw:
        logger.info("Unauthenticated request to %s %s", request.method, request.url.path)
        return None

    found_scheme, _, token = raw.partition(" ")
    token = token.strip()
    if found_scheme != scheme or not token:
        logger.warning("Malformed %s header on %s %s", header_name, request.method, request.url.path)
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid {header_name}. Expected '{scheme} <token>'.",
        )
    return token


def load_user(db: Session, token: int | str) -> User:
    """Active user named by `token`; 401 when nobody matches."""
    if isinstance(token, int) or token.isdigit():
        user = db.get(User, int(token))
    else:
        user = db.scalars(select(User).where(User.external_id == token)).one_or_none()

    if user is None or not user.is_active:
        logger.info("Rejected token for unknown or inactive user")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid or inactive user")
    return user
