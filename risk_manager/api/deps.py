"""Shared API dependencies."""

import secrets

from fastapi import Header, HTTPException, status

from risk_manager.config import settings
from risk_manager.database import engine
from risk_manager.services.account_repository import AccountRepository


def verify_api_key(x_api_key: str | None = Header(default=None)):
    """Reject requests whose X-API-Key header does not match the internal key."""
    expected = settings.internal_api_key
    if not expected or not x_api_key or not secrets.compare_digest(x_api_key, expected):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
        )


def get_account_repository() -> AccountRepository:
    return AccountRepository(engine)
