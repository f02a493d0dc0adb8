# companion_lifecycle/auth.py
"""Admin API key dependency for lifecycle endpoints."""

import secrets

from fastapi import Depends, Header, HTTPException

from companion_lifecycle.config import get_settings


def get_expected_admin_key() -> str | None:
    """Configured admin key. Overridable in tests via dependency_overrides."""
    return get_settings().ADMIN_API_KEY


def require_admin_key(
    x_api_key: str | None = Header(default=None, alias="X-API-Key"),
    expected_key: str | None = Depends(get_expected_admin_key),
) -> None:
    """Fails closed: no configured key means no admin access at all."""
    if not expected_key:
        raise HTTPException(
            status_code=500,
            detail="Server misconfiguration: ADMIN_API_KEY is not set",
        )

    if not x_api_key or not secrets.compare_digest(x_api_key, expected_key):
        raise HTTPException(status_code=401, detail="Invalid or missing API key")
