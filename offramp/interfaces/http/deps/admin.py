"""Operator endpoint guard."""

import hmac

from fastapi import Depends, HTTPException, Security, status
from fastapi.security import APIKeyHeader

from offramp.core.config import Settings

from .services import get_app_settings

admin_key_header = APIKeyHeader(name="X-Admin-Key", auto_error=False)


def require_admin(
    api_key: str | None = Security(admin_key_header),
    settings: Settings = Depends(get_app_settings),
) -> None:
    if not api_key or not hmac.compare_digest(api_key, settings.admin_api_key):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid admin key")


__all__ = ["require_admin"]
