"""
Identity Provider Adapter

Authentication is handled by an external identity provider. Requests reach
this service through the provider's proxy, which sets headers carrying the
user id, email, display name and admin flag (names configurable in settings).
This module turns those headers into an Identity and offers the FastAPI
dependencies that gate the checkout, order and admin endpoints.
"""

from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, HTTPException, Request

from app.core.config import get_settings

TRUTHY = {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class Identity:
    """An authenticated user as supplied by the identity provider."""
    user_id: str
    email: str = ""
    name: str = ""
    is_admin: bool = False


def identity_from_headers(headers) -> Optional[Identity]:
    """Build an Identity from request headers, or None when unauthenticated."""
    settings = get_settings()

    user_id = (headers.get(settings.identity_user_id_header) or "").strip()
    if not user_id:
        return None

    admin_flag = (headers.get(settings.identity_admin_header) or "").strip().lower()
    return Identity(
        user_id=user_id,
        email=(headers.get(settings.identity_email_header) or "").strip(),
        name=(headers.get(settings.identity_name_header) or "").strip(),
        is_admin=admin_flag in TRUTHY,
    )


async def get_identity(request: Request) -> Optional[Identity]:
    """Optional identity; checkout handles the anonymous case itself."""
    return identity_from_headers(request.headers)


async def require_identity(
    identity: Optional[Identity] = Depends(get_identity),
) -> Identity:
    if identity is None:
        raise HTTPException(status_code=401, detail="Please login to continue")
    return identity


async def require_admin(
    identity: Identity = Depends(require_identity),
) -> Identity:
    if not identity.is_admin:
        raise HTTPException(status_code=403, detail="Admin access required")
    return identity
