# backend/contracts/auth.py
from __future__ import annotations

from typing import Optional

from .domain import Caller


def caller_from_request(request) -> Optional[Caller]:
    """
    Identity of the authenticated user behind a DRF request (SimpleJWT has
    already resolved the bearer token). None for anonymous requests.
    """
    user = getattr(request, "user", None)
    if user is None or not user.is_authenticated:
        return None
    role = getattr(user, "role", "") or ""
    return Caller(
        user_id=user.pk,
        role=role,
        is_admin=role == "admin" or bool(getattr(user, "is_staff", False)),
    )
