# parcel_hub/services/identity.py
from __future__ import annotations
from typing import Optional

from parcel_hub.errors import Unauthenticated


def current_user_id(user_id: Optional[str]) -> str:
    """Authenticated user id (the API passes the X-User-Id header value)."""
    uid = (user_id or "").strip()
    if not uid:
        raise Unauthenticated("You must be logged in to create packages")
    return uid
