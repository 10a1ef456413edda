from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from jose import jwt, JWTError

from settings import settings


def create_access_token(sub: str, minutes: Optional[int] = None) -> str:
    """
    Bearer token for the dashboard session of user `sub`.
    """
    now = datetime.now(timezone.utc)
    expires = now + timedelta(minutes=minutes or settings.JWT_ACCESS_MINUTES)
    claims = {
        "sub": sub,
        "iss": settings.JWT_ISSUER,
        "iat": int(now.timestamp()),
        "exp": int(expires.timestamp()),
    }
    return jwt.encode(claims, settings.JWT_SECRET, algorithm=settings.JWT_ALG)


def decode_token(token: str) -> Dict[str, Any]:
    """
    Verified claims, or {} for anything expired, tampered or issued elsewhere.
    """
    try:
        return jwt.decode(
            token,
            settings.JWT_SECRET,
            algorithms=[settings.JWT_ALG],
            issuer=settings.JWT_ISSUER,
        )
    except JWTError:
        return {}
