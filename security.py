from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from jose import jwt, JWTError

from app.workflow.statuses import coerce_role
from settings import settings

TOKEN_TYPE = "access"
TOKEN_ISSUER = "catering-portal"


# -----------------------
# Access tokens (JWT)
# -----------------------
def create_access_token(sub: str, role, minutes: Optional[int] = None) -> str:
    """Signed bearer token naming the caller and the workflow role they act as."""
    actor_role = coerce_role(role)
    if actor_role is None:
        raise ValueError(f"unknown actor role {role!r}")

    now = datetime.now(timezone.utc)
    ttl = timedelta(minutes=minutes or settings.JWT_ACCESS_MINUTES)
    claims = {
        "sub": str(sub),
        "role": actor_role.value,
        "typ": TOKEN_TYPE,
        "iss": TOKEN_ISSUER,
        "iat": int(now.timestamp()),
        "exp": int((now + ttl).timestamp()),
    }
    return jwt.encode(claims, settings.JWT_SECRET, algorithm=settings.JWT_ALG)


def decode_token(token: str) -> Dict[str, Any]:
    # expired, tampered or foreign tokens all come back empty
    try:
        claims = jwt.decode(
            token,
            settings.JWT_SECRET,
            algorithms=[settings.JWT_ALG],
            issuer=TOKEN_ISSUER,
        )
    except JWTError:
        return {}
    if claims.get("typ") != TOKEN_TYPE:
        return {}
    return claims
