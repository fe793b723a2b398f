# deps/auth.py
from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from app.workflow.model import Actor
from app.workflow.statuses import ActorRole, coerce_role
from security import decode_token

bearer = HTTPBearer(auto_error=False)

# the system role is only ever assumed by internal callers
TOKEN_ROLES = (ActorRole.ADMIN, ActorRole.CUSTOMER)


def get_current_actor(
    creds: HTTPAuthorizationCredentials = Depends(bearer),
) -> Actor:
    if not creds:
        raise HTTPException(status_code=401, detail="UNAUTHORIZED")

    # must be "Bearer"
    if (creds.scheme or "").lower() != "bearer":
        raise HTTPException(status_code=401, detail="UNAUTHORIZED")

    payload = decode_token(creds.credentials)
    sub = payload.get("sub")
    if not sub:
        raise HTTPException(status_code=401, detail="UNAUTHORIZED")

    role = coerce_role(payload.get("role"))
    if role not in TOKEN_ROLES:
        raise HTTPException(status_code=403, detail="ROLE_NOT_ALLOWED")
    return Actor(role=role, actor_id=str(sub))
