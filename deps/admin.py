# deps/admin.py
from fastapi import Depends, HTTPException, status

from app.workflow.model import Actor
from app.workflow.statuses import ActorRole
from deps.auth import get_current_actor


def require_admin(actor: Actor = Depends(get_current_actor)) -> Actor:
    if actor.role is not ActorRole.ADMIN:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="ADMIN_REQUIRED",
        )
    return actor
