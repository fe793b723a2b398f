from __future__ import annotations

import os

from fastapi import APIRouter

from settings import settings

router = APIRouter(tags=["health"])

MIGRATION_REVISION = "0001_workflow_schema"


def _check_db() -> tuple[bool, str | None]:
    from db import check_connection

    return check_connection()


def _resolve_git_sha() -> str | None:
    return (os.getenv("GIT_SHA") or "").strip() or None


@router.get("/health")
def health():
    return {
        "ok": True,
        "env": settings.ENV,
        "store": settings.WORKFLOW_STORE,
        "notify_mode": settings.NOTIFY_MODE,
        "git_sha": _resolve_git_sha(),
    }


@router.get("/readyz")
def readyz():
    if settings.WORKFLOW_STORE != "postgres":
        return {"ready": True, "store": settings.WORKFLOW_STORE, "db_ok": None}
    db_ok, db_error = _check_db()
    return {
        "ready": db_ok,
        "store": settings.WORKFLOW_STORE,
        "db_ok": db_ok,
        "db_error": db_error,
        "migration_revision": MIGRATION_REVISION,
    }
