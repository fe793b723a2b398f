# services/workflow_errors.py
from __future__ import annotations

from app.workflow.errors import WorkflowError

WORKFLOW_ERROR_HTTP_MAP: dict[str, tuple[int, str]] = {
    "ENTITY_NOT_FOUND": (404, "Not found"),
    "INVALID_TRANSITION": (409, "Invalid status transition"),
    "PERSISTENCE_FAILURE": (503, "Storage unavailable, retry later"),
    "CASCADE_INCONSISTENCY": (500, "Invoice and quote status out of sync"),
}


def http_status_for(exc: WorkflowError) -> tuple[int, str]:
    return WORKFLOW_ERROR_HTTP_MAP.get(exc.code, (500, "Internal server error"))


def workflow_error_body(exc: WorkflowError) -> dict:
    status, message = http_status_for(exc)
    detail = {"code": exc.code, "message": message}
    # 4xx messages only name the entity and statuses; safe to echo
    if status < 500:
        detail["error"] = str(exc)
    return {"detail": detail}

