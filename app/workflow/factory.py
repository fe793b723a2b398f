# app/workflow/factory.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

from app.notifications.dispatcher import (
    HttpNotificationSender,
    LogNotificationSender,
    NotificationDispatcher,
    NotificationSender,
)
from app.workflow.service import WorkflowService
from app.workflow.state_machine import StatusValidator
from app.workflow.store import EntityStore, InMemoryEntityStore
from app.workflow.transitions import DEFAULT_WORKFLOW, WorkflowConfig
from services.audit_log import AuditLogger, AuditSink, InMemoryAuditSink
from services.reconcile import PaymentReconciler
from settings import settings

logger = logging.getLogger("catering.workflow")

_WORKFLOW_CACHE: Dict[str, Any] = {}


@dataclass(frozen=True)
class Workflow:
    store: EntityStore
    audit: AuditLogger
    service: WorkflowService
    reconciler: PaymentReconciler


def build_sender(mode: Optional[str] = None) -> NotificationSender:
    key = (mode or settings.NOTIFY_MODE or "log").strip().lower()
    if key == "http":
        return HttpNotificationSender(
            settings.NOTIFY_WEBHOOK_URL,
            api_key=settings.NOTIFY_API_KEY,
            timeout_s=settings.NOTIFY_HTTP_TIMEOUT_S,
        )
    if key == "log":
        return LogNotificationSender()
    raise ValueError(f"unknown NOTIFY_MODE {mode!r}")


def _build_persistence(store_kind: str) -> tuple[EntityStore, AuditSink]:
    if store_kind == "postgres":
        from app.workflow.repository import PostgresEntityStore
        from services.audit_log import PostgresAuditSink
        return PostgresEntityStore(), PostgresAuditSink()
    if store_kind == "memory":
        return InMemoryEntityStore(), InMemoryAuditSink()
    raise ValueError(f"unknown WORKFLOW_STORE {store_kind!r}")


def build_workflow(
    *,
    store: Optional[EntityStore] = None,
    audit_sink: Optional[AuditSink] = None,
    sender: Optional[NotificationSender] = None,
    config: WorkflowConfig = DEFAULT_WORKFLOW,
    store_kind: Optional[str] = None,
) -> Workflow:
    """Wire the pipeline. Explicit collaborators win over settings."""
    if store is None or audit_sink is None:
        default_store, default_sink = _build_persistence((store_kind or settings.WORKFLOW_STORE).strip().lower())
        store = store or default_store
        audit_sink = audit_sink or default_sink

    audit = AuditLogger(audit_sink)
    dispatcher = NotificationDispatcher(sender or build_sender(), store)
    service = WorkflowService(store, StatusValidator(config), audit, dispatcher)
    return Workflow(
        store=store,
        audit=audit,
        service=service,
        reconciler=PaymentReconciler(service, store),
    )


def get_workflow() -> Workflow:
    wf = _WORKFLOW_CACHE.get("default")
    if wf is None:
        wf = build_workflow()
        _WORKFLOW_CACHE["default"] = wf
        logger.info("workflow ready store=%s notify=%s", settings.WORKFLOW_STORE, settings.NOTIFY_MODE)
    return wf


def reset_workflow() -> None:
    _WORKFLOW_CACHE.clear()
