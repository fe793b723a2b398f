# app/notifications/dispatcher.py
from __future__ import annotations

import logging
from typing import Any, Optional, Protocol

from app.notifications.http import HttpClient, is_retryable_http
from app.workflow.model import CustomerContact, PaymentMilestone
from app.workflow.statuses import EntityKind, status_label
from app.workflow.store import EntityStore
from app.workflow.transitions import TransitionRule
from services.redaction import redact_contact, redact_dict, redact_text

logger = logging.getLogger("catering.notify")

REMINDER_TEMPLATE = "payment_reminder"


class NotificationSender(Protocol):
    def send(self, contact: CustomerContact, template: str, payload: dict[str, Any]) -> bool: ...


class LogNotificationSender:
    """Development sender: writes the message to the log instead of mailing it."""

    def send(self, contact: CustomerContact, template: str, payload: dict[str, Any]) -> bool:
        logger.info(
            "notification template=%s to=%s payload=%s",
            template, redact_contact(contact), redact_dict(payload),
        )
        return True


class HttpNotificationSender:
    """Posts the message as JSON to the email relay."""

    def __init__(self, url: str, *, api_key: str = "", http: HttpClient | None = None, timeout_s: float = 10.0):
        if not url:
            raise ValueError("notification relay url is required")
        self.url = url
        self.api_key = api_key
        self.http = http or HttpClient(timeout_s=timeout_s)

    def send(self, contact: CustomerContact, template: str, payload: dict[str, Any]) -> bool:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        body = {
            "to": {"name": contact.name, "email": contact.email, "phone": contact.phone},
            "template": template,
            "data": payload,
        }
        resp = self.http.post(self.url, headers=headers, json_body=body)
        if not resp.ok:
            logger.warning(
                "notification relay rejected template=%s status=%s retryable=%s",
                template, resp.status_code, is_retryable_http(resp.status_code),
            )
        return resp.ok


class NotificationDispatcher:
    """
    Customer notification for rules flagged `notify`.

    Runs after the transition is committed and audited. At most one attempt,
    failures are reported as False and never undo the transition.
    """

    def __init__(self, sender: NotificationSender, store: EntityStore):
        self.sender = sender
        self.store = store

    def resolve_contact(self, kind: EntityKind, entity_id: str) -> Optional[CustomerContact]:
        quote_id = entity_id
        if kind is EntityKind.INVOICE:
            invoice = self.store.get_invoice(entity_id)
            if invoice is None:
                return None
            quote_id = invoice.quote_id
        quote = self.store.get_quote(quote_id)
        return quote.contact if quote else None

    def dispatch(self, kind: EntityKind, entity_id: str, rule: TransitionRule) -> bool:
        if not rule.notify:
            return False

        template = rule.template or f"{kind.value}_status_changed"
        try:
            contact = self.resolve_contact(kind, entity_id)
            if contact is None or not contact.email:
                logger.warning("notification skipped, no contact kind=%s id=%s", kind.value, entity_id)
                return False

            payload = {
                "entity_kind": kind.value,
                "entity_id": str(entity_id),
                "status": rule.to_status.value,
                "status_label": status_label(rule.to_status),
                "description": rule.description,
            }
            sent = bool(self.sender.send(contact, template, payload))
        except Exception as exc:
            logger.warning(
                "notification failed kind=%s id=%s template=%s err=%s",
                kind.value, entity_id, template, redact_text(str(exc)),
            )
            return False

        if sent:
            logger.info("notification sent kind=%s id=%s template=%s", kind.value, entity_id, template)
        return sent

    def send_payment_reminder(self, milestone: PaymentMilestone) -> Optional[CustomerContact]:
        """Remind the customer of an upcoming milestone. Returns the contact reached, or None."""
        invoice_id = milestone.invoice_id
        try:
            contact = self.resolve_contact(EntityKind.INVOICE, invoice_id)
            if contact is None or not contact.email:
                logger.warning("payment reminder skipped, no contact invoice=%s", invoice_id)
                return None

            quote = None
            invoice = self.store.get_invoice(invoice_id)
            if invoice is not None:
                quote = self.store.get_quote(invoice.quote_id)
            payload = {
                "entity_kind": EntityKind.INVOICE.value,
                "entity_id": str(invoice_id),
                "milestone_id": milestone.id,
                "milestone_type": milestone.milestone_type,
                "amount": milestone.amount,
                "due_date": milestone.due_date.isoformat() if milestone.due_date else None,
                "event_name": quote.event_name if quote else None,
            }
            sent = bool(self.sender.send(contact, REMINDER_TEMPLATE, payload))
        except Exception as exc:
            logger.warning(
                "payment reminder failed invoice=%s milestone=%s err=%s",
                invoice_id, milestone.id, redact_text(str(exc)),
            )
            return None

        if not sent:
            return None
        logger.info("payment reminder sent invoice=%s milestone=%s", invoice_id, milestone.id)
        return contact
