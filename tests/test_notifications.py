import json
import logging

import httpx
import pytest

from app.notifications.dispatcher import (
    HttpNotificationSender,
    LogNotificationSender,
    NotificationDispatcher,
)
from app.notifications.http import HttpClient
from app.workflow.model import CustomerContact
from app.workflow.statuses import ActorRole, EntityKind, InvoiceStatus, QuoteStatus
from app.workflow.transitions import DEFAULT_WORKFLOW
from tests.conftest import RecordingSender, make_invoice, make_quote

CONTACT = CustomerContact(name="Jane Doe", email="jane.doe@example.com", phone="+15551234567")


def _rule(kind, current, desired):
    return DEFAULT_WORKFLOW.table(kind).find(current, desired, ActorRole.ADMIN)


def _mock_client(handler) -> HttpClient:
    return HttpClient(transport=httpx.MockTransport(handler))


def test_http_sender_posts_json_with_api_key():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["auth"] = request.headers.get("Authorization")
        seen["body"] = json.loads(request.content)
        return httpx.Response(202, json={"queued": True})

    sender = HttpNotificationSender("https://relay.test/send", api_key="k-123", http=_mock_client(handler))
    ok = sender.send(CONTACT, "quote_ready", {"status": "quoted"})

    assert ok is True
    assert seen["auth"] == "Bearer k-123"
    assert seen["body"]["to"]["email"] == "jane.doe@example.com"
    assert seen["body"]["template"] == "quote_ready"
    assert seen["body"]["data"] == {"status": "quoted"}


def test_http_sender_reports_rejection_as_false():
    sender = HttpNotificationSender(
        "https://relay.test/send",
        http=_mock_client(lambda request: httpx.Response(503, text="busy")),
    )
    assert sender.send(CONTACT, "quote_ready", {}) is False


def test_http_sender_requires_url():
    with pytest.raises(ValueError):
        HttpNotificationSender("")


def test_log_sender_masks_contact(caplog):
    caplog.set_level(logging.INFO, logger="catering.notify")
    assert LogNotificationSender().send(CONTACT, "quote_ready", {"status": "quoted"}) is True
    text = " ".join(r.getMessage() for r in caplog.records)
    assert "jane.doe@example.com" not in text
    assert "j***@example.com" in text


def test_dispatch_skips_rules_without_notify(store):
    q = make_quote(store, QuoteStatus.PENDING)
    sender = RecordingSender()
    dispatcher = NotificationDispatcher(sender, store)
    rule = _rule(EntityKind.QUOTE, QuoteStatus.PENDING, QuoteStatus.UNDER_REVIEW)

    assert dispatcher.dispatch(EntityKind.QUOTE, q.id, rule) is False
    assert sender.sent == []


def test_dispatch_without_contact_returns_false(store):
    sender = RecordingSender()
    dispatcher = NotificationDispatcher(sender, store)
    rule = _rule(EntityKind.INVOICE, InvoiceStatus.DRAFT, InvoiceStatus.SENT)

    assert dispatcher.dispatch(EntityKind.INVOICE, "missing-invoice", rule) is False
    assert sender.sent == []


def test_dispatch_swallows_sender_errors(store, caplog):
    q = make_quote(store, QuoteStatus.ESTIMATED)
    inv = make_invoice(store, q.id)
    sender = RecordingSender(fail_with=ConnectionError("refused for jane.doe@example.com"))
    dispatcher = NotificationDispatcher(sender, store)
    rule = _rule(EntityKind.INVOICE, InvoiceStatus.DRAFT, InvoiceStatus.SENT)

    assert dispatcher.dispatch(EntityKind.INVOICE, inv.id, rule) is False
    assert len(sender.sent) == 1
    assert all("jane.doe@example.com" not in r.getMessage() for r in caplog.records)
