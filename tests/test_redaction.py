import logging

from app.workflow.model import CustomerContact
from services.redaction import mask_name, mask_phone, redact_contact, redact_dict, redact_text


def test_redact_text_masks_phone_and_email():
    redacted = redact_text("Quote for jane.doe@example.com call +15551234567")
    assert "jane.doe@example.com" not in redacted
    assert "+15551234567" not in redacted
    assert "j***@example.com" in redacted
    assert "****4567" in redacted


def test_redact_text_drops_bearer_tokens():
    assert redact_text("Authorization: Bearer abc.def") == "[REDACTED]"


def test_dates_and_ids_are_left_alone():
    text = "event 2026-05-01 quote 3f2a9c1e-0000-4000-8000-123456789abc"
    assert redact_text(text) == text


def test_mask_helpers():
    assert mask_phone("+1 (555) 123-4567") == "****4567"
    assert mask_phone("12") == "****"
    assert mask_name("Jane  Doe") == "J. D."


def test_redact_contact():
    out = redact_contact(CustomerContact(name="Jane Doe", email="jane.doe@example.com", phone="+15551234567"))
    assert out == {"name": "J. D.", "email": "j***@example.com", "phone": "****4567"}


def test_redact_dict_masks_sensitive_keys():
    payload = {
        "email": "jane.doe@example.com",
        "phone": "+15551234567",
        "contact_name": "Jane Doe",
        "api_key": "k-123",
        "X-Signature": "sha256=deadbeef",
        "nested": {"access_token": "abc", "note": "reach jane.doe@example.com"},
        "status": "quoted",
    }
    redacted = redact_dict(payload)
    assert redacted["email"] == "j***@example.com"
    assert redacted["phone"] == "****4567"
    assert redacted["contact_name"] == "J. D."
    assert redacted["api_key"] == "[REDACTED]"
    assert redacted["X-Signature"] == "[REDACTED]"
    assert redacted["nested"] == {"access_token": "[REDACTED]", "note": "reach j***@example.com"}
    assert redacted["status"] == "quoted"


def test_log_line_uses_redaction_helper(caplog):
    logger = logging.getLogger("redaction-test")
    caplog.set_level(logging.INFO)
    msg = redact_text("email jane.doe@example.com phone +15551234567")
    logger.info("payload=%s", msg)
    assert "jane.doe@example.com" not in caplog.text
    assert "+15551234567" not in caplog.text
