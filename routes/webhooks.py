# routes/webhooks.py
from __future__ import annotations

import hmac
import hashlib
import logging

from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import ValidationError

from app.workflow.errors import CascadeInconsistency
from app.workflow.factory import Workflow
from deps.workflow import workflow_dep
from schemas import PaymentWebhookEvent
from settings import settings

router = APIRouter(prefix="/v1/webhooks", tags=["webhooks"])
logger = logging.getLogger("catering.webhooks")


def _verify_signature(*, raw: bytes, signature_header: str | None, secret: str | None) -> tuple[bool, str | None]:
    if not secret or not secret.strip():
        # unsigned deliveries are accepted only when no secret is configured
        return True, None

    if not signature_header or not signature_header.strip():
        return False, "MISSING_SIGNATURE"

    sig = signature_header.strip()
    if sig.lower().startswith("sha256="):
        sig = sig.split("=", 1)[1].strip()

    expected = hmac.new(secret.encode("utf-8"), raw, hashlib.sha256).hexdigest()
    if not hmac.compare_digest(expected, sig):
        return False, "INVALID_SIGNATURE"

    return True, None


@router.post("/payments")
async def payment_webhook(req: Request, wf: Workflow = Depends(workflow_dep)):
    raw = await req.body()
    request_id = getattr(req.state, "request_id", None)

    sig_ok, sig_err = _verify_signature(
        raw=raw,
        signature_header=req.headers.get("X-Signature"),
        secret=settings.PAYMENT_WEBHOOK_SECRET,
    )
    if not sig_ok:
        logger.warning("webhook_rejected request_id=%s reason=%s", request_id, sig_err)
        raise HTTPException(status_code=401, detail={"error": sig_err})

    try:
        event = PaymentWebhookEvent.model_validate_json(raw)
    except ValidationError:
        logger.warning("webhook_rejected request_id=%s reason=INVALID_PAYLOAD", request_id)
        raise HTTPException(status_code=400, detail={"error": "INVALID_PAYLOAD"})

    logger.info(
        "webhook_received request_id=%s event_id=%s milestone_id=%s status=%s",
        request_id, event.event_id, event.milestone_id, event.status,
    )

    try:
        result = wf.reconciler.on_milestone_status_changed(event.milestone_id, event.status)
    except CascadeInconsistency as exc:
        # invoice side is committed; the processor should redeliver so the quote leg is retried
        logger.error("webhook_cascade_incomplete request_id=%s invoice_id=%s", request_id, exc.invoice_id)
        raise

    return {"ok": True, "event_id": event.event_id, "reconcile": result.as_dict()}
