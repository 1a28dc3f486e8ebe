"""Payment gateway adapter: verify and normalize Stripe webhook events.

Signature verification happens before the payload is parsed. Nothing that
fails verification is ever turned into a ``PaymentEvent``, so the
controller's transition logic only sees trusted input.
"""

import json
import logging
from typing import Optional

import stripe
from django.conf import settings

from .domain import PaymentEvent, PaymentEventKind
from .errors import SignatureError

logger = logging.getLogger("orders.payments")

ORDER_REFERENCE_PREFIX = "order_"

SUCCEEDED_EVENTS = {"checkout.session.completed", "checkout.session.async_payment_succeeded"}
FAILED_EVENTS = {"checkout.session.async_payment_failed", "payment_intent.payment_failed"}
# checkout.session.completed also fires for delayed methods before the money arrives
PAID_SESSION_STATUSES = {"paid", "no_payment_required"}


def payment_initiation_reference(order_id: int) -> str:
    """Reference the checkout attaches as ``client_reference_id`` for ``order_id``."""
    return f"{ORDER_REFERENCE_PREFIX}{order_id}"


def parse_order_reference(value) -> Optional[int]:
    """Inverse of ``payment_initiation_reference``; also accepts a bare id.

    Returns None for anything that is not a positive integer reference.
    """
    if value is None:
        return None
    raw = str(value).strip()
    if raw.startswith(ORDER_REFERENCE_PREFIX):
        raw = raw[len(ORDER_REFERENCE_PREFIX):]
    if not raw.isdigit() or int(raw) <= 0:
        return None
    return int(raw)


class StripeWebhookVerifier:
    """Verify Stripe webhook payloads and map them to ``PaymentEvent``."""

    def __init__(self, tolerance: int | None = None):
        self.tolerance = tolerance if tolerance is not None else settings.STRIPE_WEBHOOK_TOLERANCE

    def verify(self, raw_payload: bytes | str, signature_header: str | None, secret: str) -> Optional[PaymentEvent]:
        """Check the signature and normalize the event.

        Args:
            raw_payload: Request body exactly as received.
            signature_header: Value of the ``Stripe-Signature`` header.
            secret: Shared webhook signing secret.

        Returns:
            Optional[PaymentEvent]: The normalized event, or None for event
            types this service does not act on.

        Raises:
            SignatureError: ``NOT_CONFIGURED`` when no secret is set,
                ``MISSING_SIGNATURE``, ``INVALID_SIGNATURE`` or
                ``MALFORMED_PAYLOAD``.
        """
        if not secret:
            raise SignatureError("NOT_CONFIGURED")
        if not signature_header:
            raise SignatureError("MISSING_SIGNATURE")
        payload = raw_payload.decode("utf-8") if isinstance(raw_payload, bytes) else raw_payload
        try:
            stripe.WebhookSignature.verify_header(payload, signature_header, secret, self.tolerance)
        except stripe.SignatureVerificationError as e:
            logger.warning("webhook signature invalid", extra={"error": str(e)})
            raise SignatureError("INVALID_SIGNATURE")

        try:
            event = json.loads(payload)
            event_type = event["type"]
            obj = event["data"]["object"]
        except (ValueError, KeyError, TypeError):
            raise SignatureError("MALFORMED_PAYLOAD")
        return self.normalize(event.get("id", ""), event_type, obj)

    def normalize(self, event_id: str, event_type: str, obj: dict) -> Optional[PaymentEvent]:
        """Map a verified Stripe event body to a ``PaymentEvent`` (or None)."""
        if event_type in SUCCEEDED_EVENTS:
            if event_type == "checkout.session.completed" and obj.get("payment_status") not in PAID_SESSION_STATUSES:
                logger.info("checkout completed without payment yet", extra={"event_id": event_id})
                return None
            kind = PaymentEventKind.PAYMENT_SUCCEEDED
        elif event_type in FAILED_EVENTS:
            kind = PaymentEventKind.PAYMENT_FAILED
        else:
            logger.info("webhook event ignored", extra={"event_id": event_id, "event_type": event_type})
            return None

        metadata = obj.get("metadata") or {}
        order_reference = (
            parse_order_reference(obj.get("client_reference_id"))
            or parse_order_reference(metadata.get("order_id"))
            or parse_order_reference(metadata.get("orderId"))
        )
        if obj.get("object") == "payment_intent":
            payment_reference = obj.get("id") or ""
        else:
            payment_reference = obj.get("payment_intent") or obj.get("id") or ""

        if order_reference is None and not payment_reference:
            logger.warning("webhook event without references", extra={"event_id": event_id, "event_type": event_type})
            return None
        return PaymentEvent(
            kind=kind,
            order_reference=order_reference,
            payment_reference=payment_reference,
            event_id=event_id,
        )
