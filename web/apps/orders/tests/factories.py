"""Builders for signed payment webhook payloads used across tests."""

import hashlib
import hmac
import json
import time

WEBHOOK_SECRET = "whsec_test_secret"


def sign(payload: str, secret: str = WEBHOOK_SECRET, timestamp: int | None = None) -> str:
    """Build a ``Stripe-Signature`` header value for ``payload``."""
    ts = int(time.time()) if timestamp is None else timestamp
    mac = hmac.new(secret.encode("utf-8"), f"{ts}.{payload}".encode("utf-8"), hashlib.sha256).hexdigest()
    return f"t={ts},v1={mac}"


def checkout_event(order_id, event_type="checkout.session.completed", payment_intent="pi_test_1", **obj):
    """Serialized Stripe event whose checkout session references ``order_id``."""
    body = {
        "object": "checkout.session",
        "id": "cs_test_1",
        "client_reference_id": f"order_{order_id}" if order_id is not None else None,
        "payment_intent": payment_intent,
        "payment_status": "paid",
        "metadata": {},
    }
    body.update(obj)
    return json.dumps({"id": "evt_test_1", "type": event_type, "data": {"object": body}})
