"""Idempotency utilities for order creation.

A client may send an ``Idempotency-Key`` header with ``POST /api/orders/``.
The first request with a key claims a record; once the order is created its
response is stored so retries with the same payload replay it instead of
creating a second order. Reusing a key with a different payload is a
conflict.
"""

import hashlib
import json

from django.db import IntegrityError, transaction

from .errors import ValidationError
from .models import IdempotencyKey


def _hash(payload: dict) -> str:
    """Stable SHA-256 of a JSON-serializable payload (sorted keys, compact)."""
    body = json.dumps(payload, sort_keys=True, separators=(",", ":"), default=str)
    return hashlib.sha256(body.encode("utf-8")).hexdigest()


@transaction.atomic
def claim(key: str, payload: dict):
    """Get-or-create the record for ``key``.

    Returns:
        tuple[bool, IdempotencyKey]: ``(existing, rec)``. ``existing`` is True
        when the key was seen before with the same payload; the caller
        replays ``rec`` when it holds a stored response.

    Raises:
        ValidationError: ``IDEMPOTENCY_CONFLICT`` when the key exists with a
            different payload hash.
    """
    h = _hash(payload)
    try:
        # savepoint so a duplicate key only rolls back this insert
        with transaction.atomic():
            rec = IdempotencyKey.objects.create(key=key, request_hash=h, response_status=0, response_body={})
            return False, rec
    except IntegrityError:
        rec = IdempotencyKey.objects.select_for_update().get(key=key)
        if rec.request_hash != h:
            raise ValidationError("IDEMPOTENCY_CONFLICT")
        return True, rec


def remember(rec: IdempotencyKey, status_code: int, body: dict, order_id=None) -> None:
    """Store the response of the first request so retries can replay it."""
    rec.response_status = status_code
    rec.response_body = body
    if order_id is not None:
        rec.order_id = order_id
    rec.save(update_fields=["response_status", "response_body", "order"])


def release(rec: IdempotencyKey) -> None:
    """Drop an unanswered claim so a retry with the same key starts over."""
    IdempotencyKey.objects.filter(pk=rec.pk, response_status=0).delete()
