"""Tests for request correlation middleware and logging filters."""

import logging

import pytest

from gateway.context import ORDER_ID_CTX, REQUEST_ID_CTX, bound_order_id
from gateway.logging_filters import OrderIdFilter, RequestIdFilter


def _record(**extra):
    record = logging.LogRecord("orders", logging.INFO, __file__, 1, "msg", None, None)
    for k, v in extra.items():
        setattr(record, k, v)
    return record


def test_filters_default_to_dash():
    record = _record()
    assert RequestIdFilter().filter(record) and OrderIdFilter().filter(record)
    assert record.request_id == "-"
    assert record.order_id == "-"


def test_filters_read_context_and_respect_extra():
    token = REQUEST_ID_CTX.set("rid-1")
    try:
        with bound_order_id(42):
            bound = _record()
            explicit = _record(order_id=7)
            RequestIdFilter().filter(bound)
            OrderIdFilter().filter(bound)
            OrderIdFilter().filter(explicit)
    finally:
        REQUEST_ID_CTX.reset(token)

    assert bound.request_id == "rid-1"
    assert bound.order_id == "42"
    assert explicit.order_id == 7
    assert ORDER_ID_CTX.get() == "-"


@pytest.mark.django_db
def test_request_id_is_echoed_or_generated(client):
    r = client.get("/api/orders/999/", HTTP_X_REQUEST_ID="abc-123")
    assert r["X-Request-ID"] == "abc-123"

    generated = client.get("/api/orders/999/")["X-Request-ID"]
    assert len(generated) == 36
    assert REQUEST_ID_CTX.get() == "-"


def test_oversized_api_payload_is_rejected(client, monkeypatch):
    from gateway import middleware

    monkeypatch.setattr(middleware, "MAX_API_BYTES", 10)
    r = client.post("/api/orders/", data={"topic": "x" * 50}, content_type="application/json")
    assert r.status_code == 413
    assert r.json() == {"detail": "PAYLOAD_TOO_LARGE"}
