"""API tests for the payment webhook: verification first, always acknowledge."""

import pytest

from apps.orders.controller import OrderController
from apps.orders.models import OrderModel
from apps.orders.repository import OrderRepository
from apps.orders.tests.factories import checkout_event, sign

WEBHOOK_URL = "/api/payments/webhook/"


def _order(client):
    r = client.post(
        "/api/orders/",
        data={"topic": "solar panels", "word_count": 500, "customer_email": "a@b.com"},
        content_type="application/json",
    )
    return r.json()["order_id"]


def _deliver(client, payload, signature):
    return client.post(WEBHOOK_URL, data=payload, content_type="application/json", HTTP_STRIPE_SIGNATURE=signature)


@pytest.mark.django_db
def test_paid_checkout_runs_the_order_to_completion(client):
    order_id = _order(client)
    payload = checkout_event(order_id, payment_intent="pi_live_1")

    r = _deliver(client, payload, sign(payload))

    assert r.status_code == 200
    assert r.json() == {"received": True}
    order = OrderModel.objects.get(pk=order_id)
    assert order.status == "COMPLETE"
    assert order.payment_reference == "pi_live_1"

    public = client.get(f"/api/orders/{order_id}/").json()
    assert public["status_message"] == "complete"
    assert public["content"] == order.content


@pytest.mark.django_db
def test_redelivery_is_acknowledged_without_effect(client, monkeypatch):
    order_id = _order(client)
    payload = checkout_event(order_id)
    _deliver(client, payload, sign(payload))
    before = OrderModel.objects.get(pk=order_id)

    r = _deliver(client, payload, sign(payload))

    assert r.status_code == 200
    after = OrderModel.objects.get(pk=order_id)
    assert after.status == before.status
    assert after.updated_at == before.updated_at


@pytest.mark.django_db
def test_failed_payment(client):
    order_id = _order(client)
    payload = checkout_event(order_id, event_type="checkout.session.async_payment_failed", payment_status="unpaid")

    assert _deliver(client, payload, sign(payload)).status_code == 200
    order = OrderModel.objects.get(pk=order_id)
    assert order.status == "FAILED"
    assert order.content is None and order.api_cost is None


@pytest.mark.django_db
def test_bad_signature_is_rejected_before_any_lookup(client, monkeypatch):
    order_id = _order(client)
    payload = checkout_event(order_id)
    lookups = []
    monkeypatch.setattr(OrderRepository, "get", lambda self, oid: lookups.append(oid))
    monkeypatch.setattr(OrderRepository, "get_by_payment_reference", lambda self, ref: lookups.append(ref))

    r = _deliver(client, payload, sign(payload, secret="whsec_attacker"))

    assert r.status_code == 400
    assert r.json() == {"detail": "INVALID_SIGNATURE"}
    assert lookups == []
    monkeypatch.undo()
    order = OrderModel.objects.get(pk=order_id)
    assert order.status == "CREATED"
    assert order.payment_reference is None


@pytest.mark.django_db
def test_missing_signature_header(client):
    payload = checkout_event(1)
    r = client.post(WEBHOOK_URL, data=payload, content_type="application/json")
    assert r.status_code == 400
    assert r.json() == {"detail": "MISSING_SIGNATURE"}


@pytest.mark.django_db
def test_unhandled_event_types_are_acknowledged(client):
    payload = checkout_event(1, event_type="invoice.paid")
    assert _deliver(client, payload, sign(payload)).status_code == 200


@pytest.mark.django_db
def test_processing_errors_still_acknowledge(client, monkeypatch):
    order_id = _order(client)
    payload = checkout_event(order_id)

    def explode(self, event):
        raise RuntimeError("database went away")

    monkeypatch.setattr(OrderController, "handle_payment_event", explode)

    r = _deliver(client, payload, sign(payload))
    assert r.status_code == 200
    assert r.json() == {"received": True}


@pytest.mark.django_db
def test_secret_from_settings_store_is_used(client, admin_client):
    admin_client.patch(
        "/api/settings/api-keys/",
        data={"stripe_webhook_secret": "whsec_rotated"},
        content_type="application/json",
    )
    order_id = _order(client)
    payload = checkout_event(order_id)

    assert _deliver(client, payload, sign(payload)).status_code == 400
    assert _deliver(client, payload, sign(payload, secret="whsec_rotated")).status_code == 200
