"""Unit tests for the order status graph, input validation and cost rules."""

import pytest

from apps.orders.domain import (
    CUSTOMER_STATUS_MESSAGES,
    TRANSITIONS,
    Order,
    OrderStatus,
    can_transition,
    cost_from_usage,
    validate_draft,
)
from apps.orders.errors import ValidationError


def test_transition_graph_edges():
    assert can_transition(OrderStatus.CREATED, OrderStatus.PAYMENT_CONFIRMED)
    assert can_transition(OrderStatus.CREATED, OrderStatus.FAILED)
    assert can_transition(OrderStatus.PAYMENT_CONFIRMED, OrderStatus.PROCESSING)
    assert can_transition(OrderStatus.PROCESSING, OrderStatus.COMPLETE)
    assert can_transition(OrderStatus.PROCESSING, OrderStatus.FAILED)
    assert not can_transition(OrderStatus.CREATED, OrderStatus.PROCESSING)
    assert not can_transition(OrderStatus.PAYMENT_CONFIRMED, OrderStatus.COMPLETE)


@pytest.mark.parametrize("terminal", [OrderStatus.COMPLETE, OrderStatus.FAILED])
def test_terminal_states_have_no_exit(terminal):
    assert not TRANSITIONS[terminal]
    for target in OrderStatus:
        assert not can_transition(terminal, target)


def test_customer_messages_are_coarse():
    order = Order(id=1, topic="t", word_count=100, status=OrderStatus.FAILED, price=500, customer_email="a@b.com")
    assert order.status_message == "contact support"
    assert CUSTOMER_STATUS_MESSAGES[OrderStatus.CREATED] == "awaiting processing"
    assert CUSTOMER_STATUS_MESSAGES[OrderStatus.PROCESSING] == "in progress"


def test_validate_draft_normalizes():
    assert validate_draft("  solar panels ", 500, " a@b.com ") == ("solar panels", 500, "a@b.com")


@pytest.mark.parametrize(
    "topic,word_count,email,code",
    [
        ("", 500, "a@b.com", "INVALID_TOPIC"),
        ("   ", 500, "a@b.com", "INVALID_TOPIC"),
        ("x" * 501, 500, "a@b.com", "INVALID_TOPIC"),
        ("ok", "500", "a@b.com", "INVALID_WORD_COUNT"),
        ("ok", True, "a@b.com", "INVALID_WORD_COUNT"),
        ("ok", 99, "a@b.com", "WORD_COUNT_OUT_OF_RANGE"),
        ("ok", 5001, "a@b.com", "WORD_COUNT_OUT_OF_RANGE"),
        ("ok", 500, "not-an-email", "INVALID_EMAIL"),
        ("ok", 500, None, "INVALID_EMAIL"),
    ],
)
def test_validate_draft_rejects(topic, word_count, email, code):
    with pytest.raises(ValidationError) as exc:
        validate_draft(topic, word_count, email)
    assert str(exc.value) == code


def test_word_count_bounds_are_inclusive():
    assert validate_draft("ok", 100, "a@b.com")[1] == 100
    assert validate_draft("ok", 5000, "a@b.com")[1] == 5000


def test_cost_from_usage_rounds_half_up():
    # 1000 * 1 + 1000 * 3 = 4000 millicents -> 4 cents
    assert cost_from_usage(1000, 1000, 1, 3) == 4
    # 500 millicents -> 1 cent, 499 -> 0
    assert cost_from_usage(500, 0, 1, 3) == 1
    assert cost_from_usage(499, 0, 1, 3) == 0
    assert cost_from_usage(0, 0, 1, 3) == 0
