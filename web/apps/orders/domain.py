"""Domain models and ports for content orders.

This module contains the dataclasses used as DTOs between the controller,
the repository and the adapters, the order status graph, and protocol
definitions (ports) for the external collaborators: the text generation
provider, the notification channel and the dispatcher that hands
``process_order`` off to another execution context.
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Callable, Optional, Protocol

from django.core.exceptions import ValidationError as DjangoValidationError
from django.core.validators import validate_email

from .errors import ValidationError

MIN_WORD_COUNT = 100
MAX_WORD_COUNT = 5000
MAX_TOPIC_LENGTH = 500


# ---- Enums ----
class OrderStatus(str, Enum):
    """Lifecycle states of an order.

    ``CREATED`` is the only initial state; ``COMPLETE`` and ``FAILED`` are
    terminal.
    """

    CREATED = "CREATED"
    PAYMENT_CONFIRMED = "PAYMENT_CONFIRMED"
    PROCESSING = "PROCESSING"
    COMPLETE = "COMPLETE"
    FAILED = "FAILED"


TRANSITIONS: dict[OrderStatus, frozenset[OrderStatus]] = {
    OrderStatus.CREATED: frozenset({OrderStatus.PAYMENT_CONFIRMED, OrderStatus.FAILED}),
    OrderStatus.PAYMENT_CONFIRMED: frozenset({OrderStatus.PROCESSING, OrderStatus.FAILED}),
    OrderStatus.PROCESSING: frozenset({OrderStatus.COMPLETE, OrderStatus.FAILED}),
    OrderStatus.COMPLETE: frozenset(),
    OrderStatus.FAILED: frozenset(),
}

PENDING_STATUSES = (
    OrderStatus.CREATED,
    OrderStatus.PAYMENT_CONFIRMED,
    OrderStatus.PROCESSING,
)

# What a customer sees on the status page; never internal error detail.
CUSTOMER_STATUS_MESSAGES = {
    OrderStatus.CREATED: "awaiting processing",
    OrderStatus.PAYMENT_CONFIRMED: "awaiting processing",
    OrderStatus.PROCESSING: "in progress",
    OrderStatus.COMPLETE: "complete",
    OrderStatus.FAILED: "contact support",
}


def can_transition(current: OrderStatus, target: OrderStatus) -> bool:
    """Return True when ``current -> target`` is an edge of the status graph."""
    return target in TRANSITIONS[OrderStatus(current)]


class PaymentEventKind(str, Enum):
    PAYMENT_SUCCEEDED = "PAYMENT_SUCCEEDED"
    PAYMENT_FAILED = "PAYMENT_FAILED"


# ---- Entities / DTOs ----
@dataclass(frozen=True)
class OrderDraft:
    """Customer input for a new order, with the price already computed.

    Attributes:
        topic: Subject of the requested text.
        word_count: Target length, within [100, 5000].
        customer_email: Address every notification for the order goes to.
        price: Integer cents, ``word_count * price_per_word`` at creation.
    """

    topic: str
    word_count: int
    customer_email: str
    price: int


@dataclass
class Order:
    """Container for order data as stored.

    Attributes:
        id: Monotonic integer identifier.
        topic: Subject of the requested text.
        word_count: Target length of the text.
        status: Current OrderStatus.
        price: Price in integer cents, frozen at creation.
        customer_email: Contact address.
        api_cost: Provider cost in cents, set together with ``content``.
        content: Generated text, set once on success.
        payment_reference: External payment id, set once on confirmation.
        created_at: Creation timestamp.
        updated_at: Timestamp of the last mutation.
    """

    id: int
    topic: str
    word_count: int
    status: OrderStatus
    price: int
    customer_email: str
    api_cost: Optional[int] = None
    content: Optional[str] = None
    payment_reference: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def status_message(self) -> str:
        return CUSTOMER_STATUS_MESSAGES[self.status]


@dataclass(frozen=True)
class PaymentEvent:
    """Normalized, verified payment provider event.

    Attributes:
        kind: Succeeded or failed.
        order_reference: Order id carried by the checkout, when known.
        payment_reference: Provider payment identifier.
        event_id: Provider event id, for logs.
    """

    kind: PaymentEventKind
    order_reference: Optional[int]
    payment_reference: str
    event_id: str = ""


@dataclass(frozen=True)
class GenerationResult:
    """Generated text and its provider cost in integer cents."""

    text: str
    cost_units: int


@dataclass(frozen=True)
class CreatedOrder:
    order_id: int
    payment_initiation_reference: str
    price: int


@dataclass(frozen=True)
class OrderStats:
    total_orders: int
    pending_orders: int
    total_revenue: int


def cost_from_usage(prompt_tokens: int, completion_tokens: int, input_cents_per_1k: int, output_cents_per_1k: int) -> int:
    """Convert provider-reported token usage to integer cents, rounding half up."""
    millicents = prompt_tokens * input_cents_per_1k + completion_tokens * output_cents_per_1k
    return (millicents + 500) // 1000


def validate_draft(topic, word_count, customer_email) -> tuple[str, int, str]:
    """Validate and normalize raw order input.

    Args:
        topic: Free text subject; surrounding whitespace is stripped.
        word_count: Integer in the inclusive range [100, 5000].
        customer_email: Contact address; surrounding whitespace is stripped.

    Returns:
        tuple[str, int, str]: The normalized ``(topic, word_count, email)``.

    Raises:
        ValidationError: With one of ``INVALID_TOPIC``,
            ``INVALID_WORD_COUNT``, ``WORD_COUNT_OUT_OF_RANGE`` or
            ``INVALID_EMAIL``.
    """
    if not isinstance(topic, str) or not topic.strip() or len(topic.strip()) > MAX_TOPIC_LENGTH:
        raise ValidationError("INVALID_TOPIC")
    if isinstance(word_count, bool) or not isinstance(word_count, int):
        raise ValidationError("INVALID_WORD_COUNT")
    if not MIN_WORD_COUNT <= word_count <= MAX_WORD_COUNT:
        raise ValidationError("WORD_COUNT_OUT_OF_RANGE")
    if not isinstance(customer_email, str):
        raise ValidationError("INVALID_EMAIL")
    email = customer_email.strip()
    try:
        validate_email(email)
    except DjangoValidationError:
        raise ValidationError("INVALID_EMAIL")
    return topic.strip(), word_count, email


# ---- Ports (DIP) ----
class GenerationPort(Protocol):
    """Port for the text generation provider.

    Implementations must derive ``cost_units`` from provider-reported usage
    and must not retry internally.
    """

    def generate(self, topic: str, word_count: int) -> GenerationResult:
        """Generate text for ``topic`` of roughly ``word_count`` words.

        Raises:
            GenerationError: On provider error, timeout or empty response.
        """
        raise NotImplementedError()


class NotifierPort(Protocol):
    """Port for customer notifications. Implementations never raise."""

    def notify(self, to: str, kind, data: dict) -> None:
        raise NotImplementedError()


class DispatcherPort(Protocol):
    """Port that hands an order id to ``handler`` on some execution context.

    Raises:
        RuntimeError: When the task cannot be scheduled.
    """

    def dispatch(self, order_id: int, handler: Callable[[int], object]) -> None:
        raise NotImplementedError()
