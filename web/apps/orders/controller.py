"""Order lifecycle controller.

``OrderController`` owns every order status transition. The store only
records; the controller decides. Each transition is written with
``OrderRepository.update(..., expected_status=...)`` so that two duplicate
payment callbacks, or two concurrent ``process_order`` triggers, cannot both
pass the precondition: the loser's conditional update matches no row and the
call ends as a logged no-op.

Collaborators are passed in (ports), which keeps the controller free of
Django settings lookups other than its defaults and lets tests drive it with
stubs.
"""

import csv
import io
import logging
from dataclasses import replace
from typing import Optional

from django.conf import settings

from gateway.context import bound_order_id

from .domain import (
    PENDING_STATUSES,
    CreatedOrder,
    DispatcherPort,
    GenerationPort,
    GenerationResult,
    NotifierPort,
    Order,
    OrderDraft,
    OrderStats,
    OrderStatus,
    PaymentEvent,
    PaymentEventKind,
    can_transition,
    validate_draft,
)
from .errors import GenerationError, NotFoundError, ValidationError
from .notifications import NotificationKind
from .payments import payment_initiation_reference
from .repository import OrderFilter, OrderPage, OrderRepository
from .settings_store import SettingsStore

logger = logging.getLogger("orders.controller")

GENERATION_FAILED_MESSAGE = (
    "We couldn't generate your content due to a technical issue. Please contact support."
)
PAYMENT_FAILED_MESSAGE = "Your payment could not be processed. Please try again or contact support."
PREVIEW_LENGTH = 100

EXPORT_HEADER = ["ID", "Customer Email", "Topic", "Word Count", "Status", "Price", "API Cost", "Created At"]


def format_cents(cents: Optional[int]) -> str:
    """``2500 -> "25.00"``; ``None`` -> ``""``."""
    if cents is None:
        return ""
    return f"{cents // 100}.{cents % 100:02d}"


def content_preview(text: str) -> str:
    return text[:PREVIEW_LENGTH] + "..."


def order_view_url(order_id: int) -> str:
    return f"{settings.BASE_URL.rstrip('/')}/order/{order_id}"


class OrderController:
    """Orchestrates creation, payment confirmation, generation and notification.

    Args:
        repository: Order store.
        generator: Generation client.
        notifier: Notification client; must never raise.
        dispatcher: Hands ``process_order`` to an execution context.
        settings_store: Source of per-operation settings snapshots.
        max_attempts: Generation attempts per ``process_order`` call;
            defaults to ``settings.GENERATION_MAX_ATTEMPTS``.
    """

    def __init__(
        self,
        repository: OrderRepository,
        generator: GenerationPort,
        notifier: NotifierPort,
        dispatcher: DispatcherPort,
        settings_store: Optional[SettingsStore] = None,
        max_attempts: Optional[int] = None,
    ):
        self.repository = repository
        self.generator = generator
        self.notifier = notifier
        self.dispatcher = dispatcher
        self.settings_store = settings_store or SettingsStore()
        if max_attempts is None:
            max_attempts = getattr(settings, "GENERATION_MAX_ATTEMPTS", 1)
        self.max_attempts = max(1, int(max_attempts))

    # ---- Commands ----
    def create_order(self, topic, word_count, customer_email) -> CreatedOrder:
        """Validate input, price it from the current settings and store it.

        Returns:
            CreatedOrder: Id, payment initiation reference and price.

        Raises:
            ValidationError: On out-of-bounds input.
        """
        topic, word_count, customer_email = validate_draft(topic, word_count, customer_email)
        pricing = self.settings_store.snapshot().pricing
        draft = OrderDraft(
            topic=topic,
            word_count=word_count,
            customer_email=customer_email,
            price=word_count * pricing.price_per_word,
        )
        order = self.repository.create(draft)
        with bound_order_id(order.id):
            logger.info("order created", extra={"price": order.price, "word_count": order.word_count})
        return CreatedOrder(
            order_id=order.id,
            payment_initiation_reference=payment_initiation_reference(order.id),
            price=order.price,
        )

    def handle_payment_event(self, event: PaymentEvent) -> Optional[Order]:
        """Apply a verified payment event to its order.

        Only an order in ``CREATED`` is affected; for any other state the
        event is a duplicate or arrived out of order and is ignored.

        Returns:
            Optional[Order]: The order after the call, or None when the
            event references no known order.
        """
        order = self._resolve(event)
        if order is None:
            logger.warning(
                "payment event for unknown order",
                extra={"event_id": event.event_id, "order_reference": event.order_reference},
            )
            return None

        with bound_order_id(order.id):
            if order.status != OrderStatus.CREATED:
                logger.info(
                    "payment event ignored",
                    extra={"event_id": event.event_id, "kind": event.kind.value, "status": order.status.value},
                )
                return order
            if event.kind == PaymentEventKind.PAYMENT_SUCCEEDED:
                return self._confirm_payment(order, event)
            return self._fail_payment(order, event)

    def process_order(self, order_id: int) -> Optional[Order]:
        """Generate the content for a paid order.

        A no-op unless the order is in ``PAYMENT_CONFIRMED``, so duplicate
        triggers and the recovery sweep are safe to run at any time.
        Generation errors end in ``FAILED``; they are never raised.

        Returns:
            Optional[Order]: The order after the call, or None if unknown.
        """
        with bound_order_id(order_id):
            order = self.repository.get(order_id)
            if order is None:
                logger.warning("process requested for unknown order")
                return None
            if order.status != OrderStatus.PAYMENT_CONFIRMED:
                logger.info("process skipped", extra={"status": order.status.value})
                return order

            started = self._transition(order_id, OrderStatus.PAYMENT_CONFIRMED, OrderStatus.PROCESSING)
            if started is None:
                logger.info("process skipped, order advanced concurrently")
                return self.repository.get(order_id)

            self.notifier.notify(
                started.customer_email,
                NotificationKind.GENERATION_STARTED,
                {"order_id": started.id, "topic": started.topic},
            )

            result = self._generate(started)
            if result is None:
                return self._settle_failed(started, GENERATION_FAILED_MESSAGE)

            done = self._transition(
                order_id,
                OrderStatus.PROCESSING,
                OrderStatus.COMPLETE,
                content=result.text,
                api_cost=result.cost_units,
            )
            if done is None:
                logger.error("order left PROCESSING during generation, result discarded")
                return self.repository.get(order_id)
            logger.info("order complete", extra={"api_cost": done.api_cost})
            self.notifier.notify(
                done.customer_email,
                NotificationKind.GENERATION_COMPLETE,
                {
                    "order_id": done.id,
                    "topic": done.topic,
                    "content_preview": content_preview(done.content),
                    "view_url": order_view_url(done.id),
                },
            )
            return done

    def fail_stale_order(self, order_id: int) -> Optional[Order]:
        """Settle an order abandoned in ``PROCESSING`` (e.g. worker crash) as ``FAILED``."""
        with bound_order_id(order_id):
            order = self.repository.get(order_id)
            if order is None or order.status != OrderStatus.PROCESSING:
                return order
            logger.warning("stale processing order failed by sweep")
            return self._settle_failed(order, GENERATION_FAILED_MESSAGE)

    # ---- Queries ----
    def get_order(self, order_id: int) -> Optional[Order]:
        return self.repository.get(order_id)

    def require_order(self, order_id: int) -> Order:
        order = self.repository.get(order_id)
        if order is None:
            raise NotFoundError(f"order {order_id} not found")
        return order

    def list_orders(self, flt: Optional[OrderFilter] = None) -> OrderPage:
        return self.repository.list(flt or OrderFilter())

    def recent_orders(self, limit: int = 5) -> list[Order]:
        return self.repository.list(OrderFilter(page=1, page_size=limit)).items

    def get_stats(self) -> OrderStats:
        summary = self.repository.summary()
        pending = sum(summary.by_status.get(s.value, 0) for s in PENDING_STATUSES)
        return OrderStats(total_orders=summary.total, pending_orders=pending, total_revenue=summary.revenue)

    def export_orders(self, flt: Optional[OrderFilter] = None, max_rows: Optional[int] = None) -> str:
        """Render the filtered orders as CSV text, newest first.

        Free-text columns are quoted by the csv module whenever they contain
        a comma, quote or newline; embedded quotes are doubled.
        """
        max_rows = max_rows or settings.ORDERS_EXPORT_MAX_ROWS
        page = self.repository.list(replace(flt or OrderFilter(), page=1, page_size=max_rows))

        buf = io.StringIO()
        writer = csv.writer(buf, lineterminator="\n")
        writer.writerow(EXPORT_HEADER)
        for o in page.items:
            writer.writerow([
                o.id,
                o.customer_email,
                o.topic,
                o.word_count,
                o.status.value,
                format_cents(o.price),
                format_cents(o.api_cost),
                o.created_at.isoformat() if o.created_at else "",
            ])
        logger.info("orders exported", extra={"rows": len(page.items), "total": page.total})
        return buf.getvalue()

    # ---- Internals ----
    def _transition(self, order_id: int, current: OrderStatus, target: OrderStatus, **fields) -> Optional[Order]:
        """Move ``current -> target`` by compare-and-swap; None when the order is no longer ``current``.

        Raises:
            ValueError: ``ILLEGAL_TRANSITION`` when the edge is not in ``TRANSITIONS``.
        """
        if not can_transition(current, target):
            raise ValueError("ILLEGAL_TRANSITION")
        return self.repository.update(order_id, {"status": target, **fields}, expected_status=current)

    def _resolve(self, event: PaymentEvent) -> Optional[Order]:
        order = None
        if event.order_reference is not None:
            order = self.repository.get(event.order_reference)
        if order is None and event.payment_reference:
            order = self.repository.get_by_payment_reference(event.payment_reference)
        return order

    def _confirm_payment(self, order: Order, event: PaymentEvent) -> Optional[Order]:
        fields = {}
        if event.payment_reference:
            fields["payment_reference"] = event.payment_reference
        try:
            confirmed = self._transition(order.id, OrderStatus.CREATED, OrderStatus.PAYMENT_CONFIRMED, **fields)
        except ValidationError as e:
            logger.error(
                "payment reference rejected",
                extra={"error": str(e), "payment_reference": event.payment_reference},
            )
            return self.repository.get(order.id)
        if confirmed is None:
            logger.info("payment event ignored, order advanced concurrently", extra={"event_id": event.event_id})
            return self.repository.get(order.id)

        logger.info("payment confirmed", extra={"event_id": event.event_id})
        self.notifier.notify(
            confirmed.customer_email,
            NotificationKind.ORDER_RECEIVED,
            {
                "order_id": confirmed.id,
                "topic": confirmed.topic,
                "word_count": confirmed.word_count,
                "amount": format_cents(confirmed.price),
            },
        )
        self.dispatch_processing(confirmed.id)
        return self.repository.get(confirmed.id)

    def _fail_payment(self, order: Order, event: PaymentEvent) -> Optional[Order]:
        failed = self._transition(order.id, OrderStatus.CREATED, OrderStatus.FAILED)
        if failed is None:
            logger.info("payment event ignored, order advanced concurrently", extra={"event_id": event.event_id})
            return self.repository.get(order.id)
        logger.info("payment failed", extra={"event_id": event.event_id})
        self.notifier.notify(
            failed.customer_email,
            NotificationKind.PAYMENT_FAILED,
            {"order_id": failed.id, "topic": failed.topic, "error_message": PAYMENT_FAILED_MESSAGE},
        )
        return failed

    def dispatch_processing(self, order_id: int) -> bool:
        """Hand ``process_order`` to the dispatcher; False if it could not be scheduled."""
        try:
            self.dispatcher.dispatch(order_id, self.process_order)
        except Exception:
            # the order stays PAYMENT_CONFIRMED and is picked up by process_pending_orders
            logger.exception("dispatch of process_order failed", extra={"order_id": order_id})
            return False
        return True

    def _generate(self, order: Order) -> Optional[GenerationResult]:
        for attempt in range(1, self.max_attempts + 1):
            try:
                return self.generator.generate(order.topic, order.word_count)
            except GenerationError as e:
                logger.warning(
                    "generation failed",
                    extra={"attempt": attempt, "reason": e.reason, "detail": e.detail},
                )
            except Exception:
                logger.exception("generation raised unexpectedly", extra={"attempt": attempt})
        return None

    def _settle_failed(self, order: Order, message: str) -> Optional[Order]:
        failed = self._transition(order.id, OrderStatus.PROCESSING, OrderStatus.FAILED)
        if failed is None:
            logger.error("could not mark order FAILED, status changed concurrently")
            return self.repository.get(order.id)
        logger.info("order failed")
        self.notifier.notify(
            failed.customer_email,
            NotificationKind.GENERATION_FAILED,
            {"order_id": failed.id, "topic": failed.topic, "error_message": message},
        )
        return failed
