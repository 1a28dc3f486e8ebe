"""Repository layer for persisting orders.

``OrderRepository`` is the order store: a pure record keeper over the Django
ORM that returns domain ``Order`` objects so the controller is not coupled
to ORM types. It owns durability and per-record write serialization; it
knows nothing about which status transitions are legal. The controller
gets its compare-and-swap primitive from ``update(..., expected_status=...)``,
which is a single conditional ``UPDATE`` statement.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Iterable, Optional

from django.core.paginator import EmptyPage, Paginator
from django.db import IntegrityError, transaction
from django.db.models import CharField, Count, Q, Sum
from django.db.models.functions import Cast
from django.utils import timezone

from .domain import Order, OrderDraft, OrderStatus, validate_draft
from .errors import ValidationError
from .models import OrderModel

UPDATABLE_FIELDS = {"status", "api_cost", "content", "payment_reference"}


@dataclass
class OrderFilter:
    """Listing criteria.

    Attributes:
        status: Only orders in this status.
        search: Case-insensitive match on email, topic or numeric id.
        date: Preset window: ``today``, ``week``, ``month`` or ``all``.
        created_from: Inclusive lower bound on ``created_at``.
        created_to: Inclusive upper bound on ``created_at``.
        page: 1-based page number.
        page_size: Items per page.
        anchor: Highest id of the paginated window. ``None`` means "now";
            the resolved value is returned with the page so later pages
            ignore orders inserted after the first one was served.
    """

    status: Optional[OrderStatus] = None
    search: Optional[str] = None
    date: Optional[str] = None
    created_from: Optional[datetime] = None
    created_to: Optional[datetime] = None
    page: int = 1
    page_size: int = 10
    anchor: Optional[int] = None


@dataclass
class OrderPage:
    items: list[Order] = field(default_factory=list)
    total: int = 0
    anchor: Optional[int] = None
    page: int = 1
    page_size: int = 10

    @property
    def total_pages(self) -> int:
        return (self.total + self.page_size - 1) // self.page_size if self.page_size else 0


@dataclass
class OrderSummary:
    total: int
    by_status: dict
    revenue: int


def to_domain(obj: OrderModel) -> Order:
    """Map an ``OrderModel`` row to a domain ``Order``."""
    return Order(
        id=obj.id,
        topic=obj.topic,
        word_count=obj.word_count,
        status=OrderStatus(obj.status),
        price=obj.price,
        customer_email=obj.customer_email,
        api_cost=obj.api_cost,
        content=obj.content,
        payment_reference=obj.payment_reference,
        created_at=obj.created_at,
        updated_at=obj.updated_at,
    )


def _date_window_start(preset: str, now: datetime) -> Optional[datetime]:
    if preset == "today":
        return now.replace(hour=0, minute=0, second=0, microsecond=0)
    if preset == "week":
        return now - timedelta(days=7)
    if preset == "month":
        return now - timedelta(days=30)
    return None


class OrderRepository:
    """Order store backed by ``OrderModel``."""

    def create(self, draft: OrderDraft) -> Order:
        """Persist a new order in ``CREATED``.

        Args:
            draft: Validated customer input plus the price snapshot.

        Returns:
            Order: The stored order with its assigned id and timestamps.

        Raises:
            ValidationError: If topic, word count or email are out of bounds,
                or the price is negative.
        """
        topic, word_count, email = validate_draft(draft.topic, draft.word_count, draft.customer_email)
        if draft.price < 0:
            raise ValidationError("INVALID_PRICE")
        obj = OrderModel.objects.create(
            topic=topic,
            word_count=word_count,
            customer_email=email,
            price=draft.price,
            status=OrderStatus.CREATED.value,
        )
        return to_domain(obj)

    def get(self, order_id: int) -> Optional[Order]:
        obj = OrderModel.objects.filter(pk=order_id).first()
        return to_domain(obj) if obj else None

    def get_by_payment_reference(self, ref: str) -> Optional[Order]:
        if not ref:
            return None
        obj = OrderModel.objects.filter(payment_reference=ref).first()
        return to_domain(obj) if obj else None

    def update(self, order_id: int, fields: dict, expected_status: Optional[OrderStatus] = None) -> Optional[Order]:
        """Apply ``fields`` to one order atomically and bump ``updated_at``.

        The write is one ``UPDATE ... WHERE id = %s [AND status = %s]``, so
        two callers racing on the same ``expected_status`` cannot both
        succeed.

        Args:
            order_id: Target order.
            fields: Subset of ``status``, ``api_cost``, ``content``,
                ``payment_reference``.
            expected_status: When given, only update if the stored status
                still equals it.

        Returns:
            Optional[Order]: The updated order, or None when the id is unknown
            or the status guard did not match.

        Raises:
            ValidationError: ``UNKNOWN_FIELD`` for fields outside the
                updatable set, ``PAYMENT_REFERENCE_TAKEN`` when another order
                already owns the payment reference.
        """
        unknown = set(fields) - UPDATABLE_FIELDS
        if unknown:
            raise ValidationError("UNKNOWN_FIELD")
        values = {k: (v.value if isinstance(v, OrderStatus) else v) for k, v in fields.items()}
        values["updated_at"] = timezone.now()

        qs = OrderModel.objects.filter(pk=order_id)
        if expected_status is not None:
            qs = qs.filter(status=OrderStatus(expected_status).value)
        try:
            with transaction.atomic():
                touched = qs.update(**values)
        except IntegrityError:
            raise ValidationError("PAYMENT_REFERENCE_TAKEN")
        if not touched:
            return None
        return self.get(order_id)

    def list(self, flt: OrderFilter) -> OrderPage:
        """Return one page of orders, newest first.

        Args:
            flt: Filter, pagination and anchor parameters.

        Returns:
            OrderPage: Items of the requested page, the total matching count
            within the anchored window, and the anchor used.
        """
        anchor = flt.anchor
        if anchor is None:
            anchor = OrderModel.objects.order_by("-id").values_list("id", flat=True).first() or 0

        qs = OrderModel.objects.filter(id__lte=anchor)
        if flt.status:
            qs = qs.filter(status=OrderStatus(flt.status).value)
        if flt.search:
            term = flt.search.strip()
            qs = qs.annotate(id_text=Cast("id", output_field=CharField())).filter(
                Q(customer_email__icontains=term) | Q(topic__icontains=term) | Q(id_text__contains=term)
            )
        if flt.date and flt.date != "all":
            start = _date_window_start(flt.date, timezone.now())
            if start is not None:
                qs = qs.filter(created_at__gte=start)
        if flt.created_from:
            qs = qs.filter(created_at__gte=flt.created_from)
        if flt.created_to:
            qs = qs.filter(created_at__lte=flt.created_to)

        paginator = Paginator(qs.order_by("-id"), flt.page_size)
        try:
            rows = list(paginator.page(flt.page).object_list)
        except EmptyPage:
            rows = []
        return OrderPage(
            items=[to_domain(o) for o in rows],
            total=paginator.count,
            anchor=anchor,
            page=flt.page,
            page_size=flt.page_size,
        )

    def summary(self) -> OrderSummary:
        """Counts per status and total revenue (sum of ``price``)."""
        by_status = {
            row["status"]: row["n"]
            for row in OrderModel.objects.order_by().values("status").annotate(n=Count("id"))
        }
        revenue = OrderModel.objects.aggregate(total=Sum("price"))["total"] or 0
        return OrderSummary(total=sum(by_status.values()), by_status=by_status, revenue=revenue)

    def ids_in_status(
        self,
        status: OrderStatus,
        updated_before: Optional[datetime] = None,
        limit: int = 100,
    ) -> Iterable[int]:
        """Ids of orders currently in ``status``, oldest first."""
        qs = OrderModel.objects.filter(status=OrderStatus(status).value)
        if updated_before is not None:
            qs = qs.filter(updated_at__lt=updated_before)
        return list(qs.order_by("id").values_list("id", flat=True)[:limit])
