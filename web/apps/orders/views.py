"""HTTP views for the orders app.

Views are kept intentionally small: they validate requests (via Pydantic),
delegate to the ``OrderController`` obtained from ``get_order_controller()``
and shape the response. Customer-facing endpoints never expose internal
error detail; administrative endpoints sit behind DRF's ``IsAdminUser``.

Idempotency: when an ``Idempotency-Key`` header is provided on order
creation, the first request stores its response and retries with the same
payload replay it (header ``Idempotent-Replay: true``). Reusing the key with
a different payload returns HTTP 409.

The payment webhook is authenticated by its signature only. It answers 400
when the signature cannot be verified and 200 otherwise, even if handling the
event failed, so the provider does not redeliver endlessly.
"""

import logging

from django.conf import settings
from django.http import HttpResponse
from django.utils import timezone
from pydantic import ValidationError as PydanticValidationError
from rest_framework import status
from rest_framework.permissions import AllowAny, IsAdminUser
from rest_framework.response import Response
from rest_framework.throttling import ScopedRateThrottle
from rest_framework.views import APIView

from .errors import NotFoundError, SignatureError, ValidationError
from .idempotency import claim, release, remember
from .notifications import EmailNotifier
from .providers import get_order_controller, get_webhook_verifier
from .repository import OrderFilter
from .schemas import CreateOrderDTO, OrderAdminDTO, OrderListQuery, OrderPublicDTO
from .settings_store import SettingsStore

logger = logging.getLogger("orders.views")

SECTION_ALIASES = {"pricing": "pricing", "email": "email", "api-keys": "api_keys", "api_keys": "api_keys"}


def _invalid(e: PydanticValidationError) -> Response:
    return Response(
        {"detail": "VALIDATION_ERROR", "errors": e.errors(include_url=False, include_context=False)},
        status=status.HTTP_400_BAD_REQUEST,
    )


def _filter_from_query(request):
    """Build an ``OrderFilter`` from query params; raises pydantic's ValidationError."""
    q = OrderListQuery.model_validate(request.query_params.dict())
    return OrderFilter(
        status=q.status,
        search=q.search,
        date=q.date,
        created_from=q.created_from,
        created_to=q.created_to,
        page=q.page,
        page_size=q.page_size,
        anchor=q.anchor,
    )


class OrdersCollectionView(APIView):
    """Create an order (public) or list orders (admin)."""

    throttle_classes = [ScopedRateThrottle]

    def get_throttles(self):
        # DRF evaluates throttles in initial(), before get/post
        self.throttle_scope = "orders_list" if self.request.method == "GET" else "orders_create"
        return super().get_throttles()

    def get_permissions(self):
        if self.request.method == "GET":
            return [IsAdminUser()]
        return [AllowAny()]

    def get(self, request):
        try:
            flt = _filter_from_query(request)
        except PydanticValidationError as e:
            return _invalid(e)

        page = get_order_controller().list_orders(flt)
        return Response(
            {
                "count": page.total,
                "page": page.page,
                "page_size": page.page_size,
                "total_pages": page.total_pages,
                "anchor": page.anchor,
                "results": [OrderAdminDTO.from_order(o).model_dump(mode="json") for o in page.items],
            },
            status=200,
        )

    def post(self, request):
        """Create a new order.

        Returns:
            Response: One of the following responses.
            - 201 with {order_id, payment_initiation_reference, price}.
            - 201 with the stored body and ``Idempotent-Replay: true`` when the
              same idempotency key and payload are retried.
            - 409 with {detail: "IDEMPOTENCY_CONFLICT"} when the same key is
              reused with a different payload.
            - 400 for validation errors.
        """
        idem_key = request.headers.get("Idempotency-Key")

        try:
            dto = CreateOrderDTO.model_validate(request.data)
        except PydanticValidationError as e:
            return _invalid(e)

        rec = None
        if idem_key:
            try:
                existing, rec = claim(idem_key, dto.model_dump())
            except ValidationError:
                return Response({"detail": "IDEMPOTENCY_CONFLICT"}, status=status.HTTP_409_CONFLICT)
            if existing:
                if not rec.response_status:
                    return Response({"detail": "IDEMPOTENCY_IN_PROGRESS"}, status=status.HTTP_409_CONFLICT)
                resp = Response(rec.response_body, status=rec.response_status)
                resp["Idempotent-Replay"] = "true"
                return resp

        try:
            created = get_order_controller().create_order(dto.topic, dto.word_count, dto.customer_email)
        except ValidationError as e:
            body = {"detail": str(e)}
            if rec:
                remember(rec, status.HTTP_400_BAD_REQUEST, body)
            return Response(body, status=status.HTTP_400_BAD_REQUEST)
        except Exception:
            if rec:
                release(rec)
            raise

        body = {
            "order_id": created.order_id,
            "payment_initiation_reference": created.payment_initiation_reference,
            "price": created.price,
        }
        if rec:
            remember(rec, status.HTTP_201_CREATED, body, order_id=created.order_id)
        return Response(body, status=status.HTTP_201_CREATED)


class RetrieveOrderView(APIView):
    """Customer status page data for one order."""

    throttle_classes = [ScopedRateThrottle]
    throttle_scope = "orders_detail"
    permission_classes = [AllowAny]

    def get(self, request, oid: int):
        order = get_order_controller().get_order(oid)
        if order is None:
            return Response({"detail": "NOT_FOUND"}, status=status.HTTP_404_NOT_FOUND)
        return Response(OrderPublicDTO.from_order(order).model_dump(mode="json"), status=200)


class ProcessOrderView(APIView):
    """Operator re-trigger of ``process_order`` for a paid order."""

    permission_classes = [IsAdminUser]

    def post(self, request, oid: int):
        controller = get_order_controller()
        try:
            controller.require_order(oid)
        except NotFoundError:
            return Response({"detail": "NOT_FOUND"}, status=status.HTTP_404_NOT_FOUND)
        if not controller.dispatch_processing(oid):
            return Response({"detail": "DISPATCH_FAILED"}, status=status.HTTP_503_SERVICE_UNAVAILABLE)
        order = controller.get_order(oid)
        return Response(
            {"order_id": oid, "status": order.status.value},
            status=status.HTTP_202_ACCEPTED,
        )


class RecentOrdersView(APIView):
    permission_classes = [IsAdminUser]

    def get(self, request):
        try:
            limit = int(request.query_params.get("limit", 5))
        except ValueError:
            return Response({"detail": "INVALID_LIMIT"}, status=status.HTTP_400_BAD_REQUEST)
        limit = min(max(limit, 1), 50)
        orders = get_order_controller().recent_orders(limit)
        return Response({"results": [OrderAdminDTO.from_order(o).model_dump(mode="json") for o in orders]})


class ExportOrdersView(APIView):
    """CSV download of the filtered orders (paging parameters are ignored)."""

    permission_classes = [IsAdminUser]

    def get(self, request):
        try:
            flt = _filter_from_query(request)
        except PydanticValidationError as e:
            return _invalid(e)
        text = get_order_controller().export_orders(flt)
        resp = HttpResponse(text, content_type="text/csv; charset=utf-8")
        resp["Content-Disposition"] = f'attachment; filename="orders-{timezone.now():%Y-%m-%d}.csv"'
        return resp


class StatsView(APIView):
    permission_classes = [IsAdminUser]

    def get(self, request):
        stats = get_order_controller().get_stats()
        return Response(
            {
                "total_orders": stats.total_orders,
                "pending_orders": stats.pending_orders,
                "total_revenue": stats.total_revenue,
            }
        )


class PaymentWebhookView(APIView):
    """Receive payment provider events."""

    authentication_classes = []
    permission_classes = [AllowAny]
    throttle_classes = [ScopedRateThrottle]
    throttle_scope = "payments_webhook"

    def post(self, request):
        secret = SettingsStore().snapshot().api_keys.stripe_webhook_secret or settings.STRIPE_WEBHOOK_SECRET
        try:
            event = get_webhook_verifier().verify(request.body, request.headers.get("Stripe-Signature"), secret)
        except SignatureError as e:
            return Response({"detail": str(e)}, status=status.HTTP_400_BAD_REQUEST)

        if event is not None:
            try:
                get_order_controller().handle_payment_event(event)
            except Exception:
                logger.exception("payment event handling failed", extra={"event_id": event.event_id})
        return Response({"received": True}, status=200)


class SettingsView(APIView):
    """All settings sections, secrets masked."""

    permission_classes = [IsAdminUser]

    def get(self, request):
        return Response(SettingsStore().masked())


class SettingsSectionView(APIView):
    permission_classes = [IsAdminUser]

    def patch(self, request, section: str):
        name = SECTION_ALIASES.get(section)
        if name is None:
            return Response({"detail": "UNKNOWN_SECTION"}, status=status.HTTP_404_NOT_FOUND)
        if not isinstance(request.data, dict):
            return Response({"detail": "INVALID_SETTINGS"}, status=status.HTTP_400_BAD_REQUEST)
        store = SettingsStore()
        try:
            store.update_section(name, dict(request.data))
        except ValidationError as e:
            return Response({"detail": str(e)}, status=status.HTTP_400_BAD_REQUEST)
        return Response({name: store.masked()[name]})


class EmailSettingsTestView(APIView):
    """SMTP connectivity check with the stored email settings."""

    permission_classes = [IsAdminUser]

    def post(self, request):
        ok, message = EmailNotifier().check_transport()
        return Response(
            {"ok": ok, "message": message},
            status=status.HTTP_200_OK if ok else status.HTTP_400_BAD_REQUEST,
        )
