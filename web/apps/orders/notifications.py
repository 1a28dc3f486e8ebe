"""Customer notifications by email.

``EmailNotifier.notify`` is the only entry point the controller uses and it
never raises: payload problems, template errors and transport failures are
logged and dropped. Each ``NotificationKind`` has a payload model listing the
fields its template needs; payloads are validated here, at the boundary.

SMTP parameters are read from the settings snapshot at send time. Outside
production an unconfigured transport makes ``notify`` a logged no-op so the
order flow runs end to end without mail infrastructure.
"""

import logging
from enum import Enum
from typing import Optional

from django.conf import settings
from django.core.mail import EmailMultiAlternatives, get_connection
from django.template.loader import render_to_string
from django.utils.html import strip_tags
from pydantic import BaseModel, ValidationError as PydanticValidationError

from .domain import NotifierPort
from .errors import NotificationDeliveryError
from .settings_store import EmailSettings, SettingsStore

logger = logging.getLogger("orders.notifications")


class NotificationKind(str, Enum):
    ORDER_RECEIVED = "ORDER_RECEIVED"
    GENERATION_STARTED = "GENERATION_STARTED"
    GENERATION_COMPLETE = "GENERATION_COMPLETE"
    GENERATION_FAILED = "GENERATION_FAILED"
    PAYMENT_FAILED = "PAYMENT_FAILED"


# ---- Per-kind payloads ----
class _OrderPayload(BaseModel):
    order_id: int
    topic: str


class OrderReceivedData(_OrderPayload):
    word_count: int
    amount: str  # "25.00"


class GenerationStartedData(_OrderPayload):
    pass


class GenerationCompleteData(_OrderPayload):
    content_preview: str
    view_url: str


class GenerationFailedData(_OrderPayload):
    error_message: str


class PaymentFailedData(_OrderPayload):
    error_message: str


PAYLOADS = {
    NotificationKind.ORDER_RECEIVED: OrderReceivedData,
    NotificationKind.GENERATION_STARTED: GenerationStartedData,
    NotificationKind.GENERATION_COMPLETE: GenerationCompleteData,
    NotificationKind.GENERATION_FAILED: GenerationFailedData,
    NotificationKind.PAYMENT_FAILED: PaymentFailedData,
}

SUBJECTS = {
    NotificationKind.ORDER_RECEIVED: "Order Received - Your Content is Being Generated",
    NotificationKind.GENERATION_STARTED: "Your content order is being processed",
    NotificationKind.GENERATION_COMPLETE: "Your content is ready",
    NotificationKind.GENERATION_FAILED: "There was an issue with your content order",
    NotificationKind.PAYMENT_FAILED: "Payment Failed for Your Content Order",
}

TEMPLATES = {
    NotificationKind.ORDER_RECEIVED: "notifications/order_received.html",
    NotificationKind.GENERATION_STARTED: "notifications/generation_started.html",
    NotificationKind.GENERATION_COMPLETE: "notifications/generation_complete.html",
    NotificationKind.GENERATION_FAILED: "notifications/generation_failed.html",
    NotificationKind.PAYMENT_FAILED: "notifications/payment_failed.html",
}


def build_message(to: str, kind: NotificationKind, payload: BaseModel, email: EmailSettings, connection=None):
    """Render the subject, HTML and text bodies for one notification."""
    html = render_to_string(TEMPLATES[kind], payload.model_dump())
    msg = EmailMultiAlternatives(
        subject=SUBJECTS[kind],
        body=strip_tags(html).strip(),
        from_email=email.sender_email,
        to=[to],
        connection=connection,
    )
    msg.attach_alternative(html, "text/html")
    return msg


def open_connection(email: EmailSettings, timeout: float | None = None):
    """Mail connection for the configured backend with the snapshot's SMTP parameters."""
    return get_connection(
        host=email.smtp_host,
        port=email.smtp_port,
        username=email.smtp_user,
        password=email.smtp_password,
        use_ssl=email.smtp_port == 465,
        use_tls=email.smtp_port == 587,
        timeout=timeout or settings.NOTIFICATION_TIMEOUT_SECS,
        fail_silently=False,
    )


class EmailNotifier(NotifierPort):
    """Notification client sending templated email through Django's mail framework."""

    def __init__(self, settings_store: Optional[SettingsStore] = None):
        self.settings_store = settings_store or SettingsStore()

    def notify(self, to: str, kind, data: dict) -> None:
        """Send one notification; never raises.

        Args:
            to: Recipient address.
            kind: A ``NotificationKind`` (or its value).
            data: Template data; must satisfy the kind's payload model.
        """
        try:
            kind = NotificationKind(kind)
            payload = PAYLOADS[kind].model_validate(data)
        except (ValueError, PydanticValidationError) as e:
            logger.error("notification payload rejected", extra={"kind": str(kind), "error": str(e)})
            return

        try:
            email = self.settings_store.snapshot().email
        except Exception:
            logger.exception("notification settings unavailable", extra={"kind": kind.value})
            return

        if not email.configured and settings.APP_ENV != "production":
            logger.info(
                "notification skipped, mail transport not configured",
                extra={"kind": kind.value, "to": to, "subject": SUBJECTS[kind]},
            )
            return

        try:
            self._deliver(to, kind, payload, email)
        except NotificationDeliveryError as e:
            logger.error("notification failed", extra={"kind": kind.value, "to": to, "error": str(e)})
            return
        logger.info("notification sent", extra={"kind": kind.value, "to": to})

    def _deliver(self, to: str, kind: NotificationKind, payload: BaseModel, email: EmailSettings) -> None:
        try:
            connection = open_connection(email)
            msg = build_message(to, kind, payload, email, connection=connection)
            sent = msg.send()
        except Exception as e:
            raise NotificationDeliveryError(f"{type(e).__name__}: {e}") from e
        if not sent:
            raise NotificationDeliveryError("transport accepted no messages")

    def check_transport(self) -> tuple[bool, str]:
        """Open and close a mail connection with the current settings.

        Returns:
            tuple[bool, str]: ``(ok, message)`` suitable for the admin UI.
        """
        email = self.settings_store.snapshot().email
        if not email.configured:
            return False, "Email transport is not configured"
        try:
            connection = open_connection(email)
            connection.open()
            connection.close()
        except Exception as e:
            logger.warning("mail transport check failed", extra={"error": str(e)})
            return False, str(e) or type(e).__name__
        return True, "Email configuration is valid"
