import logging

from django.apps import AppConfig
from django.conf import settings

logger = logging.getLogger("orders")

REQUIRED_IN_PRODUCTION = (
    "STRIPE_WEBHOOK_SECRET",
    "OPENAI_API_KEY",
    "SMTP_HOST",
    "SMTP_USER",
    "SMTP_PASSWORD",
)


class OrdersConfig(AppConfig):
    name = "apps.orders"
    label = "orders"
    default_auto_field = "django.db.models.BigAutoField"

    def ready(self):
        # Missing credentials are fatal to the flow in production only; the
        # notifier and stubs cover local runs.
        production = settings.APP_ENV == "production"
        for name in REQUIRED_IN_PRODUCTION:
            if not getattr(settings, name, ""):
                if production:
                    logger.error("missing required setting", extra={"setting": name})
                else:
                    logger.warning("missing setting", extra={"setting": name})
