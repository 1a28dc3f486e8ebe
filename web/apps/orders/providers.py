"""Service provider helpers for wiring ``OrderController`` with its ports.

``get_order_controller`` returns a controller built from runtime settings:
the HTTP generation client when ``settings.USE_HTTP_ADAPTERS`` is truthy,
otherwise the deterministic in-process stub; email notifications; and the
dispatcher selected by ``settings.ORDER_DISPATCH_MODE``.
"""

from django.conf import settings

from .adapters import GenerationStub
from .controller import OrderController
from .dispatch import get_dispatcher
from .http_adapters import HttpGenerationClient
from .notifications import EmailNotifier
from .payments import StripeWebhookVerifier
from .repository import OrderRepository
from .settings_store import SettingsStore


def get_order_controller() -> OrderController:
    """Return a configured OrderController instance.

    Returns:
        OrderController: A controller with appropriate ports.
    """
    store = SettingsStore()
    if getattr(settings, "USE_HTTP_ADAPTERS", True):
        generator = HttpGenerationClient(settings_store=store)
    else:
        generator = GenerationStub()
    return OrderController(
        repository=OrderRepository(),
        generator=generator,
        notifier=EmailNotifier(settings_store=store),
        dispatcher=get_dispatcher(),
        settings_store=store,
    )


def get_webhook_verifier() -> StripeWebhookVerifier:
    return StripeWebhookVerifier()
