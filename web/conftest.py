"""Shared fixtures for the web project tests.

Every test runs with the in-process generation stub, inline dispatch and no
mail transport configured, so the whole order flow executes synchronously
inside the test's database transaction.
"""

import pytest
from django.core.cache import cache

from apps.orders.tests.factories import WEBHOOK_SECRET


@pytest.fixture(autouse=True)
def use_stubs_for_tests(settings):
    settings.USE_HTTP_ADAPTERS = False
    settings.ORDER_DISPATCH_MODE = "inline"
    settings.APP_ENV = "test"
    settings.PRICE_PER_WORD_CENTS = 5
    settings.BASE_URL = "http://testserver"
    settings.SMTP_HOST = ""
    settings.SMTP_USER = ""
    settings.SMTP_PASSWORD = ""
    settings.OPENAI_API_KEY = ""
    settings.STRIPE_WEBHOOK_SECRET = WEBHOOK_SECRET
    settings.GENERATION_MAX_ATTEMPTS = 1


@pytest.fixture(autouse=True)
def reset_shared_state():
    # throttling counters live in the cache; breaker state is module level
    from apps.orders.http_adapters import _generation_cb

    cache.clear()
    _generation_cb.reset()
    yield
    _generation_cb.reset()


@pytest.fixture
def notifier():
    from apps.orders.adapters import RecordingNotifier

    return RecordingNotifier()


@pytest.fixture
def make_controller(notifier):
    """Factory for an ``OrderController`` over the real repository and stub ports."""
    from apps.orders.adapters import GenerationStub
    from apps.orders.controller import OrderController
    from apps.orders.dispatch import InlineDispatcher
    from apps.orders.repository import OrderRepository
    from apps.orders.settings_store import SettingsStore

    def _make(generator=None, dispatcher=None, max_attempts=None, notifier_=None):
        return OrderController(
            repository=OrderRepository(),
            generator=generator or GenerationStub(),
            notifier=notifier_ or notifier,
            dispatcher=dispatcher or InlineDispatcher(),
            settings_store=SettingsStore(),
            max_attempts=max_attempts,
        )

    return _make

