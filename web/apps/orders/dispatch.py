"""Task handoff for ``process_order``.

Delivery is at-least-once: an order in ``PAYMENT_CONFIRMED`` is itself the
durable record of pending work. If a dispatch is lost (scheduling error,
worker crash, process restart) the ``process_pending_orders`` management
command picks the order up again, and the receiver is idempotent.
"""

import contextvars
import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import Callable

from django.conf import settings
from django.db import close_old_connections

from gateway.context import bound_order_id

from .domain import DispatcherPort

logger = logging.getLogger("orders.dispatch")

Handler = Callable[[int], object]


class InlineDispatcher(DispatcherPort):
    """Run the handler in the caller's thread."""

    def dispatch(self, order_id: int, handler: Handler) -> None:
        handler(order_id)


class ThreadDispatcher(DispatcherPort):
    """Run handlers on a bounded thread pool.

    Each task runs in a copy of the submitting context (request id) and
    releases stale database connections before and after the handler, as
    Django only does that itself around request/response cycles.
    """

    def __init__(self, max_workers: int = 4):
        self.max_workers = max_workers
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="order-dispatch")

    def dispatch(self, order_id: int, handler: Handler) -> None:
        ctx = contextvars.copy_context()
        try:
            self._executor.submit(ctx.run, self._run, order_id, handler)
        except RuntimeError as e:
            # executor shut down
            raise RuntimeError(f"cannot schedule order {order_id}: {e}") from e
        logger.info("order dispatched", extra={"dispatcher": "thread"})

    def _run(self, order_id: int, handler: Handler) -> None:
        close_old_connections()
        try:
            with bound_order_id(order_id):
                handler(order_id)
        except Exception:
            logger.exception("dispatched task failed", extra={"order_id": order_id})
        finally:
            close_old_connections()

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)


_thread_dispatcher = None
_lock = threading.Lock()


def get_dispatcher() -> DispatcherPort:
    """Dispatcher for ``ORDER_DISPATCH_MODE`` (``inline`` or ``thread``)."""
    global _thread_dispatcher
    mode = getattr(settings, "ORDER_DISPATCH_MODE", "thread")
    if mode == "inline":
        return InlineDispatcher()
    if mode != "thread":
        raise ValueError(f"unknown ORDER_DISPATCH_MODE: {mode}")
    with _lock:
        if _thread_dispatcher is None:
            _thread_dispatcher = ThreadDispatcher(max_workers=settings.ORDER_DISPATCH_WORKERS)
        return _thread_dispatcher
