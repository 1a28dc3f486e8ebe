"""Context variables shared by middleware, log filters and the orders app.

``REQUEST_ID_CTX`` is set once per HTTP request. ``ORDER_ID_CTX`` is bound
by the order controller around each operation so that every log line
emitted while handling an order (including lines from adapters and
background dispatch threads) can be correlated by order id.
"""

import contextvars
from contextlib import contextmanager

REQUEST_ID_CTX = contextvars.ContextVar("request_id", default="-")
ORDER_ID_CTX = contextvars.ContextVar("order_id", default="-")


@contextmanager
def bound_order_id(order_id):
    """Bind ``order_id`` into ``ORDER_ID_CTX`` for the duration of the block."""
    token = ORDER_ID_CTX.set(str(order_id))
    try:
        yield
    finally:
        ORDER_ID_CTX.reset(token)
