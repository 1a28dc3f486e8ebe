"""Logging filters that stamp records with correlation ids.

Both filters always let the record through; they only guarantee that
``%(request_id)s`` and ``%(order_id)s`` resolve in formatters, using "-"
when nothing is bound.
"""

from logging import Filter, LogRecord

from .context import ORDER_ID_CTX, REQUEST_ID_CTX


class RequestIdFilter(Filter):
    """Attach ``request_id`` from ``REQUEST_ID_CTX``."""

    def filter(self, record: LogRecord) -> bool:
        if not hasattr(record, "request_id"):
            record.request_id = REQUEST_ID_CTX.get()
        return True


class OrderIdFilter(Filter):
    """Attach ``order_id`` from ``ORDER_ID_CTX`` unless the call passed one in ``extra``."""

    def filter(self, record: LogRecord) -> bool:
        if not hasattr(record, "order_id"):
            record.order_id = ORDER_ID_CTX.get()
        return True
