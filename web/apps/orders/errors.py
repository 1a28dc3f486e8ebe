"""Error taxonomy for the orders domain.

Every error carries a short upper-case code as its message so views can map
it to a response without leaking provider details.
"""


class ValidationError(ValueError):
    """Invalid input. Always recoverable by the caller, no state changed."""


class SignatureError(ValueError):
    """A payment webhook payload could not be verified."""


class GenerationError(Exception):
    """The generation provider failed, timed out or returned nothing usable.

    Attributes:
        reason: Short code describing the failure class (``TIMEOUT``,
            ``EMPTY_RESPONSE``, ``PROVIDER_HTTP_500``...).
        detail: Raw provider detail, for operator logs only.
    """

    def __init__(self, reason: str, detail: str | None = None):
        super().__init__(reason)
        self.reason = reason
        self.detail = detail


class NotificationDeliveryError(Exception):
    """Raised by the mail transport; never escapes the notifier."""


class NotFoundError(LookupError):
    """Unknown order id."""
