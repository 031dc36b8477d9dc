"""Error taxonomy for the orders service.

Every error carries a short, stable code (``str(exc)`` returns it) that is
safe to send to clients. The HTTP layer maps each class to a status code;
the underlying cause, when there is one, is chained with ``raise ... from``
and only ever logged.
"""


class ConfigError(Exception):
    """Configuration is missing or malformed at startup."""


class OrderError(Exception):
    """Base class for errors raised while serving an order request."""

    code = "ORDER_ERROR"

    def __init__(self, code: str | None = None):
        self.code = code or type(self).code
        super().__init__(self.code)


class ValidationError(OrderError):
    """Client-supplied data is missing or malformed.

    Attributes:
        fields: External field paths that failed (e.g. ``items.0.itemId``).
    """

    code = "INVALID_PAYLOAD"

    def __init__(self, code: str | None = None, fields: list[str] | None = None):
        super().__init__(code)
        self.fields = list(fields or [])


class AuthError(OrderError):
    code = "UNAUTHORIZED"


class NotFoundError(OrderError):
    code = "NOT_FOUND"


class StoreError(OrderError):
    """Database failure; the transaction was rolled back."""

    code = "STORE_ERROR"


class DuplicateKeyError(StoreError):
    """An order with the same identifier already exists."""

    code = "DUPLICATE_ORDER"


class StoreTimeoutError(StoreError):
    """The operation deadline expired or no pooled connection was free."""

    code = "STORE_TIMEOUT"
