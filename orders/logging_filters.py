"""Structured logging setup for the orders service.

Log records are rendered as JSON by ``python-json-logger``. The
:class:`RequestIdFilter` copies the current request id from the
``REQUEST_ID_CTX`` context variable set by the request-id middleware, so
every line emitted while serving a request can be correlated.
"""

import logging
from logging import Filter, LogRecord

from pythonjsonlogger import jsonlogger

from .middleware import REQUEST_ID_CTX

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s %(request_id)s"


class RequestIdFilter(Filter):
    """Attach a ``request_id`` attribute to log records.

    Outside of a request the placeholder ``"-"`` is used so formatters can
    always reference ``%(request_id)s``.
    """

    def filter(self, record: LogRecord) -> bool:
        if not hasattr(record, "request_id"):
            record.request_id = REQUEST_ID_CTX.get()
        return True


def configure_logging(level: str = "INFO") -> logging.Logger:
    """Install the JSON handler on the ``orders`` logger once.

    Args:
        level: Level name applied to the ``orders`` logger.

    Returns:
        logging.Logger: The configured ``orders`` logger.
    """
    logger = logging.getLogger("orders")
    if not logger.handlers:
        h = logging.StreamHandler()
        h.setFormatter(jsonlogger.JsonFormatter(LOG_FORMAT))
        h.addFilter(RequestIdFilter())
        logger.addHandler(h)
    logger.setLevel(level)
    return logger
