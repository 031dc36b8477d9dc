"""HTTP middleware assigning request ids and limiting body size.

``add_request_id`` reuses the incoming ``X-Request-ID`` header when the
client sends one and generates a UUIDv4 otherwise. The id is stored on
``request.state``, in the ``REQUEST_ID_CTX`` context variable (read by
:class:`orders.logging_filters.RequestIdFilter`) and echoed on the response.

``limit_body_size`` answers 413 for bodies whose declared length exceeds
the configured limit.
"""

import contextvars
import logging
import uuid

from fastapi import Request
from fastapi.responses import JSONResponse

REQUEST_ID_CTX = contextvars.ContextVar("request_id", default="-")

REQUEST_HEADER = "X-Request-ID"

logger = logging.getLogger("orders.http")


async def add_request_id(request: Request, call_next):
    rid = request.headers.get(REQUEST_HEADER) or str(uuid.uuid4())
    request.state.request_id = rid
    token = REQUEST_ID_CTX.set(rid)
    status = 500
    try:
        response = await call_next(request)
        status = response.status_code
    finally:
        logger.info(
            "request handled",
            extra={"path": request.url.path, "method": request.method, "status": status},
        )
        REQUEST_ID_CTX.reset(token)
    response.headers[REQUEST_HEADER] = rid
    return response


async def limit_body_size(request: Request, call_next):
    """Refuse requests whose declared ``Content-Length`` exceeds the limit.

    Only the header is checked. A chunked body (no ``Content-Length``) is
    not counted here and passes through unlimited; deployments that accept
    untrusted clients should cap body size at the proxy as well.
    """
    clen = request.headers.get("content-length")
    max_bytes = request.app.state.settings.api_max_bytes
    if clen and clen.isdigit() and int(clen) > max_bytes:
        return JSONResponse({"detail": "PAYLOAD_TOO_LARGE"}, status_code=413)
    return await call_next(request)
