"""Store context middleware using ContextVar.

Extracts the store being synced from the X-Store-ID request header. The
id is stored in a ContextVar so every log record emitted while handling
the request (adapters, HTTP stack, file exchange) carries it without
explicit parameter passing.
"""

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from possync.observability.logging_setup import (
    get_current_store,
    reset_current_store,
    set_current_store,
)

STORE_HEADER = "X-Store-ID"

__all__ = ["STORE_HEADER", "StoreContextMiddleware", "get_current_store"]


class StoreContextMiddleware(BaseHTTPMiddleware):
    """Bind the request's store id for the duration of the request.

    Falls back to "-" when the header is absent, matching log output for
    work done outside a request.
    """

    async def dispatch(self, request: Request, call_next) -> Response:
        token = set_current_store(request.headers.get(STORE_HEADER) or "-")
        try:
            response = await call_next(request)
            return response
        finally:
            reset_current_store(token)
