"""
NoteKeeper Backend — Request ID Middleware
============================================

What:  Assigns a correlation id to every request and echoes it back.
How:   Reuses a client-sent `X-Request-ID` (trimmed to a sane length) or
       generates an 8-character one; stores it in a ContextVar so the access
       logger and the exception handlers can include it.
Who:   Outermost custom middleware; see `main.create_app`.
"""

import uuid
from contextvars import ContextVar

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

# Coroutine-local: concurrent requests on one event loop each see their own id.
request_id_var: ContextVar[str] = ContextVar("request_id", default="")

REQUEST_ID_HEADER = "X-Request-ID"
MAX_CLIENT_ID_LENGTH = 64


def _new_request_id() -> str:
    return uuid.uuid4().hex[:8]


class RequestIDMiddleware(BaseHTTPMiddleware):
    """
    Behavior:
        1. Take X-Request-ID from the client if present, else generate one
        2. Store it in `request_id_var` and on `request.state.request_id`
        3. Return it in the X-Request-ID response header
    """

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        client_id = request.headers.get(REQUEST_ID_HEADER, "").strip()
        rid = client_id[:MAX_CLIENT_ID_LENGTH] if client_id else _new_request_id()

        token = request_id_var.set(rid)
        request.state.request_id = rid
        try:
            response = await call_next(request)
        finally:
            request_id_var.reset(token)

        response.headers[REQUEST_ID_HEADER] = rid
        return response
