"""
Userhub Backend — Request ID Middleware
=========================================

What:  Assigns a correlation ID to each request and echoes it in the response.
Why:   Every log line and error body of one request carries the same ID, so a
       failed upload reported by a user can be found in the server log.
How:   Accepts a sane client-supplied X-Request-ID, otherwise generates an
       8-character one; stores it in a ContextVar and on request.state.
"""

import re
import uuid
from contextvars import ContextVar

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

REQUEST_ID_HEADER = "X-Request-ID"

# Coroutine-local: concurrent requests on one event loop each see their own ID
request_id_var: ContextVar[str] = ContextVar("request_id", default="")

# Client IDs end up in logs; accept only short, plain tokens
_VALID_CLIENT_ID = re.compile(r"^[A-Za-z0-9._-]{1,64}$")


def new_request_id() -> str:
    return uuid.uuid4().hex[:8]


class RequestIDMiddleware(BaseHTTPMiddleware):
    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        supplied = request.headers.get(REQUEST_ID_HEADER, "")
        rid = supplied if _VALID_CLIENT_ID.match(supplied) else new_request_id()

        # Not reset afterwards: the catch-all 500 handler runs outside this
        # middleware and still needs the ID
        request_id_var.set(rid)
        request.state.request_id = rid

        response = await call_next(request)
        response.headers[REQUEST_ID_HEADER] = rid
        return response
