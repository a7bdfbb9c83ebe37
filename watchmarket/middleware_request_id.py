import json
import logging
import re
import time
import uuid
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response


logger = logging.getLogger("watchmarket.request")

# Inbound ids are echoed into logs and events, so only short token-like values are trusted
_VALID_ID = re.compile(r"^[A-Za-z0-9._-]{1,64}$")
_QUIET_PATHS = frozenset({"/health", "/metrics"})


def request_id_of(request: Request) -> str | None:
    return getattr(request.state, "request_id", None)


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Tag each request with ``X-Request-ID`` and write one JSON access line.

    The id is kept on ``request.state`` so routers can stamp it onto the
    domain events they publish.
    """

    async def dispatch(self, request: Request, call_next):
        inbound = request.headers.get("X-Request-ID", "")
        req_id = inbound if _VALID_ID.match(inbound) else uuid.uuid4().hex
        request.state.request_id = req_id
        start = time.perf_counter()
        response: Response = await call_next(request)
        response.headers["X-Request-ID"] = req_id
        if request.url.path in _QUIET_PATHS:
            return response
        route = getattr(request.scope.get("route"), "path", None)
        line = json.dumps({
            "request_id": req_id,
            "method": request.method,
            "path": request.url.path,
            "route": route,
            "status": response.status_code,
            "duration_ms": round((time.perf_counter() - start) * 1000, 1),
        })
        if response.status_code >= 500:
            logger.warning(line)
        else:
            logger.info(line)
        return response
