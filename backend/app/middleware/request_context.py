"""
Request context middleware.

WHAT: Middleware that tags every request with an id, the caller's address
and user agent, and logs how long the request took.

WHY: Invoice operations log warnings (numbering retries) and errors
(PDF failures) deep inside services. Those lines are only useful when
they can be tied back to the HTTP request that caused them.

HOW: The context is stored on request.state for handlers and in a
ContextVar for services and DAOs that never see the request object.
"""

import logging
import time
import uuid
from contextvars import ContextVar
from dataclasses import dataclass
from typing import Callable, Optional

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

logger = logging.getLogger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"


@dataclass(frozen=True)
class RequestContext:
    """Request-scoped data captured once when the request enters the app."""

    request_id: str
    ip_address: str
    user_agent: Optional[str]
    path: str
    method: str


_request_context: ContextVar[Optional[RequestContext]] = ContextVar(
    "request_context", default=None
)


def get_request_context() -> Optional[RequestContext]:
    """
    Get the context of the request being served.

    Returns:
        RequestContext inside a request, None outside of one (scripts, tests)
    """
    return _request_context.get()


def get_client_ip(request: Request) -> str:
    """
    Extract the client IP address, honouring proxy headers.

    HOW: Checks X-Real-IP, then the first entry of X-Forwarded-For, then the
    socket peer. Only trust these headers behind a proxy that overwrites them.

    Args:
        request: The incoming request

    Returns:
        Client IP address, or "unknown" when none is available
    """
    x_real_ip = request.headers.get("X-Real-IP")
    if x_real_ip:
        return x_real_ip.strip()

    x_forwarded_for = request.headers.get("X-Forwarded-For")
    if x_forwarded_for:
        return x_forwarded_for.split(",")[0].strip()

    if request.client and request.client.host:
        return request.client.host

    return "unknown"


def get_user_agent(request: Request) -> Optional[str]:
    return request.headers.get("User-Agent")


class RequestContextMiddleware(BaseHTTPMiddleware):
    """
    Middleware that captures request context and echoes the request id.

    WHAT: Reuses the caller's X-Request-ID when one is sent, otherwise
    generates a UUID4, and returns it in the response headers.

    WHY: A client that already correlates its own calls keeps its id, and
    every response can be matched against the server log.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or str(uuid.uuid4())

        context = RequestContext(
            request_id=request_id,
            ip_address=get_client_ip(request),
            user_agent=get_user_agent(request),
            path=request.url.path,
            method=request.method,
        )
        request.state.context = context
        token = _request_context.set(context)
        started = time.perf_counter()

        try:
            response = await call_next(request)
            response.headers[REQUEST_ID_HEADER] = request_id

            elapsed_ms = (time.perf_counter() - started) * 1000
            logger.info(
                f"{context.method} {context.path} -> {response.status_code} "
                f"in {elapsed_ms:.1f}ms (request_id={request_id})"
            )
            return response

        finally:
            _request_context.reset(token)
