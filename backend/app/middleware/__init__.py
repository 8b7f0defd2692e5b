"""
Middleware package.

WHY: Middleware carries cross-cutting concerns, such as request
correlation, that apply to every invoice endpoint.
"""

from app.middleware.request_context import (
    REQUEST_ID_HEADER,
    RequestContext,
    RequestContextMiddleware,
    get_client_ip,
    get_request_context,
    get_user_agent,
)

__all__ = [
    "REQUEST_ID_HEADER",
    "RequestContext",
    "RequestContextMiddleware",
    "get_client_ip",
    "get_request_context",
    "get_user_agent",
]
