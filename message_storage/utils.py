"""
Utility functions for the message intake API.
"""

import logging

from fastapi import Request

from message_storage.schemas import RequestContext

logger = logging.getLogger(__name__)


def build_request_context(request: Request) -> RequestContext:
    """
    Capture the request metadata stored with each message.

    Args:
        request: FastAPI request object

    Returns:
        RequestContext with client IP, User-Agent, requested URI
        (path plus query string) and server host name. Fields that the
        request does not carry are left as None.
    """
    uri = request.url.path
    if request.url.query:
        uri = f"{uri}?{request.url.query}"

    context = RequestContext(
        ip=request.client.host if request.client else None,
        agent=request.headers.get("user-agent"),
        uri=uri,
        server=request.url.hostname,
    )
    logger.debug(f"Request context: ip={context.ip}, server={context.server}, uri={context.uri}")
    return context
