import logging
import sys
import time
import uuid
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Callable, Optional

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from pythonjsonlogger import jsonlogger

from message_storage.metrics import record_http_request


# Context variable to store request_id for the current request
request_id_ctx: ContextVar[Optional[str]] = ContextVar("request_id", default=None)


def get_request_id() -> Optional[str]:
    """Get the current request ID from context."""
    return request_id_ctx.get()


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """JSON formatter adding an ISO-8601 ts, the level name and request_id."""

    def add_fields(self, log_record, record, message_dict):
        super(CustomJsonFormatter, self).add_fields(log_record, record, message_dict)
        # Ensure timestamp is in ISO-8601 format with Z suffix
        if not log_record.get('ts'):
            log_record['ts'] = datetime.now(timezone.utc).strftime('%Y-%m-%dT%H:%M:%S.%f')[:-3] + 'Z'
        log_record['level'] = record.levelname

        # Add request_id from context if available and not already present
        if 'request_id' not in log_record:
            req_id = request_id_ctx.get()
            if req_id:
                log_record['request_id'] = req_id


def setup_logging(log_level: str = "INFO"):
    """
    Setup structured JSON logging for the application.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """
    # Configure root logger
    logger = logging.getLogger()
    logger.setLevel(log_level.upper())

    # Remove existing handlers
    logger.handlers = []

    # Create JSON handler for stdout
    json_handler = logging.StreamHandler(sys.stdout)

    # Use custom JSON formatter
    formatter = CustomJsonFormatter(
        '%(ts)s %(level)s %(name)s %(message)s'
    )
    json_handler.setFormatter(formatter)
    logger.addHandler(json_handler)

    # Route Uvicorn output through the same JSON handler
    for logger_name in ("uvicorn", "uvicorn.error", "uvicorn.access"):
        uvicorn_logger = logging.getLogger(logger_name)
        uvicorn_logger.handlers = []
        uvicorn_logger.addHandler(json_handler)
        uvicorn_logger.propagate = False

    # RequestLoggingMiddleware replaces the access log
    logging.getLogger("uvicorn.access").disabled = True

    return logger


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Middleware to log all HTTP requests in structured JSON format.

    Logged keys: ts, level, request_id, method, path, status, latency_ms.
    For submissions to /messages the route also attaches:
    - message_id: id of the stored row (when created)
    - result: created, validation_error, store_unavailable, save_failed
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        # Generate unique request ID
        request_id = str(uuid.uuid4())
        request.state.request_id = request_id

        # Set request_id in context for all loggers to use
        token = request_id_ctx.set(request_id)

        # Record start time
        start_time = time.time()

        try:
            # Process request
            response = await call_next(request)

            # Add request ID to response headers
            response.headers["X-Request-ID"] = request_id

            # Calculate latency
            latency_seconds = time.time() - start_time
            latency_ms = round(latency_seconds * 1000, 2)

            # Skip /metrics to avoid self-instrumentation noise
            if request.url.path != "/metrics":
                record_http_request(
                    method=request.method,
                    path=request.url.path,
                    status=response.status_code,
                    latency_seconds=latency_seconds
                )

            # Build log data
            log_data = {
                "request_id": request_id,
                "method": request.method,
                "path": request.url.path,
                "status": response.status_code,
                "latency_ms": latency_ms,
            }

            # Add submission-specific fields if present in request state
            if hasattr(request.state, "submission_log_data"):
                log_data.update(request.state.submission_log_data)

            # Log the request
            logger = logging.getLogger("message_storage.requests")
            if response.status_code >= 500:
                logger.error("Request completed", extra=log_data)
            elif response.status_code >= 400:
                logger.warning("Request completed", extra=log_data)
            else:
                logger.info("Request completed", extra=log_data)

            return response
        finally:
            # Reset context
            request_id_ctx.reset(token)


def log_submission_data(request: Request, result: str, message_id: Optional[int] = None):
    """
    Attach submission-specific logging data to the request state.
    The middleware merges it into the request log line.

    Args:
        request: FastAPI request object
        result: Processing result (created, validation_error, store_unavailable, save_failed)
        message_id: Primary key of the stored row, when one was created
    """
    submission_data = {"result": result}
    if message_id is not None:
        submission_data["message_id"] = message_id

    request.state.submission_log_data = submission_data
