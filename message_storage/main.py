import json
import logging

from fastapi import FastAPI, Response, Request, Depends, HTTPException, status
from pydantic import ValidationError

from message_storage.config import settings
from message_storage.storage import MessageStore, get_store
from message_storage.logging_utils import setup_logging, RequestLoggingMiddleware, log_submission_data
from message_storage.utils import build_request_context
from message_storage.metrics import record_submission_outcome, get_metrics, get_metrics_content_type
from message_storage.schemas import (
    HealthResponse,
    MessageSubmission,
    StoreFailureDetail,
    StoredMessage,
    SubmissionResponse,
)


# Setup structured JSON logging
setup_logging(settings.LOG_LEVEL)
logger = logging.getLogger(__name__)


app = FastAPI(
    title="Message Storage",
    description="Accepts free-text messages and stores them in a SQLite table",
    version="1.0.0",
)

app.add_middleware(RequestLoggingMiddleware)


# =============================================================================
# Health Check Routes
# =============================================================================

@app.get("/health/live", response_model=HealthResponse)
async def health_live() -> HealthResponse:
    """Liveness probe - always returns 200 once the app is running."""
    return HealthResponse(status="ok")


@app.get("/health/ready", response_model=HealthResponse)
async def health_ready(response: Response, store: MessageStore = Depends(get_store)) -> HealthResponse:
    """
    Readiness probe - returns 200 only if the database file can be opened
    and the messages table exists (or could be created).

    Otherwise returns 503 with the store diagnostics as reason.
    """
    if not store.is_alive():
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
        return HealthResponse(
            status="not_ready",
            reason="; ".join(store.get_errors())
        )

    return HealthResponse(status="ready")


# =============================================================================
# Submission Route
# =============================================================================

@app.post(
    "/messages",
    response_model=SubmissionResponse,
    responses={
        422: {"description": "Validation error"},
        500: {"model": StoreFailureDetail, "description": "Message could not be saved"},
        503: {"model": StoreFailureDetail, "description": "Message storage unavailable"},
    }
)
async def submit_message(
    request: Request,
    store: MessageStore = Depends(get_store)
) -> SubmissionResponse:
    """
    Store one submitted message.

    - Requires a non-blank message and explicit consent
    - Records client IP, User-Agent, requested URI and host with the message
    - Returns every stored field, including the new id
    """
    logger.info("Message submission received")

    raw_body = await request.body()
    logger.debug(f"Request body size: {len(raw_body)} bytes")

    try:
        body_dict = json.loads(raw_body)
        submission = MessageSubmission.model_validate(body_dict)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        logger.error(f"Invalid JSON: {e}")
        record_submission_outcome("validation_error")
        log_submission_data(request=request, result="validation_error")
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=f"Invalid JSON: {str(e)}"
        )
    except ValidationError as e:
        logger.error(f"Validation error: {e}")
        record_submission_outcome("validation_error")
        log_submission_data(request=request, result="validation_error")
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=[error["msg"] for error in e.errors()]
        )

    if not store.is_alive():
        logger.error("Message storage is not available")
        record_submission_outcome("store_unavailable")
        log_submission_data(request=request, result="store_unavailable")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=StoreFailureDetail(
                reason="Message Storage is temporarily unavailable",
                errors=store.get_errors()
            ).model_dump()
        )

    tag = submission.tag if submission.tag is not None else settings.DEFAULT_TAG
    stored = store.save(submission.message, tag, build_request_context(request))

    if not stored:
        logger.error("Unable to save message")
        record_submission_outcome("save_failed")
        log_submission_data(request=request, result="save_failed")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=StoreFailureDetail(
                reason="Unable to save message",
                errors=store.get_errors()
            ).model_dump()
        )

    logger.info(f"Message processed: id={stored['id']}")
    record_submission_outcome("created")
    log_submission_data(request=request, result="created", message_id=stored["id"])

    return SubmissionResponse(
        count=len(stored),
        stored=StoredMessage(**stored)
    )


# =============================================================================
# Metrics Route
# =============================================================================

@app.get("/metrics")
async def metrics() -> Response:
    """
    Expose Prometheus-style metrics.

    - http_requests_total: Total HTTP requests by method, path, status
    - message_submissions_total: Submission outcomes by result
    - request_latency_seconds: Request latency histogram
    """
    return Response(
        content=get_metrics(),
        media_type=get_metrics_content_type()
    )
