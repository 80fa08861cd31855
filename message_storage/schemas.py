"""
Pydantic schemas for request/response validation.

This module contains:
- The request context value object handed to MessageStore.save
- Request models for incoming submissions
- Response models for API responses
"""

from typing import Optional

from pydantic import BaseModel, Field, field_validator


# =============================================================================
# Store Input Models
# =============================================================================

class RequestContext(BaseModel):
    """
    Metadata about the inbound HTTP call, recorded alongside each message.

    Every field is optional; MessageStore stores a missing value as "".
    """
    ip: Optional[str] = Field(None, description="Client IP address")
    agent: Optional[str] = Field(None, description="Client User-Agent header")
    uri: Optional[str] = Field(None, description="Requested URI (path and query)")
    server: Optional[str] = Field(None, description="Server host name")

    model_config = {"frozen": True}


# =============================================================================
# Pydantic Request Models
# =============================================================================

class MessageSubmission(BaseModel):
    """
    Pydantic model for validating incoming message submissions.

    Validates:
    - message: must contain non-whitespace text
    - consent: must be explicitly true
    - tag: optional categorization, falls back to DEFAULT_TAG
    """
    message: str = Field(..., description="Free-text message")
    consent: bool = Field(
        False,
        validate_default=True,
        description="Submitter agrees to having the submission stored"
    )
    tag: Optional[str] = Field(None, description="Optional categorization tag")

    @field_validator("message")
    @classmethod
    def validate_message_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Please enter a message")
        return v

    @field_validator("consent")
    @classmethod
    def validate_consent_given(cls, v: bool) -> bool:
        if not v:
            raise ValueError(
                "You must consent to having this website store your submitted "
                "information so we can process your message"
            )
        return v

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "message": "Hello there",
                    "consent": True,
                    "tag": "example"
                }
            ]
        }
    }


# =============================================================================
# Pydantic Response Models
# =============================================================================

class StoredMessage(BaseModel):
    """All nine fields of a freshly inserted messages row."""
    id: int = Field(..., description="Primary key assigned by the database")
    message: str
    status: str
    tag: str
    uri: str
    server: str
    time: str = Field(..., description="UTC insert time, YYYY-MM-DD HH:MM:SS")
    ip: str
    agent: str


class SubmissionResponse(BaseModel):
    """Response model for a stored submission."""
    status: str = Field(default="ok", description="Operation status")
    count: int = Field(..., ge=0, description="Number of stored items")
    stored: StoredMessage


class StoreFailureDetail(BaseModel):
    """Detail payload for store failures (503/500)."""
    reason: str = Field(..., description="Human-readable failure summary")
    errors: list[str] = Field(
        default_factory=list,
        description="Diagnostics accumulated by the store"
    )


class HealthResponse(BaseModel):
    """Response model for health check endpoints."""
    status: str = Field(..., description="Health status")
    reason: Optional[str] = Field(None, description="Reason if not ready")
