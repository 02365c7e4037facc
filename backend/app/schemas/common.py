"""
XFound Backend — Shared Response Schemas
==========================================

What:  Response models shared by every router: errors, plain messages, health.
Why:   Clients need one consistent structure to parse errors programmatically,
       and OpenAPI docs are generated from these models.
"""

from typing import Optional

from pydantic import BaseModel, Field


class ErrorResponse(BaseModel):
    """
    Standardized error response format for all API errors.

    Example:
        {
            "error": "validation_error",
            "message": "Passwords do not match",
            "details": {"field": "confirm_password"},
            "request_id": "a1b2c3d4"
        }
    """
    error: str = Field(description="Machine-readable error code")
    message: str = Field(description="Human-readable error description")
    details: Optional[dict] = Field(default=None, description="Additional error context")
    request_id: Optional[str] = Field(default=None, description="Request correlation ID")


class MessageResponse(BaseModel):
    """Plain acknowledgment body (logout, delete, password flows)."""
    message: str


class HealthResponse(BaseModel):
    """
    Health check response showing service and dependency status.
    Returned by GET /health for monitoring and load balancer health checks.
    """
    status: str = Field(description="Overall service status: healthy or unhealthy")
    version: str = Field(description="Application version")
    database: str = Field(description="Database connectivity: connected, disconnected")
    online_users: int = Field(description="Users currently registered on the chat socket")
    uptime_seconds: float = Field(description="Seconds since service started")
