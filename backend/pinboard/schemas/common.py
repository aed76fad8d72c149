"""
Pinboard Backend — Shared Schema Building Blocks
==================================================

What:  The camelCase base model, error and health response shapes.
Why:   The web client speaks camelCase (displayName, nextCursor) while the
       Python side stays snake_case. An alias generator bridges the two so
       no field needs a hand-written alias.
"""

from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class APIModel(BaseModel):
    """
    Base for every request and response schema.

    populate_by_name lets services construct models with snake_case keyword
    arguments; FastAPI serializes responses by alias (camelCase).
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class MessageResponse(APIModel):
    message: str


class ErrorResponse(BaseModel):
    """
    Error body returned by every exception handler.

    Example:
        {
            "error": "validation_error",
            "message": "Request validation failed",
            "details": {"errors": [{"field": "email", "message": "..."}]},
            "request_id": "a1b2c3d4"
        }
    """
    error: str = Field(description="Machine-readable error code")
    message: str = Field(description="Human-readable error description")
    details: Optional[Dict[str, Any]] = Field(default=None, description="Additional error context")
    request_id: Optional[str] = Field(default=None, description="Request correlation ID")


class HealthResponse(BaseModel):
    status: str = Field(description="healthy, degraded or unhealthy")
    version: str
    database: str = Field(description="connected or disconnected")
    image_service: str = Field(description="available, not_configured or circuit_open")
    uptime_seconds: float
