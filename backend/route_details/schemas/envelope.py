"""
Route Details Backend: Response Envelope & Service Schemas
============================================================

What:  The uniform envelope every route operation answers with, plus the
       health check payload.
Who:   Built by services.route_handlers; serialized by the HTTP routes, the
       global exception handlers and the message server alike.

Envelope shape (camelCase on the wire):
    {
        "success": false,
        "statusCode": 404,
        "message": "Route not found",
        "data": null,
        "errors": "No route found with ID: 6f1c..."
    }
"""

from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class ApiResponse(BaseModel):
    """Uniform success/error wrapper returned by every handler."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    success: bool = Field(examples=[True])
    status_code: int = Field(examples=[200])
    message: str = Field(examples=["Operation successful"])
    data: Optional[Any] = Field(default=None, description="Operation result, null on failure")
    errors: Optional[str] = Field(default=None, description="Failure detail, null on success")

    @classmethod
    def success_response(
        cls,
        data: Any,
        message: str = "Operation successful",
        status_code: int = 200,
    ) -> "ApiResponse":
        return cls(success=True, status_code=status_code, message=message, data=data)

    @classmethod
    def error_response(
        cls,
        message: str,
        errors: Optional[str] = None,
        status_code: int = 400,
    ) -> "ApiResponse":
        return cls(
            success=False,
            status_code=status_code,
            message=message,
            data=None,
            errors=errors,
        )

    def to_payload(self) -> Dict[str, Any]:
        """JSON-ready dict with camelCase keys."""
        return self.model_dump(by_alias=True, mode="json")


class HealthResponse(BaseModel):
    """
    Health check response showing service and dependency status.

    Returned by GET /health for load balancer and container probes.
    """

    status: str = Field(description="Overall service status: healthy, degraded, unhealthy")
    version: str = Field(description="Application version")
    database: str = Field(description="Database connectivity: connected, disconnected")
    message_transport: str = Field(description="Message transport: listening, stopped, disabled")
    uptime_seconds: float = Field(description="Seconds since service started")
