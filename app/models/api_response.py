"""
API Response Envelope Models
Every response is wrapped as {success, data | error, timestamp}
"""
from datetime import datetime, timezone
from typing import Any, Optional

from pydantic import BaseModel, Field


def iso_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


class ErrorBody(BaseModel):
    code: str = Field(..., description="Error code")
    message: str = Field(..., description="Safe, human readable message")
    details: Optional[Any] = Field(None, description="Debug details (non-production only)")


class SuccessResponse(BaseModel):
    success: bool = True
    data: Any = None
    timestamp: str = Field(default_factory=iso_timestamp)


class ErrorResponse(BaseModel):
    success: bool = False
    error: ErrorBody
    timestamp: str = Field(default_factory=iso_timestamp)


def success_payload(data: Any) -> dict:
    """Build a JSON-ready success envelope"""
    if isinstance(data, BaseModel):
        data = data.model_dump(mode="json")
    return SuccessResponse(data=data).model_dump(mode="json")


def error_payload(code: str, message: str, details: Any = None) -> dict:
    """Build a JSON-ready error envelope (details omitted when empty)"""
    body = ErrorResponse(error=ErrorBody(code=code, message=message, details=details))
    payload = body.model_dump(mode="json")
    if details is None:
        payload["error"].pop("details", None)
    return payload
