"""
Shared error handling for the Emote Catalog service.
"""

from typing import Dict, Any, Optional
from pydantic import BaseModel


class ErrorResponse(BaseModel):
    """Standard error response format."""

    success: bool = False
    error: str
    code: str
    request_id: Optional[str] = None
    details: Dict[str, Any] = {}


class EmoteServiceException(Exception):
    """Base exception for Emote Catalog services."""

    status_code: int = 400
    headers: Dict[str, str] = {}

    def __init__(self, code: str, message: str, details: Optional[Dict[str, Any]] = None,
                 status_code: Optional[int] = None):
        self.code = code
        self.message = message
        self.details = details or {}
        if status_code is not None:
            self.status_code = status_code
        super().__init__(message)

    def to_response(self, request_id: Optional[str] = None) -> ErrorResponse:
        """Convert to error response."""
        return ErrorResponse(
            error=self.message,
            code=self.code,
            request_id=request_id,
            details=self.details
        )


class InvalidEmoteIdError(EmoteServiceException):
    """Submitted emote id is not a numeric asset id."""

    def __init__(self, message: str = "Invalid emote ID format", details: Optional[Dict[str, Any]] = None):
        super().__init__("INVALID_EMOTE_ID", message, details, status_code=400)


class EmoteRejectedError(EmoteServiceException):
    """Marketplace did not confirm the submitted asset as a purchasable emote."""

    def __init__(self, message: str = "Emote not found or not available for purchase",
                 details: Optional[Dict[str, Any]] = None):
        super().__init__("EMOTE_REJECTED", message, details, status_code=400)


class RateLimitError(EmoteServiceException):
    """Rate limiting errors."""

    def __init__(self, message: str = "Too many requests", retry_after: int = 60,
                 details: Optional[Dict[str, Any]] = None, headers: Optional[Dict[str, str]] = None):
        self.retry_after = retry_after
        self.headers = dict(headers or {})
        self.headers["Retry-After"] = str(retry_after)
        merged = {"retry_after": retry_after}
        merged.update(details or {})
        super().__init__("RATE_LIMIT_ERROR", message, merged, status_code=429)

