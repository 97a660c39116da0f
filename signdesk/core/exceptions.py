"""Custom exception hierarchy."""

from typing import Any, Dict, Optional


class AppError(Exception):
    """Base exception for application errors."""
    def __init__(self, message: str, original_error: Exception = None):
        super().__init__(message)
        self.original_error = original_error


class APIClientError(AppError):
    """Raised when an external API call fails."""
    pass


class APITimeoutError(APIClientError):
    """Raised when an external API call times out."""
    pass


class DatabaseError(AppError):
    """Raised when a database operation fails."""
    pass


class ValidationError(AppError):
    """Raised when input validation fails."""
    pass


class ConfigurationError(AppError):
    """Raised when configuration is invalid or missing."""
    pass


class StorageError(AppError):
    """Raised when an object storage operation fails."""
    pass


class NotFoundError(AppError):
    """Raised when a requested record does not exist."""
    pass


class PermissionDeniedError(AppError):
    """Raised when the caller may not act on a record."""
    pass


class ExtractionError(AppError):
    """Base exception for the work-order extraction pipeline.

    Each subclass carries the HTTP status and the public ``error`` text the
    extraction endpoint responds with, plus optional diagnostics.
    """

    status_code: int = 500
    error: str = "Internal server error"

    def __init__(
        self,
        message: Optional[str] = None,
        details: Optional[str] = None,
        raw_response: Optional[str] = None,
        original_error: Exception = None,
    ):
        super().__init__(message or self.error, original_error=original_error)
        if message:
            self.error = message
        self.details = details
        self.raw_response = raw_response

    def to_payload(self) -> Dict[str, Any]:
        """Render the JSON body returned to the caller."""
        payload: Dict[str, Any] = {"error": self.error}
        if self.details is not None:
            payload["details"] = self.details
        if self.raw_response is not None:
            payload["rawResponse"] = self.raw_response
        return payload


class InvalidRequestError(ExtractionError):
    status_code = 400
    error = "Work order ID is required"


class WorkOrderNotFoundError(ExtractionError):
    status_code = 404
    error = "Work order not found"


class NoFilesFoundError(ExtractionError):
    status_code = 404
    error = "No files found for this work order"


class NoSupportedFilesError(ExtractionError):
    status_code = 400
    error = "No supported files found (PDF or images only)"


class ExtractionInProgressError(ExtractionError):
    status_code = 409
    error = "Work order is already being processed"


class ProviderConfigurationError(ExtractionError, ConfigurationError):
    status_code = 500
    error = "AI provider is not configured"


class VisionServiceError(ExtractionError):
    status_code = 500
    error = "Failed to analyze work order files"


class ResponseParseError(ExtractionError):
    status_code = 500
    error = "Failed to parse AI response"


class PersistenceError(ExtractionError, DatabaseError):
    status_code = 500
    error = "Failed to update work order"
