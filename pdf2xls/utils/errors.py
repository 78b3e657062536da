"""
Custom exceptions for the pdf2xls invoice pipeline.

This module defines all custom exceptions used throughout the application
for better error handling and debugging.
"""

from typing import Any, Optional


class Pdf2XlsException(Exception):
    """Base exception for all pdf2xls-specific errors."""

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None) -> None:
        """
        Initialize the exception.

        Args:
            message: Error message
            details: Optional dictionary with additional error details
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        """Return string representation of the error."""
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


# =============================================================================
# Extraction Exceptions
# =============================================================================


class ExtractionFailure(Pdf2XlsException):
    """Base exception for a failed extraction attempt."""

    pass


class UploadFailure(ExtractionFailure):
    """The document could not be uploaded to the provider."""

    def __init__(self, provider: str, reason: str) -> None:
        """Initialize with provider information."""
        message = f"Upload to {provider} failed: {reason}"
        super().__init__(message, {"provider": provider, "reason": reason})


class PollingExhausted(ExtractionFailure):
    """Polling ran out of attempts before the provider finished."""

    def __init__(self, provider: str, attempts: int, last_status: Optional[str] = None) -> None:
        """Initialize with polling information."""
        message = f"{provider} did not finish processing within {attempts} attempts"
        super().__init__(
            message,
            {"provider": provider, "attempts": attempts, "last_status": last_status},
        )


class ProviderReportedFailure(ExtractionFailure):
    """The provider reported a terminal failure status."""

    def __init__(self, provider: str, status: str) -> None:
        """Initialize with status information."""
        message = f"{provider} reported processing failure (status '{status}')"
        super().__init__(message, {"provider": provider, "status": status})


class ResultUnparsable(ExtractionFailure):
    """The provider payload is not the expected field tree."""

    pass


class InvalidExtractionResult(ExtractionFailure):
    """A required field is missing or empty in the extracted record."""

    def __init__(self, field: str) -> None:
        """Initialize with field name."""
        message = f"Extraction result is missing required field '{field}'"
        super().__init__(message, {"field": field})


# =============================================================================
# Orchestration Exceptions
# =============================================================================


class AttemptsExhausted(Pdf2XlsException):
    """A retried operation failed on every attempt."""

    def __init__(self, operation: str, attempts: int, last_error: Optional[BaseException]) -> None:
        """Initialize with retry information."""
        reason = str(last_error) if last_error else "result never became valid"
        message = f"Operation '{operation}' failed after {attempts} attempts: {reason}"
        super().__init__(message, {"operation": operation, "attempts": attempts})
        self.last_error = last_error


class FallbackUnavailable(Pdf2XlsException):
    """The fallback input does not exist."""

    def __init__(self, path: Optional[str]) -> None:
        """Initialize with the missing input path."""
        message = f"Fallback input '{path}' is not available"
        super().__init__(message, {"path": path})


class OrchestrationExhausted(Pdf2XlsException):
    """Both the primary and the fallback extraction paths failed."""

    def __init__(self, primary_error: BaseException, fallback_error: BaseException) -> None:
        """Initialize with both path errors."""
        message = "Primary and fallback extraction paths both failed"
        super().__init__(
            message,
            {"primary": str(primary_error), "fallback": str(fallback_error)},
        )
        self.primary_error = primary_error
        self.fallback_error = fallback_error


class DocumentLinkError(Pdf2XlsException):
    """The document link tool failed or returned an invalid URL."""

    pass


# =============================================================================
# Sink Exceptions
# =============================================================================


class SinkFailure(Pdf2XlsException):
    """Base exception for spreadsheet sink errors."""

    pass


class SinkAuthenticationError(SinkFailure):
    """Authentication with Google Sheets failed."""

    pass


class SinkLocateFailure(SinkFailure):
    """Target worksheet could not be found."""

    def __init__(self, spreadsheet_id: str, sheet_name: str) -> None:
        """Initialize with sheet identity."""
        message = f"Worksheet '{sheet_name}' not found in spreadsheet '{spreadsheet_id}'"
        super().__init__(message, {"spreadsheet_id": spreadsheet_id, "sheet_name": sheet_name})


class SinkWriteFailure(SinkFailure):
    """Reading from or writing to the worksheet failed."""

    pass


# =============================================================================
# Configuration Exceptions
# =============================================================================


class ConfigurationError(Pdf2XlsException):
    """Configuration error."""

    pass


class MissingConfigurationError(ConfigurationError):
    """Required configuration missing."""

    def __init__(self, config_name: str) -> None:
        """Initialize with config name."""
        message = f"Required configuration '{config_name}' is missing"
        super().__init__(message, {"config_name": config_name})


# =============================================================================
# Input Exceptions
# =============================================================================


class InvalidDocumentError(Pdf2XlsException):
    """Input document is missing or not a PDF."""

    def __init__(self, path: str, reason: str) -> None:
        """Initialize with path information."""
        message = f"Cannot process '{path}': {reason}"
        super().__init__(message, {"path": path, "reason": reason})


class DocumentDisposalError(Pdf2XlsException):
    """Processed document could not be deleted or archived."""

    def __init__(self, path: str, reason: str, row: int) -> None:
        """Initialize with path and the row already written."""
        message = f"Row {row} was written but '{path}' could not be removed: {reason}"
        super().__init__(message, {"path": path, "reason": reason, "row": row})
