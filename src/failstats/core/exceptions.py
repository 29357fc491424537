"""
Custom exceptions for the failstats agent.

Every error raised inside a reporting cycle derives from FailstatsException
and carries a stable error code plus structured details for logging.
"""

from typing import Any, Dict, Optional


class FailstatsException(Exception):
    """Base exception for the failstats agent."""

    def __init__(
        self,
        message: str,
        error_code: str = "internal_error",
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.error_code = error_code
        self.details = details or {}


class LogNotFoundError(FailstatsException):
    """Raised when the log directory is inaccessible or holds no matching logs."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(
            message=message,
            error_code="not_found",
            details=details,
        )


class InvalidTargetError(FailstatsException):
    """Raised when a path points at the wrong kind of filesystem object."""

    def __init__(self, message: str, path: Optional[str] = None) -> None:
        super().__init__(
            message=message,
            error_code="invalid_target",
            details={"path": path} if path else None,
        )


class TimestampParseError(FailstatsException):
    """Raised when a log timestamp or persisted state cannot be parsed."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(
            message=message,
            error_code="parse_error",
            details=details,
        )


class FileAccessError(FailstatsException):
    """Raised when reading, decompressing or writing a file fails."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(
            message=message,
            error_code="io_error",
            details=details,
        )


class TransportError(FailstatsException):
    """Raised when the collector cannot be reached or rejects a report."""

    def __init__(
        self,
        message: str,
        status: Optional[int] = None,
        acknowledgment: Optional[str] = None,
    ) -> None:
        details: Dict[str, Any] = {}
        if status is not None:
            details["status"] = status
        if acknowledgment is not None:
            details["acknowledgment"] = acknowledgment

        super().__init__(
            message=message,
            error_code="transport_error",
            details=details,
        )


class ConfigurationError(FailstatsException):
    """Raised when the configuration document is missing or invalid."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(
            message=message,
            error_code="configuration_error",
            details=details,
        )
