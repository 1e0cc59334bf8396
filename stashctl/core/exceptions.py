"""Exception hierarchy for stashctl.

Provides typed exceptions for different failure modes with clear error messages.
"""

from __future__ import annotations

from typing import Any


class StashCtlError(Exception):
    """Base exception for all stashctl errors."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            detail_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            return f"{self.message} ({detail_str})"
        return self.message


# =============================================================================
# Configuration Errors
# =============================================================================


class ConfigurationError(StashCtlError):
    """Error in configuration (missing, invalid, or malformed)."""

    def __init__(
        self,
        message: str,
        field: str | None = None,
        value: Any = None,
    ):
        details = {}
        if field:
            details["field"] = field
        if value is not None:
            details["value"] = repr(value)
        super().__init__(message, details)
        self.field = field
        self.value = value


class ProfileNotFoundError(ConfigurationError):
    """Requested profile does not exist."""

    def __init__(self, profile: str):
        super().__init__(f"Profile not found: {profile}", field="profile", value=profile)
        self.profile = profile


# =============================================================================
# Validation Errors
# =============================================================================


class ValidationError(StashCtlError):
    """Input validation failed."""

    def __init__(
        self,
        message: str,
        field: str | None = None,
        value: Any = None,
    ):
        details = {}
        if field:
            details["field"] = field
        if value is not None:
            details["value"] = repr(value)
        super().__init__(message, details)
        self.field = field
        self.value = value


class InvalidURLError(ValidationError):
    """Invalid URL format."""

    def __init__(self, url: str, reason: str = ""):
        msg = f"Invalid URL: {url}"
        if reason:
            msg = f"{msg} - {reason}"
        super().__init__(msg, field="url", value=url)
        self.url = url
        self.reason = reason


class InvalidIdentifierError(ValidationError):
    """Invalid identifier (folder ID, email, ...)."""

    def __init__(self, identifier_type: str, value: str, reason: str = ""):
        msg = f"Invalid {identifier_type}: {value}"
        if reason:
            msg = f"{msg} - {reason}"
        super().__init__(msg, field=identifier_type, value=value)
        self.identifier_type = identifier_type
        self.reason = reason


class PathValidationError(ValidationError):
    """Path validation failed."""

    def __init__(self, path: str, reason: str):
        super().__init__(f"Invalid path: {path} - {reason}", field="path", value=path)
        self.path = path
        self.reason = reason


# =============================================================================
# Connection Errors
# =============================================================================


class ConnectionError(StashCtlError):
    """Base class for connection-related errors."""

    def __init__(self, message: str, url: str | None = None):
        details = {"url": url} if url else {}
        super().__init__(message, details)
        self.url = url


class NetworkError(ConnectionError):
    """Network-level error (DNS, TCP, TLS)."""

    def __init__(self, url: str, cause: str | None = None):
        msg = f"Network error connecting to {url}"
        if cause:
            msg = f"{msg}: {cause}"
        super().__init__(msg, url)
        self.cause = cause


class ServerUnreachableError(ConnectionError):
    """Server is not reachable."""

    def __init__(self, url: str):
        super().__init__(f"Server unreachable: {url}", url)


class TimeoutError(ConnectionError):
    """Request timed out."""

    def __init__(self, url: str, timeout: float):
        super().__init__(f"Request timed out after {timeout}s: {url}", url)
        self.timeout = timeout


class RetryExhaustedError(ConnectionError):
    """All retry attempts failed."""

    def __init__(self, operation: str, attempts: int, last_error: Exception | None = None):
        msg = f"Operation '{operation}' failed after {attempts} attempts"
        if last_error:
            msg = f"{msg}: {last_error}"
        super().__init__(msg)
        self.operation = operation
        self.attempts = attempts
        self.last_error = last_error


# =============================================================================
# Authentication Errors
# =============================================================================


class AuthenticationError(StashCtlError):
    """Authentication failed."""

    def __init__(self, url: str | None = None, reason: str = ""):
        msg = "Authentication failed"
        if url:
            msg = f"{msg} for {url}"
        if reason:
            msg = f"{msg}: {reason}"
        details = {"url": url} if url else {}
        super().__init__(msg, details)
        self.url = url
        self.reason = reason


class SessionExpiredError(AuthenticationError):
    """Session has expired."""

    def __init__(self, url: str | None = None):
        super().__init__(url, "Session expired - please login again")


class PermissionDeniedError(AuthenticationError):
    """User lacks permission for the requested operation."""

    def __init__(self, resource: str, operation: str = "access"):
        super().__init__(reason=f"Permission denied to {operation} {resource}")
        self.resource = resource
        self.operation = operation


# =============================================================================
# Operation Errors
# =============================================================================


class OperationError(StashCtlError):
    """Error during an operation."""

    def __init__(
        self,
        operation: str,
        message: str,
        details: dict[str, Any] | None = None,
    ):
        full_details = {"operation": operation}
        if details:
            full_details.update(details)
        super().__init__(message, full_details)
        self.operation = operation


class UploadError(OperationError):
    """Blob transfer to object storage was rejected or failed."""

    def __init__(
        self,
        message: str,
        storage_path: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        full_details = details or {}
        if storage_path:
            full_details["path"] = storage_path
        super().__init__("upload", message, full_details)
        self.storage_path = storage_path


class MetadataError(OperationError):
    """File record insert failed after the blob was stored."""

    def __init__(
        self,
        message: str,
        storage_path: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        full_details = details or {}
        if storage_path:
            full_details["path"] = storage_path
        super().__init__("metadata", message, full_details)
        self.storage_path = storage_path


class CompressionError(OperationError):
    """Image compression failed."""

    def __init__(self, file_name: str, reason: str = ""):
        msg = f"Failed to compress {file_name}"
        if reason:
            msg = f"{msg}: {reason}"
        super().__init__("compress", msg, {"file": file_name})
        self.file_name = file_name
        self.reason = reason


class MaintenanceModeError(OperationError):
    """Site is in maintenance mode and the user is not an admin."""

    def __init__(self, message: str = ""):
        msg = "Site is in maintenance mode"
        if message:
            msg = f"{msg}: {message}"
        super().__init__("maintenance", msg)
        self.reason = message


class TaskNotFoundError(StashCtlError):
    """No upload task with the given ID."""

    def __init__(self, task_id: str):
        super().__init__(f"Upload task not found: {task_id}", {"task_id": task_id})
        self.task_id = task_id
