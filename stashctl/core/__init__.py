"""Core modules for stashctl."""

from stashctl.core.auth import AuthManager
from stashctl.core.client import StashClient
from stashctl.core.config import CONFIG_DIR, CONFIG_FILE, Config, Profile
from stashctl.core.exceptions import (
    AuthenticationError,
    CompressionError,
    ConfigurationError,
    ConnectionError,
    MaintenanceModeError,
    MetadataError,
    NetworkError,
    OperationError,
    RetryExhaustedError,
    StashCtlError,
    TaskNotFoundError,
    UploadError,
    ValidationError,
)
from stashctl.core.logging import LogContext, get_audit_logger, setup_logging
from stashctl.core.output import (
    OutputFormat,
    console,
    print_error,
    print_json,
    print_output,
    print_success,
    print_table,
    print_warning,
)
from stashctl.core.validation import (
    validate_email,
    validate_folder_id,
    validate_path_exists,
    validate_server_url,
    validate_timeout,
)

__all__ = [
    # Exceptions
    "StashCtlError",
    "AuthenticationError",
    "ConfigurationError",
    "ConnectionError",
    "NetworkError",
    "ValidationError",
    "OperationError",
    "UploadError",
    "MetadataError",
    "CompressionError",
    "MaintenanceModeError",
    "TaskNotFoundError",
    "RetryExhaustedError",
    # Validation
    "validate_server_url",
    "validate_path_exists",
    "validate_folder_id",
    "validate_email",
    "validate_timeout",
    # Config
    "Config",
    "Profile",
    "CONFIG_DIR",
    "CONFIG_FILE",
    # Client
    "StashClient",
    # Auth
    "AuthManager",
    # Output
    "OutputFormat",
    "print_output",
    "print_table",
    "print_json",
    "print_error",
    "print_warning",
    "print_success",
    "console",
    # Logging
    "get_audit_logger",
    "setup_logging",
    "LogContext",
]
