"""Input validation helpers for stashctl."""

from __future__ import annotations

import re
import uuid
from pathlib import Path
from urllib.parse import urlparse

from stashctl.core.exceptions import (
    InvalidIdentifierError,
    InvalidURLError,
    PathValidationError,
    ValidationError,
)

EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
MAX_TIMEOUT_SECONDS = 24 * 60 * 60


def validate_server_url(url: str) -> str:
    """Validate and normalize a server URL.

    Args:
        url: URL to validate.

    Returns:
        URL without trailing slash.

    Raises:
        InvalidURLError: If the URL is empty, lacks an http(s) scheme or host.
    """
    if not url or not url.strip():
        raise InvalidURLError(url or "", "URL is empty")

    url = url.strip()
    parsed = urlparse(url)
    if parsed.scheme not in ("http", "https"):
        raise InvalidURLError(url, "scheme must be http or https")
    if not parsed.netloc:
        raise InvalidURLError(url, "missing host")

    return url.rstrip("/")


def validate_path_exists(path: str | Path, *, must_be_file: bool = False) -> Path:
    """Validate that a local path exists.

    Args:
        path: Path to check.
        must_be_file: If True, reject directories.

    Returns:
        Resolved Path.

    Raises:
        PathValidationError: If the path is missing or not a file.
    """
    p = Path(path).expanduser()
    if not p.exists():
        raise PathValidationError(str(path), "does not exist")
    if must_be_file and not p.is_file():
        raise PathValidationError(str(path), "not a file")
    return p.resolve()


def validate_folder_id(folder_id: str) -> str:
    """Validate a folder ID (UUID)."""
    try:
        return str(uuid.UUID(folder_id.strip()))
    except (ValueError, AttributeError) as e:
        raise InvalidIdentifierError("folder_id", str(folder_id), "must be a UUID") from e


def validate_email(email: str) -> str:
    """Validate an email address used for sign-in."""
    email = (email or "").strip()
    if not EMAIL_PATTERN.match(email):
        raise InvalidIdentifierError("email", email, "not a valid address")
    return email


def validate_timeout(timeout: int) -> int:
    """Validate a timeout in seconds."""
    if timeout <= 0 or timeout > MAX_TIMEOUT_SECONDS:
        raise ValidationError(
            f"Invalid timeout: {timeout} (must be 1-{MAX_TIMEOUT_SECONDS})",
            field="timeout",
            value=timeout,
        )
    return timeout
