"""stashctl - A CLI and client library for Stash cloud file storage.

This package talks to a Stash backend (managed auth, REST tables and object
storage) and supports common workflows like:
- Authenticate and cache a session
- Queue files for upload with pause/resume/remove and progress estimates
- Compress images on the client before transfer
- Check site maintenance mode and announcements
"""

__version__ = "0.1.0"
__author__ = "Stash Contributors"

from stashctl.core.client import StashClient
from stashctl.core.config import Config, Profile
from stashctl.core.exceptions import (
    AuthenticationError,
    ConfigurationError,
    ConnectionError,
    MetadataError,
    NetworkError,
    StashCtlError,
    UploadError,
    ValidationError,
)
from stashctl.models.progress import TaskSnapshot, TaskStatus, UploadTask
from stashctl.uploaders.queue import UploadQueue

__all__ = [
    "__version__",
    "StashClient",
    "Config",
    "Profile",
    "UploadQueue",
    "UploadTask",
    "TaskSnapshot",
    "TaskStatus",
    "StashCtlError",
    "AuthenticationError",
    "ConfigurationError",
    "ConnectionError",
    "MetadataError",
    "NetworkError",
    "UploadError",
    "ValidationError",
]
