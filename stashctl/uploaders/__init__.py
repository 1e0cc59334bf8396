"""Upload queue for stashctl.

This module provides the client-side upload pipeline:
- Upload queue (single-flight admission, pause/resume/remove)
- Progress estimation for transfers without progress events
- Best-effort image compression with Pillow

Use `UploadService` from `stashctl.services.uploads` for the wired-up
queue; `UploadQueue` takes its collaborators as plain async callables.
"""

from stashctl.uploaders.common import (
    build_storage_path,
    collect_upload_files,
    guess_mime_type,
    load_source_file,
)
from stashctl.uploaders.compression import compress_image
from stashctl.uploaders.constants import (
    DEFAULT_MAX_IMAGE_DIMENSION,
    DEFAULT_MAX_IMAGE_SIZE_BYTES,
    DEFAULT_THROUGHPUT_FLOOR,
    DEFAULT_TICK_INTERVAL,
    MAX_ESTIMATED_PERCENT,
    MIN_EXPECTED_DURATION,
)
from stashctl.uploaders.estimator import ProgressTicker, completed_estimate, estimate_progress
from stashctl.uploaders.queue import UploadQueue

__all__ = [
    # Constants
    "DEFAULT_MAX_IMAGE_DIMENSION",
    "DEFAULT_MAX_IMAGE_SIZE_BYTES",
    "DEFAULT_THROUGHPUT_FLOOR",
    "DEFAULT_TICK_INTERVAL",
    "MAX_ESTIMATED_PERCENT",
    "MIN_EXPECTED_DURATION",
    # Common utilities
    "build_storage_path",
    "collect_upload_files",
    "guess_mime_type",
    "load_source_file",
    # Pipeline stages
    "compress_image",
    "estimate_progress",
    "completed_estimate",
    "ProgressTicker",
    # Queue
    "UploadQueue",
]
