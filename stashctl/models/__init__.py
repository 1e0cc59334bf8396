"""Data models for stashctl.

Provides Pydantic models for backend records and dataclasses for upload
progress tracking.
"""

from __future__ import annotations

from .base import Announcement, AuthSession, BaseModel, FileRecord, Identity, MaintenanceMode
from .progress import (
    OperationResult,
    ProgressEstimate,
    SourceFile,
    TaskSnapshot,
    TaskStatus,
    UploadSummary,
    UploadTask,
)

__all__ = [
    # Base
    "BaseModel",
    # Records
    "Identity",
    "AuthSession",
    "FileRecord",
    "MaintenanceMode",
    "Announcement",
    # Progress
    "TaskStatus",
    "SourceFile",
    "ProgressEstimate",
    "UploadTask",
    "TaskSnapshot",
    "OperationResult",
    "UploadSummary",
]
