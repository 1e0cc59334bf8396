"""Progress models for tracking upload tasks.

Provides dataclasses for queued upload tasks, their display snapshots and
operation summaries.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional


class TaskStatus(str, Enum):
    """Lifecycle states of an upload task."""

    PENDING = "pending"
    COMPRESSING = "compressing"
    UPLOADING = "uploading"
    PAUSED = "paused"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_active(self) -> bool:
        """Task occupies the single upload slot."""
        return self in (TaskStatus.COMPRESSING, TaskStatus.UPLOADING)

    @property
    def is_terminal(self) -> bool:
        return self in (TaskStatus.COMPLETED, TaskStatus.FAILED)


@dataclass(frozen=True)
class SourceFile:
    """File payload handed to the queue."""

    name: str
    data: bytes = field(repr=False)
    mime_type: str = "application/octet-stream"

    @property
    def size(self) -> int:
        return len(self.data)

    @property
    def is_image(self) -> bool:
        return self.mime_type.lower().startswith("image/")

    @property
    def extension(self) -> str:
        """Text after the last dot of the name, or empty."""
        if "." not in self.name:
            return ""
        return self.name.rsplit(".", 1)[1]


@dataclass(frozen=True)
class ProgressEstimate:
    """Synthesized transfer progress at one point in time."""

    percent: float
    bytes_uploaded: float
    speed: float
    time_remaining: Optional[float]

    @property
    def progress(self) -> int:
        """Integer percentage for display."""
        return int(math.floor(self.percent + 0.5))


@dataclass
class UploadTask:
    """One file's journey through the upload pipeline."""

    id: str
    source: SourceFile
    status: TaskStatus = TaskStatus.PENDING
    progress: int = 0
    speed: float = 0.0
    time_remaining: Optional[float] = None
    error: Optional[str] = None
    storage_path: Optional[str] = None
    original_size: int = 0
    compressed_size: Optional[int] = None
    started_at: Optional[float] = None
    payload: Optional[SourceFile] = field(default=None, repr=False)

    def __post_init__(self) -> None:
        if not self.original_size:
            self.original_size = self.source.size

    @property
    def file_name(self) -> str:
        return self.source.name

    def snapshot(self) -> "TaskSnapshot":
        """Immutable view for the presentation layer."""
        return TaskSnapshot(
            id=self.id,
            file_name=self.source.name,
            file_size=self.original_size,
            status=self.status,
            progress=self.progress,
            speed=self.speed,
            time_remaining=self.time_remaining,
            error=self.error,
            storage_path=self.storage_path,
            original_size=self.original_size,
            compressed_size=self.compressed_size,
        )


@dataclass(frozen=True)
class TaskSnapshot:
    """Task state as seen by renderers and listeners."""

    id: str
    file_name: str
    file_size: int
    status: TaskStatus
    progress: int
    speed: float
    time_remaining: Optional[float]
    error: Optional[str] = None
    storage_path: Optional[str] = None
    original_size: int = 0
    compressed_size: Optional[int] = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "file_name": self.file_name,
            "file_size": self.file_size,
            "status": self.status.value,
            "progress": self.progress,
            "speed": self.speed,
            "time_remaining": self.time_remaining,
            "error": self.error,
            "storage_path": self.storage_path,
            "original_size": self.original_size,
            "compressed_size": self.compressed_size,
        }


@dataclass
class OperationResult:
    """Generic operation result."""

    success: bool
    total: int
    succeeded: int
    failed: int
    duration: float
    errors: List[str] = field(default_factory=list)


@dataclass
class UploadSummary(OperationResult):
    """Upload queue run summary."""

    total_bytes: int = 0
    uploaded_bytes: int = 0
    tasks: List[TaskSnapshot] = field(default_factory=list)

    @property
    def saved_bytes(self) -> int:
        """Bytes saved by client-side compression across completed tasks."""
        return sum(
            t.original_size - t.compressed_size
            for t in self.tasks
            if t.status == TaskStatus.COMPLETED and t.compressed_size is not None
        )

    @property
    def throughput_mbps(self) -> float:
        """Average MB/s over the whole run."""
        if self.duration == 0:
            return 0.0
        return self.uploaded_bytes / (1024 * 1024) / self.duration
