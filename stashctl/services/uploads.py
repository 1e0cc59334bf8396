"""Upload service for Stash file uploads.

Wires an ``UploadQueue`` to a ``StashClient``: identity comes from the auth
service, blobs go to the object store and file records to the ``files``
table. Every finished task is written to the audit log.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Sequence
from functools import partial
from pathlib import Path
from typing import Optional, Union

from stashctl.core.logging import AuditLogger, get_audit_logger, log_context
from stashctl.models.base import Identity
from stashctl.models.progress import SourceFile, TaskSnapshot, TaskStatus, UploadSummary
from stashctl.uploaders.common import collect_upload_files, load_source_file
from stashctl.uploaders.compression import compress_image
from stashctl.uploaders.constants import (
    DEFAULT_MAX_IMAGE_DIMENSION,
    DEFAULT_MAX_IMAGE_SIZE_BYTES,
    DEFAULT_THROUGHPUT_FLOOR,
    DEFAULT_TICK_INTERVAL,
)
from stashctl.uploaders.queue import UploadQueue

from .base import BaseService

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


def summarize(tasks: Sequence[TaskSnapshot], duration: float) -> UploadSummary:
    """Build a run summary from final task snapshots."""
    completed = [t for t in tasks if t.status == TaskStatus.COMPLETED]
    failed = [t for t in tasks if t.status == TaskStatus.FAILED]
    uploaded_bytes = sum(
        t.compressed_size if t.compressed_size is not None else t.original_size for t in completed
    )
    return UploadSummary(
        success=not failed and len(completed) == len(tasks),
        total=len(tasks),
        succeeded=len(completed),
        failed=len(failed),
        duration=duration,
        errors=[f"{t.file_name}: {t.error}" for t in failed],
        total_bytes=sum(t.original_size for t in tasks),
        uploaded_bytes=uploaded_bytes,
        tasks=list(tasks),
    )


class UploadService(BaseService):
    """Service for uploading local files through the upload queue."""

    def __init__(
        self,
        client,
        *,
        max_image_dimension: int = DEFAULT_MAX_IMAGE_DIMENSION,
        max_image_size_bytes: int = DEFAULT_MAX_IMAGE_SIZE_BYTES,
        tick_interval: float = DEFAULT_TICK_INTERVAL,
        throughput_floor: float = DEFAULT_THROUGHPUT_FLOOR,
        audit: Optional[AuditLogger] = None,
    ) -> None:
        super().__init__(client)
        self.max_image_dimension = max_image_dimension
        self.max_image_size_bytes = max_image_size_bytes
        self.tick_interval = tick_interval
        self.throughput_floor = throughput_floor
        self.audit = audit or get_audit_logger()
        self._identity: Optional[Identity] = None

    async def _lookup_identity(self) -> Optional[Identity]:
        self._identity = await self.client.get_user()
        return self._identity

    def build_queue(
        self,
        *,
        folder_id: Optional[str] = None,
        compress: bool = True,
    ) -> UploadQueue:
        """Create a queue backed by this service's client.

        Args:
            folder_id: Folder recorded on every uploaded file
            compress: Whether images are compressed before transfer

        Returns:
            UploadQueue ready for ``enqueue``
        """
        compressor = None
        if compress:
            compressor = partial(
                compress_image,
                max_dimension=self.max_image_dimension,
                max_size_bytes=self.max_image_size_bytes,
            )

        return UploadQueue(
            identity=self._lookup_identity,
            transport=self.client.upload_object,
            sink=self.client.insert_file_record,
            compressor=compressor,
            folder_id=folder_id,
            tick_interval=self.tick_interval,
            throughput_floor=self.throughput_floor,
        )

    def _audit(self, folder_id: Optional[str], snapshot: TaskSnapshot) -> None:
        if not snapshot.status.is_terminal:
            return
        details = {"size": snapshot.original_size}
        if snapshot.compressed_size is not None:
            details["compressed_size"] = snapshot.compressed_size
        if snapshot.error:
            details["error"] = snapshot.error
        self.audit.log_operation(
            "upload",
            user=self._identity.id if self._identity else None,
            file_name=snapshot.file_name,
            storage_path=snapshot.storage_path,
            folder_id=folder_id,
            success=snapshot.status == TaskStatus.COMPLETED,
            details=details,
        )

    async def upload_sources(
        self,
        sources: Sequence[SourceFile],
        *,
        folder_id: Optional[str] = None,
        compress: bool = True,
        on_update: Optional[Callable[[TaskSnapshot], None]] = None,
    ) -> UploadSummary:
        """Upload in-memory files one at a time and wait for all of them.

        Args:
            sources: Files to upload, in order
            folder_id: Target folder ID
            compress: Compress images before transfer
            on_update: Called with a snapshot on every task change

        Returns:
            UploadSummary with the final state of every task
        """
        queue = self.build_queue(folder_id=folder_id, compress=compress)
        subscriptions = [queue.subscribe(partial(self._audit, folder_id))]
        if on_update is not None:
            subscriptions.append(queue.subscribe(on_update))

        start = time.monotonic()
        try:
            with log_context("upload", logger, files=len(sources), folder=folder_id):
                queue.enqueue(sources)
                await queue.wait_idle()
        finally:
            await queue.close()
            for unsubscribe in subscriptions:
                unsubscribe()

        summary = summarize(queue.snapshot(), time.monotonic() - start)
        logger.info(
            "Uploaded %d/%d files (%d failed)",
            summary.succeeded,
            summary.total,
            summary.failed,
        )
        return summary

    async def upload_files(
        self,
        paths: Sequence[PathLike],
        *,
        folder_id: Optional[str] = None,
        compress: bool = True,
        recursive: bool = False,
        on_update: Optional[Callable[[TaskSnapshot], None]] = None,
    ) -> UploadSummary:
        """Upload local files and directories.

        Args:
            paths: Files or directories to upload
            folder_id: Target folder ID
            compress: Compress images before transfer
            recursive: Descend into subdirectories
            on_update: Called with a snapshot on every task change

        Returns:
            UploadSummary with the final state of every task

        Raises:
            PathValidationError: If a path does not exist
        """
        files = collect_upload_files([Path(p) for p in paths], recursive=recursive)
        sources = [load_source_file(path) for path in files]
        return await self.upload_sources(
            sources,
            folder_id=folder_id,
            compress=compress,
            on_update=on_update,
        )
