"""Upload queue manager.

``UploadQueue`` owns an ordered collection of upload tasks and runs them one
at a time on the current asyncio event loop:

    pending -> [compressing] -> uploading -> completed | failed
                                    |
                                  paused -> pending (resume)

Admission is event-driven: every command and every finished pipeline calls
``admit()`` once, which starts the earliest pending task when no task is
compressing or uploading. Pipelines and progress tickers live in side tables
keyed by task ID; pausing or removing a task revokes both, and a revoked
pipeline can no longer touch the task or notify listeners.

All commands must be called from code running on the event loop.
"""

from __future__ import annotations

import asyncio
import logging
import time
import uuid
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import replace
from typing import Optional

from stashctl.core.exceptions import StashCtlError, TaskNotFoundError
from stashctl.models.base import FileRecord, Identity
from stashctl.models.progress import (
    ProgressEstimate,
    SourceFile,
    TaskSnapshot,
    TaskStatus,
    UploadTask,
)
from stashctl.uploaders.common import build_storage_path
from stashctl.uploaders.compression import compress_image
from stashctl.uploaders.constants import DEFAULT_THROUGHPUT_FLOOR, DEFAULT_TICK_INTERVAL
from stashctl.uploaders.estimator import ProgressTicker, completed_estimate

logger = logging.getLogger(__name__)

IdentityLookup = Callable[[], Awaitable[Optional[Identity]]]
Transport = Callable[[str, bytes, str], Awaitable[None]]
MetadataSink = Callable[[FileRecord], Awaitable[None]]
Compressor = Callable[[SourceFile], SourceFile]
StoragePathFactory = Callable[[str, SourceFile], str]
Listener = Callable[[TaskSnapshot], None]

NOT_AUTHENTICATED_MESSAGE = "You must be authenticated to upload files"


def describe_error(exc: BaseException) -> str:
    """User-facing message for a pipeline failure."""
    if isinstance(exc, StashCtlError):
        return exc.message
    return str(exc) or type(exc).__name__


class UploadQueue:
    """Single-flight upload queue with pause/resume and estimated progress."""

    def __init__(
        self,
        identity: IdentityLookup,
        transport: Transport,
        sink: MetadataSink,
        *,
        compressor: Optional[Compressor] = compress_image,
        folder_id: Optional[str] = None,
        tick_interval: float = DEFAULT_TICK_INTERVAL,
        throughput_floor: float = DEFAULT_THROUGHPUT_FLOOR,
        clock: Callable[[], float] = time.monotonic,
        storage_path: StoragePathFactory = build_storage_path,
    ):
        """Initialize the queue with its collaborators.

        Args:
            identity: Async lookup of the signed-in user (None if signed out).
            transport: Async blob upload ``(path, payload, content_type)``;
                raises on failure.
            sink: Async insert of the file record; raises on failure.
            compressor: Image compressor, or None to upload images as-is.
            folder_id: Folder recorded on every uploaded file.
            tick_interval: Seconds between progress estimates.
            throughput_floor: Assumed minimum throughput in bytes/s.
            clock: Monotonic clock used for timing.
            storage_path: Builds the object path from user ID and payload.
        """
        self.identity = identity
        self.transport = transport
        self.sink = sink
        self.compressor = compressor
        self.folder_id = folder_id
        self.tick_interval = tick_interval
        self.throughput_floor = throughput_floor
        self.clock = clock
        self.storage_path = storage_path

        self._tasks: list[UploadTask] = []
        self._runners: dict[str, asyncio.Task[None]] = {}
        self._tickers: dict[str, ProgressTicker] = {}
        self._retired: set[asyncio.Task[None]] = set()
        self._finalizing: set[str] = set()
        self._listeners: list[Listener] = []
        self._closed = False

    # =========================================================================
    # State Access
    # =========================================================================

    def __len__(self) -> int:
        return len(self._tasks)

    def snapshot(self) -> list[TaskSnapshot]:
        """Ordered view of every task for rendering."""
        return [task.snapshot() for task in self._tasks]

    def get(self, task_id: str) -> TaskSnapshot:
        """Snapshot of one task.

        Raises:
            TaskNotFoundError: If no task has this ID.
        """
        task = self._find(task_id)
        if task is None:
            raise TaskNotFoundError(task_id)
        return task.snapshot()

    @property
    def active(self) -> Optional[TaskSnapshot]:
        """The task currently compressing or uploading, if any."""
        for task in self._tasks:
            if task.status.is_active:
                return task.snapshot()
        return None

    @property
    def is_idle(self) -> bool:
        return not self._runners

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Call ``listener`` with a snapshot on every task change.

        Returns:
            Function that unsubscribes the listener.
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    # =========================================================================
    # Commands
    # =========================================================================

    def enqueue(self, files: Iterable[SourceFile]) -> list[str]:
        """Append one pending task per file, in order.

        Returns:
            IDs of the new tasks (empty for empty input).
        """
        new_tasks = [UploadTask(id=uuid.uuid4().hex, source=source) for source in files]
        if not new_tasks:
            return []

        self._tasks.extend(new_tasks)
        for task in new_tasks:
            logger.debug("Queued %s (%d bytes) as %s", task.file_name, task.original_size, task.id)
            self._emit(task)

        self.admit()
        return [task.id for task in new_tasks]

    def admit(self) -> Optional[str]:
        """Start the earliest pending task if nothing is in flight.

        Returns:
            ID of the started task, or None.
        """
        if self._closed:
            return None
        if any(task.status.is_active for task in self._tasks):
            return None

        task = next((t for t in self._tasks if t.status == TaskStatus.PENDING), None)
        if task is None:
            logger.debug("Upload queue idle")
            return None

        # The slot is claimed before the pipeline runs so a second admit()
        # in the same loop iteration cannot pick this task again.
        if self._should_compress(task):
            self._replace(task.id, status=TaskStatus.COMPRESSING, error=None)
        else:
            self._begin_upload(task.id)

        runner = asyncio.get_running_loop().create_task(
            self._run(task.id), name=f"upload-{task.id}"
        )
        self._runners[task.id] = runner
        return task.id

    def pause(self, task_id: str) -> bool:
        """Abort an uploading task and keep its progress.

        A task whose blob is already stored is finishing its file record and
        cannot be paused.

        Returns:
            True if the task was uploading and is now paused.
        """
        task = self._find(task_id)
        if task is None or task.status != TaskStatus.UPLOADING:
            return False
        if task_id in self._finalizing:
            logger.debug("Not pausing %s; blob already stored", task.file_name)
            return False

        self._revoke(task_id)
        self._replace(task_id, status=TaskStatus.PAUSED, speed=0.0, time_remaining=None)
        logger.info("Paused %s at %d%%", task.file_name, task.progress)
        self.admit()
        return True

    def resume(self, task_id: str) -> bool:
        """Put a paused task back in line; the next attempt starts from 0%.

        Returns:
            True if the task was paused and is now pending.
        """
        task = self._find(task_id)
        if task is None or task.status != TaskStatus.PAUSED:
            return False

        self._replace(task_id, status=TaskStatus.PENDING)
        logger.info("Resumed %s", task.file_name)
        self.admit()
        return True

    def remove(self, task_id: str) -> bool:
        """Cancel any work for a task and drop it, whatever its state.

        Returns:
            True if the task existed.
        """
        index = self._index(task_id)
        if index is None:
            return False

        self._revoke(task_id)
        task = self._tasks.pop(index)
        logger.info("Removed %s (%s)", task.file_name, task.status.value)
        self.admit()
        return True

    def clear_completed(self) -> int:
        """Drop every completed task.

        Returns:
            Number of tasks removed.
        """
        before = len(self._tasks)
        self._tasks = [t for t in self._tasks if t.status != TaskStatus.COMPLETED]
        removed = before - len(self._tasks)
        if removed:
            logger.debug("Cleared %d completed uploads", removed)
        self.admit()
        return removed

    async def wait_idle(self) -> None:
        """Wait until no pipeline is running."""
        while self._runners:
            await asyncio.gather(*list(self._runners.values()), return_exceptions=True)

    async def close(self) -> None:
        """Stop admitting, pause in-flight transfers and wait for pipelines to unwind.

        Tasks whose blob is already stored finish their file record first.
        """
        self._closed = True
        for task in list(self._tasks):
            if task.status == TaskStatus.UPLOADING:
                self.pause(task.id)
            elif task.status == TaskStatus.COMPRESSING:
                self._revoke(task.id)
                self._replace(task.id, status=TaskStatus.PENDING)
        pending = list(self._retired)
        pending.extend(
            self._runners[task_id] for task_id in self._finalizing if task_id in self._runners
        )
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

    # =========================================================================
    # Pipeline
    # =========================================================================

    async def _run(self, task_id: str) -> None:
        try:
            await self._pipeline(task_id)
        except asyncio.CancelledError:
            logger.debug("Pipeline for %s cancelled", task_id)
            raise
        finally:
            if self._owns(task_id):
                self._finalizing.discard(task_id)
                del self._runners[task_id]
                self._stop_ticker(task_id)
                self.admit()

    async def _pipeline(self, task_id: str) -> None:
        task = self._find(task_id)
        if task is None:
            return

        if task.status == TaskStatus.COMPRESSING:
            payload = self._compress(task.source)
            self._update(task_id, payload=payload, compressed_size=payload.size)
            self._begin_upload(task_id)
            task = self._find(task_id)
            if task is None:
                return

        payload = task.payload or task.source

        try:
            identity = await self.identity()
        except Exception as e:
            self._fail(task_id, e)
            return
        if identity is None:
            self._fail_message(task_id, NOT_AUTHENTICATED_MESSAGE)
            return

        storage_path = self.storage_path(identity.id, payload)
        started_at = task.started_at if task.started_at is not None else self.clock()
        ticker = ProgressTicker(
            payload.size,
            lambda estimate: self._on_tick(task_id, ticker, estimate),
            interval=self.tick_interval,
            throughput_floor=self.throughput_floor,
            clock=self.clock,
            started_at=started_at,
            name=f"ticker-{task_id}",
        )
        self._tickers[task_id] = ticker

        try:
            with ticker:
                await self.transport(storage_path, payload.data, payload.mime_type)
        except Exception as e:
            self._fail(task_id, e)
            return
        finally:
            if self._tickers.get(task_id) is ticker:
                del self._tickers[task_id]

        if not self._owns(task_id):
            return
        # The blob is stored; from here on the task can no longer be paused.
        self._finalizing.add(task_id)
        final = completed_estimate(self.clock() - started_at, payload.size)
        self._update(task_id, progress=100, speed=final.speed, time_remaining=0.0)

        record = FileRecord(
            owner=identity.id,
            name=payload.name,
            size=payload.size,
            mime_type=payload.mime_type,
            storage_path=storage_path,
            folder_id=self.folder_id,
        )
        try:
            await self.sink(record)
        except Exception as e:
            logger.warning("File record insert failed; blob left at %s", storage_path)
            self._fail(task_id, e)
            return

        self._update(task_id, status=TaskStatus.COMPLETED, storage_path=storage_path)
        logger.info("Uploaded %s to %s", payload.name, storage_path)

    def _compress(self, source: SourceFile) -> SourceFile:
        if self.compressor is None:
            return source
        try:
            return self.compressor(source)
        except Exception as e:
            logger.warning("Compression of %s failed, using original: %s", source.name, e)
            return source

    def _should_compress(self, task: UploadTask) -> bool:
        return self.compressor is not None and task.payload is None and task.source.is_image

    def _begin_upload(self, task_id: str) -> None:
        self._replace(
            task_id,
            status=TaskStatus.UPLOADING,
            progress=0,
            speed=0.0,
            time_remaining=None,
            error=None,
            started_at=self.clock(),
        )

    def _on_tick(self, task_id: str, ticker: ProgressTicker, estimate: ProgressEstimate) -> None:
        if self._tickers.get(task_id) is not ticker:
            return
        task = self._find(task_id)
        if task is None or task.status != TaskStatus.UPLOADING:
            return
        self._replace(
            task_id,
            progress=max(task.progress, estimate.progress),
            speed=estimate.speed,
            time_remaining=estimate.time_remaining,
        )

    def _fail(self, task_id: str, exc: BaseException) -> None:
        self._fail_message(task_id, describe_error(exc))

    def _fail_message(self, task_id: str, message: str) -> None:
        task = self._update(
            task_id,
            status=TaskStatus.FAILED,
            error=message or "Upload failed",
            speed=0.0,
            time_remaining=None,
        )
        if task is not None:
            logger.error("Upload of %s failed: %s", task.file_name, task.error)

    # =========================================================================
    # Bookkeeping
    # =========================================================================

    def _index(self, task_id: str) -> Optional[int]:
        for index, task in enumerate(self._tasks):
            if task.id == task_id:
                return index
        return None

    def _find(self, task_id: str) -> Optional[UploadTask]:
        index = self._index(task_id)
        return None if index is None else self._tasks[index]

    def _owns(self, task_id: str) -> bool:
        """The calling coroutine is the live pipeline for ``task_id``."""
        return self._runners.get(task_id) is asyncio.current_task()

    def _replace(self, task_id: str, **changes: object) -> Optional[UploadTask]:
        index = self._index(task_id)
        if index is None:
            return None
        task = replace(self._tasks[index], **changes)
        self._tasks[index] = task
        self._emit(task)
        return task

    def _update(self, task_id: str, **changes: object) -> Optional[UploadTask]:
        """Apply changes from a pipeline, ignoring revoked pipelines."""
        if not self._owns(task_id):
            return None
        return self._replace(task_id, **changes)

    def _stop_ticker(self, task_id: str) -> None:
        ticker = self._tickers.pop(task_id, None)
        if ticker is not None:
            ticker.stop()

    def _revoke(self, task_id: str) -> None:
        self._finalizing.discard(task_id)
        runner = self._runners.pop(task_id, None)
        if runner is not None:
            runner.cancel()
            self._retired.add(runner)
            runner.add_done_callback(self._retired.discard)
        self._stop_ticker(task_id)

    def _emit(self, task: UploadTask) -> None:
        snapshot = task.snapshot()
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception:
                logger.exception("Upload listener failed for %s", task.id)
