"""Tests for stashctl.uploaders.queue.UploadQueue."""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from typing import Optional

import pytest

from stashctl.core.exceptions import MetadataError, TaskNotFoundError, UploadError
from stashctl.models.base import FileRecord, Identity
from stashctl.models.progress import SourceFile, TaskSnapshot, TaskStatus
from stashctl.uploaders.queue import NOT_AUTHENTICATED_MESSAGE, UploadQueue

# =============================================================================
# Fakes
# =============================================================================


class FakeClock:
    """Monotonic clock advanced by hand."""

    def __init__(self) -> None:
        self.now = 100.0

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeBackend:
    """In-memory identity, object store and files table."""

    def __init__(self, user_id: Optional[str] = "user-1") -> None:
        self.identity = Identity(id=user_id, email="me@example.com") if user_id else None
        self.identity_error: Optional[Exception] = None
        self.gates: dict[bytes, asyncio.Event] = {}
        self.failures: dict[bytes, Exception] = {}
        self.sink_error: Optional[Exception] = None
        self.sink_gate: Optional[asyncio.Event] = None
        self.uploads: list[tuple[str, bytes, str]] = []
        self.completed_uploads: list[bytes] = []
        self.cancelled: list[bytes] = []
        self.records: list[FileRecord] = []
        self.in_flight = 0
        self.max_in_flight = 0

    def gate(self, payload: bytes) -> asyncio.Event:
        event = asyncio.Event()
        self.gates[payload] = event
        return event

    async def get_identity(self) -> Optional[Identity]:
        await asyncio.sleep(0)
        if self.identity_error is not None:
            raise self.identity_error
        return self.identity

    async def transport(self, path: str, payload: bytes, content_type: str) -> None:
        self.uploads.append((path, payload, content_type))
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            gate = self.gates.get(payload)
            if gate is not None:
                await gate.wait()
            else:
                await asyncio.sleep(0)
            if payload in self.failures:
                raise self.failures[payload]
            self.completed_uploads.append(payload)
        except asyncio.CancelledError:
            self.cancelled.append(payload)
            raise
        finally:
            self.in_flight -= 1

    async def sink(self, record: FileRecord) -> None:
        if self.sink_gate is not None:
            await self.sink_gate.wait()
        await asyncio.sleep(0)
        if self.sink_error is not None:
            raise self.sink_error
        self.records.append(record)


def make_file(name: str, data: Optional[bytes] = None, mime_type: str = "text/plain") -> SourceFile:
    return SourceFile(name=name, data=data if data is not None else name.encode(), mime_type=mime_type)


def make_queue(backend: FakeBackend, **kwargs) -> UploadQueue:
    kwargs.setdefault("compressor", None)
    kwargs.setdefault("tick_interval", 0.005)
    return UploadQueue(
        identity=backend.get_identity,
        transport=backend.transport,
        sink=backend.sink,
        **kwargs,
    )


async def wait_for(predicate: Callable[[], bool], timeout: float = 2.0) -> None:
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not met in time")
        await asyncio.sleep(0.002)


def statuses(queue: UploadQueue) -> list[TaskStatus]:
    return [t.status for t in queue.snapshot()]


# =============================================================================
# Enqueue and Admission
# =============================================================================


class TestEnqueue:
    """Tests for enqueue and single-flight admission."""

    def test_empty_enqueue_is_noop(self):
        async def scenario():
            backend = FakeBackend()
            queue = make_queue(backend)

            assert queue.enqueue([]) == []
            assert queue.snapshot() == []
            assert queue.is_idle

        asyncio.run(scenario())

    def test_first_task_starts_immediately_rest_wait(self):
        async def scenario():
            backend = FakeBackend()
            backend.gate(b"a.txt")
            queue = make_queue(backend)

            ids = queue.enqueue([make_file("a.txt"), make_file("b.txt"), make_file("c.txt")])

            assert len(set(ids)) == 3
            assert [t.id for t in queue.snapshot()] == ids
            assert statuses(queue) == [
                TaskStatus.UPLOADING,
                TaskStatus.PENDING,
                TaskStatus.PENDING,
            ]
            assert queue.active is not None
            assert queue.active.id == ids[0]

            await queue.close()

        asyncio.run(scenario())

    def test_uploads_run_one_at_a_time_in_order(self):
        async def scenario():
            backend = FakeBackend()
            queue = make_queue(backend)

            queue.enqueue([make_file(f"f{i}.txt") for i in range(4)])
            await queue.wait_idle()

            assert backend.max_in_flight == 1
            assert [payload for _, payload, _ in backend.uploads] == [
                b"f0.txt",
                b"f1.txt",
                b"f2.txt",
                b"f3.txt",
            ]
            assert statuses(queue) == [TaskStatus.COMPLETED] * 4
            assert all(t.progress == 100 for t in queue.snapshot())
            assert all(t.time_remaining == 0 for t in queue.snapshot())

        asyncio.run(scenario())

    def test_enqueue_while_busy_waits_for_slot(self):
        async def scenario():
            backend = FakeBackend()
            gate = backend.gate(b"a.txt")
            queue = make_queue(backend)

            first = queue.enqueue([make_file("a.txt")])[0]
            await wait_for(lambda: len(backend.uploads) == 1)
            second = queue.enqueue([make_file("b.txt")])[0]

            assert queue.get(first).status == TaskStatus.UPLOADING
            assert queue.get(second).status == TaskStatus.PENDING

            gate.set()
            await queue.wait_idle()

            assert [payload for _, payload, _ in backend.uploads] == [b"a.txt", b"b.txt"]
            assert backend.max_in_flight == 1

        asyncio.run(scenario())

    def test_get_unknown_task_raises(self):
        async def scenario():
            queue = make_queue(FakeBackend())
            with pytest.raises(TaskNotFoundError):
                queue.get("missing")

        asyncio.run(scenario())


# =============================================================================
# Pipeline Outcomes
# =============================================================================


class TestPipeline:
    """Tests for the upload pipeline of a single task."""

    def test_success_writes_record(self):
        async def scenario():
            backend = FakeBackend(user_id="user-1")
            queue = make_queue(backend, folder_id="folder-9")

            task_id = queue.enqueue([make_file("notes.TXT", b"hello")])[0]
            await queue.wait_idle()

            task = queue.get(task_id)
            assert task.status == TaskStatus.COMPLETED
            assert task.error is None

            assert len(backend.records) == 1
            record = backend.records[0]
            assert record.owner == "user-1"
            assert record.name == "notes.TXT"
            assert record.size == 5
            assert record.mime_type == "text/plain"
            assert record.folder_id == "folder-9"
            assert record.storage_path == task.storage_path
            assert record.storage_path.startswith("user-1/")
            assert record.storage_path.endswith(".txt")

            path, payload, content_type = backend.uploads[0]
            assert path == record.storage_path
            assert payload == b"hello"
            assert content_type == "text/plain"

        asyncio.run(scenario())

    def test_transport_failure_fails_task_and_continues(self):
        async def scenario():
            backend = FakeBackend()
            backend.failures[b"a.txt"] = UploadError("quota exceeded", "user-1/x.txt")
            queue = make_queue(backend)

            first, second = queue.enqueue([make_file("a.txt"), make_file("b.txt")])
            await queue.wait_idle()

            assert queue.get(first).status == TaskStatus.FAILED
            assert queue.get(first).error == "quota exceeded"
            assert queue.get(second).status == TaskStatus.COMPLETED
            assert [r.name for r in backend.records] == ["b.txt"]

        asyncio.run(scenario())

    def test_plain_exception_message_is_kept(self):
        async def scenario():
            backend = FakeBackend()
            backend.failures[b"a.txt"] = RuntimeError("socket closed")
            queue = make_queue(backend)

            task_id = queue.enqueue([make_file("a.txt")])[0]
            await queue.wait_idle()

            assert queue.get(task_id).error == "socket closed"

        asyncio.run(scenario())

    def test_metadata_failure_fails_task_after_blob_stored(self):
        async def scenario():
            backend = FakeBackend()
            backend.sink_error = MetadataError("duplicate key", "user-1/x.txt")
            queue = make_queue(backend)

            task_id = queue.enqueue([make_file("a.txt")])[0]
            await queue.wait_idle()

            task = queue.get(task_id)
            assert task.status == TaskStatus.FAILED
            assert task.error == "duplicate key"
            assert backend.completed_uploads == [b"a.txt"]
            assert backend.records == []

        asyncio.run(scenario())

    def test_missing_identity_fails_without_transfer(self):
        async def scenario():
            backend = FakeBackend(user_id=None)
            queue = make_queue(backend)

            ids = queue.enqueue([make_file("a.txt"), make_file("b.txt")])
            await queue.wait_idle()

            for task_id in ids:
                task = queue.get(task_id)
                assert task.status == TaskStatus.FAILED
                assert "must be authenticated" in task.error
            assert NOT_AUTHENTICATED_MESSAGE == queue.get(ids[0]).error
            assert backend.uploads == []

        asyncio.run(scenario())

    def test_identity_lookup_error_fails_task(self):
        async def scenario():
            backend = FakeBackend()
            backend.identity_error = RuntimeError("auth service down")
            queue = make_queue(backend)

            task_id = queue.enqueue([make_file("a.txt")])[0]
            await queue.wait_idle()

            assert queue.get(task_id).status == TaskStatus.FAILED
            assert queue.get(task_id).error == "auth service down"
            assert backend.uploads == []

        asyncio.run(scenario())

    def test_listener_errors_do_not_break_queue(self):
        async def scenario():
            backend = FakeBackend()
            queue = make_queue(backend)

            def broken(snapshot: TaskSnapshot) -> None:
                raise ValueError("render failed")

            queue.subscribe(broken)
            task_id = queue.enqueue([make_file("a.txt")])[0]
            await queue.wait_idle()

            assert queue.get(task_id).status == TaskStatus.COMPLETED

        asyncio.run(scenario())

    def test_unsubscribe_stops_notifications(self):
        async def scenario():
            backend = FakeBackend()
            queue = make_queue(backend)
            events: list[TaskSnapshot] = []

            unsubscribe = queue.subscribe(events.append)
            queue.enqueue([make_file("a.txt")])
            await queue.wait_idle()
            seen = len(events)
            unsubscribe()

            queue.enqueue([make_file("b.txt")])
            await queue.wait_idle()

            assert seen > 0
            assert len(events) == seen

        asyncio.run(scenario())


# =============================================================================
# Progress
# =============================================================================


class TestProgress:
    """Tests for estimated progress while a transfer is in flight."""

    def test_progress_is_monotonic_and_capped(self):
        async def scenario():
            backend = FakeBackend()
            gate = backend.gate(b"a.txt")
            clock = FakeClock()
            queue = make_queue(backend, clock=clock)
            progress: list[int] = []

            queue.subscribe(lambda s: progress.append(s.progress))
            task_id = queue.enqueue([make_file("a.txt")])[0]
            await wait_for(lambda: len(backend.uploads) == 1)

            # Small file: expected duration is the 2 second minimum.
            clock.advance(1.0)
            await wait_for(lambda: queue.get(task_id).progress == 50)
            assert queue.get(task_id).time_remaining == pytest.approx(1.0)

            clock.advance(30.0)
            await wait_for(lambda: queue.get(task_id).progress == 95)
            await asyncio.sleep(0.03)
            assert queue.get(task_id).progress == 95
            assert queue.get(task_id).status == TaskStatus.UPLOADING

            gate.set()
            await queue.wait_idle()

            assert queue.get(task_id).progress == 100
            assert progress == sorted(progress)
            assert max(progress[:-1]) <= 100
            assert 100 not in progress[: progress.index(95)]

        asyncio.run(scenario())

    def test_speed_follows_throughput_floor_for_large_files(self):
        async def scenario():
            backend = FakeBackend()
            payload = b"x" * 10_000
            gate = backend.gate(payload)
            clock = FakeClock()
            queue = make_queue(backend, clock=clock, throughput_floor=1000.0)

            task_id = queue.enqueue([make_file("big.bin", payload)])[0]
            await wait_for(lambda: len(backend.uploads) == 1)

            # 10 s expected; after 4 s the estimate is 40% at the floor speed.
            clock.advance(4.0)
            await wait_for(lambda: queue.get(task_id).progress == 40)
            task = queue.get(task_id)
            assert task.speed == pytest.approx(1000.0)
            assert task.time_remaining == pytest.approx(6.0)

            gate.set()
            await queue.wait_idle()

        asyncio.run(scenario())


# =============================================================================
# Pause and Resume
# =============================================================================


class TestPauseResume:
    """Tests for pausing and resuming uploads."""

    def test_pause_aborts_transfer_and_admits_next(self):
        async def scenario():
            backend = FakeBackend()
            backend.gate(b"a.txt")
            clock = FakeClock()
            queue = make_queue(backend, clock=clock)
            events: list[TaskSnapshot] = []
            queue.subscribe(events.append)

            first, second = queue.enqueue([make_file("a.txt"), make_file("b.txt")])
            await wait_for(lambda: len(backend.uploads) == 1)
            clock.advance(1.0)
            await wait_for(lambda: queue.get(first).progress == 50)

            assert queue.pause(first) is True
            assert queue.get(first).status == TaskStatus.PAUSED
            assert queue.get(first).progress == 50
            assert queue.get(second).status == TaskStatus.UPLOADING

            seen = len([e for e in events if e.id == first])
            clock.advance(1.0)
            await queue.wait_idle()
            await asyncio.sleep(0.02)

            assert backend.cancelled == [b"a.txt"]
            assert queue.get(second).status == TaskStatus.COMPLETED
            assert queue.get(first).status == TaskStatus.PAUSED
            assert queue.get(first).progress == 50
            assert len([e for e in events if e.id == first]) == seen
            assert [r.name for r in backend.records] == ["b.txt"]

        asyncio.run(scenario())

    def test_resume_restarts_from_zero(self):
        async def scenario():
            backend = FakeBackend()
            gate = backend.gate(b"a.txt")
            clock = FakeClock()
            queue = make_queue(backend, clock=clock)

            task_id = queue.enqueue([make_file("a.txt")])[0]
            await wait_for(lambda: len(backend.uploads) == 1)
            clock.advance(1.0)
            await wait_for(lambda: queue.get(task_id).progress == 50)
            queue.pause(task_id)

            assert queue.resume(task_id) is True
            task = queue.get(task_id)
            assert task.status == TaskStatus.UPLOADING
            assert task.progress == 0

            gate.set()
            await queue.wait_idle()

            assert queue.get(task_id).status == TaskStatus.COMPLETED
            assert len(backend.uploads) == 2
            assert len(backend.records) == 1

        asyncio.run(scenario())

    def test_resume_waits_behind_active_task(self):
        async def scenario():
            backend = FakeBackend()
            backend.gate(b"a.txt")
            gate_b = backend.gate(b"b.txt")
            queue = make_queue(backend)

            first, second = queue.enqueue([make_file("a.txt"), make_file("b.txt")])
            await wait_for(lambda: len(backend.uploads) == 1)
            queue.pause(first)
            await wait_for(lambda: len(backend.uploads) == 2)

            assert queue.resume(first) is True
            assert queue.get(first).status == TaskStatus.PENDING
            assert queue.get(second).status == TaskStatus.UPLOADING

            backend.gates[b"a.txt"].set()
            gate_b.set()
            await queue.wait_idle()

            assert statuses(queue) == [TaskStatus.COMPLETED, TaskStatus.COMPLETED]
            assert [payload for _, payload, _ in backend.uploads] == [b"a.txt", b"b.txt", b"a.txt"]

        asyncio.run(scenario())

    def test_pause_and_resume_reject_other_states(self):
        async def scenario():
            backend = FakeBackend()
            gate = backend.gate(b"a.txt")
            queue = make_queue(backend)

            first, second = queue.enqueue([make_file("a.txt"), make_file("b.txt")])

            assert queue.pause(second) is False
            assert queue.pause("missing") is False
            assert queue.resume(first) is False
            assert queue.resume(second) is False
            assert queue.resume("missing") is False

            gate.set()
            await queue.wait_idle()

            assert queue.pause(first) is False
            assert queue.get(first).status == TaskStatus.COMPLETED

        asyncio.run(scenario())

    def test_pause_refused_while_recording_stored_blob(self):
        async def scenario():
            backend = FakeBackend()
            backend.sink_gate = asyncio.Event()
            queue = make_queue(backend)

            task_id = queue.enqueue([make_file("a.txt")])[0]
            await wait_for(lambda: backend.completed_uploads == [b"a.txt"])
            await wait_for(lambda: queue.get(task_id).progress == 100)

            assert queue.get(task_id).status == TaskStatus.UPLOADING
            assert queue.pause(task_id) is False
            assert queue.resume(task_id) is False

            backend.sink_gate.set()
            await queue.wait_idle()

            task = queue.get(task_id)
            assert task.status == TaskStatus.COMPLETED
            assert len(backend.uploads) == 1
            assert [r.storage_path for r in backend.records] == [task.storage_path]

        asyncio.run(scenario())

    def test_close_waits_for_stored_blob_record(self):
        async def scenario():
            backend = FakeBackend()
            backend.sink_gate = asyncio.Event()
            queue = make_queue(backend)

            task_id = queue.enqueue([make_file("a.txt")])[0]
            await wait_for(lambda: queue.get(task_id).progress == 100)

            closing = asyncio.ensure_future(queue.close())
            await asyncio.sleep(0.01)
            assert not closing.done()

            backend.sink_gate.set()
            await closing

            assert queue.get(task_id).status == TaskStatus.COMPLETED
            assert len(backend.records) == 1
            assert len(backend.uploads) == 1

        asyncio.run(scenario())


# =============================================================================
# Remove and Clear
# =============================================================================


class TestRemove:
    """Tests for removing tasks."""

    def test_remove_active_cancels_and_admits_next(self):
        async def scenario():
            backend = FakeBackend()
            backend.gate(b"a.txt")
            queue = make_queue(backend)
            events: list[TaskSnapshot] = []
            queue.subscribe(events.append)

            first, second = queue.enqueue([make_file("a.txt"), make_file("b.txt")])
            await wait_for(lambda: len(backend.uploads) == 1)
            seen = len([e for e in events if e.id == first])

            assert queue.remove(first) is True
            assert [t.id for t in queue.snapshot()] == [second]
            assert queue.get(second).status == TaskStatus.UPLOADING

            await queue.wait_idle()
            await asyncio.sleep(0.02)

            assert backend.cancelled == [b"a.txt"]
            assert len([e for e in events if e.id == first]) == seen
            assert [r.name for r in backend.records] == ["b.txt"]
            with pytest.raises(TaskNotFoundError):
                queue.get(first)

        asyncio.run(scenario())

    def test_remove_pending_task_never_uploads(self):
        async def scenario():
            backend = FakeBackend()
            gate = backend.gate(b"a.txt")
            queue = make_queue(backend)

            first, second = queue.enqueue([make_file("a.txt"), make_file("b.txt")])
            assert queue.remove(second) is True
            gate.set()
            await queue.wait_idle()

            assert [payload for _, payload, _ in backend.uploads] == [b"a.txt"]
            assert [t.id for t in queue.snapshot()] == [first]

        asyncio.run(scenario())

    def test_remove_unknown_returns_false(self):
        async def scenario():
            queue = make_queue(FakeBackend())
            assert queue.remove("missing") is False

        asyncio.run(scenario())

    def test_clear_completed_keeps_failed(self):
        async def scenario():
            backend = FakeBackend()
            backend.failures[b"b.txt"] = UploadError("rejected")
            queue = make_queue(backend)

            ids = queue.enqueue([make_file("a.txt"), make_file("b.txt"), make_file("c.txt")])
            await queue.wait_idle()

            assert queue.clear_completed() == 2
            assert [t.id for t in queue.snapshot()] == [ids[1]]
            assert queue.clear_completed() == 0

        asyncio.run(scenario())

    def test_close_pauses_active_and_stops_admission(self):
        async def scenario():
            backend = FakeBackend()
            backend.gate(b"a.txt")
            queue = make_queue(backend)

            first, second = queue.enqueue([make_file("a.txt"), make_file("b.txt")])
            await wait_for(lambda: len(backend.uploads) == 1)
            await queue.close()

            assert queue.get(first).status == TaskStatus.PAUSED
            assert queue.get(second).status == TaskStatus.PENDING
            assert backend.cancelled == [b"a.txt"]
            assert queue.is_idle

        asyncio.run(scenario())


# =============================================================================
# Compression Stage
# =============================================================================


class TestCompressionStage:
    """Tests for the compressing step of image tasks."""

    def test_image_is_compressed_before_upload(self):
        async def scenario():
            backend = FakeBackend()
            calls: list[str] = []

            def compressor(source: SourceFile) -> SourceFile:
                calls.append(source.name)
                return SourceFile(name=source.name, data=b"small", mime_type=source.mime_type)

            queue = make_queue(backend, compressor=compressor)
            image = make_file("photo.jpg", b"x" * 100, "image/jpeg")

            task_id = queue.enqueue([image])[0]
            assert queue.get(task_id).status == TaskStatus.COMPRESSING
            await queue.wait_idle()

            task = queue.get(task_id)
            assert task.status == TaskStatus.COMPLETED
            assert task.original_size == 100
            assert task.compressed_size == 5
            assert calls == ["photo.jpg"]
            assert backend.uploads[0][1] == b"small"
            assert backend.records[0].size == 5
            assert backend.records[0].name == "photo.jpg"

        asyncio.run(scenario())

    def test_non_image_skips_compression(self):
        async def scenario():
            backend = FakeBackend()
            calls: list[str] = []

            def compressor(source: SourceFile) -> SourceFile:
                calls.append(source.name)
                return source

            queue = make_queue(backend, compressor=compressor)
            task_id = queue.enqueue([make_file("doc.pdf", b"%PDF", "application/pdf")])[0]

            assert queue.get(task_id).status == TaskStatus.UPLOADING
            await queue.wait_idle()
            assert calls == []

        asyncio.run(scenario())

    def test_compressor_error_uploads_original(self):
        async def scenario():
            backend = FakeBackend()

            def compressor(source: SourceFile) -> SourceFile:
                raise OSError("decoder missing")

            queue = make_queue(backend, compressor=compressor)
            image = make_file("photo.png", b"original", "image/png")

            task_id = queue.enqueue([image])[0]
            await queue.wait_idle()

            assert queue.get(task_id).status == TaskStatus.COMPLETED
            assert backend.uploads[0][1] == b"original"

        asyncio.run(scenario())

    def test_resume_reuses_compressed_payload(self):
        async def scenario():
            backend = FakeBackend()
            gate = backend.gate(b"small")
            calls: list[str] = []

            def compressor(source: SourceFile) -> SourceFile:
                calls.append(source.name)
                return SourceFile(name=source.name, data=b"small", mime_type=source.mime_type)

            queue = make_queue(backend, compressor=compressor)
            task_id = queue.enqueue([make_file("photo.jpg", b"x" * 50, "image/jpeg")])[0]
            await wait_for(lambda: len(backend.uploads) == 1)

            queue.pause(task_id)
            queue.resume(task_id)
            assert queue.get(task_id).status == TaskStatus.UPLOADING

            gate.set()
            await queue.wait_idle()

            assert calls == ["photo.jpg"]
            assert queue.get(task_id).status == TaskStatus.COMPLETED

        asyncio.run(scenario())
