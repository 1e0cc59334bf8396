"""Common utilities for the upload queue."""

from __future__ import annotations

import logging
import mimetypes
import time
import uuid
from collections.abc import Iterable
from pathlib import Path

from stashctl.core.validation import validate_path_exists
from stashctl.models.progress import SourceFile
from stashctl.uploaders.constants import DEFAULT_MIME_TYPE, STORAGE_SUFFIX_LENGTH

logger = logging.getLogger(__name__)


def guess_mime_type(name: str) -> str:
    """Media type for a file name, falling back to octet-stream."""
    mime_type, _ = mimetypes.guess_type(name)
    return mime_type or DEFAULT_MIME_TYPE


def load_source_file(path: Path, *, mime_type: str | None = None) -> SourceFile:
    """Read a local file into a SourceFile.

    Args:
        path: File to read.
        mime_type: Declared media type. Guessed from the name when omitted.

    Returns:
        SourceFile with the file's name, bytes and media type.
    """
    return SourceFile(
        name=path.name,
        data=path.read_bytes(),
        mime_type=mime_type or guess_mime_type(path.name),
    )


def collect_upload_files(
    paths: Iterable[Path],
    *,
    recursive: bool = False,
) -> list[Path]:
    """Expand the given paths into the files to upload.

    Files are kept in the order given. Directories contribute their files
    (sorted, hidden files skipped), descending into subdirectories only when
    ``recursive`` is set. Duplicate paths are dropped.

    Raises:
        PathValidationError: If a path does not exist.
    """
    files: list[Path] = []
    seen: set[Path] = set()

    def _add(candidate: Path) -> None:
        resolved = candidate.resolve()
        if resolved not in seen:
            seen.add(resolved)
            files.append(candidate)

    for path in paths:
        validate_path_exists(path)
        if path.is_file():
            _add(path)
        elif path.is_dir():
            pattern = path.rglob("*") if recursive else path.glob("*")
            for child in sorted(pattern):
                if child.is_file() and not child.name.startswith("."):
                    _add(child)

    return files


def build_storage_path(user_id: str, source: SourceFile, *, now: float | None = None) -> str:
    """Object path for a new upload, namespaced under the owner.

    The name is ``{user_id}/{epoch_ms}-{random}.{ext}``; the random part keeps
    two uploads started in the same millisecond apart.
    """
    millis = int((time.time() if now is None else now) * 1000)
    suffix = uuid.uuid4().hex[:STORAGE_SUFFIX_LENGTH]
    name = f"{millis}-{suffix}"
    if source.extension:
        name = f"{name}.{source.extension.lower()}"
    return f"{user_id}/{name}"
