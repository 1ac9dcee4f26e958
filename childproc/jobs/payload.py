"""Local payload packaging performed before a process submission."""

from __future__ import annotations

import os
import tempfile
import zipfile
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

import structlog

from childproc.domain import PayloadNotFoundError

logger = structlog.get_logger(__name__)


def job_payload_resolve(work_dir: Path, payload: str) -> Path:
    """Resolve a payload path against the execution work directory.

    Args:
        work_dir: Parent execution work directory.
        payload: Relative or absolute payload path.

    Returns:
        Path: Existing payload path.

    Raises:
        PayloadNotFoundError: Raised when the path does not exist.
    """

    payload_path = work_dir / payload
    if not payload_path.exists():
        raise PayloadNotFoundError(f"File or directory not found: {payload_path}", payload_path=str(payload_path))
    return payload_path


def job_payload_zip_directory(source_dir: Path, archive_path: Path) -> None:
    """Write every file below `source_dir` into a zip archive.

    Entry names are relative to `source_dir` and use forward slashes.
    """

    with zipfile.ZipFile(archive_path, "w", compression=zipfile.ZIP_DEFLATED) as archive:
        for file_path in sorted(source_dir.rglob("*")):
            if file_path.is_file():
                archive.write(file_path, arcname=file_path.relative_to(source_dir).as_posix())


@contextmanager
def job_payload_prepare(work_dir: Path, payload: str | None) -> Iterator[Path | None]:
    """Yield the file to upload for a payload, packaging directories on the fly.

    Directories are zipped into a temporary archive that is removed when the
    context exits, whether or not the submission succeeded. Files are yielded
    as-is.

    Args:
        work_dir: Parent execution work directory.
        payload: Payload path or None.

    Yields:
        Path | None: File to upload, None when no payload was configured.

    Raises:
        PayloadNotFoundError: Raised when the payload path does not exist.
    """

    if payload is None:
        yield None
        return

    payload_path = job_payload_resolve(work_dir, payload)
    if not payload_path.is_dir():
        yield payload_path
        return

    file_descriptor, temporary_name = tempfile.mkstemp(prefix="payload", suffix=".zip")
    os.close(file_descriptor)
    archive_path = Path(temporary_name)
    try:
        job_payload_zip_directory(payload_path, archive_path)
        logger.debug("payload.archived", source=str(payload_path), archive=str(archive_path))
        yield archive_path
    finally:
        archive_path.unlink(missing_ok=True)
