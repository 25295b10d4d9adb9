"""
Question Paper Storage

Saves uploaded question papers to the local upload directory. File I/O is
pushed to a worker thread so the event loop is never blocked.
"""

import asyncio
import logging
import secrets
from dataclasses import dataclass
from pathlib import Path

from fastapi import UploadFile

from paperly.core.config import settings
from paperly.core.exceptions import ValidationError

logger = logging.getLogger(__name__)

ALLOWED_EXTENSIONS = {".pdf", ".doc", ".docx"}


@dataclass
class StoredFile:
    """A saved upload."""

    file_name: str
    original_name: str
    path: str
    size: int


class FileRequiredError(ValidationError):
    def __init__(self):
        super().__init__("Question paper file is required", error_code="FILE_REQUIRED")


class InvalidFileError(ValidationError):
    def __init__(self, message: str):
        super().__init__(message, error_code="INVALID_FILE")


def validate_upload(original_name: str | None, content: bytes | None) -> str:
    """
    Check an upload's presence, extension and size.

    Returns:
        The lower-cased extension, including the dot

    Raises:
        FileRequiredError: No file, or an empty one
        InvalidFileError: Disallowed extension or too large
    """
    if not original_name or not content:
        raise FileRequiredError()

    extension = Path(original_name).suffix.lower()
    if extension not in ALLOWED_EXTENSIONS:
        raise InvalidFileError(
            f"Only {', '.join(sorted(ALLOWED_EXTENSIONS))} files are allowed"
        )

    if len(content) > settings.max_upload_size_bytes:
        raise InvalidFileError(f"File exceeds the {settings.max_upload_size_mb} MB limit")

    return extension


async def read_upload(upload: UploadFile | None) -> tuple[str | None, bytes | None]:
    """
    Read an upload's name and bytes without buffering more than the size limit.

    At most one byte past the limit is read, so `validate_upload` still
    reports oversized files.

    Raises:
        InvalidFileError: The declared size is already over the limit
    """
    if upload is None:
        return None, None

    limit = settings.max_upload_size_bytes
    if upload.size is not None and upload.size > limit:
        raise InvalidFileError(f"File exceeds the {settings.max_upload_size_mb} MB limit")

    return upload.filename, await upload.read(limit + 1)


def _write_file(path: Path, content: bytes) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(content)


async def save_question_paper(
    original_name: str | None,
    content: bytes | None,
    upload_dir: str | None = None,
) -> StoredFile:
    """
    Validate and store a question paper under a random file name.

    Args:
        original_name: Client-supplied file name
        content: File bytes
        upload_dir: Override for the configured upload directory

    Returns:
        StoredFile describing where the file was written
    """
    extension = validate_upload(original_name, content)

    file_name = f"{secrets.token_hex(16)}{extension}"
    path = Path(upload_dir or settings.upload_dir) / file_name

    await asyncio.to_thread(_write_file, path, content)
    logger.info(f"Stored question paper {file_name} ({len(content)} bytes)")

    return StoredFile(
        file_name=file_name,
        original_name=Path(original_name).name,
        path=str(path),
        size=len(content),
    )


async def delete_file(path: str) -> None:
    """Remove a stored file, logging rather than raising if it is gone."""
    try:
        await asyncio.to_thread(Path(path).unlink, True)
    except OSError as e:
        logger.error(f"Failed to delete stored file {path}: {e}")
