"""
PageForge — Upload validation.

Checks file signatures (magic numbers) rather than trusting declared
MIME types, and enforces the configured size and count limits.
"""

from typing import Sequence

from pageforge.core.config import UploadLimits
from pageforge.errors import (
    FileTooLargeError,
    InvalidFileTypeError,
    TooManyFilesError,
    TotalSizeExceededError,
)


def is_valid_image_bytes(data: bytes) -> bool:
    head = data[:12]
    if head[:3] == b"\xff\xd8\xff":
        return True
    if head[:4] == b"\x89PNG":
        return True
    if head[:4] == b"RIFF" and head[8:12] == b"WEBP":
        return True
    return False


def is_valid_pdf_bytes(data: bytes) -> bool:
    return data[:5] == b"%PDF-"


def validate_image_uploads(files: Sequence[tuple[str, bytes]], limits: UploadLimits) -> None:
    """
    Validate (filename, content) pairs against the image allowlist and limits.
    Raises a PageForgeError subclass on the first violation.
    """
    if len(files) > limits.max_files:
        raise TooManyFilesError(len(files), limits.max_files)

    total = 0
    for filename, content in files:
        validate_file_size(filename, content, limits)
        if not is_valid_image_bytes(content):
            raise InvalidFileTypeError(filename, "JPEG, PNG or WebP image")
        total += len(content)

    if total > limits.max_total_size_bytes:
        raise TotalSizeExceededError(total / (1024 * 1024), limits.max_total_size_mb)


def validate_pdf_upload(filename: str, content: bytes, limits: UploadLimits) -> None:
    validate_file_size(filename, content, limits)
    if not is_valid_pdf_bytes(content):
        raise InvalidFileTypeError(filename, "PDF")


def validate_file_size(filename: str, content: bytes, limits: UploadLimits) -> None:
    if len(content) > limits.max_file_size_bytes:
        raise FileTooLargeError(filename, len(content) / (1024 * 1024), limits.max_file_size_mb)
