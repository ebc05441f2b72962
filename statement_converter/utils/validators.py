"""Input and output validation for statement conversion."""

import os
from typing import List, Optional

from statement_converter.config.settings import (
    MAX_FILE_SIZE_MB,
    MAX_PASSWORD_LENGTH,
    SUPPORTED_PDF_FORMATS,
)

PDF_SIGNATURE = b"%PDF-"
# Some producers put junk before the header; readers accept it within 1 KB.
SIGNATURE_SEARCH_BYTES = 1024


class ValidationError(Exception):
    """Raised when an input file, directory or password is unusable."""
    pass


def validate_file_path(file_path: str) -> None:
    """Check that ``file_path`` names an existing, readable file.

    Raises:
        ValidationError: If the path is empty, missing, not a regular
            file or not readable.
    """
    if not file_path:
        raise ValidationError("File path cannot be empty")
    if not os.path.exists(file_path):
        raise ValidationError(f"File does not exist: {file_path}")
    if not os.path.isfile(file_path):
        raise ValidationError(f"Path is not a file: {file_path}")
    if not os.access(file_path, os.R_OK):
        raise ValidationError(f"File is not readable: {file_path}")


def validate_file_size(file_path: str, max_size_mb: int = MAX_FILE_SIZE_MB) -> None:
    """Reject uploads larger than ``max_size_mb`` megabytes."""
    size_mb = os.path.getsize(file_path) / (1024 * 1024)
    if size_mb > max_size_mb:
        raise ValidationError(
            f"File size {size_mb:.2f}MB exceeds maximum allowed size {max_size_mb}MB"
        )


def validate_file_extension(
    file_path: str,
    supported_formats: List[str] = SUPPORTED_PDF_FORMATS
) -> None:
    """Reject files whose extension is not in ``supported_formats``."""
    ext = os.path.splitext(file_path)[1].lower()
    if ext not in supported_formats:
        raise ValidationError(
            f"File extension '{ext}' not supported. "
            f"Supported formats: {', '.join(supported_formats)}"
        )


def validate_pdf_signature(file_path: str) -> None:
    """Check for the ``%PDF-`` header near the start of the file.

    Raises:
        ValidationError: If the header is missing or the file cannot be read.
    """
    try:
        with open(file_path, 'rb') as f:
            head = f.read(SIGNATURE_SEARCH_BYTES)
    except OSError as e:
        raise ValidationError(f"Cannot read file {file_path}: {str(e)}")

    if PDF_SIGNATURE not in head:
        raise ValidationError(f"File is not a PDF document: {file_path}")


def validate_pdf_file(file_path: str, max_size_mb: int = MAX_FILE_SIZE_MB) -> None:
    """Run every check a PDF must pass before text extraction.

    Args:
        file_path: Uploaded or local PDF.
        max_size_mb: Size limit in megabytes.

    Raises:
        ValidationError: From the first check that fails.
    """
    validate_file_path(file_path)
    validate_file_extension(file_path)
    validate_file_size(file_path, max_size_mb)
    validate_pdf_signature(file_path)


def validate_directory_path(dir_path: str) -> None:
    """Make sure ``dir_path`` is a writable directory, creating it if needed.

    Raises:
        ValidationError: If the directory cannot be created or written.
    """
    if not dir_path:
        raise ValidationError("Directory path cannot be empty")

    if not os.path.exists(dir_path):
        try:
            os.makedirs(dir_path, exist_ok=True)
        except OSError as e:
            raise ValidationError(f"Cannot create directory {dir_path}: {str(e)}")

    if not os.path.isdir(dir_path):
        raise ValidationError(f"Path is not a directory: {dir_path}")
    if not os.access(dir_path, os.W_OK):
        raise ValidationError(f"Directory is not writable: {dir_path}")


def validate_password(password: Optional[str], max_length: int = MAX_PASSWORD_LENGTH) -> None:
    """Validate an optional PDF password; None means none was supplied."""
    if password is None:
        return

    if not isinstance(password, str):
        raise ValidationError("Password must be a string")
    if not password.strip():
        raise ValidationError("Password cannot be empty or whitespace only")
    if len(password) > max_length:
        raise ValidationError(f"Password exceeds maximum length of {max_length} characters")
