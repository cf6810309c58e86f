"""
Custom exceptions for oxels.

Provides a hierarchy of exceptions for MetaImage loading and saving. Every
format or I/O problem is reported through one of these classes; nothing in
the package terminates the process on malformed input.
"""

import logging
import os
from typing import Optional

logger = logging.getLogger(__name__)


class OxelsError(Exception):
    """Base exception for all oxels errors."""

    def __init__(self, message: str, error_code: Optional[str] = None, **kwargs):
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.details = kwargs

    def __str__(self) -> str:
        if self.error_code:
            return f"[{self.error_code}] {self.message}"
        return self.message


class ConfigurationError(OxelsError):
    """Raised when configuration is invalid or missing."""
    pass


class MetaImageError(OxelsError):
    """Raised when reading or writing a MetaImage file fails."""

    def __init__(self, message: str, file_path: Optional[str] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.file_path = file_path


class MissingFieldError(MetaImageError):
    """Raised when a required header key is absent."""

    def __init__(self, field: str, file_path: Optional[str] = None, **kwargs):
        kwargs.setdefault("error_code", "MISSING_FIELD")
        super().__init__(f"Missing header key: {field}", file_path=file_path, **kwargs)
        self.field = field


class HeaderParseError(MetaImageError):
    """Raised when header text cannot be read or a value is malformed."""

    def __init__(self, message: str, line_number: Optional[int] = None, **kwargs):
        kwargs.setdefault("error_code", "HEADER_PARSE")
        super().__init__(message, **kwargs)
        self.line_number = line_number


class UnsupportedElementTypeError(MetaImageError):
    """Raised when an ElementType token (or array dtype) has no mapping."""

    def __init__(self, token: str, **kwargs):
        kwargs.setdefault("error_code", "UNSUPPORTED_ELEMENT_TYPE")
        super().__init__(f"Unsupported element type: {token}", **kwargs)
        self.token = token


class BufferSizeMismatchError(MetaImageError):
    """Raised when a voxel byte count disagrees with the declared geometry."""

    def __init__(self, message: str, expected: Optional[int] = None,
                 actual: Optional[int] = None, **kwargs):
        kwargs.setdefault("error_code", "BUFFER_SIZE_MISMATCH")
        super().__init__(message, **kwargs)
        self.expected = expected
        self.actual = actual


class DecompressionError(MetaImageError):
    """Raised when a zlib payload is malformed or truncated."""

    def __init__(self, message: str, **kwargs):
        kwargs.setdefault("error_code", "DECOMPRESSION_FAILED")
        super().__init__(message, **kwargs)


class DataIOError(MetaImageError):
    """Raised when opening, seeking, reading or writing voxel data fails."""

    def __init__(self, message: str, **kwargs):
        kwargs.setdefault("error_code", "DATA_IO")
        super().__init__(message, **kwargs)


class FileOperation:
    """Context manager that removes the files it tracks if the block fails."""

    def __init__(self, temp_files: list = None):
        self.temp_files = temp_files or []

    def add_temp_file(self, file_path: str):
        """Add a file to be removed should the operation fail."""
        self.temp_files.append(file_path)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if exc_type is None:
            return False
        for temp_file in self.temp_files:
            try:
                if os.path.exists(temp_file):
                    os.remove(temp_file)
            except OSError as e:
                logger.warning(f"Could not remove partial file {temp_file}: {e}")
        return False
