"""Serve pre-baked asset tables as a read-only virtual file system."""

from .exceptions import (
    ConfigurationError,
    GeneratorError,
    GobletError,
    InvalidReceiverError,
    NotFoundError,
)
from .filesystem import File, FileHandle, FileSystem, new_fs

__version__ = "0.1.0"

__all__ = [
    "File",
    "FileHandle",
    "FileSystem",
    "new_fs",
    "GobletError",
    "NotFoundError",
    "InvalidReceiverError",
    "GeneratorError",
    "ConfigurationError",
    "__version__",
]
