"""Custom exception types for the embedded virtual file system."""

from __future__ import annotations


class GobletError(Exception):
    """Base class for all goblet exceptions."""


class NotFoundError(GobletError, FileNotFoundError):
    """Raised when a resolved path is absent from the file or directory table."""


class InvalidReceiverError(GobletError):
    """Raised when a prefix is derived from an absent or uninitialized file system."""


class GeneratorError(GobletError):
    """Raised when a source directory cannot be turned into asset tables."""


class ConfigurationError(GobletError):
    """Raised when a configuration file cannot be processed."""
