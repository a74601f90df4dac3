"""Generation-time error types."""

from __future__ import annotations


class GenerationError(RuntimeError):
    """Raised when code for a single method cannot be generated."""


class SchemaLookupError(RuntimeError):
    """Raised when a schema element cannot be found by name or path."""
