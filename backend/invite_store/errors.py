"""Exceptions raised by the invitation store.

Absence is never an exception: lookups return None.
"""

from __future__ import annotations


class InvitationStoreError(Exception):
    """Base exception for all invitation store errors."""


class StoreUnavailableError(InvitationStoreError):
    """Raised when a store operation keeps failing past its retry budget."""

    def __init__(self, operation: str, attempts: int):
        """Initialize the exception.

        Args:
            operation: Short description of the failed operation.
            attempts: Number of attempts made before giving up.
        """
        self.operation = operation
        self.attempts = attempts
        noun = "attempt" if attempts == 1 else "attempts"
        super().__init__(f"Store unavailable: {operation} failed after {attempts} {noun}")


class GenerationError(InvitationStoreError):
    """Raised when the random source cannot produce an id or code."""


class PageSizeError(InvitationStoreError, ValueError):
    """Raised when a listing page size is outside the allowed range."""

    def __init__(self, page_size: int, maximum: int):
        self.page_size = page_size
        self.maximum = maximum
        super().__init__(f"Page size must be between 1 and {maximum}, got {page_size}")


class SchemaVersionError(InvitationStoreError):
    """Raised when the database schema is older than the code requires."""

    def __init__(self, found: int | None, required: int):
        self.found = found
        self.required = required
        super().__init__(f"Schema version {found} found, {required} required")
