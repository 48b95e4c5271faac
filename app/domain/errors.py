"""
app/domain/errors.py

Error taxonomy for the registry sync pipeline and the query cache.

Only run-level errors (TransportError, DumpFormatError) abort a sync run.
RecordError subclasses are accumulated in the SyncReport; CacheError never
leaves the cache layer.
"""

from __future__ import annotations


class RegistrySyncError(Exception):
    """Base exception for registry sync failures."""


class TransportError(RegistrySyncError):
    """Raised when a dump cannot be downloaded (HTTP status, timeout, stream error)."""


class DumpFormatError(RegistrySyncError):
    """Raised when a staged dump is not a readable XML document."""


class SyncAlreadyRunningError(RegistrySyncError):
    """Raised when a sync is triggered while another run holds the run lock."""


class RecordError(RegistrySyncError):
    """
    Base for per-record failures.

    `kind` is the stable label written to SyncReport failures.
    """

    kind = "RecordError"

    def __init__(self, message: str, *, external_id: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.external_id = external_id


class ParseError(RecordError):
    """Record content could not be decoded from the dump."""

    kind = "ParseError"


class ValidationError(RecordError):
    """A required field is missing or a value cannot be normalised."""

    kind = "ValidationError"


class ConflictError(RecordError):
    """Incoming data collides with stored data; existing rows are preserved."""

    kind = "ConflictError"


class StoreError(RecordError):
    """Store constraint violation, e.g. an amendment without its contract."""

    kind = "StoreError"


class CacheError(Exception):
    """Key-value backend unreachable or failing."""
