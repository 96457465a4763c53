"""Error taxonomy for the extraction pipeline.

Transient errors (`SourceUnavailable`, `StoreError`) are retried by the
driver from the unchanged progress marker. Everything else is fatal.
"""

from __future__ import annotations


class FuelindError(Exception):
    """Base class for all pipeline errors."""


class SourceUnavailable(FuelindError):
    """The block source could not deliver the next batch."""


class MalformedReceipt(FuelindError):
    """A receipt reached the mapper without the fields a log entry needs."""


class StoreError(FuelindError):
    """A commit was rejected; nothing from it is visible."""


class StoreUnavailable(StoreError):
    """The record store is unreachable or failed to write."""


class StoreConflict(StoreError):
    """The record store rejected the write (constraint or marker regression)."""


class FatalConfigurationError(FuelindError):
    """Invalid configuration or a collaborator that cannot be opened at startup."""


class BatchOrderError(FuelindError):
    """A batch is not contiguous or does not continue from the progress marker."""


class PipelineAborted(FuelindError):
    """Too many consecutive transient failures."""
