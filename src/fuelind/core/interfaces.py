from __future__ import annotations

from typing import Protocol, Sequence, runtime_checkable

from fuelind.core.models import BlockBatch, LogEntry


# ---------------------------------------------------------------------------
# IBlockSource
# ---------------------------------------------------------------------------

@runtime_checkable
class IBlockSource(Protocol):
    """
    Abstract supplier of ordered block batches.

    Domain expectations:
    - Batches are gap-free, duplicate-free and strictly increasing in height.
    - Receipts already carry a reference to their owning transaction.
    - Network / protocol concerns (and any prefetching) stay inside the source.
    """

    async def next_batch(self, after_height: int | None) -> BlockBatch:
        """
        Return the batch that starts right after `after_height`.

        `None` means nothing has been processed yet: start at genesis.

        Implementations:
        - Fuel GraphQL reader (`FuelGraphQLBlockSource`)
        - In-memory replay for tests (`InMemoryBlockSource`)

        A live source waits until new blocks exist instead of returning
        empty batches in a tight loop.
        """
        ...


# ---------------------------------------------------------------------------
# IRecordStore
# ---------------------------------------------------------------------------

@runtime_checkable
class IRecordStore(Protocol):
    """
    Durable storage for log entries plus the progress marker.

    Domain expectations:
    - `commit` is atomic: entries and marker become visible together or not
      at all.
    - Commits for one pipeline are serialized (single writer).
    """

    async def commit(self, entries: Sequence[LogEntry], new_marker: int) -> None:
        """
        Insert `entries` and move the progress marker to `new_marker`.

        Raises StoreUnavailable / StoreConflict on failure, in which case
        the prior state is left untouched.
        """
        ...

    async def read_progress_marker(self) -> int | None:
        """Return the last committed block height, or None if nothing was committed."""
        ...
