from __future__ import annotations

import logging
import secrets
from collections.abc import Iterable

from fuelind.core.constants import ENTRY_ID_BYTES, U64_MAX
from fuelind.core.errors import BatchOrderError, FatalConfigurationError, MalformedReceipt
from fuelind.core.models import (
    BatchResult,
    BatchStats,
    Block,
    BlockBatch,
    LogEntry,
    Receipt,
    ReceiptType,
)

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Filter predicate
# ---------------------------------------------------------------------------


def _has_log_fields(receipt: Receipt) -> bool:
    return (
        receipt.receipt_type == ReceiptType.LOG_DATA
        and receipt.contract is not None
        and receipt.rb is not None
        and receipt.data is not None
        and receipt.transaction is not None
    )


class LogFilter:
    """
    Decides whether a receipt is a log entry we keep.

    A receipt matches when it is a LOG_DATA receipt with contract, rb, data
    and owning transaction all present, and its rb is one of `log_types`.
    """

    __slots__ = ("_log_types",)

    def __init__(self, log_types: Iterable[int]) -> None:
        types = frozenset(log_types)
        if not types:
            raise FatalConfigurationError("log type set must not be empty")
        for t in types:
            if not isinstance(t, int) or isinstance(t, bool) or not 0 <= t <= U64_MAX:
                raise FatalConfigurationError(f"log type {t!r} is not an unsigned 64-bit integer")
        self._log_types = types

    @property
    def log_types(self) -> frozenset[int]:
        return self._log_types

    def matches(self, receipt: Receipt) -> bool:
        return _has_log_fields(receipt) and receipt.rb in self._log_types


# ---------------------------------------------------------------------------
# Record mapper
# ---------------------------------------------------------------------------


def new_entry_id() -> str:
    """Fresh random identifier, never derived from content."""
    return "0x" + secrets.token_hex(ENTRY_ID_BYTES)


def map_receipt(block: Block, receipt: Receipt) -> LogEntry:
    """Build a LogEntry from a receipt that passed the log filter.

    Raises
    ------
    MalformedReceipt
        If the receipt lacks any field a log entry is built from.
    """
    if not _has_log_fields(receipt):
        raise MalformedReceipt(
            f"receipt #{receipt.index} at height {block.height} is not a complete LOG_DATA receipt"
        )
    assert receipt.transaction is not None  # narrowed by _has_log_fields
    return LogEntry(
        id=new_entry_id(),
        tx_hash=receipt.transaction.hash,
        found_at=block.height,
        contract=receipt.contract,  # type: ignore[arg-type]
        rb=receipt.rb,  # type: ignore[arg-type]
        data=receipt.data,  # type: ignore[arg-type]
    )


# ---------------------------------------------------------------------------
# Batch processor
# ---------------------------------------------------------------------------


def process_batch(batch: BlockBatch, log_filter: LogFilter) -> BatchResult:
    """
    Derive log entries from every block of `batch`.

    Entries come out in block order, then receipt order. Blocks must be
    strictly increasing; the batch is not re-sorted.

    A malformed receipt is logged and skipped so it cannot block the rest of
    the batch. Nothing is written here; committing is the driver's job.
    """
    stats = BatchStats()
    entries: list[LogEntry] = []

    prev_height: int | None = None
    for block in batch.blocks:
        if prev_height is not None and block.height <= prev_height:
            raise BatchOrderError(f"block {block.height} after {prev_height}: heights must increase")
        prev_height = block.height
        stats.blocks += 1

        for receipt in block.receipts:
            stats.receipts += 1
            if not log_filter.matches(receipt):
                continue
            try:
                entry = map_receipt(block, receipt)
            except MalformedReceipt as e:
                stats.malformed += 1
                logger.warning("skipping malformed receipt: %s", e)
                continue
            entries.append(entry)

    stats.entries = len(entries)
    return BatchResult(entries=entries, new_marker=batch.last_height, stats=stats)
