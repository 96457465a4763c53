"""Core data models for block streaming and log extraction.

This module defines:
- `Block`, `Receipt`, `Transaction`: the minimal Fuel block shape the
  pipeline consumes (already linked: every receipt carries its transaction).
- `BlockBatch`: a contiguous, strictly increasing run of blocks.
- `LogEntry`: the persisted output record.
- `BatchStats` / `BatchResult`: per-batch processing outcome.

Design notes
------------
- Byte-like fields are stored as raw `bytes`; hex is only used at the edges
  (GraphQL parsing, CLI output).
- `rb` is an unsigned 64-bit integer and may exceed the signed int64 range.
- Unknown receipt kinds from the wire are kept as plain strings so that new
  node versions never break parsing; they simply never match `LOG_DATA`.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from fuelind.core.errors import BatchOrderError


# === Receipts ===


class ReceiptType(str, Enum):
    """Receipt kinds as named by the Fuel GraphQL API."""

    CALL = "CALL"
    RETURN = "RETURN"
    RETURN_DATA = "RETURN_DATA"
    PANIC = "PANIC"
    REVERT = "REVERT"
    LOG = "LOG"
    LOG_DATA = "LOG_DATA"
    TRANSFER = "TRANSFER"
    TRANSFER_OUT = "TRANSFER_OUT"
    SCRIPT_RESULT = "SCRIPT_RESULT"
    MESSAGE_OUT = "MESSAGE_OUT"
    MINT = "MINT"
    BURN = "BURN"

    @classmethod
    def parse(cls, value: str) -> ReceiptType | str:
        """Return the enum member for `value`, or the raw string if unknown."""
        try:
            return cls(value)
        except ValueError:
            return value


@dataclass(slots=True, frozen=True)
class Transaction:
    """Owning transaction of a receipt."""

    hash: bytes
    index: int = 0


@dataclass(slots=True, frozen=True)
class Receipt:
    """A single receipt; every field except the kind may be unset."""

    receipt_type: ReceiptType | str
    contract: bytes | None = None
    rb: int | None = None
    data: bytes | None = None
    transaction: Transaction | None = None
    index: int = 0
    # Optional projections (see FieldSelection)
    ra: int | None = None
    len: int | None = None
    digest: bytes | None = None


# === Blocks ===


@dataclass(slots=True, frozen=True)
class Block:
    height: int
    receipts: tuple[Receipt, ...] = ()


@dataclass(slots=True, frozen=True)
class BlockBatch:
    """Ordered, gap-free run of blocks delivered by a block source."""

    blocks: tuple[Block, ...] = ()

    @property
    def is_empty(self) -> bool:
        return not self.blocks

    @property
    def first_height(self) -> int | None:
        return self.blocks[0].height if self.blocks else None

    @property
    def last_height(self) -> int | None:
        return self.blocks[-1].height if self.blocks else None

    def __len__(self) -> int:
        return len(self.blocks)

    def validate(self, expected_start: int | None = None) -> None:
        """Fail fast unless heights are contiguous and start at `expected_start`.

        Raises
        ------
        BatchOrderError
            On a gap, duplicate, decreasing height, or a batch that does not
            continue exactly from the progress marker.
        """
        if not self.blocks:
            return
        if expected_start is not None and self.blocks[0].height != expected_start:
            raise BatchOrderError(
                f"batch starts at height {self.blocks[0].height}, expected {expected_start}"
            )
        prev = self.blocks[0].height
        if prev < 0:
            raise BatchOrderError(f"negative block height {prev}")
        for block in self.blocks[1:]:
            if block.height != prev + 1:
                raise BatchOrderError(f"block {block.height} follows {prev}; batch must be contiguous")
            prev = block.height


# === Output records ===


@dataclass(slots=True, frozen=True)
class LogEntry:
    """A persisted LOG_DATA receipt."""

    id: str  # 0x-prefixed random hex
    tx_hash: bytes
    found_at: int  # block height
    contract: bytes
    rb: int
    data: bytes


@dataclass(slots=True)
class BatchStats:
    """Counters for one processed batch."""

    blocks: int = 0
    receipts: int = 0
    entries: int = 0
    malformed: int = 0


@dataclass(slots=True)
class BatchResult:
    """Entries derived from one batch plus the marker they advance to."""

    entries: list[LogEntry] = field(default_factory=list)
    new_marker: int | None = None
    stats: BatchStats = field(default_factory=BatchStats)
