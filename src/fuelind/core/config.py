from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from fuelind.core.constants import DEFAULT_GRAPHQL_URL, LOG_TYPES
from fuelind.core.errors import FatalConfigurationError


@dataclass(frozen=True)
class FieldSelection:
    """Receipt attributes requested from the block source.

    A projection hint only: the attributes the log filter depends on are
    always fetched, whatever the flags say.
    """

    contract: bool = True
    receipt_type: bool = True
    rb: bool = True
    data: bool = True
    ra: bool = False
    len: bool = False
    digest: bool = False

    def graphql_fields(self) -> list[str]:
        """Return the GraphQL receipt fields to query (required ones included)."""
        out = ["receiptType", "id", "rb", "data"]
        if self.ra:
            out.append("ra")
        if self.len:
            out.append("len")
        if self.digest:
            out.append("digest")
        return out


@dataclass(frozen=True)
class SourceConfig:
    """Connection parameters for the Fuel GraphQL block source."""

    graphql_url: str = DEFAULT_GRAPHQL_URL
    stride_size: int = 30
    stride_concurrency: int = 3
    timeout_s: int = 20
    max_connections: int = 16
    poll_interval_s: float = 5.0
    fields: FieldSelection = field(default_factory=FieldSelection)

    def validate(self) -> None:
        if not self.graphql_url:
            raise FatalConfigurationError("graphql_url is required")
        if self.stride_size < 1 or self.stride_concurrency < 1:
            raise FatalConfigurationError("stride_size and stride_concurrency must be >= 1")
        if self.timeout_s <= 0 or self.poll_interval_s < 0:
            raise FatalConfigurationError("timeout_s must be > 0 and poll_interval_s >= 0")


@dataclass(frozen=True)
class StoreConfig:
    """Location of the DuckDB database (":memory:" for a throwaway store)."""

    db_path: Path | str = Path("./data/fuelind.duckdb")


@dataclass(frozen=True)
class PipelineConfig:
    """Driver configuration: what to extract, where to start, how to retry."""

    log_types: frozenset[int] = LOG_TYPES
    from_height: int = 0
    to_height: int | None = None
    retry_base_s: float = 1.0
    retry_max_s: float = 60.0
    max_consecutive_failures: int | None = None  # None = retry forever

    def validate(self) -> None:
        if self.from_height < 0:
            raise FatalConfigurationError("from_height must be >= 0")
        if self.to_height is not None and self.to_height < self.from_height:
            raise FatalConfigurationError("to_height must be >= from_height")
        if self.retry_base_s < 0 or self.retry_max_s < self.retry_base_s:
            raise FatalConfigurationError("retry_max_s must be >= retry_base_s >= 0")
        if self.max_consecutive_failures is not None and self.max_consecutive_failures < 1:
            raise FatalConfigurationError("max_consecutive_failures must be >= 1")
