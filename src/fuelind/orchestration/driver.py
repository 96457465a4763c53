"""Pipeline driver: fetch → extract → commit, one batch at a time.

The driver owns the run loop and the progress marker held in memory. It
depends ONLY on the `IBlockSource` / `IRecordStore` interfaces and does not
manage their lifecycle (opening/closing clients is the caller's job).

State machine
-------------
IDLE → FETCHING_BATCH → PROCESSING → COMMITTING → IDLE, with STOPPED
reachable from any state once a stop is requested. A failed fetch or commit
goes back to IDLE with the marker unchanged, after a backoff, so the same
range is fetched again.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum

from fuelind.core.config import PipelineConfig
from fuelind.core.errors import (
    FatalConfigurationError,
    PipelineAborted,
    SourceUnavailable,
    StoreError,
)
from fuelind.core.interfaces import IBlockSource, IRecordStore
from fuelind.core.models import BatchResult, BlockBatch
from fuelind.core.use_cases.extract_logs import LogFilter, process_batch
from fuelind.orchestration.utils import backoff_delay

logger = logging.getLogger(__name__)


class PipelineState(str, Enum):
    IDLE = "idle"
    FETCHING_BATCH = "fetching_batch"
    PROCESSING = "processing"
    COMMITTING = "committing"
    STOPPED = "stopped"


# ---------------------------------------------------------------------------
# Output DTO
# ---------------------------------------------------------------------------


@dataclass(kw_only=True)
class RunStats:
    """Aggregated counters for one `PipelineDriver.run()` call."""

    batches: int = 0
    blocks: int = 0
    entries: int = 0
    malformed: int = 0
    retries: int = 0
    last_marker: int | None = None


# ---------------------------------------------------------------------------
# Driver
# ---------------------------------------------------------------------------


class PipelineDriver:
    """
    Runs the extraction loop over a block source and a record store.

    Parameters
    ----------
    source : IBlockSource
        Supplier of contiguous block batches.
    store : IRecordStore
        Atomic sink for log entries and the progress marker.
    config : PipelineConfig
        Log types, start/end heights and retry policy.
    on_commit : callable, optional
        Called with each committed BatchResult (e.g. to drive a progress bar).
    """

    def __init__(
        self,
        *,
        source: IBlockSource,
        store: IRecordStore,
        config: PipelineConfig,
        on_commit: Callable[[BatchResult], None] | None = None,
    ) -> None:
        config.validate()
        self._source = source
        self._store = store
        self._config = config
        self._filter = LogFilter(config.log_types)
        self._on_commit = on_commit
        self._stop = asyncio.Event()
        self.state = PipelineState.IDLE

    # -- stop signal -------------------------------------------------------

    def request_stop(self) -> None:
        """Ask the loop to stop; an in-flight commit is always completed first."""
        self._stop.set()

    @property
    def stop_requested(self) -> bool:
        return self._stop.is_set()

    # -- helpers -----------------------------------------------------------

    def _set_state(self, state: PipelineState) -> None:
        if state is not self.state:
            logger.debug("pipeline state %s -> %s", self.state.value, state.value)
        self.state = state

    def _after_height(self, marker: int | None) -> int | None:
        """Height the next batch must follow (None = genesis)."""
        if marker is not None:
            return marker
        if self._config.from_height > 0:
            return self._config.from_height - 1
        return None

    def _reached_end(self, marker: int | None) -> bool:
        to_height = self._config.to_height
        return to_height is not None and marker is not None and marker >= to_height

    def _clip(self, batch: BlockBatch) -> BlockBatch:
        """Drop blocks past `to_height`."""
        to_height = self._config.to_height
        if to_height is None or batch.last_height is None or batch.last_height <= to_height:
            return batch
        return BlockBatch(tuple(b for b in batch.blocks if b.height <= to_height))

    async def _read_marker(self) -> int | None:
        try:
            return await self._store.read_progress_marker()
        except StoreError as e:
            raise FatalConfigurationError(f"cannot read progress marker: {e}") from e

    async def _fetch(self, after_height: int | None) -> BlockBatch | None:
        """Fetch the next batch; return None if a stop was requested meanwhile."""
        fetch = asyncio.ensure_future(self._source.next_batch(after_height))
        stop = asyncio.ensure_future(self._stop.wait())
        done, _ = await asyncio.wait({fetch, stop}, return_when=asyncio.FIRST_COMPLETED)
        if fetch in done:
            stop.cancel()
            return fetch.result()
        # Stop wins: abort the fetch, nothing has been committed for it
        fetch.cancel()
        await asyncio.gather(fetch, return_exceptions=True)
        return None

    async def _backoff(self, what: str, error: Exception, failures: int, stats: RunStats) -> None:
        stats.retries += 1
        limit = self._config.max_consecutive_failures
        if limit is not None and failures >= limit:
            raise PipelineAborted(f"{what} failed {failures} times in a row: {error}") from error
        delay = backoff_delay(failures, self._config.retry_base_s, self._config.retry_max_s)
        logger.warning("%s failed (attempt %d), retrying in %.1fs: %s", what, failures, delay, error)
        self._set_state(PipelineState.IDLE)
        try:
            await asyncio.wait_for(self._stop.wait(), timeout=delay)
        except asyncio.TimeoutError:
            pass

    # -- main loop ---------------------------------------------------------

    async def run(self) -> RunStats:
        """Process batches until stopped or `to_height` is reached.

        Raises
        ------
        FatalConfigurationError
            The store cannot be read at startup.
        BatchOrderError
            The source delivered a batch that does not continue the marker.
        PipelineAborted
            `max_consecutive_failures` transient failures in a row.
        """
        marker = await self._read_marker()
        if marker is not None:
            logger.info("resuming after block %d", marker)
        else:
            logger.info("no progress marker, starting at block %d", self._config.from_height)

        stats = RunStats(last_marker=marker)
        failures = 0

        try:
            while not self._stop.is_set() and not self._reached_end(marker):
                after = self._after_height(marker)
                expected_start = 0 if after is None else after + 1

                # 1) Fetch
                self._set_state(PipelineState.FETCHING_BATCH)
                try:
                    batch = await self._fetch(after)
                except SourceUnavailable as e:
                    failures += 1
                    await self._backoff("fetch", e, failures, stats)
                    continue
                if batch is None:
                    break
                if batch.is_empty:
                    logger.debug("empty batch after %s, dropped", after)
                    self._set_state(PipelineState.IDLE)
                    continue

                # 2) Process
                self._set_state(PipelineState.PROCESSING)
                batch.validate(expected_start=expected_start)
                batch = self._clip(batch)
                result = process_batch(batch, self._filter)
                assert result.new_marker is not None

                # 3) Commit (never interrupted by a stop request)
                self._set_state(PipelineState.COMMITTING)
                try:
                    await self._store.commit(result.entries, result.new_marker)
                except StoreError as e:
                    failures += 1
                    await self._backoff("commit", e, failures, stats)
                    continue

                failures = 0
                marker = result.new_marker
                stats.batches += 1
                stats.blocks += result.stats.blocks
                stats.entries += result.stats.entries
                stats.malformed += result.stats.malformed
                stats.last_marker = marker
                logger.info(
                    "Got %d blocks, stored %d log entries, marker=%d",
                    result.stats.blocks,
                    result.stats.entries,
                    marker,
                )
                if self._on_commit is not None:
                    self._on_commit(result)
                self._set_state(PipelineState.IDLE)
        finally:
            self._set_state(PipelineState.STOPPED)

        return stats
