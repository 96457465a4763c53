from __future__ import annotations

import asyncio
from collections.abc import Iterable

from fuelind.core.errors import SourceUnavailable
from fuelind.core.models import Block, BlockBatch


class InMemoryBlockSource:
    """Replays a fixed, contiguous list of blocks in batches of `batch_size`.

    `fail_times` makes the first N calls raise SourceUnavailable, to exercise
    retry paths. Once every block has been served the source returns empty
    batches (after a short sleep, so callers never spin).
    """

    def __init__(
        self,
        blocks: Iterable[Block],
        *,
        batch_size: int = 10,
        fail_times: int = 0,
        idle_sleep_s: float = 0.5,
    ) -> None:
        self.blocks = sorted(blocks, key=lambda b: b.height)
        self.batch_size = batch_size
        self.fail_times = fail_times
        self.idle_sleep_s = idle_sleep_s
        self.calls: list[int | None] = []

    async def next_batch(self, after_height: int | None) -> BlockBatch:
        self.calls.append(after_height)
        if self.fail_times > 0:
            self.fail_times -= 1
            raise SourceUnavailable("simulated source outage")
        start = 0 if after_height is None else after_height + 1
        pending = [b for b in self.blocks if b.height >= start][: self.batch_size]
        if not pending:
            await asyncio.sleep(self.idle_sleep_s)
        return BlockBatch(tuple(pending))

    async def aclose(self) -> None:
        return None
