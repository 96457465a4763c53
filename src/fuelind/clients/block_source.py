from __future__ import annotations

import asyncio
import logging

from fuelind.clients.graphql import FuelGraphQL
from fuelind.core.config import SourceConfig
from fuelind.core.errors import SourceUnavailable
from fuelind.core.models import Block, BlockBatch
from fuelind.orchestration.utils import iter_strides

logger = logging.getLogger(__name__)


class FuelGraphQLBlockSource:
    """
    Block source reading a Fuel node's GraphQL API.

    Each call to `next_batch` fetches up to `stride_concurrency` strides of
    `stride_size` blocks concurrently and returns them concatenated in height
    order. When the chain head has not moved past `after_height` the source
    polls every `poll_interval_s` instead of returning an empty batch.
    """

    def __init__(self, config: SourceConfig, *, client: FuelGraphQL | None = None) -> None:
        config.validate()
        self.config = config
        self.client = client or FuelGraphQL(
            config.graphql_url,
            fields=config.fields,
            timeout_s=config.timeout_s,
            max_connections=config.max_connections,
        )

    async def latest_height(self) -> int:
        return await self.client.latest_height()

    async def _wait_for_head(self, start: int) -> int:
        while True:
            head = await self.client.latest_height()
            if head >= start:
                return head
            logger.debug("head at %d, waiting for block %d", head, start)
            await asyncio.sleep(self.config.poll_interval_s)

    async def _fetch_strides(self, strides: list[tuple[int, int]]) -> list[list[Block]]:
        """Fetch all strides concurrently; one failure cancels the others."""
        tasks = [asyncio.ensure_future(self.client.get_blocks(a, b)) for a, b in strides]
        try:
            return await asyncio.gather(*tasks)
        except BaseException:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise

    async def next_batch(self, after_height: int | None) -> BlockBatch:
        start = 0 if after_height is None else after_height + 1
        head = await self._wait_for_head(start)
        end = min(head, start + self.config.stride_size * self.config.stride_concurrency - 1)

        strides = list(iter_strides(start, end, self.config.stride_size))
        results = await self._fetch_strides(strides)

        # Keep the contiguous prefix starting at `start`; a short stride ends it
        blocks: list[Block] = []
        expected = start
        for stride_blocks in results:
            for block in sorted(stride_blocks, key=lambda b: b.height):
                if block.height != expected:
                    break
                blocks.append(block)
                expected += 1
        if not blocks:
            raise SourceUnavailable(f"node returned no blocks for {start}-{end} (head {head})")
        if blocks[-1].height < end:
            logger.debug("node returned blocks %d-%d of %d-%d", start, blocks[-1].height, start, end)
        return BlockBatch(tuple(blocks))

    async def aclose(self) -> None:
        await self.client.aclose()
