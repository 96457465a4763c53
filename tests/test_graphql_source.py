import asyncio
import json
from typing import Any

import httpx
import pytest

from fuelind.clients.block_source import FuelGraphQLBlockSource
from fuelind.clients.graphql import FuelGraphQL, blocks_query, parse_block
from fuelind.core.config import FieldSelection, SourceConfig
from fuelind.core.errors import SourceUnavailable
from fuelind.core.models import ReceiptType

URL = "http://fuel.test/v1/graphql"


def block_node(height: int) -> dict[str, Any]:
    return {
        "height": str(height),
        "transactions": [
            {
                "id": "0x" + f"{height:064x}",
                "status": {
                    "__typename": "SuccessStatus",
                    "receipts": [
                        {"receiptType": "CALL", "id": "0xaa", "rb": None, "data": None},
                        {"receiptType": "LOG_DATA", "id": "0xaa", "rb": "6732614218709939873", "data": "0x1234"},
                    ],
                },
            },
            {"id": "0x" + "ff" * 32, "status": {"__typename": "SubmittedStatus"}},
        ],
    }


class FakeNode:
    """Answers the head and blocks queries from an in-memory chain."""

    def __init__(self, heads: list[int], chain_end: int) -> None:
        self.heads = heads
        self.chain_end = chain_end
        self.block_requests: list[tuple[str | None, int]] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        if "latestBlock" in body["query"]:
            head = self.heads.pop(0) if len(self.heads) > 1 else self.heads[0]
            return httpx.Response(200, json={"data": {"chain": {"latestBlock": {"height": str(head)}}}})
        variables = body["variables"]
        self.block_requests.append((variables["after"], variables["first"]))
        start = 0 if variables["after"] is None else int(variables["after"]) + 1
        end = min(self.chain_end, start + variables["first"] - 1)
        nodes = [block_node(h) for h in range(start, end + 1)]
        return httpx.Response(200, json={"data": {"blocks": {"nodes": nodes}}})


def make_source(node: FakeNode, **config: Any) -> FuelGraphQLBlockSource:
    client = FuelGraphQL(URL, transport=httpx.MockTransport(node.handler))
    return FuelGraphQLBlockSource(SourceConfig(graphql_url=URL, poll_interval_s=0, **config), client=client)


def test_parse_block_links_receipts_to_transactions() -> None:
    block = parse_block(block_node(7))

    assert block.height == 7
    assert [r.receipt_type for r in block.receipts] == [ReceiptType.CALL, ReceiptType.LOG_DATA]
    log = block.receipts[1]
    assert log.contract == b"\xaa"
    assert log.rb == 6732614218709939873
    assert log.data == b"\x12\x34"
    assert log.transaction is not None
    assert log.transaction.hash == (7).to_bytes(32, "big")
    assert log.index == 1


def test_blocks_query_always_requests_filter_fields() -> None:
    query = blocks_query(FieldSelection(contract=False, rb=False, data=False, digest=True))
    for field in ("receiptType", "id", "rb", "data", "digest"):
        assert field in query
    assert " ra " not in query


@pytest.mark.asyncio
async def test_next_batch_fetches_strides_in_order() -> None:
    node = FakeNode(heads=[100], chain_end=100)
    source = make_source(node, stride_size=2, stride_concurrency=3)

    batch = await source.next_batch(None)

    assert [b.height for b in batch.blocks] == [0, 1, 2, 3, 4, 5]
    assert sorted(node.block_requests, key=lambda r: -1 if r[0] is None else int(r[0])) == [
        (None, 2),
        ("1", 2),
        ("3", 2),
    ]
    await source.aclose()


@pytest.mark.asyncio
async def test_next_batch_stops_at_head() -> None:
    node = FakeNode(heads=[12], chain_end=12)
    source = make_source(node, stride_size=5, stride_concurrency=3)

    batch = await source.next_batch(9)

    assert batch.first_height == 10
    assert batch.last_height == 12
    await source.aclose()


@pytest.mark.asyncio
async def test_next_batch_waits_for_new_blocks() -> None:
    node = FakeNode(heads=[4, 4, 6], chain_end=6)
    source = make_source(node, stride_size=10, stride_concurrency=1)

    batch = await source.next_batch(4)

    assert [b.height for b in batch.blocks] == [5, 6]
    await source.aclose()


@pytest.mark.asyncio
async def test_short_stride_truncates_batch() -> None:
    # Node head says 20 but only serves up to 6
    node = FakeNode(heads=[20], chain_end=6)
    source = make_source(node, stride_size=4, stride_concurrency=3)

    batch = await source.next_batch(None)

    assert [b.height for b in batch.blocks] == list(range(0, 7))
    batch.validate(expected_start=0)
    await source.aclose()


@pytest.mark.asyncio
async def test_http_error_is_source_unavailable() -> None:
    client = FuelGraphQL(URL, transport=httpx.MockTransport(lambda request: httpx.Response(503)))

    with pytest.raises(SourceUnavailable):
        await client.latest_height()
    await client.aclose()


@pytest.mark.asyncio
async def test_graphql_errors_are_source_unavailable() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"data": None, "errors": [{"message": "too many blocks requested"}]})

    client = FuelGraphQL(URL, transport=httpx.MockTransport(handler))

    with pytest.raises(SourceUnavailable, match="too many blocks"):
        await client.get_blocks(0, 10)
    await client.aclose()


@pytest.mark.asyncio
async def test_empty_range_is_source_unavailable() -> None:
    node = FakeNode(heads=[50], chain_end=-1)
    source = make_source(node)

    with pytest.raises(SourceUnavailable):
        await source.next_batch(None)
    await source.aclose()


@pytest.mark.asyncio
async def test_failed_stride_cancels_the_others() -> None:
    cancelled: list[int] = []

    class OneBadStride:
        async def latest_height(self) -> int:
            return 100

        async def get_blocks(self, from_height: int, to_height: int) -> list:
            if from_height == 0:
                await asyncio.sleep(0)
                raise SourceUnavailable("stride 0-1 failed")
            try:
                await asyncio.Event().wait()
            except asyncio.CancelledError:
                cancelled.append(from_height)
                raise
            return []

        async def aclose(self) -> None:
            return None

    source = FuelGraphQLBlockSource(
        SourceConfig(graphql_url=URL, stride_size=2, stride_concurrency=3),
        client=OneBadStride(),  # type: ignore[arg-type]
    )

    with pytest.raises(SourceUnavailable, match="stride 0-1"):
        await source.next_batch(None)
    assert sorted(cancelled) == [2, 4]
