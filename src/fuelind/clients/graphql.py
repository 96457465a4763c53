"""Lightweight reader for a Fuel node's GraphQL endpoint.

This module provides:
- `FuelGraphQL`: an async client with sane timeouts/connection limits that
  reads the chain head and contiguous block ranges.
- `parse_block`: turns one GraphQL block node into a `Block` whose receipts
  already reference their owning transaction.

Only the two queries the pipeline needs are implemented; this is not a
general GraphQL client.
"""

from __future__ import annotations

from typing import Any

import httpx

from fuelind.core.config import FieldSelection
from fuelind.core.errors import SourceUnavailable
from fuelind.core.models import Block, Receipt, ReceiptType, Transaction
from fuelind.orchestration.utils import hex_to_bytes, parse_u64

_HEAD_QUERY = "query { chain { latestBlock { height } } }"


def blocks_query(fields: FieldSelection) -> str:
    """Build the `blocks(first:, after:)` query for the given receipt projection."""
    receipt_fields = " ".join(fields.graphql_fields())
    return (
        "query Blocks($first: Int!, $after: String) {"
        " blocks(first: $first, after: $after) {"
        " nodes { height transactions { id status { __typename"
        f" ... on SuccessStatus {{ receipts {{ {receipt_fields} }} }}"
        f" ... on FailureStatus {{ receipts {{ {receipt_fields} }} }}"
        " } } } } }"
    )


def _parse_receipt(raw: dict[str, Any], tx: Transaction, index: int) -> Receipt:
    return Receipt(
        receipt_type=ReceiptType.parse(raw["receiptType"]),
        contract=hex_to_bytes(raw.get("id")),
        rb=parse_u64(raw.get("rb")),
        data=hex_to_bytes(raw.get("data")),
        transaction=tx,
        index=index,
        ra=parse_u64(raw.get("ra")),
        len=parse_u64(raw.get("len")),
        digest=hex_to_bytes(raw.get("digest")),
    )


def parse_block(node: dict[str, Any]) -> Block:
    """Map a GraphQL block node to a `Block` (receipts in execution order)."""
    receipts: list[Receipt] = []
    for tx_index, raw_tx in enumerate(node.get("transactions") or []):
        tx = Transaction(hash=hex_to_bytes(raw_tx["id"]) or b"", index=tx_index)
        status = raw_tx.get("status") or {}
        for raw in status.get("receipts") or []:
            receipts.append(_parse_receipt(raw, tx, len(receipts)))
    return Block(height=int(node["height"]), receipts=tuple(receipts))


class FuelGraphQL:
    """Minimal async Fuel GraphQL client.

    Parameters
    ----------
    url : str
        GraphQL endpoint URL (e.g. https://mainnet.fuel.network/v1/graphql).
    fields : FieldSelection
        Receipt projection used for block queries.
    timeout_s : int
        Per-operation timeout in seconds (connect/read/write).
    max_connections : int
        Maximum concurrent connections to keep in the pool.
    transport : httpx.AsyncBaseTransport, optional
        Custom transport (tests use `httpx.MockTransport`).
    """

    def __init__(
        self,
        url: str,
        *,
        fields: FieldSelection | None = None,
        timeout_s: int = 20,
        max_connections: int = 16,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.url = url
        self._blocks_query = blocks_query(fields or FieldSelection())
        self.client = httpx.AsyncClient(
            timeout=httpx.Timeout(
                connect=timeout_s,
                read=timeout_s,
                write=timeout_s,
                pool=max(30, timeout_s * 3),
            ),
            limits=httpx.Limits(
                max_connections=max_connections,
                max_keepalive_connections=max(1, max_connections // 2),
            ),
            http2=transport is None,
            transport=transport,
        )

    async def _query(self, query: str, variables: dict[str, Any] | None = None) -> dict[str, Any]:
        try:
            r = await self.client.post(self.url, json={"query": query, "variables": variables or {}})
            r.raise_for_status()
            payload = r.json()
        except (httpx.HTTPError, ValueError) as e:
            raise SourceUnavailable(f"GraphQL request to {self.url} failed: {e}") from e
        if payload.get("errors"):
            messages = "; ".join(str(err.get("message", err)) for err in payload["errors"])
            raise SourceUnavailable(f"GraphQL error: {messages}")
        data = payload.get("data")
        if not isinstance(data, dict):
            raise SourceUnavailable("GraphQL response has no data")
        return data

    async def latest_height(self) -> int:
        """Return the height of the chain head."""
        data = await self._query(_HEAD_QUERY)
        try:
            return int(data["chain"]["latestBlock"]["height"])
        except (KeyError, TypeError, ValueError) as e:
            raise SourceUnavailable(f"unexpected chain head response: {data!r}") from e

    async def get_blocks(self, from_height: int, to_height: int) -> list[Block]:
        """Fetch blocks in the inclusive range [from_height, to_height]."""
        variables = {
            "first": to_height - from_height + 1,
            "after": str(from_height - 1) if from_height > 0 else None,
        }
        data = await self._query(self._blocks_query, variables)
        try:
            nodes = data["blocks"]["nodes"]
            blocks = [parse_block(node) for node in nodes]
        except (KeyError, TypeError, ValueError) as e:
            raise SourceUnavailable(f"unexpected blocks response for {from_height}-{to_height}: {e}") from e
        return [b for b in blocks if from_height <= b.height <= to_height]

    async def aclose(self) -> None:
        """Close the underlying HTTP client."""
        await self.client.aclose()
