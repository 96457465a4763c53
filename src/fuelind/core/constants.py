from __future__ import annotations

# LOG_DATA discriminators ("rb") of the two log types we extract
LOG_TYPES: frozenset[int] = frozenset({6732614218709939873, 12195664052085097644})

U64_MAX = 2**64 - 1

# Random bytes per LogEntry id (hex-encoded with a 0x prefix)
ENTRY_ID_BYTES = 8

DEFAULT_GRAPHQL_URL = "https://mainnet.fuel.network/v1/graphql"
