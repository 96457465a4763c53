"""Block sources.

This package provides:
- FuelGraphQL: thin async reader for a Fuel node's GraphQL endpoint
- FuelGraphQLBlockSource: IBlockSource over FuelGraphQL with strided prefetch
- InMemoryBlockSource: IBlockSource replaying a fixed list of blocks
"""

from fuelind.clients.block_source import FuelGraphQLBlockSource
from fuelind.clients.graphql import FuelGraphQL
from fuelind.clients.memory import InMemoryBlockSource

__all__ = [
    "FuelGraphQL",
    "FuelGraphQLBlockSource",
    "InMemoryBlockSource",
]
