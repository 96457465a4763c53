from unittest.mock import AsyncMock

import pytest

from fuelind.core.config import StoreConfig
from fuelind.storage.duckdb_store import DuckDBRecordStore


@pytest.fixture
def mock_store():
    store = AsyncMock()
    store.read_progress_marker = AsyncMock(return_value=None)
    store.commit = AsyncMock(return_value=None)
    return store


@pytest.fixture
def memory_store():
    store = DuckDBRecordStore(StoreConfig(db_path=":memory:"))
    yield store
    store.close()
