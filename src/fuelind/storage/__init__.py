"""Storage components.

This package provides:
- DuckDBRecordStore: atomic log-entry + progress-marker store, with Parquet export
"""

from fuelind.storage.duckdb_store import DuckDBRecordStore

__all__ = [
    "DuckDBRecordStore",
]
