from __future__ import annotations

import asyncio
import logging
import os
from collections.abc import Iterator, Sequence
from pathlib import Path

import duckdb
import pyarrow as pa
import pyarrow.parquet as pq

from fuelind.core.config import StoreConfig
from fuelind.core.errors import FatalConfigurationError, StoreConflict, StoreUnavailable
from fuelind.core.models import LogEntry

logger = logging.getLogger(__name__)

_SCHEMA_SQL = [
    """
    CREATE TABLE IF NOT EXISTS log_entry (
        id VARCHAR PRIMARY KEY,
        tx_hash BLOB NOT NULL,
        found_at BIGINT NOT NULL,
        contract BLOB NOT NULL,
        rb UBIGINT NOT NULL,
        data BLOB NOT NULL
    )
    """,
    "CREATE INDEX IF NOT EXISTS log_entry_found_at_idx ON log_entry (found_at)",
    """
    CREATE TABLE IF NOT EXISTS processor_status (
        id INTEGER PRIMARY KEY,
        height BIGINT
    )
    """,
    "INSERT INTO processor_status (id, height) VALUES (0, NULL) ON CONFLICT DO NOTHING",
]

_INSERT_SQL = "INSERT INTO log_entry (id, tx_hash, found_at, contract, rb, data) VALUES (?, ?, ?, ?, ?, ?)"

_EXPORT_SCHEMA = pa.schema(
    [
        ("id", pa.string()),
        ("tx_hash", pa.binary()),
        ("found_at", pa.int64()),
        ("contract", pa.binary()),
        ("rb", pa.uint64()),
        ("data", pa.binary()),
    ]
)


class DuckDBRecordStore:
    """Record store backed by a DuckDB database file.

    Log entries and the progress marker live in the same database, so one
    transaction covers both: a commit either lands entirely or leaves the
    previous state untouched.

    Commits are serialized with an asyncio lock and run in a worker thread so
    the event loop is never blocked on disk I/O.
    """

    def __init__(self, config: StoreConfig) -> None:
        self.path = str(config.db_path)
        try:
            if self.path != ":memory:":
                Path(self.path).parent.mkdir(parents=True, exist_ok=True)
            self._con = duckdb.connect(self.path)
            for stmt in _SCHEMA_SQL:
                self._con.execute(stmt)
        except (OSError, duckdb.Error) as e:
            raise FatalConfigurationError(f"cannot open record store at {self.path}: {e}") from e
        self._lock = asyncio.Lock()

    # -- IRecordStore ------------------------------------------------------

    async def commit(self, entries: Sequence[LogEntry], new_marker: int) -> None:
        """Insert `entries` and set the progress marker in one transaction."""
        rows = [(e.id, e.tx_hash, e.found_at, e.contract, e.rb, e.data) for e in entries]
        async with self._lock:
            await asyncio.to_thread(self._commit_sync, rows, new_marker)

    async def read_progress_marker(self) -> int | None:
        async with self._lock:
            try:
                return await asyncio.to_thread(self._read_marker)
            except duckdb.Error as e:
                raise StoreUnavailable(f"cannot read progress marker: {e}") from e

    # -- transaction -------------------------------------------------------

    def _commit_sync(self, rows: list[tuple], new_marker: int) -> None:
        try:
            self._con.begin()
            current = self._read_marker()
            if current is not None and new_marker <= current:
                raise StoreConflict(f"progress marker would move back from {current} to {new_marker}")
            if rows:
                self._con.executemany(_INSERT_SQL, rows)
            self._write_marker(new_marker)
            self._con.commit()
        except duckdb.ConstraintException as e:
            self._rollback()
            raise StoreConflict(f"commit up to block {new_marker} rejected: {e}") from e
        except duckdb.Error as e:
            self._rollback()
            raise StoreUnavailable(f"commit up to block {new_marker} failed: {e}") from e
        except BaseException:
            self._rollback()
            raise

    def _rollback(self) -> None:
        try:
            self._con.rollback()
        except duckdb.Error as e:
            # Nothing was committed either way; keep the original error
            logger.warning("rollback failed: %s", e)

    def _read_marker(self) -> int | None:
        row = self._con.execute("SELECT height FROM processor_status WHERE id = 0").fetchone()
        return None if row is None or row[0] is None else int(row[0])

    def _write_marker(self, height: int) -> None:
        self._con.execute("UPDATE processor_status SET height = ? WHERE id = 0", [height])

    # -- inspection --------------------------------------------------------

    def count_entries(self) -> int:
        row = self._con.execute("SELECT count(*) FROM log_entry").fetchone()
        return int(row[0]) if row else 0

    def iter_entries(self, batch_rows: int = 10_000) -> Iterator[LogEntry]:
        """Yield committed entries ordered by block height, then insertion order."""
        cur = self._con.cursor()
        try:
            cur.execute(
                "SELECT id, tx_hash, found_at, contract, rb, data FROM log_entry ORDER BY found_at, rowid"
            )
            while True:
                rows = cur.fetchmany(batch_rows)
                if not rows:
                    break
                for id_, tx_hash, found_at, contract, rb, data in rows:
                    yield LogEntry(
                        id=id_,
                        tx_hash=bytes(tx_hash),
                        found_at=int(found_at),
                        contract=bytes(contract),
                        rb=int(rb),
                        data=bytes(data),
                    )
        finally:
            cur.close()

    def fetch_entries(self, limit: int | None = None) -> list[LogEntry]:
        out: list[LogEntry] = []
        for entry in self.iter_entries():
            if limit is not None and len(out) >= limit:
                break
            out.append(entry)
        return out

    def export_parquet(self, path: Path | str, compression: str = "zstd") -> int:
        """Write all entries to a Parquet file (tmp file + rename). Returns the row count."""
        entries = list(self.iter_entries())
        table = pa.Table.from_arrays(
            [
                pa.array([e.id for e in entries], pa.string()),
                pa.array([e.tx_hash for e in entries], pa.binary()),
                pa.array([e.found_at for e in entries], pa.int64()),
                pa.array([e.contract for e in entries], pa.binary()),
                pa.array([e.rb for e in entries], pa.uint64()),
                pa.array([e.data for e in entries], pa.binary()),
            ],
            schema=_EXPORT_SCHEMA,
        )
        out = Path(path)
        out.parent.mkdir(parents=True, exist_ok=True)
        tmp = out.with_name(out.name + ".tmp")
        pq.write_table(table, str(tmp), compression=compression)
        os.replace(tmp, out)
        return len(entries)

    def close(self) -> None:
        self._con.close()
