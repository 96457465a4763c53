import asyncio
from pathlib import Path
from unittest.mock import MagicMock, patch

import pyarrow.parquet as pq
import pytest
from click.testing import CliRunner

from fuelind.cli import _progress_total, cli
from fuelind.clients.memory import InMemoryBlockSource
from fuelind.core.config import PipelineConfig, StoreConfig
from fuelind.core.errors import FatalConfigurationError
from fuelind.core.models import Block, Receipt, ReceiptType, Transaction
from fuelind.storage.duckdb_store import DuckDBRecordStore

RB_A = 6732614218709939873


@pytest.fixture
def runner() -> CliRunner:
    return CliRunner()


@pytest.fixture(autouse=True)
def quiet_logging():
    # Keep the root logger untouched between tests
    with patch("fuelind.cli._setup_logging"):
        yield


def blocks(n: int) -> list[Block]:
    return [
        Block(
            height=h,
            receipts=(
                Receipt(
                    receipt_type=ReceiptType.LOG_DATA,
                    contract=b"\xaa",
                    rb=RB_A,
                    data=bytes([h]),
                    transaction=Transaction(hash=bytes([h]) * 32),
                ),
            ),
        )
        for h in range(n)
    ]


def test_status_on_empty_database(runner: CliRunner, tmp_path: Path) -> None:
    result = runner.invoke(cli, ["status", "--db", str(tmp_path / "f.duckdb")])

    assert result.exit_code == 0, result.output
    assert "progress marker: none" in result.output
    assert "log entries: 0" in result.output


def test_run_then_status_and_export(runner: CliRunner, tmp_path: Path) -> None:
    db = tmp_path / "f.duckdb"
    source = InMemoryBlockSource(blocks(20), batch_size=4)

    with patch("fuelind.cli.FuelGraphQLBlockSource", return_value=source) as source_cls:
        result = runner.invoke(cli, ["run", "--db", str(db), "--to-height", "9", "--stride-size", "5"])

    assert result.exit_code == 0, result.output
    assert source_cls.call_args.args[0].stride_size == 5
    assert "10 log entries" in result.output

    store = DuckDBRecordStore(StoreConfig(db_path=db))
    try:
        assert asyncio.run(store.read_progress_marker()) == 9
        assert store.count_entries() == 10
    finally:
        store.close()

    result = runner.invoke(cli, ["status", "--db", str(db), "--show", "2"])
    assert result.exit_code == 0, result.output
    assert "progress marker: 9" in result.output
    assert "log entries: 10" in result.output

    out = tmp_path / "logs.parquet"
    result = runner.invoke(cli, ["export", "--db", str(db), "--out", str(out)])
    assert result.exit_code == 0, result.output
    assert "rows=10" in result.output
    assert pq.read_table(out).num_rows == 10


def test_run_resumes_from_stored_marker(runner: CliRunner, tmp_path: Path) -> None:
    db = tmp_path / "f.duckdb"
    with patch("fuelind.cli.FuelGraphQLBlockSource", return_value=InMemoryBlockSource(blocks(20))):
        runner.invoke(cli, ["run", "--db", str(db), "--to-height", "4"])

    source = InMemoryBlockSource(blocks(20))
    with patch("fuelind.cli.FuelGraphQLBlockSource", return_value=source):
        result = runner.invoke(cli, ["run", "--db", str(db), "--to-height", "9"])

    assert result.exit_code == 0, result.output
    assert source.calls[0] == 4


def test_run_rejects_invalid_options(runner: CliRunner, tmp_path: Path) -> None:
    result = runner.invoke(cli, ["run", "--db", str(tmp_path / "f.duckdb"), "--stride-size", "0"])

    assert result.exit_code == 1
    assert "stride_size" in result.output


def test_run_rejects_out_of_range_log_type(runner: CliRunner, tmp_path: Path) -> None:
    with patch("fuelind.cli.FuelGraphQLBlockSource", return_value=InMemoryBlockSource([])):
        result = runner.invoke(cli, ["run", "--db", str(tmp_path / "f.duckdb"), "--log-type", "-5"])

    assert result.exit_code == 1
    assert "log type" in result.output.lower()


def test_store_is_closed_when_source_cannot_be_built(runner: CliRunner, tmp_path: Path) -> None:
    store = MagicMock()
    with (
        patch("fuelind.cli.DuckDBRecordStore", return_value=store),
        patch("fuelind.cli.FuelGraphQLBlockSource", side_effect=FatalConfigurationError("bad endpoint")),
    ):
        result = runner.invoke(cli, ["run", "--db", str(tmp_path / "f.duckdb")])

    assert result.exit_code == 1
    assert "bad endpoint" in result.output
    store.close.assert_called_once()


@pytest.mark.parametrize(
    "from_height,to_height,marker,expected",
    [
        (0, 9, None, 10),
        (0, 9, 4, 5),
        (100, 150, None, 51),
        (0, 9, 9, 0),
        (0, None, 4, None),
    ],
)
def test_progress_total_counts_remaining_blocks(
    from_height: int, to_height: int | None, marker: int | None, expected: int | None
) -> None:
    config = PipelineConfig(from_height=from_height, to_height=to_height)
    assert _progress_total(config, marker) == expected
