from __future__ import annotations

import asyncio
import contextlib
import logging
import signal
import time
from pathlib import Path

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.progress import (
    BarColumn,
    MofNCompleteColumn,
    Progress,
    SpinnerColumn,
    TextColumn,
    TimeElapsedColumn,
)
from rich.table import Table

from fuelind.clients.block_source import FuelGraphQLBlockSource
from fuelind.core.config import PipelineConfig, SourceConfig, StoreConfig
from fuelind.core.constants import DEFAULT_GRAPHQL_URL, LOG_TYPES
from fuelind.core.errors import FuelindError
from fuelind.core.models import BatchResult
from fuelind.orchestration.driver import PipelineDriver, RunStats
from fuelind.orchestration.utils import bytes_to_hex
from fuelind.storage.duckdb_store import DuckDBRecordStore

console = Console()

_DEFAULT_DB = "./data/fuelind.duckdb"


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True, show_path=verbose)],
        force=True,
    )
    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.DEBUG if verbose else logging.WARNING)


def _open_store(db_path: str) -> DuckDBRecordStore:
    try:
        return DuckDBRecordStore(StoreConfig(db_path=Path(db_path)))
    except FuelindError as e:
        raise click.ClickException(str(e)) from e


@click.group()
def cli() -> None:
    """fuelind: resumable extractor for Fuel LOG_DATA receipts."""


def _progress_total(pipeline_config: PipelineConfig, marker: int | None) -> int | None:
    """Blocks left until `to_height` (None when following the head)."""
    if pipeline_config.to_height is None:
        return None
    start = pipeline_config.from_height if marker is None else marker + 1
    return max(0, pipeline_config.to_height - start + 1)


async def _run_pipeline(
    source_config: SourceConfig,
    store_config: StoreConfig,
    pipeline_config: PipelineConfig,
) -> RunStats:
    async with contextlib.AsyncExitStack() as stack:
        store = DuckDBRecordStore(store_config)
        stack.callback(store.close)
        source = FuelGraphQLBlockSource(source_config)
        stack.push_async_callback(source.aclose)

        progress = Progress(
            SpinnerColumn(),
            TextColumn("[bold]extracting logs[/]"),
            BarColumn(),
            MofNCompleteColumn(),
            TextColumn("•"),
            TimeElapsedColumn(),
            TextColumn(" • {task.description}"),
            console=console,
            transient=False,
            expand=True,
        )
        total = _progress_total(pipeline_config, await store.read_progress_marker())

        with progress:
            task = progress.add_task(description="waiting for blocks", total=total)

            def on_commit(result: BatchResult) -> None:
                progress.update(
                    task,
                    advance=result.stats.blocks,
                    description=f"block {result.new_marker:,} • {result.stats.entries} new entries",
                )

            driver = PipelineDriver(
                source=source,
                store=store,
                config=pipeline_config,
                on_commit=on_commit,
            )
            loop = asyncio.get_running_loop()
            for sig in (signal.SIGINT, signal.SIGTERM):
                # Not available on every platform (e.g. Windows event loops)
                with contextlib.suppress(NotImplementedError):
                    loop.add_signal_handler(sig, driver.request_stop)
            return await driver.run()


@cli.command("run")
@click.option(
    "--graphql-url",
    envvar="FUELIND_GRAPHQL_URL",
    default=DEFAULT_GRAPHQL_URL,
    show_default=True,
    help="Fuel node GraphQL endpoint",
)
@click.option("--db", "db_path", envvar="FUELIND_DB", default=_DEFAULT_DB, show_default=True, help="DuckDB database file")
@click.option(
    "--log-type",
    "log_types",
    multiple=True,
    type=int,
    help="LOG_DATA rb discriminator to keep; repeat to OR (default: the two known log types)",
)
@click.option("--from-height", type=int, default=0, show_default=True, help="First block when no progress is stored")
@click.option("--to-height", type=int, default=None, help="Stop after this block (default: follow the chain head)")
@click.option("--stride-size", type=int, default=30, show_default=True, help="Blocks per GraphQL request")
@click.option("--stride-concurrency", type=int, default=3, show_default=True, help="Parallel GraphQL requests per batch")
@click.option("--poll-interval", type=float, default=5.0, show_default=True, help="Seconds between head checks at the tip")
@click.option("--timeout", "timeout_s", type=int, default=20, show_default=True, help="HTTP timeout in seconds")
@click.option("--max-failures", type=int, default=None, help="Abort after this many consecutive failures")
@click.option("-v", "--verbose", is_flag=True, help="Debug logging")
def run_cmd(
    graphql_url: str,
    db_path: str,
    log_types: tuple[int, ...],
    from_height: int,
    to_height: int | None,
    stride_size: int,
    stride_concurrency: int,
    poll_interval: float,
    timeout_s: int,
    max_failures: int | None,
    verbose: bool,
) -> None:
    """Stream blocks, keep matching LOG_DATA receipts and store them with progress."""
    _setup_logging(verbose)

    source_config = SourceConfig(
        graphql_url=graphql_url,
        stride_size=stride_size,
        stride_concurrency=stride_concurrency,
        timeout_s=timeout_s,
        poll_interval_s=poll_interval,
    )
    store_config = StoreConfig(db_path=Path(db_path))
    pipeline_config = PipelineConfig(
        log_types=frozenset(log_types) if log_types else LOG_TYPES,
        from_height=from_height,
        to_height=to_height,
        max_consecutive_failures=max_failures,
    )

    t0 = time.time()
    try:
        source_config.validate()
        pipeline_config.validate()
        stats = asyncio.run(_run_pipeline(source_config, store_config, pipeline_config))
    except FuelindError as e:
        raise click.ClickException(str(e)) from e

    elapsed = time.time() - t0
    marker = "none" if stats.last_marker is None else f"{stats.last_marker:,}"
    console.print(f"[bold]done[/]: {stats.entries} log entries • {stats.blocks} blocks • {elapsed:.2f}s")
    console.print(
        f"[bold]summary[/]: "
        f"[green]batches[/]={stats.batches}  "
        f"[yellow]retries[/]={stats.retries}  "
        f"[red]malformed[/]={stats.malformed}  "
        f"marker={marker}"
    )


@cli.command("status")
@click.option("--db", "db_path", envvar="FUELIND_DB", default=_DEFAULT_DB, show_default=True, help="DuckDB database file")
@click.option("--show", type=int, default=0, show_default=True, help="Also print the first N entries")
def status_cmd(db_path: str, show: int) -> None:
    """Print the progress marker and the number of stored entries."""
    store = _open_store(db_path)
    try:
        try:
            marker = asyncio.run(store.read_progress_marker())
        except FuelindError as e:
            raise click.ClickException(str(e)) from e
        console.print(f"[bold]progress marker[/]: {'none' if marker is None else marker}")
        console.print(f"[bold]log entries[/]: {store.count_entries()}")

        if show > 0:
            table = Table("id", "found_at", "tx_hash", "contract", "rb", "data")
            for e in store.fetch_entries(limit=show):
                table.add_row(
                    e.id,
                    str(e.found_at),
                    bytes_to_hex(e.tx_hash),
                    bytes_to_hex(e.contract),
                    str(e.rb),
                    bytes_to_hex(e.data),
                )
            console.print(table)
    finally:
        store.close()


@cli.command("export")
@click.option("--db", "db_path", envvar="FUELIND_DB", default=_DEFAULT_DB, show_default=True, help="DuckDB database file")
@click.option("--out", "out_path", required=True, type=click.Path(dir_okay=False), help="Parquet file to write")
def export_cmd(db_path: str, out_path: str) -> None:
    """Export all stored entries to a Parquet file."""
    store = _open_store(db_path)
    try:
        rows = store.export_parquet(out_path)
    finally:
        store.close()
    console.print(f"💾 wrote → {out_path}  (rows={rows})")


if __name__ == "__main__":
    cli()
