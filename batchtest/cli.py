"""CLI entry point for batchtest."""

from __future__ import annotations

import asyncio
import logging
import signal
import sys
from pathlib import Path
from typing import Optional

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from batchtest.loader import load_batch_modules
from batchtest.models.config import BatchTestConfig
from batchtest.models.test_result import RunResult
from batchtest.orchestrator import RunOrchestrator
from batchtest.registry.batch_registry import BatchRegistry
from batchtest.reporter.console_results import ConsoleResults
from batchtest.reporter.reporter import Reporter
from batchtest.snapshots.store import SnapshotStore

console = Console()
logger = logging.getLogger(__name__)

DEFAULT_CONFIG = "batchtest.json"


def setup_logging(verbose: bool = False) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True)],
    )


def _load_config(config: str) -> BatchTestConfig:
    try:
        return BatchTestConfig.load(config)
    except FileNotFoundError:
        console.print(f"[red]Config file not found: {config}[/red]")
        console.print("Run 'batchtest init' to create a default config.")
        sys.exit(1)


def build_registry(cfg: BatchTestConfig) -> BatchRegistry:
    """Registry populated from the configured batch modules."""
    registry = BatchRegistry(cfg.known_namespaces)
    if cfg.known_namespaces is not None:
        # A module may always register batches under its own package name
        registry.add_known_namespaces(name.partition(".")[0] for name in cfg.batch_modules)
    namespaces = load_batch_modules(registry, cfg.batch_modules)
    logger.debug("Loaded %d batches from %s", len(registry), ", ".join(namespaces) or "no modules")
    return registry


def select_batches(registry: BatchRegistry, cfg: BatchTestConfig, keys: tuple[str, ...], run_all: bool) -> list[str]:
    if keys:
        selected = list(keys)
    elif run_all:
        selected = list(registry.keys())
    elif cfg.selected_batches:
        selected = list(cfg.selected_batches)
    else:
        selected = registry.pre_selected_keys()

    for key in selected:
        if key not in registry:
            # Still run: the batch fails as its own suite
            logger.warning("Batch %s is not registered", key)
    return selected


async def _run_batches(orchestrator: RunOrchestrator, keys: list[str], update_snapshots: Optional[bool]) -> RunResult:
    loop = asyncio.get_running_loop()
    abort_on_interrupt = True
    try:
        loop.add_signal_handler(signal.SIGINT, orchestrator.abort)
    except (NotImplementedError, RuntimeError):
        logger.debug("Ctrl+C abort is not available on this platform")
        abort_on_interrupt = False
    try:
        handle = await orchestrator.run_selected(keys, update_snapshots=update_snapshots)
        return await handle.wait()
    finally:
        if abort_on_interrupt:
            loop.remove_signal_handler(signal.SIGINT)


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
def cli(verbose: bool) -> None:
    """Deferred test batches with snapshot assertions"""
    setup_logging(verbose)


@cli.command()
@click.argument("keys", nargs=-1)
@click.option("--all", "run_all", is_flag=True, help="Run every registered batch")
@click.option("--update-snapshots/--no-update-snapshots", default=None,
              help="Record snapshot values instead of comparing them")
@click.option("--config", "-c", default=DEFAULT_CONFIG, help="Config file path")
def run(keys: tuple[str, ...], run_all: bool, update_snapshots: Optional[bool], config: str) -> None:
    """Run the selected batches (default: configured or pre-selected ones)."""
    cfg = _load_config(config)
    registry = build_registry(cfg)
    selected = select_batches(registry, cfg, keys, run_all)
    if not selected:
        console.print("[yellow]No batches selected[/yellow]")

    store = SnapshotStore(Path(cfg.data_dir))
    sink = ConsoleResults(console, display_name=lambda key: _display_name(registry, key))
    orchestrator = RunOrchestrator(registry, store, sink, cfg)
    result = asyncio.run(_run_batches(orchestrator, selected, update_snapshots))

    reporter = Reporter(cfg)
    previous = reporter.load_previous_run_result(result.run_id)
    reports = reporter.generate_reports(result, previous)

    console.print("\n[bold green]Run Complete[/bold green]")
    table = Table(title="Results Summary")
    table.add_column("Metric", style="bold")
    table.add_column("Value")
    table.add_row("Run ID", result.run_id)
    table.add_row("Duration", f"{result.duration_seconds}s")
    table.add_row("Batches", str(len(result.batch_keys)))
    table.add_row("Total Tests", str(result.total_tests))
    table.add_row("Passed", f"[green]{result.passed}[/green]")
    table.add_row("Failed", f"[red]{result.failed}[/red]")
    table.add_row("Pending", f"[yellow]{result.pending}[/yellow]")
    table.add_row("Errors", f"[red]{result.errors}[/red]")
    if result.aborted:
        table.add_row("Aborted", "[yellow]yes[/yellow]")
    if result.snapshots_written:
        table.add_row("Snapshot files written", str(len(result.snapshots_written)))
    console.print(table)

    for fmt, path in reports.items():
        console.print(f"  {fmt.upper()} report: [blue]{path}[/blue]")

    if result.failed or result.errors:
        sys.exit(1)


def _display_name(registry: BatchRegistry, key: str) -> str:
    batch = registry.get(key)
    return batch.display_name if batch else key


@cli.command("list")
@click.option("--config", "-c", default=DEFAULT_CONFIG, help="Config file path")
def list_batches(config: str) -> None:
    """List registered batches."""
    cfg = _load_config(config)
    registry = build_registry(cfg)
    if not len(registry):
        console.print("[yellow]No batches registered[/yellow]")
        return

    table = Table(title="Registered Batches")
    table.add_column("Key", style="bold")
    table.add_column("Name")
    table.add_column("Snapshot dir")
    table.add_column("Pre-selected")
    for batch in registry.batches():
        table.add_row(
            batch.key,
            batch.display_name,
            batch.snapshot_base_dir,
            "[green]yes[/green]" if batch.pre_selected else "no",
        )
    console.print(table)

    for warning in registry.warnings:
        console.print(f"[yellow]warning:[/yellow] {warning.message}")


@cli.command()
@click.option("--module", "-m", "modules", multiple=True, help="Batch module to load (repeatable)")
def init(modules: tuple[str, ...]) -> None:
    """Create a default configuration file."""
    config_path = Path(DEFAULT_CONFIG)
    if config_path.exists():
        if not click.confirm(f"{DEFAULT_CONFIG} already exists. Overwrite?"):
            return

    cfg = BatchTestConfig(batch_modules=list(modules))
    cfg.save(config_path)
    console.print(f"[green]Created {config_path}[/green]")
    console.print("\nAdd your batch modules to 'batch_modules' and run:")
    console.print("  [blue]batchtest run[/blue]")
    console.print("\nRecord snapshots for new tests with:")
    console.print("  [blue]batchtest run --update-snapshots[/blue]")


if __name__ == "__main__":
    cli()
