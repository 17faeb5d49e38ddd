"""Console results surface - prints the batch / suite / test tree as a run progresses."""

from __future__ import annotations

import difflib
from typing import Callable, Optional

from rich.console import Console
from rich.markup import escape

from batchtest.engine.runnable import Runnable, Suite, Test
from batchtest.models.test_result import FailureInfo, RunStats
from batchtest.utils import RunnableState

_ICONS = {
    RunnableState.SUCCESS: "[green]✔[/green]",
    RunnableState.FAILURE: "[red]✘[/red]",
    RunnableState.PENDING: "[yellow]-[/yellow]",
    RunnableState.IN_PROGRESS: "[blue]…[/blue]",
}


def render_diff(expected: str, actual: str) -> list[str]:
    """Line diff with rich markup: `+` lines are expected, `-` lines actual."""
    lines = []
    for line in difflib.unified_diff(
        actual.splitlines(), expected.splitlines(), "actual", "expected", lineterm="",
    ):
        if line.startswith(("---", "+++")):
            continue
        if line.startswith("+"):
            lines.append(f"[green]{escape(line)}[/green]")
        elif line.startswith("-"):
            lines.append(f"[red]{escape(line)}[/red]")
        elif line.startswith("@@"):
            lines.append(f"[dim]{escape(line)}[/dim]")
        else:
            lines.append(escape(line))
    return lines


class ConsoleResults:
    """ResultsSink printing to a rich console. Batch roots show as their display name."""

    def __init__(self, console: Console | None = None, display_name: Optional[Callable[[str], str]] = None):
        self.console = console or Console()
        self.display_name = display_name or (lambda key: key)
        self.offer_snapshot_update = False
        self._failures: dict[str, FailureInfo] = {}

    def clear(self) -> None:
        self.offer_snapshot_update = False
        self._failures.clear()

    def _indent(self, runnable: Runnable) -> str:
        return "  " * len(runnable.title_path())

    def handle_run_begin(self) -> None:
        self.offer_snapshot_update = False
        self.console.rule("[bold]Running test batches[/bold]")

    def handle_suite_begin(self, suite: Suite, is_batch_root: bool) -> None:
        if is_batch_root:
            self.console.print(f"\n[bold cyan]{escape(self.display_name(suite.batch_key or suite.title))}[/bold cyan]")
            return
        self.console.print(f"{self._indent(suite)}[bold]{escape(suite.title)}[/bold]")

    def handle_suite_end(self, suite: Suite, state: RunnableState) -> None:
        pass

    def handle_test_begin(self, test: Test) -> None:
        pass

    def handle_test_end(self, test: Test, state: RunnableState) -> None:
        duration = f" [dim]({test.duration_seconds:.2f}s)[/dim]" if state != RunnableState.PENDING else ""
        self.console.print(f"{self._indent(test)}{_ICONS[state]} {escape(test.title)}{duration}")
        failure = self._failures.pop(test.id, None)
        if failure:
            self._print_failure(self._indent(test) + "    ", failure)

    def handle_test_fail(self, runnable: Runnable, failure: FailureInfo) -> None:
        if failure.offer_snapshot_update:
            self.offer_snapshot_update = True
        if isinstance(runnable, Test):
            # Printed below the test line once the test has ended
            self._failures[runnable.id] = failure
            return
        indent = self._indent(runnable)
        self.console.print(f"{indent}{_ICONS[RunnableState.FAILURE]} {escape(runnable.title)}")
        self._print_failure(indent + "    ", failure)

    def _print_failure(self, indent: str, failure: FailureInfo) -> None:
        self.console.print(f"{indent}[red]{escape(failure.message)}[/red]")
        if failure.actual is not None and failure.expected is not None:
            self.console.print(f"{indent}[green]+ expected[/green] [red]- actual[/red]")
            for line in render_diff(failure.expected, failure.actual):
                self.console.print(f"{indent}{line}")

    def handle_run_end(self, stats: RunStats) -> None:
        style = "red" if stats.failed or stats.errors else "green"
        self.console.print()
        self.console.print(f"{stats.total} tests completed in {stats.duration_seconds:.2f}s")
        self.console.print(
            f"[{style}]{stats.passed} passed, {stats.failed} failed, "
            f"{stats.pending} pending, {stats.errors} errors[/{style}]"
        )
        if stats.aborted:
            self.console.print("[yellow]Run aborted before all tests finished[/yellow]")
        if self.offer_snapshot_update:
            self.console.print(
                "[yellow]Some snapshots are missing or outdated. "
                "Re-run with --update-snapshots to record them.[/yellow]"
            )
