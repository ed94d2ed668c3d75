from collections.abc import Callable

from rich.console import Console
from rich.table import Table

from src.cli.theme import theme
from src.domain.entities.check_summary import CheckSummary, ProgressUpdate


def format_progress(console: Console, update: ProgressUpdate) -> None:
    line = (
        f"[{theme.DIM}]{update.elapsed:6.0f}s[/] "
        f"[{theme.CHECK_PASSED}]{update.passed} passed[/] "
        f"[{theme.CHECK_FAILED}]{update.failed} failed[/] "
        f"[{theme.CHECK_PENDING}]{update.pending} pending[/] "
        f"[{theme.DIM}]of {update.total}[/]"
    )
    console.print(line)
    for name in update.new_passes:
        console.print(f"  [{theme.SUCCESS}]✓ {name}[/]")
    for name in update.new_failures:
        console.print(f"  [{theme.ERROR}]✗ {name}[/]")


def progress_printer(console: Console) -> Callable[[ProgressUpdate], None]:
    def on_progress(update: ProgressUpdate) -> None:
        format_progress(console, update)

    return on_progress


def format_check_summary(console: Console, summary: CheckSummary) -> None:
    table = Table(title="CI Checks", show_lines=False)
    table.add_column("Check", style=theme.TABLE_ID)
    table.add_column("Status")
    table.add_column("Details", style=theme.TABLE_SECONDARY)

    for run in sorted(summary.runs, key=lambda r: r.name):
        bucket = run.bucket
        detail = run.conclusion.value if run.conclusion else run.status.value
        table.add_row(run.name, f"[{theme.bucket(bucket)}]{bucket.value.upper()}[/]", detail)

    console.print(table)
    console.print(
        f"[{theme.overall(summary.overall_status)}]{summary.overall_status.value.upper()}[/] "
        f"{summary.passed}/{summary.total} passed, {summary.failed} failed, "
        f"{summary.pending} pending, {summary.skipped} skipped"
    )
