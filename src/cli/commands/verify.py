import asyncio
from pathlib import Path

import typer
from rich.console import Console

from src.cli.formatters import format_verification_report
from src.cli.runner import create_verification_runner, load_config_or_exit
from src.cli.theme import theme

console = Console()


def verify(
    path: Path = typer.Argument(Path("."), help="Repository root"),
    config_path: Path | None = typer.Option(None, "--config", "-c", help="Workflow config (JSON)"),
    stop_on_failure: bool = typer.Option(
        False, "--stop-on-failure", help="Stop after the first failing task"
    ),
) -> None:
    """Run lint, typecheck, test and build locally, like CI would."""
    asyncio.run(_verify(path, config_path, stop_on_failure))


async def _verify(path: Path, config_path: Path | None, stop_on_failure: bool) -> None:
    config = load_config_or_exit(console, config_path)
    if stop_on_failure:
        config = config.model_copy(update={"stop_on_first_failure": True})

    report = await create_verification_runner(config).verify(path)
    format_verification_report(console, report)

    if report.success:
        console.print(f"\n[{theme.SUCCESS_BOLD}]Verification passed[/]")
        return
    console.print(f"\n[{theme.ERROR_BOLD}]Verification failed[/]")
    raise typer.Exit(1)
