import asyncio
from pathlib import Path

import typer
from rich.console import Console

from src.cli.formatters import format_resolved_commands
from src.cli.runner import create_verification_runner, load_config_or_exit
from src.cli.theme import theme
from src.domain.value_objects.toolchain import VerificationTask

console = Console()


def resolve_commands(
    path: Path = typer.Argument(Path("."), help="Repository root"),
    tasks: list[VerificationTask] | None = typer.Option(
        None, "--task", "-t", help="Task to resolve (repeatable, default: configured tasks)"
    ),
    config_path: Path | None = typer.Option(None, "--config", "-c", help="Workflow config (JSON)"),
) -> None:
    """Show which command each verification task would run, and why."""
    asyncio.run(_resolve(path, tasks or None, config_path))


async def _resolve(
    path: Path,
    tasks: list[VerificationTask] | None,
    config_path: Path | None,
) -> None:
    config = load_config_or_exit(console, config_path)
    runner = create_verification_runner(config)
    resolved = await runner.resolve_tasks(path, tasks)
    format_resolved_commands(console, resolved)

    missing = [r for r in resolved if not r.found and not r.optional]
    if missing:
        console.print(
            f"\n[{theme.ERROR}]No command for: {', '.join(r.task.value for r in missing)}[/]"
        )
        raise typer.Exit(1)
