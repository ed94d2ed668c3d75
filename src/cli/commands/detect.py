from pathlib import Path

import typer
from rich.console import Console

from src.cli.formatters import format_environment
from src.cli.runner import load_config_or_exit
from src.infrastructure.detection.toolchain_detector import ToolchainDetector

console = Console()


def detect_toolchain(
    path: Path = typer.Argument(Path("."), help="Repository root"),
    config_path: Path | None = typer.Option(None, "--config", "-c", help="Workflow config (JSON)"),
) -> None:
    """Show the detected language, package manager and Makefile targets."""
    config = load_config_or_exit(console, config_path)
    env = ToolchainDetector().detect(path, config)
    format_environment(console, env)
