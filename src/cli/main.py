import sys
from datetime import datetime
from pathlib import Path

import typer
from loguru import logger

from src.cli.commands import checks, detect, resolve, verify


def get_log_dir() -> Path:
    return Path.home() / ".mergepilot" / "logs"


def setup_logging(verbose: bool = False) -> Path:
    """Configure loguru logging and return the log file path."""
    logger.remove()

    log_file = get_log_dir() / f"mergepilot-{datetime.now():%Y%m%d-%H%M%S}.log"
    logger.add(
        log_file,
        format=(
            "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | {name}:{function}:{line} - {message}"
        ),
        level="DEBUG",
        rotation="10 MB",
        retention=10,
        encoding="utf-8",
    )

    if verbose:
        logger.add(
            sys.stderr,
            format="{time:HH:mm:ss} | {level: <8} | {message}",
            level="DEBUG",
        )
    return log_file


app = typer.Typer(
    name="mergepilot",
    help="mergepilot - resolve verification commands, watch CI checks, auto-fix the easy failures",
    no_args_is_help=True,
)

app.command(name="detect")(detect.detect_toolchain)
app.command(name="resolve")(resolve.resolve_commands)
app.command(name="verify")(verify.verify)
app.command(name="checks")(checks.check_status)


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output", is_eager=True),
) -> None:
    """mergepilot - from feature branch to green checks."""
    setup_logging(verbose=verbose)


if __name__ == "__main__":
    app()
