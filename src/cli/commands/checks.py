import asyncio
from pathlib import Path

import typer
from rich.console import Console
from rich.markup import escape

from src.application.services.auto_fix_orchestrator import AutoFixOrchestrator
from src.application.services.check_poller import PollOptions
from src.cli.formatters import (
    format_auto_fix_result,
    format_check_result,
    format_check_summary,
    progress_printer,
)
from src.cli.runner import (
    create_auto_fixer,
    create_github_client,
    create_poller,
    create_verification_runner,
    load_config_or_exit,
)
from src.cli.theme import theme
from src.cli.utils import known_commands
from src.domain.entities.check_summary import CheckResult
from src.domain.errors import CIProviderError, GitCommandError
from src.domain.value_objects.check_enums import PollOutcome, PollStrategyType
from src.domain.value_objects.workflow_config import WorkflowConfig
from src.infrastructure.git.git_adapter import GitAdapter

console = Console()

EXIT_FAILED = 1
EXIT_TIMED_OUT = 3


def check_status(
    pr_number: int = typer.Argument(..., help="Pull request number"),
    path: Path = typer.Option(Path("."), "--repo", "-r", help="Repository root"),
    config_path: Path | None = typer.Option(None, "--config", "-c", help="Workflow config (JSON)"),
    wait: bool = typer.Option(False, "--wait", "-w", help="Poll until checks finish"),
    timeout: float | None = typer.Option(None, "--timeout", help="Polling timeout in seconds"),
    interval: float | None = typer.Option(None, "--interval", help="Poll interval in seconds"),
    fail_fast: bool | None = typer.Option(
        None, "--fail-fast/--no-fail-fast", help="Stop at the first failed check"
    ),
    retry_flaky: bool | None = typer.Option(
        None, "--retry-flaky/--no-retry-flaky", help="Give flapping checks extra cycles"
    ),
    exponential: bool = typer.Option(False, "--exponential", help="Back off between polls"),
    auto_fix: bool = typer.Option(False, "--auto-fix", help="Try deterministic fixes on failure"),
    dry_run: bool = typer.Option(False, "--dry-run", help="Report fixes without applying them"),
) -> None:
    """Show CI check status for a pull request, optionally waiting and auto-fixing."""
    config = load_config_or_exit(console, config_path)
    ci = config.ci.model_copy(
        update={
            key: value
            for key, value in {
                "timeout_s": timeout,
                "poll_interval_s": interval,
                "fail_fast": fail_fast,
                "retry_flaky": retry_flaky,
                "strategy": PollStrategyType.EXPONENTIAL if exponential else None,
            }.items()
            if value is not None
        }
    )
    config = config.model_copy(update={"ci": ci})

    try:
        exit_code = asyncio.run(_checks(pr_number, path, config, wait, auto_fix, dry_run))
    except (CIProviderError, GitCommandError, ValueError) as e:
        console.print(f"[{theme.ERROR_BOLD}]Error:[/] {escape(str(e))}")
        raise typer.Exit(2) from e
    if exit_code:
        raise typer.Exit(exit_code)


async def _checks(
    pr_number: int,
    path: Path,
    config: WorkflowConfig,
    wait: bool,
    auto_fix: bool,
    dry_run: bool,
) -> int:
    git = GitAdapter()
    repo_path = await git.repo_root(path)
    verifier = create_verification_runner(config)
    known = known_commands(await verifier.resolve_tasks(repo_path))

    async with await create_github_client(repo_path, git) as github:
        poller = create_poller(github, known)

        if not wait:
            summary = await poller.snapshot(pr_number)
            format_check_summary(console, summary)
            return EXIT_FAILED if summary.failed else 0

        options = PollOptions.from_config(config.ci, on_progress=progress_printer(console))
        result = await poller.wait_for_checks(pr_number, options)
        format_check_summary(console, result.summary)
        format_check_result(console, result)

        if result.outcome == PollOutcome.FAILED and auto_fix:
            fixer = create_auto_fixer(repo_path, git, github, config, verifier)
            await _auto_fix(fixer, result, pr_number, dry_run)

    if result.outcome == PollOutcome.TIMED_OUT:
        return EXIT_TIMED_OUT
    return 0 if result.success else EXIT_FAILED


async def _auto_fix(
    fixer: AutoFixOrchestrator,
    result: CheckResult,
    pr_number: int,
    dry_run: bool,
) -> None:
    fixable = [
        f
        for f in result.summary.failure_details
        if f.suggested_fix and f.suggested_fix.auto_fixable
    ]
    if not fixable:
        console.print(f"[{theme.DIM}]No auto-fixable failures.[/]")
        return
    for failure in fixable:
        fix_result = await fixer.attempt_fix(failure, pr_number, dry_run=dry_run or None)
        format_auto_fix_result(console, failure.check_name, fix_result)
