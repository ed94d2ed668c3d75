"""Wiring of ports to adapters for CLI commands."""

from pathlib import Path

import typer
from loguru import logger
from rich.console import Console
from rich.markup import escape

from src.application.services.auto_fix_orchestrator import AutoFixOrchestrator
from src.application.services.check_poller import CheckPoller
from src.application.services.command_resolver import CommandResolver
from src.application.services.verification_runner import VerificationRunner
from src.cli.theme import theme
from src.cli.utils import load_workflow_config
from src.domain.value_objects.toolchain import VerificationTask
from src.domain.value_objects.workflow_config import WorkflowConfig
from src.infrastructure.checks.command_check_runner import CommandCheckRunner
from src.infrastructure.git.git_adapter import GitAdapter
from src.infrastructure.github.github_client import GitHubClient, token_from_env
from src.infrastructure.probe.path_tool_probe import PathToolProbe


def load_config_or_exit(console: Console, path: Path | None) -> WorkflowConfig:
    try:
        return load_workflow_config(path)
    except ValueError as e:
        console.print(f"[{theme.ERROR_BOLD}]{escape(str(e))}[/]")
        raise typer.Exit(2) from e


def create_resolver() -> CommandResolver:
    return CommandResolver(PathToolProbe())


def create_verification_runner(config: WorkflowConfig) -> VerificationRunner:
    return VerificationRunner(create_resolver(), CommandCheckRunner(), config=config)


async def create_github_client(
    repo_path: Path,
    git: GitAdapter,
    remote: str = "origin",
) -> GitHubClient:
    url = await git.remote_url(repo_path, remote)
    token = token_from_env()
    if not token:
        logger.warning("Neither GITHUB_TOKEN nor GH_TOKEN is set, using anonymous API access")
    return GitHubClient.from_remote_url(url, token=token)


def create_poller(
    github: GitHubClient,
    known: dict[VerificationTask, str] | None = None,
) -> CheckPoller:
    return CheckPoller(github, github, known_commands=known)


def create_auto_fixer(
    repo_path: Path,
    git: GitAdapter,
    github: GitHubClient,
    config: WorkflowConfig,
    verifier: VerificationRunner,
) -> AutoFixOrchestrator:
    return AutoFixOrchestrator(
        git=git,
        pull_requests=github,
        runner=CommandCheckRunner(),
        verifier=verifier,
        repo_path=repo_path,
        config=config.auto_fix,
    )
