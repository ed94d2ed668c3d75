import re
import time
from pathlib import Path
from uuid import uuid4

from loguru import logger

from src.application.services.command_resolver import CommandResolver
from src.domain.entities.detected_environment import DetectedEnvironment
from src.domain.entities.resolved_command import ResolvedCommand, ResolveRequest
from src.domain.entities.verification_report import TaskOutcome, VerificationReport
from src.domain.ports.check_runner_port import CheckRunnerPort
from src.domain.ports.verification_port import LocalVerificationPort
from src.domain.value_objects.check_types import CheckSpec, CheckStatus
from src.domain.value_objects.toolchain import VerificationTask
from src.domain.value_objects.workflow_config import WorkflowConfig
from src.infrastructure.detection.toolchain_detector import ToolchainDetector

MAX_ERROR_LINES = 10

_TEST_FAILURE = re.compile(r"FAILED?\s+.*$", re.MULTILINE)
_ERROR_LINE = re.compile(r"error\s+", re.IGNORECASE)
_TS_DIAGNOSTIC = re.compile(r"TS\d+:.*$", re.MULTILINE)


def _is_noise(line: str) -> bool:
    """Console echoes, stack frames and code excerpts from test runners."""
    stripped = line.strip()
    return (
        "console.log" in line
        or "console.warn" in line
        or "console.error" in line
        or stripped.startswith("at ")
        or re.match(r"^\s*>?\s*\d+\s*\|", line) is not None
        or re.match(r"^error\s*\{", stripped) is not None
    )


def parse_errors(output: str, exit_code: int) -> list[str]:
    """Pull the interesting lines out of a failed command's output."""
    if exit_code == 0:
        return []

    errors = [line for line in _TEST_FAILURE.findall(output) if not _is_noise(line)]
    errors.extend(
        [
            line.strip()
            for line in output.splitlines()
            if _ERROR_LINE.search(line) and not _is_noise(line) and line.strip() not in errors
        ][:MAX_ERROR_LINES]
    )
    diagnostics = [d for d in _TS_DIAGNOSTIC.findall(output) if not any(d in e for e in errors)]
    errors.extend(diagnostics[:MAX_ERROR_LINES])

    if not errors:
        errors.append(f"Command failed with exit code {exit_code}")
    return errors


class VerificationRunner(LocalVerificationPort):
    """Runs the configured verification tasks locally, in task order."""

    def __init__(
        self,
        resolver: CommandResolver,
        runner: CheckRunnerPort,
        config: WorkflowConfig | None = None,
        detector: ToolchainDetector | None = None,
    ) -> None:
        self._resolver = resolver
        self._runner = runner
        self._config = config or WorkflowConfig()
        self._detector = detector or ToolchainDetector()

    async def resolve_tasks(
        self,
        repo_path: Path,
        tasks: list[VerificationTask] | None = None,
        env: DetectedEnvironment | None = None,
    ) -> list[ResolvedCommand]:
        env = env or self._detector.detect(repo_path, self._config)
        resolved = []
        for task in tasks if tasks is not None else self._config.enabled_tasks():
            request = ResolveRequest(
                task=task,
                language=env.primary_language,
                package_manager=env.package_manager,
                makefile_targets=env.makefile_targets,
                config=self._config,
                package_scripts=env.package_scripts,
            )
            resolved.append(await self._resolver.resolve(request))
        return resolved

    async def verify(self, repo_path: Path) -> VerificationReport:
        start = time.monotonic()
        outcomes: list[TaskOutcome] = []

        for resolved in await self.resolve_tasks(repo_path):
            if not resolved.found:
                if not resolved.optional:
                    logger.warning(
                        "Skipping '{}': no command found ({})",
                        resolved.task.value,
                        "; ".join(resolved.suggestions),
                    )
                outcomes.append(
                    TaskOutcome(task=resolved.task, resolved=resolved, status=CheckStatus.NOT_RUN)
                )
                continue

            outcome = await self._run(repo_path, resolved)
            outcomes.append(outcome)
            if outcome.status == CheckStatus.FAIL and self._config.stop_on_first_failure:
                logger.info(f"Stopping after failed task '{resolved.task.value}'")
                break

        report = VerificationReport(
            outcomes=outcomes,
            duration_ms=int((time.monotonic() - start) * 1000),
        )
        logger.info(
            f"Verification {'passed' if report.success else 'failed'} "
            f"({len(report.failed_tasks)} failed, {report.duration_ms}ms)"
        )
        return report

    async def _run(self, repo_path: Path, resolved: ResolvedCommand) -> TaskOutcome:
        spec = CheckSpec(
            id=uuid4(),
            name=resolved.task.value,
            task=resolved.task,
            command=resolved.command,
            cwd=str(repo_path),
            timeout_s=self._config.command_timeout_s,
        )
        result = await self._runner.run_check(spec, cwd=str(repo_path))
        return TaskOutcome(
            task=resolved.task,
            resolved=resolved,
            status=result.status,
            exit_code=result.exit_code,
            duration_ms=result.duration_ms,
            errors=parse_errors(result.output, result.exit_code),
        )
