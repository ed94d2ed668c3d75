import asyncio
import os
import re
import signal
from datetime import UTC, datetime
from pathlib import Path

from loguru import logger

from src.domain.ports.check_runner_port import CheckRunnerPort, CheckRunResult
from src.domain.value_objects.check_types import CheckSpec, CheckStatus

# Commands come from user config and Makefiles; refuse the obviously destructive ones.
BLOCKED_COMMAND_PATTERNS = [
    r"rm\s+-rf\s+/(?:\s|$)",
    r"rm\s+-rf\s+~",
    r"mkfs\.",
    r"dd\s+if=.*of=/dev/",
    r">\s*/dev/sd",
    r"(?:curl|wget)\b.*\|\s*(?:ba)?sh\b",
    r"git\s+push\s+.*--force\b",
]

# Exit code reported when a command never produced one (blocked, timed out, spawn error)
NO_EXIT_CODE = -1


def blocked_pattern(command: str) -> str | None:
    for pattern in BLOCKED_COMMAND_PATTERNS:
        if re.search(pattern, command, re.IGNORECASE):
            return pattern
    return None


class CommandCheckRunner(CheckRunnerPort):
    """Runs verification and fix commands through the shell.

    Each command gets its own process group so a timeout kills the whole
    tree (``npm test`` spawning jest workers, ``make`` spawning compilers).
    """

    async def run_check(
        self,
        check: CheckSpec,
        cwd: str,
    ) -> CheckRunResult:
        start = datetime.now(UTC)

        pattern = blocked_pattern(check.command)
        if pattern:
            logger.error("Command for '{}' blocked by pattern '{}'", check.name, pattern)
            return self._failure(check, start, f"Command blocked: matches '{pattern}'")

        env = dict(os.environ)
        env.update(check.env)
        work_dir = Path(check.cwd) if check.cwd else Path(cwd)

        logger.debug("Running '{}': {} (cwd={})", check.name, check.command, work_dir)
        try:
            proc = await asyncio.create_subprocess_shell(
                check.command,
                cwd=str(work_dir),
                env=env,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                start_new_session=True,
            )
        except OSError as e:
            logger.error("Could not start '{}': {}", check.name, e)
            return self._failure(check, start, str(e))

        try:
            stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=check.timeout_s)
        except TimeoutError:
            try:
                os.killpg(os.getpgid(proc.pid), signal.SIGKILL)
            except (ProcessLookupError, OSError):
                proc.kill()
            await proc.wait()
            logger.warning("'{}' timed out after {}s", check.name, check.timeout_s)
            return self._failure(
                check,
                start,
                f"Timeout after {check.timeout_s}s",
                duration_ms=check.timeout_s * 1000,
                timed_out=True,
            )

        duration_ms = int((datetime.now(UTC) - start).total_seconds() * 1000)
        exit_code = proc.returncode if proc.returncode is not None else NO_EXIT_CODE
        status = CheckStatus.PASS if exit_code == 0 else CheckStatus.FAIL
        logger.debug("'{}' finished with exit code {} in {}ms", check.name, exit_code, duration_ms)

        return CheckRunResult(
            check_id=check.id,
            status=status,
            exit_code=exit_code,
            stdout=stdout.decode(errors="replace"),
            stderr=stderr.decode(errors="replace"),
            duration_ms=duration_ms,
            timestamp=start,
        )

    def _failure(
        self,
        check: CheckSpec,
        start: datetime,
        message: str,
        duration_ms: int | None = None,
        timed_out: bool = False,
    ) -> CheckRunResult:
        if duration_ms is None:
            duration_ms = int((datetime.now(UTC) - start).total_seconds() * 1000)
        return CheckRunResult(
            check_id=check.id,
            status=CheckStatus.FAIL,
            exit_code=NO_EXIT_CODE,
            stdout="",
            stderr=message,
            duration_ms=duration_ms,
            timestamp=start,
            timed_out=timed_out,
        )
