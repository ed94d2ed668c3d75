from abc import ABC, abstractmethod
from datetime import datetime
from uuid import UUID

from pydantic import BaseModel

from src.domain.value_objects.check_types import CheckSpec, CheckStatus


class CheckRunResult(BaseModel):
    """Result of running a local command."""

    check_id: UUID
    status: CheckStatus
    exit_code: int
    stdout: str
    stderr: str
    duration_ms: int
    timestamp: datetime
    timed_out: bool = False

    @property
    def output(self) -> str:
        return f"{self.stdout}\n{self.stderr}".strip()


class CheckRunnerPort(ABC):
    """Port for running local shell commands."""

    @abstractmethod
    async def run_check(
        self,
        check: CheckSpec,
        cwd: str,
    ) -> CheckRunResult:
        """Run a single command and return its result."""
