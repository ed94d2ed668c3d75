from pydantic import BaseModel, Field

from src.domain.entities.resolved_command import ResolvedCommand
from src.domain.value_objects.check_types import CheckStatus
from src.domain.value_objects.toolchain import VerificationTask


class TaskOutcome(BaseModel, frozen=True):
    task: VerificationTask
    resolved: ResolvedCommand
    status: CheckStatus
    exit_code: int | None = None
    duration_ms: int = 0
    errors: list[str] = Field(default_factory=list)

    @property
    def skipped(self) -> bool:
        return self.status == CheckStatus.NOT_RUN


class VerificationReport(BaseModel, frozen=True):
    outcomes: list[TaskOutcome] = Field(default_factory=list)
    duration_ms: int = 0

    @property
    def success(self) -> bool:
        return all(o.status != CheckStatus.FAIL for o in self.outcomes)

    @property
    def failed_tasks(self) -> list[VerificationTask]:
        return [o.task for o in self.outcomes if o.status == CheckStatus.FAIL]

    @property
    def errors(self) -> list[str]:
        return [error for o in self.outcomes for error in o.errors]
