from datetime import datetime

from pydantic import BaseModel, Field, model_validator

from src.domain.entities.check_run import Annotation, CheckRun
from src.domain.value_objects.check_enums import (
    CheckBucket,
    ErrorType,
    ExecutionStrategy,
    OverallStatus,
    PollOutcome,
)


class FixSuggestion(BaseModel, frozen=True):
    command: str
    auto_fixable: bool
    execution_strategy: ExecutionStrategy
    confidence: float | None = None
    tool: str | None = None


class FailureDetail(BaseModel, frozen=True):
    check_name: str
    error_type: ErrorType
    summary: str
    affected_files: list[str] = Field(default_factory=list)
    annotations: list[Annotation] = Field(default_factory=list)
    suggested_fix: FixSuggestion | None = None
    url: str = ""


class CheckSummary(BaseModel, frozen=True):
    """Snapshot of every check run for one head SHA at one poll."""

    total: int
    passed: int
    failed: int
    pending: int
    skipped: int
    overall_status: OverallStatus
    failure_details: list[FailureDetail] = Field(default_factory=list)
    runs: list[CheckRun] = Field(default_factory=list)
    started_at: datetime
    completed_at: datetime | None = None
    duration: float | None = None

    @model_validator(mode="after")
    def _counts_add_up(self) -> "CheckSummary":
        if self.total != self.passed + self.failed + self.pending + self.skipped:
            raise ValueError(
                f"total={self.total} does not equal passed+failed+pending+skipped="
                f"{self.passed + self.failed + self.pending + self.skipped}"
            )
        return self

    def names_in(self, bucket: CheckBucket) -> set[str]:
        return {run.name for run in self.runs if run.bucket == bucket}

    @property
    def check_names(self) -> set[str]:
        return {run.name for run in self.runs}


class ProgressUpdate(BaseModel, frozen=True):
    timestamp: datetime
    elapsed: float
    total: int
    passed: int
    failed: int
    pending: int
    new_failures: list[str] = Field(default_factory=list)
    new_passes: list[str] = Field(default_factory=list)


class CheckResult(BaseModel, frozen=True):
    outcome: PollOutcome
    summary: CheckSummary
    duration: float
    retries_used: int = 0
    reason: str | None = None

    @property
    def success(self) -> bool:
        return self.outcome == PollOutcome.SUCCEEDED

    @property
    def timed_out(self) -> bool:
        return self.outcome == PollOutcome.TIMED_OUT
