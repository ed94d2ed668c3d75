from datetime import UTC, datetime

from pydantic import BaseModel, Field

from src.domain.value_objects.check_enums import AutoFixReason, ErrorType


class AutoFixResult(BaseModel, frozen=True):
    success: bool
    error_type: ErrorType
    attempts: int = 0
    reason: AutoFixReason | None = None
    pr_number: int | None = None
    changed_lines: int | None = None
    verification_failed: bool = False
    verification_errors: list[str] = Field(default_factory=list)
    rolled_back: bool = False
    command: str | None = None
    error: str | None = None


class ErrorTypeStats(BaseModel):
    attempts: int = 0
    successes: int = 0
    failures: int = 0


class AutoFixMetrics(BaseModel):
    total_attempts: int = 0
    successful_fixes: int = 0
    failed_fixes: int = 0
    rollback_count: int = 0
    verification_failures: int = 0
    dry_run_attempts: int = 0
    by_error_type: dict[ErrorType, ErrorTypeStats] = Field(default_factory=dict)
    by_reason: dict[AutoFixReason, int] = Field(default_factory=dict)
    total_fix_duration_s: float = 0.0
    started_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    last_updated: datetime = Field(default_factory=lambda: datetime.now(UTC))

    @property
    def average_fix_duration_s(self) -> float | None:
        if self.total_attempts == 0:
            return None
        return self.total_fix_duration_s / self.total_attempts

    def record(self, result: AutoFixResult, duration_s: float, dry_run: bool) -> None:
        self.last_updated = datetime.now(UTC)
        self.total_fix_duration_s += duration_s

        if dry_run:
            self.dry_run_attempts += 1
            return

        self.total_attempts += 1
        if result.success:
            self.successful_fixes += 1
        else:
            self.failed_fixes += 1
        if result.rolled_back:
            self.rollback_count += 1
        if result.verification_failed:
            self.verification_failures += 1

        stats = self.by_error_type.setdefault(result.error_type, ErrorTypeStats())
        stats.attempts += 1
        if result.success:
            stats.successes += 1
        else:
            stats.failures += 1

        if result.reason:
            self.by_reason[result.reason] = self.by_reason.get(result.reason, 0) + 1
