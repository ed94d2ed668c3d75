from datetime import datetime

from pydantic import BaseModel, Field

from src.domain.value_objects.check_enums import (
    PASSING_CONCLUSIONS,
    CheckBucket,
    CheckConclusion,
    CheckRunStatus,
)


class Annotation(BaseModel, frozen=True):
    path: str = ""
    start_line: int = 0
    end_line: int = 0
    annotation_level: str = "failure"
    message: str = ""
    title: str = ""
    raw_details: str | None = None


class CheckRun(BaseModel, frozen=True):
    """One named CI task's state for a specific commit."""

    id: int = 0
    name: str
    status: CheckRunStatus
    conclusion: CheckConclusion | None = None
    title: str = ""
    summary: str = ""
    text: str = ""
    annotations_count: int = 0
    url: str = ""
    started_at: datetime | None = None
    completed_at: datetime | None = None
    annotations: list[Annotation] = Field(default_factory=list)

    @property
    def bucket(self) -> CheckBucket:
        # A completed run without a conclusion is still settling on the provider side.
        if self.status != CheckRunStatus.COMPLETED or self.conclusion is None:
            return CheckBucket.PENDING
        if self.conclusion in PASSING_CONCLUSIONS:
            return CheckBucket.PASSED
        if self.conclusion == CheckConclusion.SKIPPED:
            return CheckBucket.SKIPPED
        return CheckBucket.FAILED
