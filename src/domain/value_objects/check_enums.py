from enum import Enum


class CheckRunStatus(str, Enum):
    QUEUED = "queued"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


class CheckConclusion(str, Enum):
    SUCCESS = "success"
    FAILURE = "failure"
    NEUTRAL = "neutral"
    CANCELLED = "cancelled"
    SKIPPED = "skipped"
    TIMED_OUT = "timed_out"
    ACTION_REQUIRED = "action_required"


PASSING_CONCLUSIONS = frozenset({CheckConclusion.SUCCESS, CheckConclusion.NEUTRAL})

FAILING_CONCLUSIONS = frozenset(
    {
        CheckConclusion.FAILURE,
        CheckConclusion.CANCELLED,
        CheckConclusion.TIMED_OUT,
        CheckConclusion.ACTION_REQUIRED,
    }
)


class CheckBucket(str, Enum):
    """Summary bucket a single check run is counted in."""

    PASSED = "passed"
    FAILED = "failed"
    PENDING = "pending"
    SKIPPED = "skipped"


class OverallStatus(str, Enum):
    SUCCESS = "success"
    FAILURE = "failure"
    PENDING = "pending"


class PollOutcome(str, Enum):
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    TIMED_OUT = "timed_out"


class PollStrategyType(str, Enum):
    FIXED = "fixed"
    EXPONENTIAL = "exponential"


class ErrorType(str, Enum):
    TEST_FAILURE = "test_failure"
    LINTING_ERROR = "linting_error"
    TYPE_ERROR = "type_error"
    SECURITY_ISSUE = "security_issue"
    BUILD_ERROR = "build_error"
    FORMAT_ERROR = "format_error"
    UNKNOWN = "unknown"


class ExecutionStrategy(str, Enum):
    DETERMINISTIC = "deterministic"
    MANUAL = "manual"


class AutoFixReason(str, Enum):
    DISABLED = "disabled"
    NOT_AUTO_FIXABLE = "not_auto_fixable"
    MAX_ATTEMPTS_REACHED = "max_attempts_reached"
    DRY_RUN = "dry_run"
    DIRTY_WORKING_TREE = "dirty_working_tree"
    NO_CHANGES = "no_changes"
    TOO_MANY_CHANGES = "too_many_changes"
    VERIFICATION_FAILED = "verification_failed"
    EXECUTION_FAILED = "execution_failed"
