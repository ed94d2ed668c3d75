from src.domain.value_objects.check_enums import (
    FAILING_CONCLUSIONS,
    PASSING_CONCLUSIONS,
    AutoFixReason,
    CheckBucket,
    CheckConclusion,
    CheckRunStatus,
    ErrorType,
    ExecutionStrategy,
    OverallStatus,
    PollOutcome,
    PollStrategyType,
)
from src.domain.value_objects.check_types import CheckSpec, CheckStatus
from src.domain.value_objects.toolchain import (
    DEFAULT_PACKAGE_MANAGER,
    DEFAULT_VERIFICATION_TASKS,
    CommandSource,
    Language,
    PackageManager,
    VerificationTask,
)
from src.domain.value_objects.workflow_config import AutoFixConfig, CIConfig, WorkflowConfig

__all__ = [
    "AutoFixConfig",
    "AutoFixReason",
    "CheckBucket",
    "CheckConclusion",
    "CheckRunStatus",
    "CheckSpec",
    "CheckStatus",
    "CIConfig",
    "CommandSource",
    "DEFAULT_PACKAGE_MANAGER",
    "DEFAULT_VERIFICATION_TASKS",
    "ErrorType",
    "ExecutionStrategy",
    "FAILING_CONCLUSIONS",
    "Language",
    "OverallStatus",
    "PackageManager",
    "PASSING_CONCLUSIONS",
    "PollOutcome",
    "PollStrategyType",
    "VerificationTask",
    "WorkflowConfig",
]
