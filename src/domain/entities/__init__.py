from src.domain.entities.auto_fix import AutoFixMetrics, AutoFixResult, ErrorTypeStats
from src.domain.entities.check_run import Annotation, CheckRun
from src.domain.entities.check_summary import (
    CheckResult,
    CheckSummary,
    FailureDetail,
    FixSuggestion,
    ProgressUpdate,
)
from src.domain.entities.detected_environment import DetectedEnvironment
from src.domain.entities.resolved_command import ResolvedCommand, ResolveRequest
from src.domain.entities.verification_report import TaskOutcome, VerificationReport

__all__ = [
    "Annotation",
    "AutoFixMetrics",
    "AutoFixResult",
    "CheckResult",
    "CheckRun",
    "CheckSummary",
    "DetectedEnvironment",
    "ErrorTypeStats",
    "FailureDetail",
    "FixSuggestion",
    "ProgressUpdate",
    "ResolvedCommand",
    "ResolveRequest",
    "TaskOutcome",
    "VerificationReport",
]
