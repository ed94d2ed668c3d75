from src.application.services.auto_fix_orchestrator import AutoFixOrchestrator
from src.application.services.check_poller import CheckPoller, PollOptions, PollState, advance
from src.application.services.command_resolver import CommandResolver
from src.application.services.verification_runner import VerificationRunner

__all__ = [
    "AutoFixOrchestrator",
    "CheckPoller",
    "CommandResolver",
    "PollOptions",
    "PollState",
    "VerificationRunner",
    "advance",
]
