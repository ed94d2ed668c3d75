from src.domain.ports.check_runner_port import CheckRunnerPort, CheckRunResult
from src.domain.ports.checks_port import ChecksPort
from src.domain.ports.git_port import GitPort
from src.domain.ports.pull_request_port import PullRequestInfo, PullRequestPort
from src.domain.ports.tool_probe_port import ToolProbePort
from src.domain.ports.verification_port import LocalVerificationPort

__all__ = [
    # Check runner port
    "CheckRunnerPort",
    "CheckRunResult",
    # CI provider ports
    "ChecksPort",
    "PullRequestInfo",
    "PullRequestPort",
    # Git port
    "GitPort",
    # Local environment ports
    "LocalVerificationPort",
    "ToolProbePort",
]
