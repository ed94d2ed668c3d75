"""Exception types raised across layers.

Expected pipeline outcomes (a task with no command, a CI run that failed
or timed out, an aborted auto-fix) are reported as result values, not
exceptions. Only infrastructure failures are raised.
"""


class MergepilotError(Exception):
    """Base class for mergepilot errors."""


class DetectionError(MergepilotError):
    """Filesystem could not be read during toolchain detection.

    The detector logs it and falls back to defaults.
    """


class CIProviderError(MergepilotError):
    """The CI provider API could not be reached or rejected a request.

    Distinct from a check that concluded with a failure, which is data.
    """

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class GitCommandError(MergepilotError):
    """A git subprocess exited with a non-zero status."""

    def __init__(self, args: list[str], stderr: str) -> None:
        super().__init__(f"git {' '.join(args)} failed: {stderr}")
        self.git_args = args
        self.stderr = stderr
