"""CLI theme configuration - all colors in one place.

Colors use Rich markup syntax (e.g., "green", "bold red", "dim italic").
"""

from src.domain.value_objects.check_enums import CheckBucket, OverallStatus, PollOutcome
from src.domain.value_objects.toolchain import CommandSource


class Theme:
    """Terminal color theme for the mergepilot CLI."""

    # -------------------------------------------------------------------------
    # Status colors
    # -------------------------------------------------------------------------
    SUCCESS = "green"
    SUCCESS_BOLD = "bold green"
    ERROR = "red"
    ERROR_BOLD = "bold red"
    WARNING = "yellow"
    WARNING_BOLD = "bold yellow"
    INFO = "cyan"
    INFO_BOLD = "bold cyan"

    # -------------------------------------------------------------------------
    # Text styles
    # -------------------------------------------------------------------------
    HEADER = "bold"
    DIM = "grey62"
    TEXT = "white"

    # -------------------------------------------------------------------------
    # Table columns
    # -------------------------------------------------------------------------
    TABLE_ID = "cyan"
    TABLE_LABEL = "grey62"
    TABLE_VALUE = "bold"
    TABLE_SECONDARY = "grey62"

    # -------------------------------------------------------------------------
    # Check buckets
    # -------------------------------------------------------------------------
    CHECK_PASSED = "green"
    CHECK_FAILED = "bold red"
    CHECK_PENDING = "yellow"
    CHECK_SKIPPED = "grey62"

    # -------------------------------------------------------------------------
    # Command sources
    # -------------------------------------------------------------------------
    SOURCE_CONFIG = "magenta"
    SOURCE_MAKEFILE = "cyan"
    SOURCE_PACKAGE_MANAGER = "blue"
    SOURCE_NATIVE = "white"
    SOURCE_NOT_FOUND = "red"

    # -------------------------------------------------------------------------
    # Panel borders
    # -------------------------------------------------------------------------
    BORDER_INFO = "blue"
    BORDER_ERROR = "red"
    BORDER_WARNING = "yellow"

    def bucket(self, bucket: CheckBucket) -> str:
        return {
            CheckBucket.PASSED: self.CHECK_PASSED,
            CheckBucket.FAILED: self.CHECK_FAILED,
            CheckBucket.PENDING: self.CHECK_PENDING,
            CheckBucket.SKIPPED: self.CHECK_SKIPPED,
        }[bucket]

    def overall(self, status: OverallStatus | PollOutcome) -> str:
        if status in (OverallStatus.SUCCESS, PollOutcome.SUCCEEDED):
            return self.SUCCESS_BOLD
        if status in (OverallStatus.FAILURE, PollOutcome.FAILED):
            return self.ERROR_BOLD
        return self.WARNING_BOLD

    def source(self, source: CommandSource) -> str:
        return {
            CommandSource.CONFIG: self.SOURCE_CONFIG,
            CommandSource.MAKEFILE: self.SOURCE_MAKEFILE,
            CommandSource.PACKAGE_MANAGER: self.SOURCE_PACKAGE_MANAGER,
            CommandSource.NATIVE: self.SOURCE_NATIVE,
            CommandSource.NOT_FOUND: self.SOURCE_NOT_FOUND,
        }[source]


# Default theme instance - import this in other modules
theme = Theme()
