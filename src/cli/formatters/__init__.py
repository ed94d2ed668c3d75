from src.cli.formatters.progress_formatter import (
    format_check_summary,
    format_progress,
    progress_printer,
)
from src.cli.formatters.result_formatter import (
    format_auto_fix_result,
    format_check_result,
    format_environment,
    format_failure,
    format_resolved_commands,
    format_verification_report,
)

__all__ = [
    "format_auto_fix_result",
    "format_check_result",
    "format_check_summary",
    "format_environment",
    "format_failure",
    "format_progress",
    "format_resolved_commands",
    "format_verification_report",
    "progress_printer",
]
