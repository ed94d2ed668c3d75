from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from src.cli.theme import theme
from src.domain.entities.auto_fix import AutoFixResult
from src.domain.entities.check_summary import CheckResult, FailureDetail
from src.domain.entities.detected_environment import DetectedEnvironment
from src.domain.entities.resolved_command import ResolvedCommand
from src.domain.entities.verification_report import VerificationReport
from src.domain.value_objects.check_types import CheckStatus


def format_environment(console: Console, env: DetectedEnvironment) -> None:
    table = Table(title="Detected Toolchain", show_header=False)
    table.add_column("Property", style=theme.TABLE_LABEL)
    table.add_column("Value", style=theme.TABLE_VALUE)

    table.add_row("Language", f"{env.primary_language.value} ({env.confidence}%)")
    table.add_row("Package manager", env.package_manager.value)
    if env.additional_languages:
        table.add_row("Also", ", ".join(lang.value for lang in env.additional_languages))
    table.add_row("Lock file", env.lock_file.name if env.lock_file else "-")
    table.add_row("Makefile targets", ", ".join(env.makefile_targets) or "-")
    table.add_row("Workspace root", str(env.workspace_root) if env.workspace_root else "-")

    console.print(table)


def format_resolved_commands(console: Console, resolved: list[ResolvedCommand]) -> None:
    table = Table(title="Resolved Commands")
    table.add_column("Task", style=theme.TABLE_ID)
    table.add_column("Source")
    table.add_column("Command")

    for item in resolved:
        if item.found:
            command = escape(item.command)
        elif item.optional:
            command = f"[{theme.DIM}](optional, skipped)[/]"
        else:
            command = f"[{theme.ERROR}]not found[/]"
        table.add_row(
            item.task.value,
            f"[{theme.source(item.source)}]{item.source.value}[/]",
            command,
        )

    console.print(table)

    for item in resolved:
        if item.suggestions:
            console.print(f"\n[{theme.WARNING_BOLD}]{item.task.value}:[/]")
            for suggestion in item.suggestions:
                console.print(f"  • {escape(suggestion)}")


def format_verification_report(console: Console, report: VerificationReport) -> None:
    table = Table(title="Verification", show_lines=True)
    table.add_column("Task", style=theme.TABLE_ID)
    table.add_column("Status")
    table.add_column("Command", style=theme.TABLE_SECONDARY)
    table.add_column("Duration")

    for outcome in report.outcomes:
        if outcome.status == CheckStatus.PASS:
            status = f"[{theme.SUCCESS}]PASS[/]"
        elif outcome.status == CheckStatus.FAIL:
            status = f"[{theme.ERROR}]FAIL[/]"
        else:
            status = f"[{theme.DIM}]SKIP[/]"
        table.add_row(
            outcome.task.value,
            status,
            escape(outcome.resolved.command) or "-",
            f"{outcome.duration_ms}ms",
        )

    console.print(table)

    for outcome in report.outcomes:
        if outcome.errors:
            console.print(f"\n[{theme.ERROR_BOLD}]{outcome.task.value} errors:[/]")
            for error in outcome.errors:
                console.print(f"  {escape(error)}")


def format_failure(console: Console, failure: FailureDetail) -> None:
    lines = [
        f"[bold]Type:[/] {failure.error_type.value}",
        f"[bold]Summary:[/] {escape(failure.summary)}",
    ]
    if failure.affected_files:
        lines.append(f"[bold]Files:[/] {', '.join(failure.affected_files[:10])}")
    if failure.suggested_fix:
        fix = failure.suggested_fix
        marker = "auto-fixable" if fix.auto_fixable else fix.execution_strategy.value
        lines.append(f"[bold]Fix ({marker}):[/] [cyan]{escape(fix.command)}[/]")
    if failure.url:
        lines.append(f"[{theme.DIM}]{failure.url}[/]")

    console.print(
        Panel("\n".join(lines), title=failure.check_name, border_style=theme.BORDER_ERROR)
    )


def format_check_result(console: Console, result: CheckResult) -> None:
    style = theme.overall(result.outcome)
    console.print(
        f"\n[{style}]Checks {result.outcome.value}[/] after {result.duration:.0f}s"
        + (f" ({escape(result.reason)})" if result.reason else "")
    )
    if result.retries_used:
        console.print(f"[{theme.DIM}]Flaky grace cycles used: {result.retries_used}[/]")
    for failure in result.summary.failure_details:
        format_failure(console, failure)
    if result.timed_out:
        console.print(f"[{theme.WARNING}]Still pending; re-run with --wait to resume polling.[/]")


def format_auto_fix_result(console: Console, check_name: str, result: AutoFixResult) -> None:
    if result.success and result.pr_number is not None:
        console.print(
            f"[{theme.SUCCESS_BOLD}]Fixed {check_name}[/] "
            f"({result.changed_lines} lines) in PR #{result.pr_number}"
        )
        return
    if result.success:
        command = escape(result.command or "")
        console.print(f"[{theme.INFO}]Would run for {check_name}:[/] {command}")
        return

    reason = result.reason.value if result.reason else "unknown"
    console.print(f"[{theme.WARNING}]Auto-fix skipped for {check_name}: {reason}[/]")
    if result.rolled_back:
        console.print(f"[{theme.DIM}]  changes rolled back[/]")
    for error in result.verification_errors[:5]:
        console.print(f"  [{theme.ERROR}]{escape(error)}[/]")
    if result.error:
        console.print(f"  [{theme.ERROR}]{escape(result.error)}[/]")
