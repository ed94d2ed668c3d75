import asyncio
from datetime import UTC, datetime
from pathlib import Path
from unittest.mock import AsyncMock
from uuid import uuid4

import pytest

from src.application.services.auto_fix_orchestrator import AutoFixOrchestrator
from src.domain.entities.check_summary import FailureDetail, FixSuggestion
from src.domain.entities.resolved_command import ResolvedCommand
from src.domain.entities.verification_report import TaskOutcome, VerificationReport
from src.domain.errors import CIProviderError, GitCommandError
from src.domain.ports.check_runner_port import CheckRunResult
from src.domain.ports.pull_request_port import PullRequestInfo
from src.domain.value_objects.check_enums import AutoFixReason, ErrorType, ExecutionStrategy
from src.domain.value_objects.check_types import CheckStatus
from src.domain.value_objects.toolchain import CommandSource, Language, VerificationTask
from src.domain.value_objects.workflow_config import AutoFixConfig

REPO = Path("/work/widgets")


def format_failure(auto_fixable: bool = True) -> FailureDetail:
    return FailureDetail(
        check_name="format",
        error_type=ErrorType.FORMAT_ERROR,
        summary="2 files would be reformatted",
        affected_files=["src/app.py"],
        suggested_fix=FixSuggestion(
            command="ruff format .",
            auto_fixable=auto_fixable,
            execution_strategy=(
                ExecutionStrategy.DETERMINISTIC if auto_fixable else ExecutionStrategy.MANUAL
            ),
            confidence=0.95,
        ),
    )


def run_result(exit_code: int = 0, timed_out: bool = False) -> CheckRunResult:
    return CheckRunResult(
        check_id=uuid4(),
        status=CheckStatus.PASS if exit_code == 0 else CheckStatus.FAIL,
        exit_code=exit_code,
        stdout="",
        stderr="Timeout after 120s" if timed_out else "",
        duration_ms=10,
        timestamp=datetime.now(UTC),
        timed_out=timed_out,
    )


@pytest.fixture
def git() -> AsyncMock:
    mock = AsyncMock()
    mock.status.return_value = ""
    mock.current_branch.return_value = "feature"
    mock.diff_numstat.return_value = [(3, 1, "src/app.py")]
    mock.untracked_files.return_value = []
    return mock


@pytest.fixture
def pull_requests() -> AsyncMock:
    mock = AsyncMock()
    mock.get_pull_request.return_value = PullRequestInfo(
        number=42, head_ref="feature", head_sha="abc123", base_ref="main"
    )
    mock.create_pull_request.return_value = PullRequestInfo(
        number=43, head_ref="feature-autofix-1", head_sha="def456", base_ref="feature"
    )
    return mock


@pytest.fixture
def runner() -> AsyncMock:
    mock = AsyncMock()
    mock.run_check.return_value = run_result()
    return mock


@pytest.fixture
def verifier() -> AsyncMock:
    mock = AsyncMock()
    mock.verify.return_value = VerificationReport()
    return mock


def make_orchestrator(
    git: AsyncMock,
    pull_requests: AsyncMock,
    runner: AsyncMock,
    verifier: AsyncMock,
    **config: object,
) -> AutoFixOrchestrator:
    return AutoFixOrchestrator(
        git,
        pull_requests,
        runner,
        verifier,
        REPO,
        config=AutoFixConfig(**config),
    )


class TestRejections:
    async def test_disabled(self, git, pull_requests, runner, verifier) -> None:
        orchestrator = make_orchestrator(git, pull_requests, runner, verifier, enabled=False)

        result = await orchestrator.attempt_fix(format_failure(), 42)

        assert result.success is False
        assert result.reason == AutoFixReason.DISABLED
        runner.run_check.assert_not_awaited()

    async def test_not_auto_fixable(self, git, pull_requests, runner, verifier) -> None:
        orchestrator = make_orchestrator(git, pull_requests, runner, verifier)

        result = await orchestrator.attempt_fix(format_failure(auto_fixable=False), 42)

        assert result.reason == AutoFixReason.NOT_AUTO_FIXABLE
        git.status.assert_not_awaited()

    async def test_missing_suggestion(self, git, pull_requests, runner, verifier) -> None:
        failure = format_failure().model_copy(update={"suggested_fix": None})
        orchestrator = make_orchestrator(git, pull_requests, runner, verifier)

        result = await orchestrator.attempt_fix(failure, 42)

        assert result.reason == AutoFixReason.NOT_AUTO_FIXABLE

    async def test_attempt_limit(self, git, pull_requests, runner, verifier) -> None:
        orchestrator = make_orchestrator(git, pull_requests, runner, verifier, max_attempts=1)

        first = await orchestrator.attempt_fix(format_failure(), 42)
        second = await orchestrator.attempt_fix(format_failure(), 42)

        assert first.success is True
        assert second.success is False
        assert second.reason == AutoFixReason.MAX_ATTEMPTS_REACHED
        assert second.attempts == 1
        assert runner.run_check.await_count == 1
        assert orchestrator.attempts_for(ErrorType.FORMAT_ERROR, "format") == 1

    async def test_reset_clears_attempts(self, git, pull_requests, runner, verifier) -> None:
        orchestrator = make_orchestrator(git, pull_requests, runner, verifier, max_attempts=1)
        await orchestrator.attempt_fix(format_failure(), 42)

        orchestrator.reset()

        assert orchestrator.attempts_for(ErrorType.FORMAT_ERROR, "format") == 0
        assert orchestrator.metrics.total_attempts == 0
        assert (await orchestrator.attempt_fix(format_failure(), 42)).success is True

    async def test_dirty_working_tree(self, git, pull_requests, runner, verifier) -> None:
        git.status.return_value = " M src/app.py"
        orchestrator = make_orchestrator(git, pull_requests, runner, verifier)

        result = await orchestrator.attempt_fix(format_failure(), 42)

        assert result.reason == AutoFixReason.DIRTY_WORKING_TREE
        runner.run_check.assert_not_awaited()
        git.reset_hard.assert_not_awaited()


class TestDryRun:
    async def test_dry_run_touches_nothing(self, git, pull_requests, runner, verifier) -> None:
        orchestrator = make_orchestrator(git, pull_requests, runner, verifier, dry_run=True)

        result = await orchestrator.attempt_fix(format_failure(), 42)

        assert result.success is True
        assert result.reason == AutoFixReason.DRY_RUN
        assert result.command == "ruff format ."
        assert git.method_calls == []
        runner.run_check.assert_not_awaited()
        assert orchestrator.attempts_for(ErrorType.FORMAT_ERROR, "format") == 0
        assert orchestrator.metrics.dry_run_attempts == 1
        assert orchestrator.metrics.total_attempts == 0

    async def test_call_overrides_config(self, git, pull_requests, runner, verifier) -> None:
        orchestrator = make_orchestrator(git, pull_requests, runner, verifier)

        result = await orchestrator.attempt_fix(format_failure(), 42, dry_run=True)

        assert result.reason == AutoFixReason.DRY_RUN
        runner.run_check.assert_not_awaited()


class TestSuccessfulFix:
    async def test_opens_fix_pr_against_pr_branch(
        self,
        git,
        pull_requests,
        runner,
        verifier,
    ) -> None:
        orchestrator = make_orchestrator(git, pull_requests, runner, verifier)

        result = await orchestrator.attempt_fix(format_failure(), 42)

        assert result.success is True
        assert result.reason is None
        assert result.pr_number == 43
        assert result.changed_lines == 4
        assert result.attempts == 1

        spec = runner.run_check.await_args.args[0]
        assert spec.command == "ruff format ."
        assert spec.timeout_s == 120

        fix_branch = git.checkout.await_args_list[0].args[1]
        assert fix_branch.startswith("feature-autofix-")
        git.checkout.assert_any_await(REPO, fix_branch, create=True)
        git.add_all.assert_awaited_once_with(REPO)
        git.push.assert_awaited_once_with(REPO, "origin", fix_branch)
        kwargs = pull_requests.create_pull_request.await_args.kwargs
        assert kwargs["head"] == fix_branch
        assert kwargs["base"] == "feature"
        assert "ruff format ." in kwargs["body"]
        pull_requests.merge_pull_request.assert_not_awaited()
        assert git.checkout.await_args_list[-1].args == (REPO, "feature")
        verifier.verify.assert_awaited_once_with(REPO)
        git.reset_hard.assert_not_awaited()

    async def test_auto_merge(self, git, pull_requests, runner, verifier) -> None:
        orchestrator = make_orchestrator(git, pull_requests, runner, verifier, auto_merge=True)

        await orchestrator.attempt_fix(format_failure(), 42)

        pull_requests.merge_pull_request.assert_awaited_once_with(43)

    async def test_switches_to_pr_branch_and_back(
        self,
        git,
        pull_requests,
        runner,
        verifier,
    ) -> None:
        git.current_branch.return_value = "main"
        orchestrator = make_orchestrator(git, pull_requests, runner, verifier)

        result = await orchestrator.attempt_fix(format_failure(), 42)

        assert result.success is True
        git.fetch.assert_awaited_once_with(REPO, "origin", "feature")
        assert git.checkout.await_args_list[0].args == (REPO, "feature")
        assert git.checkout.await_args_list[-1].args == (REPO, "main")

    async def test_refreshes_pr_branch_before_fixing(
        self,
        git,
        pull_requests,
        runner,
        verifier,
    ) -> None:
        async def run_check(*args: object, **kwargs: object) -> CheckRunResult:
            git.fetch.assert_awaited_once_with(REPO, "origin", "feature")
            git.fast_forward.assert_awaited_once_with(REPO, "origin", "feature")
            return run_result()

        runner.run_check.side_effect = run_check
        orchestrator = make_orchestrator(git, pull_requests, runner, verifier)

        result = await orchestrator.attempt_fix(format_failure(), 42)

        assert result.success is True
        runner.run_check.assert_awaited_once()

    async def test_untracked_files_count_as_changes(
        self,
        git,
        pull_requests,
        runner,
        verifier,
    ) -> None:
        git.diff_numstat.return_value = []
        git.untracked_files.return_value = ["src/generated.py"]
        orchestrator = make_orchestrator(git, pull_requests, runner, verifier)

        result = await orchestrator.attempt_fix(format_failure(), 42)

        assert result.success is True
        assert result.changed_lines == 0
        git.intent_to_add.assert_awaited_once_with(REPO, ["src/generated.py"])

    async def test_nonzero_exit_with_changes_still_fixes(
        self,
        git,
        pull_requests,
        runner,
        verifier,
    ) -> None:
        runner.run_check.return_value = run_result(exit_code=1)
        orchestrator = make_orchestrator(git, pull_requests, runner, verifier)

        assert (await orchestrator.attempt_fix(format_failure(), 42)).success is True

    async def test_skips_verification_when_not_required(
        self,
        git,
        pull_requests,
        runner,
        verifier,
    ) -> None:
        orchestrator = make_orchestrator(git, pull_requests, runner, verifier, require_tests=False)

        await orchestrator.attempt_fix(format_failure(), 42)

        verifier.verify.assert_not_awaited()


class TestAbortedFix:
    async def test_no_changes(self, git, pull_requests, runner, verifier) -> None:
        git.diff_numstat.return_value = []
        orchestrator = make_orchestrator(git, pull_requests, runner, verifier)

        result = await orchestrator.attempt_fix(format_failure(), 42)

        assert result.success is False
        assert result.reason == AutoFixReason.NO_CHANGES
        assert result.changed_lines == 0
        pull_requests.create_pull_request.assert_not_awaited()

    async def test_too_many_changes_rolls_back(
        self,
        git,
        pull_requests,
        runner,
        verifier,
    ) -> None:
        git.diff_numstat.return_value = [(800, 300, "src/app.py")]
        orchestrator = make_orchestrator(git, pull_requests, runner, verifier)

        result = await orchestrator.attempt_fix(format_failure(), 42)

        assert result.reason == AutoFixReason.TOO_MANY_CHANGES
        assert result.changed_lines == 1100
        assert result.rolled_back is True
        git.reset_hard.assert_awaited_once_with(REPO)
        git.clean.assert_awaited_once_with(REPO)
        git.commit.assert_not_awaited()
        verifier.verify.assert_not_awaited()

    async def test_verification_failure_rolls_back(
        self,
        git,
        pull_requests,
        runner,
        verifier,
    ) -> None:
        resolved = ResolvedCommand(
            task=VerificationTask.TEST,
            command="pytest",
            source=CommandSource.NATIVE,
            language=Language.PYTHON,
        )
        verifier.verify.return_value = VerificationReport(
            outcomes=[
                TaskOutcome(
                    task=VerificationTask.TEST,
                    resolved=resolved,
                    status=CheckStatus.FAIL,
                    errors=["FAILED tests/test_app.py::test_x"],
                )
            ]
        )
        orchestrator = make_orchestrator(git, pull_requests, runner, verifier)

        result = await orchestrator.attempt_fix(format_failure(), 42)

        assert result.reason == AutoFixReason.VERIFICATION_FAILED
        assert result.verification_failed is True
        assert result.verification_errors == ["FAILED tests/test_app.py::test_x"]
        assert result.rolled_back is True
        git.push.assert_not_awaited()
        assert orchestrator.metrics.verification_failures == 1
        assert orchestrator.metrics.rollback_count == 1

    async def test_fix_timeout(self, git, pull_requests, runner, verifier) -> None:
        runner.run_check.return_value = run_result(exit_code=-1, timed_out=True)
        orchestrator = make_orchestrator(git, pull_requests, runner, verifier)

        result = await orchestrator.attempt_fix(format_failure(), 42)

        assert result.reason == AutoFixReason.EXECUTION_FAILED
        assert result.error == "Timeout after 120s"
        assert result.rolled_back is True
        git.diff_numstat.assert_not_awaited()

    async def test_push_failure_deletes_local_branch(
        self,
        git,
        pull_requests,
        runner,
        verifier,
    ) -> None:
        git.push.side_effect = GitCommandError(["push"], "rejected")
        orchestrator = make_orchestrator(git, pull_requests, runner, verifier)

        result = await orchestrator.attempt_fix(format_failure(), 42)

        assert result.reason == AutoFixReason.EXECUTION_FAILED
        assert result.rolled_back is True
        assert "rejected" in (result.error or "")
        fix_branch = git.checkout.await_args_list[0].args[1]
        git.delete_branch.assert_awaited_once_with(REPO, fix_branch)
        git.delete_remote_branch.assert_not_awaited()

    async def test_pr_creation_failure_deletes_remote_branch(
        self,
        git,
        pull_requests,
        runner,
        verifier,
    ) -> None:
        pull_requests.create_pull_request.side_effect = CIProviderError("forbidden", 403)
        orchestrator = make_orchestrator(git, pull_requests, runner, verifier)

        result = await orchestrator.attempt_fix(format_failure(), 42)

        assert result.reason == AutoFixReason.EXECUTION_FAILED
        fix_branch = git.checkout.await_args_list[0].args[1]
        git.delete_remote_branch.assert_awaited_once_with(REPO, "origin", fix_branch)

    async def test_failed_rollback_is_reported(
        self,
        git,
        pull_requests,
        runner,
        verifier,
    ) -> None:
        git.diff_numstat.return_value = [(5000, 0, "src/app.py")]
        git.reset_hard.side_effect = GitCommandError(["reset", "--hard", "HEAD"], "locked")
        orchestrator = make_orchestrator(git, pull_requests, runner, verifier)

        result = await orchestrator.attempt_fix(format_failure(), 42)

        assert result.reason == AutoFixReason.TOO_MANY_CHANGES
        assert result.rolled_back is False

    async def test_new_files_count_toward_line_limit(
        self,
        git,
        pull_requests,
        runner,
        verifier,
    ) -> None:
        git.untracked_files.return_value = ["src/generated.py"]
        git.diff_numstat.return_value = [(5000, 0, "src/generated.py")]
        orchestrator = make_orchestrator(
            git, pull_requests, runner, verifier, max_changed_lines=10
        )

        result = await orchestrator.attempt_fix(format_failure(), 42)

        assert result.reason == AutoFixReason.TOO_MANY_CHANGES
        assert result.changed_lines == 5000
        assert result.rolled_back is True
        git.commit.assert_not_awaited()
        pull_requests.create_pull_request.assert_not_awaited()

    @pytest.mark.parametrize("error", [ValueError("bad report"), asyncio.CancelledError()])
    async def test_unexpected_error_rolls_back_and_propagates(
        self,
        git,
        pull_requests,
        runner,
        verifier,
        error: BaseException,
    ) -> None:
        verifier.verify.side_effect = error
        orchestrator = make_orchestrator(git, pull_requests, runner, verifier)

        with pytest.raises(type(error)):
            await orchestrator.attempt_fix(format_failure(), 42)

        git.reset_hard.assert_awaited_once_with(REPO)
        git.clean.assert_awaited_once_with(REPO)
        git.push.assert_not_awaited()

    async def test_setup_failure(self, git, pull_requests, runner, verifier) -> None:
        pull_requests.get_pull_request.side_effect = CIProviderError("not found", 404)
        orchestrator = make_orchestrator(git, pull_requests, runner, verifier)

        result = await orchestrator.attempt_fix(format_failure(), 42)

        assert result.reason == AutoFixReason.EXECUTION_FAILED
        assert result.rolled_back is False
        runner.run_check.assert_not_awaited()

    async def test_diverged_pr_branch_restores_original_branch(
        self,
        git,
        pull_requests,
        runner,
        verifier,
    ) -> None:
        git.current_branch.return_value = "main"
        git.fast_forward.side_effect = GitCommandError(
            ["merge", "--ff-only", "origin/feature"], "Not possible to fast-forward"
        )
        orchestrator = make_orchestrator(git, pull_requests, runner, verifier)

        result = await orchestrator.attempt_fix(format_failure(), 42)

        assert result.reason == AutoFixReason.EXECUTION_FAILED
        assert "fast-forward" in (result.error or "")
        assert git.checkout.await_args_list[-1].args == (REPO, "main")
        runner.run_check.assert_not_awaited()


async def test_metrics_track_outcomes(git, pull_requests, runner, verifier) -> None:
    orchestrator = make_orchestrator(git, pull_requests, runner, verifier, max_attempts=3)

    await orchestrator.attempt_fix(format_failure(), 42)
    git.diff_numstat.return_value = []
    await orchestrator.attempt_fix(format_failure(), 42)

    metrics = orchestrator.metrics
    assert metrics.total_attempts == 2
    assert metrics.successful_fixes == 1
    assert metrics.failed_fixes == 1
    assert metrics.by_reason == {AutoFixReason.NO_CHANGES: 1}
