from datetime import UTC, datetime, timedelta
from unittest.mock import AsyncMock

import pytest

from src.application.services.check_poller import (
    CheckPoller,
    PollOptions,
    PollState,
    advance,
    dedupe_runs,
    overall_status,
)
from src.domain.entities.check_run import Annotation, CheckRun
from src.domain.entities.check_summary import CheckSummary, ProgressUpdate
from src.domain.ports.pull_request_port import PullRequestInfo
from src.domain.value_objects.check_enums import (
    CheckConclusion,
    CheckRunStatus,
    ErrorType,
    OverallStatus,
    PollOutcome,
    PollStrategyType,
)
from src.domain.value_objects.toolchain import VerificationTask

T0 = datetime(2026, 3, 1, 12, 0, tzinfo=UTC)


class FakeClock:
    def __init__(self) -> None:
        self.now = 0.0
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


def run(name: str, conclusion: str | None = None, run_id: int = 0, **kwargs: object) -> CheckRun:
    return CheckRun(
        id=run_id,
        name=name,
        status=CheckRunStatus.COMPLETED if conclusion else CheckRunStatus.IN_PROGRESS,
        conclusion=CheckConclusion(conclusion) if conclusion else None,
        **kwargs,
    )


def summarize(*runs: CheckRun) -> CheckSummary:
    return CheckPoller(AsyncMock(), AsyncMock()).build_summary(list(runs), T0)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def pull_requests() -> AsyncMock:
    mock = AsyncMock()
    mock.get_pull_request.return_value = PullRequestInfo(
        number=42, head_ref="feature", head_sha="abc123", base_ref="main"
    )
    return mock


@pytest.fixture
def checks() -> AsyncMock:
    mock = AsyncMock()
    mock.list_annotations.return_value = []
    return mock


def make_poller(checks: AsyncMock, pull_requests: AsyncMock, clock: FakeClock) -> CheckPoller:
    return CheckPoller(
        checks,
        pull_requests,
        known_commands={VerificationTask.LINT: "npx eslint ."},
        clock=clock,
        sleep=clock.sleep,
    )


class TestBuildSummary:
    def test_counts_and_overall_status(self) -> None:
        summary = summarize(
            run("ci", "success"),
            run("docs", "skipped"),
            run("lint", "failure"),
            run("test"),
        )

        assert (summary.total, summary.passed, summary.failed) == (4, 1, 1)
        assert (summary.pending, summary.skipped) == (1, 1)
        assert summary.overall_status == OverallStatus.FAILURE
        assert summary.completed_at is None
        assert [d.check_name for d in summary.failure_details] == ["lint"]

    def test_all_passed_is_completed(self) -> None:
        summary = summarize(run("ci", "success"), run("lint", "neutral"))

        assert summary.overall_status == OverallStatus.SUCCESS
        assert summary.completed_at is not None

    def test_duration_is_longest_run(self) -> None:
        summary = summarize(
            run("a", "success", started_at=T0, completed_at=T0 + timedelta(seconds=30)),
            run("b", "success", started_at=T0, completed_at=T0 + timedelta(seconds=90)),
        )

        assert summary.duration == 90.0

    def test_failure_detail_has_suggestion(self) -> None:
        poller = CheckPoller(
            AsyncMock(),
            AsyncMock(),
            known_commands={VerificationTask.LINT: "npx eslint ."},
        )
        failed = run(
            "lint",
            "failure",
            title="3 problems",
            text="src/app.ts\n  1:1  error  no-var\n3 problems (3 errors, 0 warnings)",
            url="https://github.com/acme/widgets/runs/1",
        )

        detail = poller.failure_detail(failed)

        assert detail.error_type == ErrorType.LINTING_ERROR
        assert detail.summary == "3 problems"
        assert detail.affected_files == ["src/app.ts"]
        assert detail.url == "https://github.com/acme/widgets/runs/1"
        assert detail.suggested_fix is not None
        assert detail.suggested_fix.command == "npx eslint --fix ."
        assert detail.suggested_fix.auto_fixable is True

    def test_overall_status_precedence(self) -> None:
        assert overall_status(failed=1, pending=3) == OverallStatus.FAILURE
        assert overall_status(failed=0, pending=3) == OverallStatus.PENDING
        assert overall_status(failed=0, pending=0) == OverallStatus.SUCCESS


class TestAdvance:
    def test_no_checks_succeeds(self) -> None:
        state, _ = advance(PollState.initial(0.0, PollOptions()), summarize(), now=0.0)

        assert state.outcome == PollOutcome.SUCCEEDED
        assert state.reason == "no checks configured"

    def test_no_checks_waits_during_registration_grace(self) -> None:
        options = PollOptions(registration_grace_s=30)
        state = PollState.initial(0.0, options)

        state, _ = advance(state, summarize(), now=5.0, options=options)
        assert state.done is False

        state, _ = advance(state, summarize(), now=30.0, options=options)
        assert state.outcome == PollOutcome.SUCCEEDED

    def test_fail_fast_stops_on_first_failure(self) -> None:
        state, _ = advance(
            PollState.initial(0.0, PollOptions()),
            summarize(run("lint", "failure"), run("test")),
            now=1.0,
        )

        assert state.outcome == PollOutcome.FAILED
        assert state.reason == "failed checks: lint"

    def test_without_fail_fast_waits_for_pending(self) -> None:
        options = PollOptions(fail_fast=False)
        state = PollState.initial(0.0, options)

        state, _ = advance(state, summarize(run("lint", "failure"), run("test")), 1.0, options)
        assert state.done is False

        state, _ = advance(
            state,
            summarize(run("lint", "failure"), run("test", "success")),
            2.0,
            options,
        )
        assert state.outcome == PollOutcome.FAILED

    def test_all_passed_succeeds(self) -> None:
        state, _ = advance(
            PollState.initial(0.0, PollOptions()),
            summarize(run("lint", "success"), run("docs", "skipped")),
            now=1.0,
        )

        assert state.outcome == PollOutcome.SUCCEEDED
        assert state.reason == "all checks passed"

    def test_timeout(self) -> None:
        options = PollOptions(timeout_s=60)

        state, _ = advance(PollState.initial(0.0, options), summarize(run("test")), 60.0, options)

        assert state.outcome == PollOutcome.TIMED_OUT
        assert "1 pending" in (state.reason or "")

    def test_progress_deltas_are_relative_to_previous_cycle(self) -> None:
        state = PollState.initial(0.0, PollOptions(fail_fast=False))
        options = PollOptions(fail_fast=False)

        state, first = advance(
            state,
            summarize(run("a", "success"), run("b", "failure"), run("c")),
            1.0,
            options,
        )
        state, second = advance(
            state,
            summarize(run("a", "success"), run("b", "failure"), run("c", "success"), run("d")),
            2.0,
            options,
        )

        assert first.new_passes == ["a"]
        assert first.new_failures == ["b"]
        assert second.new_passes == ["c"]
        assert second.new_failures == []
        assert not set(second.new_passes) & set(second.new_failures)
        assert (second.total, second.passed, second.failed, second.pending) == (4, 2, 1, 1)

    def test_state_is_not_mutated(self) -> None:
        initial = PollState.initial(0.0, PollOptions())

        advance(initial, summarize(run("lint", "failure")), 1.0)

        assert initial.cycle == 0
        assert initial.outcome is None
        assert initial.previous_failed == frozenset()

    def test_progress_timestamp_comes_from_state(self) -> None:
        wall = datetime(2026, 1, 1, 12, 0, tzinfo=UTC)
        initial = PollState.initial(100.0, PollOptions(), wall_started_at=wall)
        summary = summarize(run("lint", "failure"))

        first_state, first = advance(initial, summary, 130.0)
        second_state, second = advance(initial, summary, 130.0)

        assert first.timestamp == wall + timedelta(seconds=30)
        assert first == second
        assert first_state == second_state

    def test_exponential_interval_is_capped(self) -> None:
        options = PollOptions(
            poll_interval_s=10,
            strategy=PollStrategyType.EXPONENTIAL,
            multiplier=1.5,
            max_interval_s=30,
        )
        state = PollState.initial(0.0, options)
        intervals = []
        for cycle in range(4):
            state, _ = advance(state, summarize(run("test")), float(cycle), options)
            intervals.append(state.interval)

        assert intervals == [10, 15, 22.5, 30]

    def test_flapping_check_gets_grace(self) -> None:
        options = PollOptions(retry_flaky=True, flaky_grace_cycles=1)
        state = PollState.initial(0.0, options)

        state, _ = advance(state, summarize(run("e2e", "success"), run("lint")), 1.0, options)
        state, _ = advance(state, summarize(run("e2e", "failure"), run("lint")), 2.0, options)

        assert state.done is False
        assert state.retries_used == 1
        assert state.grace_used == {"e2e": 1}

        state, _ = advance(state, summarize(run("e2e", "failure"), run("lint")), 3.0, options)

        assert state.outcome == PollOutcome.FAILED

    def test_first_failure_is_not_flaky(self) -> None:
        options = PollOptions(retry_flaky=True)

        state, _ = advance(
            PollState.initial(0.0, options),
            summarize(run("e2e", "failure")),
            1.0,
            options,
        )

        assert state.outcome == PollOutcome.FAILED
        assert state.retries_used == 0


class TestDedupeRuns:
    def test_latest_rerun_wins(self) -> None:
        first = run("test", "failure", run_id=1, started_at=T0)
        rerun = run("test", "success", run_id=2, started_at=T0 + timedelta(minutes=5))

        assert dedupe_runs([rerun, first]) == [rerun]

    def test_id_breaks_ties(self) -> None:
        older = run("test", "failure", run_id=1)
        newer = run("test", "success", run_id=2)

        assert dedupe_runs([newer, older]) == [newer]


class TestWaitForChecks:
    async def test_fail_fast_reports_single_lint_failure(
        self,
        checks: AsyncMock,
        pull_requests: AsyncMock,
        clock: FakeClock,
    ) -> None:
        checks.list_check_runs.return_value = [
            run("ci", "success", run_id=1),
            run("lint", "failure", run_id=2, summary="src/a.ts\n  1:1 error eslint no-var"),
        ]
        poller = make_poller(checks, pull_requests, clock)

        result = await poller.wait_for_checks(42, PollOptions(fail_fast=True))

        assert result.outcome == PollOutcome.FAILED
        assert result.success is False
        assert result.summary.overall_status == OverallStatus.FAILURE
        assert len(result.summary.failure_details) == 1
        assert result.summary.failure_details[0].error_type == ErrorType.LINTING_ERROR
        checks.list_check_runs.assert_awaited_once_with("abc123")
        assert clock.sleeps == []

    async def test_no_checks_returns_without_sleeping(
        self,
        checks: AsyncMock,
        pull_requests: AsyncMock,
        clock: FakeClock,
    ) -> None:
        checks.list_check_runs.return_value = []

        result = await make_poller(checks, pull_requests, clock).wait_for_checks(42)

        assert result.success is True
        assert result.summary.total == 0
        assert clock.sleeps == []

    async def test_polls_until_green(
        self,
        checks: AsyncMock,
        pull_requests: AsyncMock,
        clock: FakeClock,
    ) -> None:
        checks.list_check_runs.side_effect = [
            [run("ci"), run("lint")],
            [run("ci", "success"), run("lint")],
            [run("ci", "success"), run("lint", "success")],
        ]
        updates: list[ProgressUpdate] = []
        options = PollOptions(poll_interval_s=5, on_progress=updates.append)

        result = await make_poller(checks, pull_requests, clock).wait_for_checks(42, options)

        assert result.success is True
        assert clock.sleeps == [5, 5]
        assert [u.new_passes for u in updates] == [[], ["ci"], ["lint"]]
        assert pull_requests.get_pull_request.await_count == 3

    async def test_timeout_never_oversleeps(
        self,
        checks: AsyncMock,
        pull_requests: AsyncMock,
        clock: FakeClock,
    ) -> None:
        checks.list_check_runs.return_value = [run("slow")]
        options = PollOptions(timeout_s=25, poll_interval_s=10)

        result = await make_poller(checks, pull_requests, clock).wait_for_checks(42, options)

        assert result.outcome == PollOutcome.TIMED_OUT
        assert result.timed_out is True
        assert clock.sleeps == [10, 10, 5]
        assert result.duration == 25

    async def test_flaky_retry_is_reported(
        self,
        checks: AsyncMock,
        pull_requests: AsyncMock,
        clock: FakeClock,
    ) -> None:
        checks.list_check_runs.side_effect = [
            [run("e2e", "success"), run("lint")],
            [run("e2e", "failure"), run("lint")],
            [run("e2e", "success"), run("lint", "success")],
        ]
        options = PollOptions(retry_flaky=True, flaky_grace_cycles=2)

        result = await make_poller(checks, pull_requests, clock).wait_for_checks(42, options)

        assert result.success is True
        assert result.retries_used == 1

    async def test_annotations_fetched_once_per_failed_run(
        self,
        checks: AsyncMock,
        pull_requests: AsyncMock,
        clock: FakeClock,
    ) -> None:
        failing = run("lint", "failure", run_id=7, annotations_count=1)
        checks.list_check_runs.side_effect = [
            [failing, run("test")],
            [failing, run("test", "success")],
        ]
        checks.list_annotations.return_value = [
            Annotation(path="src/app.py", start_line=3, message="F401 unused import")
        ]

        result = await make_poller(checks, pull_requests, clock).wait_for_checks(
            42, PollOptions(fail_fast=False)
        )

        assert result.outcome == PollOutcome.FAILED
        checks.list_annotations.assert_awaited_once_with(7, limit=50)
        detail = result.summary.failure_details[0]
        assert detail.annotations[0].path == "src/app.py"
        assert detail.affected_files == ["src/app.py"]

    async def test_passing_runs_skip_annotation_fetch(
        self,
        checks: AsyncMock,
        pull_requests: AsyncMock,
        clock: FakeClock,
    ) -> None:
        checks.list_check_runs.return_value = [run("ci", "success", annotations_count=4)]

        await make_poller(checks, pull_requests, clock).wait_for_checks(42)

        checks.list_annotations.assert_not_awaited()

    async def test_snapshot_makes_no_decision(
        self,
        checks: AsyncMock,
        pull_requests: AsyncMock,
        clock: FakeClock,
    ) -> None:
        checks.list_check_runs.return_value = [run("ci"), run("lint", "failure")]

        summary = await make_poller(checks, pull_requests, clock).snapshot(42)

        assert summary.pending == 1
        assert summary.failed == 1
        assert clock.sleeps == []
