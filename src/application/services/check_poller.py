"""CI check polling state machine.

A polling session is a loop of read-only cycles: resolve the PR head SHA,
fetch every check run for it, build a fresh CheckSummary and feed it to
``advance``. ``advance`` is pure: it takes the previous PollState and the
new summary and returns the next PollState plus a ProgressUpdate. The loop
stops as soon as the state carries an outcome.
"""

import asyncio
import time
from collections.abc import Awaitable, Callable, Iterable, Mapping
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime, timedelta

from loguru import logger

from src.domain.entities.check_run import Annotation, CheckRun
from src.domain.entities.check_summary import (
    CheckResult,
    CheckSummary,
    FailureDetail,
    ProgressUpdate,
)
from src.domain.ports.checks_port import ChecksPort
from src.domain.ports.pull_request_port import PullRequestPort
from src.domain.services.failure_classifier import FailureClassifier
from src.domain.services.suggestion_engine import SuggestionEngine
from src.domain.value_objects.check_enums import (
    CheckBucket,
    OverallStatus,
    PollOutcome,
    PollStrategyType,
)
from src.domain.value_objects.toolchain import VerificationTask
from src.domain.value_objects.workflow_config import CIConfig

ANNOTATIONS_LIMIT = 50
FAILURE_SUMMARY_CHARS = 500

ProgressCallback = Callable[[ProgressUpdate], None]


@dataclass(frozen=True)
class PollOptions:
    timeout_s: float = 1800.0
    poll_interval_s: float = 10.0
    fail_fast: bool = True
    retry_flaky: bool = False
    flaky_grace_cycles: int = 2
    registration_grace_s: float = 0.0
    strategy: PollStrategyType = PollStrategyType.FIXED
    max_interval_s: float = 30.0
    multiplier: float = 1.5
    on_progress: ProgressCallback | None = None

    @classmethod
    def from_config(
        cls,
        ci: CIConfig,
        on_progress: ProgressCallback | None = None,
    ) -> "PollOptions":
        return cls(
            timeout_s=ci.timeout_s,
            poll_interval_s=ci.poll_interval_s,
            fail_fast=ci.fail_fast,
            retry_flaky=ci.retry_flaky,
            flaky_grace_cycles=ci.flaky_grace_cycles,
            registration_grace_s=ci.registration_grace_s,
            strategy=ci.strategy,
            max_interval_s=ci.max_interval_s,
            multiplier=ci.multiplier,
            on_progress=on_progress,
        )


@dataclass(frozen=True)
class PollState:
    """Everything one cycle hands to the next. Never mutated in place."""

    started_at: float
    interval: float
    # Wall-clock time matching started_at; progress timestamps derive from it.
    wall_started_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    cycle: int = 0
    previous_failed: frozenset[str] = frozenset()
    previous_passed: frozenset[str] = frozenset()
    seen_passing: frozenset[str] = frozenset()
    seen_failing: frozenset[str] = frozenset()
    grace_used: Mapping[str, int] = field(default_factory=dict)
    retries_used: int = 0
    last_summary: CheckSummary | None = None
    outcome: PollOutcome | None = None
    reason: str | None = None

    @classmethod
    def initial(
        cls,
        started_at: float,
        options: PollOptions,
        wall_started_at: datetime | None = None,
    ) -> "PollState":
        state = cls(started_at=started_at, interval=options.poll_interval_s)
        if wall_started_at is not None:
            state = replace(state, wall_started_at=wall_started_at)
        return state

    @property
    def flapping(self) -> frozenset[str]:
        return self.seen_passing & self.seen_failing

    @property
    def done(self) -> bool:
        return self.outcome is not None


def next_interval(state: PollState, options: PollOptions) -> float:
    if options.strategy == PollStrategyType.FIXED or state.cycle == 0:
        return options.poll_interval_s
    return min(state.interval * options.multiplier, options.max_interval_s)


def advance(
    state: PollState,
    summary: CheckSummary,
    now: float,
    options: PollOptions | None = None,
) -> tuple[PollState, ProgressUpdate]:
    """Apply one poll result to the session state.

    Decision order: no checks, terminal failure, all green, all completed
    with failures, timeout, keep polling.
    """
    options = options or PollOptions()
    elapsed = now - state.started_at
    failed = frozenset(summary.names_in(CheckBucket.FAILED))
    passed = frozenset(summary.names_in(CheckBucket.PASSED))

    progress = ProgressUpdate(
        timestamp=state.wall_started_at + timedelta(seconds=elapsed),
        elapsed=elapsed,
        total=summary.total,
        passed=summary.passed,
        failed=summary.failed,
        pending=summary.pending,
        new_failures=sorted(failed - state.previous_failed),
        new_passes=sorted(passed - state.previous_passed),
    )

    nxt = replace(
        state,
        cycle=state.cycle + 1,
        interval=next_interval(state, options),
        previous_failed=failed,
        previous_passed=passed,
        seen_passing=state.seen_passing | passed,
        seen_failing=state.seen_failing | failed,
        last_summary=summary,
    )

    if summary.total == 0:
        if elapsed < options.registration_grace_s:
            return nxt, progress
        return replace(nxt, outcome=PollOutcome.SUCCEEDED, reason="no checks configured"), progress

    if failed and (options.fail_fast or summary.pending == 0):
        graced: frozenset[str] = frozenset()
        if options.retry_flaky:
            graced = frozenset(
                name
                for name in failed & nxt.flapping
                if nxt.grace_used.get(name, 0) < options.flaky_grace_cycles
            )
        terminal = failed - graced
        if terminal:
            return (
                replace(
                    nxt,
                    outcome=PollOutcome.FAILED,
                    reason="failed checks: " + ", ".join(sorted(terminal)),
                ),
                progress,
            )
        grace_used = dict(nxt.grace_used)
        for name in graced:
            grace_used[name] = grace_used.get(name, 0) + 1
        logger.info(f"Flaky checks get another cycle: {', '.join(sorted(graced))}")
        nxt = replace(nxt, grace_used=grace_used, retries_used=nxt.retries_used + 1)
    elif summary.pending == 0 and not failed:
        return replace(nxt, outcome=PollOutcome.SUCCEEDED, reason="all checks passed"), progress

    if elapsed >= options.timeout_s:
        return (
            replace(
                nxt,
                outcome=PollOutcome.TIMED_OUT,
                reason=f"timed out after {options.timeout_s:g}s with {summary.pending} pending",
            ),
            progress,
        )
    return nxt, progress


def dedupe_runs(runs: Iterable[CheckRun]) -> list[CheckRun]:
    """Keep one run per name: the most recently started (re-runs replace originals)."""
    latest: dict[str, CheckRun] = {}
    floor = datetime.min.replace(tzinfo=UTC)
    for run in runs:
        current = latest.get(run.name)
        if current is None or (run.started_at or floor, run.id) >= (
            current.started_at or floor,
            current.id,
        ):
            latest[run.name] = run
    return list(latest.values())


def overall_status(failed: int, pending: int) -> OverallStatus:
    if failed:
        return OverallStatus.FAILURE
    if pending:
        return OverallStatus.PENDING
    return OverallStatus.SUCCESS


class CheckPoller:
    def __init__(
        self,
        checks: ChecksPort,
        pull_requests: PullRequestPort,
        classifier: FailureClassifier | None = None,
        suggestions: SuggestionEngine | None = None,
        known_commands: Mapping[VerificationTask, str] | None = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._checks = checks
        self._pull_requests = pull_requests
        self._classifier = classifier or FailureClassifier()
        self._suggestions = suggestions or SuggestionEngine()
        self._known_commands = dict(known_commands or {})
        self._clock = clock
        self._sleep = sleep

    def build_summary(self, runs: list[CheckRun], started_at: datetime) -> CheckSummary:
        counts = {bucket: 0 for bucket in CheckBucket}
        for run in runs:
            counts[run.bucket] += 1

        pending = counts[CheckBucket.PENDING]
        durations = [
            (run.completed_at - run.started_at).total_seconds()
            for run in runs
            if run.started_at is not None and run.completed_at is not None
        ]
        return CheckSummary(
            total=len(runs),
            passed=counts[CheckBucket.PASSED],
            failed=counts[CheckBucket.FAILED],
            pending=pending,
            skipped=counts[CheckBucket.SKIPPED],
            overall_status=overall_status(counts[CheckBucket.FAILED], pending),
            failure_details=[
                self.failure_detail(run) for run in runs if run.bucket == CheckBucket.FAILED
            ],
            runs=runs,
            started_at=started_at,
            completed_at=datetime.now(UTC) if runs and pending == 0 else None,
            duration=max(durations) if durations else None,
        )

    def failure_detail(self, run: CheckRun) -> FailureDetail:
        error_type = self._classifier.classify(run)
        files = self._classifier.affected_files(run)
        raw_text = "\n".join(
            part
            for part in (run.title, run.summary, run.text, *(a.message for a in run.annotations))
            if part
        )
        return FailureDetail(
            check_name=run.name,
            error_type=error_type,
            summary=(run.title or run.summary or f"{run.name} failed")[:FAILURE_SUMMARY_CHARS],
            affected_files=files,
            annotations=run.annotations,
            suggested_fix=self._suggestions.get_suggestion(
                raw_text, error_type, self._known_commands, files
            ),
            url=run.url,
        )

    async def snapshot(self, pr_number: int) -> CheckSummary:
        """One read-only cycle without any decision logic."""
        return await self._poll_once(pr_number, datetime.now(UTC), {})

    async def wait_for_checks(
        self,
        pr_number: int,
        options: PollOptions | None = None,
    ) -> CheckResult:
        options = options or PollOptions()
        started_at = datetime.now(UTC)
        state = PollState.initial(self._clock(), options, started_at)
        annotation_cache: dict[int, list[Annotation]] = {}

        logger.info(f"Waiting for checks on PR #{pr_number} (timeout {options.timeout_s:g}s)")
        while True:
            summary = await self._poll_once(pr_number, started_at, annotation_cache)
            state, progress = advance(state, summary, self._clock(), options)
            if options.on_progress is not None:
                options.on_progress(progress)

            if state.outcome is not None:
                duration = self._clock() - state.started_at
                logger.info(f"Checks for PR #{pr_number} {state.outcome.value}: {state.reason}")
                return CheckResult(
                    outcome=state.outcome,
                    summary=summary,
                    duration=duration,
                    retries_used=state.retries_used,
                    reason=state.reason,
                )

            remaining = options.timeout_s - (self._clock() - state.started_at)
            delay = min(state.interval, remaining)
            logger.debug(
                f"Cycle {state.cycle}: {summary.passed} passed, {summary.failed} failed, "
                f"{summary.pending} pending; next poll in {max(delay, 0):.1f}s"
            )
            if delay > 0:
                await self._sleep(delay)

    async def _poll_once(
        self,
        pr_number: int,
        started_at: datetime,
        annotation_cache: dict[int, list[Annotation]],
    ) -> CheckSummary:
        pr = await self._pull_requests.get_pull_request(pr_number)
        runs = dedupe_runs(await self._checks.list_check_runs(pr.head_sha))
        runs = [await self._with_annotations(run, annotation_cache) for run in runs]
        return self.build_summary(runs, started_at)

    async def _with_annotations(
        self,
        run: CheckRun,
        cache: dict[int, list[Annotation]],
    ) -> CheckRun:
        if run.bucket != CheckBucket.FAILED or run.annotations_count == 0 or run.annotations:
            return run
        if run.id not in cache:
            cache[run.id] = await self._checks.list_annotations(run.id, limit=ANNOTATIONS_LIMIT)
        return run.model_copy(update={"annotations": cache[run.id]})
