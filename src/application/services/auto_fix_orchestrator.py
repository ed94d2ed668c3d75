"""Deterministic auto-fix for formatter and linter failures.

An attempt never leaves the working tree in a half-fixed state: the tree
must be clean before anything runs, and every exit path after the fix
command has touched files either commits the result onto a dedicated fix
branch or resets the tree back to HEAD.
"""

import time
from collections.abc import Callable
from pathlib import Path
from uuid import uuid4

from loguru import logger

from src.domain.entities.auto_fix import AutoFixMetrics, AutoFixResult
from src.domain.entities.check_summary import FailureDetail
from src.domain.errors import CIProviderError, GitCommandError
from src.domain.ports.check_runner_port import CheckRunnerPort
from src.domain.ports.git_port import GitPort
from src.domain.ports.pull_request_port import PullRequestInfo, PullRequestPort
from src.domain.ports.verification_port import LocalVerificationPort
from src.domain.value_objects.check_enums import AutoFixReason, ErrorType
from src.domain.value_objects.check_types import CheckSpec
from src.domain.value_objects.workflow_config import AutoFixConfig

AttemptKey = tuple[ErrorType, str]


class _FixAborted(Exception):
    def __init__(self, reason: AutoFixReason, **details: object) -> None:
        super().__init__(reason.value)
        self.reason = reason
        self.details = details


class AutoFixOrchestrator:
    def __init__(
        self,
        git: GitPort,
        pull_requests: PullRequestPort,
        runner: CheckRunnerPort,
        verifier: LocalVerificationPort,
        repo_path: Path,
        config: AutoFixConfig | None = None,
        remote: str = "origin",
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._git = git
        self._pull_requests = pull_requests
        self._runner = runner
        self._verifier = verifier
        self._repo_path = repo_path
        self._config = config or AutoFixConfig()
        self._remote = remote
        self._clock = clock
        self._attempts: dict[AttemptKey, int] = {}
        self._metrics = AutoFixMetrics()

    @property
    def metrics(self) -> AutoFixMetrics:
        return self._metrics

    def attempts_for(self, error_type: ErrorType, check_name: str) -> int:
        return self._attempts.get((error_type, check_name), 0)

    def reset(self) -> None:
        """Forget attempts and metrics; call once per pipeline run."""
        self._attempts.clear()
        self._metrics = AutoFixMetrics()

    async def attempt_fix(
        self,
        failure: FailureDetail,
        pr_number: int,
        dry_run: bool | None = None,
    ) -> AutoFixResult:
        error_type = failure.error_type
        key = (error_type, failure.check_name)
        attempts = self._attempts.get(key, 0)

        if not self._config.enabled:
            return AutoFixResult(
                success=False,
                error_type=error_type,
                attempts=attempts,
                reason=AutoFixReason.DISABLED,
            )

        suggestion = failure.suggested_fix
        if suggestion is None or not suggestion.auto_fixable:
            logger.info(f"{failure.check_name}: {error_type.value} is not auto-fixable")
            return AutoFixResult(
                success=False,
                error_type=error_type,
                attempts=attempts,
                reason=AutoFixReason.NOT_AUTO_FIXABLE,
            )

        if attempts >= self._config.max_attempts:
            logger.warning(
                "{}: auto-fix attempt limit reached ({}/{})",
                failure.check_name,
                attempts,
                self._config.max_attempts,
            )
            return AutoFixResult(
                success=False,
                error_type=error_type,
                attempts=attempts,
                reason=AutoFixReason.MAX_ATTEMPTS_REACHED,
                command=suggestion.command,
            )

        use_dry_run = self._config.dry_run if dry_run is None else dry_run
        start = self._clock()

        if use_dry_run:
            logger.info(f"[DRY RUN] Would run '{suggestion.command}' for {failure.check_name}")
            result = AutoFixResult(
                success=True,
                error_type=error_type,
                attempts=attempts,
                reason=AutoFixReason.DRY_RUN,
                command=suggestion.command,
            )
            self._metrics.record(result, self._clock() - start, dry_run=True)
            return result

        self._attempts[key] = attempts + 1
        logger.info(
            f"Auto-fix attempt {attempts + 1}/{self._config.max_attempts} for "
            f"{failure.check_name} ({error_type.value}): {suggestion.command}"
        )
        result = await self._execute(failure, pr_number, suggestion.command, attempts + 1)
        self._metrics.record(result, self._clock() - start, dry_run=False)
        return result

    async def _execute(
        self,
        failure: FailureDetail,
        pr_number: int,
        command: str,
        attempt: int,
    ) -> AutoFixResult:
        repo = self._repo_path

        def finish(
            success: bool,
            reason: AutoFixReason | None = None,
            **extra: object,
        ) -> AutoFixResult:
            return AutoFixResult(
                success=success,
                error_type=failure.error_type,
                attempts=attempt,
                reason=reason,
                command=command,
                **extra,
            )

        switched = False
        try:
            if await self._git.status(repo):
                logger.warning("Working tree is not clean, refusing to auto-fix")
                return finish(False, AutoFixReason.DIRTY_WORKING_TREE)
            original_branch = await self._git.current_branch(repo)
            pr = await self._pull_requests.get_pull_request(pr_number)
            await self._git.fetch(repo, self._remote, pr.head_ref)
            if original_branch != pr.head_ref:
                await self._git.checkout(repo, pr.head_ref)
                switched = True
            await self._git.fast_forward(repo, self._remote, pr.head_ref)
        except (GitCommandError, CIProviderError) as e:
            logger.error(f"Auto-fix setup failed: {e}")
            if switched:
                await self._restore_branch(original_branch)
            return finish(False, AutoFixReason.EXECUTION_FAILED, error=str(e))

        fix_branch: str | None = None
        pushed = False
        try:
            changed_lines = await self._apply(command)
            fix_branch = f"{pr.head_ref}-autofix-{int(time.time())}"
            await self._git.checkout(repo, fix_branch, create=True)
            await self._git.add_all(repo)
            await self._git.commit(repo, self._commit_message(failure, command))
            await self._git.push(repo, self._remote, fix_branch)
            pushed = True

            fix_pr = await self._pull_requests.create_pull_request(
                title=f"Auto-fix {failure.error_type.value} in {failure.check_name}",
                body=self._pr_body(failure, command, changed_lines, pr),
                head=fix_branch,
                base=pr.head_ref,
            )
            if self._config.auto_merge:
                await self._pull_requests.merge_pull_request(fix_pr.number)

            await self._git.checkout(repo, original_branch)
            logger.info(f"Auto-fix for {failure.check_name} opened PR #{fix_pr.number}")
            return finish(True, pr_number=fix_pr.number, changed_lines=changed_lines)

        except _FixAborted as e:
            rolled_back = await self._rollback(pr.head_ref, original_branch, fix_branch, pushed)
            if e.reason == AutoFixReason.NO_CHANGES:
                return finish(False, e.reason, changed_lines=0)
            return finish(False, e.reason, rolled_back=rolled_back, **e.details)

        except (GitCommandError, CIProviderError, OSError) as e:
            logger.error(f"Auto-fix for {failure.check_name} failed: {e}")
            rolled_back = await self._rollback(pr.head_ref, original_branch, fix_branch, pushed)
            return finish(
                False, AutoFixReason.EXECUTION_FAILED, rolled_back=rolled_back, error=str(e)
            )

        except BaseException:
            logger.error(f"Auto-fix for {failure.check_name} interrupted, rolling back")
            await self._rollback(pr.head_ref, original_branch, fix_branch, pushed)
            raise

    async def _apply(self, command: str) -> int:
        """Run the fix, then gate the result. Returns the changed line count."""
        repo = self._repo_path
        spec = CheckSpec(
            id=uuid4(),
            name="auto-fix",
            command=command,
            cwd=str(repo),
            timeout_s=self._config.fix_timeout_s,
        )
        result = await self._runner.run_check(spec, cwd=str(repo))
        if result.timed_out:
            raise _FixAborted(AutoFixReason.EXECUTION_FAILED, error=result.stderr)
        if result.exit_code != 0:
            # Fixers such as `eslint --fix` exit non-zero when unfixable issues remain.
            logger.debug(f"Fix command exited with {result.exit_code}, inspecting changes anyway")

        untracked = await self._git.untracked_files(repo)
        # New files only show up in numstat once they are in the index.
        await self._git.intent_to_add(repo, untracked)
        numstat = await self._git.diff_numstat(repo)
        changed_lines = sum(added + deleted for added, deleted, _ in numstat)

        if changed_lines == 0 and not untracked:
            logger.info("Fix command made no changes")
            raise _FixAborted(AutoFixReason.NO_CHANGES)

        if changed_lines > self._config.max_changed_lines:
            logger.warning(
                "Fix changed {} lines (limit {}), rolling back",
                changed_lines,
                self._config.max_changed_lines,
            )
            raise _FixAborted(AutoFixReason.TOO_MANY_CHANGES, changed_lines=changed_lines)

        if self._config.require_tests:
            report = await self._verifier.verify(repo)
            if not report.success:
                failed = ", ".join(t.value for t in report.failed_tasks)
                logger.warning(f"Verification failed after fix: {failed}")
                raise _FixAborted(
                    AutoFixReason.VERIFICATION_FAILED,
                    changed_lines=changed_lines,
                    verification_failed=True,
                    verification_errors=report.errors,
                )
        return changed_lines

    async def _rollback(
        self,
        head_ref: str,
        original_branch: str,
        fix_branch: str | None,
        pushed: bool,
    ) -> bool:
        repo = self._repo_path
        try:
            await self._git.reset_hard(repo)
            await self._git.clean(repo)
            if fix_branch is not None:
                await self._git.checkout(repo, head_ref)
                await self._git.delete_branch(repo, fix_branch)
            if pushed and fix_branch is not None:
                await self._git.delete_remote_branch(repo, self._remote, fix_branch)
            if original_branch != head_ref:
                await self._git.checkout(repo, original_branch)
        except GitCommandError as e:
            logger.error(f"Rollback incomplete, manual cleanup needed: {e}")
            return False
        logger.info("Rolled back auto-fix changes")
        return True

    async def _restore_branch(self, branch: str) -> None:
        try:
            await self._git.checkout(self._repo_path, branch)
        except GitCommandError as e:
            logger.error(f"Could not switch back to {branch}: {e}")

    def _commit_message(self, failure: FailureDetail, command: str) -> str:
        return (
            f"fix: auto-fix {failure.error_type.value} in {failure.check_name}\n\n"
            f"Applied `{command}`."
        )

    def _pr_body(
        self,
        failure: FailureDetail,
        command: str,
        changed_lines: int,
        pr: PullRequestInfo,
    ) -> str:
        lines = [
            f"Automated fix for the failing `{failure.check_name}` check on #{pr.number}.",
            "",
            f"- Error type: {failure.error_type.value}",
            f"- Command: `{command}`",
            f"- Changed lines: {changed_lines}",
        ]
        if failure.affected_files:
            lines.append(f"- Affected files: {', '.join(failure.affected_files[:10])}")
        return "\n".join(lines)
