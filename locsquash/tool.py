"""Main locsquash tool implementation."""

import logging
from datetime import datetime, timezone
from typing import Optional
from .core.config import SquashConfig
from .core.types import (
    SquashPlan, SquashRequest, SquashResult, SquashStep,
    ExecutionError, GitEnvironmentError, GitOperationError, InvalidRequestError
)
from .git.operations import GitOperations
from .report import PlanReporter

logger = logging.getLogger(__name__)


class SquashTool:
    """Folds the newest commits of the current branch into one."""

    def __init__(self,
                 git_ops: GitOperations,
                 config: SquashConfig):
        self.git_ops = git_ops
        self.config = config
        self.reporter = PlanReporter(config)

    def require_git(self) -> None:
        """Fail unless the git binary can be found."""
        if not self.git_ops.is_git_available():
            raise GitEnvironmentError("git is not installed or not found in PATH.")

    def check_environment(self) -> None:
        """Make sure git is usable here and nothing else is rewriting history."""
        self.require_git()
        self._check_repository()

    def _check_repository(self) -> None:
        if not self.git_ops.is_inside_work_tree():
            raise GitEnvironmentError("not a git repository (or any of the parent directories)")

        marker = self.git_ops.get_in_progress_operation()
        if marker:
            raise GitEnvironmentError(
                f"git operation in progress ({marker} exists); abort/finish it first")

    def validate(self, request: SquashRequest) -> bool:
        """Run every precondition check in order.

        Returns whether the working tree has uncommitted changes. A dirty
        tree only fails validation for a real run without stash permission;
        previews are left to warn about it.
        """
        self.require_git()

        # Before looking at the repository at all
        if request.count < 2:
            raise InvalidRequestError("-n (number of last commits to squash) must be at least 2.")

        self._check_repository()

        try:
            total = self.git_ops.get_commit_count()
        except GitOperationError as e:
            raise InvalidRequestError(f"Error retrieving commit count: {e}") from e

        if total < 2:
            raise InvalidRequestError(
                f"repository only has {total} commit; need at least 2 commits to squash.")
        if request.count >= total:
            raise InvalidRequestError(
                f"repository has {total} commits; -n must be at most {total - 1} "
                f"(can't squash the entire history, one commit must remain as the base).")

        dirty = self.git_ops.has_uncommitted_changes()
        if dirty and not request.stash and not request.is_preview:
            raise InvalidRequestError(
                "uncommitted changes detected. Commit/stash them or rerun with -stash.")

        logger.debug("Validated request for %d of %d commits (dirty=%s)", request.count, total, dirty)
        return dirty

    def backup_branch_name(self, now: Optional[datetime] = None) -> str:
        """Candidate backup branch name for the given UTC time."""
        now = now or datetime.now(timezone.utc)
        return self.config.backup_branch_prefix + now.strftime(self.config.backup_timestamp_format)

    def build_plan(self, request: SquashRequest, dirty: bool,
                   now: Optional[datetime] = None) -> SquashPlan:
        """Compute everything a squash needs from a validated request."""
        logger.debug("Preparing squash plan for %d commits", request.count)

        oldest_ref = f"HEAD~{request.count - 1}"
        reset_ref = f"HEAD~{request.count}"

        message = (request.message or "").strip()
        if not message:
            message = self.git_ops.get_commit_message(oldest_ref).strip()
        if not message:
            raise InvalidRequestError(
                f"oldest commit ({oldest_ref}) has an empty message; provide one with -m.")

        commit_date = self.git_ops.get_commit_date("HEAD").strip()

        if not self.git_ops.has_changes_between(reset_ref, "HEAD") and not request.allow_empty:
            raise InvalidRequestError(
                "selected commits result in no net changes. "
                "Use -allow-empty to create an empty commit.")

        commits = self.git_ops.get_first_parent_commits(request.count)
        if len(commits) != request.count:
            raise GitOperationError(
                f"expected {request.count} commits on the first-parent chain, found {len(commits)}")

        plan = SquashPlan(
            request=request,
            backup_branch=self.backup_branch_name(now),
            reset_ref=reset_ref,
            oldest_ref=oldest_ref,
            message=message,
            commit_date=commit_date,
            dirty=dirty,
            commits=tuple(commits),
        )
        logger.debug("Plan complete: %s", plan.summary_stats())
        return plan

    def create_backup_branch(self, base_name: str) -> str:
        """Create a backup branch at HEAD, adding -2, -3, ... if the name is taken."""
        for attempt in range(1, self.config.max_backup_attempts + 1):
            name = base_name if attempt == 1 else f"{base_name}-{attempt}"
            if self.git_ops.branch_exists(name):
                logger.debug("Backup branch %s already exists", name)
                continue
            self.git_ops.create_branch(name, "HEAD")
            return name

        raise GitOperationError(
            f"failed to create backup branch {base_name} after {self.config.max_backup_attempts} attempts")

    def execute_squash_plan(self, plan: SquashPlan) -> SquashResult:
        """Run the mutating steps of a plan.

        Stops at the first failing step and raises ExecutionError with a
        recovery hint; nothing is rolled back automatically.
        """
        backup_branch = None
        stash_ref = None
        new_head = ""

        for step in plan.steps:
            try:
                if step is SquashStep.STASH:
                    stash_ref = self.git_ops.stash_push()
                    logger.info("Stashed working directory changes as %s", stash_ref)

                elif step is SquashStep.BACKUP:
                    backup_branch = self.create_backup_branch(plan.backup_branch)
                    logger.info("Created backup branch: %s (recovery point)", backup_branch)

                elif step is SquashStep.RESET:
                    logger.info("Performing soft reset to %s...", plan.reset_ref)
                    self.git_ops.soft_reset(plan.reset_ref)

                elif step is SquashStep.COMMIT:
                    logger.info("Creating squashed commit...")
                    new_head = self.git_ops.commit_with_date(
                        plan.message, plan.commit_date, allow_empty=plan.request.allow_empty)

                elif step is SquashStep.RESTORE:
                    logger.info("Reapplying stashed changes from %s...", stash_ref)
                    self._restore_stash(stash_ref, backup_branch)
                    stash_ref = None

            except ExecutionError:
                raise
            except GitOperationError as e:
                raise ExecutionError(
                    self._failure_message(step, plan, stash_ref, e),
                    step,
                    self.reporter.failure_hint(step, backup_branch, stash_ref)
                ) from e
            except KeyboardInterrupt as e:
                raise ExecutionError(
                    f"Interrupted during the {step.value} step.",
                    step,
                    self.reporter.recovery_hint(backup_branch, stash_ref)
                ) from e
            except Exception as e:
                logger.debug("Unexpected failure in %s step", step.value, exc_info=True)
                raise ExecutionError(
                    f"Unexpected error during the {step.value} step: {e}",
                    step,
                    self.reporter.recovery_hint(backup_branch, stash_ref)
                ) from e

        logger.debug("Squash execution complete, new HEAD %s", new_head[:8])
        return SquashResult(
            count=plan.count,
            new_head=new_head,
            backup_branch=backup_branch,
        )

    def _restore_stash(self, stash_ref: str, backup_branch: Optional[str]) -> None:
        # Only drop once the apply went through; a conflicting stash stays put
        self.git_ops.stash_apply(stash_ref)
        try:
            self.git_ops.stash_drop(stash_ref)
        except GitOperationError as e:
            raise ExecutionError(
                f"Applied stash but failed to drop {stash_ref}: {e}\n"
                f"You can drop it manually later.",
                SquashStep.RESTORE,
                self.reporter.recovery_hint(backup_branch)
            ) from e

    @staticmethod
    def _failure_message(step: SquashStep, plan: SquashPlan, stash_ref: Optional[str],
                         error: GitOperationError) -> str:
        if step is SquashStep.STASH:
            return f"Failed to stash changes: {error}"
        if step is SquashStep.BACKUP:
            return f"Failed to create backup branch {plan.backup_branch!r}: {error}"
        if step is SquashStep.RESET:
            return f"Failed to perform soft reset to {plan.reset_ref}: {error}"
        if step is SquashStep.COMMIT:
            return f"Failed to create squashed commit: {error}"
        return f"Stash apply failed (stash preserved as {stash_ref}): {error}"
