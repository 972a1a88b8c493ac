"""Human-readable views of a squash plan."""

import json
import shlex
from typing import List, Optional

from .core.config import SquashConfig
from .core.types import SquashPlan, SquashStep
from .git.operations import STASH_REF

REFLOG_HINT = ("Recovery: use 'git reflog' to find the commit hash before the squash, "
               "then 'git reset --hard <hash>'")
UNCHANGED_HINT = "Repository unchanged: no history was rewritten."


class PlanReporter:
    """Renders previews and recovery instructions from a SquashPlan.

    Nothing here touches the repository; every line is derived from plan
    fields so the output matches what the executor does with the same plan.
    """

    def __init__(self, config: SquashConfig):
        self.config = config

    def format_commit_list(self, plan: SquashPlan) -> str:
        """List the commits being folded and the resulting message."""
        lines = [f"The following {len(plan.commits)} commits will be squashed:", ""]
        for commit in plan.commits:
            lines.append(f"  {commit.short_hash} {commit.subject}")
        lines.append("")
        lines.append(f"Result commit message: {json.dumps(plan.message, ensure_ascii=False)}")
        lines.append("")
        return "\n".join(lines)

    def step_commands(self, plan: SquashPlan, step: SquashStep) -> List[str]:
        """Shell commands equivalent to one executor step."""
        if step is SquashStep.STASH:
            return [
                f"git stash push -u -m {shlex.quote(self.config.stash_message)}",
                f"# (stash ref will be: {STASH_REF})",
            ]
        if step is SquashStep.BACKUP:
            return [f"git branch {plan.backup_branch} HEAD"]
        if step is SquashStep.RESET:
            return [f"git reset --soft {plan.reset_ref}"]
        if step is SquashStep.COMMIT:
            date = shlex.quote(plan.commit_date)
            allow_empty = " --allow-empty" if plan.request.allow_empty else ""
            return [f"GIT_COMMITTER_DATE={date} git commit --date {date}{allow_empty} "
                    f"-m {shlex.quote(plan.message)}"]
        if step is SquashStep.RESTORE:
            return [f"git stash apply {STASH_REF}", f"git stash drop {STASH_REF}"]
        raise ValueError(f"Unknown step: {step}")

    def format_dry_run(self, plan: SquashPlan) -> str:
        """Render the operations a real run would perform, in order."""
        titles = {
            SquashStep.STASH: "Stash working tree",
            SquashStep.BACKUP: "Backup branch",
            SquashStep.RESET: "Rewrite history",
            SquashStep.COMMIT: "Create squashed commit",
            SquashStep.RESTORE: "Restore working tree",
        }

        lines = ["Dry run. No changes will be made.", ""]
        lines.append(self.format_commit_list(plan))
        lines.append("# Planned operations (copy-paste friendly):")
        lines.append("")
        for step in plan.steps:
            lines.append(f"# {titles[step]}")
            lines.extend(self.step_commands(plan, step))
            lines.append("")
        lines.append("# End of dry run")
        return "\n".join(lines)

    def format_recovery(self, plan: SquashPlan) -> str:
        """Render the commands that undo a run made with this plan."""
        lines = [
            "# Recovery instructions",
            "# These commands will restore the repository to its pre-run state",
            "",
        ]

        if plan.creates_backup:
            lines.extend([
                "# Hard reset branch to backup",
                f"git reset --hard {plan.backup_branch}",
                "",
                "# Optional: delete backup branch after verification",
                f"git branch -D {plan.backup_branch}",
                "",
                "# If another run created a backup in the same second, the branch",
                "# name carries a numeric suffix (-2, -3, ...); see -list-backups",
            ])
        else:
            lines.extend([
                "# WARNING: -no-backup was specified, no backup branch will be created",
                "# Recovery will only be possible via git reflog",
                "# git reflog",
                "# git reset --hard <commit-hash-before-squash>",
            ])

        lines.extend([
            "",
            "# If a stash was involved and conflicts occurred:",
            "# git stash list",
            "# git stash apply <stash-ref>",
            "# git stash drop <stash-ref>",
            "",
            "# End of recovery instructions",
        ])
        return "\n".join(lines)

    def recovery_hint(self, backup_branch: Optional[str], stash_ref: Optional[str] = None) -> str:
        """One-line recovery instruction for a failed run."""
        if backup_branch:
            hint = f"Recovery: git reset --hard {backup_branch}"
        else:
            hint = REFLOG_HINT
        if stash_ref:
            hint += f"\nYour uncommitted changes are still stashed as {stash_ref}."
        return hint

    def failure_hint(self, step: SquashStep, backup_branch: Optional[str],
                     stash_ref: Optional[str] = None) -> str:
        """Recovery hint for a git failure at a given step."""
        # The stash is the first step; if it fails nothing was touched
        if step is SquashStep.STASH:
            return UNCHANGED_HINT
        return self.recovery_hint(backup_branch, stash_ref)

    def format_backup_list(self, branches: List[str]) -> str:
        """List backup branches left behind by earlier runs."""
        if not branches:
            return f"No backup branches found (prefix: {self.config.backup_branch_prefix})."
        lines = [f"Backup branches ({len(branches)}):"]
        lines.extend(f"  {name}" for name in branches)
        return "\n".join(lines)
