"""Git operations for the squash tool."""

import os
import shutil
import subprocess
import logging
from pathlib import Path
from typing import List, Optional
from ..core.types import CommitInfo, GitOperationError
from ..core.config import SquashConfig

logger = logging.getLogger(__name__)

# Refs git leaves behind while a history-rewriting operation is unfinished
IN_PROGRESS_MARKERS = ("REBASE_HEAD", "MERGE_HEAD", "CHERRY_PICK_HEAD", "BISECT_LOG")

# ASCII unit separator, very unlikely to appear in a commit subject
FIELD_SEPARATOR = "\x1F"

# A fresh stash always lands on top of the stash reflog
STASH_REF = "stash@{0}"


class GitOperations:
    """Handles all git operations for the squash tool."""

    def __init__(self, config: Optional[SquashConfig] = None, repo_path: Optional[Path] = None):
        self.config = config or SquashConfig()
        self.repo_path = repo_path

    def _run_git_command(self, cmd: List[str], check: bool = True,
                         env: Optional[dict] = None) -> subprocess.CompletedProcess:
        """Run a git command and return the result."""
        full_cmd = ["git"] + cmd
        logger.debug("Running git command: %s", " ".join(full_cmd))

        try:
            result = subprocess.run(
                full_cmd,
                cwd=self.repo_path,
                capture_output=True,
                text=True,
                check=check,
                env=env
            )
            return result
        except FileNotFoundError as e:
            raise GitOperationError(f"Could not run git: {e}") from e
        except subprocess.CalledProcessError as e:
            logger.error("Git command failed: %s\nStderr: %s", " ".join(full_cmd), e.stderr)
            raise GitOperationError(f"git {cmd[0]} failed: {e.stderr.strip()}") from e

    def is_git_available(self) -> bool:
        """Check that the git binary is on PATH."""
        return shutil.which("git") is not None

    def is_inside_work_tree(self) -> bool:
        """Check that the working directory is inside a git work tree."""
        result = self._run_git_command(["rev-parse", "--is-inside-work-tree"], check=False)
        return result.returncode == 0 and result.stdout.strip() == "true"

    def resolve_ref(self, ref: str) -> Optional[str]:
        """Resolve a ref to a commit hash, or None if it does not exist."""
        result = self._run_git_command(["rev-parse", "-q", "--verify", ref], check=False)
        if result.returncode != 0:
            return None
        return result.stdout.strip()

    def get_in_progress_operation(self) -> Optional[str]:
        """Return the marker of an unfinished rebase/merge/etc, if any."""
        for marker in IN_PROGRESS_MARKERS:
            if self.resolve_ref(marker) is not None:
                return marker
        return None

    def get_commit_count(self, ref: str = "HEAD") -> int:
        """Get the number of commits on the first-parent chain of a ref."""
        result = self._run_git_command(["rev-list", "--count", "--first-parent", ref], check=False)
        if result.returncode != 0:
            raise GitOperationError(f"cannot count commits (does {ref} exist?)")
        return int(result.stdout.strip())

    def has_uncommitted_changes(self) -> bool:
        """Check for modified, staged or untracked files."""
        result = self._run_git_command(["status", "--porcelain"])
        return result.stdout.strip() != ""

    def _log_single(self, ref: str, format_str: str) -> str:
        result = self._run_git_command(["log", "-1", f"--format={format_str}", ref])
        return result.stdout.strip()

    def get_commit_message(self, ref: str) -> str:
        """Get the full message of a commit."""
        return self._log_single(ref, "%B")

    def get_commit_date(self, ref: str) -> str:
        """Get the strict ISO 8601 committer date of a commit."""
        return self._log_single(ref, "%cI")

    def has_changes_between(self, base_ref: str, head_ref: str) -> bool:
        """Check whether the trees of two refs differ."""
        result = self._run_git_command(["diff", "--quiet", base_ref, head_ref], check=False)
        if result.returncode == 0:
            return False
        if result.returncode == 1:
            return True
        raise GitOperationError(
            f"git diff failed between {base_ref} and {head_ref}: {result.stderr.strip()}")

    def get_first_parent_commits(self, count: int, ref: str = "HEAD") -> List[CommitInfo]:
        """Get the newest `count` commits following first parents from ref."""
        result = self._run_git_command([
            "log", "--first-parent", f"-{count}",
            f"--format=%h{FIELD_SEPARATOR}%s", ref
        ])

        # strip() would also eat the trailing \x1F of an empty subject
        commits = []
        for line in result.stdout.rstrip('\n').split('\n'):
            if not line:
                continue
            parts = line.split(FIELD_SEPARATOR, 1)
            if len(parts) != 2:
                logger.warning("Skipping malformed commit line: %s", repr(line))
                continue
            commits.append(CommitInfo(short_hash=parts[0], subject=parts[1]))
        return commits

    def branch_exists(self, branch_name: str) -> bool:
        """Check if a branch exists."""
        result = self._run_git_command(["show-ref", "--verify", "--quiet", f"refs/heads/{branch_name}"], check=False)
        return result.returncode == 0

    def list_branches(self, pattern: str) -> List[str]:
        """List local branch names matching a glob pattern."""
        result = self._run_git_command(["branch", "--list", "--format=%(refname:short)", pattern])
        return [line.strip() for line in result.stdout.split('\n') if line.strip()]

    def create_branch(self, branch_name: str, start_point: str = "HEAD") -> None:
        """Create a branch without checking it out."""
        logger.debug("Creating branch: %s at %s", branch_name, start_point)
        self._run_git_command(["branch", branch_name, start_point])

    def stash_push(self) -> str:
        """Stash all uncommitted changes, untracked files included.

        Returns the stash reference holding the changes.
        """
        before = self.resolve_ref("refs/stash")
        self._run_git_command(["stash", "push", "-u", "-m", self.config.stash_message])

        after = self.resolve_ref("refs/stash")
        if after is None or after == before:
            raise GitOperationError("stash push reported success but refs/stash was not updated")
        return STASH_REF

    def soft_reset(self, ref: str) -> None:
        """Move the branch tip to ref, keeping index and working tree."""
        self._run_git_command(["reset", "--soft", ref])

    def commit_with_date(self, message: str, date: str, allow_empty: bool = False) -> str:
        """Commit the index with author and committer date forced to date.

        Returns the hash of the new commit.
        """
        env = os.environ.copy()
        env['GIT_COMMITTER_DATE'] = date

        cmd = ["commit", "--date", date]
        if allow_empty:
            cmd.append("--allow-empty")
        cmd.extend(["-m", message])
        self._run_git_command(cmd, env=env)

        result = self._run_git_command(["rev-parse", "HEAD"])
        return result.stdout.strip()

    def stash_apply(self, stash_ref: str) -> None:
        """Reapply a stash without removing it."""
        self._run_git_command(["stash", "apply", stash_ref])

    def stash_drop(self, stash_ref: str) -> None:
        """Remove a stash entry."""
        self._run_git_command(["stash", "drop", stash_ref])
