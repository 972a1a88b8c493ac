"""Type definitions for the locsquash tool."""

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple


@dataclass(frozen=True)
class CommitInfo:
    """A commit shown in previews (never used to drive mutations)."""
    short_hash: str
    subject: str


@dataclass(frozen=True)
class SquashRequest:
    """What the user asked for, as given on the command line."""
    count: int
    message: Optional[str] = None
    stash: bool = False
    allow_empty: bool = False
    no_backup: bool = False
    yes: bool = False
    dry_run: bool = False
    print_recovery: bool = False

    @property
    def is_preview(self) -> bool:
        """Whether this run only prints and never mutates the repository."""
        return self.dry_run or self.print_recovery

    @classmethod
    def from_cli_args(cls, args) -> 'SquashRequest':
        """Create a request from parsed command line arguments."""
        return cls(
            count=args.count,
            message=args.message,
            stash=args.stash,
            allow_empty=args.allow_empty,
            no_backup=args.no_backup,
            yes=args.yes,
            dry_run=args.dry_run,
            print_recovery=args.print_recovery,
        )


class SquashStep(Enum):
    """Mutating steps of a squash, in execution order."""
    STASH = "stash"
    BACKUP = "backup"
    RESET = "reset"
    COMMIT = "commit"
    RESTORE = "restore"


@dataclass(frozen=True)
class SquashPlan:
    """Everything derived from a request and the repository before mutating."""
    request: SquashRequest
    backup_branch: str  # candidate; may gain a numeric suffix when created
    reset_ref: str
    oldest_ref: str
    message: str
    commit_date: str  # ISO 8601 as printed by git, reused verbatim
    dirty: bool
    commits: Tuple[CommitInfo, ...]  # newest first

    @property
    def count(self) -> int:
        """Number of commits folded into one."""
        return self.request.count

    @property
    def will_stash(self) -> bool:
        """Whether uncommitted changes get stashed around the squash."""
        return self.dirty and self.request.stash

    @property
    def creates_backup(self) -> bool:
        """Whether a backup branch is created before rewriting history."""
        return not self.request.no_backup

    @property
    def steps(self) -> Tuple[SquashStep, ...]:
        """Mutating steps this plan runs, in order.

        Both the executor and the dry-run preview walk this sequence, so
        the preview cannot drift from what actually happens.
        """
        steps = []
        if self.will_stash:
            steps.append(SquashStep.STASH)
        if self.creates_backup:
            steps.append(SquashStep.BACKUP)
        steps.append(SquashStep.RESET)
        steps.append(SquashStep.COMMIT)
        if self.will_stash:
            steps.append(SquashStep.RESTORE)
        return tuple(steps)

    def summary_stats(self) -> str:
        """Get summary statistics as string."""
        return f"{self.count} commits → 1 squashed commit"


@dataclass(frozen=True)
class SquashResult:
    """Outcome of a completed squash."""
    count: int
    new_head: str
    backup_branch: Optional[str] = None


class LocsquashError(Exception):
    """Base exception for locsquash operations."""
    pass


class GitOperationError(LocsquashError):
    """Raised when git operations fail."""
    pass


class GitEnvironmentError(LocsquashError):
    """Raised when git or the repository is not in a usable state."""
    pass


class InvalidRequestError(LocsquashError):
    """Raised when the request cannot be honored for this repository."""
    pass


class ExecutionError(LocsquashError):
    """Raised when a mutating step fails partway through a squash."""

    def __init__(self, message: str, step: SquashStep, recovery_hint: str):
        super().__init__(f"{message}\n{recovery_hint}")
        self.step = step
        self.recovery_hint = recovery_hint
