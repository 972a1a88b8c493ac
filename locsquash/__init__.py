"""
locsquash - squash the last N commits into one

Folds the newest commits of the current branch into a single commit that
keeps the date of the most recent one, with dry-run preview, automatic
backup branches and recovery instructions.
"""

__version__ = "1.0.0"

from .core.config import SquashConfig
from .core.types import CommitInfo, SquashRequest, SquashPlan, SquashResult, SquashStep
from .git.operations import GitOperations
from .report import PlanReporter
from .tool import SquashTool

__all__ = [
    "SquashConfig",
    "CommitInfo",
    "SquashRequest",
    "SquashPlan",
    "SquashResult",
    "SquashStep",
    "GitOperations",
    "PlanReporter",
    "SquashTool"
]
