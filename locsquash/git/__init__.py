"""Git command boundary for locsquash."""

from .operations import GitOperations

__all__ = ["GitOperations"]
