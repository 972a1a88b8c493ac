"""Core types and configuration for locsquash."""

from .config import SquashConfig
from .types import (
    CommitInfo, SquashRequest, SquashPlan, SquashResult, SquashStep,
    LocsquashError, GitOperationError, GitEnvironmentError,
    InvalidRequestError, ExecutionError
)

__all__ = [
    "SquashConfig",
    "CommitInfo", "SquashRequest", "SquashPlan", "SquashResult", "SquashStep",
    "LocsquashError", "GitOperationError", "GitEnvironmentError",
    "InvalidRequestError", "ExecutionError"
]
