"""Errors raised by branch-sweep."""

from typing import Optional


class BranchSweepError(Exception):
    """Base exception for all branch-sweep errors."""


class CommandFailure(BranchSweepError):
    """An external command failed to start, exited non-zero or ran past its deadline."""

    def __init__(self, command: str, reason: str, returncode: Optional[int] = None) -> None:
        """Initialize error.

        Args:
            command: Shell-quoted command line
            reason: What went wrong
            returncode: Exit status, if the process ran to completion
        """
        self.command = command
        self.reason = reason
        self.returncode = returncode
        super().__init__(f"error running command {command}: {reason}")


class ParseFailure(BranchSweepError):
    """Expected information was missing from a command's output."""


class PreconditionFailure(BranchSweepError):
    """The repository is not in a state the sweep can run in."""


class WriteFailure(BranchSweepError):
    """A destination sink rejected a write."""

    def __init__(self, message: str, written: int = 0) -> None:
        """Initialize error.

        Args:
            message: Error message
            written: Input bytes consumed before the failure
        """
        super().__init__(message)
        self.written = written


class GitError(BranchSweepError):
    """The path is not a repository we can operate on."""
