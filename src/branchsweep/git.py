"""Git repository operations."""

import os
import re
from pathlib import Path

from git import GitCommandError, InvalidGitRepositoryError, NoSuchPathError, Repo

from branchsweep.errors import GitError, ParseFailure
from branchsweep.runner import CommandRunner

DEFAULT_BRANCH_PATTERN = re.compile(rb"HEAD branch: (.*)")
CURRENT_BRANCH_MARKER = "* "
UNKNOWN_HEAD = "(unknown)"


class GitRepo:
    """Git repository operations.

    Every query shells out to ``git`` through the runner, so verbose mode
    shows exactly what was run. Output is decoded with ``os.fsdecode`` so
    names that are not valid UTF-8 survive the round trip back into argv.
    """

    def __init__(self, path: Path, runner: CommandRunner) -> None:
        """Initialize repository.

        Raises:
            GitError: If ``path`` is not a git work tree
        """
        try:
            self.repo: Repo = Repo(path, search_parent_directories=True)
            if self.repo.bare:
                raise GitError("Cannot operate on bare repository")
        except (GitCommandError, ValueError, InvalidGitRepositoryError, NoSuchPathError) as err:
            raise GitError(f"Failed to open repository: {err}") from err
        self.runner = runner

    def _git(self, *args: str) -> bytes:
        return self.runner.run("git", *args)

    def get_default_branch(self, remote: str = "origin") -> str:
        """Get the default branch as reported by the remote.

        Raises:
            ParseFailure: If the remote does not report a HEAD branch
        """
        out = self._git("remote", "show", remote)
        match = DEFAULT_BRANCH_PATTERN.search(out)
        if match is None:
            raise ParseFailure(f"failed to extract default branch from `git remote show {remote}`")

        branch = os.fsdecode(match.group(1)).strip()
        if not branch or branch == UNKNOWN_HEAD:
            raise ParseFailure(f"remote {remote} does not report a default branch")
        return branch

    def get_current_branch(self) -> str:
        """Get current branch name (``HEAD`` when detached)."""
        return os.fsdecode(self._git("rev-parse", "--abbrev-ref", "HEAD")).strip()

    def get_merged_branches(self) -> list[str]:
        """Get local branches merged into HEAD, except the checked-out one."""
        out = os.fsdecode(self._git("branch", "--merged"))
        branches = []
        for line in out.splitlines():
            line = line.strip()
            if not line or line.startswith(CURRENT_BRANCH_MARKER):
                continue
            branches.append(line)
        return branches

    def delete_branch(self, branch_name: str) -> None:
        """Delete a local branch.

        Uses ``-d``, so git itself refuses branches that are not fully merged.
        """
        self._git("branch", "-d", branch_name)
