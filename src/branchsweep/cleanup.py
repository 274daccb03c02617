"""Sweep branches already merged into the default branch."""

import logging
from dataclasses import dataclass, field
from fnmatch import fnmatch
from typing import Callable

from branchsweep.config import Config
from branchsweep.errors import PreconditionFailure
from branchsweep.git import GitRepo

logger = logging.getLogger(__name__)

DELETING = "[deleting]"
WOULD_DELETE = "[would delete]"


@dataclass
class CleanupReport:
    """What a sweep found and did."""

    default_branch: str
    current_branch: str
    dry_run: bool
    candidates: list[str] = field(default_factory=list)
    deleted: list[str] = field(default_factory=list)
    protected: list[str] = field(default_factory=list)


def is_protected(branch_name: str, protect: tuple[str, ...]) -> bool:
    """Check if a branch matches any protection pattern."""
    return any(fnmatch(branch_name, pattern) for pattern in protect)


def sweep(repo: GitRepo, config: Config, echo: Callable[[str], None] = print) -> CleanupReport:
    """Report, and with ``config.force`` delete, branches merged into the default branch.

    The default branch must be checked out. Branches are handled in the order
    git lists them and the first failure stops the sweep; branches deleted
    before it stay deleted.

    Args:
        repo: Repository to sweep
        config: Run configuration
        echo: Called with one ``[deleting] <name>`` or ``[would delete] <name>`` line per branch

    Raises:
        PreconditionFailure: If the current branch is not the default branch
        ParseFailure: If the remote does not report a default branch
        CommandFailure: If any git command fails
    """
    current = repo.get_current_branch()
    default = repo.get_default_branch(config.remote)
    if current != default:
        raise PreconditionFailure(
            "Refusing to run without being on the default branch. "
            f"Currently on branch {current}. Default branch {default}."
        )

    report = CleanupReport(default_branch=default, current_branch=current, dry_run=config.dry_run)
    for branch_name in repo.get_merged_branches():
        if is_protected(branch_name, config.protect):
            logger.info("Skipping protected branch %s", branch_name)
            report.protected.append(branch_name)
            continue

        report.candidates.append(branch_name)
        echo(f"{DELETING if config.force else WOULD_DELETE} {branch_name}")
        if config.force:
            repo.delete_branch(branch_name)
            report.deleted.append(branch_name)

    return report
