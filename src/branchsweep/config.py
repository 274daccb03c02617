"""Run configuration for branch-sweep."""

from dataclasses import dataclass, field
from pathlib import Path

DEFAULT_TIMEOUT = 60.0
DEFAULT_REMOTE = "origin"


@dataclass(frozen=True)
class Config:
    """Options for one run. Built once by the CLI and never mutated."""

    force: bool = False
    verbose: bool = False
    debug: bool = False
    timeout: float = DEFAULT_TIMEOUT
    remote: str = DEFAULT_REMOTE
    protect: tuple[str, ...] = ()
    path: Path = field(default_factory=lambda: Path("."))

    def __post_init__(self) -> None:
        """Validate configuration after initialization."""
        if self.timeout <= 0:
            raise ValueError(f"timeout must be positive, got {self.timeout}")

        if not self.remote or not self.remote.strip():
            raise ValueError("remote cannot be empty")
        # frozen: go through object.__setattr__ to store normalized values
        object.__setattr__(self, "remote", self.remote.strip())

        patterns: list[str] = []
        for pattern in self.protect:
            pattern = pattern.strip()
            if pattern and pattern not in patterns:
                patterns.append(pattern)
        object.__setattr__(self, "protect", tuple(patterns))

    @property
    def dry_run(self) -> bool:
        """Whether deletions are only reported."""
        return not self.force


def parse_patterns(value: str) -> tuple[str, ...]:
    """Split a comma-separated list of branch patterns."""
    return tuple(p.strip() for p in value.split(",") if p.strip())
