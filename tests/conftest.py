"""Test configuration and fixtures."""

from pathlib import Path
from typing import Any, Callable, Generator, Optional, Union

import pytest
from git import Actor, Repo

from branchsweep.git import GitRepo


class FakeRunner:
    """Stands in for CommandRunner: canned stdout per command, records every call."""

    def __init__(self, outputs: Optional[dict[tuple[str, ...], Union[bytes, Exception]]] = None) -> None:
        self.outputs = outputs or {}
        self.calls: list[tuple[str, ...]] = []

    def run(self, name: str, *args: str, timeout: Optional[float] = None) -> bytes:
        command = (name, *args)
        self.calls.append(command)
        result = self.outputs.get(command, b"")
        if isinstance(result, Exception):
            raise result
        return result


class FailingSink:
    """Byte sink that accepts a number of writes, then raises."""

    def __init__(self, fail_after: int) -> None:
        self.fail_after = fail_after
        self.writes: list[bytes] = []

    def write(self, data: bytes) -> int:
        if len(self.writes) >= self.fail_after:
            raise OSError("sink closed")
        self.writes.append(bytes(data))
        return len(data)


@pytest.fixture
def fake_runner() -> FakeRunner:
    """Runner returning canned output; set ``outputs[command]`` per test."""
    return FakeRunner()


@pytest.fixture
def failing_sink() -> Callable[..., Any]:
    """Factory for sinks that raise after ``fail_after`` writes."""
    return FailingSink


@pytest.fixture
def empty_repo(tmp_path: Path) -> Path:
    """A freshly initialized repository with no commits."""
    repo_path = tmp_path / "empty"
    repo_path.mkdir()
    Repo.init(repo_path)
    return repo_path


@pytest.fixture
def fake_repo(empty_repo: Path, fake_runner: FakeRunner) -> Generator[tuple[GitRepo, FakeRunner], None, None]:
    """GitRepo backed by a FakeRunner instead of real git commands."""
    yield GitRepo(empty_repo, fake_runner), fake_runner


@pytest.fixture
def test_env(tmp_path: Path) -> Generator[tuple[Path, Path], None, None]:
    """Create a test environment with local and remote repositories.

    The local repository is on ``main`` and has two branches merged into it
    (``feature-a``, ``feature-b``) and one that is not (``feature-unmerged``).

    Returns:
        Tuple of (local_repo_path, remote_repo_path)
    """
    remote_path = tmp_path / "remote"
    local_path = tmp_path / "local"
    remote_path.mkdir()
    local_path.mkdir()

    remote_repo = Repo.init(remote_path, bare=True)
    local_repo = Repo.init(local_path)
    # Whatever init.defaultBranch says, start on main
    local_repo.git.symbolic_ref("HEAD", "refs/heads/main")

    author = Actor("Test User", "test@example.com")
    local_repo.config_writer().set_value("user", "name", author.name).release()
    local_repo.config_writer().set_value("user", "email", author.email).release()

    readme = local_path / "README.md"
    readme.write_text("# Test Repository")
    local_repo.index.add(["README.md"])
    local_repo.index.commit("Initial commit", author=author, committer=author)
    main_branch = local_repo.heads.main

    origin = local_repo.create_remote("origin", url=str(remote_path))
    origin.push("main")
    # The remote's HEAD decides what `git remote show` reports as the default branch
    remote_repo.git.symbolic_ref("HEAD", "refs/heads/main")

    def create_branch(name: str, content: str, merge: bool = False) -> None:
        """Create a branch off main with one commit, optionally merged back."""
        main_branch.checkout()
        branch = local_repo.create_head(name)
        branch.checkout()

        test_file = local_path / f"{name}.txt"
        test_file.write_text(content)
        local_repo.index.add([f"{name}.txt"])
        local_repo.index.commit(f"Add {name}", author=author, committer=author)

        if merge:
            main_branch.checkout()
            local_repo.git.merge(name, "--no-ff", "-m", f"Merge {name}")

    create_branch("feature-a", "Feature A", merge=True)
    create_branch("feature-b", "Feature B", merge=True)
    create_branch("feature-unmerged", "Not merged yet")

    main_branch.checkout()

    yield local_path, remote_path
