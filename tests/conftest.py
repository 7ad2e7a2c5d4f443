"""Shared test fixtures for modkeeper.

Every test runs against real git repositories created under ``tmp_path``
with an isolated HOME and config, so nothing from the developer's machine
leaks in.
"""

import subprocess
from pathlib import Path

import pytest


def git(cwd: Path, *args: str) -> str:
    """Run git in ``cwd`` and return stripped stdout, failing the test on error."""
    result = subprocess.run(["git", *args], cwd=cwd, capture_output=True, text=True)
    assert result.returncode == 0, f"git {' '.join(args)} failed: {result.stderr}"
    return result.stdout.strip()


@pytest.fixture(autouse=True)
def isolated_git(tmp_path, monkeypatch):
    """Point git at an empty HOME and allow file:// submodule clones."""
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.setenv("GIT_CONFIG_NOSYSTEM", "1")
    monkeypatch.setenv("GIT_AUTHOR_NAME", "test")
    monkeypatch.setenv("GIT_AUTHOR_EMAIL", "t@t")
    monkeypatch.setenv("GIT_COMMITTER_NAME", "test")
    monkeypatch.setenv("GIT_COMMITTER_EMAIL", "t@t")
    monkeypatch.setenv("GIT_CONFIG_COUNT", "1")
    monkeypatch.setenv("GIT_CONFIG_KEY_0", "protocol.file.allow")
    monkeypatch.setenv("GIT_CONFIG_VALUE_0", "always")
    for var in ("MODKEEPER_CONFIG", "MODKEEPER_GIT", "MODKEEPER_LOCK_TIMEOUT",
                "MODKEEPER_COMMAND_TIMEOUT"):
        monkeypatch.delenv(var, raising=False)
    return home


@pytest.fixture
def make_repo(tmp_path):
    """Factory for a repository on ``main`` with one commit per file mapping."""

    def _make(name: str, *commits: dict[str, str]) -> Path:
        repo = tmp_path / "remotes" / name
        repo.mkdir(parents=True)
        git(repo, "init", "-q", "-b", "main")
        for i, files in enumerate(commits or ({"README.md": f"# {name}\n"},)):
            for rel, content in files.items():
                target = repo / rel
                target.parent.mkdir(parents=True, exist_ok=True)
                target.write_text(content)
            git(repo, "add", ".")
            git(repo, "commit", "-q", "-m", f"commit {i}")
        return repo

    return _make


@pytest.fixture
def upstream(make_repo):
    """A library repository with two commits on ``main``."""
    return make_repo("foo", {"foo.txt": "one\n"}, {"foo.txt": "two\n"})


@pytest.fixture
def superproject(tmp_path):
    """An empty superproject with one commit."""
    repo = tmp_path / "super"
    repo.mkdir()
    git(repo, "init", "-q", "-b", "main")
    (repo / "README.md").write_text("# super\n")
    git(repo, "add", ".")
    git(repo, "commit", "-q", "-m", "init")
    return repo


@pytest.fixture
def with_foo(superproject, upstream):
    """Superproject with ``foo`` added at ``libs/foo`` through git and committed."""
    git(superproject, "submodule", "add", "-b", "main", "--name", "foo",
        "--", str(upstream), "libs/foo")
    git(superproject, "commit", "-q", "-m", "add foo")
    return superproject
