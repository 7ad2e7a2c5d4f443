"""Superproject context and the git plumbing modkeeper needs.

A :class:`Superproject` is resolved from any directory inside a work tree.
Every command that touches the superproject runs with the top-level
directory as its working directory, so paths are always top-level relative.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

from modkeeper.errors import GatewayError
from modkeeper.git.gateway import GitGateway, GitResult

logger = logging.getLogger(__name__)

GITLINK_MODE = "160000"
LOCK_FILE_NAME = "modkeeper.lock"


@dataclass(frozen=True)
class Superproject:
    """Resolved locations of the host repository."""

    top_level: Path
    git_dir: Path
    gateway: GitGateway

    @classmethod
    def discover(cls, workdir: Path | str, gateway: GitGateway | None = None) -> "Superproject":
        """Resolve the superproject containing ``workdir``.

        Raises:
            GatewayError: If ``workdir`` is not inside a git work tree.
        """
        gw = gateway or GitGateway()
        start = Path(workdir).expanduser().resolve()
        top = gw.run(["rev-parse", "--show-toplevel"], start)
        if not top.ok or not top.first_line():
            raise GatewayError(
                f"not inside a git work tree: {start}",
                args=top.args, exit_code=top.exit_code, stderr=top.stderr,
            )
        git_dir = gw.run(["rev-parse", "--absolute-git-dir"], start).check()
        top_level = Path(top.first_line()).resolve()
        return cls(top_level=top_level, git_dir=Path(git_dir.first_line()).resolve(), gateway=gw)

    # ── Locations ────────────────────────────────────────────────

    @property
    def gitmodules_path(self) -> Path:
        return self.top_level / ".gitmodules"

    @property
    def modules_dir(self) -> Path:
        return self.git_dir / "modules"

    @property
    def lock_path(self) -> Path:
        return self.git_dir / LOCK_FILE_NAME

    def module_dir(self, name: str) -> Path:
        return self.modules_dir / name

    def worktree(self, path: str) -> Path:
        return self.top_level / path

    def relative(self, path: Path) -> str | None:
        """Top-level relative POSIX path, or None when outside the work tree."""
        try:
            return path.resolve().relative_to(self.top_level).as_posix()
        except ValueError:
            return None

    # ── Plumbing ─────────────────────────────────────────────────

    def git(self, *args: str) -> GitResult:
        """Run git in the top-level directory."""
        return self.gateway.run(list(args), self.top_level)

    def git_in(self, path: str, *args: str) -> GitResult:
        """Run git inside the submodule work tree at ``path``."""
        return self.gateway.run(list(args), self.worktree(path))

    def gitlinks(self) -> dict[str, str]:
        """Map of path to commit for every gitlink in the index.

        The index covers both committed submodules and staged additions.
        """
        result = self.git("ls-files", "--stage", "-z").check()
        links: dict[str, str] = {}
        for entry in result.stdout.split("\0"):
            if not entry:
                continue
            meta, _, path = entry.partition("\t")
            parts = meta.split()
            if len(parts) < 2 or parts[0] != GITLINK_MODE:
                continue
            links.setdefault(path, parts[1])
        logger.debug("Found %d gitlink(s) in the index", len(links))
        return links

    def module_worktree(self, name: str) -> str | None:
        """Top-level relative work tree recorded in ``.git/modules/<name>/config``."""
        config = self.module_dir(name) / "config"
        if not config.is_file():
            return None
        result = self.gateway.run(
            ["config", "--file", str(config), "--get", "core.worktree"], self.top_level,
        )
        if not result.ok or not result.first_line():
            return None
        return self.relative(self.module_dir(name) / result.first_line())

    def stage(self, *paths: str) -> GitResult:
        return self.git("add", "--", *paths).check()

    def unstage_gitlink(self, path: str) -> GitResult:
        return self.git("update-index", "--force-remove", "--", path).check()
