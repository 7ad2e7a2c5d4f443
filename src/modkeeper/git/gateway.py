"""Subprocess gateway to the git executable.

The gateway never interprets command output. It reports the exit code and
both captured streams, and leaves it to each call site to decide whether a
non-zero exit is fatal (``rev-parse HEAD`` in a fresh clone is expected to
fail, for instance).
"""

from __future__ import annotations

import logging
import os
import re
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Sequence

from packaging.specifiers import SpecifierSet
from packaging.version import InvalidVersion, Version

from modkeeper.errors import GatewayError, VersionParseError

logger = logging.getLogger(__name__)

# Not enforced at run time; older versions often work fine.
SUPPORTED_GIT_VERSIONS = SpecifierSet(">=2.35.0")

_VERSION_RE = re.compile(r"^git version (\d+(?:\.\d+){1,2})")


@dataclass(frozen=True)
class GitResult:
    """Outcome of one git invocation."""

    args: tuple[str, ...]
    exit_code: int
    stdout: str
    stderr: str

    @property
    def ok(self) -> bool:
        return self.exit_code == 0

    def lines(self) -> list[str]:
        return [line for line in self.stdout.splitlines() if line.strip()]

    def first_line(self) -> str | None:
        lines = self.lines()
        return lines[0].strip() if lines else None

    def check(self) -> "GitResult":
        """Raise GatewayError unless the command exited with 0."""
        if not self.ok:
            raise GatewayError(
                f"`{format_command(self.args)}` exited with {self.exit_code}",
                args=self.args,
                exit_code=self.exit_code,
                stderr=self.stderr,
            )
        return self


def format_command(args: Sequence[str]) -> str:
    """Render an argument vector for log and error messages."""
    return " ".join(f"'{a}'" if (" " in a or not a) else a for a in args)


def parse_git_version(text: str) -> Version:
    """Parse the output of ``git --version``.

    Distribution suffixes (``2.43.0.windows.1``, ``2.39.3 (Apple Git-145)``)
    are dropped.

    Raises:
        VersionParseError: If the text does not start with ``git version``.
    """
    match = _VERSION_RE.match(text.strip())
    if not match:
        raise VersionParseError(f"unrecognized git version output: {text.strip()!r}")
    try:
        return Version(match.group(1))
    except InvalidVersion as e:
        raise VersionParseError(f"unrecognized git version: {match.group(1)!r}") from e


def is_supported(version: Version) -> bool:
    return version in SUPPORTED_GIT_VERSIONS


class GitGateway:
    """Runs git with an argument vector in a working directory."""

    def __init__(
        self,
        executable: str = "git",
        timeout: float | None = None,
        env: Mapping[str, str] | None = None,
    ) -> None:
        self.executable = executable
        self.timeout = timeout
        self.env = dict(env) if env else {}

    def run(self, args: Sequence[str], cwd: Path | str) -> GitResult:
        """Run ``git <args>`` in ``cwd`` and capture its output.

        Raises:
            GatewayError: If the process cannot be spawned or times out.
        """
        argv = (self.executable, *args)
        logger.debug("Running `%s` in %s", format_command(argv), cwd)
        env = None
        if self.env:
            env = {**os.environ, **self.env}
        try:
            proc = subprocess.run(
                list(argv),
                cwd=cwd,
                capture_output=True,
                text=True,
                timeout=self.timeout,
                env=env,
            )
        except FileNotFoundError as e:
            if not Path(cwd).is_dir():
                raise GatewayError(f"working directory does not exist: {cwd}", args=argv) from e
            raise GatewayError(f"{self.executable} is not installed or not in PATH", args=argv) from e
        except subprocess.TimeoutExpired as e:
            raise GatewayError(
                f"`{format_command(argv)}` timed out after {self.timeout}s", args=argv,
            ) from e
        except OSError as e:
            raise GatewayError(f"failed to spawn `{format_command(argv)}`: {e}", args=argv) from e

        logger.debug("Git command finished with exit code %d", proc.returncode)
        if proc.returncode != 0 and proc.stderr.strip():
            logger.debug("git stderr: %s", proc.stderr.strip())
        return GitResult(
            args=tuple(argv),
            exit_code=proc.returncode,
            stdout=proc.stdout,
            stderr=proc.stderr,
        )

    def version(self) -> Version:
        """Probe ``git --version``.

        Raises:
            GatewayError: If git cannot run.
            VersionParseError: If the output has an unexpected shape.
        """
        result = self.run(["--version"], cwd=Path.cwd()).check()
        return parse_git_version(result.stdout)
