"""Exception hierarchy for modkeeper.

Parse and lock errors abort a whole run before anything is mutated.
Gateway errors raised while executing an action are caught per submodule
and surface in that submodule's report instead.
"""

from __future__ import annotations

from pathlib import Path
from typing import Sequence


class ModkeeperError(Exception):
    """Base class for every error modkeeper raises on purpose."""


class GatewayError(ModkeeperError):
    """A git subprocess could not be spawned or finished unsuccessfully."""

    def __init__(
        self,
        message: str,
        args: Sequence[str] = (),
        exit_code: int | None = None,
        stderr: str = "",
    ) -> None:
        self.argv = tuple(args)
        self.exit_code = exit_code
        self.stderr = stderr
        detail = message
        if stderr.strip():
            detail = f"{message}: {stderr.strip()}"
        super().__init__(detail)


class VersionParseError(ModkeeperError):
    """`git --version` printed something we do not recognize."""


class ManifestParseError(ModkeeperError):
    """`.gitmodules` is malformed or breaks the uniqueness invariants."""

    def __init__(self, message: str, source: Path | str | None = None, line: int | None = None) -> None:
        self.source = str(source) if source is not None else None
        self.line = line
        where = ""
        if self.source and line:
            where = f"{self.source}:{line}: "
        elif self.source:
            where = f"{self.source}: "
        super().__init__(f"{where}{message}")


class ConfigParseError(ModkeeperError):
    """The local git config or the settings file cannot be read."""


class ConflictError(ModkeeperError):
    """A new submodule collides with an existing name or path."""


class LockError(ModkeeperError):
    """Another invocation holds the repository lock."""


class DestructiveRefusedError(ModkeeperError):
    """The operation would discard local changes and force was not given."""


class SubmoduleNotFoundError(ModkeeperError):
    """No submodule with the requested name exists anywhere in the repository."""
