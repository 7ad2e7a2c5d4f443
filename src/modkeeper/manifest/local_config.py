"""The submodule subset of the repository's local git config.

Everything goes through ``git config --local`` instead of parsing
``.git/config`` by hand, so include and conditional-include directives keep
working and git stays the only writer of that file's syntax.
"""

from __future__ import annotations

import logging

from modkeeper.errors import ConfigParseError
from modkeeper.git.superproject import Superproject
from modkeeper.state.model import SubmoduleConfig

logger = logging.getLogger(__name__)

_ERE_SPECIAL = set(".[]{}()\\*+?^$|")
_TRUE = {"true", "yes", "on", "1"}
_FALSE = {"false", "no", "off", "0", ""}


def parse_bool(value: str | None) -> bool:
    """Interpret a git config boolean; a bare key (None) means true."""
    if value is None:
        return True
    lowered = value.strip().lower()
    if lowered in _TRUE:
        return True
    if lowered in _FALSE:
        return False
    raise ConfigParseError(f"not a boolean value: {value!r}")


def _ere_escape(text: str) -> str:
    return "".join("\\" + c if c in _ERE_SPECIAL else c for c in text)


def split_key(key: str) -> tuple[str, str] | None:
    """Split ``submodule.<name>.<var>`` into (name, var).

    Names may contain dots, so the variable is the last segment. Keys
    without a name part (``submodule.recurse``) return None.
    """
    if not key.lower().startswith("submodule."):
        return None
    rest = key[len("submodule."):]
    name, dot, var = rest.rpartition(".")
    if not dot or not name:
        return None
    return name, var.lower()


class LocalConfig:
    """Reads and writes ``submodule.<name>.*`` in the local config."""

    def __init__(self, superproject: Superproject) -> None:
        self.superproject = superproject

    def _git_config(self, *args: str):
        return self.superproject.git("config", "--local", *args)

    def entries(self) -> list[tuple[str, str | None]]:
        """Raw ``(key, value)`` pairs under ``submodule.``, in file order.

        Raises:
            ConfigParseError: If git cannot read the config.
        """
        result = self._git_config("--includes", "-z", "--get-regexp", r"^submodule\.")
        if result.exit_code == 1:
            return []
        if not result.ok:
            raise ConfigParseError(
                f"cannot read submodule config: {result.stderr.strip() or result.exit_code}"
            )
        pairs: list[tuple[str, str | None]] = []
        for record in result.stdout.split("\0"):
            if not record:
                continue
            key, newline, value = record.partition("\n")
            pairs.append((key, value if newline else None))
        return pairs

    def read(self) -> dict[str, SubmoduleConfig]:
        """Every submodule with at least one key in the local config."""
        raw: dict[str, dict[str, str | None]] = {}
        for key, value in self.entries():
            parts = split_key(key)
            if parts is None:
                continue
            name, var = parts
            raw.setdefault(name, {})[var] = value

        configs = {}
        for name, values in raw.items():
            if "active" in values:
                try:
                    active = parse_bool(values["active"])
                except ConfigParseError as e:
                    raise ConfigParseError(f"submodule.{name}.active: {e}") from e
            else:
                # git treats a submodule with a url but no active flag as active
                active = bool(values.get("url"))
            configs[name] = SubmoduleConfig(
                name=name,
                active=active,
                url_override=values.get("url") or None,
                branch_override=values.get("branch") or None,
            )
        logger.debug("Found %d submodule(s) in local config", len(configs))
        return configs

    def has_section(self, name: str) -> bool:
        result = self._git_config("--get-regexp", rf"^submodule\.{_ere_escape(name)}\.")
        return result.ok

    def set_value(self, name: str, var: str, value: str) -> None:
        self._git_config(f"submodule.{name}.{var}", value).check()
        logger.info("Set submodule.%s.%s = %s", name, var, value)

    def unset(self, name: str, var: str) -> None:
        result = self._git_config("--unset-all", f"submodule.{name}.{var}")
        # exit 5: the key was not set
        if result.exit_code not in (0, 5):
            result.check()

    def set_active(self, name: str, active: bool = True) -> None:
        self.set_value(name, "active", "true" if active else "false")

    def set_url(self, name: str, url: str) -> None:
        self.set_value(name, "url", url)

    def set_branch(self, name: str, branch: str | None) -> None:
        if branch is None:
            self.unset(name, "branch")
        else:
            self.set_value(name, "branch", branch)

    def remove_section(self, name: str) -> bool:
        """Drop ``[submodule "<name>"]``; False when there was nothing to drop."""
        if not self.has_section(name):
            return False
        self._git_config("--remove-section", f"submodule.{name}").check()
        logger.info("Removed submodule.%s from local config", name)
        return True
