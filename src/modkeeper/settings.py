"""Runtime settings.

Resolved from defaults, then an optional YAML file, then environment
variables, each layer overriding the previous one.

Environment variables:
    MODKEEPER_CONFIG — settings file (default: ~/.config/modkeeper/config.yaml)
    MODKEEPER_GIT — git executable (default: git)
    MODKEEPER_LOCK_TIMEOUT — seconds to wait for the repository lock (default: 10)
    MODKEEPER_COMMAND_TIMEOUT — seconds before a git command is killed (default: none)
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, fields
from pathlib import Path

import yaml

from modkeeper.errors import ConfigParseError
from modkeeper.git.gateway import GitGateway

logger = logging.getLogger(__name__)

_DEFAULT_CONFIG_SUBPATH = ".config/modkeeper/config.yaml"


@dataclass
class Settings:
    git_executable: str = "git"
    lock_timeout: float = 10.0
    command_timeout: float | None = None
    recursive: bool = True
    depth: int | None = None

    def gateway(self) -> GitGateway:
        return GitGateway(
            executable=self.git_executable,
            timeout=self.command_timeout,
            env={"GIT_TERMINAL_PROMPT": "0"},
        )


def config_path() -> Path:
    """Return the settings file location."""
    env = os.environ.get("MODKEEPER_CONFIG")
    if env:
        return Path(env).expanduser()
    return Path.home() / _DEFAULT_CONFIG_SUBPATH


def _number(value, key: str, integer: bool = False):
    if value is None:
        return None
    try:
        return int(value) if integer else float(value)
    except (TypeError, ValueError) as e:
        raise ConfigParseError(f"{key}: expected a number, got {value!r}") from e


def read_settings_file(path: Path | str) -> dict:
    """Read a settings YAML file; a missing file yields an empty dict.

    Raises:
        ConfigParseError: If the file is not a YAML mapping.
    """
    settings_path = Path(path)
    if not settings_path.is_file():
        return {}
    try:
        with open(settings_path) as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigParseError(f"{settings_path}: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigParseError(f"{settings_path} is not a YAML mapping")

    known = {f.name for f in fields(Settings)}
    unknown = sorted(set(data) - known)
    if unknown:
        logger.warning("Ignoring unknown settings in %s: %s", settings_path, ", ".join(unknown))
    return {k: v for k, v in data.items() if k in known}


def load_settings(path: Path | str | None = None) -> Settings:
    """Build Settings from defaults, the settings file and the environment.

    Raises:
        ConfigParseError: On an unreadable file or a malformed value.
    """
    data = read_settings_file(path if path is not None else config_path())

    env = os.environ
    if env.get("MODKEEPER_GIT"):
        data["git_executable"] = env["MODKEEPER_GIT"]
    if env.get("MODKEEPER_LOCK_TIMEOUT"):
        data["lock_timeout"] = env["MODKEEPER_LOCK_TIMEOUT"]
    if env.get("MODKEEPER_COMMAND_TIMEOUT"):
        data["command_timeout"] = env["MODKEEPER_COMMAND_TIMEOUT"]

    settings = Settings()
    if "git_executable" in data:
        settings.git_executable = str(data["git_executable"])
    if "lock_timeout" in data:
        settings.lock_timeout = _number(data["lock_timeout"], "lock_timeout")
        if settings.lock_timeout is None:
            settings.lock_timeout = -1.0
    if "command_timeout" in data:
        settings.command_timeout = _number(data["command_timeout"], "command_timeout")
    if "recursive" in data:
        settings.recursive = bool(data["recursive"])
    if "depth" in data:
        settings.depth = _number(data["depth"], "depth", integer=True)
    return settings
