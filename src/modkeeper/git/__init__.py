"""Git module — subprocess gateway, superproject context and repository lock."""

from modkeeper.git.gateway import (
    SUPPORTED_GIT_VERSIONS,
    GitGateway,
    GitResult,
    is_supported,
    parse_git_version,
)
from modkeeper.git.lock import repository_lock
from modkeeper.git.superproject import Superproject

__all__ = [
    "SUPPORTED_GIT_VERSIONS",
    "GitGateway",
    "GitResult",
    "Superproject",
    "is_supported",
    "parse_git_version",
    "repository_lock",
]
