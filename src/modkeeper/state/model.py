"""Per-submodule records merged from the manifest, local config and disk."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class SubmoduleStatus(str, Enum):
    """Consistency state of one submodule."""

    UP_TO_DATE = "UpToDate"
    BEHIND = "Behind"
    UNINITIALIZED = "Uninitialized"
    NOT_CLONED = "NotCloned"
    DIRTY = "Dirty"
    ORPHANED = "Orphaned"
    INCONSISTENT = "Inconsistent"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class SubmoduleSpec:
    """A ``[submodule "<name>"]`` section of ``.gitmodules``."""

    name: str
    path: str
    url: str
    branch: str | None = None


@dataclass(frozen=True)
class SubmoduleConfig:
    """The ``submodule.<name>.*`` keys of the local git config."""

    name: str
    active: bool
    url_override: str | None = None
    branch_override: str | None = None


@dataclass(frozen=True)
class WorkingTreeProbe:
    """What git and the filesystem report for one submodule path."""

    path: str | None = None
    initialized: bool = False
    populated: bool = False
    is_repository: bool = False
    checked_out_commit: str | None = None
    index_commit: str | None = None
    is_dirty: bool = False
    has_untracked: bool = False
    module_valid: bool = False
    worktree_path: str | None = None

    @property
    def has_local_changes(self) -> bool:
        return self.is_dirty or self.has_untracked

    @property
    def relocated(self) -> bool:
        """``.git/modules/<name>`` serves a work tree other than ``path``."""
        return (
            self.path is not None
            and self.worktree_path is not None
            and self.worktree_path != self.path
        )


@dataclass(frozen=True)
class SubmoduleRecord:
    """Outer-join row keyed by name (or by path for nameless gitlinks)."""

    name: str | None
    path: str | None
    spec: SubmoduleSpec | None = None
    config: SubmoduleConfig | None = None
    probe: WorkingTreeProbe | None = None

    @property
    def status(self) -> SubmoduleStatus:
        from modkeeper.state.classify import classify

        return classify(self.spec, self.config, self.probe)

    @property
    def issue(self) -> str:
        from modkeeper.state.classify import explain

        return explain(self.spec, self.config, self.probe)

    @property
    def label(self) -> str:
        return self.name or self.path or "<unknown>"

    @property
    def url(self) -> str | None:
        """The resolved URL: local override first, then the manifest."""
        if self.config and self.config.url_override:
            return self.config.url_override
        return self.spec.url if self.spec else None

    @property
    def branch(self) -> str | None:
        if self.config and self.config.branch_override:
            return self.config.branch_override
        return self.spec.branch if self.spec else None

    @property
    def index_commit(self) -> str | None:
        return self.probe.index_commit if self.probe else None

    @property
    def checked_out_commit(self) -> str | None:
        return self.probe.checked_out_commit if self.probe else None
