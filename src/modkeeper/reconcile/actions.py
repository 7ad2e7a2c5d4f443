"""Corrective actions the planner emits and the engine executes."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from modkeeper.state.model import SubmoduleSpec


class ActionKind(str, Enum):
    CLONE = "Clone"
    CHECKOUT = "Checkout"
    FETCH_AND_CHECKOUT = "FetchAndCheckout"
    DEINITIALIZE = "Deinitialize"
    PURGE_GIT_DIR = "PurgeGitDir"
    WRITE_MANIFEST_ENTRY = "WriteManifestEntry"
    REMOVE_MANIFEST_ENTRY = "RemoveManifestEntry"
    WRITE_CONFIG_OVERRIDE = "WriteConfigOverride"

    def __str__(self) -> str:
        return self.value


# Kinds that can throw away work in a submodule's work tree or git dir.
DESTRUCTIVE_KINDS = frozenset({
    ActionKind.CHECKOUT,
    ActionKind.FETCH_AND_CHECKOUT,
    ActionKind.DEINITIALIZE,
    ActionKind.PURGE_GIT_DIR,
})


@dataclass(frozen=True)
class Action:
    """One step against one submodule.

    Only the fields relevant to ``kind`` are set: ``commit`` for
    Checkout, ``branch`` for FetchAndCheckout, ``spec`` for
    WriteManifestEntry, ``url``/``branch``/``clear`` for
    WriteConfigOverride, ``url``/``branch``/``depth`` for Clone.
    """

    kind: ActionKind
    name: str | None
    path: str | None
    commit: str | None = None
    branch: str | None = None
    url: str | None = None
    depth: int | None = None
    spec: SubmoduleSpec | None = None
    clear: bool = False
    force: bool = False

    @property
    def destructive(self) -> bool:
        return self.kind in DESTRUCTIVE_KINDS

    def describe(self) -> str:
        kind = self.kind
        if kind is ActionKind.CLONE:
            text = "cloned"
        elif kind is ActionKind.CHECKOUT:
            text = f"checked out {self.commit[:7]}" if self.commit else "checked out"
        elif kind is ActionKind.FETCH_AND_CHECKOUT:
            text = f"fetched {self.branch or 'HEAD'}"
        elif kind is ActionKind.DEINITIALIZE:
            text = "deinitialized"
        elif kind is ActionKind.PURGE_GIT_DIR:
            text = "purged .git/modules"
        elif kind is ActionKind.WRITE_MANIFEST_ENTRY:
            text = "wrote .gitmodules"
        elif kind is ActionKind.REMOVE_MANIFEST_ENTRY:
            text = "removed from .gitmodules"
        elif self.clear:
            text = "cleared config"
        else:
            changed = [k for k, v in (("url", self.url), ("branch", self.branch)) if v]
            text = f"set config {'/'.join(changed)}" if changed else "set config"
        return f"{text} (forced)" if self.force else text


def clone(name: str, path: str, url: str | None = None, branch: str | None = None,
          depth: int | None = None, force: bool = False) -> Action:
    return Action(ActionKind.CLONE, name, path, url=url, branch=branch, depth=depth, force=force)


def checkout(name: str | None, path: str, commit: str, force: bool = False) -> Action:
    return Action(ActionKind.CHECKOUT, name, path, commit=commit, force=force)


def fetch_and_checkout(name: str, path: str, branch: str | None, force: bool = False) -> Action:
    return Action(ActionKind.FETCH_AND_CHECKOUT, name, path, branch=branch, force=force)


def deinitialize(name: str | None, path: str | None, force: bool = False) -> Action:
    return Action(ActionKind.DEINITIALIZE, name, path, force=force)


def purge_git_dir(name: str, path: str | None, force: bool = False) -> Action:
    return Action(ActionKind.PURGE_GIT_DIR, name, path, force=force)


def write_manifest_entry(spec: SubmoduleSpec) -> Action:
    return Action(ActionKind.WRITE_MANIFEST_ENTRY, spec.name, spec.path, spec=spec)


def remove_manifest_entry(name: str | None, path: str | None) -> Action:
    return Action(ActionKind.REMOVE_MANIFEST_ENTRY, name, path)


def write_config_override(name: str, path: str | None, url: str | None = None,
                          branch: str | None = None, clear: bool = False) -> Action:
    return Action(ActionKind.WRITE_CONFIG_OVERRIDE, name, path, url=url, branch=branch, clear=clear)
