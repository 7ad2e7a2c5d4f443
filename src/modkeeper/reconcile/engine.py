"""Execute planned actions and report what happened per submodule.

A failure stops the remaining actions of that submodule only. Whatever
already ran stays done, so the next ``status`` shows the partial state and
the same command can be repeated to finish the job.
"""

from __future__ import annotations

import logging
import shutil
from dataclasses import dataclass, field
from typing import Callable, Iterable, Sequence

from modkeeper.errors import DestructiveRefusedError, GatewayError, ModkeeperError
from modkeeper.git.superproject import Superproject
from modkeeper.manifest.gitmodules import Manifest
from modkeeper.manifest.local_config import LocalConfig
from modkeeper.reconcile.actions import Action, ActionKind
from modkeeper.reconcile.planner import Plan
from modkeeper.state.model import SubmoduleRecord, SubmoduleStatus

logger = logging.getLogger(__name__)


def _short(sha: str | None) -> str | None:
    return sha[:7] if sha else None


@dataclass
class SubmoduleReport:
    """Outcome for one submodule."""

    name: str | None
    path: str | None
    status: SubmoduleStatus
    actions: list[Action] = field(default_factory=list)
    error: str | None = None
    warning: str | None = None
    url: str | None = None
    branch: str | None = None
    index_commit: str | None = None
    checked_out_commit: str | None = None

    @classmethod
    def from_record(cls, record: SubmoduleRecord, **kwargs) -> "SubmoduleReport":
        return cls(
            name=record.name,
            path=record.path,
            status=record.status,
            url=record.url,
            branch=record.branch,
            index_commit=record.index_commit,
            checked_out_commit=record.checked_out_commit,
            **kwargs,
        )

    @property
    def label(self) -> str:
        return self.name or self.path or "<unknown>"

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def action_taken(self) -> str | None:
        if not self.actions:
            return None
        return ", ".join(a.describe() for a in self.actions)

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "path": self.path,
            "status": str(self.status),
            "action_taken": self.action_taken,
            "error": self.error,
            "warning": self.warning,
            "url": self.url,
            "branch": self.branch,
            "index_commit": _short(self.index_commit),
            "checked_out_commit": _short(self.checked_out_commit),
        }


def _clear_directory(directory) -> None:
    for child in directory.iterdir():
        if child.is_dir() and not child.is_symlink():
            shutil.rmtree(child)
        else:
            child.unlink()


def _rmdir_if_empty(directory) -> bool:
    if directory.is_dir() and not any(directory.iterdir()):
        directory.rmdir()
        return True
    return False


class Reconciler:
    """Runs actions against one superproject.

    The manifest instance is shared with the caller and updated in place as
    manifest actions run.
    """

    def __init__(
        self,
        superproject: Superproject,
        manifest: Manifest,
        local_config: LocalConfig | None = None,
    ) -> None:
        self.superproject = superproject
        self.manifest = manifest
        self.local_config = local_config or LocalConfig(superproject)
        self._handlers: dict[ActionKind, Callable[[Action], None]] = {
            ActionKind.CLONE: self._clone,
            ActionKind.CHECKOUT: self._checkout,
            ActionKind.FETCH_AND_CHECKOUT: self._fetch_and_checkout,
            ActionKind.DEINITIALIZE: self._deinitialize,
            ActionKind.PURGE_GIT_DIR: self._purge_git_dir,
            ActionKind.WRITE_MANIFEST_ENTRY: self._write_manifest_entry,
            ActionKind.REMOVE_MANIFEST_ENTRY: self._remove_manifest_entry,
            ActionKind.WRITE_CONFIG_OVERRIDE: self._write_config_override,
        }

    # ── Batches ──────────────────────────────────────────────────

    def apply(
        self,
        record: SubmoduleRecord,
        actions: Sequence[Action],
        warning: str | None = None,
    ) -> SubmoduleReport:
        """Run ``actions`` for ``record`` in order, stopping at the first failure."""
        report = SubmoduleReport.from_record(record, warning=warning)
        dirty = record.probe is not None and record.probe.has_local_changes
        for action in actions:
            try:
                if dirty and action.destructive and not action.force:
                    raise DestructiveRefusedError(
                        f"refusing to {action.kind} {record.label}: {record.issue}"
                    )
                self._handlers[action.kind](action)
            except (ModkeeperError, OSError) as e:
                logger.warning("%s failed for %s: %s", action.kind, record.label, e)
                report.error = f"{action.kind}: {e}"
                break
            report.actions.append(action)
            logger.info("%s: %s", record.label, action.describe())
        return report

    def apply_plan(self, record: SubmoduleRecord, plan: Plan) -> SubmoduleReport:
        if plan.error:
            return SubmoduleReport.from_record(record, error=plan.error, warning=plan.warning)
        if plan.warning:
            logger.warning("%s: %s", record.label, plan.warning)
        return self.apply(record, plan.actions, warning=plan.warning)

    def apply_all(
        self,
        records: Iterable[SubmoduleRecord],
        planner: Callable[[SubmoduleRecord], Plan],
    ) -> list[SubmoduleReport]:
        """Plan and apply every record; one submodule's failure never stops the rest."""
        reports = []
        for record in records:
            try:
                plan = planner(record)
            except ModkeeperError as e:
                reports.append(SubmoduleReport.from_record(record, error=str(e)))
                continue
            reports.append(self.apply_plan(record, plan))
        return reports

    # ── Handlers ─────────────────────────────────────────────────

    def _require_path(self, action: Action) -> str:
        if not action.path:
            raise ModkeeperError(f"{action.kind} needs a submodule path")
        return action.path

    def _clone(self, action: Action) -> None:
        sp = self.superproject
        path = self._require_path(action)
        if path in sp.gitlinks():
            args = ["submodule", "update", "--init"]
            if action.force:
                args.append("--force")
            if action.depth:
                args += ["--depth", str(action.depth)]
            sp.git(*args, "--", path).check()
        else:
            if not action.url or not action.name:
                raise ModkeeperError(f"cannot clone {path}: no url recorded")
            _rmdir_if_empty(sp.worktree(path))
            args = ["submodule", "add", "--force", "--name", action.name]
            if action.branch:
                args += ["-b", action.branch]
            if action.depth:
                args += ["--depth", str(action.depth)]
            sp.git(*args, "--", action.url, path).check()
            # git rewrote .gitmodules itself
            self.manifest = Manifest.load(sp.gitmodules_path)
        if action.name:
            self.local_config.set_active(action.name)

    def _checkout(self, action: Action) -> None:
        sp = self.superproject
        path = self._require_path(action)
        args = ["submodule", "update", "--checkout"]
        if action.force:
            args.append("--force")
        sp.git(*args, "--", path).check()
        head = sp.git_in(path, "rev-parse", "HEAD").check().first_line()
        if action.commit and head != action.commit:
            raise GatewayError(f"{path} is at {_short(head)} after checkout, expected {_short(action.commit)}")

    def _fetch_and_checkout(self, action: Action) -> None:
        sp = self.superproject
        path = self._require_path(action)
        ref = action.branch or "HEAD"
        sp.git_in(path, "fetch", "origin", ref).check()
        sha = sp.git_in(path, "rev-parse", "FETCH_HEAD").check().first_line()
        args = ["checkout", "--detach"]
        if action.force:
            args.append("--force")
        sp.git_in(path, *args, sha).check()
        sp.stage(path)
        logger.debug("%s now at %s from %s", path, _short(sha), ref)

    def _deinitialize(self, action: Action) -> None:
        sp = self.superproject
        path = action.path
        gitlinks = sp.gitlinks()
        if path and path in gitlinks and action.name in self.manifest:
            args = ["submodule", "deinit"]
            if action.force:
                args.append("--force")
            sp.git(*args, "--", path).check()
        elif path:
            worktree = sp.worktree(path)
            dotgit = worktree / ".git"
            if dotgit.is_dir() and not action.force:
                raise DestructiveRefusedError(
                    f"{path} holds its own .git directory; pass --force to delete it"
                )
            if dotgit.exists():
                _clear_directory(worktree)
            if path not in gitlinks:
                _rmdir_if_empty(worktree)
        if action.name:
            self.local_config.remove_section(action.name)

    def _purge_git_dir(self, action: Action) -> None:
        sp = self.superproject
        if not action.name:
            raise ModkeeperError("cannot purge a git dir without a submodule name")
        module_dir = sp.module_dir(action.name)
        if not module_dir.is_dir():
            return
        if action.path:
            worktree = sp.worktree(action.path)
            if worktree.is_dir() and any(worktree.iterdir()):
                raise DestructiveRefusedError(
                    f"{action.path} is still checked out from {module_dir}; deinitialize it first"
                )
        shutil.rmtree(module_dir)
        parent = module_dir.parent
        while parent != sp.modules_dir and _rmdir_if_empty(parent):
            parent = parent.parent

    def _write_manifest_entry(self, action: Action) -> None:
        if action.spec is None:
            raise ModkeeperError("WriteManifestEntry needs a submodule spec")
        if self.manifest.upsert(action.spec):
            self.manifest.save(self.superproject.gitmodules_path)
            self.superproject.stage(".gitmodules")

    def _remove_manifest_entry(self, action: Action) -> None:
        sp = self.superproject
        if action.name and self.manifest.remove(action.name):
            self.manifest.save(sp.gitmodules_path)
            sp.stage(".gitmodules")
        if action.path:
            if action.path in sp.gitlinks():
                sp.unstage_gitlink(action.path)
            _rmdir_if_empty(sp.worktree(action.path))

    def _write_config_override(self, action: Action) -> None:
        if not action.name:
            raise ModkeeperError("WriteConfigOverride needs a submodule name")
        if action.clear:
            self.local_config.remove_section(action.name)
            return
        if action.url:
            self.local_config.set_url(action.name, action.url)
            if action.path and (self.superproject.worktree(action.path) / ".git").exists():
                self.superproject.git_in(action.path, "remote", "set-url", "origin", action.url).check()
        if action.branch:
            self.local_config.set_branch(action.name, action.branch)
