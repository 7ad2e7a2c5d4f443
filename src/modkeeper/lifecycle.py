"""Submodule lifecycle operations.

Each operation discovers the superproject, takes the repository lock for the
whole pass, snapshots the manifest, local config and work trees, and only
then plans and applies actions.
"""

from __future__ import annotations

import dataclasses
import logging
from pathlib import Path

from packaging.version import Version

from modkeeper.errors import ConflictError, ModkeeperError, SubmoduleNotFoundError
from modkeeper.git.gateway import is_supported
from modkeeper.git.lock import repository_lock
from modkeeper.git.superproject import Superproject
from modkeeper.manifest.gitmodules import Manifest, normalize_path, paths_overlap
from modkeeper.manifest.local_config import LocalConfig
from modkeeper.reconcile import actions as act
from modkeeper.reconcile.engine import Reconciler, SubmoduleReport
from modkeeper.reconcile.planner import plan_fix, plan_install, plan_remove, plan_update
from modkeeper.settings import Settings, load_settings
from modkeeper.state.model import SubmoduleRecord, SubmoduleSpec, SubmoduleStatus
from modkeeper.state.probe import collect_records, find_record, probe_working_tree

logger = logging.getLogger(__name__)


def _open(workdir: Path | str, settings: Settings | None) -> tuple[Superproject, Settings]:
    settings = settings or load_settings()
    return Superproject.discover(workdir, settings.gateway()), settings


def _snapshot(sp: Superproject, include_untracked: bool = False, scan_modules: bool = False):
    manifest = Manifest.load(sp.gitmodules_path)
    local_config = LocalConfig(sp)
    records = collect_records(
        sp, manifest, local_config.read(),
        include_untracked=include_untracked, scan_modules=scan_modules,
    )
    return manifest, local_config, records


def status(
    workdir: Path | str,
    all: bool = False,
    fix: bool = False,
    force: bool = False,
    settings: Settings | None = None,
) -> list[SubmoduleReport]:
    """Report every submodule and, with ``fix``, apply the safe repairs.

    Args:
        workdir: Any directory inside the superproject.
        all: Also count untracked files, scan every ``.git/modules`` entry
            and report gitlinks no submodule claims.
        fix: Run the fix plan for each submodule.
        force: Let ``fix`` discard local changes.
    """
    sp, settings = _open(workdir, settings)
    with repository_lock(sp.lock_path, settings.lock_timeout):
        # untracked files count whenever fix may empty a work tree
        manifest, local_config, records = _snapshot(
            sp, include_untracked=all or fix, scan_modules=all,
        )
        if not fix:
            return [
                SubmoduleReport.from_record(
                    r, warning=None if r.status is SubmoduleStatus.UP_TO_DATE else r.issue,
                )
                for r in records
            ]
        reconciler = Reconciler(sp, manifest, local_config)
        return reconciler.apply_all(records, lambda r: plan_fix(r, force=force))


def _nested_install(
    sp: Superproject,
    reports: list[SubmoduleReport],
    settings: Settings,
    force: bool,
    depth: int | None,
) -> list[SubmoduleReport]:
    nested: list[SubmoduleReport] = []
    for report in reports:
        if report.error or not report.path:
            continue
        worktree = sp.worktree(report.path)
        if not (worktree / ".gitmodules").is_file() or not (worktree / ".git").exists():
            continue
        logger.debug("Installing nested submodules of %s", report.path)
        try:
            children = _install(worktree, settings, force, depth, recursive=True)
        except ModkeeperError as e:
            nested.append(dataclasses.replace(
                report, actions=[], warning=None, error=f"nested install: {e}",
            ))
            continue
        for child in children:
            child.path = f"{report.path}/{child.path}" if child.path else report.path
            nested.append(child)
    return nested


def _install(
    workdir: Path,
    settings: Settings,
    force: bool,
    depth: int | None,
    recursive: bool,
) -> list[SubmoduleReport]:
    sp = Superproject.discover(workdir, settings.gateway())
    with repository_lock(sp.lock_path, settings.lock_timeout):
        manifest, local_config, records = _snapshot(sp)
        reconciler = Reconciler(sp, manifest, local_config)
        reports = reconciler.apply_all(
            records, lambda r: plan_install(r, force=force, depth=depth),
        )
    if recursive:
        reports += _nested_install(sp, reports, settings, force, depth)
    return reports


def install(
    workdir: Path | str,
    recursive: bool | None = None,
    force: bool = False,
    depth: int | None = None,
    settings: Settings | None = None,
) -> list[SubmoduleReport]:
    """Bring every declared submodule to the commit recorded in the index.

    Nested submodules are installed too unless ``recursive`` is False; their
    reports carry ``<parent path>/<child path>`` paths.
    """
    settings = settings or load_settings()
    if recursive is None:
        recursive = settings.recursive
    if depth is None:
        depth = settings.depth
    return _install(Path(workdir), settings, force, depth, recursive)


def add(
    workdir: Path | str,
    url: str,
    path: str,
    branch: str | None = None,
    name: str | None = None,
    depth: int | None = None,
    force: bool = False,
    settings: Settings | None = None,
) -> SubmoduleReport:
    """Declare a new submodule and clone it.

    ``path`` is relative to ``workdir``.

    Raises:
        ConflictError: If the name or path is taken, or the path is a
            non-empty directory and ``force`` is not set.
    """
    sp, settings = _open(workdir, settings)
    if depth is None:
        depth = settings.depth
    relative = sp.relative(Path(workdir).expanduser().resolve() / path)
    if relative is None or relative in ("", "."):
        raise ConflictError(f"{path} is not inside the work tree of {sp.top_level}")
    try:
        relative = normalize_path(relative)
    except ValueError as e:
        raise ConflictError(str(e)) from e
    name = name or relative

    with repository_lock(sp.lock_path, settings.lock_timeout):
        manifest, local_config, records = _snapshot(sp)
        if name in manifest:
            raise ConflictError(f"submodule {name!r} already exists in .gitmodules")
        for spec in manifest:
            if paths_overlap(relative, spec.path):
                raise ConflictError(f"path {relative!r} overlaps submodule {spec.name!r} at {spec.path!r}")
        if relative in sp.gitlinks():
            raise ConflictError(f"{relative} is already a gitlink in the index")
        worktree = sp.worktree(relative)
        if worktree.exists() and not force:
            if not worktree.is_dir() or any(worktree.iterdir()):
                raise ConflictError(f"{relative} already exists and is not empty; pass --force to use it")

        spec = SubmoduleSpec(name=name, path=relative, url=url, branch=branch)
        existing = find_record(records, name)
        record = SubmoduleRecord(
            name=name,
            path=relative,
            spec=spec,
            config=existing.config if existing else None,
            probe=probe_working_tree(sp, relative, name, None),
        )
        reconciler = Reconciler(sp, manifest, local_config)
        report = reconciler.apply(record, [
            act.write_manifest_entry(spec),
            act.clone(name, relative, url=url, branch=branch, depth=depth, force=force),
        ])

    if report.ok and settings.recursive:
        nested = _nested_install(sp, [report], settings, force, depth)
        if any(r.error for r in nested):
            report.warning = "some nested submodules failed to install"
    return report


def update(
    workdir: Path | str,
    name: str | None = None,
    branch: str | None = None,
    url: str | None = None,
    force: bool = False,
    settings: Settings | None = None,
) -> list[SubmoduleReport]:
    """Move submodules to the tip of their tracked branch.

    With ``branch`` or ``url`` the manifest entry of ``name`` is rewritten
    first; that change stays even when the fetch that follows fails.

    Raises:
        ValueError: If ``branch`` or ``url`` is given without ``name``.
        SubmoduleNotFoundError: If ``name`` matches no submodule.
    """
    if (branch or url) and not name:
        raise ValueError("a submodule name is required to change its branch or url")

    sp, settings = _open(workdir, settings)
    with repository_lock(sp.lock_path, settings.lock_timeout):
        manifest, local_config, records = _snapshot(sp)
        reconciler = Reconciler(sp, manifest, local_config)

        if name is None:
            return reconciler.apply_all(records, lambda r: plan_update(r, force=force))

        record = find_record(records, name)
        if record is None:
            raise SubmoduleNotFoundError(f"no submodule named {name!r}")
        if not (branch or url):
            return reconciler.apply_all([record], lambda r: plan_update(r, force=force))

        if record.spec is None:
            raise SubmoduleNotFoundError(f"submodule {name!r} is not declared in .gitmodules")

        spec = dataclasses.replace(
            record.spec, branch=branch or record.spec.branch, url=url or record.spec.url,
        )
        steps = [act.write_manifest_entry(spec)]
        config = record.config
        override_url = url if config is not None else None
        override_branch = branch if config is not None and config.branch_override else None
        if override_url or override_branch:
            steps.append(act.write_config_override(
                spec.name, spec.path, url=override_url, branch=override_branch,
            ))
            config = dataclasses.replace(
                config,
                url_override=override_url or config.url_override,
                branch_override=override_branch or config.branch_override,
            )

        target = dataclasses.replace(record, spec=spec, config=config)
        plan = plan_update(target, force=force)
        report = reconciler.apply(record, steps + list(plan.actions), warning=plan.warning)
        if plan.error and report.ok:
            report.error = plan.error
        report.url, report.branch = target.url, target.branch
        return [report]


def remove(
    workdir: Path | str,
    name: str,
    force: bool = False,
    settings: Settings | None = None,
) -> SubmoduleReport:
    """Erase a submodule from the manifest, config, ``.git/modules`` and disk.

    Raises:
        SubmoduleNotFoundError: If ``name`` matches nothing.
        DestructiveRefusedError: If it has local changes and ``force`` is not set.
        ConflictError: If ``.git/modules`` serves a work tree at another path.
    """
    sp, settings = _open(workdir, settings)
    with repository_lock(sp.lock_path, settings.lock_timeout):
        manifest, local_config, records = _snapshot(sp, include_untracked=True, scan_modules=True)
        record = find_record(records, name)
        if record is None:
            raise SubmoduleNotFoundError(f"no submodule named {name!r}")
        plan = plan_remove(record, force=force)
        reconciler = Reconciler(sp, manifest, local_config)
        return reconciler.apply(record, plan.actions)


def git_version(settings: Settings | None = None) -> tuple[Version, bool]:
    """The installed git version and whether it is in the supported range."""
    settings = settings or load_settings()
    version = settings.gateway().version()
    return version, is_supported(version)
