"""Build merged submodule records from the manifest, config and disk.

The merge is an outer join keyed by submodule name. Gitlinks in the index
are attached by path; gitlinks no name claims become nameless records, but
only in ``scan_modules`` mode.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING

from modkeeper.git.superproject import Superproject
from modkeeper.state.model import (
    SubmoduleConfig,
    SubmoduleRecord,
    SubmoduleSpec,
    WorkingTreeProbe,
)

if TYPE_CHECKING:
    from modkeeper.manifest.gitmodules import Manifest

logger = logging.getLogger(__name__)


def find_module_names(modules_dir: Path) -> list[str]:
    """Every module directory under ``.git/modules``.

    A directory holding a ``config`` file is a module; its name is its
    path relative to ``modules_dir`` (names may contain slashes).
    Nested modules of a module are not descended into.
    """
    names: list[str] = []
    if not modules_dir.is_dir():
        logger.debug("%s does not exist", modules_dir)
        return names

    def _walk(directory: Path, prefix: str | None) -> None:
        if prefix is not None and (directory / "config").is_file():
            names.append(prefix)
            return
        try:
            children = sorted(p for p in directory.iterdir() if p.is_dir())
        except OSError as e:
            logger.debug("Cannot read %s: %s", directory, e)
            return
        for child in children:
            _walk(child, child.name if prefix is None else f"{prefix}/{child.name}")

    _walk(modules_dir, None)
    return names


def _is_valid_git_dir(path: Path) -> bool:
    return (path / "HEAD").is_file() and (path / "objects").is_dir()


def probe_working_tree(
    superproject: Superproject,
    path: str | None,
    name: str | None,
    index_commit: str | None,
    include_untracked: bool = False,
) -> WorkingTreeProbe:
    """Observe one submodule path without changing anything."""
    initialized = False
    module_valid = False
    worktree_path = None
    if name:
        module_dir = superproject.module_dir(name)
        initialized = module_dir.is_dir()
        module_valid = initialized and _is_valid_git_dir(module_dir)
        if initialized:
            worktree_path = superproject.module_worktree(name)

    if path is None:
        return WorkingTreeProbe(
            path=None,
            initialized=initialized,
            module_valid=module_valid,
            index_commit=index_commit,
            worktree_path=worktree_path,
        )

    if worktree_path is not None and worktree_path != path:
        logger.debug("%s: .git/modules work tree is %s, not %s", name, worktree_path, path)

    worktree = superproject.worktree(path)
    populated = worktree.is_dir() and any(worktree.iterdir())
    # without a .git entry git would walk up into the superproject
    is_repository = (worktree / ".git").exists()

    checked_out = None
    is_dirty = False
    has_untracked = False
    if is_repository:
        head = superproject.git_in(path, "rev-parse", "--verify", "-q", "HEAD")
        if head.ok:
            checked_out = head.first_line()
        else:
            logger.debug("No commit checked out in %s", path)

        untracked_mode = "--untracked-files=all" if include_untracked else "--untracked-files=no"
        status = superproject.git_in(path, "status", "--porcelain", untracked_mode)
        if status.ok:
            for line in status.lines():
                if line.startswith("??"):
                    has_untracked = True
                else:
                    is_dirty = True
        else:
            logger.warning("Cannot read status of %s: %s", path, status.stderr.strip())

    return WorkingTreeProbe(
        path=path,
        initialized=initialized,
        populated=populated,
        is_repository=is_repository,
        checked_out_commit=checked_out,
        index_commit=index_commit,
        is_dirty=is_dirty,
        has_untracked=has_untracked,
        module_valid=module_valid,
        worktree_path=worktree_path,
    )


def collect_records(
    superproject: Superproject,
    manifest: "Manifest",
    configs: dict[str, SubmoduleConfig],
    include_untracked: bool = False,
    scan_modules: bool = False,
) -> list[SubmoduleRecord]:
    """Outer-join manifest, config, ``.git/modules`` and index gitlinks.

    Order: manifest order first, then config-only names, then names only
    found in ``.git/modules``, then nameless gitlinks.

    Args:
        superproject: The host repository.
        manifest: Parsed ``.gitmodules``.
        configs: Local config entries by name.
        include_untracked: Count untracked files as residue.
        scan_modules: Walk all of ``.git/modules`` and report gitlinks
            nobody claims (the ``--all`` mode).
    """
    specs: dict[str, SubmoduleSpec] = {spec.name: spec for spec in manifest.specs}
    names: list[str] = list(specs)
    names += sorted(n for n in configs if n not in specs)
    if scan_modules:
        known = set(names)
        names += [n for n in find_module_names(superproject.modules_dir) if n not in known]

    gitlinks = superproject.gitlinks()
    claimed: set[str] = set()
    records: list[SubmoduleRecord] = []

    for name in names:
        spec = specs.get(name)
        path = spec.path if spec else superproject.module_worktree(name)
        index_commit = gitlinks.get(path) if path else None
        if path:
            claimed.add(path)
        probe = probe_working_tree(superproject, path, name, index_commit, include_untracked)
        records.append(SubmoduleRecord(
            name=name,
            path=path,
            spec=spec,
            config=configs.get(name),
            probe=probe,
        ))
        logger.debug("Record %s at %s: %s", name, path, records[-1].status)

    if scan_modules:
        for path, commit in sorted(gitlinks.items()):
            if path in claimed:
                continue
            probe = probe_working_tree(superproject, path, None, commit, include_untracked)
            records.append(SubmoduleRecord(name=None, path=path, probe=probe))
            logger.debug("Nameless gitlink at %s", path)

    return records


def find_record(records: list[SubmoduleRecord], key: str) -> SubmoduleRecord | None:
    """Look a record up by name, falling back to path."""
    for record in records:
        if record.name == key:
            return record
    for record in records:
        if record.path == key:
            return record
    return None
