"""Classify a merged submodule record into a SubmoduleStatus.

Both functions here are pure: they look only at the three snapshots passed
in and never touch git or the filesystem.
"""

from __future__ import annotations

from modkeeper.state.model import (
    SubmoduleConfig,
    SubmoduleSpec,
    SubmoduleStatus,
    WorkingTreeProbe,
)

_EMPTY_PROBE = WorkingTreeProbe()


def classify(
    spec: SubmoduleSpec | None,
    config: SubmoduleConfig | None,
    probe: WorkingTreeProbe | None,
) -> SubmoduleStatus:
    """Return the consistency state of one submodule.

    Args:
        spec: Entry from ``.gitmodules``, if declared.
        config: Entry from the local git config, if any.
        probe: Working tree and index observations, if any.
    """
    probe = probe or _EMPTY_PROBE

    if spec is None:
        if config is not None or probe.initialized or probe.populated or probe.index_commit:
            return SubmoduleStatus.ORPHANED
        return SubmoduleStatus.UNINITIALIZED

    if probe.relocated:
        return SubmoduleStatus.INCONSISTENT

    if probe.populated and not probe.is_repository:
        return SubmoduleStatus.INCONSISTENT

    if probe.has_local_changes:
        return SubmoduleStatus.DIRTY

    active = config is not None and config.active
    if not active:
        if probe.populated:
            return SubmoduleStatus.INCONSISTENT
        return SubmoduleStatus.UNINITIALIZED

    if not probe.populated:
        return SubmoduleStatus.NOT_CLONED

    if not probe.initialized:
        return SubmoduleStatus.INCONSISTENT

    if probe.index_commit is None:
        return SubmoduleStatus.INCONSISTENT

    if probe.checked_out_commit == probe.index_commit:
        return SubmoduleStatus.UP_TO_DATE
    return SubmoduleStatus.BEHIND


def explain(
    spec: SubmoduleSpec | None,
    config: SubmoduleConfig | None,
    probe: WorkingTreeProbe | None,
) -> str:
    """One-line reason for the classification, for reports."""
    probe = probe or _EMPTY_PROBE
    status = classify(spec, config, probe)

    if status is SubmoduleStatus.UP_TO_DATE:
        return "checked out at the recorded commit"
    if status is SubmoduleStatus.BEHIND:
        if probe.checked_out_commit is None:
            return "work tree has no commit checked out"
        return "checked out commit differs from the recorded commit"
    if status is SubmoduleStatus.UNINITIALIZED:
        return "not initialized"
    if status is SubmoduleStatus.NOT_CLONED:
        return "active in config but the work tree is empty"
    if status is SubmoduleStatus.DIRTY:
        if probe.is_dirty and probe.has_untracked:
            return "has local modifications and untracked files"
        if probe.is_dirty:
            return "has local modifications"
        return "has untracked files"
    if status is SubmoduleStatus.ORPHANED:
        places = []
        if config is not None:
            places.append(".git/config")
        if probe.initialized:
            places.append(".git/modules")
        if probe.index_commit:
            places.append("the index")
        if probe.populated:
            places.append("the work tree")
        return f"not in .gitmodules, but found in {', '.join(places) or 'nowhere'}"

    # Inconsistent
    if probe.relocated:
        return (
            f".gitmodules path {probe.path} differs from the work tree "
            f".git/modules uses: {probe.worktree_path}"
        )
    if probe.populated and not probe.is_repository:
        return "path is occupied by a directory that is not a git repository"
    active = config is not None and config.active
    if not active:
        return "work tree is populated but the submodule is not active in config"
    if not probe.initialized:
        return "active and populated, but .git/modules entry is missing"
    return "declared in .gitmodules but has no gitlink in the index"
