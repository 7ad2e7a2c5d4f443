"""Choose corrective actions for one submodule record.

Every function here is pure: the decision depends only on the record that
was merged and classified before any mutation. A dirty submodule is never
handed a destructive action unless ``force`` was given; with ``force`` it
is planned as if it were clean, and every action carries ``force=True``.
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass

from modkeeper.errors import ConflictError, DestructiveRefusedError
from modkeeper.reconcile import actions as act
from modkeeper.reconcile.actions import Action
from modkeeper.state.classify import classify
from modkeeper.state.model import SubmoduleRecord, SubmoduleStatus

S = SubmoduleStatus


@dataclass(frozen=True)
class Plan:
    """Actions for one record, plus what to tell the user when there are none."""

    actions: tuple[Action, ...] = ()
    warning: str | None = None
    error: str | None = None


def is_dirty(record: SubmoduleRecord) -> bool:
    """Local changes block destructive actions whatever the status is."""
    return record.probe is not None and record.probe.has_local_changes


def _dirty_warning(record: SubmoduleRecord) -> str:
    probe = record.probe
    kinds = []
    if probe.is_dirty:
        kinds.append("local modifications")
    if probe.has_untracked:
        kinds.append("untracked files")
    text = f"has {' and '.join(kinds)}; pass --force to discard them"
    if record.status is not S.DIRTY:
        text = f"{record.issue}; {text}"
    return text


def effective_status(record: SubmoduleRecord, force: bool = False) -> SubmoduleStatus:
    """The status to plan for: a forced dirty record counts as clean."""
    status = record.status
    if force and is_dirty(record):
        clean = dataclasses.replace(record.probe, is_dirty=False, has_untracked=False)
        return classify(record.spec, record.config, clean)
    return status


def _clone(record: SubmoduleRecord, depth: int | None, force: bool) -> Action:
    return act.clone(
        record.name, record.path, url=record.url, branch=record.branch, depth=depth, force=force,
    )


def plan_fix(record: SubmoduleRecord, force: bool = False) -> Plan:
    """What ``status --fix`` does for one record.

    Only safe repairs: populate what is active, missing and recorded in
    the index, and deinitialize clean orphans. Nothing here moves a checked
    out commit or stages a new gitlink.
    """
    forced = is_dirty(record)
    if forced and not force:
        return Plan(warning=_dirty_warning(record))
    status = effective_status(record, force)
    probe = record.probe

    if status is S.NOT_CLONED:
        if not record.index_commit:
            return Plan(
                warning=f"no gitlink recorded for {record.path}; run `modkeeper install` to add it",
            )
        return Plan((_clone(record, None, forced),))

    if status is S.ORPHANED:
        populated_repo = probe is not None and probe.populated and probe.is_repository
        if record.name and (record.config is not None or populated_repo):
            return Plan((act.deinitialize(record.name, record.path, force=forced),))
        if (
            record.name
            and probe is not None
            and probe.initialized
            and not probe.module_valid
            and not probe.populated
        ):
            return Plan((act.purge_git_dir(record.name, record.path, force=forced),))
        return Plan(warning=f"{record.issue}; run `modkeeper remove` to clean up")

    if status is S.INCONSISTENT:
        return Plan(error=record.issue)

    return Plan()


def plan_install(
    record: SubmoduleRecord,
    force: bool = False,
    depth: int | None = None,
) -> Plan:
    """What ``install`` does for one record: bring it to the recorded commit."""
    forced = is_dirty(record)
    if forced and not force:
        return Plan(warning=_dirty_warning(record))
    status = effective_status(record, force)

    if status is S.BEHIND:
        return Plan((act.checkout(record.name, record.path, record.index_commit, force=forced),))
    if status in (S.UNINITIALIZED, S.NOT_CLONED) and record.spec is not None:
        return Plan((_clone(record, depth, forced),))
    if status is S.INCONSISTENT:
        return Plan(error=record.issue)
    return Plan()


def plan_update(record: SubmoduleRecord, force: bool = False) -> Plan:
    """What ``update`` does for one record: move it to the branch tip."""
    forced = is_dirty(record)
    if forced and not force:
        return Plan(warning=_dirty_warning(record))
    status = effective_status(record, force)
    fetch = act.fetch_and_checkout(record.name, record.path, record.branch, force=forced)

    if status in (S.UP_TO_DATE, S.BEHIND):
        return Plan((fetch,))
    if status in (S.UNINITIALIZED, S.NOT_CLONED) and record.spec is not None:
        return Plan((_clone(record, None, forced), fetch))
    if status is S.INCONSISTENT:
        return Plan(error=record.issue)
    return Plan()


def plan_remove(record: SubmoduleRecord, force: bool = False) -> Plan:
    """Every step that erases a submodule, in an order that can be resumed.

    Raises:
        DestructiveRefusedError: If the submodule has local changes and
            ``force`` is not set.
        ConflictError: If ``.git/modules`` serves a work tree at another path.
    """
    probe = record.probe
    if is_dirty(record) and not force:
        raise DestructiveRefusedError(
            f"{record.label}: {_dirty_warning(record)}"
        )
    if probe is not None and probe.relocated:
        raise ConflictError(
            f"{record.label}: {record.issue}; fix the path in .gitmodules first"
        )

    steps: list[Action] = []
    if record.config is not None or (probe is not None and probe.populated):
        steps.append(act.deinitialize(record.name, record.path, force=force))
    if record.name and probe is not None and probe.initialized:
        steps.append(act.purge_git_dir(record.name, record.path, force=force))
    if record.spec is not None or record.index_commit:
        steps.append(act.remove_manifest_entry(record.name, record.path))
    if record.name and record.config is not None:
        steps.append(act.write_config_override(record.name, record.path, clear=True))
    return Plan(tuple(steps))
