"""Reconciliation module — plan corrective actions and execute them."""

from modkeeper.reconcile.actions import Action, ActionKind
from modkeeper.reconcile.engine import Reconciler, SubmoduleReport
from modkeeper.reconcile.planner import (
    Plan,
    effective_status,
    plan_fix,
    plan_install,
    plan_remove,
    plan_update,
)

__all__ = [
    "Action",
    "ActionKind",
    "Plan",
    "Reconciler",
    "SubmoduleReport",
    "effective_status",
    "plan_fix",
    "plan_install",
    "plan_remove",
    "plan_update",
]
