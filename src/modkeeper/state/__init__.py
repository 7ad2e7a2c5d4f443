"""State module — merged submodule records and their classification.

Probing lives in :mod:`modkeeper.state.probe`; it is not re-exported here
because it depends on the manifest package, which depends on these models.
"""

from modkeeper.state.classify import classify, explain
from modkeeper.state.model import (
    SubmoduleConfig,
    SubmoduleRecord,
    SubmoduleSpec,
    SubmoduleStatus,
    WorkingTreeProbe,
)

__all__ = [
    "SubmoduleConfig",
    "SubmoduleRecord",
    "SubmoduleSpec",
    "SubmoduleStatus",
    "WorkingTreeProbe",
    "classify",
    "explain",
]
