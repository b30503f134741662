"""
The `reconcile` sub-package holds the planning and applying halves of a
reconciliation pass.

- The planners turn specs into `Plan`s: ordered, guarded, side-effect-free
  descriptions of what the host should look like.
- The applier executes a `Plan` against a `HostContext`, honouring the
  `requires` edges between operations.
"""

from .applier import ApplyReport, OpStatus, PlanApplier
from .operations import DesiredStateSet, FileState, Plan
from .planner import (
    JailEnvironmentReconciler,
    PortsTreeReconciler,
    desired_states,
    plan_manifest,
)

__all__ = [
    "ApplyReport",
    "DesiredStateSet",
    "FileState",
    "JailEnvironmentReconciler",
    "OpStatus",
    "Plan",
    "PlanApplier",
    "PortsTreeReconciler",
    "desired_states",
    "plan_manifest",
]
