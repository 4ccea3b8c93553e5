"""
Universe planning: mode selection, node reconciliation, master election and
edit validation.
"""

from universeplanner.planner.masters import MAX_MASTER_SUBNETS, MasterElector
from universeplanner.planner.modes import ConfigureNodesMode, ModeSelector
from universeplanner.planner.validator import EditValidator
from universeplanner.planner.reconciler import (
    NodeReconciler,
    ensure_unique_node_names,
    update_placement_info,
)
from universeplanner.planner.planner import UniversePlanner

__all__ = [
    "MAX_MASTER_SUBNETS",
    "MasterElector",
    "ConfigureNodesMode",
    "ModeSelector",
    "EditValidator",
    "NodeReconciler",
    "ensure_unique_node_names",
    "update_placement_info",
    "UniversePlanner",
]
