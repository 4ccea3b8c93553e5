"""
Universe Planner - topology planning for a distributed database universe.

Computes where the servers of a universe run and how to get there:
- Initial placement of replicas across clouds, regions and zones
- Pure expand/shrink detection versus full moves
- Incremental node add/remove plans with stable node naming
- Master election spread across subnets
- Validation of universe edits
"""

__version__ = "0.1.0"

from universeplanner.errors import (
    InfeasibleIntentError,
    InsufficientCandidatesError,
    InsufficientInventoryError,
    InvalidIntentError,
    InvariantViolation,
    NoOpEditError,
    PlanningError,
    TopologyPlannerError,
    UnsupportedChangeError,
)
from universeplanner.planner import ConfigureNodesMode, UniversePlanner

__all__ = [
    "UniversePlanner",
    "ConfigureNodesMode",
    "TopologyPlannerError",
    "PlanningError",
    "InvalidIntentError",
    "InfeasibleIntentError",
    "UnsupportedChangeError",
    "NoOpEditError",
    "InsufficientInventoryError",
    "InvariantViolation",
    "InsufficientCandidatesError",
]
