"""
Planner error taxonomy.

Two families:
- PlanningError: the request cannot be planned as given. The caller can fix
  the request (or the inventory) and try again.
- InvariantViolation: the planner's own preconditions were broken. These
  indicate a bug upstream and are never worth retrying.
"""

from typing import Dict, Tuple


class TopologyPlannerError(Exception):
    """Base class for all planner errors."""
    pass


class PlanningError(TopologyPlannerError):
    """Request cannot be satisfied; fixable by the caller."""
    pass


class InvalidIntentError(PlanningError):
    """Replication factor or node count is not allowed."""
    pass


class InfeasibleIntentError(InvalidIntentError):
    """Regions/zones cannot satisfy the placement diversity policy."""
    pass


class UnsupportedChangeError(PlanningError):
    """Edit touches a field that can only be set at creation."""
    pass


class NoOpEditError(PlanningError):
    """Edit does not change anything."""
    pass


class InsufficientInventoryError(PlanningError):
    """
    On-prem inventory cannot cover the requested nodes.

    Attributes:
        shortfall: zone uuid -> (required, available)
    """

    def __init__(self, message: str, shortfall: Dict[str, Tuple[int, int]]):
        super().__init__(message)
        self.shortfall = shortfall


class InvariantViolation(TopologyPlannerError):
    """Planner precondition was violated (duplicate names, missing victim)."""
    pass


class InsufficientCandidatesError(InvariantViolation):
    """Not enough non-master nodes to choose the requested masters from."""
    pass
