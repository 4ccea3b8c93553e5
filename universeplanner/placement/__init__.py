"""
Placement trees and initial placement generation.
"""

from universeplanner.placement.tree import (
    Action,
    PlacementCloud,
    PlacementIndex,
    PlacementRegion,
    PlacementTree,
    PlacementZone,
    did_affinitized_leaders_change,
    is_same_placement,
)
from universeplanner.placement.generator import PlacementGenerator

__all__ = [
    # Tree
    "Action",
    "PlacementIndex",
    "PlacementTree",
    "PlacementCloud",
    "PlacementRegion",
    "PlacementZone",
    "is_same_placement",
    "did_affinitized_leaders_change",
    # Generation
    "PlacementGenerator",
]
