"""
Universe liveness status.
"""

from universeplanner.status.liveness import (
    MetricsQuerier,
    TargetType,
    construct_universe_alive_status,
    get_node_alive_status,
    get_universe_alive_status,
)

__all__ = [
    "MetricsQuerier",
    "TargetType",
    "construct_universe_alive_status",
    "get_node_alive_status",
    "get_universe_alive_status",
]
