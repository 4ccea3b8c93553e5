"""
Clusters, universe task parameters and persisted universes.
"""

import copy
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

from universeplanner.cluster.intent import ClusterIntent
from universeplanner.cluster.node import NodeRecord
from universeplanner.placement.tree import PlacementTree
from universeplanner.utils.logging import get_logger

logger = get_logger(__name__)


class ClusterType(str, Enum):
    """Cluster roles within a universe."""

    PRIMARY = "primary"       # Read/write cluster, holds the masters
    READ_ONLY = "read_only"   # Read replica cluster


@dataclass
class Cluster:
    """
    A cluster of a universe.

    Attributes:
        uuid: Cluster ID
        cluster_type: PRIMARY or READ_ONLY
        user_intent: Requested shape
        placement_info: Planned placement, None until planned
        index: Naming ordinal for read-only clusters, 0 until assigned
    """
    uuid: str
    cluster_type: ClusterType
    user_intent: ClusterIntent
    placement_info: Optional[PlacementTree] = None
    index: int = 0

    @property
    def is_primary(self) -> bool:
        return self.cluster_type == ClusterType.PRIMARY

    def to_dict(self) -> dict:
        return {
            "uuid": self.uuid,
            "cluster_type": self.cluster_type.value,
            "user_intent": self.user_intent.to_dict(),
            "placement_info": self.placement_info.to_dict() if self.placement_info else None,
            "index": self.index,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Cluster":
        placement = data.get("placement_info")
        return cls(
            uuid=data["uuid"],
            cluster_type=ClusterType(data.get("cluster_type", ClusterType.PRIMARY.value)),
            user_intent=ClusterIntent.from_dict(data["user_intent"]),
            placement_info=PlacementTree.from_dict(placement) if placement else None,
            index=data.get("index", 0),
        )


@dataclass
class UniverseDefinition:
    """
    Universe task parameters: the clusters being configured and the working
    node set the planner mutates.

    Attributes:
        universe_uuid: Universe ID, None before the first configure call
        clusters: Primary cluster plus any read-only clusters
        node_details_set: Working node set, in iteration order
        node_prefix: Prefix for node names
        next_cluster_index: Next ordinal for a read-only cluster
        user_az_selected: Operator edited the placement by hand
    """
    universe_uuid: Optional[str] = None
    clusters: List[Cluster] = field(default_factory=list)
    node_details_set: List[NodeRecord] = field(default_factory=list)
    node_prefix: str = ""
    next_cluster_index: int = 1
    user_az_selected: bool = False

    def get_primary_cluster(self) -> Optional[Cluster]:
        return next((c for c in self.clusters if c.is_primary), None)

    def get_read_only_clusters(self) -> List[Cluster]:
        return [c for c in self.clusters if c.cluster_type == ClusterType.READ_ONLY]

    def get_cluster_by_uuid(self, cluster_uuid: str) -> Optional[Cluster]:
        return next((c for c in self.clusters if c.uuid == cluster_uuid), None)

    def get_nodes_in_cluster(self, cluster_uuid: str) -> List[NodeRecord]:
        return [n for n in self.node_details_set if n.is_in_placement(cluster_uuid)]

    def remove_nodes_in_cluster(self, cluster_uuid: str) -> None:
        self.node_details_set[:] = [
            n for n in self.node_details_set if not n.is_in_placement(cluster_uuid)
        ]

    def to_dict(self) -> dict:
        return {
            "universe_uuid": self.universe_uuid,
            "clusters": [c.to_dict() for c in self.clusters],
            "node_details_set": [n.to_dict() for n in self.node_details_set],
            "node_prefix": self.node_prefix,
            "next_cluster_index": self.next_cluster_index,
            "user_az_selected": self.user_az_selected,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "UniverseDefinition":
        return cls(
            universe_uuid=data.get("universe_uuid"),
            clusters=[Cluster.from_dict(c) for c in data.get("clusters", [])],
            node_details_set=[NodeRecord.from_dict(n) for n in data.get("node_details_set", [])],
            node_prefix=data.get("node_prefix", ""),
            next_cluster_index=data.get("next_cluster_index", 1),
            user_az_selected=data.get("user_az_selected", False),
        )


@dataclass
class Universe:
    """
    Persisted universe snapshot, as read by the caller.

    Attributes:
        universe_uuid: Universe ID
        name: Universe name
        universe_details: Last applied definition
    """
    universe_uuid: str
    name: str
    universe_details: UniverseDefinition

    def get_nodes(self) -> List[NodeRecord]:
        return list(self.universe_details.node_details_set)

    def get_nodes_in_cluster(self, cluster_uuid: str) -> List[NodeRecord]:
        return self.universe_details.get_nodes_in_cluster(cluster_uuid)

    def copy_nodes(self) -> List[NodeRecord]:
        """Deep copies of all nodes, safe to mutate while planning."""
        return copy.deepcopy(self.universe_details.node_details_set)

    def to_dict(self) -> dict:
        return {
            "universe_uuid": self.universe_uuid,
            "name": self.name,
            "universe_details": self.universe_details.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Universe":
        return cls(
            universe_uuid=data["universe_uuid"],
            name=data.get("name", ""),
            universe_details=UniverseDefinition.from_dict(data["universe_details"]),
        )


def make_node_prefix(base_prefix: str, customer_id: int, universe_name: str) -> str:
    """Compose the prefix shared by every node name of a universe."""
    return f"{base_prefix}-{customer_id}-{universe_name}"


def populate_cluster_indices(task_params: UniverseDefinition) -> None:
    """Give every new read-only cluster the next free naming ordinal."""
    for cluster in task_params.get_read_only_clusters():
        if cluster.index == 0:
            cluster.index = task_params.next_cluster_index
            task_params.next_cluster_index += 1
            logger.info(
                "Assigned read-only cluster index",
                cluster_uuid=cluster.uuid,
                index=cluster.index,
            )


def new_universe_uuid() -> str:
    return str(uuid.uuid4())
