"""
Node records and node-set queries.

A node belongs to exactly one cluster for its lifetime. The planner writes
only ToBeAdded / ToBeRemoved states and the master flag; every other
transition is driven by provisioning.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterable, List, Optional

from universeplanner.utils.logging import get_logger

logger = get_logger(__name__)


class NodeState(str, Enum):
    """Node lifecycle states."""

    TO_BE_ADDED = "ToBeAdded"                 # Planned, not provisioned
    PROVISIONED = "Provisioned"               # Machine exists
    SOFTWARE_INSTALLED = "SoftwareInstalled"  # Binaries installed
    RUNNING = "Running"                       # Serving
    UNREACHABLE = "Unreachable"               # Liveness check failed
    TO_BE_REMOVED = "ToBeRemoved"             # Planned for decommission
    REMOVING = "Removing"                     # Decommission in progress
    REMOVED = "Removed"                       # Gone


_INACTIVE_STATES = frozenset({
    NodeState.UNREACHABLE,
    NodeState.TO_BE_REMOVED,
    NodeState.REMOVING,
    NodeState.REMOVED,
})

_LEAVING_STATES = frozenset({
    NodeState.TO_BE_REMOVED,
    NodeState.REMOVING,
    NodeState.REMOVED,
})

_QUERYABLE_STATES = frozenset({NodeState.RUNNING, NodeState.UNREACHABLE})


class ServerType(str, Enum):
    """Server process selector for node-set filters."""

    MASTER = "master"
    TSERVER = "tserver"
    EITHER = "either"


@dataclass
class CloudInfo:
    """
    Cloud-specific placement and connection details of a node.

    Attributes:
        cloud: Cloud code
        region: Region code
        az: Zone name
        subnet_id: Subnet ID
        instance_type: Instance type
        private_ip: Private IP, set once provisioned
        assign_public_ip: Public IP assignment flag
        use_time_sync: Time sync flag
        spot_price: Spot price bid
    """
    cloud: str = ""
    region: str = ""
    az: str = ""
    subnet_id: Optional[str] = None
    instance_type: str = ""
    private_ip: Optional[str] = None
    assign_public_ip: bool = True
    use_time_sync: bool = False
    spot_price: float = 0.0

    def to_dict(self) -> dict:
        return {
            "cloud": self.cloud,
            "region": self.region,
            "az": self.az,
            "subnet_id": self.subnet_id,
            "instance_type": self.instance_type,
            "private_ip": self.private_ip,
            "assign_public_ip": self.assign_public_ip,
            "use_time_sync": self.use_time_sync,
            "spot_price": self.spot_price,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "CloudInfo":
        return cls(**{k: v for k, v in data.items() if k in cls.__dataclass_fields__})


@dataclass(eq=False)
class NodeRecord:
    """
    A server node of a universe.

    Attributes:
        node_name: Unique name within the universe
        node_idx: Index the name was derived from
        placement_uuid: Owning cluster ID
        az_uuid: Zone ID
        cloud_info: Cloud-specific details
        is_master: Runs a master process
        is_tserver: Runs a tserver process
        state: Lifecycle state
    """
    node_name: str
    node_idx: int
    placement_uuid: str
    az_uuid: str
    cloud_info: CloudInfo = field(default_factory=CloudInfo)
    is_master: bool = False
    is_tserver: bool = True
    state: NodeState = NodeState.TO_BE_ADDED

    @property
    def subnet_id(self) -> Optional[str]:
        return self.cloud_info.subnet_id

    def is_in_placement(self, cluster_uuid: str) -> bool:
        return self.placement_uuid == cluster_uuid

    def is_active(self) -> bool:
        """Node is (or will be) serving: not unreachable and not leaving."""
        return self.state not in _INACTIVE_STATES

    def is_leaving(self) -> bool:
        """Node is scheduled for, or going through, decommission."""
        return self.state in _LEAVING_STATES

    def is_queryable(self) -> bool:
        return self.state in _QUERYABLE_STATES

    def is_removable(self) -> bool:
        return self.state in _QUERYABLE_STATES

    def to_dict(self) -> dict:
        return {
            "node_name": self.node_name,
            "node_idx": self.node_idx,
            "placement_uuid": self.placement_uuid,
            "az_uuid": self.az_uuid,
            "cloud_info": self.cloud_info.to_dict(),
            "is_master": self.is_master,
            "is_tserver": self.is_tserver,
            "state": self.state.value,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "NodeRecord":
        return cls(
            node_name=data["node_name"],
            node_idx=data["node_idx"],
            placement_uuid=data["placement_uuid"],
            az_uuid=data["az_uuid"],
            cloud_info=CloudInfo.from_dict(data.get("cloud_info", {})),
            is_master=data.get("is_master", False),
            is_tserver=data.get("is_tserver", True),
            state=NodeState(data.get("state", NodeState.TO_BE_ADDED.value)),
        )

    def __repr__(self) -> str:
        return (
            f"NodeRecord({self.node_name}, idx={self.node_idx}, az={self.az_uuid}, "
            f"master={self.is_master}, state={self.state.value})"
        )


def filter_servers(
    nodes: Iterable[NodeRecord],
    state: NodeState,
    server_type: ServerType = ServerType.EITHER,
) -> List[NodeRecord]:
    """
    Select nodes in a state that run the given server type.

    Args:
        nodes: Nodes to filter
        state: Required lifecycle state
        server_type: MASTER, TSERVER or EITHER

    Returns:
        Matching nodes in iteration order
    """
    def matches(node: NodeRecord) -> bool:
        if server_type == ServerType.MASTER:
            return node.is_master
        if server_type == ServerType.TSERVER:
            return node.is_tserver
        return True

    return [n for n in nodes if n.state == state and matches(n)]


def get_nodes_to_provision(nodes: Iterable[NodeRecord]) -> List[NodeRecord]:
    return filter_servers(nodes, NodeState.TO_BE_ADDED, ServerType.EITHER)


def get_masters_to_provision(nodes: Iterable[NodeRecord]) -> List[NodeRecord]:
    return filter_servers(nodes, NodeState.TO_BE_ADDED, ServerType.MASTER)


def get_tservers_to_provision(nodes: Iterable[NodeRecord]) -> List[NodeRecord]:
    return filter_servers(nodes, NodeState.TO_BE_ADDED, ServerType.TSERVER)


def get_nodes_to_be_removed(nodes: Iterable[NodeRecord]) -> List[NodeRecord]:
    return filter_servers(nodes, NodeState.TO_BE_REMOVED, ServerType.EITHER)


def get_masters_to_be_removed(nodes: Iterable[NodeRecord]) -> List[NodeRecord]:
    return filter_servers(nodes, NodeState.TO_BE_REMOVED, ServerType.MASTER)


def get_tservers_to_be_removed(nodes: Iterable[NodeRecord]) -> List[NodeRecord]:
    return filter_servers(nodes, NodeState.TO_BE_REMOVED, ServerType.TSERVER)


def get_num_masters(nodes: Iterable[NodeRecord]) -> int:
    return sum(1 for n in nodes if n.is_master)


def get_az_to_num_nodes(nodes: Iterable[NodeRecord]) -> Dict[str, int]:
    """
    Count nodes per zone, ignoring nodes that are leaving.

    Returns:
        Zone ID -> node count, in first-seen order
    """
    counts: Dict[str, int] = {}
    for node in nodes:
        if node.is_leaving():
            continue
        counts[node.az_uuid] = counts.get(node.az_uuid, 0) + 1
    return counts


def count_active_tserver_only_in_az(nodes: Iterable[NodeRecord], az_uuid: str) -> int:
    """Count active, non-master tserver nodes in a zone."""
    return sum(
        1 for n in nodes
        if n.is_active() and not n.is_master and n.is_tserver and n.az_uuid == az_uuid
    )


def find_active_tserver_only_in_az(nodes: Iterable[NodeRecord], az_uuid: str) -> Optional[NodeRecord]:
    for node in nodes:
        if node.is_active() and not node.is_master and node.is_tserver and node.az_uuid == az_uuid:
            return node
    return None


def get_next_index_to_configure(nodes: Optional[Iterable[NodeRecord]]) -> int:
    """
    First node index not used by any node, including ones being removed.
    """
    max_idx = max((n.node_idx for n in nodes or []), default=0)
    return max_idx + 1


def get_start_index(nodes: Iterable[NodeRecord]) -> int:
    """First index after every node that has actually been provisioned."""
    max_idx = max(
        (n.node_idx for n in nodes if n.state != NodeState.TO_BE_ADDED),
        default=0,
    )
    return max_idx + 1


def remove_node_by_name(node_name: str, nodes: List[NodeRecord]) -> bool:
    """
    Drop the named node from a node list.

    Returns:
        True if a node was removed
    """
    for i, node in enumerate(nodes):
        if node.node_name == node_name:
            del nodes[i]
            return True
    return False


def is_node_removable(node_name: str, nodes: Iterable[NodeRecord]) -> bool:
    return any(n.node_name == node_name and n.is_removable() for n in nodes)


def make_node_name(node_prefix: str, node_idx: int) -> str:
    return f"{node_prefix}-n{node_idx}"
