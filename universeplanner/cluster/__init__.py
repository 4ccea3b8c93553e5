"""
Cluster, node and universe models.
"""

from universeplanner.cluster.intent import (
    SUPPORTED_REPLICATION_FACTORS,
    ClusterIntent,
    verify_nodes_and_rf,
)
from universeplanner.cluster.node import (
    CloudInfo,
    NodeRecord,
    NodeState,
    ServerType,
    filter_servers,
    get_masters_to_be_removed,
    get_masters_to_provision,
    get_next_index_to_configure,
    get_nodes_to_be_removed,
    get_nodes_to_provision,
    get_num_masters,
    get_start_index,
    get_tservers_to_be_removed,
    get_tservers_to_provision,
    is_node_removable,
    remove_node_by_name,
)
from universeplanner.cluster.universe import (
    Cluster,
    ClusterType,
    Universe,
    UniverseDefinition,
    make_node_prefix,
    populate_cluster_indices,
)

__all__ = [
    # Intent
    "ClusterIntent",
    "SUPPORTED_REPLICATION_FACTORS",
    "verify_nodes_and_rf",
    # Nodes
    "CloudInfo",
    "NodeRecord",
    "NodeState",
    "ServerType",
    "filter_servers",
    "get_nodes_to_provision",
    "get_masters_to_provision",
    "get_tservers_to_provision",
    "get_nodes_to_be_removed",
    "get_masters_to_be_removed",
    "get_tservers_to_be_removed",
    "get_num_masters",
    "get_start_index",
    "get_next_index_to_configure",
    "remove_node_by_name",
    "is_node_removable",
    # Clusters and universes
    "Cluster",
    "ClusterType",
    "Universe",
    "UniverseDefinition",
    "make_node_prefix",
    "populate_cluster_indices",
]
