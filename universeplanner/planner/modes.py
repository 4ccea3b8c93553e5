"""
Configure-mode selection.

Classifies a configure request by comparing the requested intent and
placement with the cluster's current nodes. Anything that is not a pure
expand/shrink falls back to NEW_CONFIG, which is a full move on edits.
"""

from enum import Enum
from typing import List, Optional

from universeplanner.catalog.catalog import TopologyCatalog
from universeplanner.cluster.node import (
    NodeRecord,
    count_active_tserver_only_in_az,
    get_az_to_num_nodes,
)
from universeplanner.cluster.universe import Cluster, UniverseDefinition
from universeplanner.utils.logging import get_logger

logger = get_logger(__name__)


class ConfigureNodesMode(str, Enum):
    """How nodes are distributed for a configure request."""

    NEW_CONFIG = "new_config"                                    # Round-robin over a placement, full move on edit
    UPDATE_FROM_USER_INTENT = "update_from_user_intent"          # Honour intent num_nodes, re-derive zone counts
    UPDATE_FROM_PLACEMENT_INFO = "update_from_placement_info"    # Honour per-zone counts of the placement
    NEW_CONFIG_FROM_PLACEMENT_INFO = "new_config_from_placement_info"  # Operator-authored placement


class ModeSelector:
    """
    Selects the configure mode for a cluster.

    Never mutates its inputs, so repeated calls with the same arguments
    return the same mode.
    """

    def __init__(self, catalog: TopologyCatalog):
        self.catalog = catalog

    def is_provider_or_region_change(self, cluster: Cluster, nodes: List[NodeRecord]) -> bool:
        """
        Check whether the cluster's existing nodes live on a different
        provider or region set than the requested intent.

        Args:
            cluster: Requested cluster
            nodes: Nodes to compare against (filtered to the cluster here)

        Returns:
            True if the provider or region set changed
        """
        cluster_nodes = [n for n in nodes if n.is_in_placement(cluster.uuid)]
        if not cluster_nodes:
            return False

        intent = cluster.user_intent
        node_provider = self.catalog.provider_for_zone(cluster_nodes[0].az_uuid).uuid
        if node_provider != intent.provider:
            logger.info(
                "Provider changed",
                cluster_uuid=cluster.uuid,
                intent_provider=intent.provider,
                node_provider=node_provider,
            )
            return True

        node_regions = {self.catalog.get_zone(n.az_uuid).region_uuid for n in cluster_nodes}
        intent_regions = set(intent.region_list)
        logger.info(
            "Comparing regions",
            cluster_uuid=cluster.uuid,
            intent_regions=sorted(intent_regions),
            node_regions=sorted(node_regions),
        )
        return intent_regions != node_regions

    def select(
        self,
        old_params: Optional[UniverseDefinition],
        new_params: UniverseDefinition,
        cluster: Cluster,
    ) -> ConfigureNodesMode:
        """
        Determine the configure mode.

        Args:
            old_params: Persisted definition, None unless this is an edit
            new_params: Requested definition
            cluster: Requested cluster (must carry a placement)

        Returns:
            Selected mode
        """
        is_edit = old_params is not None
        source = old_params if is_edit else new_params
        nodes = source.get_nodes_in_cluster(cluster.uuid)
        placement = cluster.placement_info
        intent = cluster.user_intent

        if self.is_provider_or_region_change(cluster, nodes):
            return ConfigureNodesMode.NEW_CONFIG

        if is_edit:
            existing_cluster = old_params.get_cluster_by_uuid(cluster.uuid)
            if existing_cluster is None:
                return ConfigureNodesMode.NEW_CONFIG
            existing = existing_cluster.user_intent
            normalized = intent.clone()
            normalized.num_nodes = existing.num_nodes
            logger.info(
                "Comparing intents",
                requested=intent.to_dict(),
                existing=existing.to_dict(),
            )
            if normalized != existing or intent.num_nodes == existing.num_nodes:
                return ConfigureNodesMode.NEW_CONFIG

        at_least_one_count_changed = False
        for az_uuid, current in get_az_to_num_nodes(nodes).items():
            az = placement.find_zone(az_uuid)
            if az is None:
                logger.info("AZ not in placement, not a pure expand/shrink", az_uuid=az_uuid)
                return ConfigureNodesMode.NEW_CONFIG

            num_tservers = count_active_tserver_only_in_az(nodes, az_uuid)
            az_difference = az.num_nodes_in_az - current
            logger.info(
                "AZ check",
                az=az.name,
                desired=az.num_nodes_in_az,
                difference=az_difference,
                tserver_only=num_tservers,
            )
            if az_difference != 0:
                at_least_one_count_changed = True
            # A zone cannot shrink through one of its masters.
            if az_difference < 0 and -az_difference > num_tservers:
                return ConfigureNodesMode.NEW_CONFIG

        placement_count = placement.node_count()
        logger.info(
            "Expand/shrink counts",
            is_edit=is_edit,
            intent_num_nodes=intent.num_nodes,
            placement_num_nodes=placement_count,
            current_num_nodes=len(nodes),
        )

        mode = ConfigureNodesMode.NEW_CONFIG
        if intent.num_nodes == placement_count and at_least_one_count_changed:
            mode = ConfigureNodesMode.UPDATE_FROM_PLACEMENT_INFO
        elif intent.num_nodes != placement_count:
            mode = ConfigureNodesMode.UPDATE_FROM_USER_INTENT

        logger.info("Selected configure mode", cluster_uuid=cluster.uuid, mode=mode.value)
        return mode
