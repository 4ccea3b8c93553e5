"""
Node reconciliation.

Turns a configure mode and a desired placement into concrete node changes
on the working node set:
- Base placement (NEW_CONFIG): round-robin a fresh node set over the
  placement; on edits every existing node is decommissioned (full move).
- Delta placement (UPDATE_FROM_PLACEMENT_INFO): add/remove nodes zone by
  zone until the per-zone counts match the placement.
- User-intent placement (UPDATE_FROM_USER_INTENT): add nodes to the least
  loaded zones, or remove non-master nodes, until the intent's total holds.
- Manual placement edit (NEW_CONFIG_FROM_PLACEMENT_INFO): expand in place
  when possible, otherwise full move to the operator's placement.

New node indices always continue after the highest index ever allocated in
the universe, so names never collide with nodes still being removed.
"""

import copy
from collections import Counter
from typing import Dict, Iterable, List, Optional

from universeplanner.catalog.catalog import CloudType
from universeplanner.catalog.inventory import NodeInventory
from universeplanner.cluster.node import (
    CloudInfo,
    NodeRecord,
    NodeState,
    find_active_tserver_only_in_az,
    get_az_to_num_nodes,
    get_next_index_to_configure,
    get_num_masters,
    make_node_name,
)
from universeplanner.cluster.universe import Cluster, Universe, UniverseDefinition
from universeplanner.errors import InsufficientInventoryError, InvariantViolation
from universeplanner.placement.generator import PlacementGenerator
from universeplanner.placement.tree import Action, PlacementIndex, PlacementTree
from universeplanner.planner.masters import MasterElector
from universeplanner.planner.modes import ConfigureNodesMode
from universeplanner.utils.logging import get_logger

logger = get_logger(__name__)


def ensure_unique_node_names(nodes: Iterable[NodeRecord]) -> None:
    """
    Raises:
        InvariantViolation: Two nodes share a name
    """
    seen = set()
    duplicates = []
    for node in nodes:
        if node.node_name in seen:
            duplicates.append(node.node_name)
        else:
            seen.add(node.node_name)

    if duplicates:
        logger.error("Duplicate node names", duplicates=duplicates)
        raise InvariantViolation(f"Found duplicated node names: {', '.join(duplicates)}")


def update_placement_info(nodes: Iterable[NodeRecord], placement: Optional[PlacementTree]) -> None:
    """
    Recompute per-zone node counts of a placement from the nodes that will
    remain once pending removals complete. Zones left without nodes are
    dropped.
    """
    if placement is None:
        return

    counts = get_az_to_num_nodes(nodes)
    if not counts:
        return
    placement.update_from_counts(counts)


class NodeReconciler:
    """
    Applies a configure mode to the working node set.
    """

    def __init__(
        self,
        generator: PlacementGenerator,
        elector: MasterElector,
        inventory: Optional[NodeInventory] = None,
    ):
        """
        Initialize node reconciler.

        Args:
            generator: Placement generator, used when a placement is reset
            elector: Master elector for the primary cluster
            inventory: On-prem machine inventory
        """
        self.generator = generator
        self.elector = elector
        self.inventory = inventory

    # Entry point

    def configure_node_states(
        self,
        task_params: UniverseDefinition,
        universe: Optional[Universe],
        mode: ConfigureNodesMode,
        cluster: Cluster,
    ) -> None:
        """
        Configure the nodes to add or remove for a cluster.

        Args:
            task_params: Requested definition, its node set is updated in place
            universe: Persisted universe when editing, else None
            mode: Configure mode
            cluster: Cluster being configured
        """
        nodes = task_params.node_details_set
        prefix = task_params.node_prefix
        is_edit = universe is not None

        logger.info(
            "Configuring nodes",
            cluster_uuid=cluster.uuid,
            mode=mode.value,
            is_edit=is_edit,
        )

        if mode == ConfigureNodesMode.NEW_CONFIG:
            self.configure_default_node_states(cluster, nodes, prefix, universe)
        elif mode == ConfigureNodesMode.UPDATE_FROM_PLACEMENT_INFO:
            self.configure_nodes_using_placement_info(cluster, nodes, prefix, is_edit)
        elif mode == ConfigureNodesMode.UPDATE_FROM_USER_INTENT:
            self.configure_nodes_using_user_intent(cluster, nodes, prefix, is_edit)
        elif mode == ConfigureNodesMode.NEW_CONFIG_FROM_PLACEMENT_INFO:
            self.configure_node_edit_using_placement_info(task_params, universe)

        update_placement_info(task_params.get_nodes_in_cluster(cluster.uuid), cluster.placement_info)

        if cluster.is_primary and is_edit:
            remaining = [
                n for n in task_params.get_nodes_in_cluster(cluster.uuid) if not n.is_leaving()
            ]
            num_masters_to_choose = cluster.user_intent.replication_factor - get_num_masters(remaining)
            if num_masters_to_choose > 0:
                logger.info("Selecting additional masters", count=num_masters_to_choose)
                self.elector.select_masters(remaining, num_masters_to_choose)

    # Modes

    def configure_default_node_states(
        self,
        cluster: Cluster,
        nodes: List[NodeRecord],
        node_prefix: str,
        universe: Optional[Universe],
    ) -> List[NodeRecord]:
        """
        Round-robin a fresh node set over the cluster's placement.

        On edits every existing node of the cluster is added back as
        ToBeRemoved and, for the primary cluster, masters are chosen among
        the new nodes only.

        Returns:
            Newly added nodes
        """
        intent = cluster.user_intent
        known_nodes = list(nodes) + (universe.get_nodes() if universe is not None else [])
        start_index = get_next_index_to_configure(known_nodes)

        slots = self.get_base_placement(intent.num_nodes, cluster)
        new_nodes = self._add_nodes(slots, start_index, cluster, nodes, node_prefix)

        if universe is not None:
            existing = copy.deepcopy(universe.get_nodes_in_cluster(cluster.uuid))
            logger.info("Decommissioning nodes", count=len(existing), cluster_uuid=cluster.uuid)
            for node in existing:
                node.state = NodeState.TO_BE_REMOVED
                nodes.append(node)

            if cluster.is_primary:
                self.elector.select_masters(new_nodes, intent.replication_factor)

        return new_nodes

    def configure_nodes_using_placement_info(
        self,
        cluster: Cluster,
        nodes: List[NodeRecord],
        node_prefix: str,
        is_edit: bool,
    ) -> None:
        """
        Add or remove nodes per zone until each zone matches the placement.

        Raises:
            InvariantViolation: No removable tserver-only node in a zone
                that must shrink during an edit
        """
        placement = cluster.placement_info
        cluster_nodes = [n for n in nodes if n.is_in_placement(cluster.uuid)]
        indexes = self.get_delta_placement_indices(placement, cluster_nodes)

        adds = [index for index in indexes if index.action == Action.ADD]
        self._check_inventory(cluster, adds)

        start_index = get_next_index_to_configure(nodes)
        added: List[NodeRecord] = []
        for index in indexes:
            if index.action == Action.ADD:
                added.append(
                    self._create_node(cluster, node_prefix, index, start_index + len(added))
                )
            elif index.action == Action.REMOVE:
                _, _, az = placement.resolve(index)
                if is_edit:
                    self._decommission_node_in_az(nodes, cluster.uuid, az.uuid)
                else:
                    self._remove_node_in_az(nodes, cluster.uuid, az.uuid)
                if az.num_nodes_in_az > 0:
                    az.num_nodes_in_az -= 1

        nodes.extend(added)

    def configure_nodes_using_user_intent(
        self,
        cluster: Cluster,
        nodes: List[NodeRecord],
        node_prefix: str,
        is_edit: bool,
    ) -> None:
        """
        Grow or shrink the cluster to the intent's node count.

        Shrinks pick non-master nodes in iteration order. Expansions go to
        the least occupied zones first.

        Raises:
            InvariantViolation: Not enough removable non-master nodes
            InsufficientInventoryError: On-prem zones are out of machines
        """
        intent = cluster.user_intent
        cluster_nodes = [n for n in nodes if n.is_in_placement(cluster.uuid) and not n.is_leaving()]
        num_delta = intent.num_nodes - len(cluster_nodes)
        logger.info(
            "Nodes desired vs existing",
            desired=intent.num_nodes,
            existing=len(cluster_nodes),
        )

        if num_delta < 0:
            self._remove_non_masters(cluster, nodes, -num_delta, is_edit)
        elif num_delta > 0:
            occupancy = {az.uuid: 0 for az in cluster.placement_info.zones()}
            occupancy.update(get_az_to_num_nodes(cluster_nodes))
            ordered = sorted(occupancy.items(), key=lambda item: item[1])

            indexes = []
            for az_uuid, _ in ordered:
                index = cluster.placement_info.index_of(az_uuid)
                if index is not None:
                    indexes.append(index)

            slots = self._round_robin(indexes, num_delta, cluster)
            start_index = get_next_index_to_configure(nodes)
            self._add_nodes(slots, start_index, cluster, nodes, node_prefix)

    def configure_node_edit_using_placement_info(
        self,
        task_params: UniverseDefinition,
        universe: Universe,
    ) -> None:
        """
        Apply an operator-authored placement to the primary cluster.

        - Cleared placement: regenerate it and fully move the cluster.
        - Same zones as today, each with at least its current count: expand
          in place.
        - Anything else: full move to the new placement.
        """
        primary = task_params.get_primary_cluster()
        nodes = task_params.node_details_set
        prefix = task_params.node_prefix
        existing_primary = universe.universe_details.get_primary_cluster()
        existing_nodes = copy.deepcopy(universe.get_nodes_in_cluster(existing_primary.uuid))

        if primary.placement_info is None:
            logger.info("Placement reset, generating new placement for full move")
            task_params.remove_nodes_in_cluster(primary.uuid)
            primary.placement_info = self.generator.generate(primary.user_intent)
            self.configure_default_node_states(primary, nodes, prefix, universe)
            return

        required = primary.placement_info.az_to_num_nodes()
        current = get_az_to_num_nodes(existing_nodes)
        required_zones = {az_uuid for az_uuid, count in required.items() if count > 0}
        is_simple_expand = required_zones == set(current) and all(
            required[az_uuid] >= count for az_uuid, count in current.items()
        )

        if is_simple_expand:
            logger.info("Manual placement is a simple expand", required=required, current=current)
            self.configure_nodes_using_placement_info(primary, nodes, prefix, True)
            return

        logger.info("Manual placement requires full move", required=required, current=current)
        start_index = get_next_index_to_configure(list(nodes) + universe.get_nodes())
        task_params.remove_nodes_in_cluster(primary.uuid)

        slots = []
        for index, _, _, az in primary.placement_info.iter_zones():
            slots.extend(
                PlacementIndex(index.cloud_idx, index.region_idx, index.az_idx, Action.ADD)
                for _ in range(az.num_nodes_in_az)
            )
        self._check_inventory(primary, slots)
        self._add_nodes(slots, start_index, primary, nodes, prefix)

        logger.info("Decommissioning nodes", count=len(existing_nodes), cluster_uuid=primary.uuid)
        for node in existing_nodes:
            node.state = NodeState.TO_BE_REMOVED
            nodes.append(node)

    # Placement index computation

    def get_base_placement(self, num_nodes: int, cluster: Cluster) -> List[PlacementIndex]:
        """Round-robin ``num_nodes`` slots over the placement in tree order."""
        indexes = [index for index, _, _, _ in cluster.placement_info.iter_zones()]
        slots = self._round_robin(indexes, num_nodes, cluster)
        logger.info(
            "Base placement",
            num_nodes=num_nodes,
            indexes=[str(s) for s in slots],
        )
        return slots

    def get_delta_placement_indices(
        self,
        placement: PlacementTree,
        nodes: List[NodeRecord],
    ) -> List[PlacementIndex]:
        """
        ADD/REMOVE slots that bring each zone from its present node count to
        the placement's count, in tree order.
        """
        present_counts = get_az_to_num_nodes(nodes)
        slots: List[PlacementIndex] = []
        for index, _, _, az in placement.iter_zones():
            desired = az.num_nodes_in_az
            present = present_counts.get(az.uuid, 0)
            logger.info("AZ delta", az=az.name, desired=desired, present=present)
            action = Action.ADD if desired > present else Action.REMOVE
            slots.extend(
                PlacementIndex(index.cloud_idx, index.region_idx, index.az_idx, action)
                for _ in range(abs(desired - present))
            )
        logger.debug("Delta placement", indexes=[str(s) for s in slots])
        return slots

    def _round_robin(
        self,
        indexes: List[PlacementIndex],
        num_nodes: int,
        cluster: Cluster,
    ) -> List[PlacementIndex]:
        """
        Cycle through zone indexes until ``num_nodes`` ADD slots are chosen,
        skipping on-prem zones whose free machines are used up.

        Raises:
            InsufficientInventoryError: No zone can take another node
        """
        if num_nodes <= 0:
            return []
        if not indexes:
            raise InvariantViolation(f"No zones to place {num_nodes} nodes of cluster {cluster.uuid}")

        capacities = {idx: self._zone_capacity(cluster, idx) for idx in indexes}
        assigned: Counter = Counter()
        slots: List[PlacementIndex] = []

        while len(slots) < num_nodes:
            progressed = False
            for index in indexes:
                if len(slots) >= num_nodes:
                    break
                capacity = capacities[index]
                if capacity is not None and assigned[index] >= capacity:
                    continue
                assigned[index] += 1
                slots.append(
                    PlacementIndex(index.cloud_idx, index.region_idx, index.az_idx, Action.ADD)
                )
                progressed = True

            if not progressed:
                self._raise_inventory_shortfall(cluster, indexes, num_nodes, capacities)

        return slots

    # Node creation and removal

    def _create_node(
        self,
        cluster: Cluster,
        node_prefix: str,
        index: PlacementIndex,
        node_idx: int,
    ) -> NodeRecord:
        """Build a ToBeAdded tserver node for the zone at ``index``."""
        intent = cluster.user_intent
        cloud, region, az = cluster.placement_info.resolve(index)
        node = NodeRecord(
            node_name=make_node_name(node_prefix, node_idx),
            node_idx=node_idx,
            placement_uuid=cluster.uuid,
            az_uuid=az.uuid,
            cloud_info=CloudInfo(
                cloud=cloud.code,
                region=region.code,
                az=az.name,
                subnet_id=az.subnet,
                instance_type=intent.instance_type,
                assign_public_ip=intent.assign_public_ip,
                use_time_sync=intent.use_time_sync,
                spot_price=intent.spot_price,
            ),
            is_master=False,
            is_tserver=True,
            state=NodeState.TO_BE_ADDED,
        )
        logger.debug("Placed new node", node=node.node_name, index=str(index), az_uuid=az.uuid)
        return node

    def _add_nodes(
        self,
        slots: List[PlacementIndex],
        start_index: int,
        cluster: Cluster,
        nodes: List[NodeRecord],
        node_prefix: str,
    ) -> List[NodeRecord]:
        new_nodes = [
            self._create_node(cluster, node_prefix, slot, start_index + i)
            for i, slot in enumerate(slots)
        ]
        nodes.extend(new_nodes)
        return new_nodes

    def _decommission_node_in_az(self, nodes: List[NodeRecord], cluster_uuid: str, az_uuid: str) -> None:
        cluster_nodes = [n for n in nodes if n.is_in_placement(cluster_uuid)]
        victim = find_active_tserver_only_in_az(cluster_nodes, az_uuid)
        if victim is None:
            logger.error(
                "No active tserver-only node to remove",
                az_uuid=az_uuid,
                nodes=[repr(n) for n in cluster_nodes],
            )
            raise InvariantViolation(f"Should find an active running tserver in AZ {az_uuid}.")

        victim.state = NodeState.TO_BE_REMOVED
        logger.debug("Removing node", node=victim.node_name)

    def _remove_node_in_az(self, nodes: List[NodeRecord], cluster_uuid: str, az_uuid: str) -> bool:
        """Drop a planned non-master node of a zone. Returns False if none was found."""
        for node in nodes:
            if node.is_in_placement(cluster_uuid) and node.az_uuid == az_uuid and not node.is_master:
                nodes.remove(node)
                return True

        logger.warning("No node to drop in zone", cluster_uuid=cluster_uuid, az_uuid=az_uuid)
        return False

    def _remove_non_masters(
        self,
        cluster: Cluster,
        nodes: List[NodeRecord],
        count: int,
        is_edit: bool,
    ) -> None:
        removed = 0
        for node in list(nodes):
            if removed == count:
                break
            if node.is_master or not node.is_in_placement(cluster.uuid) or node.is_leaving():
                continue
            if is_edit:
                if node.is_active():
                    node.state = NodeState.TO_BE_REMOVED
                    logger.debug("Removing node", node=node.node_name)
                    removed += 1
            else:
                nodes.remove(node)
                removed += 1

        if removed < count:
            logger.error("Not enough removable nodes", required=count, removed=removed)
            raise InvariantViolation(
                f"Could only remove {removed} of {count} nodes from cluster {cluster.uuid}."
            )

    # On-prem inventory

    def _zone_capacity(self, cluster: Cluster, index: PlacementIndex) -> Optional[int]:
        """Free machines in a zone, or None when the provider is not on-prem."""
        if cluster.user_intent.provider_type != CloudType.ONPREM:
            return None
        if self.inventory is None:
            return 0
        _, _, az = cluster.placement_info.resolve(index)
        return self.inventory.count_available(az.uuid, cluster.user_intent.instance_type)

    def _check_inventory(self, cluster: Cluster, adds: List[PlacementIndex]) -> None:
        if cluster.user_intent.provider_type != CloudType.ONPREM:
            return

        shortfall: Dict[str, tuple] = {}
        for index, required in Counter(adds).items():
            available = self._zone_capacity(cluster, index)
            if required > available:
                _, _, az = cluster.placement_info.resolve(index)
                shortfall[az.uuid] = (required, available)

        if shortfall:
            logger.error("Insufficient on-prem inventory", shortfall=shortfall)
            raise InsufficientInventoryError(
                f"Not enough nodes configured for instance type "
                f"{cluster.user_intent.instance_type}: {shortfall}",
                shortfall,
            )

    def _raise_inventory_shortfall(
        self,
        cluster: Cluster,
        indexes: List[PlacementIndex],
        num_nodes: int,
        capacities: Dict[PlacementIndex, Optional[int]],
    ) -> None:
        ideal = Counter(indexes[i % len(indexes)] for i in range(num_nodes))
        shortfall: Dict[str, tuple] = {}
        for index, required in ideal.items():
            available = capacities[index]
            if available is not None and required > available:
                _, _, az = cluster.placement_info.resolve(index)
                shortfall[az.uuid] = (required, available)

        logger.error(
            "Insufficient on-prem inventory",
            required=num_nodes,
            shortfall=shortfall,
        )
        raise InsufficientInventoryError(
            f"Not enough nodes for instance type {cluster.user_intent.instance_type}, "
            f"required {num_nodes}: {shortfall}",
            shortfall,
        )

    def check_if_node_params_valid(self, task_params: UniverseDefinition, cluster: Cluster) -> bool:
        """
        Check on-prem inventory against a cluster before configuring it.

        With no nodes yet, the total inventory of the intent's regions must
        cover the requested node count; otherwise every zone must have
        machines for its pending ToBeAdded nodes.

        Returns:
            True if the provider is not on-prem or inventory suffices
        """
        intent = cluster.user_intent
        if intent.provider_type != CloudType.ONPREM:
            return True

        catalog = self.generator.catalog
        available = (
            (lambda az_uuid: self.inventory.count_available(az_uuid, intent.instance_type))
            if self.inventory is not None else (lambda az_uuid: 0)
        )
        cluster_nodes = task_params.get_nodes_in_cluster(cluster.uuid)

        if not cluster_nodes:
            total = sum(
                available(zone.uuid)
                for region_uuid in intent.region_list
                for zone in catalog.zones_for_region(region_uuid)
            )
            if total < intent.num_nodes:
                logger.error("Not enough nodes", required=intent.num_nodes, configured=total)
                return False
            return True

        to_be_added = Counter(
            n.az_uuid for n in cluster_nodes if n.state == NodeState.TO_BE_ADDED
        )
        for az_uuid, required in to_be_added.items():
            found = available(az_uuid)
            if required > found:
                logger.error(
                    "Not enough nodes configured for AZ/instance type",
                    required=required,
                    found=found,
                    az_uuid=az_uuid,
                    instance_type=intent.instance_type,
                )
                return False
        return True
