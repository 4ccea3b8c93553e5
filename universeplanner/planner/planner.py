"""
Universe planning entry point.

Wires the placement generator, mode selector, edit validator, master
elector and node reconciler together and runs one configure pass for a
cluster of a universe.
"""

import random
from typing import Optional

from universeplanner.catalog.catalog import TopologyCatalog
from universeplanner.catalog.inventory import NodeInventory
from universeplanner.cluster.intent import SUPPORTED_REPLICATION_FACTORS
from universeplanner.cluster.universe import (
    Cluster,
    Universe,
    UniverseDefinition,
    make_node_prefix,
    new_universe_uuid,
    populate_cluster_indices,
)
from universeplanner.errors import InvalidIntentError
from universeplanner.placement.generator import PlacementGenerator
from universeplanner.placement.tree import PlacementTree, did_affinitized_leaders_change
from universeplanner.planner.masters import MAX_MASTER_SUBNETS, MasterElector
from universeplanner.planner.modes import ConfigureNodesMode, ModeSelector
from universeplanner.planner.reconciler import NodeReconciler, ensure_unique_node_names
from universeplanner.planner.validator import EditValidator
from universeplanner.utils.config import Config, get_config
from universeplanner.utils.logging import get_logger, planning_context

logger = get_logger(__name__)


class UniversePlanner:
    """
    Plans node changes for universe create and edit requests.

    Example:
        >>> planner = UniversePlanner(catalog)
        >>> mode = planner.update_universe_definition(task_params, 1, cluster_uuid)
        >>> [n.node_name for n in task_params.node_details_set]
        ['univ-1-demo-n1', 'univ-1-demo-n2', 'univ-1-demo-n3']
    """

    def __init__(
        self,
        catalog: TopologyCatalog,
        inventory: Optional[NodeInventory] = None,
        config: Optional[Config] = None,
        rng: Optional[random.Random] = None,
    ):
        """
        Initialize planner.

        Args:
            catalog: Topology catalog
            inventory: On-prem machine inventory
            config: Configuration (defaults to the global config)
            rng: Randomness source for zone selection, seeded from
                ``planner.random_seed`` when not given
        """
        self.config = config or get_config()

        if rng is None:
            rng = random.Random(self.config.get("planner.random_seed"))

        supported_rfs = tuple(
            self.config.get("planner.supported_replication_factors", SUPPORTED_REPLICATION_FACTORS)
        )
        self.node_prefix_base = self.config.get("planner.node_prefix", "univ")

        self.catalog = catalog
        self.generator = PlacementGenerator(catalog, rng, supported_rfs)
        self.selector = ModeSelector(catalog)
        self.validator = EditValidator(supported_rfs)
        self.elector = MasterElector(
            self.config.get("planner.max_master_subnets", MAX_MASTER_SUBNETS)
        )
        self.reconciler = NodeReconciler(self.generator, self.elector, inventory)

    def get_placement_info(self, cluster: Cluster) -> PlacementTree:
        """Generate a fresh placement for a cluster's intent."""
        return self.generator.generate(cluster.user_intent)

    def check_if_node_params_valid(self, task_params: UniverseDefinition, cluster: Cluster) -> bool:
        return self.reconciler.check_if_node_params_valid(task_params, cluster)

    def update_universe_definition(
        self,
        task_params: UniverseDefinition,
        customer_id: int,
        cluster_uuid: str,
        universe: Optional[Universe] = None,
    ) -> ConfigureNodesMode:
        """
        Configure the nodes of one cluster of a universe.

        The placement and working node set of ``task_params`` are updated in
        place. ``universe`` is only read; edits plan on copies of its nodes.

        Args:
            task_params: Requested definition
            customer_id: Owning customer, used in node names
            cluster_uuid: Cluster to configure
            universe: Persisted universe, None when creating one

        Returns:
            The configure mode that was applied

        Raises:
            TopologyPlannerError: Planning failed, see ``universeplanner.errors``
        """
        cluster = task_params.get_cluster_by_uuid(cluster_uuid)
        if cluster is None:
            logger.error("Unknown cluster", cluster_uuid=cluster_uuid)
            raise InvalidIntentError(f"Cluster {cluster_uuid} not found in request.")

        if task_params.universe_uuid is None:
            task_params.universe_uuid = (
                universe.universe_uuid if universe is not None else new_universe_uuid()
            )

        with planning_context(universe_uuid=task_params.universe_uuid, cluster_uuid=cluster_uuid):
            return self._plan(task_params, customer_id, cluster, universe)

    def _plan(
        self,
        task_params: UniverseDefinition,
        customer_id: int,
        cluster: Cluster,
        universe: Optional[Universe],
    ) -> ConfigureNodesMode:
        cluster_uuid = cluster.uuid
        existing_details = universe.universe_details if universe is not None else None
        is_new_cluster = (
            existing_details is None or existing_details.get_cluster_by_uuid(cluster_uuid) is None
        )
        read_only_create = not cluster.is_primary and is_new_cluster
        read_only_edit = not cluster.is_primary and not is_new_cluster
        primary_edit = cluster.is_primary and existing_details is not None

        logger.info(
            "Configuring cluster",
            cluster_type=cluster.cluster_type.value,
            primary_edit=primary_edit,
            read_only_create=read_only_create,
            read_only_edit=read_only_edit,
        )

        if existing_details is not None:
            universe_name = existing_details.get_primary_cluster().user_intent.universe_name
        else:
            universe_name = task_params.get_primary_cluster().user_intent.universe_name
        task_params.node_prefix = make_node_prefix(self.node_prefix_base, customer_id, universe_name)
        populate_cluster_indices(task_params)

        is_edit = primary_edit or read_only_edit
        edit_universe = universe if is_edit else None

        if read_only_edit:
            self._load_working_set(task_params, universe)

        if cluster.placement_info is None and not primary_edit:
            task_params.remove_nodes_in_cluster(cluster_uuid)
            cluster.placement_info = self.get_placement_info(cluster)
            mode = ConfigureNodesMode.NEW_CONFIG
            self._configure(task_params, edit_universe, mode, cluster)
            return mode

        placement_generated = False
        if primary_edit:
            if task_params.user_az_selected:
                self._load_working_set(task_params, universe)
                mode = ConfigureNodesMode.NEW_CONFIG_FROM_PLACEMENT_INFO
                self._configure(task_params, universe, mode, cluster)
                return mode

            old_cluster = existing_details.get_primary_cluster()
            self.validator.validate_edit(old_cluster, cluster)
            self._load_working_set(task_params, universe)

            if cluster.placement_info is None:
                logger.info("Edit without placement, generating new placement")
                cluster.placement_info = self.get_placement_info(cluster)
                placement_generated = True
                mode = ConfigureNodesMode.NEW_CONFIG
            elif did_affinitized_leaders_change(old_cluster.placement_info, cluster.placement_info):
                logger.info("Only leader affinity changed")
                mode = ConfigureNodesMode.UPDATE_FROM_PLACEMENT_INFO
            else:
                mode = self.selector.select(existing_details, task_params, cluster)
        else:
            mode = self.selector.select(
                existing_details if read_only_edit else None, task_params, cluster
            )

        if mode == ConfigureNodesMode.NEW_CONFIG:
            nodes = universe.get_nodes() if is_edit else task_params.node_details_set
            if placement_generated:
                logger.info("Full move with generated placement")
            elif self.selector.is_provider_or_region_change(cluster, nodes):
                logger.info("Provider or region changed, new placement for full move")
                cluster.placement_info = self.get_placement_info(cluster)
            else:
                logger.info("Full move with existing placement")
            task_params.remove_nodes_in_cluster(cluster_uuid)

        self._configure(task_params, edit_universe, mode, cluster)
        return mode

    def _load_working_set(self, task_params: UniverseDefinition, universe: Universe) -> None:
        """Replace the working node set with copies of the persisted nodes."""
        task_params.node_details_set[:] = universe.copy_nodes()

    def _configure(
        self,
        task_params: UniverseDefinition,
        universe: Optional[Universe],
        mode: ConfigureNodesMode,
        cluster: Cluster,
    ) -> None:
        self.reconciler.configure_node_states(task_params, universe, mode, cluster)
        ensure_unique_node_names(task_params.node_details_set)
        logger.info(
            "Configured cluster",
            mode=mode.value,
            nodes=[repr(n) for n in task_params.get_nodes_in_cluster(cluster.uuid)],
            placement=cluster.placement_info.az_to_num_nodes() if cluster.placement_info else {},
        )
