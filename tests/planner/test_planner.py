"""End-to-end tests for universe planning."""

import pytest

from universeplanner.cluster import (
    Cluster,
    ClusterType,
    NodeState,
    get_nodes_to_be_removed,
    get_nodes_to_provision,
)
from universeplanner.errors import InvalidIntentError, NoOpEditError, UnsupportedChangeError
from universeplanner.planner import ConfigureNodesMode


def active(nodes):
    return [n for n in nodes if not n.is_leaving()]


class TestCreate:
    """Test planning of new universes."""

    def test_single_zone_region(self, planner, make_intent, make_task_params):
        """Test RF 3 in a single-zone region puts every node in that zone."""
        task_params = make_task_params(make_intent(num_nodes=3, region_list=["r4"]))

        mode = planner.update_universe_definition(task_params, 1, "c1")

        assert mode == ConfigureNodesMode.NEW_CONFIG
        placement = task_params.get_primary_cluster().placement_info
        zones = placement.zones()
        assert len(zones) == 1
        assert zones[0].num_nodes_in_az == 3
        assert zones[0].replication_factor == 3
        assert {n.az_uuid for n in task_params.node_details_set} == {"z4a"}

    def test_node_names_and_universe_id(self, planner, make_intent, make_task_params):
        """Test node names derive from the customer and universe name."""
        task_params = make_task_params(make_intent(num_nodes=3))

        planner.update_universe_definition(task_params, 7, "c1")

        assert task_params.universe_uuid is not None
        assert task_params.node_prefix == "univ-7-demo"
        assert [n.node_name for n in task_params.node_details_set] == [
            "univ-7-demo-n1", "univ-7-demo-n2", "univ-7-demo-n3",
        ]
        assert all(n.state == NodeState.TO_BE_ADDED for n in task_params.node_details_set)

    def test_six_nodes_two_per_zone(self, planner, make_intent, make_task_params):
        """Test base placement round-robins across the zones."""
        task_params = make_task_params(make_intent(num_nodes=6))

        planner.update_universe_definition(task_params, 1, "c1")

        placement = task_params.get_primary_cluster().placement_info
        assert sorted(placement.az_to_num_nodes().values()) == [2, 2, 2]
        assert placement.replication_factor_total() == 3

    def test_reconfigure_before_create(self, planner, make_intent, make_task_params):
        """Test changing the node count of an uncreated universe."""
        task_params = make_task_params(make_intent(num_nodes=6))
        planner.update_universe_definition(task_params, 1, "c1")
        task_params.get_primary_cluster().user_intent.num_nodes = 3

        mode = planner.update_universe_definition(task_params, 1, "c1")

        assert mode == ConfigureNodesMode.UPDATE_FROM_USER_INTENT
        assert [n.node_idx for n in task_params.node_details_set] == [4, 5, 6]
        placement = task_params.get_primary_cluster().placement_info
        assert sorted(placement.az_to_num_nodes().values()) == [1, 1, 1]

    def test_unknown_cluster(self, planner, make_intent, make_task_params):
        """Test configuring a cluster missing from the request."""
        task_params = make_task_params(make_intent())

        with pytest.raises(InvalidIntentError):
            planner.update_universe_definition(task_params, 1, "missing")


class TestEdit:
    """Test planning of edits to running universes."""

    @pytest.fixture
    def universe(self, planner, make_intent, make_task_params, persist):
        """Create running universe of 6 nodes, 2 in each zone of r1."""
        task_params = make_task_params(make_intent(num_nodes=6))
        planner.update_universe_definition(task_params, 1, "c1")
        return persist(task_params)

    def test_grow_one_zone(self, planner, universe, edit_request):
        """Test a zone count increase adds nodes to that zone only."""
        request = edit_request(universe)
        cluster = request.get_primary_cluster()
        grown = cluster.placement_info.zones()[0]
        grown.num_nodes_in_az = 4
        cluster.user_intent.num_nodes = 8
        before = universe.to_dict()

        mode = planner.update_universe_definition(request, 1, "c1", universe)

        assert mode == ConfigureNodesMode.UPDATE_FROM_PLACEMENT_INFO
        added = get_nodes_to_provision(request.node_details_set)
        assert [n.node_idx for n in added] == [7, 8]
        assert {n.az_uuid for n in added} == {grown.uuid}
        assert not get_nodes_to_be_removed(request.node_details_set)
        assert cluster.placement_info.find_zone(grown.uuid).num_nodes_in_az == 4
        assert universe.to_dict() == before

    def test_grow_node_count(self, planner, universe, edit_request):
        """Test a node count increase spreads new nodes across zones."""
        request = edit_request(universe)
        cluster = request.get_primary_cluster()
        cluster.user_intent.num_nodes = 9

        mode = planner.update_universe_definition(request, 1, "c1", universe)

        assert mode == ConfigureNodesMode.UPDATE_FROM_USER_INTENT
        added = get_nodes_to_provision(request.node_details_set)
        assert [n.node_idx for n in added] == [7, 8, 9]
        assert len({n.az_uuid for n in added}) == 3
        assert sorted(cluster.placement_info.az_to_num_nodes().values()) == [3, 3, 3]

    def test_shrink_node_count(self, planner, universe, edit_request):
        """Test a node count decrease keeps the masters."""
        request = edit_request(universe)
        request.get_primary_cluster().user_intent.num_nodes = 3

        mode = planner.update_universe_definition(request, 1, "c1", universe)

        assert mode == ConfigureNodesMode.UPDATE_FROM_USER_INTENT
        removed = get_nodes_to_be_removed(request.node_details_set)
        assert len(removed) == 3
        assert not any(n.is_master for n in removed)
        assert sum(1 for n in active(request.node_details_set) if n.is_master) == 3

    def test_replication_factor_change_rejected(self, planner, universe, edit_request):
        """Test RF changes fail before any node is touched."""
        request = edit_request(universe)
        request.get_primary_cluster().user_intent.replication_factor = 5
        request.get_primary_cluster().user_intent.num_nodes = 10
        before = [n.to_dict() for n in request.node_details_set]

        with pytest.raises(UnsupportedChangeError):
            planner.update_universe_definition(request, 1, "c1", universe)

        assert [n.to_dict() for n in request.node_details_set] == before

    def test_no_op_edit_rejected(self, planner, universe, edit_request):
        """Test an unchanged request is rejected."""
        with pytest.raises(NoOpEditError):
            planner.update_universe_definition(edit_request(universe), 1, "c1", universe)

    def test_leader_affinity_change(self, planner, universe, edit_request):
        """Test flipping leader affinity changes no nodes."""
        request = edit_request(universe)
        request.get_primary_cluster().placement_info.zones()[1].is_affinitized = False

        mode = planner.update_universe_definition(request, 1, "c1", universe)

        assert mode == ConfigureNodesMode.UPDATE_FROM_PLACEMENT_INFO
        assert not get_nodes_to_provision(request.node_details_set)
        assert not get_nodes_to_be_removed(request.node_details_set)

    def test_region_change_moves_everything(self, planner, universe, edit_request, catalog):
        """Test a new region gets a new placement and a full move."""
        request = edit_request(universe)
        cluster = request.get_primary_cluster()
        cluster.user_intent.region_list = ["r2"]

        mode = planner.update_universe_definition(request, 1, "c1", universe)

        assert mode == ConfigureNodesMode.NEW_CONFIG
        added = get_nodes_to_provision(request.node_details_set)
        assert [n.node_idx for n in added] == list(range(7, 13))
        assert {catalog.get_zone(n.az_uuid).region_uuid for n in added} == {"r2"}
        assert len(get_nodes_to_be_removed(request.node_details_set)) == 6
        assert {r.uuid for c in cluster.placement_info.cloud_list for r in c.region_list} == {"r2"}
        assert sum(1 for n in added if n.is_master) == 3

    def test_cleared_placement_region_change_generates_once(
        self, planner, universe, edit_request, monkeypatch
    ):
        """Test a cleared placement with a new region is generated only once."""
        calls = []
        generate = planner.generator.generate

        def counting_generate(intent):
            calls.append(intent.region_list)
            return generate(intent)

        monkeypatch.setattr(planner.generator, "generate", counting_generate)
        request = edit_request(universe)
        cluster = request.get_primary_cluster()
        cluster.user_intent.region_list = ["r2"]
        cluster.placement_info = None

        mode = planner.update_universe_definition(request, 1, "c1", universe)

        assert mode == ConfigureNodesMode.NEW_CONFIG
        assert calls == [["r2"]]
        assert len(get_nodes_to_provision(request.node_details_set)) == 6
        assert len(get_nodes_to_be_removed(request.node_details_set)) == 6

    def test_indices_grow_across_edits(self, planner, universe, edit_request, persist):
        """Test indices keep growing across edits."""
        request = edit_request(universe)
        request.get_primary_cluster().user_intent.num_nodes = 3
        planner.update_universe_definition(request, 1, "c1", universe)
        shrunk = persist(request)

        request = edit_request(shrunk)
        request.get_primary_cluster().user_intent.num_nodes = 4
        planner.update_universe_definition(request, 1, "c1", shrunk)

        added = get_nodes_to_provision(request.node_details_set)
        assert len(added) == 1
        assert added[0].node_idx > max(n.node_idx for n in shrunk.get_nodes())


class TestEditFullMove:
    """Test full moves forced by unsafe zone shrinks."""

    def test_shrink_through_masters(self, planner, uneven_universe, edit_request):
        """Test shrinking a master-heavy zone rebuilds the cluster."""
        request = edit_request(uneven_universe)
        cluster = request.get_primary_cluster()
        cluster.placement_info.find_zone("z1a").num_nodes_in_az = 1
        cluster.user_intent.num_nodes = 5

        mode = planner.update_universe_definition(request, 1, "c1", uneven_universe)

        assert mode == ConfigureNodesMode.NEW_CONFIG
        removed = get_nodes_to_be_removed(request.node_details_set)
        added = get_nodes_to_provision(request.node_details_set)
        assert sorted(n.node_idx for n in removed) == list(range(1, 8))
        assert [n.node_idx for n in added] == list(range(8, 13))
        masters = [n for n in added if n.is_master]
        assert len(masters) == 3
        assert len({n.subnet_id for n in masters}) == 3
        assert cluster.placement_info.node_count() == 5


class TestManualPlacement:
    """Test edits with an operator-authored placement."""

    def test_simple_expand(self, planner, uneven_universe, edit_request):
        """Test growing a zone in place."""
        request = edit_request(uneven_universe)
        request.user_az_selected = True
        cluster = request.get_primary_cluster()
        cluster.placement_info.find_zone("z1b").num_nodes_in_az = 3
        cluster.user_intent.num_nodes = 8

        mode = planner.update_universe_definition(request, 1, "c1", uneven_universe)

        assert mode == ConfigureNodesMode.NEW_CONFIG_FROM_PLACEMENT_INFO
        added = get_nodes_to_provision(request.node_details_set)
        assert [(n.node_idx, n.az_uuid) for n in added] == [(8, "z1b")]
        assert not get_nodes_to_be_removed(request.node_details_set)

    def test_dropping_zones_moves_everything(self, planner, uneven_universe, edit_request):
        """Test a placement that drops zones is a full move."""
        request = edit_request(uneven_universe)
        request.user_az_selected = True
        cluster = request.get_primary_cluster()
        cluster.placement_info.update_from_counts({"z1a": 3})
        cluster.user_intent.num_nodes = 3

        planner.update_universe_definition(request, 1, "c1", uneven_universe)

        added = get_nodes_to_provision(request.node_details_set)
        assert [(n.node_idx, n.az_uuid) for n in added] == [(8, "z1a"), (9, "z1a"), (10, "z1a")]
        assert all(n.is_master for n in added)
        assert len(get_nodes_to_be_removed(request.node_details_set)) == 7

    def test_new_zone_moves_everything(self, planner, uneven_universe, edit_request, catalog):
        """Test a placement that adds an unused zone is a full move."""
        request = edit_request(uneven_universe)
        request.user_az_selected = True
        cluster = request.get_primary_cluster()
        zone = catalog.get_zone("z2a")
        region = catalog.get_region("r2")
        cluster.placement_info.add_zone(zone, region, catalog.get_provider("p-aws"), replicas=0)
        cluster.user_intent.num_nodes = 8

        mode = planner.update_universe_definition(request, 1, "c1", uneven_universe)

        assert mode == ConfigureNodesMode.NEW_CONFIG_FROM_PLACEMENT_INFO
        added = get_nodes_to_provision(request.node_details_set)
        assert [n.node_idx for n in added] == list(range(8, 16))
        assert added[-1].az_uuid == "z2a"
        assert len(get_nodes_to_be_removed(request.node_details_set)) == 7

    def test_cleared_placement_regenerates(self, planner, uneven_universe, edit_request):
        """Test a cleared placement is regenerated for a full move."""
        request = edit_request(uneven_universe)
        request.user_az_selected = True
        cluster = request.get_primary_cluster()
        cluster.placement_info = None

        planner.update_universe_definition(request, 1, "c1", uneven_universe)

        assert cluster.placement_info is not None
        assert cluster.placement_info.node_count() == 7
        assert len(get_nodes_to_provision(request.node_details_set)) == 7
        assert len(get_nodes_to_be_removed(request.node_details_set)) == 7


class TestReadOnlyCluster:
    """Test read replica clusters."""

    @pytest.fixture
    def universe(self, planner, make_intent, make_task_params, persist):
        """Create running universe of 3 nodes."""
        task_params = make_task_params(make_intent(num_nodes=3))
        planner.update_universe_definition(task_params, 1, "c1")
        return persist(task_params)

    def add_read_replica(self, request, make_intent):
        cluster = Cluster(
            uuid="ro1",
            cluster_type=ClusterType.READ_ONLY,
            user_intent=make_intent(num_nodes=3, region_list=["r2"]),
        )
        request.clusters.append(cluster)
        return cluster

    def test_create_read_replica(self, planner, universe, edit_request, make_intent):
        """Test adding a read replica leaves the primary alone."""
        request = edit_request(universe)
        cluster = self.add_read_replica(request, make_intent)

        mode = planner.update_universe_definition(request, 1, "ro1", universe)

        assert mode == ConfigureNodesMode.NEW_CONFIG
        assert cluster.index == 1
        assert request.next_cluster_index == 2
        replicas = request.get_nodes_in_cluster("ro1")
        assert [n.node_idx for n in replicas] == [4, 5, 6]
        assert not any(n.is_master for n in replicas)
        assert all(n.state == NodeState.RUNNING for n in request.get_nodes_in_cluster("c1"))

    def test_expand_read_replica(self, planner, universe, edit_request, make_intent, persist):
        """Test growing an existing read replica."""
        request = edit_request(universe)
        self.add_read_replica(request, make_intent)
        planner.update_universe_definition(request, 1, "ro1", universe)
        with_replica = persist(request)

        request = edit_request(with_replica)
        request.get_cluster_by_uuid("ro1").user_intent.num_nodes = 5
        mode = planner.update_universe_definition(request, 1, "ro1", with_replica)

        assert mode == ConfigureNodesMode.UPDATE_FROM_USER_INTENT
        added = get_nodes_to_provision(request.node_details_set)
        assert [n.node_idx for n in added] == [7, 8]
        assert all(n.placement_uuid == "ro1" for n in added)
        assert request.get_cluster_by_uuid("ro1").index == 1
