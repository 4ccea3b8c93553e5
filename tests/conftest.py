"""Shared fixtures for planner tests."""

import copy
import random

import pytest

from universeplanner.catalog import CloudType, InMemoryTopologyCatalog
from universeplanner.cluster import (
    CloudInfo,
    Cluster,
    ClusterIntent,
    ClusterType,
    NodeRecord,
    NodeState,
    Universe,
    UniverseDefinition,
)
from universeplanner.placement import PlacementTree
from universeplanner.planner import MasterElector, UniversePlanner
from universeplanner.utils import Config, reset_config


CATALOG = {
    "providers": [
        {
            "uuid": "p-aws",
            "code": "aws",
            "regions": [
                {"uuid": "r1", "code": "us-west-1", "zones": [
                    {"uuid": "z1a", "name": "us-west-1a", "subnet": "s1a"},
                    {"uuid": "z1b", "name": "us-west-1b", "subnet": "s1b"},
                    {"uuid": "z1c", "name": "us-west-1c", "subnet": "s1c"},
                ]},
                {"uuid": "r2", "code": "us-west-2", "zones": [
                    {"uuid": "z2a", "name": "us-west-2a", "subnet": "s2a"},
                    {"uuid": "z2b", "name": "us-west-2b", "subnet": "s2b"},
                    {"uuid": "z2c", "name": "us-west-2c", "subnet": "s2c"},
                ]},
                {"uuid": "r3", "code": "us-east-1", "zones": [
                    {"uuid": "z3a", "name": "us-east-1a", "subnet": "s3a"},
                    {"uuid": "z3b", "name": "us-east-1b", "subnet": "s3b"},
                    {"uuid": "z3c", "name": "us-east-1c", "subnet": "s3c"},
                ]},
                {"uuid": "r4", "code": "eu-west-1", "zones": [
                    {"uuid": "z4a", "name": "eu-west-1a", "subnet": "s4a"},
                ]},
                {"uuid": "r5", "code": "ap-south-1", "zones": [
                    {"uuid": "z5a", "name": "ap-south-1a", "subnet": "s5a"},
                    {"uuid": "z5b", "name": "ap-south-1b", "subnet": "s5b"},
                ]},
                {"uuid": "r6", "code": "ap-east-1", "zones": [
                    {"uuid": "z6a", "name": "ap-east-1a", "subnet": "s6a"},
                    {"uuid": "z6b", "name": "ap-east-1b", "subnet": "s6b"},
                    {"uuid": "z6c", "name": "ap-east-1c", "subnet": "s6c"},
                ]},
            ],
        },
        {
            "uuid": "p-gcp",
            "code": "gcp",
            "regions": [
                {"uuid": "g1", "code": "us-central1", "zones": [
                    {"uuid": "zg1a", "name": "us-central1-a", "subnet": "sg1a"},
                    {"uuid": "zg1b", "name": "us-central1-b", "subnet": "sg1b"},
                    {"uuid": "zg1c", "name": "us-central1-c", "subnet": "sg1c"},
                ]},
            ],
        },
        {
            "uuid": "p-onprem",
            "code": "onprem",
            "regions": [
                {"uuid": "o1", "code": "dc1", "zones": [
                    {"uuid": "zo1a", "name": "rack-a", "subnet": "so1a"},
                    {"uuid": "zo1b", "name": "rack-b", "subnet": "so1b"},
                    {"uuid": "zo1c", "name": "rack-c", "subnet": "so1c"},
                ]},
            ],
        },
    ],
}


@pytest.fixture
def catalog():
    """Catalog with AWS, GCP and on-prem providers."""
    return InMemoryTopologyCatalog.from_dict(CATALOG)


@pytest.fixture
def config(monkeypatch):
    """Configuration without environment overrides."""
    for var in ("PLANNER_LOG_LEVEL", "PLANNER_LOG_FORMAT", "PLANNER_RANDOM_SEED", "PLANNER_NODE_PREFIX"):
        monkeypatch.delenv(var, raising=False)
    reset_config()
    yield Config()
    reset_config()


@pytest.fixture
def planner(catalog, config):
    """Planner with a seeded randomness source."""
    return UniversePlanner(catalog, config=config, rng=random.Random(42))


@pytest.fixture
def make_intent():
    """Factory for cluster intents on the AWS provider."""
    def _make(num_nodes=3, replication_factor=3, region_list=("r1",), **kwargs):
        kwargs.setdefault("universe_name", "demo")
        kwargs.setdefault("provider", "p-aws")
        kwargs.setdefault("provider_type", CloudType.AWS)
        kwargs.setdefault("instance_type", "c5.large")
        return ClusterIntent(
            num_nodes=num_nodes,
            replication_factor=replication_factor,
            region_list=list(region_list),
            **kwargs,
        )
    return _make


@pytest.fixture
def make_task_params():
    """Factory for a create request holding one primary cluster."""
    def _make(intent, cluster_uuid="c1"):
        return UniverseDefinition(
            clusters=[Cluster(uuid=cluster_uuid, cluster_type=ClusterType.PRIMARY, user_intent=intent)],
        )
    return _make


@pytest.fixture
def persist():
    """
    Turn a planned request into the persisted universe that provisioning
    would leave behind: removed nodes are gone, added nodes are running and
    the primary has its masters.
    """
    def _persist(task_params, name="demo"):
        details = copy.deepcopy(task_params)
        details.node_details_set = [
            n for n in details.node_details_set if n.state != NodeState.TO_BE_REMOVED
        ]
        for node in details.node_details_set:
            if node.state == NodeState.TO_BE_ADDED:
                node.state = NodeState.RUNNING
                node.cloud_info.private_ip = f"10.0.0.{node.node_idx}"

        primary = details.get_primary_cluster()
        primary_nodes = details.get_nodes_in_cluster(primary.uuid)
        missing = primary.user_intent.replication_factor - sum(1 for n in primary_nodes if n.is_master)
        if missing > 0:
            MasterElector().select_masters(primary_nodes, missing)

        return Universe(universe_uuid=details.universe_uuid, name=name, universe_details=details)
    return _persist


@pytest.fixture
def edit_request():
    """The request a caller sends to edit a universe: a copy of its details."""
    def _make(universe):
        return copy.deepcopy(universe.universe_details)
    return _make


@pytest.fixture
def make_node():
    """Factory for node records."""
    def _make(idx, az_uuid, cluster_uuid="c1", subnet=None, is_master=False,
              state=NodeState.RUNNING, prefix="univ-1-demo"):
        return NodeRecord(
            node_name=f"{prefix}-n{idx}",
            node_idx=idx,
            placement_uuid=cluster_uuid,
            az_uuid=az_uuid,
            cloud_info=CloudInfo(subnet_id=subnet, private_ip=f"10.0.0.{idx}"),
            is_master=is_master,
            state=state,
        )
    return _make


@pytest.fixture
def placement_for(catalog):
    """Build a placement tree from ``{zone_uuid: node_count}``, one replica per zone."""
    def _make(counts):
        tree = PlacementTree()
        for zone_uuid, count in counts.items():
            zone = catalog.get_zone(zone_uuid)
            region = catalog.get_region(zone.region_uuid)
            az = tree.add_zone(zone, region, catalog.get_provider(region.provider_uuid))
            az.num_nodes_in_az = count
        return tree
    return _make


@pytest.fixture
def uneven_universe(make_intent, make_node, placement_for):
    """
    Running RF 3 universe of 7 nodes in r1:
    z1a holds n1, n2 (masters) and n3; z1b holds n4 (master) and n5;
    z1c holds n6 and n7.
    """
    layout = [
        (1, "z1a", True), (2, "z1a", True), (3, "z1a", False),
        (4, "z1b", True), (5, "z1b", False),
        (6, "z1c", False), (7, "z1c", False),
    ]
    nodes = [
        make_node(idx, az, subnet=az.replace("z", "s"), is_master=master)
        for idx, az, master in layout
    ]
    cluster = Cluster(
        uuid="c1",
        cluster_type=ClusterType.PRIMARY,
        user_intent=make_intent(num_nodes=7),
        placement_info=placement_for({"z1a": 3, "z1b": 2, "z1c": 2}),
    )
    details = UniverseDefinition(
        universe_uuid="u1",
        clusters=[cluster],
        node_details_set=nodes,
        node_prefix="univ-1-demo",
    )
    return Universe(universe_uuid="u1", name="demo", universe_details=details)
