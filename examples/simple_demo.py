#!/usr/bin/env python3
"""
Simple demo of the universe planner.

Plans a 3 node universe, applies the plan, then grows it to 5 nodes and
shrinks it back.
"""

import random

from universeplanner.catalog import CloudType, InMemoryTopologyCatalog
from universeplanner.cluster import (
    Cluster,
    ClusterIntent,
    ClusterType,
    NodeState,
    Universe,
    UniverseDefinition,
    get_nodes_to_be_removed,
    get_nodes_to_provision,
)
from universeplanner.errors import TopologyPlannerError
from universeplanner.planner import MasterElector, UniversePlanner

CATALOG = {
    "providers": [{
        "uuid": "aws-1",
        "code": "aws",
        "regions": [{
            "uuid": "us-west-2",
            "code": "us-west-2",
            "zones": [
                {"uuid": "usw2-az1", "name": "us-west-2a", "subnet": "subnet-a"},
                {"uuid": "usw2-az2", "name": "us-west-2b", "subnet": "subnet-b"},
                {"uuid": "usw2-az3", "name": "us-west-2c", "subnet": "subnet-c"},
            ],
        }],
    }],
}


def apply(task_params):
    """Pretend provisioning ran: drop removed nodes, start added ones."""
    task_params.node_details_set[:] = [
        n for n in task_params.node_details_set if n.state != NodeState.TO_BE_REMOVED
    ]
    for node in task_params.node_details_set:
        if node.state == NodeState.TO_BE_ADDED:
            node.state = NodeState.RUNNING
            node.cloud_info.private_ip = f"10.0.0.{node.node_idx}"

    primary = task_params.get_primary_cluster()
    nodes = task_params.get_nodes_in_cluster(primary.uuid)
    missing = primary.user_intent.replication_factor - sum(1 for n in nodes if n.is_master)
    if missing > 0:
        MasterElector().select_masters(nodes, missing)

    return Universe(task_params.universe_uuid, "demo", task_params)


def show(mode, task_params):
    print(f"  mode: {mode.value}")
    placement = task_params.get_primary_cluster().placement_info
    print(f"  placement: {placement.az_to_num_nodes()}")
    for node in get_nodes_to_provision(task_params.node_details_set):
        print(f"  + {node.node_name} in {node.cloud_info.az}")
    for node in get_nodes_to_be_removed(task_params.node_details_set):
        print(f"  - {node.node_name} in {node.cloud_info.az}")


def edit(planner, universe, num_nodes):
    task_params = UniverseDefinition.from_dict(universe.universe_details.to_dict())
    task_params.get_primary_cluster().user_intent.num_nodes = num_nodes
    mode = planner.update_universe_definition(task_params, 1, "primary", universe)
    show(mode, task_params)
    return apply(task_params)


def main():
    print("=" * 60)
    print("Universe planner - Simple Create/Edit Demo")
    print("=" * 60)

    catalog = InMemoryTopologyCatalog.from_dict(CATALOG)
    planner = UniversePlanner(catalog, rng=random.Random(7))

    print("\n[1] Planning a 3 node RF 3 universe...")
    intent = ClusterIntent(
        universe_name="demo",
        num_nodes=3,
        replication_factor=3,
        region_list=["us-west-2"],
        provider="aws-1",
        provider_type=CloudType.AWS,
        instance_type="c5.large",
    )
    task_params = UniverseDefinition(
        clusters=[Cluster(uuid="primary", cluster_type=ClusterType.PRIMARY, user_intent=intent)],
    )
    mode = planner.update_universe_definition(task_params, 1, "primary")
    show(mode, task_params)
    universe = apply(task_params)

    print("\n[2] Growing to 5 nodes...")
    universe = edit(planner, universe, 5)

    print("\n[3] Shrinking back to 3 nodes...")
    universe = edit(planner, universe, 3)

    print("\n[4] Submitting an edit that changes nothing...")
    try:
        edit(planner, universe, 3)
    except TopologyPlannerError as e:
        print(f"  rejected: {e}")

    print("\n" + "=" * 60)
    print("Demo complete!")
    print("=" * 60)


if __name__ == "__main__":
    main()
