#!/usr/bin/env python3
"""
Command-line entry point for a single planning pass.

Usage:
    # Plan a new universe
    python -m universeplanner.main --catalog catalog.yaml --request request.yaml \
        --cluster-uuid primary-1

    # Plan an edit of an existing universe with on-prem inventory
    python -m universeplanner.main --catalog catalog.yaml --request request.yaml \
        --universe universe.yaml --inventory inventory.yaml --cluster-uuid primary-1
"""

import argparse
import json
import random
import sys

import yaml

from universeplanner.catalog import InMemoryTopologyCatalog, StaticNodeInventory
from universeplanner.cluster import Universe, UniverseDefinition
from universeplanner.errors import TopologyPlannerError
from universeplanner.planner import UniversePlanner
from universeplanner.utils import configure_logging, get_config, get_logger

logger = get_logger(__name__)


def parse_args(argv=None):
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        description='Universe topology planner - compute node changes for a universe'
    )

    parser.add_argument(
        '--catalog',
        type=str,
        required=True,
        help='YAML file describing providers, regions and zones'
    )

    parser.add_argument(
        '--request',
        type=str,
        required=True,
        help='YAML file with the requested universe definition'
    )

    parser.add_argument(
        '--universe',
        type=str,
        default=None,
        help='YAML file with the persisted universe (omit when creating)'
    )

    parser.add_argument(
        '--inventory',
        type=str,
        default=None,
        help='YAML file with free on-prem machines per zone and instance type'
    )

    parser.add_argument(
        '--cluster-uuid',
        type=str,
        required=True,
        help='Cluster to configure'
    )

    parser.add_argument(
        '--customer-id',
        type=int,
        default=1,
        help='Customer ID used in node names (default: 1)'
    )

    parser.add_argument(
        '--seed',
        type=int,
        default=None,
        help='Random seed for zone selection'
    )

    parser.add_argument(
        '--log-level',
        type=str,
        default=None,
        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
        help='Logging level (default: from config)'
    )

    return parser.parse_args(argv)


def _load_yaml(path: str) -> dict:
    with open(path, "r") as f:
        return yaml.safe_load(f) or {}


def main(argv=None) -> int:
    """Main entry point."""
    args = parse_args(argv)
    config = get_config()

    configure_logging(
        log_level=args.log_level or config.get("logging.level", "INFO"),
        log_format=config.get("logging.format", "json"),
        log_output="stderr",
    )

    catalog = InMemoryTopologyCatalog.from_yaml(args.catalog)
    inventory = StaticNodeInventory.from_yaml(args.inventory) if args.inventory else None
    task_params = UniverseDefinition.from_dict(_load_yaml(args.request))
    universe = Universe.from_dict(_load_yaml(args.universe)) if args.universe else None

    seed = args.seed if args.seed is not None else config.get("planner.random_seed")
    planner = UniversePlanner(catalog, inventory, config, random.Random(seed))

    logger.info(
        "Planning universe",
        cluster_uuid=args.cluster_uuid,
        customer_id=args.customer_id,
        is_edit=universe is not None,
    )

    try:
        mode = planner.update_universe_definition(
            task_params, args.customer_id, args.cluster_uuid, universe
        )
    except TopologyPlannerError as e:
        logger.error("Planning failed", error=str(e), error_type=type(e).__name__)
        print(f"error: {e}", file=sys.stderr)
        return 1

    output = task_params.to_dict()
    output["mode"] = mode.value
    print(json.dumps(output, indent=2))
    return 0


if __name__ == '__main__':
    sys.exit(main())
