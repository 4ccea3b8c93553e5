"""
Initial placement generation.

Spreads the replication factor across zones and regions so that losing a
single zone (or region, with three regions) costs at most one replica:
- One effective zone: every replica goes there.
- Two or fewer zones overall: node slots round-robin across them and the
  first RF slots carry the replicas.
- One region: three distinct zones.
- Two regions: two zones in the preferred region, one in the other.
- Three regions: one zone in each.
"""

import random
from typing import List, Optional, Sequence

from universeplanner.catalog.catalog import TopologyCatalog, ZoneInfo
from universeplanner.cluster.intent import (
    SUPPORTED_REPLICATION_FACTORS,
    ClusterIntent,
    verify_nodes_and_rf,
)
from universeplanner.errors import InfeasibleIntentError
from universeplanner.placement.tree import PlacementTree
from universeplanner.utils.logging import get_logger

logger = get_logger(__name__)


class PlacementGenerator:
    """
    Builds the initial placement tree for a cluster intent.

    Zone choice within a region is uniformly random; pass a seeded
    ``random.Random`` for reproducible placements.
    """

    def __init__(
        self,
        catalog: TopologyCatalog,
        rng: Optional[random.Random] = None,
        supported_rfs: Sequence[int] = SUPPORTED_REPLICATION_FACTORS,
    ):
        """
        Initialize placement generator.

        Args:
            catalog: Topology catalog for region/zone lookups
            rng: Randomness source for zone selection
            supported_rfs: Allowed replication factors
        """
        self.catalog = catalog
        self.rng = rng or random.Random()
        self.supported_rfs = tuple(supported_rfs)

    def is_region_list_multi_az(self, intent: ClusterIntent) -> bool:
        """Check whether the intent spans more than one zone."""
        if len(intent.region_list) > 1:
            return True
        return len(self.catalog.zones_for_region(intent.region_list[0])) > 1

    def generate(self, intent: ClusterIntent) -> PlacementTree:
        """
        Generate a placement tree for an intent.

        Args:
            intent: Requested cluster shape

        Returns:
            Placement tree whose replication factor contributions sum to RF

        Raises:
            InvalidIntentError: RF or node count not allowed
            InfeasibleIntentError: Regions cannot satisfy the placement policy
        """
        if not intent.region_list:
            logger.error("No regions given for placement", universe=intent.universe_name)
            raise InfeasibleIntentError("Cannot place a cluster without regions.")

        verify_nodes_and_rf(intent.num_nodes, intent.replication_factor, self.supported_rfs)

        if intent.preferred_region is not None and intent.preferred_region not in intent.region_list:
            logger.error(
                "Preferred region not in region list",
                preferred_region=intent.preferred_region,
                region_list=intent.region_list,
            )
            raise InfeasibleIntentError(
                f"Preferred region {intent.preferred_region} not in user region list."
            )

        placement = PlacementTree()

        if not self.is_region_list_multi_az(intent):
            self._place_single_zone(intent, placement)
        else:
            all_zones: List[ZoneInfo] = []
            for region_uuid in intent.region_list:
                all_zones.extend(self.catalog.zones_for_region(region_uuid))

            if len(all_zones) <= 2:
                # Slots past the replication factor carry no replica.
                num_slots = max(intent.num_nodes, intent.replication_factor)
                for idx in range(num_slots):
                    replicas = 1 if idx < intent.replication_factor else 0
                    self._add_zone(all_zones[idx % len(all_zones)], placement, replicas)
            else:
                self._place_across_regions(intent, placement)

        logger.info(
            "Generated placement",
            universe=intent.universe_name,
            replication_factor=intent.replication_factor,
            zones=placement.az_to_num_nodes(),
        )
        return placement

    def _place_single_zone(self, intent: ClusterIntent, placement: PlacementTree) -> None:
        region_uuid = intent.region_list[0]
        zones = list(self.catalog.zones_for_region(region_uuid))
        if not zones:
            logger.error("Region has no zones", region=region_uuid)
            raise InfeasibleIntentError(f"No AZ found for region: {region_uuid}")

        self.rng.shuffle(zones)
        zone = zones[0]
        logger.info("Using single AZ", zone=zone.uuid, candidates=len(zones))

        for _ in range(intent.replication_factor):
            self._add_zone(zone, placement)

    def _place_across_regions(self, intent: ClusterIntent, placement: PlacementTree) -> None:
        regions = intent.region_list

        if len(regions) == 1:
            self._select_and_add_zones(regions[0], placement, 3)
        elif len(regions) == 2:
            preferred = intent.preferred_region
            if preferred is None:
                if len(self.catalog.zones_for_region(regions[0])) >= 2:
                    preferred = regions[0]
                else:
                    preferred = regions[1]
            other = regions[1] if regions[0] == preferred else regions[0]

            self._select_and_add_zones(preferred, placement, 2)
            self._select_and_add_zones(other, placement, 1)
        elif len(regions) == 3:
            for region_uuid in regions:
                self._select_and_add_zones(region_uuid, placement, 1)
        else:
            logger.error(
                "Too many regions for placement",
                num_regions=len(regions),
                replication_factor=intent.replication_factor,
            )
            raise InfeasibleIntentError(
                f"Unsupported placement, num regions {len(regions)} is more than "
                f"replication factor of {intent.replication_factor}"
            )

    def _select_and_add_zones(self, region_uuid: str, placement: PlacementTree, num_zones: int) -> None:
        """Pick ``num_zones`` distinct random zones of a region."""
        region = self.catalog.get_region(region_uuid)
        zones = list(self.catalog.zones_for_region(region_uuid))
        if len(zones) < num_zones:
            logger.error(
                "Not enough zones in region",
                region=region.name,
                required=num_zones,
                available=len(zones),
            )
            raise InfeasibleIntentError(
                f"Need at least {num_zones} zones but found only {len(zones)} "
                f"for region {region.name}"
            )

        for zone in self.rng.sample(zones, num_zones):
            self._add_zone(zone, placement)

    def _add_zone(self, zone: ZoneInfo, placement: PlacementTree, replicas: int = 1) -> None:
        region = self.catalog.get_region(zone.region_uuid)
        provider = self.catalog.get_provider(region.provider_uuid)
        placement.add_zone(zone, region, provider, replicas)
