"""
Placement tree: Cloud -> Region -> Zone.

Each zone records how many nodes of a cluster live there and how many
replicas of the replication factor it contributes. A tree is kept free of
empty regions and clouds.
"""

import copy
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterator, List, Optional, Tuple

from universeplanner.catalog.catalog import ProviderInfo, RegionInfo, ZoneInfo
from universeplanner.utils.logging import get_logger

logger = get_logger(__name__)


class Action(str, Enum):
    """What to do at a placement index."""

    NONE = "none"
    ADD = "add"
    REMOVE = "remove"


@dataclass(frozen=True)
class PlacementIndex:
    """
    Position of a zone inside a placement tree.

    Attributes:
        cloud_idx: Index into PlacementTree.cloud_list
        region_idx: Index into PlacementCloud.region_list
        az_idx: Index into PlacementRegion.az_list
        action: Action to take at this zone
    """
    cloud_idx: int
    region_idx: int
    az_idx: int
    action: Action = Action.NONE

    def __str__(self) -> str:
        return f"[{self.cloud_idx}:{self.region_idx}:{self.az_idx}:{self.action.value}]"


@dataclass
class PlacementZone:
    """
    Zone level of the placement tree.

    Attributes:
        uuid: Zone ID
        name: Zone name
        replication_factor: Replicas of the RF placed in this zone
        num_nodes_in_az: Target node count for the cluster in this zone
        subnet: Zone subnet ID
        is_affinitized: Whether the zone is a preferred leader zone
    """
    uuid: str
    name: str = ""
    replication_factor: int = 0
    num_nodes_in_az: int = 0
    subnet: Optional[str] = None
    is_affinitized: bool = True

    def to_dict(self) -> dict:
        return {
            "uuid": self.uuid,
            "name": self.name,
            "replication_factor": self.replication_factor,
            "num_nodes_in_az": self.num_nodes_in_az,
            "subnet": self.subnet,
            "is_affinitized": self.is_affinitized,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "PlacementZone":
        return cls(
            uuid=data["uuid"],
            name=data.get("name", ""),
            replication_factor=data.get("replication_factor", 0),
            num_nodes_in_az=data.get("num_nodes_in_az", 0),
            subnet=data.get("subnet"),
            is_affinitized=data.get("is_affinitized", True),
        )


@dataclass
class PlacementRegion:
    """Region level of the placement tree."""
    uuid: str
    code: str = ""
    name: str = ""
    az_list: List[PlacementZone] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "uuid": self.uuid,
            "code": self.code,
            "name": self.name,
            "az_list": [az.to_dict() for az in self.az_list],
        }

    @classmethod
    def from_dict(cls, data: dict) -> "PlacementRegion":
        return cls(
            uuid=data["uuid"],
            code=data.get("code", ""),
            name=data.get("name", ""),
            az_list=[PlacementZone.from_dict(az) for az in data.get("az_list", [])],
        )


@dataclass
class PlacementCloud:
    """Cloud (provider) level of the placement tree."""
    uuid: str
    code: str = ""
    region_list: List[PlacementRegion] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "uuid": self.uuid,
            "code": self.code,
            "region_list": [region.to_dict() for region in self.region_list],
        }

    @classmethod
    def from_dict(cls, data: dict) -> "PlacementCloud":
        return cls(
            uuid=data["uuid"],
            code=data.get("code", ""),
            region_list=[PlacementRegion.from_dict(r) for r in data.get("region_list", [])],
        )


@dataclass
class PlacementTree:
    """
    Per-cluster placement of nodes across clouds, regions and zones.

    Attributes:
        cloud_list: Clouds in placement order
    """
    cloud_list: List[PlacementCloud] = field(default_factory=list)

    def iter_zones(self) -> Iterator[Tuple[PlacementIndex, PlacementCloud, PlacementRegion, PlacementZone]]:
        """Walk every zone in tree order together with its index and parents."""
        for c_idx, cloud in enumerate(self.cloud_list):
            for r_idx, region in enumerate(cloud.region_list):
                for a_idx, az in enumerate(region.az_list):
                    yield PlacementIndex(c_idx, r_idx, a_idx), cloud, region, az

    def zones(self) -> List[PlacementZone]:
        return [az for _, _, _, az in self.iter_zones()]

    def find_zone(self, zone_uuid: str) -> Optional[PlacementZone]:
        """
        Find a zone by ID.

        Returns:
            The zone, or None if the tree does not contain it
        """
        for az in self.zones():
            if az.uuid == zone_uuid:
                return az
        return None

    def index_of(self, zone_uuid: str) -> Optional[PlacementIndex]:
        for index, _, _, az in self.iter_zones():
            if az.uuid == zone_uuid:
                return index
        return None

    def resolve(self, index: PlacementIndex) -> Tuple[PlacementCloud, PlacementRegion, PlacementZone]:
        """Return the cloud, region and zone addressed by an index."""
        cloud = self.cloud_list[index.cloud_idx]
        region = cloud.region_list[index.region_idx]
        return cloud, region, region.az_list[index.az_idx]

    def node_count(self) -> int:
        """Sum of target node counts over all zones."""
        return sum(az.num_nodes_in_az for az in self.zones())

    def replication_factor_total(self) -> int:
        return sum(az.replication_factor for az in self.zones())

    def az_to_num_nodes(self) -> Dict[str, int]:
        """Map zone ID to target node count."""
        return {az.uuid: az.num_nodes_in_az for az in self.zones()}

    def add_zone(
        self,
        zone: ZoneInfo,
        region: RegionInfo,
        provider: ProviderInfo,
        replicas: int = 1,
    ) -> PlacementZone:
        """
        Add one node slot and ``replicas`` replicas to a zone, creating the
        cloud, region and zone branches as needed.

        Returns:
            The (possibly new) placement zone
        """
        placement_cloud = next((c for c in self.cloud_list if c.uuid == provider.uuid), None)
        if placement_cloud is None:
            placement_cloud = PlacementCloud(uuid=provider.uuid, code=provider.code.value)
            self.cloud_list.append(placement_cloud)

        placement_region = next(
            (r for r in placement_cloud.region_list if r.uuid == region.uuid), None
        )
        if placement_region is None:
            placement_region = PlacementRegion(uuid=region.uuid, code=region.code, name=region.name)
            placement_cloud.region_list.append(placement_region)

        placement_az = next((az for az in placement_region.az_list if az.uuid == zone.uuid), None)
        if placement_az is None:
            placement_az = PlacementZone(
                uuid=zone.uuid,
                name=zone.name,
                subnet=zone.subnet,
                is_affinitized=True,
            )
            placement_region.az_list.append(placement_az)

        placement_az.replication_factor += replicas
        placement_az.num_nodes_in_az += 1
        return placement_az

    def prune(self) -> None:
        """Drop regions without zones and clouds without regions."""
        for cloud in self.cloud_list:
            cloud.region_list = [r for r in cloud.region_list if r.az_list]
        self.cloud_list = [c for c in self.cloud_list if c.region_list]

    def update_from_counts(self, az_counts: Dict[str, int]) -> None:
        """
        Overwrite per-zone node counts from a realised distribution.

        Zones absent from ``az_counts`` are removed and the tree is pruned.
        """
        for cloud in self.cloud_list:
            for region in cloud.region_list:
                kept = []
                for az in region.az_list:
                    if az.uuid in az_counts:
                        az.num_nodes_in_az = az_counts[az.uuid]
                        kept.append(az)
                region.az_list = kept
        self.prune()

    def copy(self) -> "PlacementTree":
        return copy.deepcopy(self)

    def to_dict(self) -> dict:
        return {"cloud_list": [cloud.to_dict() for cloud in self.cloud_list]}

    @classmethod
    def from_dict(cls, data: dict) -> "PlacementTree":
        return cls(cloud_list=[PlacementCloud.from_dict(c) for c in data.get("cloud_list", [])])


def is_same_placement(old: Optional[PlacementTree], new: Optional[PlacementTree]) -> bool:
    """
    Check whether two placements hold the same zones with the same node
    counts and leader affinity.
    """
    if old is None or new is None:
        return old is new

    old_zones = {az.uuid: az for az in old.zones()}
    new_zones = {az.uuid: az for az in new.zones()}
    if old_zones.keys() != new_zones.keys():
        return False

    for zone_uuid, az in new_zones.items():
        old_az = old_zones[zone_uuid]
        if (old_az.is_affinitized != az.is_affinitized
                or old_az.num_nodes_in_az != az.num_nodes_in_az):
            return False
    return True


def did_affinitized_leaders_change(old: Optional[PlacementTree], new: Optional[PlacementTree]) -> bool:
    """
    Check whether only leader affinity changed between two placements.

    Returns:
        True if some zone flipped its affinity flag and ``new`` introduces no
        zone unknown to ``old``
    """
    if old is None or new is None:
        return False

    old_flags = {az.uuid: az.is_affinitized for az in old.zones()}
    changed = False
    for az in new.zones():
        if az.uuid not in old_flags:
            return False
        if old_flags[az.uuid] != az.is_affinitized:
            changed = True
    return changed
