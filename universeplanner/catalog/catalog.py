"""
Topology catalog: static provider/region/zone metadata.

The planner reads the catalog but never writes to it. Storage of the catalog
is owned elsewhere; InMemoryTopologyCatalog is the implementation used by the
CLI and the tests, loaded from a dictionary or a YAML document.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional

import yaml

from universeplanner.utils.logging import get_logger

logger = get_logger(__name__)


class CloudType(str, Enum):
    """Supported cloud provider types."""

    AWS = "aws"
    GCP = "gcp"
    AZU = "azu"
    DOCKER = "docker"
    KUBERNETES = "kubernetes"
    ONPREM = "onprem"
    LOCAL = "local"
    OTHER = "other"


@dataclass
class ProviderInfo:
    """
    Cloud provider entry.

    Attributes:
        uuid: Provider ID
        code: Cloud type of the provider
        name: Display name
    """
    uuid: str
    code: CloudType
    name: str = ""


@dataclass
class RegionInfo:
    """
    Region entry.

    Attributes:
        uuid: Region ID
        code: Region code (e.g. us-west-2)
        name: Display name
        provider_uuid: Owning provider ID
    """
    uuid: str
    code: str
    provider_uuid: str
    name: str = ""


@dataclass
class ZoneInfo:
    """
    Availability zone entry.

    Attributes:
        uuid: Zone ID
        name: Zone name (e.g. us-west-2a)
        region_uuid: Owning region ID
        subnet: Network subnet ID used for master diversity
        code: Zone code, defaults to the name
    """
    uuid: str
    name: str
    region_uuid: str
    subnet: Optional[str] = None
    code: str = ""

    def __post_init__(self):
        if not self.code:
            self.code = self.name


class TopologyCatalog(ABC):
    """Read-only lookups of provider, region and zone metadata."""

    @abstractmethod
    def get_provider(self, provider_uuid: str) -> ProviderInfo:
        """Resolve a provider. Raises ValueError if unknown."""
        pass

    @abstractmethod
    def get_region(self, region_uuid: str) -> RegionInfo:
        """Resolve a region. Raises ValueError if unknown."""
        pass

    @abstractmethod
    def get_zone(self, zone_uuid: str) -> ZoneInfo:
        """Resolve a zone. Raises ValueError if unknown."""
        pass

    @abstractmethod
    def zones_for_region(self, region_uuid: str) -> List[ZoneInfo]:
        """List the zones of a region, in catalog order."""
        pass

    def provider_for_zone(self, zone_uuid: str) -> ProviderInfo:
        """Resolve the provider owning a zone."""
        region = self.get_region(self.get_zone(zone_uuid).region_uuid)
        return self.get_provider(region.provider_uuid)


class InMemoryTopologyCatalog(TopologyCatalog):
    """Dictionary-backed catalog."""

    def __init__(self):
        self._providers: Dict[str, ProviderInfo] = {}
        self._regions: Dict[str, RegionInfo] = {}
        self._zones: Dict[str, ZoneInfo] = {}
        self._region_zones: Dict[str, List[str]] = {}

    def add_provider(self, provider: ProviderInfo) -> ProviderInfo:
        self._providers[provider.uuid] = provider
        return provider

    def add_region(self, region: RegionInfo) -> RegionInfo:
        if region.provider_uuid not in self._providers:
            raise ValueError(f"Unknown provider: {region.provider_uuid}")
        self._regions[region.uuid] = region
        self._region_zones.setdefault(region.uuid, [])
        return region

    def add_zone(self, zone: ZoneInfo) -> ZoneInfo:
        if zone.region_uuid not in self._regions:
            raise ValueError(f"Unknown region: {zone.region_uuid}")
        if zone.uuid not in self._zones:
            self._region_zones[zone.region_uuid].append(zone.uuid)
        self._zones[zone.uuid] = zone
        return zone

    def get_provider(self, provider_uuid: str) -> ProviderInfo:
        provider = self._providers.get(provider_uuid)
        if provider is None:
            raise ValueError(f"Unknown provider: {provider_uuid}")
        return provider

    def get_region(self, region_uuid: str) -> RegionInfo:
        region = self._regions.get(region_uuid)
        if region is None:
            raise ValueError(f"Unknown region: {region_uuid}")
        return region

    def get_zone(self, zone_uuid: str) -> ZoneInfo:
        zone = self._zones.get(zone_uuid)
        if zone is None:
            raise ValueError(f"Unknown zone: {zone_uuid}")
        return zone

    def zones_for_region(self, region_uuid: str) -> List[ZoneInfo]:
        self.get_region(region_uuid)
        return [self._zones[z] for z in self._region_zones[region_uuid]]

    @classmethod
    def from_dict(cls, data: dict) -> "InMemoryTopologyCatalog":
        """
        Build a catalog from nested provider -> region -> zone dictionaries.

        Expected shape::

            providers:
              - uuid: p1
                code: aws
                regions:
                  - uuid: r1
                    code: us-west-2
                    zones:
                      - {uuid: z1, name: us-west-2a, subnet: s1}
        """
        catalog = cls()
        for provider_data in data.get("providers", []):
            provider = catalog.add_provider(ProviderInfo(
                uuid=provider_data["uuid"],
                code=CloudType(provider_data["code"]),
                name=provider_data.get("name", ""),
            ))
            for region_data in provider_data.get("regions", []):
                region = catalog.add_region(RegionInfo(
                    uuid=region_data["uuid"],
                    code=region_data["code"],
                    provider_uuid=provider.uuid,
                    name=region_data.get("name", region_data["code"]),
                ))
                for zone_data in region_data.get("zones", []):
                    catalog.add_zone(ZoneInfo(
                        uuid=zone_data["uuid"],
                        name=zone_data["name"],
                        region_uuid=region.uuid,
                        subnet=zone_data.get("subnet"),
                        code=zone_data.get("code", ""),
                    ))

        logger.debug(
            "Loaded topology catalog",
            providers=len(catalog._providers),
            regions=len(catalog._regions),
            zones=len(catalog._zones),
        )
        return catalog

    @classmethod
    def from_yaml(cls, path: str) -> "InMemoryTopologyCatalog":
        """Load a catalog from a YAML file (see from_dict for the layout)."""
        with open(path, "r") as f:
            return cls.from_dict(yaml.safe_load(f) or {})
