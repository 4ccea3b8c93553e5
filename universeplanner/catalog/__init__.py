"""
Read-only topology collaborators: provider/region/zone catalog and on-prem
machine inventory.
"""

from universeplanner.catalog.catalog import (
    CloudType,
    InMemoryTopologyCatalog,
    ProviderInfo,
    RegionInfo,
    TopologyCatalog,
    ZoneInfo,
)
from universeplanner.catalog.inventory import NodeInventory, StaticNodeInventory

__all__ = [
    # Catalog
    "CloudType",
    "ProviderInfo",
    "RegionInfo",
    "ZoneInfo",
    "TopologyCatalog",
    "InMemoryTopologyCatalog",
    # Inventory
    "NodeInventory",
    "StaticNodeInventory",
]
