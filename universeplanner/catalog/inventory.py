"""
On-prem node inventory.

For on-prem providers the planner can only place a node in a zone if a
physical machine of the requested instance type is available there.
"""

from abc import ABC, abstractmethod
from typing import Dict, Tuple

import yaml


class NodeInventory(ABC):
    """Lookup of available on-prem machines."""

    @abstractmethod
    def count_available(self, zone_uuid: str, instance_type: str) -> int:
        """
        Count machines available for new nodes.

        Args:
            zone_uuid: Zone ID
            instance_type: Instance type name

        Returns:
            Number of free machines
        """
        pass


class StaticNodeInventory(NodeInventory):
    """Fixed inventory keyed by (zone, instance type)."""

    def __init__(self, counts: Dict[Tuple[str, str], int] = None):
        self._counts: Dict[Tuple[str, str], int] = dict(counts or {})

    def set_available(self, zone_uuid: str, instance_type: str, count: int) -> None:
        self._counts[(zone_uuid, instance_type)] = count

    def count_available(self, zone_uuid: str, instance_type: str) -> int:
        return self._counts.get((zone_uuid, instance_type), 0)

    @classmethod
    def from_dict(cls, data: dict) -> "StaticNodeInventory":
        """
        Build from ``{zone_uuid: {instance_type: count}}``.
        """
        inventory = cls()
        for zone_uuid, per_type in (data or {}).items():
            for instance_type, count in per_type.items():
                inventory.set_available(zone_uuid, instance_type, int(count))
        return inventory

    @classmethod
    def from_yaml(cls, path: str) -> "StaticNodeInventory":
        with open(path, "r") as f:
            return cls.from_dict(yaml.safe_load(f))
