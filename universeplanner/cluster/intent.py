"""
Cluster intent: what the operator asked for.
"""

import copy
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from universeplanner.catalog.catalog import CloudType
from universeplanner.errors import InvalidIntentError
from universeplanner.utils.logging import get_logger

logger = get_logger(__name__)

SUPPORTED_REPLICATION_FACTORS = (1, 3, 5, 7)


@dataclass
class ClusterIntent:
    """
    Desired shape of a cluster.

    Attributes:
        universe_name: Universe name, fixed for the universe's lifetime
        num_nodes: Total node count (0 only before creation)
        replication_factor: Copies of metadata, one of 1/3/5/7
        region_list: Candidate region IDs, in preference order
        preferred_region: Region to favour when two regions are given
        provider: Provider ID
        provider_type: Cloud type of the provider
        instance_type: Instance type for new nodes
        assign_public_ip: Assign public IPs to new nodes
        use_time_sync: Enable time sync on new nodes
        spot_price: Spot price bid, 0 for on-demand
    """
    universe_name: str
    num_nodes: int
    replication_factor: int
    region_list: List[str] = field(default_factory=list)
    preferred_region: Optional[str] = None
    provider: str = ""
    provider_type: CloudType = CloudType.AWS
    instance_type: str = ""
    assign_public_ip: bool = True
    use_time_sync: bool = False
    spot_price: float = 0.0

    def clone(self) -> "ClusterIntent":
        return copy.deepcopy(self)

    def to_dict(self) -> dict:
        return {
            "universe_name": self.universe_name,
            "num_nodes": self.num_nodes,
            "replication_factor": self.replication_factor,
            "region_list": list(self.region_list),
            "preferred_region": self.preferred_region,
            "provider": self.provider,
            "provider_type": self.provider_type.value,
            "instance_type": self.instance_type,
            "assign_public_ip": self.assign_public_ip,
            "use_time_sync": self.use_time_sync,
            "spot_price": self.spot_price,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "ClusterIntent":
        return cls(
            universe_name=data["universe_name"],
            num_nodes=data.get("num_nodes", 0),
            replication_factor=data.get("replication_factor", 3),
            region_list=list(data.get("region_list", [])),
            preferred_region=data.get("preferred_region"),
            provider=data.get("provider", ""),
            provider_type=CloudType(data.get("provider_type", "aws")),
            instance_type=data.get("instance_type", ""),
            assign_public_ip=data.get("assign_public_ip", True),
            use_time_sync=data.get("use_time_sync", False),
            spot_price=data.get("spot_price", 0.0),
        )


def verify_nodes_and_rf(
    num_nodes: int,
    replication_factor: int,
    supported: Sequence[int] = SUPPORTED_REPLICATION_FACTORS,
) -> None:
    """
    Check the replication factor and node count requirements.

    Args:
        num_nodes: Requested node count, 0 for a cluster not created yet
        replication_factor: Requested replication factor
        supported: Allowed replication factors

    Raises:
        InvalidIntentError: If the RF is unsupported or there are fewer
            nodes than the RF
    """
    if replication_factor not in supported:
        message = (
            f"Replication factor {replication_factor} not allowed, must be one of "
            f"{','.join(str(rf) for rf in supported)}."
        )
        logger.error("Invalid replication factor", replication_factor=replication_factor)
        raise InvalidIntentError(message)

    if 0 < num_nodes < replication_factor:
        logger.error(
            "Node count below replication factor",
            num_nodes=num_nodes,
            replication_factor=replication_factor,
        )
        raise InvalidIntentError(
            f"Number of nodes {num_nodes} cannot be less than the replication "
            f"factor {replication_factor}."
        )
