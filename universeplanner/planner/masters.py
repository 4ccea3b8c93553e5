"""
Master selection across subnets.

Masters form a consensus group, so they are spread one-per-subnet in
round-robin order whenever at least three subnets are available. With fewer
subnets no diversity is possible and the first eligible nodes are taken.
"""

from typing import Dict, Iterable, List

from universeplanner.cluster.node import NodeRecord
from universeplanner.errors import InsufficientCandidatesError
from universeplanner.utils.logging import get_logger

logger = get_logger(__name__)

MAX_MASTER_SUBNETS = 3


class MasterElector:
    """Chooses which nodes run masters."""

    def __init__(self, max_master_subnets: int = MAX_MASTER_SUBNETS):
        """
        Initialize master elector.

        Args:
            max_master_subnets: Minimum number of distinct subnets needed to
                spread masters one per subnet
        """
        self.max_master_subnets = max_master_subnets

    def select_masters(self, nodes: Iterable[NodeRecord], count: int) -> List[NodeRecord]:
        """
        Mark ``count`` non-master nodes as masters.

        Args:
            nodes: Candidate nodes
            count: Number of new masters to choose

        Returns:
            Newly chosen masters, in selection order

        Raises:
            InsufficientCandidatesError: Fewer than ``count`` non-master nodes
        """
        if count <= 0:
            return []

        candidates = [n for n in nodes if not n.is_master]
        if len(candidates) < count:
            logger.error(
                "Not enough master candidates",
                required=count,
                candidates=[n.node_name for n in candidates],
            )
            raise InsufficientCandidatesError(
                f"Could not pick {count} masters, only {len(candidates)} candidates."
            )

        by_name: Dict[str, NodeRecord] = {n.node_name: n for n in candidates}

        # Subnet -> sorted candidate names, consumed as masters are chosen.
        subnets: Dict[str, List[str]] = {}
        for node in candidates:
            subnets.setdefault(node.subnet_id or "", []).append(node.node_name)
        for names in subnets.values():
            names.sort()

        logger.info(
            "Selecting masters",
            subnets=len(subnets),
            candidates=len(candidates),
            required=count,
        )

        chosen: List[NodeRecord] = []
        if len(subnets) >= self.max_master_subnets:
            while len(chosen) < count:
                for subnet in sorted(subnets):
                    names = subnets[subnet]
                    if not names:
                        continue
                    name = names.pop(0)
                    chosen.append(by_name[name])
                    logger.info("Chose master", node=name, subnet=subnet)
                    if len(chosen) == count:
                        break
        else:
            for node in candidates[:count]:
                chosen.append(node)
                logger.info("Chose master", node=node.node_name, subnet=node.subnet_id)

        for node in chosen:
            node.is_master = True

        return chosen
