"""
Edit validation for existing primary clusters.
"""

from typing import Sequence

from universeplanner.cluster.intent import SUPPORTED_REPLICATION_FACTORS, verify_nodes_and_rf
from universeplanner.cluster.universe import Cluster
from universeplanner.errors import NoOpEditError, UnsupportedChangeError
from universeplanner.placement.tree import is_same_placement
from universeplanner.utils.logging import get_logger

logger = get_logger(__name__)


class EditValidator:
    """
    Rejects edits that change nothing or touch creation-only fields.

    Replication factor, universe name, provider and provider type can only
    be chosen when a cluster is created.
    """

    def __init__(self, supported_rfs: Sequence[int] = SUPPORTED_REPLICATION_FACTORS):
        self.supported_rfs = tuple(supported_rfs)

    def validate_edit(self, old: Cluster, new: Cluster) -> None:
        """
        Validate an edit of a cluster.

        Args:
            old: Cluster as currently persisted
            new: Cluster as requested

        Raises:
            NoOpEditError: Neither the intent nor the placement changed
            UnsupportedChangeError: A creation-only field changed
            InvalidIntentError: RF / node count invalid
        """
        existing = old.user_intent
        requested = new.user_intent

        logger.info("Validating edit", old_intent=existing.to_dict(), new_intent=requested.to_dict())

        if requested == existing and is_same_placement(old.placement_info, new.placement_info):
            logger.error("No fields were modified for edit", cluster_uuid=new.uuid)
            raise NoOpEditError(
                "Invalid operation: At least one field should be modified for editing the universe."
            )

        checks = (
            ("replication_factor", "Replication factor"),
            ("universe_name", "Universe name"),
            ("provider", "Provider"),
            ("provider_type", "Provider type"),
        )
        for attr, label in checks:
            before = getattr(existing, attr)
            after = getattr(requested, attr)
            if before != after:
                logger.error("Unsupported edit", field=attr, old=str(before), new=str(after))
                raise UnsupportedChangeError(f"{label} cannot be modified.")

        verify_nodes_and_rf(requested.num_nodes, requested.replication_factor, self.supported_rfs)
