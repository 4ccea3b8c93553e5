"""
Universe liveness from the node_up metric.

Each metric series is named ``<private_ip>:<port>``; the port tells which
exporter reported it. A queryable node whose node exporter is down is marked
Unreachable.
"""

import json
from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from universeplanner.cluster.node import NodeRecord, NodeState
from universeplanner.cluster.universe import Universe
from universeplanner.utils.config import Config, get_config
from universeplanner.utils.logging import get_logger

logger = get_logger(__name__)


class TargetType(str, Enum):
    """Metric exporters, keyed by the config name of their port."""

    NODE_EXPORT = "node_export"
    MASTER_EXPORT = "master_export"
    TSERVER_EXPORT = "tserver_export"
    REDIS_EXPORT = "redis_export"
    CQL_EXPORT = "cql_export"

    @classmethod
    def from_port(cls, port: int, ports: Dict[str, int]) -> Optional["TargetType"]:
        """
        Map an exporter port to its target type.

        Args:
            port: Port from the series name
            ports: Config ``liveness.ports`` mapping

        Returns:
            Target type, or None for an unknown port
        """
        for target in cls:
            if ports.get(target.value) == port:
                return target
        return None


class MetricsQuerier(ABC):
    """Metrics backend used for liveness checks."""

    @abstractmethod
    def query(self, metric_keys: List[str], params: Dict[str, str]) -> Dict[str, Any]:
        """
        Run a metrics query.

        Returns:
            ``{metric_key: {"data": [{"name": ..., "y": [...]}, ...]}}`` or a
            dict with an ``"error"`` key
        """
        pass


def _any_up(values) -> bool:
    return any(str(v) == "1" for v in values or [])


def get_node_alive_status(
    node: NodeRecord,
    series: Optional[Dict[str, Any]],
    ports: Dict[str, int],
) -> Dict[str, Any]:
    """
    Liveness of one node's processes.

    Marks the node Unreachable when its node exporter reports down and the
    node is in a queryable state.
    """
    node_alive = False
    tserver_alive = False
    master_alive = False

    for entry in (series or {}).get("data") or []:
        parts = str(entry.get("name", "")).split(":", 1)
        if len(parts) != 2 or parts[0] != node.cloud_info.private_ip:
            continue

        try:
            port = int(parts[1])
        except ValueError:
            logger.error("Invalid port", series=entry.get("name"))
            continue

        target = TargetType.from_port(port, ports)
        if target == TargetType.NODE_EXPORT:
            node_alive = node_alive or _any_up(entry.get("y"))
            if not node_alive and node.is_queryable():
                node.state = NodeState.UNREACHABLE
        elif target == TargetType.TSERVER_EXPORT:
            tserver_alive = tserver_alive or _any_up(entry.get("y"))
        elif target == TargetType.MASTER_EXPORT:
            master_alive = master_alive or _any_up(entry.get("y"))
        elif target is None and port != 0:
            logger.error("Invalid port", port=port, node=node.node_name)

    return {
        "tserver_alive": tserver_alive,
        "master_alive": master_alive,
        "node_status": node.state.value,
    }


def construct_universe_alive_status(
    universe: Universe,
    metric_result: Dict[str, Any],
    metric: str = "node_up",
    ports: Optional[Dict[str, int]] = None,
) -> Dict[str, Any]:
    """
    Per-node liveness for every node of a universe.

    On a metrics error every node is marked Unreachable.
    """
    ports = ports if ports is not None else get_config().get("liveness.ports", {})
    response: Dict[str, Any] = {}

    if "error" in metric_result:
        logger.error(
            "Metrics query failed, marking nodes unreachable",
            universe_uuid=universe.universe_uuid,
            error=metric_result["error"],
        )
        for node in universe.get_nodes():
            node.state = NodeState.UNREACHABLE
            response[node.node_name] = {
                "tserver_alive": False,
                "master_alive": False,
                "node_status": node.state.value,
            }
        return response

    series = metric_result.get(metric)
    for node in universe.get_nodes():
        response[node.node_name] = get_node_alive_status(node, series, ports)
    return response


def get_universe_alive_status(
    universe: Universe,
    querier: MetricsQuerier,
    config: Optional[Config] = None,
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    """
    Query liveness of every node of a universe.

    Node states of ``universe`` are updated in place.

    Args:
        universe: Universe to check
        querier: Metrics backend
        config: Configuration (defaults to the global config)
        now: Query end time, defaults to the current time

    Returns:
        ``{"universe_uuid": ..., <node_name>: {"tserver_alive", "master_alive",
        "node_status"}}``, or the metrics error payload
    """
    config = config or get_config()
    metric = config.get("liveness.metric", "node_up")
    window = config.get("liveness.window_minutes", 1)
    step = config.get("liveness.step_seconds", 30)
    ports = config.get("liveness.ports", {})

    end = now or datetime.now(timezone.utc)
    start = end - timedelta(minutes=window)

    metric_keys = [metric]
    params = {
        "start": str(int(start.timestamp())),
        "end": str(int(end.timestamp())),
        "filters": json.dumps({"node_prefix": universe.universe_details.node_prefix}),
        "step": str(step),
    }
    for i, key in enumerate(metric_keys):
        params[f"metrics[{i}]"] = key

    logger.debug("Querying universe liveness", universe_uuid=universe.universe_uuid, params=params)
    result = querier.query(metric_keys, params)

    response = construct_universe_alive_status(universe, result, metric, ports)
    if "error" in result:
        return result

    response["universe_uuid"] = universe.universe_uuid
    return response
