"""Dependency ordering of workflow nodes."""

from __future__ import annotations

import heapq
import logging
from typing import Dict, Iterable, List, Sequence

from flow_engine.executor import NonRetriableError
from flow_engine.models import Connection, Node

logger = logging.getLogger(__name__)

CYCLE_MESSAGE = "Workflow contains a cycle"


class GraphCycleError(NonRetriableError):
    """Raised when workflow connections form a directed cycle."""

    def __init__(self, node_ids: Iterable[str]) -> None:
        self.node_ids = sorted(node_ids)
        super().__init__(f"{CYCLE_MESSAGE} (nodes on the cycle: {', '.join(self.node_ids)})")


def sort_nodes(nodes: Sequence[Node], connections: Sequence[Connection]) -> List[Node]:
    """Return ``nodes`` in an order where every connection's source precedes its target.

    Nodes without any ordering constraint between them keep their relative
    insertion order. Nodes that take part in no connection are appended after
    all connected nodes, in insertion order. Connection endpoints that are not
    in ``nodes`` are ignored.
    """
    if not connections:
        return list(nodes)

    position: Dict[str, int] = {}
    node_map: Dict[str, Node] = {}
    for index, node in enumerate(nodes):
        position.setdefault(node.id, index)
        node_map.setdefault(node.id, node)

    downstream: Dict[str, List[str]] = {node_id: [] for node_id in position}
    in_degree: Dict[str, int] = {node_id: 0 for node_id in position}
    connected: set[str] = set()
    for connection in connections:
        source, target = connection.from_node_id, connection.to_node_id
        if source not in position or target not in position:
            logger.warning("Ignoring connection '%s' with unknown endpoint.", connection.id)
            continue
        connected.update((source, target))
        downstream[source].append(target)
        in_degree[target] += 1

    ready = [(position[node_id], node_id) for node_id in connected if in_degree[node_id] == 0]
    heapq.heapify(ready)

    ordered: List[str] = []
    while ready:
        _, node_id = heapq.heappop(ready)
        ordered.append(node_id)
        for target in downstream[node_id]:
            in_degree[target] -= 1
            if in_degree[target] == 0:
                heapq.heappush(ready, (position[target], target))

    if len(ordered) < len(connected):
        blocked = {node_id for node_id in connected if in_degree[node_id] > 0}
        raise GraphCycleError(_cycle_members(blocked, downstream))

    disconnected = [node_id for node_id in position if node_id not in connected]
    disconnected.sort(key=position.__getitem__)
    return [node_map[node_id] for node_id in ordered + disconnected]


def _cycle_members(blocked: set[str], downstream: Dict[str, List[str]]) -> List[str]:
    """Return the blocked nodes that can reach themselves again."""
    members: List[str] = []
    for start in blocked:
        stack = [target for target in downstream[start] if target in blocked]
        seen: set[str] = set()
        while stack:
            node_id = stack.pop()
            if node_id == start:
                members.append(start)
                break
            if node_id in seen:
                continue
            seen.add(node_id)
            stack.extend(target for target in downstream[node_id] if target in blocked)
    return members
