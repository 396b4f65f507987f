"""Executor registry mapping node types to their executors."""

from __future__ import annotations

import inspect
import logging
from dataclasses import dataclass
from typing import Dict, Iterable, Optional

from interfaces import NodeExecutor
from flow_engine.models import NodeType

logger = logging.getLogger(__name__)


class RegistryError(RuntimeError):
    """Raised for registry programming errors (duplicates, gaps, late mutation)."""


@dataclass(frozen=True)
class Registration:
    node_type: NodeType
    executor: NodeExecutor
    channel: str


class ExecutorRegistry:
    """Table of node type → executor, read-only once frozen."""

    def __init__(self) -> None:
        self._entries: Dict[NodeType, Registration] = {}
        self._frozen = False

    @property
    def frozen(self) -> bool:
        return self._frozen

    def register(self, node_type: NodeType | str, executor: NodeExecutor, *, channel: str) -> None:
        """Register ``executor`` for ``node_type``, publishing status on ``channel``."""
        if self._frozen:
            raise RegistryError("Executor registry is frozen; register executors before startup completes.")
        node_type = _coerce_type(node_type)
        if node_type in self._entries:
            raise RegistryError(f"Executor already registered for node type '{node_type.value}'.")
        if not callable(executor):
            raise RegistryError(f"Executor for '{node_type.value}' is not callable.")
        if not inspect.iscoroutinefunction(executor) and not inspect.iscoroutinefunction(
            getattr(executor, "__call__", None)
        ):
            raise RegistryError(f"Executor for '{node_type.value}' must be an async callable.")
        if not channel:
            raise RegistryError(f"Executor for '{node_type.value}' needs a status channel name.")
        self._entries[node_type] = Registration(node_type=node_type, executor=executor, channel=channel)

    def freeze(self, required: Optional[Iterable[NodeType]] = None) -> "ExecutorRegistry":
        """Check that every ``required`` type (all types by default) is covered, then lock."""
        required_types = list(NodeType) if required is None else [_coerce_type(item) for item in required]
        missing = [node_type.value for node_type in required_types if node_type not in self._entries]
        if missing:
            raise RegistryError(f"No executor registered for node type(s): {', '.join(missing)}.")
        self._frozen = True
        logger.debug("Executor registry frozen with %d node types", len(self._entries))
        return self

    def registration(self, node_type: NodeType | str) -> Registration:
        try:
            return self._entries[_coerce_type(node_type)]
        except KeyError:
            label = getattr(node_type, "value", node_type)
            raise RegistryError(f"No executor registered for node type '{label}'.") from None

    def resolve(self, node_type: NodeType | str) -> NodeExecutor:
        return self.registration(node_type).executor

    def channel_for(self, node_type: NodeType | str) -> str:
        return self.registration(node_type).channel

    def __contains__(self, node_type: object) -> bool:
        try:
            return _coerce_type(node_type) in self._entries  # type: ignore[arg-type]
        except RegistryError:
            return False

    def __len__(self) -> int:
        return len(self._entries)


def _coerce_type(node_type: NodeType | str) -> NodeType:
    if isinstance(node_type, NodeType):
        return node_type
    try:
        return NodeType(node_type)
    except ValueError:
        raise RegistryError(f"Unknown node type '{node_type}'.") from None
