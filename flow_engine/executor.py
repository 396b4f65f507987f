"""Execution utilities shared by node executors."""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, Mapping, Sequence

from interfaces import Publisher
from flow_engine.store import merge_context


class NonRetriableError(RuntimeError):
    """Raised for failures that retrying the same step cannot fix."""


class ConfigurationError(NonRetriableError):
    """Raised when a node's configured data is missing or invalid."""

    def __init__(self, message: str, *, node_id: str | None = None) -> None:
        self.node_id = node_id
        super().__init__(message)


async def publish_status(publish: Publisher, node_id: str, status: str) -> None:
    await publish({"nodeId": node_id, "status": status})


@asynccontextmanager
async def node_status(publish: Publisher, node_id: str) -> AsyncIterator[None]:
    """Publish ``loading`` on entry, then ``success`` or ``error`` on exit."""
    await publish_status(publish, node_id, "loading")
    try:
        yield
    except BaseException:
        await publish_status(publish, node_id, "error")
        raise
    await publish_status(publish, node_id, "success")


def require_text(data: Mapping[str, Any], field: str, *, node_id: str, message: str | None = None) -> str:
    """Return ``data[field]`` as stripped text or raise ConfigurationError."""
    value = data.get(field)
    if not isinstance(value, str) or not value.strip():
        raise ConfigurationError(message or f"Node '{node_id}' requires '{field}'.", node_id=node_id)
    return value.strip()


def require_choice(
    data: Mapping[str, Any],
    field: str,
    choices: Sequence[str],
    *,
    node_id: str,
    default: str,
) -> str:
    """Return an upper-cased choice for ``field`` or raise ConfigurationError."""
    value = data.get(field) or default
    if not isinstance(value, str) or value.upper() not in choices:
        raise ConfigurationError(
            f"Node '{node_id}' has invalid {field} '{value}'; expected one of {', '.join(choices)}.",
            node_id=node_id,
        )
    return value.upper()


def extend_context(context: Mapping[str, Any], variable_name: str, value: Any) -> Dict[str, Any]:
    """Return a copy of ``context`` with ``value`` stored under ``variable_name``."""
    return merge_context(context, {variable_name: value})
