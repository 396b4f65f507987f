"""Shared protocol definitions for workflow executors."""

from __future__ import annotations

from typing import Any, Awaitable, Callable, Dict, Protocol, TypeAlias, TypeVar, runtime_checkable

JsonPrimitive = str | int | float | bool | None
JsonValue: TypeAlias = JsonPrimitive | Dict[str, "JsonValue"] | list["JsonValue"]
JsonObject: TypeAlias = Dict[str, JsonValue]

T = TypeVar("T")

Publisher: TypeAlias = Callable[[Dict[str, Any]], Awaitable[None]]
"""Coroutine publishing one status payload (``{"nodeId": ..., "status": ...}``)."""


@runtime_checkable
class StepRunner(Protocol):
    """Runs named units of work, memoising each result for replay."""

    async def run(self, name: str, fn: Callable[[], Awaitable[T] | T]) -> T:
        """Execute ``fn`` once under ``name`` and return its (possibly replayed) result."""

    def scoped(self, prefix: str) -> "StepRunner":
        """Return a runner whose step names are prefixed with ``prefix``."""


@runtime_checkable
class NodeExecutor(Protocol):
    """Protocol implemented by every node type executor."""

    async def __call__(
        self,
        *,
        node_id: str,
        data: Dict[str, Any],
        context: Dict[str, JsonValue],
        step: StepRunner,
        publish: Publisher,
    ) -> Dict[str, JsonValue]:
        """Run the node and return the context extended with its outputs."""
