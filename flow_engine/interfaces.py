"""Flow engine re-exports shared interfaces."""

from __future__ import annotations

from interfaces import JsonObject, JsonPrimitive, JsonValue, NodeExecutor, Publisher, StepRunner  # noqa: F401

__all__ = [
    "JsonObject",
    "JsonPrimitive",
    "JsonValue",
    "NodeExecutor",
    "Publisher",
    "StepRunner",
]
