"""Node executors and the default executor registry."""

from __future__ import annotations

from typing import Optional, TYPE_CHECKING

from flow_engine.models import NodeType
from flow_engine.registry import ExecutorRegistry
from flow_nodes.ai_text import (
    AI_CHANNEL,
    ANTHROPIC_CHANNEL,
    GEMINI_CHANNEL,
    OPENAI_CHANNEL,
    anthropic_text,
    gemini_text,
    openai_text,
)
from flow_nodes.http_request import HTTP_REQUEST_CHANNEL, HttpRequestExecutor
from flow_nodes.triggers import (
    GOOGLE_FORM_TRIGGER_CHANNEL,
    MANUAL_TRIGGER_CHANNEL,
    PASSTHROUGH_CHANNEL,
    STRIPE_TRIGGER_CHANNEL,
    google_form_trigger,
    manual_trigger,
    passthrough,
    stripe_trigger,
)

if TYPE_CHECKING:  # pragma: no cover
    from flow_engine.config import EngineSettings


def build_default_registry(settings: Optional["EngineSettings"] = None) -> ExecutorRegistry:
    """Return a frozen registry covering every node type."""
    timeout = settings.http_timeout if settings is not None else 30.0
    registry = ExecutorRegistry()
    registry.register(NodeType.MANUAL_TRIGGER, manual_trigger, channel=MANUAL_TRIGGER_CHANNEL)
    registry.register(NodeType.GOOGLE_FORM_TRIGGER, google_form_trigger, channel=GOOGLE_FORM_TRIGGER_CHANNEL)
    registry.register(NodeType.STRIPE_TRIGGER, stripe_trigger, channel=STRIPE_TRIGGER_CHANNEL)
    registry.register(NodeType.HTTP_REQUEST, HttpRequestExecutor(timeout=timeout), channel=HTTP_REQUEST_CHANNEL)
    registry.register(NodeType.AI, openai_text, channel=AI_CHANNEL)
    registry.register(NodeType.AI_OPENAI, openai_text, channel=OPENAI_CHANNEL)
    registry.register(NodeType.AI_ANTHROPIC, anthropic_text, channel=ANTHROPIC_CHANNEL)
    registry.register(NodeType.AI_GOOGLE, gemini_text, channel=GEMINI_CHANNEL)
    for node_type in (
        NodeType.INITIAL,
        NodeType.TIMED_TRIGGER,
        NodeType.HTTP_API,
        NodeType.UPLOAD_ALL,
        NodeType.UPLOAD_IMAGE,
        NodeType.UPLOAD_PDF,
        NodeType.UPLOAD_TEXT,
        NodeType.UPLOAD_VIDEO,
    ):
        registry.register(node_type, passthrough, channel=PASSTHROUGH_CHANNEL)
    return registry.freeze()


__all__ = ["build_default_registry"]
