"""Text generation node executors backed by the OpenAI Agents SDK."""

from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable, Dict, Optional

from agents import Agent, Runner
from openai import APIConnectionError, OpenAIError

from flow_engine.interfaces import JsonValue, Publisher, StepRunner
from flow_engine.executor import ConfigurationError, extend_context, node_status, require_text
from flow_engine.templating import TemplateError, render_template

logger = logging.getLogger(__name__)

OPENAI_CHANNEL = "openai-execution"
ANTHROPIC_CHANNEL = "anthropic-execution"
GEMINI_CHANNEL = "gemini-execution"
AI_CHANNEL = "ai-execution"

DEFAULT_SYSTEM_PROMPT = "You are a helpful assistant"
DEFAULT_MAX_TURNS = 1

# Non-OpenAI providers are reached through the SDK's LiteLLM model prefix.
OPENAI_DEFAULT_MODEL = "gpt-4o-mini"
ANTHROPIC_DEFAULT_MODEL = "litellm/anthropic/claude-3-5-haiku-latest"
GEMINI_DEFAULT_MODEL = "litellm/gemini/gemini-2.5-flash"

AgentRunner = Callable[..., Awaitable[str]]


async def run_agent(*, model: str, system_prompt: str, user_prompt: str, max_turns: int = DEFAULT_MAX_TURNS) -> str:
    """Invoke a single-turn agent and return its final text output."""
    agent = Agent(name="workflow_text_node", instructions=system_prompt, model=model)
    try:
        result = await Runner.run(agent, user_prompt, max_turns=max_turns)
    except (APIConnectionError, OpenAIError) as exc:
        raise RuntimeError(f"Text generation failed: {exc.__class__.__name__}: {exc}") from exc
    output = result.final_output
    return output.strip() if isinstance(output, str) else str(output)


class AiTextExecutor:
    """Renders prompts against the context and stores ``{"aiResponse": text}``.

    Node data: ``userPrompt`` and ``variableName`` are required,
    ``systemPrompt`` and ``model`` are optional. Prompts are templates.
    """

    def __init__(self, *, provider: str, default_model: str, runner: Optional[AgentRunner] = None) -> None:
        self.provider = provider
        self.default_model = default_model
        self._runner = runner or run_agent

    async def __call__(
        self,
        *,
        node_id: str,
        data: Dict[str, Any],
        context: Dict[str, JsonValue],
        step: StepRunner,
        publish: Publisher,
    ) -> Dict[str, JsonValue]:
        async with node_status(publish, node_id):
            user_template = require_text(data, "userPrompt", node_id=node_id, message="User prompt is required")
            variable_name = require_text(
                data,
                "variableName",
                node_id=node_id,
                message=f"{self.provider} variable name is missing",
            )
            try:
                system_prompt = (
                    render_template(data["systemPrompt"], context)
                    if data.get("systemPrompt")
                    else DEFAULT_SYSTEM_PROMPT
                )
                user_prompt = render_template(user_template, context)
            except TemplateError as exc:
                raise ConfigurationError(f"Node '{node_id}' has an invalid prompt: {exc}", node_id=node_id) from exc
            model = data.get("model") or self.default_model

            text = await step.run(
                f"{self.provider.lower()}-generate-text",
                lambda: self._runner(model=model, system_prompt=system_prompt, user_prompt=user_prompt),
            )
            logger.debug("Node %s received %d characters from %s", node_id, len(text), model)
            return extend_context(context, variable_name, {"aiResponse": text})


openai_text = AiTextExecutor(provider="OpenAI", default_model=OPENAI_DEFAULT_MODEL)
anthropic_text = AiTextExecutor(provider="Anthropic", default_model=ANTHROPIC_DEFAULT_MODEL)
gemini_text = AiTextExecutor(provider="Gemini", default_model=GEMINI_DEFAULT_MODEL)
