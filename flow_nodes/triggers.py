"""Trigger-style executors that pass the context through unchanged.

Trigger nodes start a workflow; the data they carry (form submissions,
Stripe events) is already in the seed context by the time they run, so
their executor only marks the node as done.
"""

from __future__ import annotations

from typing import Any, Dict

from flow_engine.interfaces import JsonValue, Publisher, StepRunner
from flow_engine.executor import node_status

MANUAL_TRIGGER_CHANNEL = "manual-trigger-execution"
GOOGLE_FORM_TRIGGER_CHANNEL = "google-form-trigger-execution"
STRIPE_TRIGGER_CHANNEL = "stripe-trigger-execution"
PASSTHROUGH_CHANNEL = "passthrough-execution"


class PassthroughExecutor:
    """Executor that publishes status and returns the context it was given."""

    def __init__(self, step_name: str) -> None:
        self.step_name = step_name

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
            return await step.run(self.step_name, lambda: dict(context))

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.step_name!r})"


manual_trigger = PassthroughExecutor("manual-trigger")
google_form_trigger = PassthroughExecutor("google-form-trigger")
stripe_trigger = PassthroughExecutor("stripe-trigger")
passthrough = PassthroughExecutor("passthrough")
