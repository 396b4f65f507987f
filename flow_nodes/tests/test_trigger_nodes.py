"""Tests for pass-through trigger executors."""

from __future__ import annotations

import unittest

from flow_engine.steps import InMemoryStepRunner
from flow_engine.tests.stub_nodes import RecordingPublisher
from flow_nodes.triggers import manual_trigger, stripe_trigger


class PassthroughExecutorTests(unittest.IsolatedAsyncioTestCase):
    async def test_returns_context_unchanged(self) -> None:
        step = InMemoryStepRunner()
        publish = RecordingPublisher()
        context = {"stripe": {"eventType": "invoice.paid"}}

        result = await stripe_trigger(node_id="t1", data={}, context=context, step=step.scoped("t1"), publish=publish)

        self.assertEqual(result, context)
        self.assertIsNot(result, context)
        self.assertIn("t1/stripe-trigger", step.completed_steps)
        self.assertEqual(
            publish.events,
            [{"nodeId": "t1", "status": "loading"}, {"nodeId": "t1", "status": "success"}],
        )

    def test_repr_names_step(self) -> None:
        self.assertEqual(repr(manual_trigger), "PassthroughExecutor('manual-trigger')")


if __name__ == "__main__":  # pragma: no cover
    unittest.main()
