"""Tests for shared executor helpers."""

from __future__ import annotations

import unittest

from flow_engine.executor import (
    ConfigurationError,
    NonRetriableError,
    extend_context,
    node_status,
    require_choice,
    require_text,
)
from flow_engine.tests.stub_nodes import RecordingPublisher


class NodeStatusTests(unittest.IsolatedAsyncioTestCase):
    async def test_success_publishes_loading_then_success(self) -> None:
        publish = RecordingPublisher()
        async with node_status(publish, "n1"):
            pass
        self.assertEqual(
            publish.events,
            [{"nodeId": "n1", "status": "loading"}, {"nodeId": "n1", "status": "success"}],
        )

    async def test_failure_publishes_error_and_reraises(self) -> None:
        publish = RecordingPublisher()
        with self.assertRaises(ConfigurationError):
            async with node_status(publish, "n1"):
                raise ConfigurationError("No endpoint configured")
        self.assertEqual([event["status"] for event in publish.events], ["loading", "error"])


class RequireFieldTests(unittest.TestCase):
    def test_require_text_strips(self) -> None:
        self.assertEqual(require_text({"endpoint": "  https://x  "}, "endpoint", node_id="n1"), "https://x")

    def test_require_text_missing_uses_message(self) -> None:
        with self.assertRaises(ConfigurationError) as ctx:
            require_text({"endpoint": "   "}, "endpoint", node_id="n1", message="No endpoint configured")
        self.assertEqual(str(ctx.exception), "No endpoint configured")
        self.assertEqual(ctx.exception.node_id, "n1")

    def test_require_text_rejects_non_strings(self) -> None:
        with self.assertRaises(ConfigurationError) as ctx:
            require_text({"variableName": 5}, "variableName", node_id="n2")
        self.assertIn("variableName", str(ctx.exception))

    def test_require_choice_defaults_and_normalises(self) -> None:
        self.assertEqual(require_choice({}, "method", ("GET", "POST"), node_id="n1", default="GET"), "GET")
        self.assertEqual(require_choice({"method": "post"}, "method", ("GET", "POST"), node_id="n1", default="GET"), "POST")

    def test_require_choice_rejects_unknown(self) -> None:
        with self.assertRaises(ConfigurationError):
            require_choice({"method": "TRACE"}, "method", ("GET", "POST"), node_id="n1", default="GET")

    def test_configuration_error_is_not_retriable(self) -> None:
        self.assertTrue(issubclass(ConfigurationError, NonRetriableError))


class ExtendContextTests(unittest.TestCase):
    def test_returns_new_mapping(self) -> None:
        context = {"a": {"x": 1}}
        updated = extend_context(context, "b", {"y": 2})
        self.assertEqual(updated, {"a": {"x": 1}, "b": {"y": 2}})
        self.assertEqual(context, {"a": {"x": 1}})

    def test_later_value_overwrites(self) -> None:
        self.assertEqual(extend_context({"a": 1}, "a", 2), {"a": 2})


if __name__ == "__main__":  # pragma: no cover
    unittest.main()
