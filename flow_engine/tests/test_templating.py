"""Tests for templating utilities."""

from __future__ import annotations

import json
import unittest

from flow_engine.templating import TemplateError, render_template, render_value, to_json


class TemplatingTests(unittest.TestCase):
    def setUp(self) -> None:
        self.context: dict[str, object] = {
            "call1": {
                "httpResponse": {
                    "status": 200,
                    "data": {"users": [{"name": "ada"}, {"name": "grace"}]},
                }
            },
            "stripe": {"eventType": "charge.succeeded", "livemode": False},
            "count": 3,
        }

    def test_render_simple_path(self) -> None:
        rendered = render_template("Event: {{stripe.eventType}}", self.context)
        self.assertEqual(rendered, "Event: charge.succeeded")

    def test_whitespace_inside_braces(self) -> None:
        self.assertEqual(render_template("{{  count  }} items", self.context), "3 items")

    def test_missing_path_renders_empty(self) -> None:
        self.assertEqual(render_template("[{{call2.httpResponse.status}}]", self.context), "[]")

    def test_boolean_and_list_index(self) -> None:
        rendered = render_template(
            "{{stripe.livemode}} {{call1.httpResponse.data.users.1.name}}",
            self.context,
        )
        self.assertEqual(rendered, "false grace")

    def test_mapping_renders_as_compact_json(self) -> None:
        rendered = render_template("{{call1.httpResponse.data.users.0}}", self.context)
        self.assertEqual(rendered, '{"name":"ada"}')

    def test_json_helper_pretty_prints(self) -> None:
        rendered = render_template("body={{json call1.httpResponse.data}}", self.context)
        payload = rendered[len("body="):]
        self.assertEqual(payload, to_json(self.context["call1"]["httpResponse"]["data"]))  # type: ignore[index]
        self.assertIn("\n  ", payload)
        self.assertEqual(json.loads(payload)["users"][0]["name"], "ada")

    def test_json_helper_on_whole_context(self) -> None:
        rendered = render_template("{{json this}}", {"a": 1})
        self.assertEqual(rendered, '{\n  "a": 1\n}')

    def test_json_helper_missing_value_renders_empty(self) -> None:
        self.assertEqual(render_template("{{json nothing.here}}", self.context), "")

    def test_triple_braces_are_not_escaped(self) -> None:
        context = {"html": "<b>&</b>"}
        self.assertEqual(render_template("{{{html}}}|{{html}}", context), "<b>&</b>|<b>&</b>")

    def test_unknown_helper_raises(self) -> None:
        with self.assertRaises(TemplateError):
            render_template("{{upper stripe.eventType}}", self.context)

    def test_empty_placeholder_raises(self) -> None:
        with self.assertRaises(TemplateError):
            render_template("{{ }}", self.context)

    def test_render_nested_structure(self) -> None:
        payload = {
            "url": "https://api.example.com/{{count}}",
            "headers": ["X-Event: {{stripe.eventType}}", 7],
        }
        rendered = render_value(payload, self.context)
        self.assertEqual(
            rendered,
            {
                "url": "https://api.example.com/3",
                "headers": ["X-Event: charge.succeeded", 7],
            },
        )

    def test_template_without_placeholders_is_unchanged(self) -> None:
        self.assertEqual(render_template("plain text", self.context), "plain text")


if __name__ == "__main__":  # pragma: no cover
    unittest.main()
