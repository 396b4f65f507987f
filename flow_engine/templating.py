"""Templating utilities used by node executors.

Templates reference the execution context with ``{{ path.to.value }}``.
Lookups are permissive: a path that does not resolve renders as an empty
string. One helper is available, ``{{json path}}``, which renders the
referenced value as JSON indented by two spaces so it can be embedded in
request bodies or prompts. ``{{this}}`` refers to the whole context.
"""

from __future__ import annotations

import json
import re
from typing import Any, Mapping

from flow_engine.store import resolve_path

PLACEHOLDER_PATTERN = re.compile(r"\{\{\{([^{}]*)\}\}\}|\{\{([^{}]*)\}\}")
JSON_HELPER = "json"


class TemplateError(ValueError):
    """Raised when a placeholder expression is malformed."""


def render_template(template: str, context: Mapping[str, Any]) -> str:
    """Render every placeholder inside ``template`` against ``context``."""

    def _replace(match: re.Match[str]) -> str:
        expr = (match.group(1) if match.group(1) is not None else match.group(2)).strip()
        return _evaluate_expression(expr, context)

    return PLACEHOLDER_PATTERN.sub(_replace, template)


def render_value(value: Any, context: Mapping[str, Any]) -> Any:
    """Render placeholders in a value (supports nested dicts/lists)."""
    if isinstance(value, str):
        return render_template(value, context)
    if isinstance(value, list):
        return [render_value(item, context) for item in value]
    if isinstance(value, dict):
        return {key: render_value(val, context) for key, val in value.items()}
    return value


def to_json(value: Any) -> str:
    """Pretty-print ``value`` the way the ``json`` helper does."""
    return json.dumps(value, indent=2, ensure_ascii=False, default=str)


def _evaluate_expression(expr: str, context: Mapping[str, Any]) -> str:
    if not expr:
        raise TemplateError("Empty placeholder expression.")

    parts = expr.split()
    if len(parts) == 1:
        return _stringify(_lookup(parts[0], context))

    helper, *args = parts
    if helper != JSON_HELPER:
        raise TemplateError(f"Unknown template helper '{helper}'.")
    if len(args) != 1:
        raise TemplateError(f"Helper '{JSON_HELPER}' expects exactly one argument, got {len(args)}.")

    value = _lookup(args[0], context)
    if value is None:
        return ""
    return to_json(value)


def _lookup(path: str, context: Mapping[str, Any]) -> Any:
    if path == "this":
        return dict(context)
    if path.startswith("this."):
        path = path[5:]
    return resolve_path(context, path, default=None, raise_on_missing=False)


def _stringify(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (dict, list)):
        return json.dumps(value, ensure_ascii=False, separators=(",", ":"), default=str)
    return str(value)
