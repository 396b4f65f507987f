"""HTTP request node executor."""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, Mapping, Optional

import httpx

from flow_engine.interfaces import JsonValue, Publisher, StepRunner
from flow_engine.executor import ConfigurationError, extend_context, node_status, require_choice, require_text
from flow_engine.templating import TemplateError, render_template, render_value

logger = logging.getLogger(__name__)

HTTP_REQUEST_CHANNEL = "http-request-execution"
HTTP_METHODS = ("GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS")
BODY_METHODS = frozenset({"POST", "PUT", "PATCH"})
DEFAULT_TIMEOUT = 30.0


class HttpRequestExecutor:
    """Calls the configured endpoint and stores the response under ``variableName``.

    Node data: ``endpoint`` (required, templated), ``variableName``
    (required), ``method`` (default GET), ``body`` (templated, sent for
    POST/PUT/PATCH only) and optional ``headers`` (templated values).
    The stored value is ``{"httpResponse": {status, statusText, responseType, data}}``.
    """

    def __init__(self, *, timeout: float = DEFAULT_TIMEOUT, transport: Optional[httpx.AsyncBaseTransport] = None) -> None:
        self.timeout = timeout
        self._transport = transport

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
            endpoint = require_text(data, "endpoint", node_id=node_id, message="No endpoint configured")
            variable_name = require_text(
                data, "variableName", node_id=node_id, message="HTTP request variable name is missing"
            )
            method = require_choice(data, "method", HTTP_METHODS, node_id=node_id, default="GET")

            try:
                url = render_template(endpoint, context)
                body = _render_body(data.get("body"), context) if method in BODY_METHODS else None
                headers = _render_headers(data.get("headers"), context, node_id=node_id)
            except TemplateError as exc:
                raise ConfigurationError(f"Node '{node_id}' has an invalid template: {exc}", node_id=node_id) from exc

            response = await step.run(
                "http-request",
                lambda: self._send(method, url, body=body, headers=headers),
            )
            return extend_context(context, variable_name, {"httpResponse": response})

    async def _send(
        self,
        method: str,
        url: str,
        *,
        body: Optional[str],
        headers: Dict[str, str],
    ) -> Dict[str, JsonValue]:
        if body is not None and not any(key.lower() == "content-type" for key in headers):
            headers = {**headers, "Content-Type": _guess_content_type(body)}

        logger.info("HTTP %s %s", method, url)
        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            response = await client.request(method, url, content=body, headers=headers)
            response.raise_for_status()

        response_type = response.headers.get("content-type")
        if response_type and "application/json" in response_type:
            payload: JsonValue = response.json()
        else:
            payload = response.text
        return {
            "responseType": response_type,
            "status": response.status_code,
            "statusText": response.reason_phrase,
            "data": payload,
        }


def _render_headers(headers: Any, context: Mapping[str, Any], *, node_id: str) -> Dict[str, str]:
    if headers is None:
        return {}
    if not isinstance(headers, Mapping):
        raise ConfigurationError(f"Node '{node_id}' headers must be an object.", node_id=node_id)
    return {str(key): str(value) for key, value in render_value(dict(headers), context).items()}


def _render_body(body: Any, context: Mapping[str, Any]) -> Optional[str]:
    if body is None or body == "":
        return None
    if isinstance(body, (dict, list)):
        return json.dumps(render_value(body, context))
    return render_template(str(body), context)


def _guess_content_type(body: str) -> str:
    try:
        json.loads(body)
    except ValueError:
        return "text/plain; charset=utf-8"
    return "application/json"
