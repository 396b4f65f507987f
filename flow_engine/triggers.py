"""Trigger helpers turning external events into workflow runs.

Webhook bodies are normalised into the seed context the downstream nodes
template against: Google Form submissions land under ``googleForm`` and
Stripe events under ``stripe``.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Mapping, Optional, TYPE_CHECKING

from interfaces import JsonValue
from flow_engine.executor import NonRetriableError
from flow_engine.models import RunReport, TriggerEvent

if TYPE_CHECKING:  # pragma: no cover
    from flow_engine.engine import WorkflowEngine

logger = logging.getLogger(__name__)


class TriggerError(NonRetriableError):
    """Raised when an incoming trigger cannot start a run."""


def build_trigger(
    workflow_id: Optional[str],
    initial_data: Optional[Dict[str, JsonValue]] = None,
    *,
    run_id: Optional[str] = None,
) -> TriggerEvent:
    if not workflow_id or not workflow_id.strip():
        raise TriggerError("Missing required field workflowId")
    return TriggerEvent(workflow_id=workflow_id, initial_data=initial_data or {}, run_id=run_id)


async def send_workflow_execution(
    engine: "WorkflowEngine",
    workflow_id: Optional[str],
    initial_data: Optional[Dict[str, JsonValue]] = None,
    *,
    run_id: Optional[str] = None,
) -> RunReport:
    """Start exactly one run of ``workflow_id`` seeded with ``initial_data``."""
    trigger = build_trigger(workflow_id, initial_data, run_id=run_id)
    logger.info("Triggering workflow %s", trigger.workflow_id)
    return await engine.run(trigger)


def google_form_initial_data(body: Mapping[str, Any]) -> Dict[str, JsonValue]:
    """Seed context for a Google Form submission webhook."""
    _require_mapping(body, "Google Form")
    return {
        "googleForm": {
            "raw": dict(body),
            "formId": body.get("formId"),
            "formTitle": body.get("formTitle"),
            "responseId": body.get("responseId"),
            "timestamp": body.get("timestamp"),
            "respondentEmail": body.get("respondentEmail"),
            "responses": body.get("responses"),
        }
    }


def stripe_initial_data(body: Mapping[str, Any]) -> Dict[str, JsonValue]:
    """Seed context for a Stripe event webhook."""
    _require_mapping(body, "Stripe")
    data = body.get("data")
    return {
        "stripe": {
            "eventId": body.get("id"),
            "eventType": body.get("type"),
            "timestamp": body.get("created"),
            "livemode": body.get("livemode"),
            "raw": data.get("object") if isinstance(data, Mapping) else None,
        }
    }


def _require_mapping(body: Any, source: str) -> None:
    if not isinstance(body, Mapping):
        raise TriggerError(f"{source} webhook body must be a JSON object.")
