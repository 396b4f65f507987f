"""Persistence collaborators that supply workflow graphs to the engine."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Dict, Iterable, Protocol, runtime_checkable

from pydantic import ValidationError

from flow_engine.executor import NonRetriableError
from flow_engine.models import Workflow

logger = logging.getLogger(__name__)


class WorkflowNotFoundError(NonRetriableError):
    """Raised when no workflow exists for the requested id."""

    def __init__(self, workflow_id: str) -> None:
        self.workflow_id = workflow_id
        super().__init__(f"No such workflow: '{workflow_id}'")


class InvalidWorkflowError(NonRetriableError):
    """Raised when a stored workflow cannot be parsed into a valid graph."""


@runtime_checkable
class WorkflowRepository(Protocol):
    async def get_workflow(self, workflow_id: str) -> Workflow:
        """Return the workflow's nodes and connections or raise WorkflowNotFoundError."""


class InMemoryWorkflowRepository:
    """Repository backed by a dict, used by tests and embedding callers."""

    def __init__(self, workflows: Iterable[Workflow] = ()) -> None:
        self._workflows: Dict[str, Workflow] = {}
        for workflow in workflows:
            self.save(workflow)

    def save(self, workflow: Workflow) -> None:
        # Stored copies keep a run's snapshot independent of later edits.
        self._workflows[workflow.id] = workflow.model_copy(deep=True)

    def delete(self, workflow_id: str) -> None:
        self._workflows.pop(workflow_id, None)

    async def get_workflow(self, workflow_id: str) -> Workflow:
        try:
            return self._workflows[workflow_id].model_copy(deep=True)
        except KeyError:
            raise WorkflowNotFoundError(workflow_id) from None


class JsonWorkflowRepository:
    """Repository reading ``<workflow_id>.json`` files from a directory."""

    def __init__(self, root: Path | str) -> None:
        self.root = Path(root)

    def path_for(self, workflow_id: str) -> Path:
        if not workflow_id or "/" in workflow_id or "\\" in workflow_id or workflow_id.startswith("."):
            raise WorkflowNotFoundError(workflow_id)
        return self.root / f"{workflow_id}.json"

    def save(self, workflow: Workflow) -> Path:
        path = self.path_for(workflow.id)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(workflow.model_dump_json(by_alias=True, indent=2), encoding="utf-8")
        return path

    async def get_workflow(self, workflow_id: str) -> Workflow:
        path = self.path_for(workflow_id)
        if not path.exists():
            raise WorkflowNotFoundError(workflow_id)

        try:
            payload = json.loads(path.read_text(encoding="utf-8"))
            if isinstance(payload, dict):
                payload.setdefault("id", workflow_id)
            workflow = Workflow.model_validate(payload)
        except (ValidationError, ValueError) as exc:
            raise InvalidWorkflowError(f"Workflow '{workflow_id}' in {path} is invalid: {exc}") from exc
        if workflow.id != workflow_id:
            raise InvalidWorkflowError(f"Workflow file {path} declares id '{workflow.id}'.")
        logger.debug("Loaded workflow %s from %s", workflow_id, path)
        return workflow
