"""Pydantic models for workflow graphs, triggers and run reports."""

from __future__ import annotations

import json
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class NodeType(str, Enum):
    """Node type tags produced by the graph editor."""

    INITIAL = "INITIAL"
    MANUAL_TRIGGER = "MANUAL_TRIGGER"
    TIMED_TRIGGER = "TIMED_TRIGGER"
    GOOGLE_FORM_TRIGGER = "GOOGLE_FORM_TRIGGER"
    STRIPE_TRIGGER = "STRIPE_TRIGGER"
    HTTP_REQUEST = "HTTP_REQUEST"
    HTTP_API = "HTTP_API"
    AI = "AI"
    AI_OPENAI = "AI_OPENAI"
    AI_ANTHROPIC = "AI_ANTHROPIC"
    AI_GOOGLE = "AI_GOOGLE"
    UPLOAD_ALL = "UPLOAD_ALL"
    UPLOAD_IMAGE = "UPLOAD_IMAGE"
    UPLOAD_PDF = "UPLOAD_PDF"
    UPLOAD_TEXT = "UPLOAD_TEXT"
    UPLOAD_VIDEO = "UPLOAD_VIDEO"


class NodeStatus(str, Enum):
    LOADING = "loading"
    SUCCESS = "success"
    ERROR = "error"


class RunStatus(str, Enum):
    LOADING = "loading"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class ErrorTier(str, Enum):
    """Failure classification surfaced to the triggering caller."""

    CYCLE = "cycle"
    CONFIGURATION = "configuration"
    TRANSIENT = "transient"
    NOT_FOUND = "not_found"


class Node(BaseModel):
    """A single typed unit of work in the graph."""

    id: str
    type: NodeType
    data: Dict[str, Any] = Field(default_factory=dict)

    # Editor metadata such as ``position`` is carried by stored nodes but
    # never read by the engine.
    model_config = ConfigDict(extra="ignore")

    @field_validator("id")
    @classmethod
    def validate_id(cls, value: str) -> str:
        if not value or not value.strip():
            raise ValueError("Node id must be a non-empty string.")
        return value

    @field_validator("data", mode="before")
    @classmethod
    def default_data(cls, value: Any) -> Any:
        return {} if value is None else value


class Connection(BaseModel):
    """Directed dependency: ``to_node_id`` runs after ``from_node_id``."""

    id: str
    from_node_id: str = Field(..., alias="fromNodeId")
    to_node_id: str = Field(..., alias="toNodeId")
    from_output: str = Field(default="main", alias="fromOutput")
    to_input: str = Field(default="main", alias="toInput")

    model_config = ConfigDict(extra="ignore", validate_by_name=True, serialize_by_alias=True)


class Workflow(BaseModel):
    """Persisted graph that one execution run operates over."""

    id: str
    name: Optional[str] = None
    nodes: List[Node] = Field(default_factory=list)
    connections: List[Connection] = Field(default_factory=list)

    model_config = ConfigDict(extra="ignore")

    @model_validator(mode="after")
    def validate_graph(self) -> "Workflow":
        seen: set[str] = set()
        for node in self.nodes:
            if node.id in seen:
                raise ValueError(f"Duplicate node id detected: '{node.id}'")
            seen.add(node.id)
        for connection in self.connections:
            for endpoint in (connection.from_node_id, connection.to_node_id):
                if endpoint not in seen:
                    raise ValueError(
                        f"Connection '{connection.id}' references unknown node '{endpoint}'."
                    )
        return self


class StatusEvent(BaseModel):
    """Ephemeral per-node lifecycle event for live observers."""

    node_id: str = Field(..., alias="nodeId")
    status: NodeStatus

    model_config = ConfigDict(validate_by_name=True, serialize_by_alias=True, use_enum_values=True)


class TriggerEvent(BaseModel):
    """External request to start exactly one run."""

    workflow_id: str = Field(..., alias="workflowId")
    initial_data: Dict[str, Any] = Field(default_factory=dict, alias="initialData")
    run_id: Optional[str] = Field(default=None, alias="runId")

    model_config = ConfigDict(validate_by_name=True, serialize_by_alias=True)

    @field_validator("initial_data", mode="before")
    @classmethod
    def default_initial_data(cls, value: Any) -> Any:
        return {} if value is None else value


class RunResult(BaseModel):
    """Successful run output returned to the trigger's initiator."""

    workflow_id: str = Field(..., alias="workflowId")
    result: Dict[str, Any]

    model_config = ConfigDict(validate_by_name=True, serialize_by_alias=True)


class RunReport(BaseModel):
    """Outcome of one run, successful or not."""

    workflow_id: str = Field(..., alias="workflowId")
    run_id: str = Field(..., alias="runId")
    status: RunStatus = RunStatus.LOADING
    result: Dict[str, Any] = Field(default_factory=dict)
    executed_node_ids: List[str] = Field(default_factory=list, alias="executedNodeIds")
    failed_node_id: Optional[str] = Field(default=None, alias="failedNodeId")
    error_tier: Optional[ErrorTier] = Field(default=None, alias="errorTier")
    error: Optional[str] = None

    model_config = ConfigDict(validate_by_name=True, serialize_by_alias=True)

    @property
    def succeeded(self) -> bool:
        return self.status is RunStatus.COMPLETED

    def to_result(self) -> RunResult:
        return RunResult(workflow_id=self.workflow_id, result=self.result)


def load_workflow(path: Path | str) -> Workflow:
    """Read and validate a workflow graph from a JSON file."""
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Workflow definition not found: {path}")

    payload = json.loads(path.read_text(encoding="utf-8"))
    return Workflow.model_validate(payload)
