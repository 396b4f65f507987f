"""Durable workflow execution engine."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
import uuid
from copy import deepcopy
from pathlib import Path
from typing import Any, Callable, Dict, List, Mapping, Optional

from interfaces import JsonValue, StepRunner
from flow_engine.channels import StatusChannel, get_status_channel
from flow_engine.config import EngineSettings, load_settings
from flow_engine.executor import ConfigurationError, NonRetriableError
from flow_engine.models import ErrorTier, Node, RunReport, RunResult, RunStatus, TriggerEvent, load_workflow
from flow_engine.registry import ExecutorRegistry, RegistryError
from flow_engine.repository import (
    InMemoryWorkflowRepository,
    InvalidWorkflowError,
    WorkflowNotFoundError,
    WorkflowRepository,
)
from flow_engine.sorter import GraphCycleError, sort_nodes
from flow_engine.steps import InMemoryStepRunner, JournalStepRunner, StepRetriesExhaustedError
from flow_nodes import build_default_registry

logger = logging.getLogger(__name__)

PREPARE_STEP = "prepare-workflow"

StepRunnerFactory = Callable[[str], StepRunner]


class WorkflowExecutionError(RuntimeError):
    """Raised by ``run_or_raise`` when a run ends in the failed state."""

    def __init__(self, report: RunReport) -> None:
        self.report = report
        where = f" at node '{report.failed_node_id}'" if report.failed_node_id else ""
        tier = report.error_tier.value if report.error_tier else "unknown"
        super().__init__(f"Workflow '{report.workflow_id}' failed{where} ({tier}): {report.error}")


class NodeOutputError(NonRetriableError):
    """Raised when an executor returns something other than a context mapping."""


class WorkflowEngine:
    """Loads a workflow, orders its nodes and runs them one at a time.

    Every node runs inside a checkpointed step named ``node:<id>``; executors
    receive a step runner scoped to their node for finer-grained steps.
    """

    def __init__(
        self,
        repository: WorkflowRepository,
        registry: ExecutorRegistry,
        *,
        channel: Optional[StatusChannel] = None,
        step_runner_factory: Optional[StepRunnerFactory] = None,
        settings: Optional[EngineSettings] = None,
    ) -> None:
        if not registry.frozen:
            raise RegistryError("Executor registry must be frozen before the engine starts.")
        self.repository = repository
        self.registry = registry
        self.channel = channel or get_status_channel()
        self.settings = settings or EngineSettings()
        self._step_runner_factory = step_runner_factory or self._default_step_runner

    def _default_step_runner(self, run_id: str) -> StepRunner:
        return InMemoryStepRunner(policy=self.settings.retry_policy)

    async def run(self, trigger: TriggerEvent | Mapping[str, Any]) -> RunReport:
        """Execute one run and report its outcome; failures are reported, not raised."""
        event = trigger if isinstance(trigger, TriggerEvent) else TriggerEvent.model_validate(trigger)
        if not event.workflow_id.strip():
            raise NonRetriableError("Workflow Id is missing")

        run_id = event.run_id or uuid.uuid4().hex
        report = RunReport(workflow_id=event.workflow_id, run_id=run_id)
        step = self._step_runner_factory(run_id)
        logger.info("Run %s of workflow %s: loading", run_id, event.workflow_id)

        try:
            ordered = await self._prepare(event.workflow_id, step)
        except WorkflowNotFoundError as exc:
            return self._fail(report, ErrorTier.NOT_FOUND, exc)
        except GraphCycleError as exc:
            return self._fail(report, ErrorTier.CYCLE, exc)
        except InvalidWorkflowError as exc:
            return self._fail(report, ErrorTier.CONFIGURATION, exc)
        except StepRetriesExhaustedError as exc:
            return self._fail(report, ErrorTier.TRANSIENT, exc)

        uncovered = next((node for node in ordered if node.type not in self.registry), None)
        if uncovered is not None:
            error = ConfigurationError(
                f"No executor registered for node type '{uncovered.type.value}'.", node_id=uncovered.id
            )
            return self._fail(report, ErrorTier.CONFIGURATION, error, node_id=uncovered.id)

        report.status = RunStatus.RUNNING
        context: Dict[str, JsonValue] = deepcopy(dict(event.initial_data))
        report.result = context
        logger.info("Run %s: executing %d node(s) in order %s", run_id, len(ordered), [n.id for n in ordered])

        for node in ordered:
            try:
                context = await self._dispatch(node, context, step)
            except StepRetriesExhaustedError as exc:
                return self._fail(report, ErrorTier.TRANSIENT, exc, node_id=node.id)
            except NonRetriableError as exc:
                return self._fail(report, ErrorTier.CONFIGURATION, exc, node_id=node.id)
            report.executed_node_ids.append(node.id)
            report.result = context

        report.status = RunStatus.COMPLETED
        logger.info("Run %s of workflow %s completed", run_id, event.workflow_id)
        return report

    async def run_or_raise(self, trigger: TriggerEvent | Mapping[str, Any]) -> RunResult:
        """Execute one run and return ``{workflowId, result}`` or raise WorkflowExecutionError."""
        report = await self.run(trigger)
        if not report.succeeded:
            raise WorkflowExecutionError(report)
        return report.to_result()

    async def _prepare(self, workflow_id: str, step: StepRunner) -> List[Node]:
        async def load_and_sort() -> List[Dict[str, Any]]:
            workflow = await self.repository.get_workflow(workflow_id)
            ordered = sort_nodes(workflow.nodes, workflow.connections)
            return [node.model_dump(mode="json") for node in ordered]

        snapshot = await step.run(PREPARE_STEP, load_and_sort)
        return [Node.model_validate(item) for item in snapshot]

    async def _dispatch(self, node: Node, context: Dict[str, JsonValue], step: StepRunner) -> Dict[str, JsonValue]:
        registration = self.registry.registration(node.type)
        publish = self.channel.publisher_for(registration.channel)
        node_step = step.scoped(node.id)

        async def execute() -> Dict[str, JsonValue]:
            logger.debug("Dispatching node %s (%s)", node.id, node.type.value)
            try:
                updated = await registration.executor(
                    node_id=node.id,
                    data=deepcopy(node.data),
                    context=deepcopy(context),
                    step=node_step,
                    publish=publish,
                )
            except ConfigurationError as exc:
                if exc.node_id is None:
                    exc.node_id = node.id
                raise
            if not isinstance(updated, Mapping):
                raise NodeOutputError(f"Node '{node.id}' must return a context mapping, got {type(updated).__name__}.")
            return dict(updated)

        return await step.run(f"node:{node.id}", execute)

    def _fail(
        self,
        report: RunReport,
        tier: ErrorTier,
        exc: BaseException,
        *,
        node_id: Optional[str] = None,
    ) -> RunReport:
        report.status = RunStatus.FAILED
        report.error_tier = tier
        report.error = str(exc)
        report.failed_node_id = node_id
        logger.error(
            "Run %s of workflow %s failed%s (%s): %s",
            report.run_id,
            report.workflow_id,
            f" at node {node_id}" if node_id else "",
            tier.value,
            exc,
        )
        return report


async def run_workflow_file(
    workflow_path: Path,
    *,
    initial_data: Optional[Dict[str, JsonValue]] = None,
    run_id: Optional[str] = None,
    settings: Optional[EngineSettings] = None,
) -> RunReport:
    """Run a workflow stored in a JSON file with a journal for resumption."""
    settings = settings or load_settings(workflow_path.parent)
    workflow = load_workflow(workflow_path)
    run_id = run_id or uuid.uuid4().hex
    journal = JournalStepRunner.for_run(settings.journal_dir, run_id, policy=settings.retry_policy)

    engine = WorkflowEngine(
        InMemoryWorkflowRepository([workflow]),
        build_default_registry(settings),
        step_runner_factory=lambda _run_id: journal,
        settings=settings,
    )
    report = await engine.run(TriggerEvent(workflow_id=workflow.id, initial_data=initial_data or {}, run_id=run_id))
    if report.succeeded:
        journal.discard()
    return report


def run(workflow_path: Path | str, **kwargs: Any) -> RunReport:
    """Synchronous entry point for CLI usage."""
    return asyncio.run(run_workflow_file(Path(workflow_path), **kwargs))


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(prog="flow-engine", description="Execute workflow graphs.")
    subparsers = parser.add_subparsers(dest="command", required=True)
    run_parser = subparsers.add_parser("run", help="Run a workflow JSON definition once.")
    run_parser.add_argument("workflow", type=Path, help="Path to the workflow JSON definition.")
    run_parser.add_argument("--initial-data", type=Path, help="JSON file seeding the execution context.")
    run_parser.add_argument("--run-id", help="Run identifier; reuse one to resume an interrupted run.")
    run_parser.add_argument("--journal-dir", type=Path, help="Directory holding step journals.")
    args = parser.parse_args(argv)

    settings = load_settings(args.workflow.parent)
    if args.journal_dir is not None:
        settings = settings.model_copy(update={"journal_dir": args.journal_dir})
    logging.basicConfig(level=settings.log_level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    try:
        initial_data = json.loads(args.initial_data.read_text(encoding="utf-8")) if args.initial_data else {}
        report = run(args.workflow, initial_data=initial_data, run_id=args.run_id, settings=settings)
    except Exception as exc:  # pragma: no cover - CLI convenience
        print(f"[flow-engine] Error: {exc}", file=sys.stderr)
        return 1

    print(report.model_dump_json(by_alias=True, indent=2))
    return 0 if report.succeeded else 1


__all__ = [
    "WorkflowEngine",
    "WorkflowExecutionError",
    "NodeOutputError",
    "run_workflow_file",
    "run",
    "main",
]


if __name__ == "__main__":  # pragma: no cover - CLI
    sys.exit(main())
