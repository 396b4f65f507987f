"""Tests for workflow repositories."""

from __future__ import annotations

import json
import tempfile
import unittest
from pathlib import Path

from flow_engine.models import Workflow
from flow_engine.repository import (
    InMemoryWorkflowRepository,
    InvalidWorkflowError,
    JsonWorkflowRepository,
    WorkflowNotFoundError,
    WorkflowRepository,
)

PAYLOAD = {
    "id": "wf-1",
    "nodes": [
        {"id": "a", "type": "MANUAL_TRIGGER", "data": {}},
        {"id": "b", "type": "HTTP_REQUEST", "data": {"endpoint": "https://example.com"}},
    ],
    "connections": [{"id": "c1", "fromNodeId": "a", "toNodeId": "b"}],
}


class InMemoryRepositoryTests(unittest.IsolatedAsyncioTestCase):
    async def test_returns_independent_copies(self) -> None:
        workflow = Workflow.model_validate(PAYLOAD)
        repository = InMemoryWorkflowRepository([workflow])
        self.assertIsInstance(repository, WorkflowRepository)

        loaded = await repository.get_workflow("wf-1")
        loaded.nodes[1].data["endpoint"] = "https://changed.example.com"
        workflow.nodes[1].data["endpoint"] = "https://also-changed.example.com"

        again = await repository.get_workflow("wf-1")
        self.assertEqual(again.nodes[1].data["endpoint"], "https://example.com")

    async def test_missing_and_deleted_workflows(self) -> None:
        repository = InMemoryWorkflowRepository([Workflow.model_validate(PAYLOAD)])
        repository.delete("wf-1")
        with self.assertRaises(WorkflowNotFoundError) as ctx:
            await repository.get_workflow("wf-1")
        self.assertEqual(ctx.exception.workflow_id, "wf-1")


class JsonRepositoryTests(unittest.IsolatedAsyncioTestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.root = Path(self._tmp.name)
        self.repository = JsonWorkflowRepository(self.root)

    def tearDown(self) -> None:
        self._tmp.cleanup()

    async def test_save_then_load(self) -> None:
        path = self.repository.save(Workflow.model_validate(PAYLOAD))
        self.assertEqual(path, self.root / "wf-1.json")
        stored = json.loads(path.read_text(encoding="utf-8"))
        self.assertEqual(stored["connections"][0]["fromNodeId"], "a")

        workflow = await self.repository.get_workflow("wf-1")
        self.assertEqual([node.id for node in workflow.nodes], ["a", "b"])

    async def test_id_defaults_to_file_name(self) -> None:
        payload = {key: value for key, value in PAYLOAD.items() if key != "id"}
        (self.root / "wf-2.json").write_text(json.dumps(payload), encoding="utf-8")
        workflow = await self.repository.get_workflow("wf-2")
        self.assertEqual(workflow.id, "wf-2")

    async def test_missing_file_is_not_found(self) -> None:
        with self.assertRaises(WorkflowNotFoundError):
            await self.repository.get_workflow("nope")

    async def test_path_traversal_is_not_found(self) -> None:
        with self.assertRaises(WorkflowNotFoundError):
            await self.repository.get_workflow("../secrets")

    async def test_invalid_graph_raises(self) -> None:
        payload = json.loads(json.dumps(PAYLOAD))
        payload["connections"][0]["toNodeId"] = "ghost"
        (self.root / "wf-1.json").write_text(json.dumps(payload), encoding="utf-8")
        with self.assertRaises(InvalidWorkflowError):
            await self.repository.get_workflow("wf-1")

    async def test_unparsable_file_raises(self) -> None:
        (self.root / "wf-1.json").write_text("{not json", encoding="utf-8")
        with self.assertRaises(InvalidWorkflowError):
            await self.repository.get_workflow("wf-1")

    async def test_mismatched_id_raises(self) -> None:
        (self.root / "wf-9.json").write_text(json.dumps(PAYLOAD), encoding="utf-8")
        with self.assertRaises(InvalidWorkflowError):
            await self.repository.get_workflow("wf-9")


if __name__ == "__main__":  # pragma: no cover
    unittest.main()
