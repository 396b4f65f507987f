"""Tests for dependency ordering."""

from __future__ import annotations

import itertools
import random
import unittest

from flow_engine.models import Connection, Node, NodeType
from flow_engine.sorter import CYCLE_MESSAGE, GraphCycleError, sort_nodes


def _nodes(*ids: str) -> list[Node]:
    return [Node(id=node_id, type=NodeType.MANUAL_TRIGGER) for node_id in ids]


def _edges(*pairs: tuple[str, str]) -> list[Connection]:
    return [
        Connection(id=f"c{index}", from_node_id=source, to_node_id=target)
        for index, (source, target) in enumerate(pairs)
    ]


def _ids(nodes: list[Node]) -> list[str]:
    return [node.id for node in nodes]


class SortNodesTests(unittest.TestCase):
    def test_no_connections_returns_insertion_order(self) -> None:
        nodes = _nodes("c", "a", "b")
        ordered = sort_nodes(nodes, [])
        self.assertEqual(_ids(ordered), ["c", "a", "b"])
        self.assertIs(ordered[0], nodes[0])

    def test_single_node(self) -> None:
        self.assertEqual(_ids(sort_nodes(_nodes("n1"), [])), ["n1"])

    def test_chain_respects_edges(self) -> None:
        ordered = sort_nodes(_nodes("c", "b", "a"), _edges(("a", "b"), ("b", "c")))
        self.assertEqual(_ids(ordered), ["a", "b", "c"])

    def test_fan_out_places_source_first(self) -> None:
        ordered = _ids(sort_nodes(_nodes("A", "B", "C"), _edges(("A", "B"), ("A", "C"))))
        self.assertEqual(ordered[0], "A")
        self.assertCountEqual(ordered[1:], ["B", "C"])

    def test_fan_in_and_parallel_edges_keep_each_node_once(self) -> None:
        ordered = _ids(
            sort_nodes(
                _nodes("A", "B", "C", "D"),
                _edges(("A", "B"), ("A", "C"), ("B", "D"), ("C", "D"), ("B", "D")),
            )
        )
        self.assertEqual(sorted(ordered), ["A", "B", "C", "D"])
        self.assertEqual(ordered[0], "A")
        self.assertEqual(ordered[-1], "D")

    def test_unconstrained_nodes_keep_insertion_order(self) -> None:
        ordered = _ids(sort_nodes(_nodes("root", "z", "y"), _edges(("root", "z"), ("root", "y"))))
        self.assertEqual(ordered, ["root", "z", "y"])

    def test_disconnected_nodes_are_appended_in_insertion_order(self) -> None:
        ordered = _ids(sort_nodes(_nodes("lonely1", "B", "lonely2", "A"), _edges(("A", "B"))))
        self.assertEqual(ordered, ["A", "B", "lonely1", "lonely2"])

    def test_two_node_cycle_raises(self) -> None:
        with self.assertRaises(GraphCycleError) as ctx:
            sort_nodes(_nodes("A", "B"), _edges(("A", "B"), ("B", "A")))
        self.assertIn(CYCLE_MESSAGE, str(ctx.exception))
        self.assertEqual(ctx.exception.node_ids, ["A", "B"])

    def test_self_connection_is_a_cycle(self) -> None:
        with self.assertRaises(GraphCycleError) as ctx:
            sort_nodes(_nodes("A", "B"), _edges(("A", "B"), ("B", "B")))
        self.assertEqual(ctx.exception.node_ids, ["B"])

    def test_nodes_downstream_of_cycle_are_not_named(self) -> None:
        with self.assertRaises(GraphCycleError) as ctx:
            sort_nodes(
                _nodes("A", "B", "C", "D"),
                _edges(("A", "B"), ("B", "A"), ("B", "C"), ("C", "D")),
            )
        self.assertEqual(ctx.exception.node_ids, ["A", "B"])
        self.assertNotIn("C", str(ctx.exception))

    def test_cycle_downstream_of_valid_prefix_raises(self) -> None:
        with self.assertRaises(GraphCycleError) as ctx:
            sort_nodes(
                _nodes("start", "x", "y", "z"),
                _edges(("start", "x"), ("x", "y"), ("y", "z"), ("z", "x")),
            )
        self.assertEqual(ctx.exception.node_ids, ["x", "y", "z"])

    def test_unknown_endpoints_are_ignored(self) -> None:
        ordered = _ids(sort_nodes(_nodes("A", "B"), _edges(("ghost", "A"), ("A", "B"))))
        self.assertEqual(ordered, ["A", "B"])

    def test_random_dags_respect_every_edge(self) -> None:
        rng = random.Random(7)
        for _ in range(50):
            ids = [f"n{index}" for index in range(rng.randint(2, 9))]
            rank = {node_id: index for index, node_id in enumerate(ids)}
            pairs = [pair for pair in itertools.combinations(ids, 2) if rng.random() < 0.35]
            shuffled = ids[:]
            rng.shuffle(shuffled)
            ordered = _ids(sort_nodes(_nodes(*shuffled), _edges(*pairs)))

            self.assertEqual(sorted(ordered), sorted(ids))
            position = {node_id: index for index, node_id in enumerate(ordered)}
            for source, target in pairs:
                self.assertLess(position[source], position[target])
                self.assertLess(rank[source], rank[target])


if __name__ == "__main__":  # pragma: no cover
    unittest.main()
