"""Tests for the tool dependency graph."""

from __future__ import annotations

import pytest

from devtool.core.result import (
    CycleError,
    DuplicateToolError,
    GraphError,
    UnknownToolError,
)
from devtool.engine.graph import DependencyGraph
from tests.mocks.fake_executor import make_tool


def ids(tools: list) -> list[str]:
    return [tool.id for tool in tools]


class TestBuild:
    """Validation performed by DependencyGraph.build."""

    def test_empty_graph(self) -> None:
        graph = DependencyGraph.build([])
        assert len(graph) == 0
        assert graph.topo_order() == []
        assert graph.ready_set(set()) == []

    def test_duplicate_id_rejected(self) -> None:
        with pytest.raises(DuplicateToolError):
            DependencyGraph.build([make_tool("a"), make_tool("a")])

    def test_unknown_prerequisite_rejected(self) -> None:
        with pytest.raises(UnknownToolError) as exc_info:
            DependencyGraph.build([make_tool("a", ["ghost"])])
        assert "ghost" in str(exc_info.value)

    def test_self_loop_is_a_cycle(self) -> None:
        with pytest.raises(CycleError) as exc_info:
            DependencyGraph.build([make_tool("a", ["a"])])
        assert exc_info.value.cycle == ["a", "a"]

    def test_two_node_cycle(self) -> None:
        with pytest.raises(CycleError) as exc_info:
            DependencyGraph.build([make_tool("a", ["b"]), make_tool("b", ["a"])])
        cycle = exc_info.value.cycle
        assert cycle[0] == cycle[-1]
        assert set(cycle) == {"a", "b"}
        assert "Cycle detected" in str(exc_info.value)

    def test_cycle_errors_are_graph_errors(self) -> None:
        with pytest.raises(GraphError):
            DependencyGraph.build(
                [make_tool("a", ["c"]), make_tool("b", ["a"]), make_tool("c", ["b"])]
            )

    def test_contains_and_get(self) -> None:
        graph = DependencyGraph.build([make_tool("a"), make_tool("b", ["a"])])
        assert "a" in graph
        assert "z" not in graph
        assert graph.get("b").prerequisites == ["a"]


class TestReadySet:
    """Ready-set computation."""

    def test_no_prerequisites_all_ready_in_declaration_order(self) -> None:
        graph = DependencyGraph.build([make_tool("c"), make_tool("a"), make_tool("b")])
        assert ids(graph.ready_set(set())) == ["c", "a", "b"]

    def test_prerequisite_blocks_until_completed(self) -> None:
        graph = DependencyGraph.build(
            [make_tool("a"), make_tool("b"), make_tool("c", ["a"])]
        )
        assert ids(graph.ready_set(set())) == ["a", "b"]
        assert ids(graph.ready_set({"a"})) == ["b", "c"]
        assert ids(graph.ready_set({"a", "b"})) == ["c"]
        assert graph.ready_set({"a", "b", "c"}) == []

    def test_multiple_prerequisites_need_all(self) -> None:
        graph = DependencyGraph.build(
            [make_tool("a"), make_tool("b"), make_tool("c", ["a", "b"])]
        )
        assert "c" not in ids(graph.ready_set({"a"}))
        assert "c" in ids(graph.ready_set({"a", "b"}))


class TestDependents:
    """Transitive dependents."""

    def test_transitive_dependents_in_declaration_order(self) -> None:
        graph = DependencyGraph.build(
            [
                make_tool("a"),
                make_tool("d", ["c"]),
                make_tool("b", ["a"]),
                make_tool("c", ["b"]),
                make_tool("e"),
            ]
        )
        assert ids(graph.dependents("a")) == ["d", "b", "c"]
        assert ids(graph.dependents("c")) == ["d"]
        assert graph.dependents("e") == []

    def test_diamond_reports_each_dependent_once(self) -> None:
        graph = DependencyGraph.build(
            [
                make_tool("a"),
                make_tool("b", ["a"]),
                make_tool("c", ["a"]),
                make_tool("d", ["b", "c"]),
            ]
        )
        assert ids(graph.dependents("a")) == ["b", "c", "d"]


class TestTopoOrder:
    """Topological order with declaration-order tie breaking."""

    def test_independent_tools_keep_declaration_order(self) -> None:
        graph = DependencyGraph.build([make_tool("x"), make_tool("y"), make_tool("z")])
        assert ids(graph.topo_order()) == ["x", "y", "z"]

    def test_prerequisite_moves_dependent_later(self) -> None:
        graph = DependencyGraph.build(
            [make_tool("a"), make_tool("c", ["b"]), make_tool("b")]
        )
        assert ids(graph.topo_order()) == ["a", "b", "c"]

    def test_builtin_shape(self) -> None:
        graph = DependencyGraph.build(
            [make_tool("homebrew"), make_tool("rustup"), make_tool("mise", ["homebrew"])]
        )
        assert ids(graph.topo_order()) == ["homebrew", "rustup", "mise"]

    def test_every_prerequisite_precedes_its_dependent(self) -> None:
        graph = DependencyGraph.build(
            [
                make_tool("e", ["d"]),
                make_tool("d", ["b", "c"]),
                make_tool("c", ["a"]),
                make_tool("b", ["a"]),
                make_tool("a"),
            ]
        )
        order = ids(graph.topo_order())
        position = {tool_id: i for i, tool_id in enumerate(order)}
        for tool in graph.tools:
            for prereq in tool.prerequisites:
                assert position[prereq] < position[tool.id]
        assert order == ["a", "c", "b", "d", "e"]
