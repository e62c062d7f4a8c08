"""Dependency graph over tools.

Edges mean "must finish before": a tool becomes ready once every one of its
prerequisites has a terminal result. The graph is validated once, at build
time, and is read-only afterwards.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence

from devtool.core.result import CycleError, DuplicateToolError, UnknownToolError
from devtool.engine.models import Tool


class DependencyGraph:
    """Immutable partial order over a set of tools.

    Use :meth:`build` rather than the constructor; it validates ids,
    prerequisites and acyclicity before any work starts.
    """

    def __init__(self, tools: Sequence[Tool]) -> None:
        self._tools: tuple[Tool, ...] = tuple(tools)
        self._by_id: dict[str, Tool] = {tool.id: tool for tool in self._tools}
        self._index: dict[str, int] = {tool.id: i for i, tool in enumerate(self._tools)}
        self._dependents: dict[str, list[str]] = {tool.id: [] for tool in self._tools}
        for tool in self._tools:
            for prereq in tool.prerequisites:
                self._dependents[prereq].append(tool.id)

    @classmethod
    def build(cls, tools: Iterable[Tool]) -> DependencyGraph:
        """Validate tools and return the graph.

        Raises:
            DuplicateToolError: Two tools share an id.
            UnknownToolError: A prerequisite names a tool outside the set.
            CycleError: The prerequisite relation has a cycle (self-loops included).
        """
        tool_list = list(tools)

        seen: set[str] = set()
        for tool in tool_list:
            if tool.id in seen:
                raise DuplicateToolError(f"Duplicate tool id: {tool.id}", context={"tool": tool.id})
            seen.add(tool.id)

        for tool in tool_list:
            for prereq in tool.prerequisites:
                if prereq not in seen:
                    raise UnknownToolError(
                        f"Tool {tool.id} requires unknown tool {prereq}",
                        context={"tool": tool.id, "prerequisite": prereq},
                    )

        cycle = _find_cycle(tool_list)
        if cycle is not None:
            raise CycleError(cycle)

        return cls(tool_list)

    @property
    def tools(self) -> tuple[Tool, ...]:
        return self._tools

    def __len__(self) -> int:
        return len(self._tools)

    def __contains__(self, tool_id: object) -> bool:
        return tool_id in self._by_id

    def get(self, tool_id: str) -> Tool:
        return self._by_id[tool_id]

    def ready_set(self, completed: Iterable[str]) -> list[Tool]:
        """Return tools not yet completed whose prerequisites all are, in declaration order."""
        done = set(completed)
        return [
            tool
            for tool in self._tools
            if tool.id not in done and all(prereq in done for prereq in tool.prerequisites)
        ]

    def dependents(self, tool_id: str) -> list[Tool]:
        """Return every tool that transitively depends on ``tool_id``, in declaration order."""
        found: set[str] = set()
        stack = list(self._dependents.get(tool_id, []))
        while stack:
            current = stack.pop()
            if current in found:
                continue
            found.add(current)
            stack.extend(self._dependents[current])
        return sorted((self._by_id[tid] for tid in found), key=lambda t: self._index[t.id])

    def topo_order(self) -> list[Tool]:
        """Topological order, ties broken by declaration order."""
        order: list[Tool] = []
        placed: set[str] = set()
        while len(order) < len(self._tools):
            ready = self.ready_set(placed)
            # build() guarantees acyclicity, so ready is never empty here
            order.append(ready[0])
            placed.add(ready[0].id)
        return order


def _find_cycle(tools: Sequence[Tool]) -> list[str] | None:
    """Depth-first search for a cycle; returns the closed path or None."""
    prereqs = {tool.id: tool.prerequisites for tool in tools}
    visiting: set[str] = set()
    visited: set[str] = set()
    path: list[str] = []

    def visit(node: str) -> list[str] | None:
        visiting.add(node)
        path.append(node)
        for nxt in prereqs[node]:
            if nxt in visiting:
                start = path.index(nxt)
                return [*path[start:], nxt]
            if nxt not in visited:
                found = visit(nxt)
                if found is not None:
                    return found
        path.pop()
        visiting.discard(node)
        visited.add(node)
        return None

    for tool in tools:
        if tool.id not in visited:
            cycle = visit(tool.id)
            if cycle is not None:
                return cycle
    return None


__all__ = ["DependencyGraph"]
