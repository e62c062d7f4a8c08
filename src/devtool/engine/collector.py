"""Accumulates per-tool results into the run summary."""

from __future__ import annotations

from collections.abc import Sequence

from devtool.core.result import ResultConflictError
from devtool.engine.models import (
    Classification,
    Failure,
    NoChange,
    Success,
    Summary,
    TaskOutcome,
    TaskResult,
    Tool,
)


class ResultCollector:
    """Write-once store of TaskResults keyed by tool id.

    Attributes:
        tools: Input tools, whose order fixes the summary order
    """

    def __init__(self, tools: Sequence[Tool]) -> None:
        self.tools: tuple[Tool, ...] = tuple(tools)
        self._results: dict[str, TaskResult] = {}

    def record(self, result: TaskResult) -> TaskResult:
        if result.tool_id in self._results:
            raise ResultConflictError(
                f"Result already recorded for {result.tool_id}",
                context={"tool": result.tool_id},
            )
        self._results[result.tool_id] = result
        return result

    def has_result(self, tool_id: str) -> bool:
        return tool_id in self._results

    def completed_ids(self) -> set[str]:
        return set(self._results)

    def __len__(self) -> int:
        return len(self._results)

    @staticmethod
    def from_outcome(tool: Tool, outcome: TaskOutcome, elapsed: float) -> TaskResult:
        """Build a TaskResult from an executor outcome."""
        match outcome:
            case Success(details=details):
                return TaskResult(
                    tool_id=tool.id,
                    label=tool.label,
                    classification=Classification.UPDATED,
                    elapsed=elapsed,
                    details=list(details),
                )
            case NoChange(message=message):
                return TaskResult(
                    tool_id=tool.id,
                    label=tool.label,
                    classification=Classification.ALREADY_LATEST,
                    reason=message,
                    elapsed=elapsed,
                )
            case Failure(error=error):
                return TaskResult(
                    tool_id=tool.id,
                    label=tool.label,
                    classification=Classification.FAILED,
                    reason=error,
                    elapsed=elapsed,
                )
        raise TypeError(f"Unknown outcome type: {type(outcome).__name__}")

    @staticmethod
    def skipped(tool: Tool, reason: str, elapsed: float = 0.0) -> TaskResult:
        return TaskResult(
            tool_id=tool.id,
            label=tool.label,
            classification=Classification.SKIPPED,
            reason=reason,
            elapsed=elapsed,
        )

    def summary(self, *, duration: float = 0.0, cancelled: bool = False) -> Summary:
        """Assemble results in declaration order with a count for every classification."""
        ordered = [self._results[tool.id] for tool in self.tools if tool.id in self._results]
        counts = {classification: 0 for classification in Classification}
        for result in ordered:
            counts[result.classification] += 1
        return Summary(results=ordered, counts=counts, duration=duration, cancelled=cancelled)


__all__ = ["ResultCollector"]
