"""Update orchestration engine.

Runs tool updates concurrently under a bounded worker pool, respecting
prerequisite ordering, and reports progress through a single owner.

Key classes:
- Tool: An updatable external tool
- DependencyGraph: Validated partial order over tools
- ParallelScheduler: Drives a run to a Summary
- ProgressAggregator: Single owner of live progress
- ResultCollector: Write-once per-tool results
- TaskExecutor: Protocol for running one tool's update
"""

from devtool.engine.collector import ResultCollector
from devtool.engine.executor import TaskContext, TaskExecutor
from devtool.engine.graph import DependencyGraph
from devtool.engine.models import (
    Classification,
    Failure,
    NoChange,
    Phase,
    Success,
    Summary,
    TaskOutcome,
    TaskResult,
    Tool,
    ToolProgress,
    UpgradeDetail,
    UpgradeKind,
)
from devtool.engine.progress import (
    EventKind,
    NullRenderer,
    ProgressAggregator,
    ProgressEvent,
    ProgressReporter,
)
from devtool.engine.scheduler import ParallelScheduler

__all__ = [
    "Classification",
    "DependencyGraph",
    "EventKind",
    "Failure",
    "NoChange",
    "NullRenderer",
    "ParallelScheduler",
    "Phase",
    "ProgressAggregator",
    "ProgressEvent",
    "ProgressReporter",
    "ResultCollector",
    "Success",
    "Summary",
    "TaskContext",
    "TaskExecutor",
    "TaskOutcome",
    "TaskResult",
    "Tool",
    "ToolProgress",
    "UpgradeDetail",
    "UpgradeKind",
]
