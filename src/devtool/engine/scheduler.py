"""Bounded-concurrency, dependency-aware update scheduler.

The scheduler drives one run over a tool set:

1. Build and validate the DependencyGraph (a cycle aborts before any work).
2. Detect installed tools; absent ones are skipped without taking a slot
   and unblock their dependents only once their own prerequisites settle.
3. Dispatch ready tools into free slots, recomputing the ready set each time
   an in-flight tool reaches a terminal outcome.
4. Skip every transitive dependent of a failed tool.
5. Return a Summary once every tool has a terminal result.

Cancellation stops dispatch, cancels in-flight tools and waits at most
``grace_period`` seconds before marking everything unfinished as cancelled.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Callable, Collection, Iterable

from devtool.core.console import get_logger
from devtool.engine.collector import ResultCollector
from devtool.engine.executor import TaskContext, TaskExecutor
from devtool.engine.graph import DependencyGraph
from devtool.engine.models import (
    Failure,
    NoChange,
    Success,
    Summary,
    TaskOutcome,
    Tool,
)
from devtool.engine.progress import EventKind, ProgressAggregator, ProgressEvent

logger = get_logger(__name__)

NOT_INSTALLED = "not installed"
CANCELLED = "cancelled"
UNEXPECTED_CANCEL = "cancelled unexpectedly"


class ParallelScheduler:
    """Runs tool updates under a concurrency bound.

    Attributes:
        grace_period: Seconds to wait for in-flight tools after cancel()

    Args:
        executor: Runs a single tool's update
        progress: Caller-owned aggregator for this run; a headless one is
            created per run when omitted
        grace_period: Seconds to wait for in-flight tools after cancel()
        clock: Monotonic clock used for elapsed times
    """

    def __init__(
        self,
        executor: TaskExecutor,
        progress: ProgressAggregator | None = None,
        *,
        grace_period: float = 5.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._executor = executor
        self._progress = progress
        self.grace_period = grace_period
        self._clock = clock
        self._cancel_requested = False
        # Set when a run ended under cancellation; the next run starts clean
        self._cancel_consumed = False
        self._cancel_event = asyncio.Event()
        self._loop: asyncio.AbstractEventLoop | None = None

    @property
    def cancel_requested(self) -> bool:
        return self._cancel_requested

    def cancel(self) -> None:
        """Stop dispatching and cancel in-flight tools.

        Safe to call from a signal handler installed on the running loop.
        """
        if self._cancel_requested:
            return
        self._cancel_requested = True
        logger.info("Cancellation requested")
        if self._loop is not None and not self._loop.is_closed():
            self._loop.call_soon_threadsafe(self._cancel_event.set)
        else:
            self._cancel_event.set()

    async def run(
        self,
        tools: Iterable[Tool],
        max_concurrency: int = 3,
        dry_run: bool = False,
    ) -> Summary:
        """Run every tool to a terminal result and return the summary.

        Raises:
            ValueError: max_concurrency is less than 1.
            GraphError: The tool set is not a valid DAG (nothing is executed).
        """
        if max_concurrency < 1:
            raise ValueError(f"max_concurrency must be >= 1, got {max_concurrency}")

        graph = DependencyGraph.build(tools)
        if self._cancel_consumed:
            self._cancel_requested = False
            self._cancel_consumed = False
        self._loop = asyncio.get_running_loop()
        self._cancel_event = asyncio.Event()
        if self._cancel_requested:
            self._cancel_event.set()

        if self._progress is not None:
            await self._progress.start()
            try:
                return await self._run(graph, self._progress, max_concurrency, dry_run)
            finally:
                self._end_run()

        try:
            async with ProgressAggregator(graph.tools, clock=self._clock) as progress:
                return await self._run(graph, progress, max_concurrency, dry_run)
        finally:
            self._end_run()

    def _end_run(self) -> None:
        self._loop = None
        self._cancel_consumed = self._cancel_requested

    async def _run(
        self,
        graph: DependencyGraph,
        progress: ProgressAggregator,
        max_concurrency: int,
        dry_run: bool,
    ) -> Summary:
        started = self._clock()
        collector = ResultCollector(graph.tools)
        order = graph.topo_order()
        rank = {tool.id: i for i, tool in enumerate(order)}
        absent: set[str] = set()
        started_at: dict[str, float] = {}
        in_flight: dict[asyncio.Task[TaskOutcome], Tool] = {}

        logger.debug(
            "Starting run: %d tools, max_concurrency=%d, dry_run=%s",
            len(graph),
            max_concurrency,
            dry_run,
        )

        for tool in graph.tools:
            if not self._is_installed(tool):
                logger.info("%s is not installed; skipping", tool.label)
                self._skip(collector, progress, tool, NOT_INSTALLED)
                absent.add(tool.id)

        cancel_waiter = asyncio.create_task(self._cancel_event.wait(), name="scheduler-cancel")
        try:
            while not self._cancel_requested:
                ready = sorted(
                    (
                        tool
                        for tool in graph.ready_set(self._settled(order, collector, absent))
                        if tool.id not in started_at and not collector.has_result(tool.id)
                    ),
                    key=lambda t: rank[t.id],
                )
                for tool in ready[: max_concurrency - len(in_flight)]:
                    logger.debug("Dispatching %s", tool.id)
                    started_at[tool.id] = self._clock()
                    progress.post(ProgressEvent(tool.id, EventKind.STARTED))
                    task = asyncio.create_task(
                        self._execute(tool, progress, dry_run), name=f"update-{tool.id}"
                    )
                    in_flight[task] = tool

                if not in_flight:
                    break

                done, _ = await asyncio.wait(
                    {*in_flight, cancel_waiter}, return_when=asyncio.FIRST_COMPLETED
                )
                for task in done:
                    if task is cancel_waiter:
                        continue
                    tool = in_flight.pop(task)
                    elapsed = self._clock() - started_at[tool.id]
                    self._finish(graph, collector, progress, tool, _outcome_of(task), elapsed)

            if self._cancel_requested:
                await self._cancel_in_flight(graph, collector, progress, in_flight, started_at)
                for tool in graph.tools:
                    if not collector.has_result(tool.id):
                        elapsed = self._elapsed_since(started_at.get(tool.id))
                        self._skip(collector, progress, tool, CANCELLED, elapsed)
        finally:
            cancel_waiter.cancel()
            for task in in_flight:
                task.cancel()

        summary = collector.summary(
            duration=self._clock() - started, cancelled=self._cancel_requested
        )
        logger.debug("Run finished in %.2fs: %s", summary.duration, summary.counts)
        return summary

    async def _execute(
        self, tool: Tool, progress: ProgressAggregator, dry_run: bool
    ) -> TaskOutcome:
        if dry_run:
            return NoChange(f"dry run: would run {tool.describe()}")

        context = TaskContext(dry_run=dry_run, progress=progress.reporter(tool.id))
        try:
            outcome = await self._executor.execute(tool, context)
        except asyncio.CancelledError:
            if self._cancel_requested:
                raise
            logger.warning("Update of %s was cancelled without a cancel request", tool.id)
            return Failure(UNEXPECTED_CANCEL)
        except Exception as exc:
            logger.exception("Executor raised while updating %s", tool.id)
            return Failure(str(exc) or type(exc).__name__)

        if not isinstance(outcome, Success | NoChange | Failure):
            return Failure(f"executor returned {type(outcome).__name__}, not a TaskOutcome")
        return outcome

    async def _cancel_in_flight(
        self,
        graph: DependencyGraph,
        collector: ResultCollector,
        progress: ProgressAggregator,
        in_flight: dict[asyncio.Task[TaskOutcome], Tool],
        started_at: dict[str, float],
    ) -> None:
        if not in_flight:
            return
        logger.info("Cancelling %d in-flight update(s)", len(in_flight))
        for task in in_flight:
            task.cancel()

        done, pending = await asyncio.wait(set(in_flight), timeout=self.grace_period)
        if pending:
            logger.warning(
                "%d update(s) did not stop within %.1fs", len(pending), self.grace_period
            )
        for task in done:
            tool = in_flight.pop(task)
            if task.cancelled():
                continue
            # Finished before the cancellation reached it
            elapsed = self._clock() - started_at[tool.id]
            self._finish(graph, collector, progress, tool, task.result(), elapsed)

    def _finish(
        self,
        graph: DependencyGraph,
        collector: ResultCollector,
        progress: ProgressAggregator,
        tool: Tool,
        outcome: TaskOutcome,
        elapsed: float,
    ) -> None:
        result = collector.record(ResultCollector.from_outcome(tool, outcome, elapsed))
        if isinstance(outcome, Failure):
            logger.info("%s failed after %.1fs: %s", tool.label, elapsed, outcome.error)
            progress.post(ProgressEvent(tool.id, EventKind.FAILED, message=outcome.error))
            for dependent in graph.dependents(tool.id):
                if not collector.has_result(dependent.id):
                    self._skip(collector, progress, dependent, f"{tool.id} failed")
            return

        logger.info("%s finished in %.1fs (%s)", tool.label, elapsed, result.classification.value)
        progress.post(ProgressEvent(tool.id, EventKind.COMPLETED, message=result.reason))

    def _skip(
        self,
        collector: ResultCollector,
        progress: ProgressAggregator,
        tool: Tool,
        reason: str,
        elapsed: float = 0.0,
    ) -> None:
        logger.debug("Skipping %s: %s", tool.id, reason)
        collector.record(ResultCollector.skipped(tool, reason, elapsed))
        progress.post(ProgressEvent(tool.id, EventKind.SKIPPED, message=reason))

    @staticmethod
    def _settled(
        order: Iterable[Tool], collector: ResultCollector, absent: Collection[str]
    ) -> set[str]:
        """Ids that unblock their dependents.

        A tool that is not installed stands in for its own prerequisites: it
        only unblocks dependents once all of those are settled.
        """
        settled: set[str] = set()
        for tool in order:
            if not collector.has_result(tool.id):
                continue
            if tool.id in absent and not all(p in settled for p in tool.prerequisites):
                continue
            settled.add(tool.id)
        return settled

    def _elapsed_since(self, start: float | None) -> float:
        return 0.0 if start is None else self._clock() - start

    @staticmethod
    def _is_installed(tool: Tool) -> bool:
        try:
            return bool(tool.detect())
        except Exception:
            logger.warning("Detection failed for %s; treating as not installed", tool.id, exc_info=True)
            return False


def _outcome_of(task: asyncio.Task[TaskOutcome]) -> TaskOutcome:
    if task.cancelled():
        return Failure(UNEXPECTED_CANCEL)
    return task.result()


__all__ = ["CANCELLED", "NOT_INSTALLED", "UNEXPECTED_CANCEL", "ParallelScheduler"]
