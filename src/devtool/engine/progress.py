"""Single-owner live progress aggregation.

Producers (the scheduler and executors) only post ProgressEvents. One
consumer task applies them in arrival order to the per-tool state, and a
separate render loop redraws at a bounded rate whenever that state changed.
Nothing else touches the renderer, so terminal output is never interleaved.

Key classes:
- ProgressEvent / EventKind: State transition messages
- ProgressAggregator: Owns the state, the intake queue and the renderer
- ProgressReporter: Per-tool handle executors use to report percent
- ProgressRenderer / NullRenderer: Rendering protocol and headless renderer
"""

from __future__ import annotations

import asyncio
import contextlib
import dataclasses
import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from enum import Enum
from types import TracebackType
from typing import Protocol

from devtool.core.console import get_logger
from devtool.engine.models import Phase, Tool, ToolProgress

logger = get_logger(__name__)

RUNNING_PERCENT_CAP = 99


class EventKind(str, Enum):
    STARTED = "started"
    PERCENT = "percent"
    COMPLETED = "completed"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass(frozen=True)
class ProgressEvent:
    """A state transition for one tool.

    Attributes:
        tool_id: Tool the event belongs to
        kind: Transition type
        percent: Requested percent for PERCENT events
        message: Optional status text (skip reason, error summary)
    """

    tool_id: str
    kind: EventKind
    percent: int | None = None
    message: str = ""


Subscriber = Callable[[ProgressEvent, ToolProgress], None]


class ProgressRenderer(Protocol):
    def start(self, states: Sequence[ToolProgress]) -> None: ...

    def render(self, states: Sequence[ToolProgress], now: float) -> None: ...

    def stop(self) -> None: ...


class NullRenderer:
    """Renderer for headless runs; draws nothing."""

    def start(self, states: Sequence[ToolProgress]) -> None:
        return None

    def render(self, states: Sequence[ToolProgress], now: float) -> None:
        return None

    def stop(self) -> None:
        return None


_TERMINAL_KINDS: dict[EventKind, Phase] = {
    EventKind.COMPLETED: Phase.COMPLETED,
    EventKind.FAILED: Phase.FAILED,
    EventKind.SKIPPED: Phase.SKIPPED,
}


class ProgressAggregator:
    """Authoritative owner of live progress for one run.

    Events posted before :meth:`start` are applied immediately; afterwards
    they go through the intake queue and are applied by the consumer task.
    :meth:`close` drains the queue, renders the final state synchronously and
    stops the renderer.
    """

    def __init__(
        self,
        tools: Sequence[Tool],
        renderer: ProgressRenderer | None = None,
        *,
        refresh_per_second: float = 4.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if refresh_per_second <= 0:
            raise ValueError("refresh_per_second must be positive")
        self._states: dict[str, ToolProgress] = {
            tool.id: ToolProgress(tool_id=tool.id, label=tool.label) for tool in tools
        }
        self._renderer: ProgressRenderer = renderer or NullRenderer()
        self._interval = 1.0 / refresh_per_second
        self._clock = clock
        self._subscribers: list[Subscriber] = []
        self._loop: asyncio.AbstractEventLoop | None = None
        self._queue: asyncio.Queue[ProgressEvent | None] | None = None
        self._consumer: asyncio.Task[None] | None = None
        self._render_task: asyncio.Task[None] | None = None
        self._dirty = False
        self._closed = False

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        if self._loop is not None:
            return
        self._loop = asyncio.get_running_loop()
        self._queue = asyncio.Queue()
        self._renderer.start(self.states())
        self._consumer = asyncio.create_task(self._consume(), name="progress-consumer")
        self._render_task = asyncio.create_task(self._render_loop(), name="progress-render")

    async def close(self) -> None:
        """Drain pending events, draw the final state and stop the renderer."""
        if self._closed:
            return
        self._closed = True
        if self._loop is not None and self._queue is not None:
            # FIFO with earlier posts, so everything already posted is applied first
            self._loop.call_soon_threadsafe(self._queue.put_nowait, None)
            if self._consumer is not None:
                await self._consumer
            if self._render_task is not None:
                self._render_task.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await self._render_task
        self._renderer.render(self.states(), self._clock())
        self._renderer.stop()

    async def __aenter__(self) -> ProgressAggregator:
        await self.start()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.close()

    # ------------------------------------------------------------------
    # Producers
    # ------------------------------------------------------------------

    def post(self, event: ProgressEvent) -> None:
        """Submit an event. Safe to call from any thread."""
        if self._closed:
            logger.debug("Progress closed; dropping %s for %s", event.kind.value, event.tool_id)
            return
        if self._loop is None or self._queue is None:
            self._apply(event)
            return
        self._loop.call_soon_threadsafe(self._queue.put_nowait, event)

    def reporter(self, tool_id: str) -> ProgressReporter:
        return ProgressReporter(self, tool_id)

    def subscribe(self, callback: Subscriber) -> None:
        """Receive every applied event with the tool's post-event state."""
        self._subscribers.append(callback)

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    def states(self) -> list[ToolProgress]:
        return [dataclasses.replace(state) for state in self._states.values()]

    def state(self, tool_id: str) -> ToolProgress:
        return dataclasses.replace(self._states[tool_id])

    async def _consume(self) -> None:
        assert self._queue is not None
        while True:
            event = await self._queue.get()
            if event is None:
                return
            self._apply(event)

    async def _render_loop(self) -> None:
        while True:
            await asyncio.sleep(self._interval)
            if self._dirty:
                self._dirty = False
                self._renderer.render(self.states(), self._clock())

    def _apply(self, event: ProgressEvent) -> None:
        state = self._states.get(event.tool_id)
        if state is None:
            logger.debug("Ignoring progress event for unknown tool %s", event.tool_id)
            return

        if not self._transition(state, event):
            logger.debug(
                "Ignoring out-of-order %s event for %s in phase %s",
                event.kind.value,
                event.tool_id,
                state.phase.value,
            )
            return

        self._dirty = True
        snapshot = dataclasses.replace(state)
        for callback in list(self._subscribers):
            try:
                callback(event, snapshot)
            except Exception:
                logger.exception("Progress subscriber failed for %s", event.tool_id)

    def _transition(self, state: ToolProgress, event: ProgressEvent) -> bool:
        now = self._clock()
        if event.kind is EventKind.STARTED:
            if state.phase is not Phase.PENDING:
                return False
            state.phase = Phase.RUNNING
            state.started_at = now
            return True

        if event.kind is EventKind.PERCENT:
            if state.phase is not Phase.RUNNING:
                return False
            requested = int(event.percent or 0)
            clamped = min(max(requested, 0), RUNNING_PERCENT_CAP)
            if clamped <= state.percent:
                return False
            state.percent = clamped
            return True

        target = _TERMINAL_KINDS[event.kind]
        if state.phase.is_terminal:
            return False
        if state.phase is Phase.PENDING and target is not Phase.SKIPPED:
            return False
        state.phase = target
        state.percent = 100
        state.finished_at = now
        state.message = event.message
        return True


class ProgressReporter:
    """Handle bound to one tool; executors report percent through it."""

    def __init__(self, aggregator: ProgressAggregator, tool_id: str) -> None:
        self._aggregator = aggregator
        self.tool_id = tool_id

    def report(self, percent: int) -> None:
        self._aggregator.post(ProgressEvent(self.tool_id, EventKind.PERCENT, percent=percent))


__all__ = [
    "EventKind",
    "NullRenderer",
    "ProgressAggregator",
    "ProgressEvent",
    "ProgressRenderer",
    "ProgressReporter",
    "RUNNING_PERCENT_CAP",
    "Subscriber",
]
