"""Scripted executor for scheduler tests.

Provides a deterministic TaskExecutor: each tool gets a scripted outcome,
an optional delay and optional progress reports, and every call is
recorded so tests can assert on ordering and concurrency.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from dataclasses import dataclass, field

from devtool.engine.executor import TaskContext
from devtool.engine.models import NoChange, TaskOutcome, Tool


@dataclass
class Script:
    outcome: TaskOutcome = field(default_factory=NoChange)
    delay: float = 0.0
    raises: BaseException | None = None
    reports: list[int] = field(default_factory=list)
    block: bool = False


class FakeExecutor:
    """Records calls and returns scripted outcomes.

    Usage:
        executor = FakeExecutor({"a": Script(outcome=Failure("boom"))})
        summary = await ParallelScheduler(executor).run(tools)
        assert executor.started == ["a", ...]
    """

    def __init__(
        self,
        scripts: dict[str, Script] | None = None,
        *,
        on_start: Callable[[str], None] | None = None,
    ) -> None:
        self.scripts = scripts or {}
        self.on_start = on_start
        self.started: list[str] = []
        self.finished: list[str] = []
        self.cancelled: list[str] = []
        self.contexts: dict[str, TaskContext] = {}
        self.active = 0
        self.max_active = 0
        self.release = asyncio.Event()

    async def execute(self, tool: Tool, context: TaskContext) -> TaskOutcome:
        script = self.scripts.get(tool.id, Script())
        self.started.append(tool.id)
        self.contexts[tool.id] = context
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        if self.on_start is not None:
            self.on_start(tool.id)
        try:
            for percent in script.reports:
                context.progress.report(percent)
                await asyncio.sleep(0)
            if script.block:
                await self.release.wait()
            elif script.delay:
                await asyncio.sleep(script.delay)
            else:
                await asyncio.sleep(0)
            if script.raises is not None:
                raise script.raises
            self.finished.append(tool.id)
            return script.outcome
        except asyncio.CancelledError:
            self.cancelled.append(tool.id)
            raise
        finally:
            self.active -= 1


def make_tool(
    tool_id: str,
    prerequisites: list[str] | None = None,
    *,
    installed: bool = True,
) -> Tool:
    return Tool(
        id=tool_id,
        label=tool_id.upper(),
        prerequisites=prerequisites or [],
        detect=lambda: installed,
    )
