"""Data model for update orchestration.

Key classes:
- Tool: An updatable external tool with prerequisites and a detector
- UpgradeDetail: One component version change reported by an updater
- Success / NoChange / Failure: The three possible TaskOutcome values
- TaskResult: Final, write-once classification of one tool in a run
- Phase / ToolProgress: Live progress state of one tool
- Summary: Declaration-ordered results plus counts for a whole run
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


def _always_present() -> bool:
    return True


class Tool(BaseModel):
    """An external tool whose update procedure the scheduler can run.

    Attributes:
        id: Unique tool identifier (e.g., 'homebrew')
        label: Human-readable name shown in progress and summary output
        prerequisites: Tool ids that must reach a terminal result first
        detect: Returns True when the tool is installed on this machine
        description: What the update does, used for dry-run messages
    """

    model_config = ConfigDict(frozen=True, extra="forbid", arbitrary_types_allowed=True)

    id: str = Field(..., description="Unique tool identifier (e.g., 'homebrew')")
    label: str = Field(..., description="Human-readable name")
    prerequisites: list[str] = Field(
        default_factory=list,
        description="Tool ids that must finish before this tool starts",
    )
    detect: Callable[[], bool] = Field(
        default=_always_present,
        description="Returns True when the tool is installed",
    )
    description: str = Field(default="", description="What the update does")

    def describe(self) -> str:
        return self.description or f"{self.label} update"


class UpgradeKind(str, Enum):
    VERSION_UPGRADE = "version_upgrade"
    NEW_INSTALLATION = "new_installation"
    DOWNGRADE = "downgrade"


@dataclass(frozen=True)
class UpgradeDetail:
    """A single component version change.

    Attributes:
        name: Package, toolchain or runtime name
        old_version: Version before the update (empty for new installations)
        new_version: Version after the update
        kind: How the version changed
    """

    name: str
    old_version: str
    new_version: str
    kind: UpgradeKind = UpgradeKind.VERSION_UPGRADE

    @classmethod
    def upgrade(cls, name: str, old_version: str, new_version: str) -> UpgradeDetail:
        return cls(name, old_version, new_version, UpgradeKind.VERSION_UPGRADE)

    @classmethod
    def new_installation(cls, name: str, version: str) -> UpgradeDetail:
        return cls(name, "", version, UpgradeKind.NEW_INSTALLATION)

    @classmethod
    def downgrade(cls, name: str, old_version: str, new_version: str) -> UpgradeDetail:
        return cls(name, old_version, new_version, UpgradeKind.DOWNGRADE)

    @property
    def channel(self) -> str:
        """Toolchain channel inferred from the name, or '' when none applies."""
        for channel in ("stable", "beta", "nightly"):
            if channel in self.name:
                return channel
        return ""

    def display(self) -> str:
        if self.kind is UpgradeKind.NEW_INSTALLATION:
            return f"{self.name}: new installation → {self.new_version}"
        text = f"{self.name}: {self.old_version} → {self.new_version}"
        if self.kind is UpgradeKind.DOWNGRADE:
            text += " (downgrade)"
        return text

    def enhanced_display(self) -> str:
        """Like display(), prefixed with ``[channel]`` for toolchain names."""
        channel = self.channel
        prefix = f"[{channel}] " if channel else ""
        return prefix + self.display()

    def __str__(self) -> str:
        return self.display()


@dataclass(frozen=True)
class Success:
    details: list[UpgradeDetail] = field(default_factory=list)


@dataclass(frozen=True)
class NoChange:
    message: str = "already up to date"


@dataclass(frozen=True)
class Failure:
    error: str


TaskOutcome = Success | NoChange | Failure


class Classification(str, Enum):
    """Final classification of a tool in the summary."""

    UPDATED = "UPDATED"
    ALREADY_LATEST = "ALREADY_LATEST"
    SKIPPED = "SKIPPED"
    FAILED = "FAILED"


@dataclass(frozen=True)
class TaskResult:
    """Terminal result for one tool.

    Attributes:
        tool_id: Identifier of the tool
        label: Display label of the tool
        classification: Final classification
        reason: Skip reason, failure text or no-change message
        elapsed: Wall-clock seconds spent running (0.0 when never dispatched)
        details: Upgrade details reported by the updater
    """

    tool_id: str
    label: str
    classification: Classification
    reason: str = ""
    elapsed: float = 0.0
    details: list[UpgradeDetail] = field(default_factory=list)


class Phase(str, Enum):
    """Lifecycle phase of a tool in the progress view."""

    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    SKIPPED = "skipped"

    @property
    def is_terminal(self) -> bool:
        return self in (Phase.COMPLETED, Phase.FAILED, Phase.SKIPPED)


@dataclass
class ToolProgress:
    """Mutable progress state of one tool, owned by the progress aggregator."""

    tool_id: str
    label: str
    percent: int = 0
    phase: Phase = Phase.PENDING
    started_at: float | None = None
    finished_at: float | None = None
    message: str = ""

    def elapsed(self, now: float) -> float:
        if self.started_at is None:
            return 0.0
        end = self.finished_at if self.finished_at is not None else now
        return max(0.0, end - self.started_at)


@dataclass(frozen=True)
class Summary:
    """Outcome of a whole run.

    Attributes:
        results: One TaskResult per input tool, in declaration order
        counts: Number of results per classification (every key present)
        duration: Wall-clock seconds for the run
        cancelled: True when the run was cancelled before quiescence
    """

    results: list[TaskResult]
    counts: dict[Classification, int]
    duration: float = 0.0
    cancelled: bool = False

    @property
    def has_failures(self) -> bool:
        return self.counts.get(Classification.FAILED, 0) > 0

    def get(self, tool_id: str) -> TaskResult | None:
        for result in self.results:
            if result.tool_id == tool_id:
                return result
        return None


__all__ = [
    "Classification",
    "Failure",
    "NoChange",
    "Phase",
    "Success",
    "Summary",
    "TaskOutcome",
    "TaskResult",
    "Tool",
    "ToolProgress",
    "UpgradeDetail",
    "UpgradeKind",
]
