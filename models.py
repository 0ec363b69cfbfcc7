"""
models.py – Plain data-classes shared across every module.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from errors import MalformedRowError


@dataclass
class ScenarioRecord:
    """One compiled scenario from a feature file."""

    name: str
    steps: list[str] = field(default_factory=list)
    tags: list[str] = field(default_factory=list)


# ── Scenario classification ─────────────────────────────────────────────

@dataclass(frozen=True)
class Linked:
    """Scenario already carries a Link Tag for *identifier*."""

    identifier: str


@dataclass(frozen=True)
class Unlinked:
    """Scenario has no Link Tag and needs a remote test case."""


@dataclass(frozen=True)
class OptedOut:
    """Scenario carries the opt-out tag and is never synced."""


Classification = Linked | Unlinked | OptedOut


# ── Execution status ────────────────────────────────────────────────────

class ExecutionStatus(Enum):
    """Execution outcome, valued by its Azure DevOps outcome name."""

    WIP = "InProgress"
    PASS = "Passed"
    FAIL = "Failed"
    BLOCKED = "Blocked"

    @classmethod
    def from_text(cls, text: str) -> "ExecutionStatus":
        """Parse a status name (any case) or a legacy numeric execution code."""
        key = text.strip()
        if key in _LEGACY_CODES:
            return _LEGACY_CODES[key]
        try:
            return cls[key.upper()]
        except KeyError:
            raise MalformedRowError(f"Unknown execution status '{text}'") from None

    @property
    def outcome(self) -> str:
        return self.value


_LEGACY_CODES = {
    "1": ExecutionStatus.PASS,
    "2": ExecutionStatus.FAIL,
    "3": ExecutionStatus.WIP,
    "4": ExecutionStatus.BLOCKED,
}


@dataclass
class StatusUpdate:
    """One parsed row of a status report."""

    identifier: str
    status: ExecutionStatus
    comment: str = ""
    attachment: str = ""


# ── Results ─────────────────────────────────────────────────────────────

@dataclass
class SyncResult:
    """Summary of one synchronization pass over a feature file."""

    path: str
    created: list[tuple[str, str]] = field(default_factory=list)
    updated: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    failures: list[tuple[str, str]] = field(default_factory=list)

    @property
    def errors_encountered(self) -> bool:
        return bool(self.failures)


@dataclass
class BatchResult:
    """Summary of one status-report replay."""

    path: str
    applied: list[str] = field(default_factory=list)
    failures: list[tuple[int, str]] = field(default_factory=list)

    @property
    def errors_encountered(self) -> bool:
        return bool(self.failures)
