"""
errors.py – Exception hierarchy for Feature-Sync.

Local failures (feature text, CSV rows) and remote failures (Azure DevOps)
live in separate branches so callers can tell a bad input apart from a
rejected request.
"""

from __future__ import annotations


class FeatureSyncError(Exception):
    """Base class for every error raised by Feature-Sync."""


class ConfigurationError(FeatureSyncError):
    """Missing or invalid settings; raised before any sync work starts."""


# ── Feature files ───────────────────────────────────────────────────────

class FeatureParseError(FeatureSyncError):
    """The Gherkin compiler rejected a feature file."""


class ScenarioNotFoundError(FeatureSyncError):
    """No scenario header in the file matches the scenario name."""

    def __init__(self, scenario_name: str, path: str = "") -> None:
        where = f" in {path}" if path else ""
        super().__init__(f"Scenario '{scenario_name}' not found{where}")
        self.scenario_name = scenario_name


class AmbiguousScenarioError(FeatureSyncError):
    """More than one scenario header matches the scenario name."""

    def __init__(self, scenario_name: str, matches: int, path: str = "") -> None:
        where = f" in {path}" if path else ""
        super().__init__(
            f"Scenario '{scenario_name}' matches {matches} headers{where}"
        )
        self.scenario_name = scenario_name
        self.matches = matches


class DuplicateScenarioError(FeatureSyncError):
    """Two distinct scenarios in one feature file share a name."""

    def __init__(self, names: list[str], path: str = "") -> None:
        where = f" in {path}" if path else ""
        super().__init__(
            f"Duplicate scenario names{where}: {', '.join(sorted(names))}"
        )
        self.names = names


# ── CSV status rows ─────────────────────────────────────────────────────

class RowError(FeatureSyncError):
    """A status-report row could not be parsed."""


class MalformedRowError(RowError):
    """The row's content is invalid (quote count, unknown status)."""


class StructuralRowError(RowError, IndexError):
    """The row is missing a field or the delimiter after the quoted comment."""


# ── Remote gateway ──────────────────────────────────────────────────────

class GatewayError(FeatureSyncError):
    """A call to the test-management system failed."""


class TransportError(GatewayError):
    """The request never got a usable answer (network, timeout)."""


class AuthError(TransportError):
    """The server refused our credentials."""


class RemoteRejectedError(GatewayError):
    """The server answered with a non-2xx status or an unusable payload."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code
