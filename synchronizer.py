"""
synchronizer.py – Keep feature-file scenarios and ADO Test Cases in step.

The feature file is the source of truth:
  • a scenario without a link tag gets a new Test Case, and the new id is
    written back into the file as a tag above the scenario;
  • a scenario with a link tag has its Test Case overwritten with the
    current title and steps;
  • a scenario with the opt-out tag is left alone.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path

from config import Settings
from errors import FeatureSyncError
from feature_parser import discover_features, parse_feature_file
from models import Linked, OptedOut, ScenarioRecord, SyncResult, Unlinked
from source_rewriter import apply_link_tag, check_header
from tags import classify, link_tag

logger = logging.getLogger("feature-sync")

GENERATED_MARKER = "Test Generated By Feature-Sync (automation)"

# Per-scenario failures that must not stop the rest of the file.
_SCENARIO_ERRORS = (FeatureSyncError, OSError)


def render_steps(steps: list[str]) -> str:
    """Join step texts, in order, one per line."""
    return "\n".join(steps)


class Synchronizer:
    """Runs create / update passes for feature files against a gateway."""

    def __init__(
        self,
        gateway,
        workers: int | None = None,
        dry_run: bool = False,
    ) -> None:
        self._gateway = gateway
        self._workers = workers or Settings.SYNC_WORKERS
        self._dry_run = dry_run

    # ── Single scenario ─────────────────────────────────────────────────

    def _create(self, path: Path, record: ScenarioRecord) -> str:
        # a header we could not tag would leave an orphan Test Case behind
        check_header(path, record.name)
        new_id = self._gateway.create_test_case(
            title=record.name,
            body=render_steps(record.steps),
            generated_marker=GENERATED_MARKER,
        )
        try:
            apply_link_tag(path, record.name, link_tag(new_id))
        except _SCENARIO_ERRORS:
            logger.error(
                "Test Case #%s exists for '%s' but %s was not tagged; "
                "add %s by hand to avoid a duplicate on the next run.",
                new_id, record.name, path, link_tag(new_id),
            )
            raise
        return new_id

    def _update(self, identifier: str, record: ScenarioRecord) -> None:
        self._gateway.update_test_case(
            identifier,
            title=record.name,
            body=render_steps(record.steps),
        )

    # ── One file ────────────────────────────────────────────────────────

    def sync_records(self, records: list[ScenarioRecord], path: str | Path) -> SyncResult:
        """Run one synchronization pass over the records of *path*."""
        path = Path(path)
        result = SyncResult(path=str(path))

        to_create: list[ScenarioRecord] = []
        to_update: list[tuple[str, ScenarioRecord]] = []

        for record in records:
            kind = classify(record)
            if isinstance(kind, OptedOut):
                logger.debug("Skipping opted-out scenario '%s'", record.name)
                result.skipped.append(record.name)
            elif isinstance(kind, Linked):
                to_update.append((kind.identifier, record))
            elif isinstance(kind, Unlinked):
                to_create.append(record)

        logger.info(
            "%s: %d new  |  %d linked  |  %d opted out",
            path,
            len(to_create),
            len(to_update),
            len(result.skipped),
        )

        if self._dry_run:
            for record in to_create:
                logger.info("[dry run] would create '%s'", record.name)
            for identifier, record in to_update:
                logger.info("[dry run] would update #%s '%s'", identifier, record.name)
            return result

        self._create_all(path, to_create, result)

        for identifier, record in to_update:
            try:
                self._update(identifier, record)
            except _SCENARIO_ERRORS as exc:
                logger.error("Could not update '%s' (#%s): %s", record.name, identifier, exc)
                result.failures.append((record.name, str(exc)))
                continue
            result.updated.append(identifier)

        return result

    def _create_all(
        self, path: Path, records: list[ScenarioRecord], result: SyncResult
    ) -> None:
        """Create Test Cases in list order, on a worker pool if configured."""
        if not records:
            return

        def attempt(record: ScenarioRecord) -> tuple[str | None, str | None]:
            try:
                return self._create(path, record), None
            except _SCENARIO_ERRORS as exc:
                logger.error("Could not create '%s': %s", record.name, exc)
                return None, str(exc)

        if self._workers > 1 and len(records) > 1:
            with ThreadPoolExecutor(max_workers=self._workers) as executor:
                outcomes = list(executor.map(attempt, records))
        else:
            outcomes = [attempt(record) for record in records]

        for record, (new_id, error) in zip(records, outcomes):
            if error is not None:
                result.failures.append((record.name, error))
            else:
                result.created.append((record.name, new_id))

    def sync_file(self, path: str | Path) -> SyncResult:
        """Compile the feature file at *path* and synchronize it."""
        path = Path(path)
        try:
            records = parse_feature_file(path)
        except _SCENARIO_ERRORS as exc:
            logger.error("Skipping %s: %s", path, exc)
            result = SyncResult(path=str(path))
            result.failures.append((str(path), str(exc)))
            return result
        return self.sync_records(records, path)

    # ── Many files ──────────────────────────────────────────────────────

    def sync_path(self, path: str | Path) -> list[SyncResult]:
        """Synchronize a feature file, or every feature file under a directory."""
        features = discover_features(path)
        if not features:
            logger.warning("No feature files found under %s", path)
        return [self.sync_file(feature) for feature in features]
