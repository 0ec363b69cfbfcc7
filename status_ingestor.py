"""
status_ingestor.py – Parse a CSV status report and replay it remotely.

Row format (no header):

    <test case id>,<status>,<comment>,<attachment path>

A comment that contains commas must be wrapped in double quotes:

    1234,PASS,"result, looks good",shot.png

Rows with four or more commas go through a small quote scanner; anything
ambiguous is rejected rather than guessed.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Iterator, TextIO

from errors import GatewayError, MalformedRowError, RowError, StructuralRowError
from models import BatchResult, ExecutionStatus, StatusUpdate

logger = logging.getLogger("feature-sync")

DELIMITER = ","
QUOTE = '"'


# ── Quoted-comment scanner ──────────────────────────────────────────────

class _ScanState(Enum):
    BEFORE_QUOTE = 1
    IN_QUOTE = 2
    AFTER_QUOTE = 3


@dataclass
class QuoteScan:
    """Indices collected while scanning the row after its first two fields."""

    start_quote: int = -1
    end_quote: int = -1
    quote_count: int = 0
    last_delimiter: int = -1


def scan_quoted_remainder(remainder: str) -> QuoteScan:
    """Record quote positions and the last delimiter outside the quotes."""
    scan = QuoteScan()
    state = _ScanState.BEFORE_QUOTE

    for idx, ch in enumerate(remainder):
        if ch == QUOTE:
            scan.quote_count += 1
            if state is _ScanState.BEFORE_QUOTE:
                scan.start_quote = idx
                state = _ScanState.IN_QUOTE
            elif state is _ScanState.IN_QUOTE:
                scan.end_quote = idx
                state = _ScanState.AFTER_QUOTE
        elif ch == DELIMITER and state is not _ScanState.IN_QUOTE:
            scan.last_delimiter = idx

    return scan


def check_quote_count(scan: QuoteScan) -> None:
    if scan.quote_count != 2:
        raise MalformedRowError(
            f"Found {scan.quote_count} double quotes; a comment containing "
            "commas must be wrapped in exactly 2"
        )


def check_attachment_delimiter(scan: QuoteScan) -> None:
    if scan.last_delimiter < scan.end_quote:
        raise StructuralRowError(
            "Missing comma between the quoted comment and the attachment"
        )


# ── Row parsing ─────────────────────────────────────────────────────────

def _unquote(comment: str) -> str:
    if len(comment) >= 2 and comment[0] == QUOTE and comment[-1] == QUOTE \
            and comment.count(QUOTE) == 2:
        return comment[1:-1]
    return comment


def parse_line(raw_line: str) -> StatusUpdate:
    """Turn one CSV row into a StatusUpdate.

    Raises MalformedRowError or StructuralRowError for rows that cannot
    be read unambiguously.
    """
    line = raw_line.rstrip("\r\n")
    fields = line.split(DELIMITER)

    if line.count(DELIMITER) < 4:
        if len(fields) < 4:
            raise StructuralRowError(
                f"Expected 4 comma-separated fields, got {len(fields)}"
            )
        identifier, status, comment, attachment = fields[:4]
        return StatusUpdate(
            identifier=identifier.strip(),
            status=ExecutionStatus.from_text(status),
            comment=_unquote(comment),
            attachment=attachment.strip(),
        )

    # the comment holds at least one comma
    identifier, status = fields[0], fields[1]
    remainder = line[len(identifier) + len(status) + 2 * len(DELIMITER):]

    scan = scan_quoted_remainder(remainder)
    check_quote_count(scan)
    check_attachment_delimiter(scan)

    return StatusUpdate(
        identifier=identifier.strip(),
        status=ExecutionStatus.from_text(status),
        comment=remainder[scan.start_quote + 1:scan.end_quote],
        attachment=remainder[scan.last_delimiter + 1:].strip(),
    )


def iter_rows(stream: TextIO) -> Iterator[tuple[int, str]]:
    """Yield (line number, raw line) for every non-blank line of *stream*."""
    for line_no, raw_line in enumerate(stream, start=1):
        if raw_line.strip():
            yield line_no, raw_line


def read_status_updates(stream: TextIO) -> Iterator[StatusUpdate]:
    """Lazily yield one StatusUpdate per non-blank line of *stream*.

    This is the strict reader: a malformed row ends the iteration with its
    error.  ``replay_status_report`` parses the same rows one by one and
    keeps going instead.
    """
    for _, raw_line in iter_rows(stream):
        yield parse_line(raw_line)


# ── Replay ──────────────────────────────────────────────────────────────

def replay_status_report(path: str | Path, gateway) -> BatchResult:
    """Send every row of the report at *path* to *gateway*.

    A failing row is logged and recorded; the remaining rows still run.
    """
    path = Path(path)
    result = BatchResult(path=str(path))
    logger.info("Starting status update from %s", path)

    with path.open("r", encoding="utf-8", newline="") as fh:
        for line_no, raw_line in iter_rows(fh):
            try:
                update = parse_line(raw_line)
                gateway.update_status(
                    update.identifier,
                    update.status,
                    update.comment,
                    update.attachment,
                )
            except (RowError, GatewayError, OSError) as exc:
                logger.error("Line %d of %s skipped: %s", line_no, path, exc)
                result.failures.append((line_no, str(exc)))
                continue
            result.applied.append(update.identifier)

    logger.info(
        "Status update complete: %d applied, %d failed.",
        len(result.applied),
        len(result.failures),
    )
    if result.errors_encountered:
        logger.warning("Errors found during status update of %s", path)
    return result
