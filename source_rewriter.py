"""
source_rewriter.py – Insert a Link Tag above a scenario header in place.

The edit is a line splice: find the one header line whose name equals the
scenario name (literal comparison, no pattern matching on the name), and
insert ``indent + tag`` right above it.  Every other line, the header
included, stays byte-identical.
"""

from __future__ import annotations

import logging
import os
import re
import tempfile
import threading
from collections import defaultdict
from pathlib import Path

from errors import AmbiguousScenarioError, ScenarioNotFoundError

logger = logging.getLogger("feature-sync")

# indent, keyword and colon; the name after it is compared literally
_HEADER_RE = re.compile(
    r"^(?P<indent>[ \t]*)"
    r"(?:Scenario Outline|Scenario Template|Scenario|Example):"
)

# One lock per file: read-modify-write cycles on a file never interleave.
_file_locks: defaultdict[str, threading.Lock] = defaultdict(threading.Lock)
_registry_lock = threading.Lock()


def _lock_for(path: Path) -> threading.Lock:
    with _registry_lock:
        return _file_locks[str(path.resolve())]


def _split_ending(line: str) -> tuple[str, str]:
    """Split *line* into its body and its line terminator."""
    if line.endswith("\r\n"):
        return line[:-2], "\r\n"
    if line.endswith("\n") or line.endswith("\r"):
        return line[:-1], line[-1]
    return line, ""


def _header_name(body: str) -> tuple[str, str] | None:
    """Return (indent, name) if *body* is a scenario header line."""
    match = _HEADER_RE.match(body)
    if not match:
        return None
    # the compiler trims the name, so any spaces or tabs may follow the colon
    rest = body[match.end():].strip(" \t")
    return match.group("indent"), rest.rstrip()


def find_header_index(lines: list[str], scenario_name: str, path: str = "") -> int:
    """Return the index of the single header line naming *scenario_name*."""
    hits: list[int] = []
    for idx, line in enumerate(lines):
        header = _header_name(_split_ending(line)[0])
        if header is not None and header[1] == scenario_name:
            hits.append(idx)

    if not hits:
        raise ScenarioNotFoundError(scenario_name, path)
    if len(hits) > 1:
        raise AmbiguousScenarioError(scenario_name, len(hits), path)
    return hits[0]


def insert_link_tag(text: str, scenario_name: str, tag: str, path: str = "") -> str:
    """Return *text* with *tag* on its own line above the scenario header."""
    lines = text.splitlines(keepends=True)
    idx = find_header_index(lines, scenario_name, path)

    body, ending = _split_ending(lines[idx])
    indent = _header_name(body)[0]
    # a header on the last, unterminated line keeps having no terminator
    newline = ending or "\n"
    lines.insert(idx, f"{indent}{tag}{newline}")
    return "".join(lines)


def _write_atomic(path: Path, text: str) -> None:
    """Write *text* to a sibling temp file, then rename it over *path*."""
    fd, tmp = tempfile.mkstemp(
        prefix=f".{path.name}.", suffix=".tmp", dir=path.parent
    )
    try:
        with os.fdopen(fd, "w", encoding="utf-8", newline="") as fh:
            fh.write(text)
        if path.exists():
            os.chmod(tmp, path.stat().st_mode & 0o7777)
        os.replace(tmp, path)
    except BaseException:
        Path(tmp).unlink(missing_ok=True)
        raise


def apply_link_tag(path: str | Path, scenario_name: str, tag: str) -> None:
    """Insert *tag* above *scenario_name* in the feature file at *path*."""
    path = Path(path)
    with _lock_for(path):
        with path.open("r", encoding="utf-8", newline="") as fh:
            text = fh.read()
        updated = insert_link_tag(text, scenario_name, tag, str(path))
        _write_atomic(path, updated)
    logger.info("Tagged scenario '%s' with %s in %s", scenario_name, tag, path)


def check_header(path: str | Path, scenario_name: str) -> None:
    """Raise unless exactly one header in *path* names *scenario_name*."""
    path = Path(path)
    with _lock_for(path):
        with path.open("r", encoding="utf-8", newline="") as fh:
            lines = fh.read().splitlines(keepends=True)
    find_header_index(lines, scenario_name, str(path))
