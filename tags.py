"""
tags.py – Encode and decode the scenario tags that record a sync link.

A Link Tag is ``prefix + identifier`` (``@TestCaseId:1234``); the opt-out
tag is a fixed string (``@NoSync``).  Both are configurable in Settings.
"""

from __future__ import annotations

import logging

from config import Settings
from models import Classification, Linked, OptedOut, ScenarioRecord, Unlinked

logger = logging.getLogger("feature-sync")


def link_tag(identifier: str, prefix: str | None = None) -> str:
    """Build the Link Tag for a remote test-case *identifier*."""
    prefix = Settings.LINK_TAG_PREFIX if prefix is None else prefix
    identifier = str(identifier).strip()
    if not identifier or any(ch.isspace() for ch in identifier):
        raise ValueError(f"Invalid test case identifier: {identifier!r}")
    return f"{prefix}{identifier}"


def parse_link_tag(tag: str, prefix: str | None = None) -> str | None:
    """Return the identifier inside *tag*, or None if it is not a Link Tag."""
    prefix = Settings.LINK_TAG_PREFIX if prefix is None else prefix
    if not tag.startswith(prefix):
        return None
    identifier = tag[len(prefix):]
    if not identifier or any(ch.isspace() for ch in identifier):
        return None
    return identifier


def find_link_identifier(tags: list[str], prefix: str | None = None) -> str | None:
    """Return the identifier of the first Link Tag in *tags*."""
    found = [i for i in (parse_link_tag(t, prefix) for t in tags) if i is not None]
    if not found:
        return None
    if len(found) > 1:
        logger.warning(
            "Several link tags %s found; using the first (%s).", found, found[0]
        )
    return found[0]


def is_opted_out(tags: list[str], opt_out_tag: str | None = None) -> bool:
    opt_out_tag = Settings.OPT_OUT_TAG if opt_out_tag is None else opt_out_tag
    return opt_out_tag in tags


def classify(record: ScenarioRecord) -> Classification:
    """Decide once what the synchronizer does with *record*.

    The opt-out tag wins over a Link Tag.
    """
    if is_opted_out(record.tags):
        return OptedOut()
    identifier = find_link_identifier(record.tags)
    if identifier is not None:
        return Linked(identifier)
    return Unlinked()
