"""
feature_parser.py – Compile Gherkin feature files into ScenarioRecords.

Wraps the official Cucumber ``gherkin`` parser and pickle compiler.  A
Scenario Outline compiles to one pickle per example row; those pickles
share the outline's AST node and are folded back into a single record
named after the outline, because that is the header found in the text.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

from gherkin.errors import ParserError
from gherkin.parser import Parser
from gherkin.pickles.compiler import Compiler

from errors import DuplicateScenarioError, FeatureParseError
from models import ScenarioRecord

logger = logging.getLogger("feature-sync")

FEATURE_SUFFIX = ".feature"


def _scenario_names(children: list[dict[str, Any]]) -> dict[str, str]:
    """Map every scenario AST node id to its (template) name, rules included."""
    names: dict[str, str] = {}
    for child in children:
        if "scenario" in child:
            scenario = child["scenario"]
            names[scenario["id"]] = scenario["name"]
        elif "rule" in child:
            names.update(_scenario_names(child["rule"].get("children", [])))
    return names


def compile_feature(text: str, uri: str = "<memory>") -> list[ScenarioRecord]:
    """Compile feature *text* into ordered scenario records."""
    try:
        document = Parser().parse(text)
    except ParserError as exc:
        raise FeatureParseError(f"Cannot parse {uri}: {exc}") from exc

    document["uri"] = uri
    feature = document.get("feature")
    if not feature:
        return []

    names = _scenario_names(feature.get("children", []))
    records: dict[str, ScenarioRecord] = {}
    owner: dict[str, str] = {}
    duplicates: set[str] = set()

    for pickle in Compiler().compile(document):
        node_id = pickle["astNodeIds"][0]
        name = names.get(node_id, pickle["name"])

        if name in owner:
            if owner[name] != node_id:
                duplicates.add(name)
            continue

        owner[name] = node_id
        records[name] = ScenarioRecord(
            name=name,
            steps=[step["text"] for step in pickle.get("steps", [])],
            tags=[tag["name"] for tag in pickle.get("tags", [])],
        )

    if duplicates:
        raise DuplicateScenarioError(sorted(duplicates), uri)

    logger.debug("Compiled %d scenarios from %s", len(records), uri)
    return list(records.values())


def parse_feature_file(path: str | Path) -> list[ScenarioRecord]:
    """Read and compile one feature file."""
    path = Path(path)
    text = path.read_text(encoding="utf-8")
    return compile_feature(text, uri=str(path))


def discover_features(path: str | Path) -> list[Path]:
    """Return *path* itself, or every feature file below it, sorted."""
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"No such file or directory: {path}")
    if path.is_file():
        return [path]
    return sorted(p for p in path.rglob(f"*{FEATURE_SUFFIX}") if p.is_file())
