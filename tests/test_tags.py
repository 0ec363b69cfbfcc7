"""Tests for tags.py."""

import pytest

from models import Linked, OptedOut, ScenarioRecord, Unlinked
from tags import classify, find_link_identifier, is_opted_out, link_tag, parse_link_tag


def test_link_tag_round_trip():
    assert link_tag("TP-99") == "@TestCaseId:TP-99"
    assert parse_link_tag("@TestCaseId:TP-99") == "TP-99"


def test_link_tag_rejects_blank_identifier():
    with pytest.raises(ValueError):
        link_tag("  ")
    with pytest.raises(ValueError):
        link_tag("12 34")


@pytest.mark.parametrize("tag", ["@TestCaseId:", "@smoke", "TestCaseId:5", "@testcaseid:5"])
def test_parse_link_tag_ignores_other_tags(tag):
    assert parse_link_tag(tag) is None


def test_custom_prefix(default_settings):
    default_settings.LINK_TAG_PREFIX = "@TmsLink:"
    assert link_tag("7") == "@TmsLink:7"
    assert parse_link_tag("@TestCaseId:7") is None


def test_first_link_tag_wins(caplog):
    tags = ["@smoke", "@TestCaseId:5", "@TestCaseId:9"]
    assert find_link_identifier(tags) == "5"
    assert "Several link tags" in caplog.text


def test_is_opted_out_is_exact():
    assert is_opted_out(["@NoSync"])
    assert not is_opted_out(["@NoSyncPlease", "@nosync"])


def test_classify_linked():
    record = ScenarioRecord("Login", ["a step"], ["@TestCaseId:TP-5"])
    assert classify(record) == Linked("TP-5")


def test_classify_unlinked():
    assert classify(ScenarioRecord("Login", [], ["@web"])) == Unlinked()


def test_classify_opted_out():
    assert classify(ScenarioRecord("Login", [], ["@NoSync"])) == OptedOut()


def test_opt_out_wins_over_link_tag():
    record = ScenarioRecord("Login", [], ["@TestCaseId:5", "@NoSync"])
    assert classify(record) == OptedOut()
