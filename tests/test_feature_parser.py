"""Tests for feature_parser.py."""

import pytest

from errors import DuplicateScenarioError, FeatureParseError
from feature_parser import compile_feature, discover_features, parse_feature_file

from conftest import LOGIN_FEATURE


def test_compiles_scenarios_in_order(login_feature):
    records = parse_feature_file(login_feature)

    assert [r.name for r in records] == [
        "Login succeeds",
        "Login fails",
        "Manual captcha check",
    ]
    assert records[0].steps == [
        "a registered user",
        "they log in with a valid password",
        "the dashboard is shown",
    ]


def test_tags_include_feature_tags_in_order():
    records = compile_feature(LOGIN_FEATURE)

    assert records[0].tags == ["@web"]
    assert records[1].tags == ["@web", "@TestCaseId:101"]
    assert records[2].tags == ["@web", "@NoSync"]


def test_background_steps_come_first():
    text = """\
Feature: Cart
  Background:
    Given an empty cart

  Scenario: Add item
    When I add a book
    Then the cart has 1 item
"""
    (record,) = compile_feature(text)
    assert record.steps == ["an empty cart", "I add a book", "the cart has 1 item"]


def test_outline_folds_into_one_record_named_after_template():
    text = """\
Feature: Roles
  @TestCaseId:7
  Scenario Outline: Login as <role>
    Given a <role> user
    Then they see the <page> page

    Examples:
      | role  | page  |
      | admin | admin |
      | guest | home  |
"""
    (record,) = compile_feature(text)
    assert record.name == "Login as <role>"
    assert record.steps == ["a admin user", "they see the admin page"]
    assert record.tags == ["@TestCaseId:7"]


def test_scenarios_inside_rules_are_found():
    text = """\
Feature: Rules
  Rule: Only members
    Scenario: Member enters
      Given a member
"""
    (record,) = compile_feature(text)
    assert record.name == "Member enters"


def test_duplicate_scenario_names_are_rejected():
    text = """\
Feature: Twice
  Scenario: Same name
    Given one

  Scenario: Same name
    Given two
"""
    with pytest.raises(DuplicateScenarioError) as exc:
        compile_feature(text, uri="twice.feature")
    assert exc.value.names == ["Same name"]
    assert "twice.feature" in str(exc.value)


def test_empty_document_has_no_records():
    assert compile_feature("# only a comment\n") == []


def test_invalid_gherkin_raises_feature_parse_error():
    with pytest.raises(FeatureParseError):
        compile_feature("Feature: Broken\n  Scenario: A\n    Given x\n  Nonsense line\n")


def test_discover_features_recurses_and_sorts(tmp_path):
    (tmp_path / "b").mkdir()
    (tmp_path / "a" / "deep").mkdir(parents=True)
    (tmp_path / "b" / "two.feature").write_text("Feature: Two\n")
    (tmp_path / "a" / "deep" / "one.feature").write_text("Feature: One\n")
    (tmp_path / "a" / "notes.txt").write_text("ignore me\n")

    found = discover_features(tmp_path)

    assert [p.name for p in found] == ["one.feature", "two.feature"]


def test_discover_features_accepts_a_single_file(login_feature):
    assert discover_features(login_feature) == [login_feature]


def test_discover_features_missing_path(tmp_path):
    with pytest.raises(FileNotFoundError):
        discover_features(tmp_path / "nope")
