"""Shared fixtures for Feature-Sync tests."""
from __future__ import annotations

import threading
from pathlib import Path

import pytest

from config import Settings
from errors import RemoteRejectedError

LOGIN_FEATURE = """\
@web
Feature: Login

  Scenario: Login succeeds
    Given a registered user
    When they log in with a valid password
    Then the dashboard is shown

  @TestCaseId:101
  Scenario: Login fails
    Given a registered user
    When they log in with a wrong password
    Then an error is shown

  @NoSync
  Scenario: Manual captcha check
    Given the captcha is enabled
"""


class FakeGateway:
    """In-memory gateway that records every call.

    Names listed in ``fail_titles`` / ids in ``fail_ids`` make the
    corresponding call raise RemoteRejectedError.
    """

    def __init__(self, first_id: int = 1001, fail_titles=(), fail_ids=()):
        self._next_id = first_id
        self._lock = threading.Lock()
        self.fail_titles = set(fail_titles)
        self.fail_ids = set(fail_ids)
        self.created: list[tuple[str, str, str]] = []
        self.updated: list[tuple[str, str, str]] = []
        self.statuses: list[tuple] = []
        self.connection_checked = False

    def check_connection(self) -> None:
        self.connection_checked = True

    def create_test_case(self, title, body, generated_marker):
        if title in self.fail_titles:
            raise RemoteRejectedError(f"rejected '{title}'", status_code=400)
        with self._lock:
            new_id = str(self._next_id)
            self._next_id += 1
            self.created.append((title, body, generated_marker))
        return new_id

    def update_test_case(self, identifier, title, body):
        if identifier in self.fail_ids:
            raise RemoteRejectedError(f"rejected #{identifier}", status_code=400)
        self.updated.append((identifier, title, body))

    def exists(self, identifier):
        return identifier in {u[0] for u in self.updated}

    def update_status(self, identifier, status, comment="", attachment=""):
        if identifier in self.fail_ids:
            raise RemoteRejectedError(f"rejected #{identifier}", status_code=404)
        self.statuses.append((identifier, status, comment, attachment))


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture
def login_feature(tmp_path: Path) -> Path:
    path = tmp_path / "login.feature"
    path.write_text(LOGIN_FEATURE, encoding="utf-8")
    return path


@pytest.fixture(autouse=True)
def default_settings(monkeypatch):
    """Pin every setting so .env files and CLI overrides never leak."""
    monkeypatch.setattr(Settings, "ADO_ORG_URL", "")
    monkeypatch.setattr(Settings, "ADO_PROJECT", "")
    monkeypatch.setattr(Settings, "ADO_PAT", "")
    monkeypatch.setattr(Settings, "ADO_TEST_PLAN_ID", 0)
    monkeypatch.setattr(Settings, "ADO_SUITE_REGEX", ".*")
    monkeypatch.setattr(Settings, "LINK_TAG_PREFIX", "@TestCaseId:")
    monkeypatch.setattr(Settings, "OPT_OUT_TAG", "@NoSync")
    monkeypatch.setattr(Settings, "SYNC_WORKERS", 1)
    monkeypatch.setattr(Settings, "HTTP_TIMEOUT", 30.0)
    return Settings
