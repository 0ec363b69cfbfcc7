"""
ado_client.py – All Azure DevOps REST / SDK interactions.

Uses the official `azure-devops` Python SDK for work-item lookups and
the connection check, and raw REST (via `requests`) for Test Case writes
and the Test-Plan / Test-Run endpoints that the SDK does not fully expose.

Every failure leaves this module as a GatewayError subclass.
"""

from __future__ import annotations

import base64
import logging
import re
import xml.etree.ElementTree as ET
from pathlib import Path
from typing import Any

import requests
from azure.devops.connection import Connection
from azure.devops.exceptions import (
    AzureDevOpsAuthenticationError,
    AzureDevOpsServiceError,
)
from msrest.authentication import BasicAuthentication
from msrest.exceptions import ClientRequestError

from config import Settings
from errors import AuthError, RemoteRejectedError, TransportError
from models import ExecutionStatus

logger = logging.getLogger("feature-sync")

# ── XML helper for the TCM Steps field ──────────────────────────────────

def _steps_xml(lines: list[str]) -> str:
    """Build the XML blob that ADO stores in Microsoft.VSTS.TCM.Steps."""
    root = ET.Element("steps", id="0", last=str(len(lines) + 1))
    for idx, line in enumerate(lines, start=2):
        el = ET.SubElement(root, "step", id=str(idx), type="ActionStep")
        action = ET.SubElement(el, "parameterizedString", isformatted="true")
        action.text = line
        ET.SubElement(el, "parameterizedString", isformatted="true")
    return ET.tostring(root, encoding="unicode")


def _body_lines(body: str) -> list[str]:
    return [line for line in body.split("\n") if line.strip()]


# ── Main client ─────────────────────────────────────────────────────────

class ADOClient:
    """Remote test-case gateway backed by Azure DevOps Test Plans."""

    TEST_CASE_TYPE = "Test Case"
    AUTOMATION_TAG = "automated"

    def __init__(
        self,
        session: requests.Session | None = None,
        connection: Connection | None = None,
    ) -> None:
        creds = BasicAuthentication("", Settings.ADO_PAT)
        self._connection = connection or Connection(
            base_url=Settings.ADO_ORG_URL, creds=creds
        )
        self._project = Settings.ADO_PROJECT
        self._plan_id = Settings.ADO_TEST_PLAN_ID
        self._suite_re = re.compile(Settings.ADO_SUITE_REGEX)
        self._timeout = Settings.HTTP_TIMEOUT

        self._session = session or requests.Session()
        self._session.auth = ("", Settings.ADO_PAT)
        self._base = f"{Settings.ADO_ORG_URL.rstrip('/')}/{Settings.ADO_PROJECT}"
        self._api = "api-version=7.1-preview"
        self._json_header = {"Content-Type": "application/json"}
        self._patch_header = {"Content-Type": "application/json-patch+json"}

    # ── Transport ───────────────────────────────────────────────────────

    def _request(self, method: str, url: str, **kwargs: Any) -> Any:
        """Send one REST call and return its decoded JSON (or None)."""
        try:
            resp = self._session.request(
                method, url, timeout=self._timeout, **kwargs
            )
        except (requests.ConnectionError, requests.Timeout) as exc:
            raise TransportError(f"{method} {url} failed: {exc}") from exc

        if resp.status_code in (401, 403):
            raise AuthError(
                f"{method} {url} refused with HTTP {resp.status_code}; "
                "check the personal access token"
            )
        if not resp.ok:
            raise RemoteRejectedError(
                f"{method} {url} returned HTTP {resp.status_code}: "
                f"{resp.text[:300]}",
                status_code=resp.status_code,
            )
        if not resp.content:
            return None
        try:
            return resp.json()
        except ValueError as exc:
            raise RemoteRejectedError(
                f"{method} {url} returned a non-JSON body",
                status_code=resp.status_code,
            ) from exc

    # ── Connection ──────────────────────────────────────────────────────

    def check_connection(self) -> None:
        """Verify the organisation, project and token before any work."""
        try:
            core = self._connection.clients.get_core_client()
            project = core.get_project(self._project)
        except ClientRequestError as exc:
            raise TransportError(f"Cannot reach Azure DevOps: {exc}") from exc
        except (AzureDevOpsAuthenticationError, AzureDevOpsServiceError) as exc:
            raise AuthError(
                f"Could not authenticate to Azure DevOps project "
                f"'{self._project}': {exc}"
            ) from exc
        logger.info("Connected to Azure DevOps project '%s'", project.name)

    # ── Test Case work items ────────────────────────────────────────────

    def create_test_case(
        self, title: str, body: str, generated_marker: str
    ) -> str:
        """Create a Test Case work item; return its id as text."""
        document = [
            {"op": "add", "path": "/fields/System.Title", "value": title},
            {
                "op": "add",
                "path": "/fields/System.Description",
                "value": generated_marker,
            },
            {
                "op": "add",
                "path": "/fields/Microsoft.VSTS.TCM.Steps",
                "value": _steps_xml(_body_lines(body)),
            },
            {
                "op": "add",
                "path": "/fields/System.Tags",
                "value": self.AUTOMATION_TAG,
            },
        ]

        url = f"{self._base}/_apis/wit/workitems/$Test%20Case?{self._api}"
        data = self._request(
            "POST", url, json=document, headers=self._patch_header
        )
        try:
            new_id = str(data["id"])
        except (TypeError, KeyError) as exc:
            raise RemoteRejectedError(
                "Test Case creation returned no id"
            ) from exc
        logger.info("Created Test Case #%s  →  '%s'", new_id, title)
        return new_id

    def update_test_case(self, identifier: str, title: str, body: str) -> None:
        """Overwrite the title and steps of an existing Test Case."""
        document = [
            {"op": "replace", "path": "/fields/System.Title", "value": title},
            {
                "op": "replace",
                "path": "/fields/Microsoft.VSTS.TCM.Steps",
                "value": _steps_xml(_body_lines(body)),
            },
        ]

        url = f"{self._base}/_apis/wit/workitems/{identifier}?{self._api}"
        self._request("PATCH", url, json=document, headers=self._patch_header)
        logger.info("Updated Test Case #%s  →  '%s'", identifier, title)

    def exists(self, identifier: str) -> bool:
        """Return True if *identifier* names a Test Case work item."""
        try:
            work_id = int(identifier)
        except ValueError:
            return False

        try:
            wit = self._connection.clients.get_work_item_tracking_client()
            items = wit.get_work_items(
                ids=[work_id],
                fields=["System.WorkItemType"],
                error_policy="Omit",
            )
        except ClientRequestError as exc:
            raise TransportError(f"Cannot reach Azure DevOps: {exc}") from exc
        except AzureDevOpsAuthenticationError as exc:
            raise AuthError(str(exc)) from exc
        except AzureDevOpsServiceError as exc:
            raise RemoteRejectedError(str(exc)) from exc

        if not items or items[0] is None:
            return False
        return items[0].fields.get("System.WorkItemType") == self.TEST_CASE_TYPE

    # ── Test Plan / Suite / Run ─────────────────────────────────────────

    def _selected_suites(self) -> dict[str, int]:
        """Return {name: id} of every plan suite matching the suite regex."""
        url = f"{self._base}/_apis/testplan/Plans/{self._plan_id}/Suites?{self._api}"
        data = self._request("GET", url) or {}
        try:
            return {
                s["name"]: s["id"]
                for s in data.get("value", []) or []
                if self._suite_re.search(s.get("name", ""))
            }
        except (AttributeError, TypeError, KeyError) as exc:
            raise RemoteRejectedError(
                f"Unexpected suite listing for plan {self._plan_id}: {exc!r}"
            ) from exc

    def _test_point_ids(self, suite_id: int, identifier: str) -> list[int]:
        url = (
            f"{self._base}/_apis/testplan/Plans/{self._plan_id}"
            f"/Suites/{suite_id}/TestPoint?testCaseId={identifier}&{self._api}"
        )
        data = self._request("GET", url) or {}
        try:
            return [p["id"] for p in data.get("value", []) or []]
        except (AttributeError, TypeError, KeyError) as exc:
            raise RemoteRejectedError(
                f"Unexpected test point listing for suite {suite_id}: {exc!r}"
            ) from exc

    def _upload_attachment(self, run_id: int, result_id: int, attachment: str) -> None:
        path = Path(attachment)
        stream = base64.b64encode(path.read_bytes()).decode("ascii")
        url = (
            f"{self._base}/_apis/test/Runs/{run_id}/Results/{result_id}"
            f"/attachments?{self._api}"
        )
        body = {
            "stream": stream,
            "fileName": path.name,
            "comment": "Uploaded by Feature-Sync",
            "attachmentType": "GeneralAttachment",
        }
        self._request("POST", url, json=body, headers=self._json_header)
        logger.debug("Attached %s to run %s result %s", path.name, run_id, result_id)

    def update_status(
        self,
        identifier: str,
        status: ExecutionStatus,
        comment: str = "",
        attachment: str = "",
    ) -> None:
        """Record an execution of *identifier* in every selected suite."""
        if attachment and not Path(attachment).is_file():
            raise FileNotFoundError(f"Attachment not found: {attachment}")

        point_ids: list[int] = []
        for name, suite_id in self._selected_suites().items():
            found = self._test_point_ids(suite_id, identifier)
            logger.debug("Suite '%s': %d test points for #%s", name, len(found), identifier)
            point_ids.extend(found)

        if not point_ids:
            raise RemoteRejectedError(
                f"No test point for Test Case #{identifier} in suites matching "
                f"'{self._suite_re.pattern}' of plan {self._plan_id}"
            )

        run_url = f"{self._base}/_apis/test/runs?{self._api}"
        run = self._request(
            "POST",
            run_url,
            json={
                "name": f"Feature-Sync status update #{identifier}",
                "plan": {"id": str(self._plan_id)},
                "pointIds": point_ids,
                "automated": False,
            },
            headers=self._json_header,
        )
        if not run or "id" not in run:
            raise RemoteRejectedError("Test run creation returned no id")
        run_id = run["id"]

        results_url = f"{self._base}/_apis/test/Runs/{run_id}/results?{self._api}"
        results = self._request("GET", results_url) or {}
        try:
            result_ids = [r["id"] for r in results.get("value", []) or []]
        except (AttributeError, TypeError, KeyError) as exc:
            raise RemoteRejectedError(
                f"Unexpected result listing for run {run_id}: {exc!r}"
            ) from exc
        state = "InProgress" if status is ExecutionStatus.WIP else "Completed"
        self._request(
            "PATCH",
            results_url,
            json=[
                {
                    "id": result_id,
                    "outcome": status.outcome,
                    "state": state,
                    "comment": comment,
                }
                for result_id in result_ids
            ],
            headers=self._json_header,
        )

        if attachment:
            for result_id in result_ids:
                self._upload_attachment(run_id, result_id, attachment)

        if status is not ExecutionStatus.WIP:
            self._request(
                "PATCH",
                f"{self._base}/_apis/test/runs/{run_id}?{self._api}",
                json={"state": "Completed"},
                headers=self._json_header,
            )

        logger.info(
            "Test Case #%s → %s (%d test points, run %s)",
            identifier,
            status.name,
            len(point_ids),
            run_id,
        )
