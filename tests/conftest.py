"""
Pytest configuration and fixtures.

Provides in-memory implementations of the WorkItemSource and IssueTarget
protocols, a work item payload factory, and fails integration tests that
emit warnings from the code under test.
"""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any

from typing_extensions import override

import pytest

from ado_to_github_migrator.ado_utils import parse_comments, parse_work_item
from ado_to_github_migrator.config import MigrationConfig
from ado_to_github_migrator.models import CLOSED_STATES, MIGRATED_TAG, DestinationIssue, RecordRef

if TYPE_CHECKING:
    from collections.abc import Callable, Generator

    from ado_to_github_migrator.models import CommentPage, SourceRecord

WORK_ITEM_API = "https://dev.azure.com/test-org/_apis/wit/workItems"


def make_work_item_payload(
    work_item_id: int,
    *,
    work_item_type: str = "Task",
    title: str | None = None,
    state: str = "Active",
    area_path: str = "Project\\Team",
    description: str | None = None,
    comment_count: int = 0,
    relations: list[tuple[str, int]] | None = None,
    **extra_fields: Any,
) -> dict[str, Any]:
    """Build a work item payload shaped like the Azure DevOps REST API response."""
    fields: dict[str, Any] = {
        "System.AreaPath": area_path,
        "System.IterationPath": "Project\\Sprint 1",
        "System.WorkItemType": work_item_type,
        "System.State": state,
        "System.CreatedDate": "2024-01-15T10:30:45.123Z",
        "System.CreatedBy": {"displayName": "Jane Doe", "uniqueName": "jane@example.com"},
        "System.ChangedDate": "2024-02-01T08:00:00Z",
        "System.ChangedBy": {"displayName": "John Smith", "uniqueName": "john@example.com"},
        "System.CommentCount": comment_count,
        "System.Title": title if title is not None else f"Work item {work_item_id}",
    }
    if description is not None:
        fields["System.Description"] = description
    fields.update(extra_fields)

    payload: dict[str, Any] = {
        "id": work_item_id,
        "rev": 3,
        "fields": fields,
        "url": f"{WORK_ITEM_API}/{work_item_id}",
    }
    if relations:
        payload["relations"] = [
            {"rel": f"link-{kind}", "url": f"{WORK_ITEM_API}/{target}", "attributes": {"name": kind}}
            for kind, target in relations
        ]
    return payload


def make_comments_payload(count: int, *, total_count: int | None = None) -> dict[str, Any]:
    return {
        "totalCount": count if total_count is None else total_count,
        "count": count,
        "comments": [
            {
                "id": index,
                "text": f"Comment {index}",
                "createdDate": f"2024-01-1{index}T09:00:00Z",
                "createdBy": {"displayName": f"Commenter {index}"},
                "url": f"{WORK_ITEM_API}/1/comments/{index}",
            }
            for index in range(1, count + 1)
        ],
    }


class FakeWorkItemSource:
    """In-memory work item source applying the same eligibility filter as the WIQL query."""

    def __init__(self, payloads: list[dict[str, Any]], comments: dict[int, dict[str, Any]] | None = None) -> None:
        self.payloads: dict[int, dict[str, Any]] = {payload["id"]: payload for payload in payloads}
        self.comments: dict[int, dict[str, Any]] = comments or {}
        self.added_comments: list[tuple[int, str]] = []
        self.patches: list[tuple[int, str, str, str]] = []
        self.fetched_comments: list[int] = []

    def _tags(self, work_item_id: int) -> list[str]:
        raw = self.payloads[work_item_id]["fields"].get("System.Tags", "")
        return [tag.strip() for tag in raw.split(";") if tag.strip()]

    def query_matching(self, include_closed: bool, area_path: str) -> list[RecordRef]:
        refs: list[RecordRef] = []
        for work_item_id in sorted(self.payloads):
            fields = self.payloads[work_item_id]["fields"]
            if not fields["System.AreaPath"].startswith(area_path):
                continue
            if MIGRATED_TAG in self._tags(work_item_id):
                continue
            if not include_closed and fields["System.State"] in CLOSED_STATES:
                continue
            refs.append(RecordRef(id=work_item_id))
        return refs

    def fetch_record(self, work_item_id: int) -> SourceRecord:
        return parse_work_item(self.payloads[work_item_id])

    def fetch_comments(self, work_item_id: int) -> CommentPage:
        self.fetched_comments.append(work_item_id)
        return parse_comments(work_item_id, self.comments[work_item_id])

    def add_comment(self, work_item_id: int, text: str) -> None:
        self.added_comments.append((work_item_id, text))

    def apply_field_patch(self, work_item_id: int, op: str, field_path: str, value: str) -> None:
        self.patches.append((work_item_id, op, field_path, value))
        if field_path == "/fields/System.Tags" and op == "add":
            tags = [*self._tags(work_item_id), value]
            self.payloads[work_item_id]["fields"]["System.Tags"] = "; ".join(tags)


class FakeIssueTarget:
    """In-memory issue target numbering issues from 1 like GitHub."""

    def __init__(self, repo_url: str = "https://github.com/test-owner/test-repo") -> None:
        self.repo_url: str = repo_url
        self.issues: dict[int, dict[str, Any]] = {}
        self.updates: list[tuple[int, str]] = []
        self.deleted: list[int] = []
        self._lock: threading.Lock = threading.Lock()

    def create_issue(self, title: str, body: str, labels: list[str]) -> DestinationIssue:
        with self._lock:
            number = len(self.issues) + len(self.deleted) + 1
            self.issues[number] = {
                "title": title,
                "body": body,
                "labels": labels,
                "comments": [],
                "state": "open",
            }
        return DestinationIssue(number=number, html_url=f"{self.repo_url}/issues/{number}", body=body)

    def update_issue(self, number: int, body: str) -> None:
        with self._lock:
            self.issues[number]["body"] = body
            self.updates.append((number, body))

    def create_comment(self, number: int, text: str) -> None:
        self.issues[number]["comments"].append(text)

    def close_issue(self, number: int) -> None:
        self.issues[number]["state"] = "closed"

    def list_all_issues(self) -> list[DestinationIssue]:
        return [
            DestinationIssue(number=number, html_url=f"{self.repo_url}/issues/{number}", body=issue["body"])
            for number, issue in self.issues.items()
        ]

    def delete_issue(self, number: int) -> None:
        del self.issues[number]
        self.deleted.append(number)


@pytest.fixture
def work_item_payload() -> Callable[..., dict[str, Any]]:
    return make_work_item_payload


@pytest.fixture
def comments_payload() -> Callable[..., dict[str, Any]]:
    return make_comments_payload


@pytest.fixture
def migration_config() -> MigrationConfig:
    return MigrationConfig(
        ado_organization="test-org",
        ado_project="Test Project",
        ado_area_path="Project\\Team",
        ado_token="ado-token",  # noqa: S106
        github_owner="test-owner",
        github_repository="test-repo",
        github_token="gh-token",  # noqa: S106
        relation_workers=2,
    )


@pytest.fixture
def fake_target() -> FakeIssueTarget:
    return FakeIssueTarget()


@pytest.fixture
def make_source() -> Callable[..., FakeWorkItemSource]:
    return FakeWorkItemSource


# Warnings logged by the migrator during each integration test, keyed by test node id
_integration_test_warnings: dict[str, list[logging.LogRecord]] = {}

# Only the migrator's own loggers are watched; library warnings (urllib3, PyGithub) do not fail a run
WATCHED_LOGGER = "ado_to_github_migrator"


class IntegrationTestWarningHandler(logging.Handler):
    """Collects WARNING and above records for one test."""

    test_nodeid: str

    def __init__(self, test_nodeid: str) -> None:
        super().__init__(level=logging.WARNING)
        self.test_nodeid = test_nodeid

    @override
    def emit(self, record: logging.LogRecord) -> None:
        _integration_test_warnings.setdefault(self.test_nodeid, []).append(record)


@contextmanager
def collect_migrator_warnings(test_nodeid: str) -> Generator[list[logging.LogRecord]]:
    """Attach a warning collector to the migrator's package logger while the block runs."""
    records = _integration_test_warnings.setdefault(test_nodeid, [])
    handler = IntegrationTestWarningHandler(test_nodeid)
    package_logger = logging.getLogger(WATCHED_LOGGER)
    package_logger.addHandler(handler)
    try:
        yield records
    finally:
        package_logger.removeHandler(handler)


@pytest.fixture(autouse=True)
def fail_on_log_warnings_for_integration_tests(
    request: pytest.FixtureRequest,
) -> Generator[None]:
    """Fail integration tests if the migrator logs any WARNING or above.

    Warnings are acceptable for users, but an integration run against a
    prepared project is expected to be clean.
    """
    if request.node.get_closest_marker("integration") is None:
        yield
        return

    _integration_test_warnings[request.node.nodeid] = []
    with collect_migrator_warnings(request.node.nodeid):
        yield


@pytest.hookimpl(tryfirst=True, hookwrapper=True)
def pytest_runtest_makereport(
    item: pytest.Item, call: pytest.CallInfo[None]
) -> Generator[None]:  # type: ignore[misc]
    """Mark a passed integration test as failed when warnings were captured."""
    outcome = yield
    report = outcome.get_result()

    if call.when == "call" and report.outcome == "passed":
        test_nodeid = item.nodeid
        warning_records = _integration_test_warnings.get(test_nodeid, [])

        if warning_records:
            warning_messages = [
                f"{record.levelname}: {record.getMessage()} (in {record.name}:{record.lineno})"
                for record in warning_records
            ]
            report.outcome = "failed"
            report.longrepr = f"Integration test failed: {len(warning_records)} warning(s) detected:\n" + "\n".join(
                f"  - {msg}" for msg in warning_messages
            )

        _integration_test_warnings.pop(test_nodeid, None)
