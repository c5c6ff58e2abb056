"""Protocols defining the contracts for the work item source and the issue target.

The migration separates concerns into three components:

1. WorkItemSource: queries and annotates work items (Azure DevOps)
2. IssueTarget: creates and edits issues (GitHub)
3. Migrator: renders content, owns the migration map, drives both passes

This separation allows testing the Migrator with in-memory implementations
and keeps API quirks at the collaborator boundary.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from .models import CommentPage, DestinationIssue, RecordRef, SourceRecord


class WorkItemSource(Protocol):
    """Protocol for reading and annotating work items in the source system.

    Example implementation:
        - AzureDevOpsSource: WIQL queries and work item REST API via requests
    """

    def query_matching(self, include_closed: bool, area_path: str) -> list[RecordRef]:
        """Return references to work items eligible for migration, ordered by id.

        Work items already carrying the migrated tag are never returned. Closed
        work items are only returned when ``include_closed`` is set.
        """
        ...

    def fetch_record(self, work_item_id: int) -> SourceRecord:
        """Fetch a work item with its relations expanded one level."""
        ...

    def fetch_comments(self, work_item_id: int) -> CommentPage:
        """Fetch all comments of a work item in a single call."""
        ...

    def add_comment(self, work_item_id: int, text: str) -> None:
        """Add a comment to a work item."""
        ...

    def apply_field_patch(self, work_item_id: int, op: str, field_path: str, value: str) -> None:
        """Apply a single JSON patch operation to a work item field."""
        ...


class IssueTarget(Protocol):
    """Protocol for creating and editing issues in the target system.

    Example implementation:
        - GitHubIssueTarget: PyGithub repository wrapper
    """

    def create_issue(self, title: str, body: str, labels: list[str]) -> DestinationIssue:
        """Create an issue and return its identity and echoed body."""
        ...

    def update_issue(self, number: int, body: str) -> None:
        """Replace the body of an issue."""
        ...

    def create_comment(self, number: int, text: str) -> None:
        """Add a comment to an issue."""
        ...

    def close_issue(self, number: int) -> None:
        """Close an issue."""
        ...

    def list_all_issues(self) -> list[DestinationIssue]:
        """List every issue of the repository, open and closed."""
        ...

    def delete_issue(self, number: int) -> None:
        """Permanently delete an issue."""
        ...
