"""Data models exchanged between the work item source, the issue target and the Migrator.

Source records are snapshots mapped from Azure DevOps payloads at the
collaborator boundary (see ado_utils.parse_work_item). Everything downstream
works on these typed objects instead of raw field dictionaries.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Final

# Relation kinds, as found in the ``attributes.name`` of an ADO relation
CHILD: Final[str] = "Child"
RELATED: Final[str] = "Related"
PREDECESSOR: Final[str] = "Predecessor"

# Work item states considered closed
CLOSED_STATES: Final[frozenset[str]] = frozenset({"Done", "Closed", "Resolved", "Removed"})

# Sentinel tag excluding work items from later runs
MIGRATED_TAG: Final[str] = "migrated-to-github"
TAGS_FIELD_PATH: Final[str] = "/fields/System.Tags"


@dataclass(frozen=True)
class IdentityRef:
    """A person as referenced by Azure DevOps fields (created by, assigned to, ...)."""

    display_name: str
    unique_name: str = ""


@dataclass(frozen=True)
class RelationEdge:
    """A typed link from one work item to another.

    ``kind`` and ``target_url`` are kept optional here so that malformed
    relations survive the mapping step and are rejected by the resolver.
    """

    kind: str | None
    source_id: int
    target_url: str | None

    @property
    def target_id(self) -> int | None:
        """Work item id taken from the last path segment of the target url."""
        if not self.target_url:
            return None
        tail = self.target_url.rstrip("/").rsplit("/", 1)[-1]
        try:
            return int(tail)
        except ValueError:
            return None


@dataclass(frozen=True)
class SourceRecord:
    """A work item fetched from the source system."""

    id: int
    work_item_type: str
    title: str
    state: str
    area_path: str
    iteration_path: str
    created_date: str
    created_by: IdentityRef
    changed_date: str
    changed_by: IdentityRef
    assigned_to: IdentityRef | None = None
    description: str = ""
    acceptance_criteria: str = ""
    repro_steps: str = ""
    system_info: str = ""
    comment_count: int = 0
    relations: list[RelationEdge] = field(default_factory=list)
    raw: dict[str, Any] = field(default_factory=dict)  # Untouched API payload

    @property
    def is_closed(self) -> bool:
        return self.state in CLOSED_STATES


@dataclass(frozen=True)
class RecordRef:
    """A work item reference returned by a query."""

    id: int
    url: str = ""


@dataclass(frozen=True)
class SourceComment:
    """A comment on a work item."""

    created_date: str
    created_by: str
    url: str
    text: str = ""


@dataclass(frozen=True)
class CommentPage:
    """Comments of a work item together with the total reported by the API."""

    comments: list[SourceComment]
    total_count: int


@dataclass(frozen=True)
class DestinationIssue:
    """An issue created in the target system.

    ``body`` is the body echoed back on creation; relation tasklists are
    appended to it in the second pass.
    """

    number: int
    html_url: str
    body: str = ""


# Source work item id -> created issue
MigrationMap = dict[int, DestinationIssue]
