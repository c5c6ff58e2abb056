"""Azure DevOps access: WIQL queries, work items, comments and field patches.

API payloads are mapped to typed models here (parse_work_item,
parse_comments) so that missing fields surface as IntegrityError at the
boundary instead of deep inside rendering.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Final

import requests

from . import utils
from .exceptions import IntegrityError, MigrationError
from .issue_builder import ADO_BASE_URL
from .models import (
    CLOSED_STATES,
    MIGRATED_TAG,
    CommentPage,
    IdentityRef,
    RecordRef,
    RelationEdge,
    SourceComment,
    SourceRecord,
)

if TYPE_CHECKING:
    from collections.abc import Mapping

# Module-wide logger
logger: logging.Logger = logging.getLogger(__name__)

API_VERSION: Final[str] = "7.1"
COMMENTS_API_VERSION: Final[str] = "7.1-preview.4"

REQUIRED_FIELDS: Final[tuple[str, ...]] = (
    "System.WorkItemType",
    "System.Title",
    "System.State",
    "System.AreaPath",
    "System.IterationPath",
    "System.CreatedDate",
    "System.CreatedBy",
    "System.ChangedDate",
    "System.ChangedBy",
)


def get_token(pass_path: str | None = None) -> str | None:
    """Get the Azure DevOps token from a pass path if given.

    Returns None otherwise; the configuration then falls back to ADO_TOKEN.
    """
    if pass_path:
        return utils.get_pass_value(pass_path)
    return None


def _wiql_literal(value: str) -> str:
    return "'" + value.replace("'", "''") + "'"


def build_wiql_query(*, include_closed: bool, area_path: str) -> str:
    """Build the WIQL query selecting work items eligible for migration.

    This filter is what makes repeated runs safe: work items tagged as
    migrated by a previous run are excluded.
    """
    conditions: list[str] = []
    if not include_closed:
        conditions.extend(f"[System.State] <> {_wiql_literal(state)}" for state in sorted(CLOSED_STATES))
    conditions.append(f"[System.AreaPath] UNDER {_wiql_literal(area_path)}")
    conditions.append(f"NOT [System.Tags] CONTAINS {_wiql_literal(MIGRATED_TAG)}")
    return (
        "SELECT [System.Id], [System.Title], [System.Tags] FROM WorkItems "
        f"WHERE {' AND '.join(conditions)} ORDER BY [System.Id]"
    )


def _parse_identity(value: Any) -> IdentityRef | None:  # noqa: ANN401 - identity fields are loosely typed
    if not value:
        return None
    if isinstance(value, str):
        # Older API versions return "Display Name <domain\\user>"
        return IdentityRef(display_name=value)
    return IdentityRef(display_name=value.get("displayName", ""), unique_name=value.get("uniqueName", ""))


def parse_relation(source_id: int, payload: Mapping[str, Any]) -> RelationEdge:
    attributes = payload.get("attributes") or {}
    return RelationEdge(kind=attributes.get("name"), source_id=source_id, target_url=payload.get("url"))


def parse_work_item(payload: Mapping[str, Any]) -> SourceRecord:
    """Map a work item API payload to a SourceRecord.

    Raises:
        IntegrityError: If the id, the fields or a required field is missing
    """
    work_item_id = payload.get("id")
    if work_item_id is None:
        msg = "Azure DevOps work item has no id"
        raise IntegrityError(msg)

    fields = payload.get("fields")
    if not fields:
        msg = f"Work item {work_item_id} fields are undefined"
        raise IntegrityError(msg)

    missing = [name for name in REQUIRED_FIELDS if fields.get(name) in (None, "")]
    if missing:
        msg = f"Work item {work_item_id} is missing required fields: {', '.join(missing)}"
        raise IntegrityError(msg)

    created_by = _parse_identity(fields["System.CreatedBy"])
    changed_by = _parse_identity(fields["System.ChangedBy"])
    assert created_by is not None and changed_by is not None  # checked above

    return SourceRecord(
        id=int(work_item_id),
        work_item_type=fields["System.WorkItemType"],
        title=fields["System.Title"],
        state=fields["System.State"],
        area_path=fields["System.AreaPath"],
        iteration_path=fields["System.IterationPath"],
        created_date=fields["System.CreatedDate"],
        created_by=created_by,
        changed_date=fields["System.ChangedDate"],
        changed_by=changed_by,
        assigned_to=_parse_identity(fields.get("System.AssignedTo")),
        description=fields.get("System.Description") or "",
        acceptance_criteria=fields.get("Microsoft.VSTS.Common.AcceptanceCriteria") or "",
        repro_steps=fields.get("Microsoft.VSTS.TCM.ReproSteps") or "",
        system_info=fields.get("Microsoft.VSTS.TCM.SystemInfo") or "",
        comment_count=int(fields.get("System.CommentCount") or 0),
        relations=[parse_relation(int(work_item_id), rel) for rel in payload.get("relations") or []],
        raw=dict(payload),
    )


def parse_comments(work_item_id: int, payload: Mapping[str, Any]) -> CommentPage:
    """Map a comments API payload to a CommentPage.

    Raises:
        IntegrityError: If the comment list or the total count is missing
    """
    comments = payload.get("comments")
    if comments is None:
        msg = f"Work item {work_item_id} comments are undefined"
        raise IntegrityError(msg)
    total_count = payload.get("totalCount")
    if total_count is None:
        msg = f"Work item {work_item_id} comment total count is undefined"
        raise IntegrityError(msg)

    return CommentPage(
        comments=[
            SourceComment(
                created_date=comment.get("createdDate", ""),
                created_by=(comment.get("createdBy") or {}).get("displayName", ""),
                url=comment.get("url", ""),
                text=comment.get("text", ""),
            )
            for comment in comments
        ],
        total_count=int(total_count),
    )


class AzureDevOpsSource:
    """Work item source backed by the Azure DevOps REST API."""

    def __init__(self, organization: str, project: str, token: str, *, session: requests.Session | None = None) -> None:
        self.organization: str = organization
        self.project: str = project
        self.session: requests.Session = session or requests.Session()
        # Personal access tokens use basic auth with an empty user name
        self.session.auth = ("", token)
        self.session.headers.update({"Accept": "application/json", "User-Agent": "ado-github-migrator"})

    @property
    def org_url(self) -> str:
        return f"{ADO_BASE_URL}/{self.organization}"

    @property
    def project_url(self) -> str:
        return f"{self.org_url}/{self.project}"

    def _request(
        self,
        method: str,
        url: str,
        *,
        api_version: str = API_VERSION,
        params: dict[str, str] | None = None,
        json: Any = None,  # noqa: ANN401
        headers: dict[str, str] | None = None,
    ) -> dict[str, Any]:
        try:
            response = self.session.request(
                method,
                url,
                params={"api-version": api_version, **(params or {})},
                json=json,
                headers=headers,
                timeout=60,
            )
            response.raise_for_status()
        except requests.RequestException as e:
            msg = f"Azure DevOps request {method} {url} failed: {e}"
            raise MigrationError(msg) from e
        return response.json() if response.content else {}

    def query_matching(self, include_closed: bool, area_path: str) -> list[RecordRef]:
        query = build_wiql_query(include_closed=include_closed, area_path=area_path)
        logger.debug(f"WIQL: {query}")
        data = self._request("POST", f"{self.project_url}/_apis/wit/wiql", json={"query": query})

        work_items = data.get("workItems")
        if work_items is None:
            msg = "Could not get Azure DevOps work items from the WIQL query"
            raise IntegrityError(msg)

        refs: list[RecordRef] = []
        for item in work_items:
            if item.get("id") is None:
                msg = "Azure DevOps work item reference has no id"
                raise IntegrityError(msg)
            refs.append(RecordRef(id=int(item["id"]), url=item.get("url", "")))
        logger.info(f"Found {len(refs)} work items to migrate")
        return refs

    def fetch_record(self, work_item_id: int) -> SourceRecord:
        data = self._request(
            "GET", f"{self.org_url}/_apis/wit/workitems/{work_item_id}", params={"$expand": "relations"}
        )
        logger.debug(f"Work item {work_item_id}: {data}")
        return parse_work_item(data)

    def fetch_comments(self, work_item_id: int) -> CommentPage:
        data = self._request(
            "GET",
            f"{self.project_url}/_apis/wit/workItems/{work_item_id}/comments",
            api_version=COMMENTS_API_VERSION,
        )
        logger.debug(f"Comments of work item {work_item_id}: {data}")
        return parse_comments(work_item_id, data)

    def add_comment(self, work_item_id: int, text: str) -> None:
        _ = self._request(
            "POST",
            f"{self.project_url}/_apis/wit/workItems/{work_item_id}/comments",
            api_version=COMMENTS_API_VERSION,
            json={"text": text},
        )

    def apply_field_patch(self, work_item_id: int, op: str, field_path: str, value: str) -> None:
        _ = self._request(
            "PATCH",
            f"{self.org_url}/_apis/wit/workitems/{work_item_id}",
            json=[{"op": op, "path": field_path, "value": value}],
            headers={"Content-Type": "application/json-patch+json"},
        )

