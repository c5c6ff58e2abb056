"""Build GitHub issue content from Azure DevOps work item data.

The issue body carries the human-facing description. Everything else (link
back to Azure DevOps, comment list, field table, raw JSON) goes into a single
follow-up comment whose layout is fixed:

    source URL, comments block, details table, JSON block

Tools that parse migrated issues rely on that order and on the exact table
headers, so keep both stable.
"""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING
from urllib.parse import quote

from .exceptions import IntegrityError

if TYPE_CHECKING:
    from .models import CommentPage, IdentityRef, SourceRecord

logger: logging.Logger = logging.getLogger(__name__)

ADO_BASE_URL = "https://dev.azure.com"

DETAILS_HEADER = (
    "| Created date | Created by | Changed date | Changed By | Assigned To | State | Type | Area Path | Iteration Path|\n"
)
DETAILS_SEPARATOR = "|---|---|---|---|---|---|---|---|---|\n"
COMMENTS_HEADER = "| Created date | Created by | JSON URL |\n"
COMMENTS_SEPARATOR = "|---|---|---|\n"


def _section(title: str, text: str) -> str:
    return f"## {title}\n\n{text}\n\n"


def _details_block(summary: str, content: str) -> str:
    return f"\n<details><summary>{summary}</summary><p>\n\n{content}\n</p></details>"


def _display_name(identity: IdentityRef | None) -> str:
    return identity.display_name if identity else ""


def render_title(record: SourceRecord) -> str:
    return record.title


def render_label(record: SourceRecord) -> str:
    """The work item type doubles as the issue label (Bug, Task, User Story, ...)."""
    return record.work_item_type


def render_description(record: SourceRecord) -> str:
    """Render the issue body.

    Bugs carry their content in the repro steps and system info fields; every
    other type uses the description, followed by the acceptance criteria when
    present.
    """
    if record.work_item_type == "Bug":
        description = ""
        if record.repro_steps:
            description += _section("Repro Steps", record.repro_steps)
        if record.system_info:
            description += _section("System Info", record.system_info)
        return description

    description = record.description
    if record.acceptance_criteria:
        if description:
            description += "\n\n"
        description += _section("Acceptance Criteria", record.acceptance_criteria)
    else:
        logger.debug(f"{record.work_item_type} {record.id} ({record.title}) has no acceptance criteria")
    return description


def render_source_url(organization: str, project: str, work_item_id: int) -> str:
    """Markdown link to the work item in Azure DevOps."""
    return f"[Azure DevOps Work Item URL]({work_item_url(organization, project, work_item_id)})"


def work_item_url(organization: str, project: str, work_item_id: int) -> str:
    return f"{ADO_BASE_URL}/{quote(organization)}/{quote(project)}/_workitems/edit/{work_item_id}"


def render_details_table(record: SourceRecord) -> str:
    row = (
        f"| {record.created_date} | {_display_name(record.created_by)} "
        f"| {record.changed_date} | {_display_name(record.changed_by)} "
        f"| {_display_name(record.assigned_to)} | {record.state} | {record.work_item_type} "
        f"| {record.area_path} | {record.iteration_path} |"
    )
    return _details_block("Work Item Details", DETAILS_HEADER + DETAILS_SEPARATOR + row)


def render_comments_block(record: SourceRecord, page: CommentPage | None) -> str:
    """Render the work item's comments as a collapsible table.

    Raises:
        IntegrityError: If comments exist but none were fetched, if the number
            of rendered rows differs from the total reported by the API, or if
            that total differs from the work item's comment count
    """
    if record.comment_count <= 0:
        return ""
    if page is None:
        msg = f"Work item {record.id} has {record.comment_count} comments but none were fetched"
        raise IntegrityError(msg)

    rows = [
        f"| {comment.created_date} | {comment.created_by} | [URL]({comment.url}) |\n" for comment in page.comments
    ]
    if len(rows) != page.total_count:
        msg = (
            f"Work item {record.id}: rendered {len(rows)} comments "
            f"but Azure DevOps reported a total of {page.total_count}"
        )
        raise IntegrityError(msg)
    if page.total_count != record.comment_count:
        msg = (
            f"Work item {record.id} has a comment count of {record.comment_count} "
            f"but Azure DevOps returned a total of {page.total_count}"
        )
        raise IntegrityError(msg)

    return _details_block("Work Item Comments", COMMENTS_HEADER + COMMENTS_SEPARATOR + "".join(rows))


def render_json_block(record: SourceRecord) -> str:
    """Raw work item payload, kept for auditability."""
    payload = json.dumps(record.raw, indent=2, ensure_ascii=False)
    return _details_block("Work Item JSON", f"```json\n{payload}\n```\n")


def build_metadata_comment(
    record: SourceRecord,
    page: CommentPage | None,
    *,
    organization: str,
    project: str,
) -> str:
    """Compose the follow-up comment posted on the new issue."""
    comment = render_source_url(organization, project, record.id)
    comment += render_comments_block(record, page)
    comment += "\n" + render_details_table(record)
    comment += render_json_block(record)
    return comment
