"""Work item relations and their rendering as GitHub tasklists."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from .exceptions import IntegrityError
from .models import CHILD, PREDECESSOR, RELATED

if TYPE_CHECKING:
    from collections.abc import Callable, Set

    from .models import MigrationMap, SourceRecord

logger: logging.Logger = logging.getLogger(__name__)

# Relation kind -> tasklist title, in the order the tasklists are appended
TASKLIST_SECTIONS: tuple[tuple[str, str], ...] = (
    (CHILD, "Children"),
    (RELATED, "Related"),
    (PREDECESSOR, "Predecessors"),
)


def get_related_ids(record: SourceRecord, kind: str) -> set[int]:
    """Get the distinct ids of work items linked to ``record`` by relations of ``kind``.

    Args:
        record: Source work item with its relations
        kind: Relation name, e.g. "Child"

    Returns:
        Set of target work item ids

    Raises:
        IntegrityError: If any relation lacks its kind or its target url, or if a
            relation of the requested kind does not point at a work item
    """
    related: set[int] = set()
    for edge in record.relations:
        if not edge.kind or not edge.target_url:
            msg = f"Work item {record.id} has a relation missing its kind ({edge.kind}) or url ({edge.target_url})"
            raise IntegrityError(msg)
        if edge.kind != kind:
            continue
        target_id = edge.target_id
        if target_id is None:
            msg = f"Work item {record.id} has a {kind} relation to a non work item url: {edge.target_url}"
            raise IntegrityError(msg)
        related.add(target_id)
    return related


def render_tasklist(
    target_ids: Set[int],
    migration_map: MigrationMap,
    title: str,
    *,
    fallback_url: Callable[[int], str] | None = None,
) -> str:
    """Render a GitHub tasklist block linking to the migrated issues.

    Args:
        target_ids: Source work item ids to list
        migration_map: Source work item id -> created issue
        title: Tasklist heading, e.g. "Children"
        fallback_url: Builds a link for ids that were not migrated in this run

    Returns:
        The tasklist markdown, or an empty string when there is nothing to list
    """
    if not target_ids:
        return ""

    tasklist = f"\n\n```[tasklist]\n### {title}"
    for target_id in sorted(target_ids):
        issue = migration_map.get(target_id)
        if issue is not None:
            url = issue.html_url
        else:
            url = fallback_url(target_id) if fallback_url else ""
            logger.warning(f"Work item {target_id} in '{title}' was not migrated in this run")
        tasklist += f"\n- [ ] {url}"
    tasklist += "\n```"
    return tasklist


def build_relations_section(
    record: SourceRecord,
    migration_map: MigrationMap,
    *,
    fallback_url: Callable[[int], str] | None = None,
) -> str:
    """Children, Related and Predecessors tasklists for ``record``, in that order."""
    return "".join(
        render_tasklist(get_related_ids(record, kind), migration_map, title, fallback_url=fallback_url)
        for kind, title in TASKLIST_SECTIONS
    )
