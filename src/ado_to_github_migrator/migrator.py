"""Migration orchestrator that moves Azure DevOps work items to GitHub issues.

Migration Flow
--------------
Pass 1: Work items
    For each work item returned by the source query (ascending id):
        a. Fetch the work item with its relations
        b. Fetch its comments if it has any
        c. Render title, label, description and the metadata comment
        d. Create the issue, record it in the migration map
        e. Post the metadata comment on the new issue
        f. Optionally tag the work item as migrated and link back to the issue
        g. Optionally close the issue if the work item is closed

    Steps for one work item are strictly sequential: the tagging and closing
    steps need the issue created in step d.

Pass 2: Relations
    Once every work item has an issue, each issue body is extended with
    Children, Related and Predecessors tasklists pointing at the other
    migrated issues. Work items are independent of each other here, so this
    pass runs on a bounded thread pool. The migration map is read-only.

Error Handling
--------------
Any IntegrityError or collaborator failure aborts the run immediately.
Issues created before the failure are left in place; there is no rollback
and no skip-and-continue mode.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from functools import partial
from typing import TYPE_CHECKING

from . import issue_builder
from .exceptions import IntegrityError
from .models import MIGRATED_TAG, TAGS_FIELD_PATH
from .relationships import build_relations_section

if TYPE_CHECKING:
    from collections.abc import Callable

    from .config import MigrationConfig
    from .models import DestinationIssue, MigrationMap, SourceRecord
    from .protocols import IssueTarget, WorkItemSource

logger: logging.Logger = logging.getLogger(__name__)


@dataclass
class MigrationStats:
    """Statistics collected during migration."""

    work_items_found: int = 0
    issues_created: int = 0
    comments_created: int = 0
    work_items_tagged: int = 0
    issues_closed: int = 0
    issues_linked: int = 0


@dataclass
class MigrationResult:
    """Result of a migration run."""

    success: bool
    stats: MigrationStats
    migration_map: MigrationMap = field(default_factory=dict)
    records: list[SourceRecord] = field(default_factory=list)


class Migrator:
    """Orchestrates migration from a work item source to an issue target.

    Usage:
        source = AzureDevOpsSource(org, project, token)
        target = GitHubIssueTarget(client, repo)
        result = Migrator(config, source, target).migrate()
    """

    def __init__(self, config: MigrationConfig, source: WorkItemSource, target: IssueTarget) -> None:
        self.config: MigrationConfig = config
        self._source: WorkItemSource = source
        self._target: IssueTarget = target

    def migrate(self) -> MigrationResult:
        """Execute both passes.

        Raises:
            MigrationError: On the first failure; nothing is rolled back
        """
        self.config.log_summary()
        stats = MigrationStats()

        migration_map, records = self.migrate_work_items(stats)
        self.migrate_relations(records, migration_map, stats)

        logger.info(
            f"Migration completed: {stats.issues_created} issues created, {stats.issues_linked} issues linked"
        )
        return MigrationResult(success=True, stats=stats, migration_map=migration_map, records=records)

    def migrate_work_items(self, stats: MigrationStats) -> tuple[MigrationMap, list[SourceRecord]]:
        """Pass 1: create one issue per eligible work item.

        Returns:
            The migration map and the migrated records, in migration order
        """
        refs = self._source.query_matching(self.config.migrate_closed_work_items, self.config.ado_area_path)
        stats.work_items_found = len(refs)

        migration_map: MigrationMap = {}
        records: list[SourceRecord] = []
        for ref in refs:
            if ref.id in migration_map:
                msg = f"Work item {ref.id} was returned twice by the source query"
                raise IntegrityError(msg)
            record, issue = self._migrate_work_item(ref.id, stats)
            migration_map[record.id] = issue
            records.append(record)

        logger.info(f"Migrated {len(records)} work items")
        return migration_map, records

    def _migrate_work_item(self, work_item_id: int, stats: MigrationStats) -> tuple[SourceRecord, DestinationIssue]:
        record = self._source.fetch_record(work_item_id)

        title = issue_builder.render_title(record)
        label = issue_builder.render_label(record)
        logger.info(f"Migrating {label} {record.id}: {title}")

        description = issue_builder.render_description(record)
        page = self._source.fetch_comments(record.id) if record.comment_count > 0 else None
        comment = issue_builder.build_metadata_comment(
            record,
            page,
            organization=self.config.ado_organization,
            project=self.config.ado_project,
        )

        issue = self._target.create_issue(title, description, [label])
        stats.issues_created += 1

        self._target.create_comment(issue.number, comment)
        stats.comments_created += 1

        if self.config.tag_migrated_work_items:
            logger.info(f"  Adding tag and comment to Azure DevOps work item {record.id}")
            self._source.apply_field_patch(record.id, "add", TAGS_FIELD_PATH, MIGRATED_TAG)
            self._source.add_comment(
                record.id,
                f'Work item was migrated to GitHub: <a href="{issue.html_url}">{issue.html_url}</a>',
            )
            stats.work_items_tagged += 1

        if self.config.migrate_closed_work_items and record.is_closed:
            logger.info(f"  Closing GitHub issue #{issue.number} ({record.state} in Azure DevOps)")
            self._target.close_issue(issue.number)
            stats.issues_closed += 1

        return record, issue

    def migrate_relations(
        self,
        records: list[SourceRecord],
        migration_map: MigrationMap,
        stats: MigrationStats,
    ) -> None:
        """Pass 2: append relation tasklists to the issue bodies."""
        logger.info("Migrating relations as tasklists for...")
        fallback_url = partial(
            issue_builder.work_item_url, self.config.ado_organization, self.config.ado_project
        )

        with ThreadPoolExecutor(max_workers=self.config.relation_workers) as executor:
            futures = {
                executor.submit(self._link_work_item, record, migration_map, fallback_url): record
                for record in records
            }
            for future in as_completed(futures):
                try:
                    linked = future.result()
                except Exception:
                    # Drop queued work items; the first failure aborts the run
                    executor.shutdown(wait=False, cancel_futures=True)
                    raise
                if linked:
                    stats.issues_linked += 1

        logger.info(f"Linked {stats.issues_linked} issues")

    def _link_work_item(
        self, record: SourceRecord, migration_map: MigrationMap, fallback_url: Callable[[int], str]
    ) -> bool:
        """Update the issue of one work item; returns whether an update was needed."""
        relations = build_relations_section(record, migration_map, fallback_url=fallback_url)

        issue = migration_map.get(record.id)
        if issue is None:
            msg = f"Work item {record.id} does not exist in the work item to GitHub issue mapping"
            raise IntegrityError(msg)

        if not relations:
            return False

        logger.info(f"  -> {record.title}")
        self._target.update_issue(issue.number, issue.body + relations)
        return True
