"""Tests for relation extraction and tasklist rendering."""

from __future__ import annotations

import logging

import pytest

from ado_to_github_migrator.ado_utils import parse_work_item
from ado_to_github_migrator.exceptions import IntegrityError
from ado_to_github_migrator.models import CHILD, PREDECESSOR, RELATED, DestinationIssue, RelationEdge
from ado_to_github_migrator.relationships import build_relations_section, get_related_ids, render_tasklist

from .conftest import make_work_item_payload

REPO_URL = "https://github.com/org/repo/issues"


def _issue(number: int) -> DestinationIssue:
    return DestinationIssue(number=number, html_url=f"{REPO_URL}/{number}", body=f"body {number}")


@pytest.mark.unit
class TestRelationEdge:
    def test_target_id_from_url(self) -> None:
        edge = RelationEdge(kind=CHILD, source_id=1, target_url="https://dev.azure.com/org/_apis/wit/workItems/42")
        assert edge.target_id == 42

    def test_target_id_of_non_work_item_url(self) -> None:
        edge = RelationEdge(kind="Hyperlink", source_id=1, target_url="https://example.com/docs")
        assert edge.target_id is None

    def test_target_id_without_url(self) -> None:
        assert RelationEdge(kind=CHILD, source_id=1, target_url=None).target_id is None


@pytest.mark.unit
class TestGetRelatedIds:
    def test_no_relations(self) -> None:
        record = parse_work_item(make_work_item_payload(1))
        assert get_related_ids(record, CHILD) == set()

    def test_filters_by_kind_and_deduplicates(self) -> None:
        record = parse_work_item(
            make_work_item_payload(
                1,
                relations=[(CHILD, 2), (CHILD, 3), (RELATED, 4), (CHILD, 2), (PREDECESSOR, 5), ("Parent", 9)],
            )
        )
        assert get_related_ids(record, CHILD) == {2, 3}
        assert get_related_ids(record, RELATED) == {4}
        assert get_related_ids(record, PREDECESSOR) == {5}

    def test_relation_without_attributes_raises(self) -> None:
        payload = make_work_item_payload(1, relations=[(CHILD, 2)])
        del payload["relations"][0]["attributes"]
        record = parse_work_item(payload)

        with pytest.raises(IntegrityError, match="relation missing its kind"):
            get_related_ids(record, CHILD)

    def test_relation_without_url_raises_for_any_kind(self) -> None:
        payload = make_work_item_payload(1, relations=[(RELATED, 2)])
        del payload["relations"][0]["url"]
        record = parse_work_item(payload)

        with pytest.raises(IntegrityError):
            get_related_ids(record, CHILD)

    def test_requested_kind_pointing_outside_work_items_raises(self) -> None:
        payload = make_work_item_payload(1, relations=[(CHILD, 2)])
        payload["relations"][0]["url"] = "https://example.com/not-a-work-item"
        record = parse_work_item(payload)

        with pytest.raises(IntegrityError, match="non work item url"):
            get_related_ids(record, CHILD)


@pytest.mark.unit
class TestRenderTasklist:
    def test_empty_set_renders_nothing(self) -> None:
        assert render_tasklist(set(), {1: _issue(1)}, "Children") == ""

    def test_three_targets(self) -> None:
        migration_map = {10: _issue(1), 20: _issue(2), 30: _issue(3)}

        result = render_tasklist({10, 20, 30}, migration_map, "Children")

        assert result.startswith("\n\n```[tasklist]\n### Children\n")
        assert result.endswith("\n```")
        lines = [line for line in result.splitlines() if line.startswith("- [ ] ")]
        assert lines == [f"- [ ] {REPO_URL}/1", f"- [ ] {REPO_URL}/2", f"- [ ] {REPO_URL}/3"]

    def test_missing_target_uses_fallback_and_warns(self, caplog: pytest.LogCaptureFixture) -> None:
        with caplog.at_level(logging.WARNING):
            result = render_tasklist(
                {99}, {}, "Related", fallback_url=lambda work_item_id: f"https://ado/{work_item_id}"
            )

        assert "- [ ] https://ado/99" in result
        assert any("99" in record.message for record in caplog.records)

    def test_missing_target_without_fallback_renders_empty_entry(self) -> None:
        result = render_tasklist({99}, {}, "Related")
        assert "\n- [ ] \n" in result


@pytest.mark.unit
class TestBuildRelationsSection:
    def test_child_edge_links_to_child_issue(self) -> None:
        record = parse_work_item(make_work_item_payload(10, relations=[(CHILD, 20)]))
        migration_map = {10: _issue(1), 20: _issue(2)}

        result = build_relations_section(record, migration_map)

        assert "### Children" in result
        assert f"- [ ] {REPO_URL}/2" in result

    def test_sections_in_fixed_order(self) -> None:
        record = parse_work_item(
            make_work_item_payload(1, relations=[(PREDECESSOR, 4), (RELATED, 3), (CHILD, 2)])
        )
        migration_map = {n: _issue(n) for n in (1, 2, 3, 4)}

        result = build_relations_section(record, migration_map)

        assert result.index("### Children") < result.index("### Related") < result.index("### Predecessors")

    def test_no_relations_renders_nothing(self) -> None:
        record = parse_work_item(make_work_item_payload(1))
        assert build_relations_section(record, {1: _issue(1)}) == ""
