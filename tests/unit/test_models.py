"""Tests for result, report and mapping models."""

import pytest

from mantis2redmine.migrations.base_migration import VersionIndex
from mantis2redmine.models import (
    CREATE_NEW,
    Candidate,
    ComponentResult,
    MappingEntry,
    MappingTable,
    MigrationReport,
    MigrationResult,
    TargetOption,
)
from mantis2redmine.type_definitions import EntityKind

pytestmark = pytest.mark.unit


class TestMigrationReport:
    def test_merge_adds_counters(self) -> None:
        report = MigrationReport()
        report.merge("users", ComponentResult(created=2, reused=1))
        report.merge("issues", ComponentResult(imported=3, nested={"journals": 4}))
        report.merge("issues", ComponentResult(resumed=1, nested={"journals": 1}))

        assert report.counts == {
            "users.created": 2,
            "users.reused": 1,
            "issues.imported": 3,
            "journals": 5,
            "issues.resumed": 1,
        }

    def test_zero_counters_are_left_out(self) -> None:
        report = MigrationReport()
        report.merge("stati", ComponentResult(reused=7))
        assert list(report.counts) == ["stati.reused"]
        assert report.get("stati.created") == 0

    def test_rows(self) -> None:
        report = MigrationReport(counts={"projects.linked": 1, "journals": 4})
        assert list(report.rows()) == [("projects", "linked", 1), ("journals", "imported", 4)]


class TestMigrationResult:
    def test_defaults(self) -> None:
        result = MigrationResult()
        assert result.overall["status"] == "success"
        assert "start_time" in result.overall

    def test_given_status_is_kept(self) -> None:
        result = MigrationResult(overall={"status": "failed"})
        assert result.overall["status"] == "failed"
        assert result.components == {}


class TestMappingTable:
    @pytest.fixture
    def table(self):
        entries = {
            old_id: MappingEntry.choose(Candidate(old_id=old_id, label=label), option)
            for old_id, label, option in [
                (3, "c", TargetOption(key=1, id=11, label="x")),
                (1, "a", CREATE_NEW),
                (2, "b", TargetOption(key=2, id=12, label="y")),
            ]
        }
        return MappingTable(kind=EntityKind.PROJECT, entries=entries)

    def test_ordered_by_old_id(self, table) -> None:
        assert [entry.old_id for entry in table.ordered()] == [1, 2, 3]

    def test_create_new_and_reused(self, table) -> None:
        assert table.create_new_ids() == [1]
        assert table.reused_ids() == [2, 3]
        assert table.target_id(3) == 11
        assert table.target_id(9) is None
        assert 2 in table
        assert len(table) == 3


class TestVersionIndex:
    def test_name_scope_shares_names_across_projects(self) -> None:
        index = VersionIndex()
        index.record("1.0", 1, 100)
        index.record("1.0", 2, 200)
        assert index.lookup("1.0", 1) == 200

    def test_project_scope(self) -> None:
        index = VersionIndex("project")
        index.record("1.0", 1, 100)
        index.record("1.0", 2, 200)
        assert index.lookup("1.0", 1) == 100
        assert index.lookup("1.0", 3) is None

    def test_names_are_truncated_like_target_names(self) -> None:
        index = VersionIndex()
        index.record("v" * 40, 1, 5)
        assert index.lookup("v" * 35, 1) == 5
        assert index.lookup(None, 1) is None
