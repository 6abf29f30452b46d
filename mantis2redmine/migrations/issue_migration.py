"""Issue migration.

Issues are not resolved, every Mantis bug becomes a new Redmine issue.
Each issue is checkpointed as soon as its row exists; its notes, status
history and attachments are imported right after against the new id.
"""

from datetime import date
from typing import Any

from mantis2redmine.display import ProgressTracker
from mantis2redmine.migrations.base_migration import BaseMigration, register_entity_types
from mantis2redmine.models import ComponentResult
from mantis2redmine.type_definitions import EntityKind, NewId, SourceRow

STATUS_FIELD = "status"


def parse_code(value: Any) -> int | None:
    """History values are stored as text; return the code they hold."""
    if value is None:
        return None
    text = str(value).strip()
    return int(text) if text.isdigit() else None


@register_entity_types(EntityKind.ISSUE)
class IssueMigration(BaseMigration):
    """Imports issues with their journals, time entries and attachments."""

    title = "Issue"

    def select_tracker(self, severity: int | None) -> int:
        """The feature severity selects the feature tracker, anything else the bug tracker."""
        if severity == self.options.feature_severity:
            return self.options.tracker_id_feature
        return self.options.tracker_id_bug

    def done_ratio(self, status: int | None) -> int:
        return 100 if status in self.options.done_status_codes else 0

    def fixed_version(self, issue: SourceRow) -> NewId | None:
        """Target version first, then the fixed-in version, else none."""
        versions = self.context.versions
        for name in (issue.get("target_version"), issue.get("fixed_in_version")):
            version_id = versions.lookup(name, issue["project_id"])
            if version_id is not None:
                return version_id
        return None

    def category(self, old_category_id: int | None) -> NewId | None:
        if self.options.category_source != "categories":
            return None
        return self.foreign_keys.get(EntityKind.CATEGORY, old_category_id)

    def issue_values(self, issue: SourceRow, project_id: NewId) -> dict[str, Any]:
        return {
            "tracker_id": self.select_tracker(issue.get("severity")),
            "project_id": project_id,
            "category_id": self.category(issue.get("category_id")),
            "subject": issue["subject"],
            "description": issue["description"],
            "status_id": self.foreign_keys.get(EntityKind.STATUS, issue.get("status")),
            "assigned_to_id": self._user(issue.get("handler_id")),
            "priority_id": self.foreign_keys.get(EntityKind.PRIORITY, issue.get("priority")),
            "author_id": self._author(issue.get("reporter_id")),
            "created_on": issue["created_on"],
            "updated_on": issue["updated_on"],
            "start_date": issue["start_date"],
            "done_ratio": self.done_ratio(issue.get("status")),
            "lft": 1,
            "rgt": 2,
            "fixed_version_id": self.fixed_version(issue),
        }

    def run(self) -> ComponentResult:
        issues = self.mantis.get_issues()
        result = ComponentResult(dry_run=self.dry_run, total_count=len(issues))

        with ProgressTracker("Migrating issues", len(issues), "Recent issues") as tracker:
            for issue in tracker.track(issues):
                if self.foreign_keys.has(EntityKind.ISSUE, issue["id"]):
                    result.resumed += 1
                    continue

                project_id = self.foreign_keys.get(EntityKind.PROJECT, issue["project_id"])
                if project_id is None:
                    self.logger.warning("Issue %s belongs to an unmapped project, skipped", issue["id"])
                    result.skipped += 1
                    continue

                issue_id = self._insert("issues", self.issue_values(issue, project_id))
                self.foreign_keys.set(EntityKind.ISSUE, issue["id"], issue_id)
                result.imported += 1

                self.import_notes(issue, issue_id, project_id, result)
                self.import_history(issue, issue_id, result)
                if not self.options.attachments_out_of_band:
                    self.import_attachments(issue, issue_id, result)
                tracker.add_log_item(f"#{issue['id']} {issue['subject']}")

        if not self.dry_run:
            fixed = self.redmine.fix_issue_root_ids()
            self.logger.debug("Set root_id on %d issues", fixed)

        result.success = True
        result.message = f"issues: {result.imported} imported" + (
            f", {result.resumed} already done" if result.resumed else ""
        )
        self.logger.success(result.message)
        return result

    def import_notes(self, issue: SourceRow, issue_id: NewId, project_id: NewId, result: ComponentResult) -> None:
        """Notes become journals; tracked time also becomes a time entry."""
        for note in self.mantis.get_notes(issue["id"]):
            user_id = self._author(note.get("reporter_id"))
            self._insert(
                "journals",
                {
                    "journalized_id": issue_id,
                    "journalized_type": "Issue",
                    "user_id": user_id,
                    "notes": note.get("note"),
                    "created_on": note["created_on"],
                },
            )
            result.count_nested("journals")

            minutes = note.get("time_tracking") or 0
            if minutes and not note["spent_on"]:
                self.logger.warning("Note %s has tracked time but no date, no time entry", note["id"])
            elif minutes:
                spent_on = date.fromisoformat(note["spent_on"])
                self._insert(
                    "time_entries",
                    {
                        "project_id": project_id,
                        "user_id": user_id,
                        "issue_id": issue_id,
                        "activity_id": self.options.time_entry_activity_id,
                        "hours": minutes / 60,
                        "spent_on": note["spent_on"],
                        "tyear": spent_on.year,
                        "tmonth": spent_on.month,
                        "tweek": spent_on.isocalendar().week,
                        "created_on": note["created_on"],
                        "updated_on": note["last_modified"],
                    },
                )
                result.count_nested("time_entries")

    def import_history(self, issue: SourceRow, issue_id: NewId, result: ComponentResult) -> None:
        """Only status changes are carried over, as journals with one detail each."""
        for change in self.mantis.get_history(issue["id"]):
            if change.get("field_name") != STATUS_FIELD:
                continue

            old_code = parse_code(change.get("old_value"))
            new_code = parse_code(change.get("new_value"))
            old_status = self.foreign_keys.get(EntityKind.STATUS, old_code)
            new_status = self.foreign_keys.get(EntityKind.STATUS, new_code)

            journal_id = self._insert(
                "journals",
                {
                    "journalized_id": issue_id,
                    "journalized_type": "Issue",
                    "user_id": self._author(change.get("user_id")),
                    "created_on": change["created_on"],
                },
            )
            self._insert(
                "journal_details",
                {
                    "journal_id": journal_id,
                    "property": "attr",
                    "prop_key": "status_id",
                    "old_value": None if old_status is None else str(old_status),
                    "value": None if new_status is None else str(new_status),
                },
            )
            if new_code == self.options.closed_status_code:
                self._update("issues", {"closed_on": change["created_on"]}, {"id": issue_id})
            result.count_nested("journals")

    def import_attachments(self, issue: SourceRow, issue_id: NewId, result: ComponentResult) -> None:
        for attachment in self.mantis.get_attachments(issue["id"]):
            self._insert_attachment(attachment, issue_id, "Issue", attachment["description"])
            result.count_nested("attachments")
