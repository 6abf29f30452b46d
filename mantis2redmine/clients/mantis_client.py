"""Read-only access to a Mantis database."""

from datetime import UTC, datetime
from typing import Any

from sqlalchemy import select

from mantis2redmine.clients.database import DatabaseClient
from mantis2redmine.type_definitions import SourceRow

# Mantis keeps these enumerations in code, not in the database.
# Each value is (label, suggested Redmine position).
STATUSES: dict[int, tuple[str, int | None]] = {
    10: ("new", 1),
    20: ("feedback", 4),
    30: ("acknowledged", 1),
    40: ("confirmed", 1),
    50: ("assigned", 2),
    80: ("resolved", 3),
    90: ("closed", 5),
}

PRIORITIES: dict[int, tuple[str, int | None]] = {
    10: ("none", 1),
    20: ("low", 1),
    30: ("normal", 2),
    40: ("high", 3),
    50: ("urgent", 4),
    60: ("immediate", 5),
}

# None means "use the default role"
ACCESS_LEVELS: dict[int, tuple[str, int | None]] = {
    10: ("viewer", None),
    25: ("reporter", 5),
    40: ("updater", None),
    55: ("developer", 4),
    70: ("manager", 3),
    90: ("administrator", 3),
}

CUSTOM_FIELD_TYPES: dict[int, str] = {
    0: "string",
    1: "numeric",
    2: "float",
    3: "enumeration",
    4: "email",
    5: "checkbox",
    6: "list",
    7: "multiselection list",
    8: "date",
}

RELATION_TYPES: dict[int, str] = {
    0: "duplicate of",
    1: "related to",
    2: "parent of",
    3: "child of",
    4: "has duplicate",
}

ADMINISTRATOR = 90


def format_timestamp(value: int | None) -> str | None:
    """Render a Unix timestamp the way the target stores datetimes."""
    if not value:
        return None
    return datetime.fromtimestamp(int(value), tz=UTC).strftime("%Y-%m-%d %H:%M:%S")


def format_date(value: int | None) -> str | None:
    if not value:
        return None
    return datetime.fromtimestamp(int(value), tz=UTC).strftime("%Y-%m-%d")


def join_text(parts: list[Any], separator: str) -> str:
    """Join the non-empty parts, skipping NULLs like CONCAT_WS does."""
    return separator.join(str(part) for part in parts if part)


class MantisClient(DatabaseClient):
    """Query surface over the Mantis schema, one query per entity kind."""

    name = "Mantis"

    def get_projects(self) -> list[SourceRow]:
        t = self.table("mantis_project_table")
        return self.fetch_all(select(t.c.id, t.c.name, t.c.description).order_by(t.c.id))

    def get_project_hierarchy(self) -> list[SourceRow]:
        t = self.table("mantis_project_hierarchy_table")
        return self.fetch_all(select(t.c.child_id, t.c.parent_id).order_by(t.c.child_id, t.c.parent_id))

    def get_project_files(self, project_id: int) -> list[SourceRow]:
        t = self.table("mantis_project_file_table")
        query = (
            select(
                t.c.id,
                t.c.diskfile,
                t.c.filename,
                t.c.file_type,
                t.c.date_added,
                t.c.title,
                t.c.description,
                t.c.content,
                t.c.user_id,
            )
            .where(t.c.project_id == project_id)
            .order_by(t.c.id)
        )
        rows = self.fetch_all(query)
        for row in rows:
            row["created_on"] = format_timestamp(row.pop("date_added"))
        return rows

    def get_users(self) -> list[SourceRow]:
        t = self.table("mantis_user_table")
        query = select(t.c.id, t.c.username, t.c.realname, t.c.email, t.c.access_level).order_by(t.c.id)
        return self.fetch_all(query)

    def get_administrators(self) -> list[SourceRow]:
        t = self.table("mantis_user_table")
        query = select(t.c.id, t.c.access_level).where(t.c.access_level == ADMINISTRATOR).order_by(t.c.id)
        return self.fetch_all(query)

    def get_project_members(self) -> list[SourceRow]:
        t = self.table("mantis_project_user_list_table")
        query = select(t.c.project_id, t.c.user_id, t.c.access_level).order_by(t.c.project_id, t.c.user_id)
        return self.fetch_all(query)

    def get_versions(self) -> list[SourceRow]:
        t = self.table("mantis_project_version_table")
        query = select(
            t.c.id,
            t.c.version,
            t.c.description,
            t.c.project_id,
            t.c.released,
            t.c.date_order,
        ).order_by(t.c.id)
        rows = self.fetch_all(query)
        for row in rows:
            row["name"] = (row.pop("version") or "")[:30]
            row["effective_date"] = format_date(row.pop("date_order"))
            row["released"] = bool(row["released"])
        return rows

    def get_categories(self) -> list[SourceRow]:
        t = self.table("mantis_category_table")
        query = select(t.c.id, t.c.name, t.c.project_id, t.c.user_id.label("assigned_to_id")).order_by(t.c.id)
        return self.fetch_all(query)

    def get_issues(self) -> list[SourceRow]:
        b = self.table("mantis_bug_table")
        tt = self.table("mantis_bug_text_table")
        query = (
            select(
                b.c.id,
                b.c.project_id,
                b.c.reporter_id,
                b.c.handler_id,
                b.c.priority,
                b.c.status,
                b.c.target_version,
                b.c.fixed_in_version,
                b.c.severity,
                b.c.category_id,
                b.c.summary.label("subject"),
                b.c.date_submitted,
                b.c.last_updated,
                tt.c.description,
                tt.c.steps_to_reproduce,
                tt.c.additional_information,
            )
            .select_from(b.outerjoin(tt, tt.c.id == b.c.bug_text_id))
            .order_by(b.c.id)
        )
        rows = self.fetch_all(query)
        for row in rows:
            row["created_on"] = format_timestamp(row["date_submitted"])
            row["start_date"] = format_date(row.pop("date_submitted"))
            row["updated_on"] = format_timestamp(row.pop("last_updated"))
            row["description"] = join_text(
                [
                    row["description"],
                    row.pop("steps_to_reproduce"),
                    row.pop("additional_information"),
                ],
                "\n\n",
            )
        return rows

    def get_notes(self, issue_id: int) -> list[SourceRow]:
        b = self.table("mantis_bugnote_table")
        tt = self.table("mantis_bugnote_text_table")
        query = (
            select(
                b.c.id,
                b.c.reporter_id,
                b.c.date_submitted,
                b.c.time_tracking,
                b.c.last_modified,
                tt.c.note,
            )
            .select_from(b.outerjoin(tt, tt.c.id == b.c.bugnote_text_id))
            .where(b.c.bug_id == issue_id)
            .order_by(b.c.id)
        )
        rows = self.fetch_all(query)
        for row in rows:
            row["spent_on"] = format_date(row["date_submitted"])
            row["created_on"] = format_timestamp(row.pop("date_submitted"))
            row["last_modified"] = format_timestamp(row["last_modified"])
        return rows

    def get_history(self, issue_id: int) -> list[SourceRow]:
        t = self.table("mantis_bug_history_table")
        query = (
            select(
                t.c.id,
                t.c.user_id,
                t.c.field_name,
                t.c.old_value,
                t.c.new_value,
                t.c.type,
                t.c.date_modified,
            )
            .where(t.c.bug_id == issue_id)
            .order_by(t.c.id)
        )
        rows = self.fetch_all(query)
        for row in rows:
            row["created_on"] = format_timestamp(row.pop("date_modified"))
        return rows

    def get_attachments(self, issue_id: int) -> list[SourceRow]:
        t = self.table("mantis_bug_file_table")
        query = (
            select(
                t.c.id,
                t.c.diskfile,
                t.c.filename,
                t.c.file_type,
                t.c.date_added,
                t.c.title,
                t.c.description,
                t.c.content,
                t.c.user_id,
            )
            .where(t.c.bug_id == issue_id)
            .order_by(t.c.id)
        )
        rows = self.fetch_all(query)
        for row in rows:
            row["created_on"] = format_timestamp(row.pop("date_added"))
            row["description"] = join_text([row.pop("title"), row["description"]], "\n")
        return rows

    def get_relations(self) -> list[SourceRow]:
        t = self.table("mantis_bug_relationship_table")
        query = select(
            t.c.id,
            t.c.source_bug_id,
            t.c.destination_bug_id,
            t.c.relationship_type,
        ).order_by(t.c.id)
        return self.fetch_all(query)

    def get_custom_fields(self) -> list[SourceRow]:
        t = self.table("mantis_custom_field_table")
        query = select(
            t.c.id,
            t.c.name,
            t.c.possible_values,
            t.c.length_min,
            t.c.length_max,
            t.c.valid_regexp,
            t.c.type,
            t.c.require_report,
        ).order_by(t.c.id)
        return self.fetch_all(query)

    def get_custom_field_projects(self, field_id: int) -> list[int]:
        t = self.table("mantis_custom_field_project_table")
        query = select(t.c.project_id).where(t.c.field_id == field_id).order_by(t.c.project_id)
        return self.fetch_column(query)

    def get_custom_field_values(self, field_id: int) -> list[SourceRow]:
        t = self.table("mantis_custom_field_string_table")
        query = select(t.c.bug_id, t.c.value).where(t.c.field_id == field_id).order_by(t.c.bug_id)
        return self.fetch_all(query)
