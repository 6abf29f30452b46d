"""Project migration.

Projects are created first and linked to their parents in a second pass,
once every project has a new id. A created project also gets the default
modules and trackers, a membership for every Mantis administrator and,
when attachments are stored inline, its project files as documents.
"""

import time

from mantis2redmine.migrations.base_migration import (
    BaseMigration,
    MigrationContext,
    now,
    register_entity_types,
)
from mantis2redmine.models import (
    Candidate,
    ComponentResult,
    MappingEntry,
    MappingTable,
    PrerequisiteMissingError,
    TargetOption,
)
from mantis2redmine.type_definitions import EntityKind, NewId

HIERARCHY_STAGE = "hierarchy"


@register_entity_types(EntityKind.PROJECT)
class ProjectMigration(BaseMigration):
    """Maps Mantis projects onto Redmine projects by name."""

    title = "Project"

    def __init__(self, context: MigrationContext) -> None:
        super().__init__(context)
        self._identifier_suffix = str(int(time.time()))[-5:]
        self._identifier_count = 0
        self._admin_rows: list[tuple[int, NewId, NewId]] | None = None
        self.documents_imported = 0

    def get_candidates(self) -> list[Candidate]:
        rows = self.mantis.get_projects()
        if not rows:
            msg = "Did not find any Mantis projects"
            raise PrerequisiteMissingError(msg)
        return [
            Candidate(
                old_id=row["id"],
                label=row["name"],
                fields={"name": row["name"], "description": row["description"]},
            )
            for row in rows
        ]

    def get_options(self) -> list[TargetOption]:
        return [
            TargetOption(key=row["id"], id=row["id"], label=row["name"])
            for row in self.redmine.get_projects()
        ]

    def run(self) -> ComponentResult:
        table = self.mapping()
        result = self._apply_entries(table)
        if self.documents_imported:
            result.count_nested("documents", self.documents_imported)
        self.link_parents(table, result)
        return result

    def next_identifier(self) -> str:
        self._identifier_count += 1
        return f"mantis-{self._identifier_suffix}{self._identifier_count}"

    def _admin_memberships(self) -> list[tuple[int, NewId, NewId]]:
        """(old user id, new user id, role id) of every mappable administrator.

        Read once per run; users and roles are applied before projects.
        """
        if self._admin_rows is not None:
            return self._admin_rows

        memberships = []
        for admin in self.mantis.get_administrators():
            user_id = self.foreign_keys.get(EntityKind.USER, admin["id"])
            role_id = self.foreign_keys.get(EntityKind.ROLE, admin["access_level"])
            if user_id is None or role_id is None:
                self.logger.warning("Administrator %s has no Redmine user or role, not added", admin["id"])
                continue
            memberships.append((admin["id"], user_id, role_id))
        self._admin_rows = memberships
        return memberships

    def create(self, entry: MappingEntry) -> NewId:
        # Placeholder tree position; the target application rebuilds the tree
        position = max(self.redmine.max_value("projects", "lft"), self.redmine.max_value("projects", "rgt")) + 1
        timestamp = now()
        project_id = self._insert(
            "projects",
            {
                "name": entry.fields.get("name", entry.label),
                "description": entry.fields.get("description"),
                "is_public": 0,
                "created_on": timestamp,
                "updated_on": timestamp,
                "identifier": self.next_identifier(),
                "status": 1,
                "lft": position,
                "rgt": position + 1,
            },
        )
        # Checkpointed before any of its dependent rows is written
        self.foreign_keys.set(EntityKind.PROJECT, entry.old_id, project_id)

        for module in self.options.project_modules:
            self._insert("enabled_modules", {"project_id": project_id, "name": module})
        for tracker_id in self.options.project_tracker_ids:
            self._insert_row("projects_trackers", {"project_id": project_id, "tracker_id": tracker_id})

        for old_user_id, user_id, role_id in self._admin_memberships():
            self._add_member(entry.old_id, old_user_id, project_id, user_id, role_id)

        if not self.options.attachments_out_of_band:
            self.documents_imported += self.import_documents(entry.old_id, project_id)
        return project_id

    def _after_entry(self, entry: MappingEntry, new_id: NewId | None, result: ComponentResult) -> None:
        if entry.is_create_new and new_id is not None:
            for old_user_id, _, _ in self._admin_memberships():
                self.context.memberships.add((entry.old_id, old_user_id))

    def import_documents(self, old_project_id: int, project_id: NewId) -> int:
        """Turn the project files of a source project into documents."""
        files = self.mantis.get_project_files(old_project_id)
        for row in files:
            document_id = self._insert(
                "documents",
                {
                    "project_id": project_id,
                    "category_id": self.options.document_category_id,
                    "title": row["title"],
                    "description": row["description"],
                    "created_on": row["created_on"],
                },
            )
            self._insert_attachment(row, document_id, "Document", row["title"])
        return len(files)

    def link_parents(self, table: MappingTable, result: ComponentResult) -> int:
        """Second pass: point every created child project at its parent.

        Runs after all projects exist, since a parent's new id is unknown
        while its children are being created. Reused projects keep the
        parent they already have.
        """
        if self.foreign_keys.is_complete(HIERARCHY_STAGE):
            self.logger.info("Project hierarchy already linked, skipping")
            return 0

        created = set(table.create_new_ids())
        linked = 0
        for row in self.mantis.get_project_hierarchy():
            if row["child_id"] not in created:
                continue
            child_id = self.foreign_keys.get(EntityKind.PROJECT, row["child_id"])
            parent_id = self.foreign_keys.get(EntityKind.PROJECT, row["parent_id"])
            if child_id is None or parent_id is None:
                continue
            self._update("projects", {"parent_id": parent_id}, {"id": child_id})
            linked += 1

        self.foreign_keys.mark_complete(HIERARCHY_STAGE)
        result.count_nested("projects.linked", linked)
        self.logger.info("Linked %d projects to their parents", linked)
        return linked
