"""Category migration: Mantis categories become Redmine issue categories."""

from mantis2redmine.migrations.base_migration import BaseMigration, register_entity_types
from mantis2redmine.models import Candidate, MappingEntry, TargetOption
from mantis2redmine.type_definitions import EntityKind, NewId

GLOBAL_PROJECT_ID = 0


def category_candidates(rows: list[dict]) -> list[Candidate]:
    return [
        Candidate(
            old_id=row["id"],
            label=row["name"],
            fields={
                "name": row["name"],
                "project_id": row["project_id"],
                "assigned_to_id": row["assigned_to_id"],
            },
        )
        for row in rows
    ]


@register_entity_types(EntityKind.CATEGORY)
class CategoryMigration(BaseMigration):
    """Categories need a project; global ones are left unmapped."""

    title = "Category"

    def get_candidates(self) -> list[Candidate]:
        return category_candidates(self.mantis.get_categories())

    def get_options(self) -> list[TargetOption]:
        return [
            TargetOption(key=row["id"], id=row["id"], label=row["name"], fields=row)
            for row in self.redmine.get_categories()
        ]

    def create(self, entry: MappingEntry) -> NewId | None:
        old_project_id = entry.fields.get("project_id")
        if old_project_id == GLOBAL_PROJECT_ID:
            self.logger.info("Category '%s' is global, not created", entry.label)
            return None

        project_id = self.foreign_keys.get(EntityKind.PROJECT, old_project_id)
        if project_id is None:
            self.logger.warning("Category '%s' belongs to an unmapped project, skipped", entry.label)
            return None

        return self._insert(
            "issue_categories",
            {
                "name": entry.fields.get("name", entry.label),
                "project_id": project_id,
                "assigned_to_id": self._user(entry.fields.get("assigned_to_id")),
            },
        )
