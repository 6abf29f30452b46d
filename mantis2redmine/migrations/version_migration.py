"""Version migration."""

from mantis2redmine.migrations.base_migration import BaseMigration, register_entity_types
from mantis2redmine.models import Candidate, ComponentResult, MappingEntry, TargetOption
from mantis2redmine.type_definitions import EntityKind, NewId


@register_entity_types(EntityKind.VERSION)
class VersionMigration(BaseMigration):
    """Maps Mantis project versions onto Redmine versions by name.

    Every applied version is also recorded in the context's version index,
    which is how issues find their fixed version by name.
    """

    title = "Version"

    def get_candidates(self) -> list[Candidate]:
        return [
            Candidate(
                old_id=row["id"],
                label=row["name"],
                fields={
                    "name": row["name"],
                    "description": row["description"],
                    "project_id": row["project_id"],
                    "released": row["released"],
                    "effective_date": row["effective_date"],
                },
            )
            for row in self.mantis.get_versions()
        ]

    def get_options(self) -> list[TargetOption]:
        return [
            TargetOption(key=row["id"], id=row["id"], label=row["name"], fields=row)
            for row in self.redmine.get_versions()
        ]

    def create(self, entry: MappingEntry) -> NewId | None:
        fields = entry.fields
        project_id = self.foreign_keys.get(EntityKind.PROJECT, fields.get("project_id"))
        if project_id is None:
            self.logger.warning("Version '%s' belongs to an unmapped project, skipped", entry.label)
            return None

        return self._insert(
            "versions",
            {
                "name": fields.get("name", entry.label),
                "description": fields.get("description"),
                "project_id": project_id,
                "status": "closed" if fields.get("released") else "open",
                "effective_date": fields.get("effective_date"),
            },
        )

    def _after_entry(self, entry: MappingEntry, new_id: NewId | None, result: ComponentResult) -> None:
        if new_id is not None:
            self.context.versions.record(
                entry.fields.get("name", entry.label),
                entry.fields.get("project_id"),
                new_id,
            )
