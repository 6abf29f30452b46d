"""Tracker migration: Mantis categories become Redmine trackers."""

from mantis2redmine.migrations.base_migration import (
    BaseMigration,
    MigrationContext,
    register_entity_types,
)
from mantis2redmine.migrations.category_migration import GLOBAL_PROJECT_ID, category_candidates
from mantis2redmine.models import Candidate, ComponentResult, MappingEntry, TargetOption
from mantis2redmine.type_definitions import EntityKind, NewId


@register_entity_types(EntityKind.TRACKER)
class TrackerMigration(BaseMigration):
    """Used instead of the category migration when ``category_source`` is ``trackers``.

    A created tracker is appended after the existing ones and enabled in
    its project, or in every Redmine project for a global category.
    """

    title = "Tracker"

    def __init__(self, context: MigrationContext) -> None:
        super().__init__(context)
        self._all_project_ids: list[int] = []

    def get_candidates(self) -> list[Candidate]:
        return category_candidates(self.mantis.get_categories())

    def get_options(self) -> list[TargetOption]:
        return [
            TargetOption(key=row["id"], id=row["id"], label=row["name"])
            for row in self.redmine.get_trackers()
        ]

    def run(self) -> ComponentResult:
        # Projects present when the stage starts, created ones included
        self._all_project_ids = self.redmine.get_project_ids()
        return super().run()

    def create(self, entry: MappingEntry) -> NewId:
        position = self.redmine.max_value("trackers", "position") + 1
        tracker_id = self._insert(
            "trackers",
            {
                "name": entry.fields.get("name", entry.label),
                "position": position,
                "is_in_roadmap": 0,
                "is_in_chlog": 0,
            },
        )

        old_project_id = entry.fields.get("project_id")
        if old_project_id == GLOBAL_PROJECT_ID:
            project_ids = list(self._all_project_ids)
        else:
            project_id = self.foreign_keys.get(EntityKind.PROJECT, old_project_id)
            project_ids = [project_id] if project_id is not None else []

        for project_id in project_ids:
            self._insert_row("projects_trackers", {"project_id": project_id, "tracker_id": tracker_id})
        return tracker_id
