"""Custom field migration.

Mantis field types are translated to Redmine field formats without
asking. After the issues are in, every field definition is created,
attached to all trackers and its projects, and its values are copied.
"""

import re

import yaml

from mantis2redmine.clients.mantis_client import CUSTOM_FIELD_TYPES
from mantis2redmine.display import ProgressTracker
from mantis2redmine.migrations.base_migration import BaseMigration, register_entity_types
from mantis2redmine.models import Candidate, ComponentResult, MappingTable
from mantis2redmine.type_definitions import EntityKind, NewId, SourceRow

# Kind under which created field definitions are checkpointed
DEFINITIONS_KIND = "custom_field_definitions"

CHECKBOX = 5

# Mantis custom field type -> Redmine field_format
FIELD_FORMATS: dict[int, str] = {
    0: "string",
    1: "int",
    2: "int",
    3: "list",
    4: "string",
    5: "bool",
    6: "list",
    7: "list",
    8: "date",
}

POSSIBLE_VALUES_SEPARATOR = re.compile(r"\s*\|\s*")


def split_possible_values(possible_values: str | None) -> list[str]:
    if not possible_values:
        return []
    return POSSIBLE_VALUES_SEPARATOR.split(possible_values)


def dump_possible_values(values: list[str]) -> str:
    """Serialize possible values the way Redmine keeps them, as a YAML list."""
    return yaml.dump(values, explicit_start=True, default_flow_style=False)


@register_entity_types(EntityKind.CUSTOM_FIELD_TYPE)
class CustomFieldMigration(BaseMigration):
    title = "Custom field"
    allow_new = False

    def get_candidates(self) -> list[Candidate]:
        return [Candidate(old_id=code, label=label) for code, label in CUSTOM_FIELD_TYPES.items()]

    def resolve(self) -> MappingTable:
        return self.context.resolver.translate(self.kind, self.get_candidates(), FIELD_FORMATS)

    def field_format(self, field: SourceRow, values: list[str], formats: MappingTable) -> str | None:
        # A checkbox with several values can only be kept as a list
        if field["type"] == CHECKBOX and len(values) > 1:
            return "list"
        return formats.target_id(field["type"])

    def run(self) -> ComponentResult:
        formats = self.mapping()
        fields = self.mantis.get_custom_fields()
        result = ComponentResult(dry_run=self.dry_run, total_count=len(fields))
        tracker_ids = self.redmine.get_tracker_ids()

        with ProgressTracker("Migrating custom fields", len(fields), "Recent custom fields") as tracker:
            for field in tracker.track(fields):
                if self.foreign_keys.has(DEFINITIONS_KIND, field["id"]):
                    result.resumed += 1
                    continue

                values = split_possible_values(field["possible_values"])
                field_id = self._insert(
                    "custom_fields",
                    {
                        "type": "IssueCustomField",
                        "name": (field["name"] or "")[:30],
                        "field_format": self.field_format(field, values, formats),
                        "possible_values": dump_possible_values(values),
                        "regexp": field["valid_regexp"] or "",
                        "min_length": field["length_min"],
                        "max_length": field["length_max"],
                        "is_required": field["require_report"],
                    },
                )
                self.foreign_keys.set(DEFINITIONS_KIND, field["id"], field_id)
                result.created += 1

                for tracker_id in tracker_ids:
                    self._insert_row(
                        "custom_fields_trackers",
                        {"custom_field_id": field_id, "tracker_id": tracker_id},
                    )
                self.link_projects(field["id"], field_id, result)
                self.import_values(field["id"], field_id, result)
                tracker.add_log_item(field["name"] or str(field["id"]))

        result.success = True
        result.message = f"custom fields: {result.created} created" + (
            f", {result.resumed} already done" if result.resumed else ""
        )
        self.logger.success(result.message)
        return result

    def link_projects(self, old_field_id: int, field_id: NewId, result: ComponentResult) -> None:
        for old_project_id in self.mantis.get_custom_field_projects(old_field_id):
            project_id = self.foreign_keys.get(EntityKind.PROJECT, old_project_id)
            if project_id is None:
                continue
            self._insert_row("custom_fields_projects", {"custom_field_id": field_id, "project_id": project_id})
            result.count_nested("custom_fields.linked")

    def import_values(self, old_field_id: int, field_id: NewId, result: ComponentResult) -> None:
        for row in self.mantis.get_custom_field_values(old_field_id):
            issue_id = self.foreign_keys.get(EntityKind.ISSUE, row["bug_id"])
            if issue_id is None:
                continue
            self._insert(
                "custom_values",
                {
                    "customized_type": "Issue",
                    "customized_id": issue_id,
                    "custom_field_id": field_id,
                    "value": row["value"],
                },
            )
            result.count_nested("custom_values")
