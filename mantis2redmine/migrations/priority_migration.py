"""Priority migration: map the fixed Mantis priorities onto Redmine IssuePriority."""

from mantis2redmine.clients.mantis_client import PRIORITIES
from mantis2redmine.migrations.base_migration import EnumerationMigration, register_entity_types
from mantis2redmine.type_definitions import EntityKind, TargetRow


@register_entity_types(EntityKind.PRIORITY)
class PriorityMigration(EnumerationMigration):
    """Map priorities by name, then by their usual position."""

    title = "Priority"
    source = PRIORITIES

    def get_targets(self) -> list[TargetRow]:
        return self.redmine.get_priorities()
