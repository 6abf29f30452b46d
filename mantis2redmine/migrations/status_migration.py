"""Status migration: map the fixed Mantis statuses onto Redmine issue statuses."""

from mantis2redmine.clients.mantis_client import STATUSES
from mantis2redmine.migrations.base_migration import EnumerationMigration, register_entity_types
from mantis2redmine.type_definitions import EntityKind, TargetRow


@register_entity_types(EntityKind.STATUS)
class StatusMigration(EnumerationMigration):
    """Statuses are never created; unmatched ones fall back to position 1."""

    title = "Status"
    source = STATUSES

    def get_targets(self) -> list[TargetRow]:
        return self.redmine.get_statuses()
