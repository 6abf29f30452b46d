"""Role migration: map Mantis access levels onto Redmine roles."""

from mantis2redmine.clients.mantis_client import ACCESS_LEVELS
from mantis2redmine.migrations.base_migration import EnumerationMigration, register_entity_types
from mantis2redmine.models import TargetOption
from mantis2redmine.type_definitions import EntityKind, TargetRow


@register_entity_types(EntityKind.ROLE)
class RoleMigration(EnumerationMigration):
    """Access levels become roles; members and project admins use the result."""

    title = "Role"
    source = ACCESS_LEVELS

    def get_targets(self) -> list[TargetRow]:
        return self.redmine.get_roles()

    def default_position(self, options: list[TargetOption]) -> int:
        # The role at the position equal to the number of roles
        return len(options)
