"""Member migration: project memberships with the role of their access level."""

from mantis2redmine.display import ProgressTracker
from mantis2redmine.mappings.foreign_keys import composite_key
from mantis2redmine.migrations.base_migration import MEMBERS_KIND, BaseMigration
from mantis2redmine.models import ComponentResult
from mantis2redmine.type_definitions import EntityKind

MEMBERS_STAGE = "members"


class MemberMigration(BaseMigration):
    """Imports every Mantis project-user row as a member with one role.

    Not resolved interactively: a membership is written for every row
    whose project, user and access level are mapped. Administrators the
    project migration already added to a created project are skipped, and
    so are memberships an interrupted run checkpointed.
    """

    stage = MEMBERS_STAGE
    title = "Member"

    def run(self) -> ComponentResult:
        result = ComponentResult(dry_run=self.dry_run)
        if self.foreign_keys.is_complete(MEMBERS_STAGE):
            self.logger.info("Members already imported, skipping")
            result.success = True
            return result

        rows = self.mantis.get_project_members()
        result.total_count = len(rows)
        with ProgressTracker("Migrating members", len(rows), "Recent members") as tracker:
            for row in tracker.track(rows):
                pair = (row["project_id"], row["user_id"])
                if pair in self.context.memberships:
                    result.skipped += 1
                    continue
                if self.foreign_keys.has(MEMBERS_KIND, composite_key(*pair)):
                    result.resumed += 1
                    self.context.memberships.add(pair)
                    continue

                project_id = self.foreign_keys.get(EntityKind.PROJECT, row["project_id"])
                user_id = self.foreign_keys.get(EntityKind.USER, row["user_id"])
                role_id = self.foreign_keys.get(EntityKind.ROLE, row["access_level"])
                if project_id is None or user_id is None or role_id is None:
                    self.logger.warning(
                        "Member %s of project %s cannot be mapped, skipped",
                        row["user_id"],
                        row["project_id"],
                    )
                    result.skipped += 1
                    continue

                self._add_member(row["project_id"], row["user_id"], project_id, user_id, role_id)
                self.context.memberships.add(pair)
                result.imported += 1

        self.foreign_keys.mark_complete(MEMBERS_STAGE)
        result.success = True
        result.message = f"members: {result.imported} imported, {result.skipped} skipped" + (
            f", {result.resumed} already done" if result.resumed else ""
        )
        self.logger.success(result.message)
        return result
