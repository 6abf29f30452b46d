"""Relation migration: fixed relation type translation and issue relations."""

from mantis2redmine.clients.mantis_client import RELATION_TYPES
from mantis2redmine.display import ProgressTracker
from mantis2redmine.migrations.base_migration import BaseMigration, register_entity_types
from mantis2redmine.models import Candidate, ComponentResult, MappingTable
from mantis2redmine.type_definitions import EntityKind

RELATIONS_STAGE = "relations"
# Kind under which written relations are checkpointed, keyed by Mantis relationship id
RELATIONS_KIND = "issue_relations"

# Mantis relationship type -> Redmine relation_type
RELATION_TRANSLATION: dict[int, str] = {
    0: "duplicates",
    1: "relates",
    2: "blocked",
    3: "blocks",
    4: "duplicated",
}


@register_entity_types(EntityKind.RELATION_TYPE)
class RelationMigration(BaseMigration):
    """Relation types are translated without asking; relations follow the issues."""

    title = "Relation"
    allow_new = False

    def get_candidates(self) -> list[Candidate]:
        return [Candidate(old_id=code, label=label) for code, label in RELATION_TYPES.items()]

    def resolve(self) -> MappingTable:
        return self.context.resolver.translate(self.kind, self.get_candidates(), RELATION_TRANSLATION)

    def run(self) -> ComponentResult:
        result = ComponentResult(dry_run=self.dry_run)
        if self.foreign_keys.is_complete(RELATIONS_STAGE):
            self.logger.info("Relations already imported, skipping")
            result.success = True
            return result

        translation = self.mapping()
        rows = self.mantis.get_relations()
        result.total_count = len(rows)
        with ProgressTracker("Migrating relations", len(rows), "Recent relations") as tracker:
            for row in tracker.track(rows):
                if self.foreign_keys.has(RELATIONS_KIND, row["id"]):
                    result.resumed += 1
                    continue

                from_id = self.foreign_keys.get(EntityKind.ISSUE, row["source_bug_id"])
                to_id = self.foreign_keys.get(EntityKind.ISSUE, row["destination_bug_id"])
                relation_type = translation.target_id(row["relationship_type"])
                if from_id is None or to_id is None or relation_type is None:
                    self.logger.warning(
                        "Relation %s between %s and %s cannot be mapped, skipped",
                        row["id"],
                        row["source_bug_id"],
                        row["destination_bug_id"],
                    )
                    result.skipped += 1
                    continue

                relation_id = self._insert(
                    "issue_relations",
                    {"issue_from_id": from_id, "issue_to_id": to_id, "relation_type": relation_type},
                )
                self.foreign_keys.set(RELATIONS_KIND, row["id"], relation_id)
                result.imported += 1

        self.foreign_keys.mark_complete(RELATIONS_STAGE)
        result.success = True
        result.message = f"relations: {result.imported} imported, {result.skipped} skipped" + (
            f", {result.resumed} already done" if result.resumed else ""
        )
        self.logger.success(result.message)
        return result
