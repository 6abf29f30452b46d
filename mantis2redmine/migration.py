"""Master migration module for the Mantis to Redmine migration.

Every entity kind is resolved first, so that missing prerequisites and
operator decisions come up before anything is written. The resolved
mappings are then applied in dependency order and the stage results are
folded into one report.
"""

from datetime import UTC, datetime
from pathlib import Path

from rich.console import Console
from rich.table import Table

from mantis2redmine import config
from mantis2redmine.clients.exceptions import ClientError
from mantis2redmine.clients.mantis_client import MantisClient
from mantis2redmine.clients.redmine_client import RedmineClient
from mantis2redmine.display import console as default_console
from mantis2redmine.mappings.foreign_keys import ForeignKeyMap
from mantis2redmine.mappings.mappings import MappingStore
from mantis2redmine.mappings.resolver import (
    AcceptAllCommandSource,
    CommandSource,
    MappingResolver,
)
from mantis2redmine.migrations.base_migration import (
    BaseMigration,
    EntityTypeRegistry,
    MigrationContext,
)

# Imported for their registrations
from mantis2redmine.migrations import (  # noqa: F401
    category_migration,
    custom_field_migration,
    issue_migration,
    priority_migration,
    project_migration,
    relation_migration,
    role_migration,
    status_migration,
    tracker_migration,
    user_migration,
    version_migration,
)
from mantis2redmine.migrations.member_migration import MemberMigration
from mantis2redmine.models import MigrationError, MigrationOptions, MigrationResult
from mantis2redmine.type_definitions import EntityKind
from mantis2redmine.utils import data_handler
from mantis2redmine.utils.file_manager import AttachmentSink

CHECKPOINT_FILE = "foreign_keys.jsonl"

REBUILD_HINT = (
    "You have to REBUILD THE PROJECT TREE by running the 2 following commands "
    "from the Redmine rails console:\n"
    "    Project.update_all :lft => nil, :rgt => nil\n"
    "    Project.rebuild!(false)"
)


def category_kind(options: MigrationOptions) -> EntityKind:
    """Mantis categories become either issue categories or trackers."""
    if options.category_source == "trackers":
        return EntityKind.TRACKER
    return EntityKind.CATEGORY


def resolution_order(options: MigrationOptions) -> list[EntityKind]:
    return [
        EntityKind.STATUS,
        EntityKind.PRIORITY,
        EntityKind.ROLE,
        EntityKind.CUSTOM_FIELD_TYPE,
        EntityKind.RELATION_TYPE,
        EntityKind.PROJECT,
        EntityKind.VERSION,
        category_kind(options),
        EntityKind.USER,
    ]


def apply_order(options: MigrationOptions) -> list[EntityKind | str]:
    """Stages in the order they write; every stage only needs the ones before it."""
    return [
        EntityKind.USER,
        EntityKind.STATUS,
        EntityKind.PRIORITY,
        EntityKind.ROLE,
        EntityKind.PROJECT,
        MemberMigration.stage,
        EntityKind.VERSION,
        category_kind(options),
        EntityKind.ISSUE,
        EntityKind.RELATION_TYPE,
        EntityKind.CUSTOM_FIELD_TYPE,
    ]


def build_foreign_keys(checkpoint_path: Path, dry_run: bool, resume: bool) -> ForeignKeyMap:
    """Create the foreign key map for a run.

    Resuming replays the checkpoint. A preview never writes to it, and a
    live run that does not resume starts a fresh one.
    """
    if resume:
        foreign_keys = ForeignKeyMap.restore(checkpoint_path)
        if dry_run:
            foreign_keys.checkpoint_path = None
        return foreign_keys

    if dry_run:
        return ForeignKeyMap()

    foreign_keys = ForeignKeyMap(checkpoint_path)
    foreign_keys.reset()
    return foreign_keys


class Migration:
    """Runs the resolution and apply phases over a shared context."""

    def __init__(self, context: MigrationContext) -> None:
        self.context = context
        self.logger = config.logger
        self._stages: dict[EntityKind | str, BaseMigration] = {}

    def stage(self, name: EntityKind | str) -> BaseMigration:
        if name not in self._stages:
            if name == MemberMigration.stage:
                self._stages[name] = MemberMigration(self.context)
            else:
                migration_class = EntityTypeRegistry.get_class_for_type(EntityKind(name))
                self._stages[name] = migration_class(self.context)
        return self._stages[name]

    def resolve_all(self) -> None:
        for kind in resolution_order(self.context.options):
            self.stage(kind).resolve_mapping()

    def apply_all(self, result: MigrationResult) -> None:
        for name in apply_order(self.context.options):
            stage = self.stage(name)
            self.logger.info("Migrating %s", stage.name)
            component_result = stage.run()
            result.components[stage.name] = component_result
            result.report.merge(stage.name, component_result)

    def run(self, result: MigrationResult | None = None) -> MigrationResult:
        result = result if result is not None else MigrationResult()
        result.overall["dry_run"] = self.context.dry_run
        result.overall["resume"] = self.context.resume

        self.resolve_all()
        self.apply_all(result)

        result.overall["target_writes"] = self.context.redmine.write_count
        return result


def render_report(
    result: MigrationResult,
    dry_run: bool,
    attachment_dir: str,
    console: Console = default_console,
) -> None:
    """Print the per entity counters and the closing hints."""
    counters: list[str] = []
    entities: dict[str, dict[str, int]] = {}
    for entity, counter, value in result.report.rows():
        entities.setdefault(entity, {})[counter] = value
        if counter not in counters:
            counters.append(counter)

    table = Table(title="Migration summary")
    table.add_column("Entity")
    for counter in counters:
        table.add_column(counter.capitalize(), justify="right")
    for entity, values in entities.items():
        table.add_row(entity.replace("_", " ").capitalize(), *(str(values.get(c, 0)) for c in counters))
    console.print(table)

    if dry_run:
        console.print("[bold yellow]** NOTHING PERFORMED, JUST A DRY RUN! **[/]")
        return

    console.print("[bold green]** Import completed, have fun! **[/]")
    console.print(
        f"You should copy now all extracted files from '{attachment_dir}/' to the attachment "
        "directory of Redmine (usually 'files' in the Redmine install dir)",
        markup=False,
    )
    console.print(REBUILD_HINT, markup=False)


def run_migration(
    dry_run: bool = False,
    resume: bool = False,
    accept_proposals: bool = False,
    command_source: CommandSource | None = None,
    mantis: MantisClient | None = None,
    redmine: RedmineClient | None = None,
    options: MigrationOptions | None = None,
    data_dir: Path | None = None,
    results_dir: Path | None = None,
    console: Console = default_console,
) -> MigrationResult:
    """Run a complete migration.

    Clients and options default to the loaded configuration. Fatal errors
    are recorded in the saved results and raised again.

    Raises:
        MigrationError: If a prerequisite is missing or a value is invalid
        ClientError: If a database cannot be reached, read or written

    """
    migration_timestamp = datetime.now(tz=UTC).strftime("%Y-%m-%d_%H-%M-%S")
    options = options or MigrationOptions.from_config(config.migration_config)
    data_dir = data_dir or config.get_path("data")

    if command_source is None and accept_proposals:
        command_source = AcceptAllCommandSource()

    mantis = mantis or MantisClient(db_config=config.mantis_config)
    redmine = redmine or RedmineClient(db_config=config.redmine_config)

    results = MigrationResult()
    try:
        mantis.connect()
        redmine.connect()

        context = MigrationContext(
            mantis=mantis,
            redmine=redmine,
            store=MappingStore(data_dir),
            foreign_keys=build_foreign_keys(data_dir / CHECKPOINT_FILE, dry_run, resume),
            resolver=MappingResolver(command_source, console),
            blob_sink=AttachmentSink(options.attachment_dir),
            options=options,
            dry_run=dry_run,
            resume=resume,
        )
        if dry_run:
            config.logger.warning("Preview mode: nothing will be written to Redmine")

        Migration(context).run(results)
    except (MigrationError, ClientError) as e:
        results.overall["status"] = "failed"
        results.overall["error"] = str(e)
        raise
    finally:
        results.overall["end_time"] = datetime.now(tz=UTC).isoformat()
        results_file = data_handler.save_results(
            results,
            f"migration_results_{migration_timestamp}.json",
            directory=results_dir,
        )
        config.logger.info("Migration results saved to %s", results_file)

    render_report(results, dry_run, options.attachment_dir, console)
    config.logger.success("Migration completed")
    return results
