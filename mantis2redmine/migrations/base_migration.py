"""Base migration class providing common functionality for all migrations."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any, ClassVar

from mantis2redmine import config
from mantis2redmine.clients.mantis_client import MantisClient
from mantis2redmine.clients.redmine_client import RedmineClient
from mantis2redmine.display import ProgressTracker
from mantis2redmine.mappings.foreign_keys import PLACEHOLDER_ID, ForeignKeyMap, composite_key
from mantis2redmine.mappings.mappings import MappingStore
from mantis2redmine.mappings.resolver import MappingResolver
from mantis2redmine.models import (
    CREATE_NEW,
    Candidate,
    ComponentResult,
    MappingEntry,
    MappingTable,
    MigrationOptions,
    PrerequisiteMissingError,
    TargetOption,
)
from mantis2redmine.type_definitions import EntityKind, NewId, TargetRow
from mantis2redmine.utils.file_manager import AttachmentSink

# Kind under which memberships are checkpointed, keyed by "<project>:<user>"
MEMBERS_KIND = "members"


class EntityTypeRegistry:
    """Registry mapping entity kinds to the migration class that handles them."""

    _type_to_class_map: ClassVar[dict[EntityKind, type[BaseMigration]]] = {}

    @classmethod
    def register(cls, migration_class: type[BaseMigration], kinds: list[EntityKind]) -> None:
        if not kinds:
            msg = f"Migration class {migration_class.__name__} must support at least one entity kind"
            raise TypeError(msg)

        for kind in kinds:
            existing = cls._type_to_class_map.get(kind)
            if existing is not None and existing is not migration_class:
                msg = f"Entity kind '{kind}' is already handled by {existing.__name__}"
                raise TypeError(msg)
            cls._type_to_class_map[kind] = migration_class

    @classmethod
    def get_class_for_type(cls, kind: EntityKind) -> type[BaseMigration]:
        try:
            return cls._type_to_class_map[kind]
        except KeyError:
            msg = f"No migration registered for entity kind '{kind}'"
            raise ValueError(msg) from None


def register_entity_types(*kinds: EntityKind):
    """Register the entity kinds a migration class handles.

    Example:
        @register_entity_types(EntityKind.USER)
        class UserMigration(BaseMigration):
            pass

    """

    def decorator(cls: type[BaseMigration]) -> type[BaseMigration]:
        EntityTypeRegistry.register(cls, list(kinds))
        cls.kind = kinds[0]
        return cls

    return decorator


class VersionIndex:
    """Finds a version's new id by name for issue linking.

    In ``name`` mode the index is keyed by name alone, so two projects
    with a version of the same name share one entry and the last one
    recorded wins. ``project`` mode keys by the source project as well.
    """

    def __init__(self, scope: str = "name") -> None:
        self.scope = scope
        self._ids: dict[tuple[int | None, str], NewId] = {}

    def _key(self, name: str, project_id: int | None) -> tuple[int | None, str]:
        return (project_id if self.scope == "project" else None, name[:30])

    def record(self, name: str, project_id: int | None, new_id: NewId) -> None:
        self._ids[self._key(name, project_id)] = new_id

    def lookup(self, name: str | None, project_id: int | None) -> NewId | None:
        if not name:
            return None
        return self._ids.get(self._key(name, project_id))


@dataclass
class MigrationContext:
    """Everything the stages of one run share."""

    mantis: MantisClient
    redmine: RedmineClient
    store: MappingStore
    foreign_keys: ForeignKeyMap
    resolver: MappingResolver
    blob_sink: AttachmentSink
    options: MigrationOptions = field(default_factory=MigrationOptions)
    dry_run: bool = False
    resume: bool = False
    tables: dict[EntityKind, MappingTable] = field(default_factory=dict)
    versions: VersionIndex | None = None
    # (old project id, old user id) pairs that already got a membership
    memberships: set[tuple[int, int]] = field(default_factory=set)

    def __post_init__(self) -> None:
        if self.versions is None:
            self.versions = VersionIndex(self.options.version_lookup)


def now() -> str:
    return datetime.now(tz=UTC).strftime("%Y-%m-%d %H:%M:%S")


class BaseMigration:
    """Base class for all migration classes.

    A migration resolves its entity kind into a mapping table (or loads
    the stored one when resuming) and then applies it: reused entries are
    recorded in the foreign key map as they are, create-new entries are
    written to Redmine first. Writes go through ``_insert``, ``_insert_row``
    and ``_update`` so a preview run executes the same code without
    touching the target.
    """

    kind: ClassVar[EntityKind]
    title: ClassVar[str] = ""
    # Name of a stage that is not an entity kind of its own, e.g. members
    stage: ClassVar[str] = ""
    allow_new: ClassVar[bool] = True

    def __init__(self, context: MigrationContext) -> None:
        self.context = context
        self.mantis = context.mantis
        self.redmine = context.redmine
        self.foreign_keys = context.foreign_keys
        self.options = context.options
        self.dry_run = context.dry_run
        self.logger = config.logger

    @property
    def name(self) -> str:
        return self.stage or self.kind.value

    # Resolution

    def get_candidates(self) -> list[Candidate]:
        """Source records of this kind as resolver candidates."""
        raise NotImplementedError

    def get_options(self) -> list[TargetOption]:
        """Existing target records of this kind."""
        raise NotImplementedError

    def get_default(self, options: list[TargetOption]) -> TargetOption:
        """Target proposed when nothing else matches."""
        return CREATE_NEW

    def resolve(self) -> MappingTable:
        """Run the resolver for this kind."""
        options = self.get_options()
        return self.context.resolver.resolve(
            self.kind,
            self.get_candidates(),
            options,
            self.get_default(options),
            allow_new=self.allow_new,
            title=self.title or None,
        )

    def resolve_mapping(self) -> MappingTable:
        """Return the mapping table for this kind.

        A stored table is reused when resuming; otherwise the resolver runs
        and its result replaces the stored one, also in preview mode.
        """
        store = self.context.store
        if self.context.resume and store.has(self.kind):
            table = store.load(self.kind)
            self.logger.info("Using stored %s mapping", self.name)
        else:
            table = self.resolve()
            store.save(table)

        self.context.tables[self.kind] = table
        return table

    def mapping(self) -> MappingTable:
        table = self.context.tables.get(self.kind)
        if table is None:
            table = self.resolve_mapping()
        return table

    # Apply

    def run(self) -> ComponentResult:
        """Apply the resolved mapping table."""
        return self._apply_entries(self.mapping())

    def create(self, entry: MappingEntry) -> NewId | None:
        """Write a new target record for a create-new entry.

        Returns None when the entry cannot be created; it then stays unmapped.
        A record with dependent rows records its id in the foreign key map
        itself, right after its own insert.
        """
        raise NotImplementedError

    def _after_entry(self, entry: MappingEntry, new_id: NewId | None, result: ComponentResult) -> None:
        """Hook run with the final id of every entry, including resumed ones.

        Only in-memory bookkeeping belongs here; writes go into ``create``.
        """

    def _apply_entries(self, table: MappingTable) -> ComponentResult:
        result = ComponentResult(dry_run=self.dry_run, total_count=len(table))

        with ProgressTracker(f"Migrating {self.name}", len(table), f"Recent {self.name}") as tracker:
            for entry in table.ordered():
                if entry.is_create_new and self.foreign_keys.has(self.kind, entry.old_id):
                    result.resumed += 1
                    self._after_entry(entry, self.foreign_keys.get(self.kind, entry.old_id), result)
                    tracker.increment()
                    continue

                if entry.is_create_new:
                    new_id = self.create(entry)
                    if new_id is None:
                        result.skipped += 1
                    else:
                        result.created += 1
                        tracker.add_log_item(f"{entry.label} created")
                else:
                    new_id = entry.target_id
                    result.reused += 1

                if new_id is not None:
                    self.foreign_keys.set(self.kind, entry.old_id, new_id)
                self._after_entry(entry, new_id, result)
                tracker.increment()

        result.success = True
        result.message = (
            f"{self.name}: {result.reused} migrated, {result.created} created"
            + (f", {result.resumed} already done" if result.resumed else "")
        )
        self.logger.success(result.message)
        return result

    # Target writes

    def _insert(self, table: str, values: dict[str, Any]) -> NewId:
        if self.dry_run:
            return PLACEHOLDER_ID
        return self.redmine.insert(table, values)

    def _insert_row(self, table: str, values: dict[str, Any]) -> None:
        if self.dry_run:
            return
        self.redmine.insert_row(table, values)

    def _update(self, table: str, values: dict[str, Any], where: dict[str, Any]) -> None:
        if self.dry_run:
            return
        self.redmine.update(table, values, where)

    def _store_blob(self, filename: str, content: bytes | str | None) -> int:
        if self.dry_run:
            return len(content or b"")
        return self.context.blob_sink.put(filename, content)

    def _insert_attachment(
        self,
        row: dict[str, Any],
        container_id: NewId,
        container_type: str,
        description: str | None,
    ) -> None:
        """Hand an inline payload to the blob sink and record the attachment."""
        disk_filename = str(row["diskfile"])
        size = self._store_blob(disk_filename, row.get("content"))
        self._insert(
            "attachments",
            {
                "container_id": container_id,
                "container_type": container_type,
                "filename": row["filename"],
                "disk_filename": disk_filename,
                "filesize": size,
                "content_type": row.get("file_type"),
                "description": description,
                "created_on": row.get("created_on"),
                "author_id": self._author(row.get("user_id")),
            },
        )

    def _add_member(
        self,
        old_project_id: int,
        old_user_id: int,
        project_id: NewId,
        user_id: NewId,
        role_id: NewId,
    ) -> None:
        """Write a membership with one role.

        The membership is checkpointed as soon as its row exists, keyed by
        the source project and user.
        """
        member_id = self._insert("members", {"project_id": project_id, "user_id": user_id, "created_on": now()})
        self.foreign_keys.set(MEMBERS_KIND, composite_key(old_project_id, old_user_id), member_id)
        self._insert("member_roles", {"member_id": member_id, "role_id": role_id})

    def _user(self, old_user_id: int | None, fallback: int | None = None) -> NewId | None:
        """New id of a source user, or ``fallback`` when unmapped."""
        new_id = self.foreign_keys.get(EntityKind.USER, old_user_id)
        return new_id if new_id is not None else fallback

    def _author(self, old_user_id: int | None) -> NewId:
        return self._user(old_user_id, self.options.default_author_id)  # type: ignore[return-value]


class EnumerationMigration(BaseMigration):
    """Maps a fixed Mantis enumeration onto a positioned Redmine table.

    The legend numbers of the target are positions; every source value
    carries the position suggested for it.
    """

    allow_new = False
    source: ClassVar[dict[int, tuple[str, int | None]]] = {}

    def get_targets(self) -> list[TargetRow]:
        raise NotImplementedError

    def get_candidates(self) -> list[Candidate]:
        return [
            Candidate(old_id=code, label=label, suggested_key=position)
            for code, (label, position) in self.source.items()
        ]

    def get_options(self) -> list[TargetOption]:
        return [
            TargetOption(key=row["position"], id=row["id"], label=row["name"])
            for row in self.get_targets()
        ]

    def default_position(self, options: list[TargetOption]) -> int:
        return 1

    def get_default(self, options: list[TargetOption]) -> TargetOption:
        position = self.default_position(options)
        for option in options:
            if option.key == position:
                return option
        msg = f"Redmine has no {self.title or self.name} at position {position} to use as default"
        raise PrerequisiteMissingError(msg)
