"""Mappings module for persisting and restoring resolved mapping tables."""

from pathlib import Path

from mantis2redmine import config
from mantis2redmine.models.mapping import MappingTable
from mantis2redmine.type_definitions import EntityKind
from mantis2redmine.utils import data_handler

logger = config.logger


class MappingStore:
    """Persists one mapping table per entity kind as ``<kind>_mapping.json``.

    The files are plain indented JSON keyed by old id, so an operator can
    review or edit them between runs. Deleting a file forces the kind to
    be resolved again.
    """

    FILE_PATTERN = "{}_mapping.json"

    def __init__(self, data_dir: Path | None = None) -> None:
        self.data_dir: Path = data_dir if data_dir is not None else config.get_path("data")

    def path(self, kind: EntityKind) -> Path:
        return self.data_dir / self.FILE_PATTERN.format(kind.value)

    def has(self, kind: EntityKind) -> bool:
        return self.path(kind).exists()

    def save(self, table: MappingTable) -> Path:
        path = data_handler.save(table, self.path(table.kind).name, directory=self.data_dir)
        logger.notice("Saved %s mapping with %d entries to %s", table.kind.value, len(table), path)
        return path

    def load(self, kind: EntityKind) -> MappingTable:
        """Load the stored table for a kind.

        Raises:
            FileNotFoundError: If the kind was never stored
            MigrationError: If the file is not a valid mapping table

        """
        table = data_handler.load(MappingTable, self.path(kind).name, directory=self.data_dir)
        logger.notice("Loaded %s mapping with %d entries", kind.value, len(table))
        return table

    def remove(self, kind: EntityKind) -> bool:
        path = self.path(kind)
        if not path.exists():
            return False
        path.unlink()
        logger.debug("Removed stored %s mapping", kind.value)
        return True
