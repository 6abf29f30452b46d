"""Old-id to new-id lookup tables filled while records are applied."""

import json
from pathlib import Path

from mantis2redmine import config
from mantis2redmine.models.mapping import CREATE_NEW_ID
from mantis2redmine.models.migration_error import MigrationError
from mantis2redmine.type_definitions import NewId, OldId

logger = config.logger

# Stands in for the id of a row a preview run would have created
PLACEHOLDER_ID = "NEW"


def composite_key(*old_ids: int) -> str:
    """Key for a record identified by several source ids, e.g. a project membership."""
    return ":".join(str(old_id) for old_id in old_ids)


def is_real(value: NewId | None) -> bool:
    """Tell whether a value is an id that exists in the target."""
    return isinstance(value, int) and not isinstance(value, bool) and value != CREATE_NEW_ID


class ForeignKeyMap:
    """One old-id to new-id table per entity kind.

    Entries are written once. With a checkpoint path every real id is
    appended to a JSON lines file as soon as it is known, together with
    markers for stages that finished; a resumed run replays that file and
    skips what it lists.
    """

    def __init__(self, checkpoint_path: Path | None = None) -> None:
        self.checkpoint_path = checkpoint_path
        self._maps: dict[str, dict[OldId, NewId]] = {}
        self._completed: set[str] = set()

    @classmethod
    def restore(cls, checkpoint_path: Path) -> "ForeignKeyMap":
        """Rebuild a map from a checkpoint file and keep appending to it."""
        fk_map = cls(checkpoint_path)
        if not checkpoint_path.exists():
            logger.debug("No checkpoint at %s, starting empty", checkpoint_path)
            return fk_map

        with checkpoint_path.open("r", encoding="utf-8") as f:
            for line_no, line in enumerate(f, start=1):
                if not line.strip():
                    continue
                try:
                    record = json.loads(line)
                except json.JSONDecodeError:
                    # A crash can leave the last line half written
                    logger.warning("Ignoring unreadable checkpoint line %d in %s", line_no, checkpoint_path)
                    continue
                if "stage" in record:
                    fk_map._completed.add(record["stage"])
                else:
                    fk_map._maps.setdefault(record["kind"], {})[record["old_id"]] = record["new_id"]

        logger.notice(
            "Restored checkpoint with %d ids and %d finished stages",
            sum(len(ids) for ids in fk_map._maps.values()),
            len(fk_map._completed),
        )
        return fk_map

    def reset(self) -> None:
        """Start a fresh checkpoint file."""
        self._maps.clear()
        self._completed.clear()
        if self.checkpoint_path is not None:
            self.checkpoint_path.parent.mkdir(parents=True, exist_ok=True)
            self.checkpoint_path.write_text("", encoding="utf-8")

    def _append(self, record: dict) -> None:
        if self.checkpoint_path is None:
            return
        with self.checkpoint_path.open("a", encoding="utf-8") as f:
            f.write(json.dumps(record) + "\n")

    def set(self, kind: str, old_id: OldId, new_id: NewId) -> None:
        """Record the new id of a source record.

        Raises:
            MigrationError: If the record already maps to a different id

        """
        ids = self._maps.setdefault(str(kind), {})
        current = ids.get(old_id)
        if current is not None:
            if current != new_id:
                msg = f"{kind} {old_id} is already mapped to {current}, refusing {new_id}"
                raise MigrationError(msg)
            return

        ids[old_id] = new_id
        if is_real(new_id):
            self._append({"kind": str(kind), "old_id": old_id, "new_id": new_id})

    def get(self, kind: str, old_id: OldId | None, default: NewId | None = None) -> NewId | None:
        if old_id is None:
            return default
        return self._maps.get(str(kind), {}).get(old_id, default)

    def require(self, kind: str, old_id: OldId) -> NewId:
        """Return the new id, failing when the record was never applied."""
        try:
            return self._maps[str(kind)][old_id]
        except KeyError:
            msg = f"No new id recorded for {kind} {old_id}"
            raise MigrationError(msg) from None

    def has(self, kind: str, old_id: OldId) -> bool:
        return old_id in self._maps.get(str(kind), {})

    def ids(self, kind: str) -> dict[OldId, NewId]:
        return dict(self._maps.get(str(kind), {}))

    def mark_complete(self, stage: str) -> None:
        if stage in self._completed:
            return
        self._completed.add(stage)
        self._append({"stage": stage})

    def is_complete(self, stage: str) -> bool:
        return stage in self._completed
