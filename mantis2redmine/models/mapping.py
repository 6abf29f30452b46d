"""Models for resolved source-to-target correspondences."""

from collections.abc import Iterator
from typing import Any

from pydantic import BaseModel, Field

from mantis2redmine.type_definitions import EntityKind, NewId

CREATE_NEW_ID = -1


class Candidate(BaseModel):
    """A source record offered to the resolver."""

    old_id: int
    label: str
    fields: dict[str, Any] = Field(default_factory=dict)
    # Legend number to fall back on when no label matches
    suggested_key: int | None = None


class TargetOption(BaseModel):
    """A target record the resolver may map a candidate onto.

    ``key`` is the number the operator types: the position for
    enumerations, the row id for everything else.
    """

    key: int
    id: NewId
    label: str
    fields: dict[str, Any] = Field(default_factory=dict)

    @property
    def is_create_new(self) -> bool:
        return self.id == CREATE_NEW_ID


CREATE_NEW = TargetOption(key=CREATE_NEW_ID, id=CREATE_NEW_ID, label="new")


class MappingEntry(BaseModel):
    """The target chosen for one source record.

    Carries the source label and fields so a create-new row can be built
    from a persisted table without querying the source again.
    """

    old_id: int
    label: str
    target_id: NewId
    target_label: str
    fields: dict[str, Any] = Field(default_factory=dict)

    @property
    def is_create_new(self) -> bool:
        return self.target_id == CREATE_NEW_ID

    @classmethod
    def choose(cls, candidate: Candidate, option: TargetOption) -> "MappingEntry":
        return cls(
            old_id=candidate.old_id,
            label=candidate.label,
            target_id=option.id,
            target_label=option.label,
            fields=candidate.fields,
        )


class MappingTable(BaseModel):
    """Finalized correspondence for one entity kind, keyed by old id."""

    kind: EntityKind
    entries: dict[int, MappingEntry] = Field(default_factory=dict)

    def __len__(self) -> int:
        return len(self.entries)

    def ordered(self) -> Iterator[MappingEntry]:
        """Yield entries by ascending old id."""
        for old_id in sorted(self.entries):
            yield self.entries[old_id]

    def __contains__(self, old_id: object) -> bool:
        return old_id in self.entries

    def entry(self, old_id: int) -> MappingEntry:
        return self.entries[old_id]

    def target_id(self, old_id: int) -> NewId | None:
        entry = self.entries.get(old_id)
        return entry.target_id if entry else None

    def create_new_ids(self) -> list[int]:
        return [entry.old_id for entry in self.ordered() if entry.is_create_new]

    def reused_ids(self) -> list[int]:
        return [entry.old_id for entry in self.ordered() if not entry.is_create_new]
