"""Migration result models for tracking overall migration operations."""

from collections.abc import Iterator
from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, Field

from mantis2redmine.models.component_results import ComponentResult


class MigrationReport(BaseModel):
    """Additive tally of migrated and created records.

    Each stage returns a ComponentResult; the orchestrator merges those
    here instead of mutating shared counters.
    """

    counts: dict[str, int] = Field(default_factory=dict)

    def add(self, key: str, n: int = 1) -> None:
        self.counts[key] = self.counts.get(key, 0) + n

    def get(self, key: str) -> int:
        return self.counts.get(key, 0)

    def merge(self, component: str, result: ComponentResult) -> None:
        """Fold one stage's counters into the report."""
        if result.created:
            self.add(f"{component}.created", result.created)
        if result.reused:
            self.add(f"{component}.reused", result.reused)
        if result.imported:
            self.add(f"{component}.imported", result.imported)
        if result.skipped:
            self.add(f"{component}.skipped", result.skipped)
        if result.resumed:
            self.add(f"{component}.resumed", result.resumed)
        for nested, n in result.nested.items():
            self.add(nested, n)

    def rows(self) -> Iterator[tuple[str, str, int]]:
        """Yield ``(entity, counter, value)`` in insertion order."""
        for key, value in self.counts.items():
            entity, _, counter = key.partition(".")
            yield entity, counter or "imported", value


class MigrationResult(BaseModel):
    """Represents the overall result of a migration operation."""

    components: dict[str, ComponentResult] = Field(default_factory=dict)
    report: MigrationReport = Field(default_factory=MigrationReport)
    overall: dict[str, Any] = Field(default_factory=dict)

    def __init__(self, **data: Any) -> None:
        super().__init__(**data)

        self.overall.setdefault("status", "success")
        self.overall.setdefault("start_time", datetime.now(tz=UTC).isoformat())
        self.overall.setdefault("timestamp", datetime.now(tz=UTC).strftime("%Y-%m-%d_%H-%M-%S"))
