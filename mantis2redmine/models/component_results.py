"""Component result models for tracking migration operations."""

from pydantic import BaseModel, Field


class ComponentResult(BaseModel):
    """Represents the result of a migration component.

    The counters feed the final report: ``created`` and ``reused`` for
    entities resolved through a mapping table, ``imported`` for content
    rows that are always written, ``skipped`` for rows that could not be
    linked to a migrated parent.
    """

    success: bool = False
    message: str = ""
    dry_run: bool = False
    total_count: int = 0
    created: int = 0
    reused: int = 0
    imported: int = 0
    skipped: int = 0
    # Already applied by an earlier, interrupted run
    resumed: int = 0
    # Nested rows written alongside the main entity, e.g. issue journals
    nested: dict[str, int] = Field(default_factory=dict)

    def count_nested(self, key: str, n: int = 1) -> None:
        """Add to the counter of a nested row kind."""
        self.nested[key] = self.nested.get(key, 0) + n
