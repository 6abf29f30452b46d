"""Validated migration settings."""

from typing import Any, Literal

from pydantic import BaseModel, Field, ValidationError

from mantis2redmine.models.migration_error import ConfigurationError


class MigrationOptions(BaseModel):
    """Settings the migration stages read, with the defaults of a stock Redmine."""

    category_source: Literal["categories", "trackers"] = "categories"
    attachment_dir: str = "attachments"
    attachments_out_of_band: bool = False
    version_lookup: Literal["name", "project"] = "name"
    tracker_id_feature: int = 2
    tracker_id_bug: int = 1
    feature_severity: int = 10
    done_status_codes: list[int] = Field(default_factory=lambda: [80, 90])
    closed_status_code: int = 90
    default_author_id: int = 2
    time_entry_activity_id: int = 9
    document_category_id: int = 7
    project_modules: list[str] = Field(
        default_factory=lambda: [
            "issue_tracking",
            "files",
            "calendar",
            "gantt",
            "documents",
            "time_tracking",
        ],
    )
    project_tracker_ids: list[int] = Field(default_factory=lambda: [1, 2])

    @classmethod
    def from_config(cls, migration_config: dict[str, Any]) -> "MigrationOptions":
        """Build options from the ``migration`` configuration section.

        Raises:
            ConfigurationError: If a value is outside its allowed set

        """
        known = {key: value for key, value in migration_config.items() if key in cls.model_fields}
        try:
            return cls.model_validate(known)
        except ValidationError as e:
            problems = "; ".join(
                f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}" for error in e.errors()
            )
            msg = f"Invalid migration configuration: {problems}"
            raise ConfigurationError(msg) from e
