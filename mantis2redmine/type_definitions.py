"""Type definitions for the Mantis to Redmine migration.

This module contains the entity kinds and type aliases used throughout
the migration process.
"""

from enum import StrEnum
from typing import Any, Literal, TypedDict

type SourceRow = dict[str, Any]
type TargetRow = dict[str, Any]
type NewId = int | str
# Source key of a checkpointed record; composite keys are joined with ":"
type OldId = int | str
type ConfigValue = str | int | bool | list[Any] | None


class EntityKind(StrEnum):
    """Categories of migrated data.

    The value doubles as the name of the persisted mapping unit.
    """

    STATUS = "stati"
    PRIORITY = "priorities"
    ROLE = "roles"
    CUSTOM_FIELD_TYPE = "custom_fields"
    RELATION_TYPE = "relations"
    PROJECT = "projects"
    VERSION = "versions"
    CATEGORY = "categories"
    TRACKER = "trackers"
    USER = "users"
    ISSUE = "issues"


type CategorySource = Literal["categories", "trackers"]
type VersionLookup = Literal["name", "project"]


# "pass" is a keyword, hence the functional form
DatabaseConfig = TypedDict(
    "DatabaseConfig",
    {
        "url": str,
        "host": str,
        "port": int,
        "name": str,
        "login": str,
        "pass": str,
    },
    total=False,
)


type LogLevel = Literal[
    "DEBUG",
    "INFO",
    "NOTICE",
    "WARNING",
    "ERROR",
    "CRITICAL",
    "SUCCESS",
]


class MigrationConfig(TypedDict, total=False):
    """Configuration for the migration run."""

    log_level: LogLevel
    dry_run: bool
    load_maps: bool
    no_confirm: bool
    accept_proposals: bool
    category_source: CategorySource
    attachment_dir: str
    attachments_out_of_band: bool
    version_lookup: VersionLookup
    tracker_id_feature: int
    tracker_id_bug: int
    feature_severity: int
    done_status_codes: list[int]
    closed_status_code: int
    default_author_id: int
    time_entry_activity_id: int
    document_category_id: int
    project_modules: list[str]
    project_tracker_ids: list[int]


class Config(TypedDict):
    """Configuration for the config loader."""

    mantis: DatabaseConfig
    redmine: DatabaseConfig
    migration: MigrationConfig


type DirType = Literal[
    "data",
    "logs",
    "results",
    "root",
]
