"""Models package for data structures used in the application."""

from mantis2redmine.models.component_results import ComponentResult
from mantis2redmine.models.mapping import (
    CREATE_NEW,
    CREATE_NEW_ID,
    Candidate,
    MappingEntry,
    MappingTable,
    TargetOption,
)
from mantis2redmine.models.migration_error import (
    ConfigurationError,
    MigrationError,
    PrerequisiteMissingError,
    ResolutionInputError,
)
from mantis2redmine.models.migration_options import MigrationOptions
from mantis2redmine.models.migration_results import MigrationReport, MigrationResult

__all__ = [
    "CREATE_NEW",
    "CREATE_NEW_ID",
    "Candidate",
    "ComponentResult",
    "ConfigurationError",
    "MappingEntry",
    "MappingTable",
    "MigrationError",
    "MigrationOptions",
    "MigrationReport",
    "MigrationResult",
    "PrerequisiteMissingError",
    "ResolutionInputError",
    "TargetOption",
]
