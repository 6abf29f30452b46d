"""Defines exceptions for the migration process."""


class MigrationError(Exception):
    """Base exception for migration errors.

    Should be used when a migration component encounters an error
    that prevents it from continuing execution.
    """

    def __init__(self, message: str, *args: object) -> None:
        """Initialize the exception with a descriptive message.

        Args:
            message: Detailed error message
            *args: Additional positional arguments for Exception

        """
        super().__init__(message, *args)
        self.message = message


class PrerequisiteMissingError(MigrationError):
    """Source or target lacks the rows a stage cannot do without."""


class ResolutionInputError(MigrationError):
    """An override command named an unknown source or target entry."""


class ConfigurationError(MigrationError):
    """A configuration value is outside its allowed set."""
