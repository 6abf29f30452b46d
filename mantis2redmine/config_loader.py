"""Configuration module for the Mantis to Redmine migration.

Handles loading and accessing configuration settings.
"""

import logging
import os
from pathlib import Path

import yaml
from dotenv import load_dotenv

from mantis2redmine.models.migration_options import MigrationOptions
from mantis2redmine.type_definitions import (
    Config,
    ConfigValue,
    DatabaseConfig,
    MigrationConfig,
)

# Set up basic logging for configuration loading phase
config_logger = logging.getLogger("config_loader")

ENV_PREFIX = "M2R"

LOG_LEVELS = ("DEBUG", "INFO", "NOTICE", "WARNING", "ERROR", "CRITICAL", "SUCCESS")

# Migration keys whose values are flags, so "1"/"0" from the environment mean yes/no
BOOLEAN_KEYS = frozenset(
    name for name, field in MigrationOptions.model_fields.items() if field.annotation is bool
)


def migration_defaults() -> MigrationConfig:
    """Defaults of the migration section, taken from the validated options model."""
    return {"log_level": "INFO", **MigrationOptions().model_dump()}  # type: ignore[typeddict-item]


def is_test_environment() -> bool:
    """Detect if code is running in a test environment.

    Returns:
        bool: True if running in a test environment, False otherwise

    """
    if "PYTEST_CURRENT_TEST" in os.environ:
        return True

    return os.environ.get("M2R_TEST_MODE", "").lower() in ("true", "1", "yes")


class ConfigLoader:
    """Loads configuration settings from YAML files and environment variables."""

    def __init__(self, config_file_path: Path = Path("config/config.yaml")) -> None:
        """Initialize the configuration loader.

        Args:
            config_file_path (Path): Path to the YAML configuration file

        """
        self.config_file_path = config_file_path

        self._load_environment_configuration()

        self.config: Config = self._load_yaml_config(config_file_path)

        # Initialize default structure if not present
        self.config.setdefault("mantis", {})
        self.config.setdefault("redmine", {})
        migration = self.config.setdefault("migration", {})
        for key, value in migration_defaults().items():
            migration.setdefault(key, value)

        self._apply_environment_overrides()

    def _load_environment_configuration(self) -> None:
        """Load environment variables from .env files based on execution context.

        The loading order respects precedence:
        - .env (base config for all environments)
        - .env.local (local overrides, if present)
        - .env.test and .env.test.local (only in a test environment)

        Later files override values from earlier files.
        """
        load_dotenv(".env")
        config_logger.debug("Loaded base environment from .env")

        if Path(".env.local").exists():
            load_dotenv(".env.local", override=True)
            config_logger.debug("Loaded local overrides from .env.local")

        if is_test_environment():
            config_logger.debug("Running in test environment")
            for env_file in (".env.test", ".env.test.local"):
                if Path(env_file).exists():
                    load_dotenv(env_file, override=True)
                    config_logger.debug("Loaded test environment from %s", env_file)

    def _load_yaml_config(self, config_file_path: Path) -> Config:
        """Load configuration from YAML file.

        A missing file yields an empty configuration; everything can then
        come from the environment.
        """
        try:
            with config_file_path.open("r", encoding="utf-8") as config_file:
                config = yaml.safe_load(config_file) or {}
        except FileNotFoundError:
            config_logger.debug("Config file not found: %s", config_file_path)
            return {}  # type: ignore[typeddict-item]

        if not isinstance(config, dict):
            msg = f"Config file {config_file_path} must contain a mapping"
            raise ValueError(msg)
        return config  # type: ignore[return-value]

    def _apply_environment_overrides(self) -> None:
        """Override configuration settings with environment variables."""
        for env_var, env_value in os.environ.items():
            if not env_var.startswith(f"{ENV_PREFIX}_"):
                continue

            match env_var.split("_"):
                case [_, "LOG", "LEVEL"]:
                    log_level = env_value.upper()
                    if log_level in LOG_LEVELS:
                        self.config["migration"]["log_level"] = log_level  # type: ignore[typeddict-item]
                    config_logger.debug("Applied log level: %s", log_level)

                case [_, "MANTIS", *rest] if rest:
                    key = "_".join(rest).lower()
                    self.config["mantis"][key] = self._convert_value(env_value)  # type: ignore[literal-required]
                    config_logger.debug("Applied Mantis config: %s", key)

                case [_, "REDMINE", *rest] if rest:
                    key = "_".join(rest).lower()
                    self.config["redmine"][key] = self._convert_value(env_value)  # type: ignore[literal-required]
                    config_logger.debug("Applied Redmine config: %s", key)

                case [_, "MIGRATION", *rest] if rest:
                    key = "_".join(rest).lower()
                    value = self._convert_value(env_value, flag=key in BOOLEAN_KEYS)
                    self.config["migration"][key] = value  # type: ignore[literal-required]
                    config_logger.debug("Applied migration config: %s=%s", key, env_value)

    def _convert_value(self, value: str, flag: bool = False) -> ConfigValue:
        """Convert string value to appropriate type.

        For a flag "1" and "0" are booleans, elsewhere digits are integers.
        """
        match value.lower():
            case "true" | "yes" | "y":
                return True
            case "false" | "no" | "n":
                return False
            case "1" | "0" if flag:
                return value == "1"
            case _ if value.isdigit():
                return int(value)
            case _:
                return value

    def get_config(self) -> Config:
        """Get the complete configuration dictionary."""
        return self.config

    def get_mantis_config(self) -> DatabaseConfig:
        """Get the source database configuration."""
        return self.config["mantis"]

    def get_redmine_config(self) -> DatabaseConfig:
        """Get the target database configuration."""
        return self.config["redmine"]

    def get_migration_config(self) -> MigrationConfig:
        """Get migration-specific configuration."""
        return self.config["migration"]
