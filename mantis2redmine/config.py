"""Configuration module for the Mantis to Redmine migration.
Provides a centralized configuration interface using ConfigLoader.
"""

from pathlib import Path
from typing import Any

from mantis2redmine.config_loader import ConfigLoader
from mantis2redmine.display import configure_logging
from mantis2redmine.type_definitions import Config, DirType, LogLevel

# Create a singleton instance of ConfigLoader
_config_loader = ConfigLoader()

# Extract configuration sections for easy access
mantis_config = _config_loader.get_mantis_config()
redmine_config = _config_loader.get_redmine_config()
migration_config = _config_loader.get_migration_config()

# Set up the var directory structure
root_dir = Path(__file__).parent.parent
var_dir = root_dir / "var"

var_dirs: dict[DirType, Path] = {
    "root": var_dir,
    "data": var_dir / "data",
    "logs": var_dir / "logs",
    "results": var_dir / "results",
}

created_dirs = []
for dir_path in var_dirs.values():
    dir_existed = dir_path.exists()
    dir_path.mkdir(parents=True, exist_ok=True)
    if not dir_existed:
        created_dirs.append(f"Created directory: {dir_path}")
    else:
        created_dirs.append(f"Using existing directory: {dir_path}")

# Set up logging with rich
LOG_LEVEL: LogLevel = migration_config.get("log_level", "INFO")
log_file = var_dirs["logs"] / "migration.log"
logger = configure_logging(LOG_LEVEL, log_file)

for message in created_dirs:
    logger.debug(message)

REQUIRED_DATABASE_KEYS = ("host", "name", "login", "pass")


def reload(config_file_path: Path) -> None:
    """Reload configuration from another YAML file.

    The section dictionaries are rebound, so callers must access them
    through this module rather than holding on to old references.
    """
    global _config_loader, mantis_config, redmine_config, migration_config, logger

    _config_loader = ConfigLoader(config_file_path)
    mantis_config = _config_loader.get_mantis_config()
    redmine_config = _config_loader.get_redmine_config()
    migration_config = _config_loader.get_migration_config()
    logger = configure_logging(migration_config.get("log_level", "INFO"), log_file)
    logger.debug("Reloaded configuration from %s", config_file_path)


def get_config() -> Config:
    """Get the complete configuration object."""
    return _config_loader.get_config()


def get_path(path_type: DirType) -> Path:
    """Get a specific path from var_dirs."""
    if path_type not in var_dirs:
        msg = f"Invalid path type: {path_type}"
        raise ValueError(msg)

    return var_dirs[path_type]


def validate_config() -> bool:
    """Validate that both database connections are configured."""
    missing_vars = []

    for section, prefix in (("mantis", "M2R_MANTIS_"), ("redmine", "M2R_REDMINE_")):
        match section:
            case "mantis":
                config_section = mantis_config
            case _:
                config_section = redmine_config

        # A full URL makes the individual keys unnecessary
        if config_section.get("url"):
            continue

        for key in REQUIRED_DATABASE_KEYS:
            if not config_section.get(key):
                missing_vars.append(f"{prefix}{key.upper()}")

    if missing_vars:
        logger.error(
            "Missing required configuration variables: %s", ", ".join(missing_vars),
        )
        return False

    return True


def update_from_cli_args(args: Any) -> None:
    """Update configuration from CLI arguments.

    Args:
        args: An object containing CLI arguments (typically from argparse)

    """
    if getattr(args, "dry_run", False):
        migration_config["dry_run"] = True
        logger.debug("Setting dry_run=True from CLI arguments")

    if getattr(args, "load_maps", False):
        migration_config["load_maps"] = True
        logger.debug("Setting load_maps=True from CLI arguments")

    if getattr(args, "no_confirm", False):
        migration_config["no_confirm"] = True
        logger.debug("Setting no_confirm=True from CLI arguments")

    if getattr(args, "accept_proposals", False):
        migration_config["accept_proposals"] = True
        logger.debug("Setting accept_proposals=True from CLI arguments")

    if getattr(args, "category_source", None):
        migration_config["category_source"] = args.category_source
        logger.debug("Setting category_source=%s from CLI arguments", args.category_source)

    if getattr(args, "attachment_dir", None):
        migration_config["attachment_dir"] = args.attachment_dir
        logger.debug("Setting attachment_dir=%s from CLI arguments", args.attachment_dir)

    if getattr(args, "mantis_url", None):
        mantis_config["url"] = args.mantis_url
        logger.debug("Setting Mantis database URL from CLI arguments")

    if getattr(args, "redmine_url", None):
        redmine_config["url"] = args.redmine_url
        logger.debug("Setting Redmine database URL from CLI arguments")
