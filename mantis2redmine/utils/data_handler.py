"""Data handler module for serialization and deserialization of data.

This module provides a consistent interface for loading and saving data,
with special handling for Pydantic models.
"""

import json
from pathlib import Path
from typing import Any, cast

from pydantic import BaseModel

from mantis2redmine import config
from mantis2redmine.models.migration_error import MigrationError


def _json_default(value: Any) -> Any:
    """Best-effort encoder for non-JSON-native objects."""
    if isinstance(value, Path):
        return str(value)
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json")
    if isinstance(value, bytes):
        return f"<{len(value)} bytes>"
    return str(value)


def _file_path(filename: str | Path, directory: str | Path | None) -> Path:
    if directory is None:
        directory = config.get_path("data")

    # Only the filename part of a full path is used
    return Path(directory) / Path(filename).name


def save_results(
    data: Any,
    filename: Path | str,
    directory: Path | str | None = None,
) -> Path:
    """Save a run result to the results directory."""
    if directory is None:
        directory = config.get_path("results")

    return save(data, filename, directory)


def save(
    data: Any,
    filename: str | Path,
    directory: str | Path | None = None,
    indent: int = 2,
    ensure_ascii: bool = False,
) -> Path:
    """Save data to a JSON file, automatically handling Pydantic models.

    Args:
        data: The data to save (Pydantic model or any JSON-serializable data)
        filename: Name of the file to save
        directory: Directory to save to (default: config.get_path("data"))
        indent: JSON indentation level
        ensure_ascii: Whether to escape non-ASCII characters

    Returns:
        Path of the written file

    Raises:
        MigrationError: If saving fails

    """
    filepath = _file_path(filename, directory)
    filepath.parent.mkdir(parents=True, exist_ok=True)

    if isinstance(data, BaseModel):
        data = data.model_dump(mode="json")

    try:
        with filepath.open("w", encoding="utf-8") as f:
            json.dump(
                data,
                f,
                indent=indent,
                ensure_ascii=ensure_ascii,
                default=_json_default,
            )
            f.write("\n")
    except OSError as e:
        msg = f"Failed to save data to {filepath}"
        raise MigrationError(msg) from e

    config.logger.debug("Saved data to %s", filepath)
    return filepath


def load[T: BaseModel](
    model_class: type[T],
    filename: str | Path,
    directory: str | Path | None = None,
) -> T:
    """Load data from a JSON file and convert to specified model type.

    Raises:
        FileNotFoundError: If the file doesn't exist
        MigrationError: If data loading or parsing fails

    """
    filepath = _file_path(filename, directory)

    if not filepath.exists():
        msg = f"File not found: {filepath}"
        raise FileNotFoundError(msg)

    try:
        with filepath.open("r", encoding="utf-8") as f:
            data = json.load(f)
        result = cast("T", model_class.model_validate(data))
    except Exception as e:
        msg = f"Failed to load data from {filepath}: {e}"
        raise MigrationError(msg) from e

    config.logger.debug("Loaded data from %s", filepath)
    return result
