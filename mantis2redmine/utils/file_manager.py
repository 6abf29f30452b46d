"""Attachment storage.

Writes attachment payloads into the directory Redmine's ``files`` folder
is later filled from, and keeps track of what was written.
"""

from __future__ import annotations

from pathlib import Path

from mantis2redmine import config
from mantis2redmine.models.migration_error import MigrationError

logger = config.logger


class AttachmentSink:
    """Blob sink for attachment payloads.

    ``put`` writes the bytes under the given name and returns the size on
    disk, which is what the target records as the attachment size.
    """

    def __init__(self, base_dir: str | Path) -> None:
        self.base_dir = Path(base_dir)
        self.written: list[Path] = []

    def put(self, filename: str, data: bytes | str | None) -> int:
        # Only the name part is used; disk names come from the source database
        target = self.base_dir / Path(filename).name
        payload = data.encode("utf-8") if isinstance(data, str) else (data or b"")

        try:
            self.base_dir.mkdir(parents=True, exist_ok=True)
            target.write_bytes(payload)
        except OSError as e:
            msg = f"Cannot open attachment file '{target}' for write: {e}"
            raise MigrationError(msg) from e

        self.written.append(target)
        logger.debug("Wrote attachment %s (%d bytes)", target, len(payload))
        return target.stat().st_size
