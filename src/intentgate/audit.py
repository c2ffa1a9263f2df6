"""
Guardian Audit Log

Append-only JSON-lines file. Each record is serialized up front and written
with a single os.write() on an O_APPEND descriptor, so concurrent writers
never interleave within a record and an interrupted run leaves every
completed record intact.
"""

import json
import logging
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Union

logger = logging.getLogger(__name__)

# Per-checker diagnostics are truncated to keep records bounded
MAX_DIAGNOSTICS_CHARS = 4000


def truncate(text: str, limit: int = MAX_DIAGNOSTICS_CHARS) -> str:
    if len(text) <= limit:
        return text
    return text[:limit] + f"\n... [{len(text) - limit} more characters]"


class AuditLog:
    """
    Append-only audit trail for guardian cycles.

    Attributes:
        path: Log file location (parent directories are created on first write)
    """

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    def append(self, record: dict[str, Any]) -> None:
        """
        Append one record.

        A ``timestamp`` field is added when missing.

        Raises:
            OSError: If the log cannot be written
        """
        entry = dict(record)
        entry.setdefault("timestamp", datetime.now(timezone.utc).isoformat())
        line = (json.dumps(entry, default=str) + "\n").encode("utf-8")

        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd = os.open(self.path, os.O_WRONLY | os.O_APPEND | os.O_CREAT, 0o644)
        try:
            os.write(fd, line)
        finally:
            os.close(fd)

    def read_records(self) -> list[dict[str, Any]]:
        """Read all records; unparseable lines are skipped with a warning."""
        if not self.path.exists():
            return []

        records = []
        with open(self.path, "r", encoding="utf-8") as f:
            for line_number, line in enumerate(f, start=1):
                line = line.strip()
                if not line:
                    continue
                try:
                    records.append(json.loads(line))
                except json.JSONDecodeError:
                    logger.warning(f"Skipping corrupt audit record at {self.path}:{line_number}")
        return records
