"""Audit sink — newline-delimited JSON trail of every accepted record.

The file is truncated when the sink opens, so each run leaves a
self-contained trail. Every line is flushed as soon as it is written;
an interrupted run keeps everything accepted up to that point.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import IO, Any

from pumpsync.domains.pump.domain_logic.models import NormalizedRecord

logger = logging.getLogger(__name__)


def _encode(fields: dict[str, Any]) -> str:
    return json.dumps(fields, separators=(",", ":"), default=str)


class AuditSink:
    """Appends accepted records to the run's result file.

    Usage::

        with AuditSink("result.json") as audit:
            audit.record(normalized)
    """

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path).expanduser()
        self._fh: IO[str] | None = None
        self._count = 0

    @property
    def path(self) -> Path:
        return self._path

    @property
    def count(self) -> int:
        """Lines written since the sink was opened."""
        return self._count

    def open(self) -> None:
        """Truncate (or create) the result file. Idempotent."""
        if self._fh is not None:
            return
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._fh = self._path.open("w", encoding="utf-8")
        self._count = 0
        logger.info("Audit trail truncated: %s", self._path)

    def record(self, record: NormalizedRecord) -> None:
        """Append one record as a JSON line.

        Raises:
            RuntimeError: If the sink has not been opened.
        """
        if self._fh is None:
            raise RuntimeError("Audit sink not open. Call open() first.")
        self._fh.write(_encode(record.as_dict()) + "\n")
        self._fh.flush()
        self._count += 1

    def close(self) -> None:
        if self._fh is not None:
            self._fh.close()
            self._fh = None
            logger.info("Audit trail closed: %d records in %s", self._count, self._path)

    def __enter__(self) -> AuditSink:
        self.open()
        return self

    def __exit__(self, *args) -> None:
        self.close()


def read_audit_trail(path: str | Path) -> list[dict[str, Any]]:
    """Read a result file back, one dict per line, in write order."""
    with Path(path).open("r", encoding="utf-8") as fh:
        return [json.loads(line) for line in fh if line.strip()]
