"""Watermark resolution — the cutoff separating new records from imported ones."""

from __future__ import annotations

import logging
from typing import Any, Protocol

from pumpsync.domains.pump.domain_logic.normalizer import to_epoch_millis

logger = logging.getLogger(__name__)


class NoPriorImportError(Exception):
    """Raised when the store holds no download event to anchor the import."""


class DownloadHistory(Protocol):
    async def latest_download_timestamp(self) -> Any | None: ...


class WatermarkResolver:
    """Reads the newest stored download event's timestamp.

    Usage::

        resolver = WatermarkResolver(repository)
        watermark = await resolver.resolve()
    """

    def __init__(self, history: DownloadHistory, *, allow_initial_import: bool = False) -> None:
        """Initialize the resolver.

        Args:
            history: Source of the latest download timestamp (the repository).
            allow_initial_import: Return None instead of failing when no
                download event exists, so the whole dump is imported.
        """
        self._history = history
        self._allow_initial_import = allow_initial_import

    async def resolve(self) -> int | None:
        """Return the watermark in epoch milliseconds.

        Raises:
            NoPriorImportError: If no download event exists (or its timestamp
                is unreadable) and initial imports are not allowed.
        """
        raw = await self._history.latest_download_timestamp()
        watermark = to_epoch_millis(raw) if raw is not None else None

        if watermark is None:
            if raw is not None:
                logger.warning("Stored download timestamp %r is unreadable", raw)
            if not self._allow_initial_import:
                raise NoPriorImportError(
                    "No prior download event found; cannot establish an import "
                    "cutoff. Set ALLOW_INITIAL_IMPORT=true to import the full dump."
                )
            logger.info("No prior download event; importing every record")
            return None

        logger.info("Resolved watermark %d", watermark)
        return watermark
