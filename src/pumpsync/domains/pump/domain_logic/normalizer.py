"""Per-category normalization of decoded pump records.

Turns a decoder record into a ``NormalizedRecord``: the native time is
converted to epoch milliseconds and compared with the watermark, noise
fields are stripped, and the pump source marker is stamped.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Mapping

from pumpsync.domains.pump.domain_logic.categories import rule_for
from pumpsync.domains.pump.domain_logic.models import NormalizedRecord

logger = logging.getLogger(__name__)

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
_ONE_MS = timedelta(milliseconds=1)


def to_epoch_millis(value: Any) -> int | None:
    """Convert a record time to integer milliseconds since the epoch.

    Accepts ISO 8601 strings (``Z`` suffix allowed), datetimes and numbers
    already in milliseconds. Naive times are taken as UTC.

    Returns:
        Milliseconds, or None if the value cannot be interpreted.
    """
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return int(value)
    if isinstance(value, str):
        text = value.strip()
        if text.endswith(("Z", "z")):
            text = text[:-1] + "+00:00"
        try:
            value = datetime.fromisoformat(text)
        except ValueError:
            return None
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return (value - _EPOCH) // _ONE_MS
    return None


class Normalizer:
    """Normalizes records newer than the watermark.

    Usage::

        normalizer = Normalizer(watermark=1704067200000)
        record = normalizer.normalize("BOLUS", fields)  # None if rejected
    """

    def __init__(self, watermark: int | None) -> None:
        """Initialize with the run's watermark.

        Args:
            watermark: Epoch-millisecond cutoff; records at or before it are
                rejected. None accepts every timestamp.
        """
        self._watermark = watermark

    @property
    def watermark(self) -> int | None:
        return self._watermark

    def is_new(self, timestamp: int) -> bool:
        return self._watermark is None or timestamp > self._watermark

    def normalize(self, category: str, fields: Mapping[str, Any]) -> NormalizedRecord | None:
        """Return the normalized record, or None if it is already imported."""
        timestamp = to_epoch_millis(fields.get("timestamp"))
        if timestamp is None:
            logger.warning(
                "Dropping %s record with unreadable timestamp %r",
                category, fields.get("timestamp"),
            )
            return None
        if not self.is_new(timestamp):
            return None

        rule = rule_for(category)
        removed = rule.all_removed
        out = {
            key: value
            for key, value in fields.items()
            if key not in removed
            and not (key in rule.removed_if_zero and value == 0)
        }
        out["timestamp"] = timestamp
        out["source"] = True
        if rule.marker:
            out["type"] = rule.name
        return NormalizedRecord(category=rule.name, fields=out)
