"""Pump dump connectors — abstraction over the external history decoder."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Protocol, runtime_checkable


@dataclass(frozen=True)
class RawRecord:
    """One decoded history record, exactly as the decoder produced it."""

    category: str  # device event kind, e.g. 'BOLUS', 'BLOOD_GLUCOSE'
    fields: dict[str, Any]


RecordCallback = Callable[[RawRecord], Awaitable[None]]


@runtime_checkable
class RecordDecoder(Protocol):
    """Streams the records of a pump history dump.

    Implementations await ``on_record`` once per record, in file order,
    and return when the dump is exhausted. Any decode failure raises.
    """

    async def decode(self, dump_path: str, on_record: RecordCallback) -> int:
        """Decode ``dump_path`` and return the number of records yielded."""
        ...
