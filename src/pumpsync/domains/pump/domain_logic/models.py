"""Data models for the pump record pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Mapping


@dataclass(frozen=True)
class NormalizedRecord:
    """A decoded record after filtering and field cleanup.

    ``fields`` is copied on construction and exposed read-only, so a
    record never aliases the decoder's mapping.
    """

    category: str  # lowercase, e.g. 'bolus'
    fields: Mapping[str, Any]

    def __post_init__(self) -> None:
        object.__setattr__(self, "fields", MappingProxyType(dict(self.fields)))

    @property
    def timestamp(self) -> int:
        """Milliseconds since the epoch."""
        return self.fields["timestamp"]

    def as_dict(self) -> dict[str, Any]:
        """Return a fresh, mutable copy of the fields."""
        return dict(self.fields)


@dataclass
class AssembledCollections:
    """The three document sequences written to the store."""

    glucose_readings: list[dict[str, Any]] = field(default_factory=list)
    treatment_events: list[dict[str, Any]] = field(default_factory=list)
    status_events: list[dict[str, Any]] = field(default_factory=list)

    def total(self) -> int:
        return (
            len(self.glucose_readings)
            + len(self.treatment_events)
            + len(self.status_events)
        )
