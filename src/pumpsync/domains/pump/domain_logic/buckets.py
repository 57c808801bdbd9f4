"""Bucket assembly — routes normalized records into the target collections.

Records are collected per category in decode order, then folded into
the three collection shapes with a fixed cross-bucket order:
bolus then carb for treatments; activate, deactivate, download for
device status.
"""

from __future__ import annotations

import logging
from typing import Any

from pumpsync.domains.pump.domain_logic.models import AssembledCollections, NormalizedRecord

logger = logging.getLogger(__name__)

BUCKET_NAMES = ("blood_glucose", "bolus", "carb", "activate", "deactivate", "download")


def glucose_document(record: NormalizedRecord) -> dict[str, Any]:
    """Shape a blood glucose record as a glucose reading."""
    fields = record.fields
    return {
        "date": fields["timestamp"],
        "svg": fields.get("bgReading"),
        "source": fields["source"],
    }


def bolus_document(record: NormalizedRecord) -> dict[str, Any]:
    """Shape a bolus record as a treatment; unset extended durations are left out."""
    fields = record.fields
    doc: dict[str, Any] = {
        "timestamp": fields["timestamp"],
        "insulin": fields.get("units"),
    }
    if fields.get("extendedDurationMinutes"):
        doc["extendedDurationMinutes"] = fields["extendedDurationMinutes"]
    doc["source"] = fields["source"]
    return doc


def to_document(record: NormalizedRecord) -> dict[str, Any]:
    """Return the stored document for any routed record."""
    if record.category == "blood_glucose":
        return glucose_document(record)
    if record.category == "bolus":
        return bolus_document(record)
    return record.as_dict()


class BucketAssembler:
    """Owns the six per-category buckets for one import run.

    Mutated only from the importer's single record path.
    """

    def __init__(self) -> None:
        self._buckets: dict[str, list[NormalizedRecord]] = {name: [] for name in BUCKET_NAMES}
        self._unrouted: dict[str, int] = {}

    def append(self, record: NormalizedRecord) -> bool:
        """Add a record to its bucket.

        Returns:
            False if the category has no bucket; the record is dropped.
        """
        bucket = self._buckets.get(record.category)
        if bucket is None:
            if record.category not in self._unrouted:
                logger.warning("No bucket for category %r; records skipped", record.category)
            self._unrouted[record.category] = self._unrouted.get(record.category, 0) + 1
            return False
        bucket.append(record)
        return True

    def bucket(self, name: str) -> list[NormalizedRecord]:
        return list(self._buckets[name])

    def counts(self) -> dict[str, int]:
        return {name: len(records) for name, records in self._buckets.items()}

    @property
    def unrouted(self) -> dict[str, int]:
        return dict(self._unrouted)

    def assemble(self) -> AssembledCollections:
        """Fold the buckets into the three collection sequences."""
        b = self._buckets
        return AssembledCollections(
            glucose_readings=[glucose_document(r) for r in b["blood_glucose"]],
            treatment_events=(
                [bolus_document(r) for r in b["bolus"]]
                + [r.as_dict() for r in b["carb"]]
            ),
            status_events=[
                r.as_dict() for r in b["activate"] + b["deactivate"] + b["download"]
            ],
        )
