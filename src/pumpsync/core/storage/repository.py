"""Import repository — the store-facing side of a pump history import.

Mediates between the pipeline's assembled collections and the three
MongoDB collections (glucose readings, treatments, device status).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from pymongo import DESCENDING
from pymongo.errors import PyMongoError

from pumpsync.core.storage.database import PumpDatabase
from pumpsync.domains.pump.domain_logic.models import AssembledCollections

logger = logging.getLogger(__name__)

# Marker stamped on every document that came from the pump.
SOURCE_FIELD = "source"


@dataclass
class FlushReport:
    """Outcome of writing the assembled collections.

    Each collection is attempted independently; a failure on one never
    prevents the others from being written.
    """

    inserted: dict[str, int] = field(default_factory=dict)
    skipped: list[str] = field(default_factory=list)  # empty sequences
    failures: dict[str, str] = field(default_factory=dict)  # collection -> error

    @property
    def ok(self) -> bool:
        return not self.failures


class ImportRepository:
    """Watermark lookup, bulk inserts and purge for the import run.

    Usage::

        async with PumpDatabase(uri, "cgm") as db:
            repo = ImportRepository(db)
            latest = await repo.latest_download_timestamp()
            report = await repo.insert_collections(collections)
    """

    def __init__(
        self,
        database: PumpDatabase,
        *,
        glucose_collection: str = "bg",
        treatments_collection: str = "treatments",
        device_status_collection: str = "devicestatus",
    ) -> None:
        self._db = database
        self._glucose_name = glucose_collection
        self._treatments_name = treatments_collection
        self._device_status_name = device_status_collection

    @classmethod
    def from_settings(cls, database: PumpDatabase, settings: Any) -> ImportRepository:
        return cls(
            database,
            glucose_collection=settings.glucose_collection,
            treatments_collection=settings.treatments_collection,
            device_status_collection=settings.device_status_collection,
        )

    @property
    def collection_names(self) -> tuple[str, str, str]:
        return (self._glucose_name, self._treatments_name, self._device_status_name)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    async def latest_download_timestamp(self) -> Any | None:
        """Return the timestamp of the newest stored download event.

        Returns:
            The raw ``timestamp`` value, or None if no download event exists.
        """
        cursor = (
            self._db.collection(self._device_status_name)
            .find({"type": "download"}, {"_id": 0})
            .sort("timestamp", DESCENDING)
            .limit(1)
        )
        docs = await cursor.to_list(length=1)
        if not docs:
            return None
        return docs[0].get("timestamp")

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def insert_collections(self, collections: AssembledCollections) -> FlushReport:
        """Bulk-insert each non-empty sequence into its collection.

        Inserts run in order (glucose, treatments, device status). Each one
        is attempted even if an earlier one failed; failures are logged and
        collected in the returned report.
        """
        report = FlushReport()
        plan = (
            (self._glucose_name, collections.glucose_readings),
            (self._treatments_name, collections.treatment_events),
            (self._device_status_name, collections.status_events),
        )
        for name, documents in plan:
            if not documents:
                report.skipped.append(name)
                continue
            try:
                result = await self._db.collection(name).insert_many(documents)
            except PyMongoError as exc:
                logger.exception("Insert into %s failed (%d documents)", name, len(documents))
                report.failures[name] = f"{type(exc).__name__}: {exc}"
                continue
            report.inserted[name] = len(result.inserted_ids)
            logger.info("Inserted %d documents into %s", report.inserted[name], name)

        if report.failures:
            logger.error(
                "Insert failed for %d of %d collections: %s",
                len(report.failures),
                len(plan),
                ", ".join(sorted(report.failures)),
            )
        return report

    async def purge_pump_records(self) -> dict[str, int]:
        """Delete every pump-origin document from the three collections.

        Returns:
            Deleted count per collection.
        """
        deleted: dict[str, int] = {}
        for name in self.collection_names:
            result = await self._db.collection(name).delete_many({SOURCE_FIELD: True})
            deleted[name] = result.deleted_count
            logger.info("Purged %d pump documents from %s", result.deleted_count, name)
        return deleted
