"""Pump history importer — one incremental import run.

Streams the decoded dump through the category filter, the watermark
check and normalization, buckets accepted records (auditing each one as
it is accepted), then writes the three assembled collections.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from pumpsync.core.audit.logger import AuditSink
from pumpsync.core.storage.repository import FlushReport, ImportRepository
from pumpsync.domains.pump.connectors import RawRecord, RecordDecoder
from pumpsync.domains.pump.domain_logic.buckets import BucketAssembler
from pumpsync.domains.pump.domain_logic.categories import accept
from pumpsync.domains.pump.domain_logic.models import AssembledCollections
from pumpsync.domains.pump.domain_logic.normalizer import Normalizer
from pumpsync.domains.pump.domain_logic.watermark import WatermarkResolver

logger = logging.getLogger(__name__)


@dataclass
class ImportSummary:
    """What a run did, for logging and tests."""

    watermark: int | None
    decoded: int = 0
    ignored: int = 0
    stale: int = 0  # at or before the watermark, or unreadable time
    unrouted: int = 0
    accepted: int = 0
    bucket_counts: dict[str, int] = field(default_factory=dict)
    collections: AssembledCollections = field(default_factory=AssembledCollections)
    purged: dict[str, int] | None = None
    flush_report: FlushReport | None = None  # None on dry runs


@dataclass
class ImportContext:
    """Per-run state handed to every record."""

    normalizer: Normalizer
    assembler: BucketAssembler
    audit: AuditSink
    summary: ImportSummary


class PumpImporter:
    """Runs one incremental import.

    Usage::

        importer = PumpImporter(decoder, repository, "dump.jsonl", "result.json", dry_run=False)
        summary = await importer.run()
    """

    def __init__(
        self,
        decoder: RecordDecoder,
        repository: ImportRepository,
        dump_path: str,
        result_path: str,
        *,
        dry_run: bool = True,
        purge_before_import: bool = False,
        allow_initial_import: bool = False,
    ) -> None:
        self._decoder = decoder
        self._repository = repository
        self._dump_path = dump_path
        self._result_path = result_path
        self._dry_run = dry_run
        self._purge_before_import = purge_before_import
        self._allow_initial_import = allow_initial_import

    async def run(self) -> ImportSummary:
        """Import every new record in the dump.

        Raises:
            NoPriorImportError: If no watermark can be established.
            DumpDecodeError: If the dump cannot be decoded.
        """
        logger.info(
            "Starting import of %s (%s%s)",
            self._dump_path,
            "dry run" if self._dry_run else "commit",
            ", purge before insert" if self._purge_before_import else "",
        )
        watermark = await self._resolve_watermark()

        summary = ImportSummary(watermark=watermark)
        assembler = BucketAssembler()
        with AuditSink(self._result_path) as audit:
            context = ImportContext(
                normalizer=Normalizer(watermark),
                assembler=assembler,
                audit=audit,
                summary=summary,
            )

            async def on_record(raw: RawRecord) -> None:
                self._handle(context, raw)

            await self._decoder.decode(self._dump_path, on_record)

        summary.bucket_counts = assembler.counts()
        summary.collections = assembler.assemble()
        logger.info(
            "Decoded %d records: %d accepted, %d ignored, %d already imported, %d unrouted",
            summary.decoded, summary.accepted, summary.ignored, summary.stale, summary.unrouted,
        )

        # Only purge once the whole dump has decoded.
        if self._purge_before_import:
            summary.purged = await self._purge()

        if self._dry_run:
            logger.warning(
                "Dry run: %d documents not written to the store",
                summary.collections.total(),
            )
        else:
            summary.flush_report = await self._repository.insert_collections(summary.collections)
        return summary

    @staticmethod
    def _handle(context: ImportContext, raw: RawRecord) -> None:
        summary = context.summary
        summary.decoded += 1
        if not accept(raw.category):
            summary.ignored += 1
            return
        record = context.normalizer.normalize(raw.category, raw.fields)
        if record is None:
            summary.stale += 1
            return
        if not context.assembler.append(record):
            summary.unrouted += 1
            return
        context.audit.record(record)
        summary.accepted += 1

    async def _purge(self) -> dict[str, int] | None:
        if self._dry_run:
            logger.warning("Dry run: skipping purge of pump documents")
            return None
        return await self._repository.purge_pump_records()

    async def _resolve_watermark(self) -> int | None:
        # A purge means a full re-import; the download markers go with it.
        if self._purge_before_import:
            logger.info("Purge requested; importing without a watermark")
            return None
        resolver = WatermarkResolver(
            self._repository, allow_initial_import=self._allow_initial_import
        )
        return await resolver.resolve()
