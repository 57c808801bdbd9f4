"""Importer entry point — ``pumpsync`` or ``python -m pumpsync.core.cli.main``."""

from __future__ import annotations

import asyncio
import logging

from pumpsync.core.config.settings import Settings, get_settings
from pumpsync.core.storage.database import PumpDatabase
from pumpsync.core.storage.repository import ImportRepository
from pumpsync.domains.pump.connectors import RecordDecoder
from pumpsync.domains.pump.connectors.dump_reader import (
    ExternalCommandDecoder,
    JsonLinesDumpDecoder,
)
from pumpsync.domains.pump.importer import ImportSummary, PumpImporter

logger = logging.getLogger(__name__)


def build_decoder(settings: Settings) -> RecordDecoder:
    if settings.decoder_command:
        return ExternalCommandDecoder(settings.decoder_command)
    return JsonLinesDumpDecoder()


async def import_dump(settings: Settings, database: PumpDatabase | None = None) -> ImportSummary:
    """Run one import with the given settings."""
    database = database or PumpDatabase.from_settings(settings)
    async with database:
        importer = PumpImporter(
            build_decoder(settings),
            ImportRepository.from_settings(database, settings),
            settings.dump_path,
            settings.result_path,
            dry_run=settings.dry_run,
            purge_before_import=settings.purge_before_import,
            allow_initial_import=settings.allow_initial_import,
        )
        return await importer.run()


def _log_summary(summary: ImportSummary) -> None:
    report = summary.flush_report
    if report is None:
        logger.info("Done (dry run, %d records audited)", summary.accepted)
    elif report.ok:
        logger.info("Done: %s", report.inserted)
    else:
        logger.error("Done with insert failures: %s", report.failures)


def run() -> None:
    """Import the configured dump once and exit."""
    settings = get_settings()
    logging.basicConfig(level=getattr(logging, settings.pumpsync_log_level.upper(), logging.INFO))
    summary = asyncio.run(import_dump(settings))
    _log_summary(summary)


if __name__ == "__main__":
    run()
