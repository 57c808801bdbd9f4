"""Tests for the command-line entry point."""

from __future__ import annotations

import asyncio
import logging

import pytest

from pumpsync.core.cli import main as cli
from pumpsync.core.config.settings import Settings
from pumpsync.core.storage.database import DatabaseError, PumpDatabase
from pumpsync.domains.pump.connectors.dump_reader import (
    ExternalCommandDecoder,
    JsonLinesDumpDecoder,
)


def _run(coro):
    loop = asyncio.new_event_loop()
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


def _settings(tmp_path, **overrides) -> Settings:
    values = {
        "dump_path": str(tmp_path / "dump.jsonl"),
        "result_path": str(tmp_path / "result.json"),
        "credentials_path": str(tmp_path / "secrets"),
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


class TestBuildDecoder:
    def test_json_lines_by_default(self, tmp_path):
        assert isinstance(cli.build_decoder(_settings(tmp_path)), JsonLinesDumpDecoder)

    def test_external_command_when_configured(self, tmp_path):
        decoder = cli.build_decoder(_settings(tmp_path, decoder_command="ibf-decode --json"))
        assert isinstance(decoder, ExternalCommandDecoder)


class TestImportDump:
    def test_commit_run_writes_store(self, tmp_path, fake_client, make_dump):
        make_dump([
            ("DOWNLOAD", {"timestamp": "2024-01-02T00:00:00Z"}),
            ("BOLUS", {"timestamp": "2024-01-02T01:00:00Z", "units": 3}),
        ])
        fake_client["cgm"]["devicestatus"].docs.append(
            {"type": "download", "timestamp": 1704067200000}
        )
        settings = _settings(tmp_path, dry_run=False)
        db = PumpDatabase("mongodb://fake", "cgm", client_factory=lambda uri: fake_client)

        summary = _run(cli.import_dump(settings, db))

        assert summary.accepted == 2
        assert summary.flush_report.inserted == {"treatments": 1, "devicestatus": 1}
        assert fake_client.closed is True

    def test_missing_credentials_is_fatal(self, tmp_path):
        with pytest.raises(DatabaseError):
            _run(cli.import_dump(_settings(tmp_path)))


class TestRun:
    def test_run_configures_logging_and_imports(self, monkeypatch, tmp_path, caplog):
        settings = _settings(tmp_path)
        calls = []

        async def fake_import(s):
            calls.append(s)
            from pumpsync.domains.pump.importer import ImportSummary

            return ImportSummary(watermark=None, accepted=4)

        monkeypatch.setattr(cli, "get_settings", lambda: settings)
        monkeypatch.setattr(cli, "import_dump", fake_import)
        with caplog.at_level(logging.INFO):
            cli.run()

        assert calls == [settings]
        assert "dry run, 4 records audited" in caplog.text
