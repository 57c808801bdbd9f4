"""Decoder adapters for pump history dumps.

The binary IBF format is decoded by an external reader that hands each
record to a callback as ``{"recordType": ..., "record": {...}}``. The
adapters here consume that same shape as JSON lines, either from a file
that was decoded ahead of time or from the stdout of the external
decoder program.
"""

from __future__ import annotations

import asyncio
import json
import logging
import shlex
from pathlib import Path
from typing import Any, AsyncIterator

from pumpsync.domains.pump.connectors import RawRecord, RecordCallback

logger = logging.getLogger(__name__)


class DumpDecodeError(Exception):
    """Raised when a dump cannot be decoded."""


def parse_record_line(line: str, line_no: int) -> RawRecord:
    """Parse one decoded JSON line into a RawRecord.

    Raises:
        DumpDecodeError: If the line is not a JSON object with a string
            ``recordType`` and an object ``record``.
    """
    try:
        payload: Any = json.loads(line)
    except json.JSONDecodeError as exc:
        raise DumpDecodeError(f"Line {line_no}: invalid JSON: {exc}") from exc
    if not isinstance(payload, dict):
        raise DumpDecodeError(f"Line {line_no}: expected an object")

    category = payload.get("recordType")
    fields = payload.get("record")
    if not isinstance(category, str) or not category:
        raise DumpDecodeError(f"Line {line_no}: missing recordType")
    if not isinstance(fields, dict):
        raise DumpDecodeError(f"Line {line_no}: missing record object")
    return RawRecord(category=category, fields=fields)


async def _dispatch(lines: AsyncIterator[str], on_record: RecordCallback) -> int:
    count = 0
    line_no = 0
    try:
        async for line in lines:
            line_no += 1
            if not line.strip():
                continue
            await on_record(parse_record_line(line, line_no))
            count += 1
    except UnicodeDecodeError as exc:
        raise DumpDecodeError(f"Line {line_no + 1}: invalid UTF-8: {exc}") from exc
    return count


class JsonLinesDumpDecoder:
    """Reads a dump that has already been decoded to JSON lines.

    Usage::

        decoder = JsonLinesDumpDecoder()
        total = await decoder.decode("dump.jsonl", handle_record)
    """

    async def decode(self, dump_path: str, on_record: RecordCallback) -> int:
        path = Path(dump_path).expanduser()
        if not path.exists():
            raise DumpDecodeError(f"Dump file not found: {path}")

        async def _lines() -> AsyncIterator[str]:
            with path.open("r", encoding="utf-8") as fh:
                for line in fh:
                    yield line

        count = await _dispatch(_lines(), on_record)
        logger.info("Decoded %d records from %s", count, path)
        return count


class ExternalCommandDecoder:
    """Runs the external binary decoder and streams its JSON-lines output.

    The dump path is appended to ``command`` as the last argument.
    """

    def __init__(self, command: str) -> None:
        self._argv = shlex.split(command)
        if not self._argv:
            raise ValueError("Decoder command must not be empty")

    async def decode(self, dump_path: str, on_record: RecordCallback) -> int:
        path = Path(dump_path).expanduser()
        if not path.exists():
            raise DumpDecodeError(f"Dump file not found: {path}")

        try:
            proc = await asyncio.create_subprocess_exec(
                *self._argv,
                str(path),
                stdout=asyncio.subprocess.PIPE,
            )
        except FileNotFoundError as exc:
            raise DumpDecodeError(f"Decoder program not found: {self._argv[0]}") from exc
        if proc.stdout is None:
            raise DumpDecodeError(f"Decoder {self._argv[0]} produced no output stream")

        async def _lines() -> AsyncIterator[str]:
            async for raw in proc.stdout:
                yield raw.decode("utf-8")

        try:
            count = await _dispatch(_lines(), on_record)
        except BaseException:
            if proc.returncode is None:
                proc.kill()
            await proc.wait()
            raise

        returncode = await proc.wait()
        if returncode != 0:
            raise DumpDecodeError(
                f"Decoder {self._argv[0]} exited with status {returncode}"
            )
        logger.info("Decoded %d records from %s via %s", count, path, self._argv[0])
        return count
