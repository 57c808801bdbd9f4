"""Shared test fixtures for pumpsync tests."""

from __future__ import annotations

import copy
import json
import sys
from pathlib import Path
from types import SimpleNamespace
from typing import Any

import pytest

# Allow running tests without `pip install -e .` by making `src/` importable.
_PROJECT_ROOT = Path(__file__).resolve().parent.parent
_SRC_DIR = _PROJECT_ROOT / "src"
if str(_SRC_DIR) not in sys.path:
    sys.path.insert(0, str(_SRC_DIR))

from pymongo import DESCENDING  # noqa: E402

from pumpsync.core.config.settings import Settings  # noqa: E402


# ---------------------------------------------------------------------------
# Test hermeticity
# ---------------------------------------------------------------------------

@pytest.fixture(autouse=True)
def _force_hermetic_test_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in Settings.model_fields:
        monkeypatch.delenv(name.upper(), raising=False)


# ---------------------------------------------------------------------------
# In-memory MongoDB stand-in (the async pymongo surface the repository uses)
# ---------------------------------------------------------------------------

def _matches(doc: dict[str, Any], query: dict[str, Any]) -> bool:
    return all(doc.get(key) == value for key, value in query.items())


class FakeCursor:
    def __init__(self, docs: list[dict[str, Any]]) -> None:
        self._docs = docs

    def sort(self, key: str, direction: int) -> FakeCursor:
        self._docs.sort(key=lambda d: d[key], reverse=direction == DESCENDING)
        return self

    def limit(self, n: int) -> FakeCursor:
        self._docs = self._docs[:n]
        return self

    async def to_list(self, length: int | None = None) -> list[dict[str, Any]]:
        return list(self._docs if length is None else self._docs[:length])


class FakeCollection:
    """Records inserts and deletes; ``fail_with`` makes inserts raise."""

    def __init__(self, name: str) -> None:
        self.name = name
        self.docs: list[dict[str, Any]] = []
        self.insert_calls: list[list[dict[str, Any]]] = []
        self.delete_calls: list[dict[str, Any]] = []
        self.fail_with: Exception | None = None

    def find(self, query: dict[str, Any] | None = None, projection: dict[str, Any] | None = None) -> FakeCursor:
        found = [copy.deepcopy(d) for d in self.docs if _matches(d, query or {})]
        if projection and projection.get("_id") == 0:
            for doc in found:
                doc.pop("_id", None)
        return FakeCursor(found)

    async def insert_many(self, documents: list[dict[str, Any]]) -> SimpleNamespace:
        self.insert_calls.append(copy.deepcopy(documents))
        if self.fail_with is not None:
            raise self.fail_with
        start = len(self.docs)
        self.docs.extend(copy.deepcopy(documents))
        return SimpleNamespace(inserted_ids=list(range(start, start + len(documents))))

    async def delete_many(self, query: dict[str, Any]) -> SimpleNamespace:
        self.delete_calls.append(query)
        kept = [d for d in self.docs if not _matches(d, query)]
        deleted = len(self.docs) - len(kept)
        self.docs = kept
        return SimpleNamespace(deleted_count=deleted)


class FakeMongoDatabase:
    def __init__(self) -> None:
        self.collections: dict[str, FakeCollection] = {}

    def __getitem__(self, name: str) -> FakeCollection:
        if name not in self.collections:
            self.collections[name] = FakeCollection(name)
        return self.collections[name]


class FakeMongoClient:
    def __init__(self) -> None:
        self.databases: dict[str, FakeMongoDatabase] = {}
        self.closed = False

    def __getitem__(self, name: str) -> FakeMongoDatabase:
        if name not in self.databases:
            self.databases[name] = FakeMongoDatabase()
        return self.databases[name]

    async def close(self) -> None:
        self.closed = True


@pytest.fixture
def fake_client() -> FakeMongoClient:
    return FakeMongoClient()


@pytest.fixture
def fake_store(fake_client: FakeMongoClient) -> FakeMongoDatabase:
    """The fake 'cgm' database, for seeding and inspecting collections."""
    return fake_client["cgm"]


@pytest.fixture
def pump_db(fake_client: FakeMongoClient):
    """A PumpDatabase wired to the fake client."""
    from pumpsync.core.storage.database import PumpDatabase

    db = PumpDatabase("mongodb://fake", "cgm", client_factory=lambda uri: fake_client)
    db.initialize()
    return db


@pytest.fixture
def import_repository(pump_db):
    from pumpsync.core.storage.repository import ImportRepository

    return ImportRepository(pump_db)


# ---------------------------------------------------------------------------
# Dump files
# ---------------------------------------------------------------------------

def write_dump(path: Path, records: list[tuple[str, dict[str, Any]]]) -> Path:
    """Write ``(recordType, record)`` pairs as a decoded JSON-lines dump."""
    with path.open("w", encoding="utf-8") as fh:
        for record_type, record in records:
            fh.write(json.dumps({"recordType": record_type, "record": record}) + "\n")
    return path


@pytest.fixture
def make_dump(tmp_path: Path):
    """Factory writing a decoded dump into ``tmp_path``."""

    def _make(records: list[tuple[str, dict[str, Any]]], name: str = "dump.jsonl") -> Path:
        return write_dump(tmp_path / name, records)

    return _make
