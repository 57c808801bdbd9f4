"""MongoDB connection management for the pump history importer.

Handles the credentials-file bootstrap and the client lifecycle. The
collections themselves are used by ``ImportRepository``.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Callable

from pymongo import AsyncMongoClient

logger = logging.getLogger(__name__)


class DatabaseError(Exception):
    """Raised when the document store cannot be set up."""


def read_credentials(path: str | Path) -> str:
    """Read ``user:password`` from the credentials file.

    Raises:
        DatabaseError: If the file is missing or empty.
    """
    cred_file = Path(path).expanduser()
    try:
        credentials = cred_file.read_text(encoding="utf-8").strip()
    except FileNotFoundError as exc:
        raise DatabaseError(f"Credentials file not found: {cred_file}") from exc
    if not credentials:
        raise DatabaseError(f"Credentials file is empty: {cred_file}")
    return credentials


def build_connection_uri(template: str, credentials: str, database: str) -> str:
    """Fill the connection string template."""
    return template.format(credentials=credentials, database=database)


class PumpDatabase:
    """Async MongoDB database handle for the import run.

    Usage::

        async with PumpDatabase(uri, "cgm") as db:
            treatments = db.collection("treatments")
    """

    def __init__(
        self,
        uri: str,
        database_name: str,
        client_factory: Callable[[str], Any] = AsyncMongoClient,
    ) -> None:
        """Initialize database manager.

        Args:
            uri: MongoDB connection string.
            database_name: Database holding the three collections.
            client_factory: Builds the client from the URI. Tests pass a fake.
        """
        self._uri = uri
        self._database_name = database_name
        self._client_factory = client_factory
        self._client: Any | None = None

    @classmethod
    def from_settings(cls, settings: Any) -> PumpDatabase:
        """Build the handle from settings, reading the credentials file."""
        credentials = read_credentials(settings.credentials_path)
        uri = build_connection_uri(
            settings.mongo_uri_template, credentials, settings.mongo_database
        )
        return cls(uri, settings.mongo_database)

    @property
    def database(self) -> Any:
        """Get the active database.

        Raises:
            DatabaseError: If the client has not been initialized.
        """
        if self._client is None:
            raise DatabaseError("Database not initialized. Call initialize() first.")
        return self._client[self._database_name]

    def collection(self, name: str) -> Any:
        """Return a collection of the active database."""
        return self.database[name]

    def initialize(self) -> None:
        """Create the client. Idempotent; the driver connects lazily."""
        if self._client is not None:
            return
        self._client = self._client_factory(self._uri)
        logger.info("Document store client created for database %s", self._database_name)

    async def close(self) -> None:
        """Close the client."""
        if self._client is not None:
            await self._client.close()
            self._client = None
            logger.info("Document store client closed")

    async def __aenter__(self) -> PumpDatabase:
        self.initialize()
        return self

    async def __aexit__(self, *args) -> None:
        await self.close()
