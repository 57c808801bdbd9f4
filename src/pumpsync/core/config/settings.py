"""Application settings loaded from environment variables."""

from __future__ import annotations

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Pump history importer configuration."""

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}

    pumpsync_log_level: str = "info"

    # Document store
    credentials_path: str = "secrets"
    mongo_uri_template: str = (
        "mongodb+srv://{credentials}@cluster0.mongodb.net/{database}"
        "?retryWrites=true&w=majority"
    )
    mongo_database: str = "cgm"
    glucose_collection: str = "bg"
    treatments_collection: str = "treatments"
    device_status_collection: str = "devicestatus"

    # Input / output
    dump_path: str = "dump.jsonl"
    # Empty means the dump has already been decoded to JSON lines.
    decoder_command: str = ""
    result_path: str = "result.json"

    # Run mode. Nothing touches the store unless dry_run is switched off.
    dry_run: bool = True
    purge_before_import: bool = False
    allow_initial_import: bool = False


def get_settings() -> Settings:
    """Create and return a Settings instance."""
    return Settings()
