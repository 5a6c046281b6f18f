from __future__ import annotations

import json
import os
from dataclasses import dataclass
from typing import Any

from dotenv import load_dotenv

from courtbot.state_file import FileSnapshotStore

DEFAULT_FEED_URL = "https://data.smartplay.lcsd.gov.hk/rest/cms/api/v1/publ/contents/open-data/badminton/file"

STORE_BACKENDS = ("file", "document", "chunked")


@dataclass(frozen=True)
class Settings:
    feed_url: str = DEFAULT_FEED_URL

    # Fetch tuning: fixed delay between attempts, no backoff.
    fetch_timeout_seconds: float = 60.0
    fetch_retry_attempts: int = 3
    fetch_retry_delay_seconds: float = 5.0

    # Where we store the previous snapshot
    store_backend: str = "file"
    state_file: str = "previous_court_data.json"

    # Document store backends (Firestore)
    firebase_project_id: str | None = None
    firebase_service_account: dict[str, Any] | None = None
    firestore_collection: str = "court_data"
    firestore_document_id: str = "latest"
    chunk_max_bytes: int = 900_000


def _require(name: str) -> str:
    value = os.getenv(name)
    if not value:
        raise RuntimeError(f"Missing required environment variable: {name}")
    return value


def _number(name: str, default: str, cast=float):
    raw = os.getenv(name, default).strip()
    try:
        return cast(raw)
    except ValueError as e:
        raise RuntimeError(f"Invalid {name} value: {raw!r}") from e


def _parse_service_account(raw: str) -> dict[str, Any]:
    try:
        info = json.loads(raw)
    except json.JSONDecodeError as e:
        raise RuntimeError("Invalid FIREBASE_SERVICE_ACCOUNT_KEY: expected service account JSON") from e
    if not isinstance(info, dict):
        raise RuntimeError("Invalid FIREBASE_SERVICE_ACCOUNT_KEY: expected a JSON object")
    return info


def load_settings(dotenv_path: str | None = None) -> Settings:
    # Prefer .env in repo root; dotenv_path allows overriding in tests.
    load_dotenv(dotenv_path=dotenv_path, override=False)

    fetch_timeout_seconds = _number("FETCH_TIMEOUT_SECONDS", "60")
    if fetch_timeout_seconds <= 0:
        raise RuntimeError("FETCH_TIMEOUT_SECONDS must be > 0")

    fetch_retry_attempts = _number("FETCH_RETRY_ATTEMPTS", "3", int)
    if fetch_retry_attempts < 1:
        raise RuntimeError("FETCH_RETRY_ATTEMPTS must be >= 1")

    fetch_retry_delay_seconds = _number("FETCH_RETRY_DELAY_SECONDS", "5")
    if fetch_retry_delay_seconds < 0:
        raise RuntimeError("FETCH_RETRY_DELAY_SECONDS must be >= 0")

    store_backend = os.getenv("STORE_BACKEND", "file").strip().lower()
    if store_backend not in STORE_BACKENDS:
        raise RuntimeError(f"Invalid STORE_BACKEND value: {store_backend!r}. Expected one of {', '.join(STORE_BACKENDS)}")

    chunk_max_bytes = _number("CHUNK_MAX_BYTES", "900000", int)
    if chunk_max_bytes < 1:
        raise RuntimeError("CHUNK_MAX_BYTES must be >= 1")

    firebase_project_id = None
    firebase_service_account = None
    if store_backend != "file":
        firebase_project_id = _require("FIREBASE_PROJECT_ID")
        firebase_service_account = _parse_service_account(_require("FIREBASE_SERVICE_ACCOUNT_KEY"))

    return Settings(
        feed_url=os.getenv("FEED_URL") or DEFAULT_FEED_URL,
        fetch_timeout_seconds=fetch_timeout_seconds,
        fetch_retry_attempts=fetch_retry_attempts,
        fetch_retry_delay_seconds=fetch_retry_delay_seconds,
        store_backend=store_backend,
        state_file=os.getenv("STATE_FILE", "previous_court_data.json"),
        firebase_project_id=firebase_project_id,
        firebase_service_account=firebase_service_account,
        firestore_collection=os.getenv("FIRESTORE_COLLECTION", "court_data"),
        firestore_document_id=os.getenv("FIRESTORE_DOCUMENT_ID", "latest"),
        chunk_max_bytes=chunk_max_bytes,
    )


def build_snapshot_store(settings: Settings):
    """Pick the snapshot adapter for ``settings.store_backend``."""
    if settings.store_backend == "file":
        return FileSnapshotStore(settings.state_file)

    # Imported lazily so the file backend does not load the Firestore client.
    from courtbot.document_store import ChunkedDocumentSnapshotStore, DocumentSnapshotStore
    from courtbot.firestore_collection import FirestoreCollection

    collection = FirestoreCollection.from_service_account(
        settings.firebase_service_account or {},
        project=settings.firebase_project_id,
        collection=settings.firestore_collection,
    )
    if settings.store_backend == "document":
        return DocumentSnapshotStore(collection, document_id=settings.firestore_document_id)
    return ChunkedDocumentSnapshotStore(
        collection,
        document_id=settings.firestore_document_id,
        max_chunk_bytes=settings.chunk_max_bytes,
    )
