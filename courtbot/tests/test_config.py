from __future__ import annotations

import json
from unittest.mock import patch

import pytest

from courtbot.config import DEFAULT_FEED_URL, Settings, build_snapshot_store, load_settings
from courtbot.document_store import ChunkedDocumentSnapshotStore, DocumentSnapshotStore
from courtbot.state_file import FileSnapshotStore

_ENV_VARS = (
    "FEED_URL",
    "FETCH_TIMEOUT_SECONDS",
    "FETCH_RETRY_ATTEMPTS",
    "FETCH_RETRY_DELAY_SECONDS",
    "STORE_BACKEND",
    "STATE_FILE",
    "FIREBASE_PROJECT_ID",
    "FIREBASE_SERVICE_ACCOUNT_KEY",
    "FIRESTORE_COLLECTION",
    "FIRESTORE_DOCUMENT_ID",
    "CHUNK_MAX_BYTES",
)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)


def test_load_settings_defaults() -> None:
    settings = load_settings(dotenv_path=None)

    assert settings.feed_url == DEFAULT_FEED_URL
    assert settings.fetch_retry_attempts == 3
    assert settings.fetch_retry_delay_seconds == 5
    assert settings.fetch_timeout_seconds == 60
    assert settings.store_backend == "file"
    assert settings.state_file == "previous_court_data.json"
    assert settings.firebase_service_account is None


def test_load_settings_reads_overrides(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("FEED_URL", "https://example.test/feed")
    monkeypatch.setenv("FETCH_RETRY_ATTEMPTS", "5")
    monkeypatch.setenv("FETCH_RETRY_DELAY_SECONDS", "0.5")
    monkeypatch.setenv("STATE_FILE", "/tmp/courts.json")

    settings = load_settings(dotenv_path=None)

    assert settings.feed_url == "https://example.test/feed"
    assert settings.fetch_retry_attempts == 5
    assert settings.fetch_retry_delay_seconds == 0.5
    assert settings.state_file == "/tmp/courts.json"


def test_load_settings_rejects_zero_attempts(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("FETCH_RETRY_ATTEMPTS", "0")
    with pytest.raises(RuntimeError, match=r"FETCH_RETRY_ATTEMPTS must be >= 1"):
        load_settings(dotenv_path=None)


def test_load_settings_rejects_non_numeric_timeout(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("FETCH_TIMEOUT_SECONDS", "soon")
    with pytest.raises(RuntimeError, match=r"Invalid FETCH_TIMEOUT_SECONDS"):
        load_settings(dotenv_path=None)


def test_load_settings_rejects_unknown_backend(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("STORE_BACKEND", "redis")
    with pytest.raises(RuntimeError, match=r"Invalid STORE_BACKEND"):
        load_settings(dotenv_path=None)


def test_document_backend_requires_firebase_credentials(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("STORE_BACKEND", "document")
    with pytest.raises(RuntimeError, match=r"FIREBASE_PROJECT_ID"):
        load_settings(dotenv_path=None)


def test_document_backend_rejects_invalid_service_account(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("STORE_BACKEND", "chunked")
    monkeypatch.setenv("FIREBASE_PROJECT_ID", "courts")
    monkeypatch.setenv("FIREBASE_SERVICE_ACCOUNT_KEY", "not json")
    with pytest.raises(RuntimeError, match=r"Invalid FIREBASE_SERVICE_ACCOUNT_KEY"):
        load_settings(dotenv_path=None)


def test_document_backend_parses_service_account(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("STORE_BACKEND", "Chunked")
    monkeypatch.setenv("FIREBASE_PROJECT_ID", "courts")
    monkeypatch.setenv("FIREBASE_SERVICE_ACCOUNT_KEY", json.dumps({"type": "service_account"}))
    monkeypatch.setenv("CHUNK_MAX_BYTES", "1000")

    settings = load_settings(dotenv_path=None)

    assert settings.store_backend == "chunked"
    assert settings.firebase_project_id == "courts"
    assert settings.firebase_service_account == {"type": "service_account"}
    assert settings.chunk_max_bytes == 1000


def test_load_settings_does_not_override_existing_env_with_dotenv(monkeypatch: pytest.MonkeyPatch, tmp_path) -> None:
    monkeypatch.setenv("STATE_FILE", "from-env.json")

    dotenv = tmp_path / ".env"
    dotenv.write_text("STATE_FILE=from-dotenv.json\n")

    settings = load_settings(dotenv_path=str(dotenv))
    assert settings.state_file == "from-env.json"


def test_build_snapshot_store_file_backend() -> None:
    store = build_snapshot_store(Settings(state_file="x.json"))
    assert isinstance(store, FileSnapshotStore)
    assert store.path == "x.json"


@pytest.mark.parametrize("backend, expected", [("document", DocumentSnapshotStore), ("chunked", ChunkedDocumentSnapshotStore)])
def test_build_snapshot_store_document_backends(backend: str, expected: type) -> None:
    settings = Settings(
        store_backend=backend,
        firebase_project_id="courts",
        firebase_service_account={"type": "service_account"},
        firestore_document_id="snap",
        chunk_max_bytes=1234,
    )

    with patch("courtbot.firestore_collection.FirestoreCollection.from_service_account") as factory:
        store = build_snapshot_store(settings)

    factory.assert_called_once_with({"type": "service_account"}, project="courts", collection="court_data")
    assert isinstance(store, expected)
    assert store.document_id == "snap"
    assert store.collection is factory.return_value
