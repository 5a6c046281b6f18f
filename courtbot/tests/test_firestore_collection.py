from __future__ import annotations

from unittest.mock import MagicMock, patch

from google.cloud import firestore

from courtbot.firestore_collection import FirestoreCollection


def _collection() -> tuple[FirestoreCollection, MagicMock]:
    client = MagicMock()
    return FirestoreCollection(client, "court_data"), client.collection.return_value


def test_get_returns_none_for_missing_document() -> None:
    collection, fs = _collection()
    fs.document.return_value.get.return_value.exists = False

    assert collection.get("latest") is None
    fs.document.assert_called_with("latest")


def test_get_returns_document_data() -> None:
    collection, fs = _collection()
    snapshot = fs.document.return_value.get.return_value
    snapshot.exists = True
    snapshot.to_dict.return_value = {"data": []}

    assert collection.get("latest") == {"data": []}


def test_set_and_delete_go_to_the_named_document() -> None:
    collection, fs = _collection()

    collection.set("latest_chunk_0001", {"index": 1, "data": []})
    collection.delete("latest_chunk_0002")

    fs.document.return_value.set.assert_called_once_with({"index": 1, "data": []})
    fs.document.return_value.delete.assert_called_once_with()
    assert [c.args[0] for c in fs.document.call_args_list] == ["latest_chunk_0001", "latest_chunk_0002"]


def test_list_ids_returns_document_ids() -> None:
    collection, fs = _collection()
    first, second = MagicMock(), MagicMock()
    first.id, second.id = "latest", "latest_chunk_abc_0000"
    fs.list_documents.return_value = iter([first, second])

    assert collection.list_ids() == ["latest", "latest_chunk_abc_0000"]


def test_server_timestamp_is_firestore_sentinel() -> None:
    collection, _ = _collection()
    assert collection.server_timestamp() is firestore.SERVER_TIMESTAMP


def test_from_service_account_builds_client() -> None:
    with patch("courtbot.firestore_collection.firestore.Client.from_service_account_info") as factory:
        FirestoreCollection.from_service_account({"type": "service_account"}, project="courts", collection="court_data")

    factory.assert_called_once_with({"type": "service_account"}, project="courts")
    factory.return_value.collection.assert_called_once_with("court_data")
