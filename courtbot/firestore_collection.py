from __future__ import annotations

from typing import Any, Optional

from google.cloud import firestore


class FirestoreCollection:
    """``DocumentCollection`` over one Firestore collection."""

    def __init__(self, client: Any, collection: str) -> None:
        self._collection = client.collection(collection)

    @classmethod
    def from_service_account(
        cls, info: dict[str, Any], *, project: Optional[str], collection: str
    ) -> "FirestoreCollection":
        client = firestore.Client.from_service_account_info(info, project=project)
        return cls(client, collection)

    def get(self, doc_id: str) -> Optional[dict[str, Any]]:
        snapshot = self._collection.document(doc_id).get()
        if not snapshot.exists:
            return None
        return snapshot.to_dict() or {}

    def set(self, doc_id: str, data: dict[str, Any]) -> None:
        self._collection.document(doc_id).set(data)

    def delete(self, doc_id: str) -> None:
        self._collection.document(doc_id).delete()

    def list_ids(self) -> list[str]:
        return [ref.id for ref in self._collection.list_documents()]

    def server_timestamp(self) -> Any:
        return firestore.SERVER_TIMESTAMP
