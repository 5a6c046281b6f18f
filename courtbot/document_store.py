"""Snapshot stores backed by a remote document collection.

``DocumentSnapshotStore`` keeps the whole dataset in one document.
``ChunkedDocumentSnapshotStore`` spreads it over several size-bounded chunk
documents plus a small manifest, for datasets that exceed the per-document
limit of the backend (about 1 MiB on Firestore).
"""

from __future__ import annotations

import json
import logging
import uuid
from typing import Any, Iterable, Optional, Protocol

from courtbot.domain import Slot, StoreError
from courtbot.state_file import slots_from_records, slots_to_records

logger = logging.getLogger(__name__)


class DocumentCollection(Protocol):
    def get(self, doc_id: str) -> Optional[dict[str, Any]]: ...

    def set(self, doc_id: str, data: dict[str, Any]) -> None: ...

    def delete(self, doc_id: str) -> None: ...

    def server_timestamp(self) -> Any: ...

    def list_ids(self) -> list[str]: ...


class DocumentSnapshotStore:
    def __init__(self, collection: DocumentCollection, document_id: str = "latest") -> None:
        self.collection = collection
        self.document_id = document_id

    def load(self) -> Optional[list[Slot]]:
        try:
            doc = self.collection.get(self.document_id)
        except Exception as e:
            logger.warning("Error loading previous data from document %s (%s: %s)", self.document_id, type(e).__name__, e)
            return None

        if doc is None:
            logger.info("No previous data found in document %s", self.document_id)
            return None

        records = doc.get("data") or []
        if not isinstance(records, list):
            logger.warning("Ignoring document %s: 'data' is not a list", self.document_id)
            return None

        slots = slots_from_records(records)
        logger.info("Loaded %d previous court records (last updated: %s)", len(slots), doc.get("timestamp", "unknown"))
        return slots

    def save(self, slots: Iterable[Slot]) -> None:
        data = slots_to_records(slots)
        try:
            self.collection.set(
                self.document_id,
                {"timestamp": self.collection.server_timestamp(), "data": data},
            )
        except Exception as e:
            raise StoreError(f"Failed to save snapshot document {self.document_id}: {e}") from e
        logger.info("Current data saved to document %s (%d records)", self.document_id, len(data))


def _dumps(value: Any) -> str:
    return json.dumps(value, ensure_ascii=False, separators=(",", ":"))


def split_records(records: list[dict[str, Any]], max_chunk_bytes: int) -> list[list[dict[str, Any]]]:
    """Greedily pack records into chunks whose compact JSON size fits ``max_chunk_bytes``.

    A record larger than the budget still gets a chunk of its own.
    """
    chunks: list[list[dict[str, Any]]] = []
    current: list[dict[str, Any]] = []
    size = 2  # "[]"

    for record in records:
        record_size = len(_dumps(record).encode("utf-8"))
        extra = record_size + (1 if current else 0)  # comma
        if current and size + extra > max_chunk_bytes:
            chunks.append(current)
            current, size = [], 2
            extra = record_size
        current.append(record)
        size += extra

    if current:
        chunks.append(current)
    return chunks


class ChunkedDocumentSnapshotStore:
    """Chunks are written under a fresh generation id on every save.

    The manifest names the generation it belongs to, so a save that fails
    halfway leaves the previous manifest pointing at its own untouched chunks.
    Chunks of other generations are swept once the new manifest is written.
    """

    def __init__(
        self,
        collection: DocumentCollection,
        document_id: str = "latest",
        max_chunk_bytes: int = 900_000,
    ) -> None:
        if max_chunk_bytes < 1:
            raise ValueError("max_chunk_bytes must be >= 1")
        self.collection = collection
        self.document_id = document_id
        self.max_chunk_bytes = max_chunk_bytes

    @property
    def chunk_prefix(self) -> str:
        return f"{self.document_id}_chunk_"

    def chunk_id(self, generation: str, index: int) -> str:
        return f"{self.chunk_prefix}{generation}_{index:04d}"

    def load(self) -> Optional[list[Slot]]:
        try:
            return self._load()
        except Exception as e:
            logger.warning("Error loading chunked snapshot %s (%s: %s)", self.document_id, type(e).__name__, e)
            return None

    def _load(self) -> Optional[list[Slot]]:
        manifest = self.collection.get(self.document_id)
        if manifest is None:
            logger.info("No previous data found in document %s", self.document_id)
            return None

        generation = manifest.get("generation")
        if not generation:
            logger.warning("Snapshot %s has no generation; ignoring it", self.document_id)
            return None

        chunk_count = int(manifest.get("chunk_count", 0))
        record_count = int(manifest.get("record_count", 0))

        records: list[Any] = []
        for index in range(chunk_count):
            chunk = self.collection.get(self.chunk_id(generation, index))
            if chunk is None or chunk.get("generation") != generation or not isinstance(chunk.get("data"), list):
                logger.warning("Snapshot %s is missing chunk %d of %d", self.document_id, index, chunk_count)
                return None
            records.extend(chunk["data"])

        if len(records) != record_count:
            logger.warning(
                "Snapshot %s is inconsistent: manifest says %d records, chunks hold %d",
                self.document_id,
                record_count,
                len(records),
            )
            return None

        slots = slots_from_records(records)
        logger.info(
            "Loaded %d previous court records from %d chunks (last updated: %s)",
            len(slots),
            chunk_count,
            manifest.get("timestamp", "unknown"),
        )
        return slots

    def save(self, slots: Iterable[Slot]) -> None:
        records = slots_to_records(slots)
        chunks = split_records(records, self.max_chunk_bytes)
        generation = uuid.uuid4().hex[:12]

        try:
            for index, chunk in enumerate(chunks):
                self.collection.set(
                    self.chunk_id(generation, index),
                    {"generation": generation, "index": index, "data": chunk},
                )

            self.collection.set(
                self.document_id,
                {
                    "timestamp": self.collection.server_timestamp(),
                    "generation": generation,
                    "chunk_count": len(chunks),
                    "record_count": len(records),
                },
            )
        except Exception as e:
            raise StoreError(f"Failed to save chunked snapshot {self.document_id}: {e}") from e

        removed = self._sweep(keep_prefix=f"{self.chunk_prefix}{generation}_")

        logger.info(
            "Current data saved to %s (%d records in %d chunks, generation %s, %d stale chunks removed)",
            self.document_id,
            len(records),
            len(chunks),
            generation,
            removed,
        )

    def _sweep(self, keep_prefix: str) -> int:
        # The snapshot is already saved; leftovers only cost space and the next save retries them.
        try:
            stale = [
                doc_id
                for doc_id in self.collection.list_ids()
                if doc_id.startswith(self.chunk_prefix) and not doc_id.startswith(keep_prefix)
            ]
        except Exception as e:
            logger.warning("Could not list chunks of %s (%s: %s); stale chunks may remain", self.document_id, type(e).__name__, e)
            return 0

        orphaned: list[str] = []
        for doc_id in stale:
            try:
                self.collection.delete(doc_id)
            except Exception as e:
                logger.warning("Failed to delete stale chunk %s (%s: %s)", doc_id, type(e).__name__, e)
                orphaned.append(doc_id)

        if orphaned:
            logger.warning("Orphaned chunks left for the next save: %s", ", ".join(orphaned))
        return len(stale) - len(orphaned)
