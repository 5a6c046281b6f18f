from __future__ import annotations

import json
import logging
import os
import tempfile
from typing import Any, Iterable, Optional, Protocol

from courtbot.domain import Slot, StoreError

logger = logging.getLogger(__name__)


class SnapshotStore(Protocol):
    """Keeps the most recent dataset between cycles.

    ``load`` never raises: missing, corrupt or unreachable state is ``None``.
    ``save`` raises ``StoreError``.
    """

    def load(self) -> Optional[list[Slot]]: ...

    def save(self, slots: Iterable[Slot]) -> None: ...


def slots_to_records(slots: Iterable[Slot]) -> list[dict[str, Any]]:
    return [s.to_record() for s in slots]


def slots_from_records(records: Iterable[Any]) -> list[Slot]:
    return [Slot.from_record(r) for r in records if isinstance(r, dict)]


class FileSnapshotStore:
    def __init__(self, path: str) -> None:
        self.path = path

    def load(self) -> Optional[list[Slot]]:
        if not os.path.exists(self.path):
            logger.info("No previous data at %s", self.path)
            return None

        try:
            with open(self.path, "r", encoding="utf-8") as f:
                raw = json.load(f)
        except (OSError, ValueError) as e:
            # Corrupted state shouldn't brick the monitor; treat as first run.
            logger.warning("Error loading previous data from %s (%s: %s)", self.path, type(e).__name__, e)
            return None

        if not isinstance(raw, list):
            logger.warning("Ignoring previous data in %s: expected a JSON array", self.path)
            return None

        slots = slots_from_records(raw)
        logger.info("Loaded %d previous court records from %s", len(slots), self.path)
        return slots

    def save(self, slots: Iterable[Slot]) -> None:
        data = slots_to_records(slots)

        folder = os.path.dirname(os.path.abspath(self.path))
        tmp_name = None
        try:
            if folder and not os.path.exists(folder):
                os.makedirs(folder, exist_ok=True)

            # Atomic write
            with tempfile.NamedTemporaryFile("w", delete=False, encoding="utf-8", dir=folder, suffix=".tmp") as tf:
                tmp_name = tf.name
                json.dump(data, tf, ensure_ascii=False, indent=2)

            os.replace(tmp_name, self.path)
        except OSError as e:
            if tmp_name and os.path.exists(tmp_name):
                os.remove(tmp_name)
            raise StoreError(f"Failed to save snapshot to {self.path}: {e}") from e

        logger.info("Current data saved to %s (%d records)", self.path, len(data))
