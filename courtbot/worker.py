from __future__ import annotations

import logging
from typing import Optional, TextIO

from courtbot.config import Settings, build_snapshot_store
from courtbot.detector import detect_changes
from courtbot.domain import Notification, StoreError
from courtbot.fetcher import fetch_dataset
from courtbot.notification import emit_notification, format_notification
from courtbot.state_file import SnapshotStore

logger = logging.getLogger(__name__)


def run_cycle(
    settings: Settings,
    store: Optional[SnapshotStore] = None,
    stream: Optional[TextIO] = None,
) -> Optional[Notification]:
    """Run one load -> fetch -> detect -> format -> emit -> save cycle.

    Returns the emitted notification, or ``None`` when nothing changed or the
    fetch failed. A failed fetch leaves the stored snapshot untouched.
    """
    if store is None:
        store = build_snapshot_store(settings)

    previous = store.load()

    current = fetch_dataset(settings)
    if current is None:
        logger.error("Failed to fetch court data; keeping previous snapshot")
        return None

    changes = detect_changes(current, previous)
    notification = format_notification(changes)

    if notification is not None:
        logger.info("Found %d changes", len(notification.changes))
        emit_notification(notification, stream=stream)
    else:
        logger.info("No changes detected")

    # Saved even without changes: this snapshot is the next cycle's baseline.
    try:
        store.save(current)
    except StoreError as e:
        logger.error("Snapshot not saved (%s); next cycle compares against stale data", e)

    logger.info("Monitoring cycle completed")
    return notification
