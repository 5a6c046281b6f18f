from __future__ import annotations

import logging
from typing import Iterable, Optional, Sequence

from courtbot.domain import Change, ChangeKind, Slot, format_date_label

logger = logging.getLogger(__name__)

MARKER = "🟢"


def _format_message(slot: Slot, current: int, previous: int) -> str:
    return (
        f"{MARKER} {slot.venue}\n"
        f"   {format_date_label(slot.date)} • {slot.session_start}-{slot.session_end}\n"
        f"   Now available: {current} courts (was {previous})"
    )


def _build_change(kind: ChangeKind, slot: Slot, previous: int) -> Change:
    current = slot.available_courts
    return Change(
        kind=kind,
        venue=slot.venue,
        district=slot.district,
        date=slot.date,
        time_range=f"{slot.session_start}-{slot.session_end}",
        current_count=current,
        previous_count=previous,
        message=_format_message(slot, current, previous),
    )


def detect_changes(current: Sequence[Slot], previous: Optional[Iterable[Slot]]) -> list[Change]:
    """Return slots that opened up or gained courts since the previous snapshot.

    Without a previous snapshot the current one is only a baseline, so nothing
    is reported. Output follows the order of ``current``; slots whose key is
    not in ``previous`` are skipped.
    """
    if previous is None:
        logger.info("First run - storing initial data")
        return []

    # Later duplicates overwrite earlier ones.
    previous_by_key = {slot.key: slot for slot in previous}

    changes: list[Change] = []
    for slot in current:
        before = previous_by_key.get(slot.key)
        if before is None:
            continue

        now_available = slot.available_courts
        was_available = before.available_courts

        if now_available > 0 and was_available == 0:
            changes.append(_build_change(ChangeKind.NEW_AVAILABILITY, slot, 0))
        elif now_available > was_available and was_available > 0:
            changes.append(_build_change(ChangeKind.INCREASED_AVAILABILITY, slot, was_available))

    logger.info("Compared %d current slots with previous data: %d changes", len(current), len(changes))
    return changes
