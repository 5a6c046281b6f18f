from __future__ import annotations

import json
import sys
from typing import Optional, Sequence, TextIO

from courtbot.domain import Change, Notification

SINGLE_TITLE = "🏸 Court Available!"
BODY_PREVIEW_LIMIT = 3

BEGIN_SENTINEL = "=== CHANGES_DETECTED ==="
END_SENTINEL = "=== END_CHANGES ==="


def format_notification(changes: Sequence[Change]) -> Optional[Notification]:
    """Summarize detected changes; ``None`` when there is nothing to report.

    The body shows at most three messages, but ``changes`` always carries the
    full list for structured consumers.
    """
    if not changes:
        return None

    if len(changes) == 1:
        return Notification(title=SINGLE_TITLE, body=changes[0].message, changes=tuple(changes))

    title = f"🏸 {len(changes)} Courts Available!"
    body = "\n\n".join(c.message for c in changes[:BODY_PREVIEW_LIMIT])
    hidden = len(changes) - BODY_PREVIEW_LIMIT
    if hidden > 0:
        body += f"\n\n... and {hidden} more changes"

    return Notification(title=title, body=body, changes=tuple(changes))


def render_payload(notification: Notification) -> str:
    # Single-line JSON between sentinels so a CI step can grep it out.
    payload = json.dumps(notification.to_dict(), ensure_ascii=False)
    return f"{BEGIN_SENTINEL}\n{payload}\n{END_SENTINEL}\n"


def emit_notification(notification: Notification, stream: Optional[TextIO] = None) -> None:
    out = stream if stream is not None else sys.stdout
    out.write(f"Title: {notification.title}\n")
    out.write(f"Body: {notification.body}\n")
    out.write(render_payload(notification))
    out.flush()
