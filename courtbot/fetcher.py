from __future__ import annotations

import json
import logging
from time import monotonic, sleep
from typing import Optional

import httpx
from tenacity import RetryCallState, retry, stop_after_attempt, wait_fixed

from courtbot.config import Settings
from courtbot.domain import COURTS_FIELD, FetchError, Slot, count_is_malformed

logger = logging.getLogger(__name__)

REQUEST_HEADERS = {
    "Accept": "application/json, text/plain, */*",
    "User-Agent": (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
        "AppleWebKit/537.36 (KHTML, like Gecko) "
        "Chrome/91.0.4472.124 Safari/537.36"
    ),
    "Accept-Language": "en-US,en;q=0.9",
    "Cache-Control": "no-cache",
}


def _short_exc(retry_state: RetryCallState) -> str | None:
    if retry_state.outcome is None or not retry_state.outcome.failed:
        return None
    exc = retry_state.outcome.exception()
    if exc is None:
        return None
    # Type and message only: no traceback between attempts.
    msg = str(exc).strip()
    return f"{type(exc).__name__}: {msg}" if msg else type(exc).__name__


def _log_before_attempt(retry_state: RetryCallState) -> None:
    logger.info("Fetching court data (attempt %s)", retry_state.attempt_number)


def _log_after_attempt(retry_state: RetryCallState) -> None:
    if retry_state.outcome is not None and retry_state.outcome.failed:
        logger.warning("Attempt %s failed (%s)", retry_state.attempt_number, _short_exc(retry_state))


def _log_before_sleep(retry_state: RetryCallState) -> None:
    sleep_seconds = getattr(retry_state.next_action, "sleep", None)
    if sleep_seconds is None:
        logger.info("Retrying...")
        return
    logger.info("Retrying in %.0f seconds (attempt %s next)", sleep_seconds, retry_state.attempt_number + 1)


def _get_records(client: httpx.Client, url: str, timeout_seconds: float) -> list:
    # httpx timeouts apply per phase and per read; this bounds the attempt as a whole.
    deadline = monotonic() + timeout_seconds
    body = bytearray()

    with client.stream("GET", url, headers=REQUEST_HEADERS) as response:
        response.raise_for_status()
        for chunk in response.iter_bytes():
            body.extend(chunk)
            if monotonic() > deadline:
                raise FetchError(f"Feed download exceeded {timeout_seconds:.0f}s")

    try:
        data = json.loads(body)
    except ValueError as e:
        raise FetchError(f"Feed returned invalid JSON: {e}") from e

    if not isinstance(data, list):
        raise FetchError(f"Feed returned {type(data).__name__}, expected a list of court records")
    return data


def _fetch_records_with_retry(settings: Settings, client: httpx.Client) -> list:
    decorated = retry(
        stop=stop_after_attempt(settings.fetch_retry_attempts),
        wait=wait_fixed(settings.fetch_retry_delay_seconds),
        sleep=sleep,
        before=_log_before_attempt,
        after=_log_after_attempt,
        before_sleep=_log_before_sleep,
        reraise=True,
    )(_get_records)

    return decorated(client, settings.feed_url, settings.fetch_timeout_seconds)


def fetch_dataset(settings: Settings, client: Optional[httpx.Client] = None) -> Optional[list[Slot]]:
    """Fetch the current court dataset; ``None`` once every attempt has failed."""
    owns_client = client is None
    if client is None:
        client = httpx.Client(timeout=settings.fetch_timeout_seconds, follow_redirects=True)

    try:
        records = _fetch_records_with_retry(settings, client)
    except (httpx.HTTPError, FetchError) as e:
        logger.error(
            "All %d fetch attempts failed (%s: %s)",
            settings.fetch_retry_attempts,
            type(e).__name__,
            e,
        )
        return None
    finally:
        if owns_client:
            client.close()

    rows = [r for r in records if isinstance(r, dict)]
    if len(rows) != len(records):
        logger.warning("Skipped %d feed entries that are not objects", len(records) - len(rows))

    malformed = sum(1 for r in rows if count_is_malformed(r.get(COURTS_FIELD)))
    if malformed:
        # Normalized to 0; worth watching in case the feed format drifts.
        logger.warning("%d records had an unreadable %s value (treated as 0)", malformed, COURTS_FIELD)

    slots = [Slot.from_record(r) for r in rows]
    logger.info("Successfully fetched %d court records", len(slots))
    return slots
