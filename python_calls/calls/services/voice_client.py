"""
Voice platform API client for listing and fetching conversations.
"""
import logging
import time
from datetime import datetime
from typing import List, Optional, Tuple

import httpx
from django.conf import settings

logger = logging.getLogger(__name__)

LIST_PATH = '/v1/convai/conversations'
DETAIL_PATH = '/v1/convai/conversations/{conversation_id}'
PAGE_SIZE = 100


class VoicePlatformError(Exception):
    """Raised when the voice platform cannot answer a request."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


def _retry_delay(attempt: int) -> float:
    """Exponential backoff starting at 0.5s, capped at 8s."""
    return min(0.5 * (2 ** attempt), 8.0)


def _get_json(path: str, params: Optional[dict] = None) -> dict:
    """
    GET a platform endpoint and decode the JSON body.

    Timeouts, connection errors and 5xx responses are retried up to
    settings.VOICE_API_MAX_RETRIES times; 4xx responses fail immediately.

    Raises:
        VoicePlatformError: When the request cannot be completed
    """
    url = f"{settings.VOICE_API_BASE_URL.rstrip('/')}{path}"
    headers = {
        'xi-api-key': settings.VOICE_API_KEY,
        'Accept': 'application/json',
    }
    max_retries = settings.VOICE_API_MAX_RETRIES
    last_error = None

    for attempt in range(max_retries + 1):
        try:
            response = httpx.get(
                url,
                params=params,
                headers=headers,
                timeout=settings.VOICE_API_TIMEOUT,
            )
        except (httpx.TimeoutException, httpx.ConnectError) as e:
            last_error = VoicePlatformError(f"Network error calling {url}: {e}")
            logger.warning(
                f"Voice platform request failed ({e.__class__.__name__}), "
                f"attempt {attempt + 1}/{max_retries + 1}: {url}"
            )
        else:
            if 200 <= response.status_code < 300:
                try:
                    return response.json()
                except ValueError as e:
                    raise VoicePlatformError(
                        f"Invalid JSON from {url}: {e}", response.status_code
                    ) from e

            message = f"Voice platform error {response.status_code} for {url}: {response.text[:500]}"
            if response.status_code < 500:
                logger.error(message)
                raise VoicePlatformError(message, response.status_code)

            last_error = VoicePlatformError(message, response.status_code)
            logger.warning(f"{message} (attempt {attempt + 1}/{max_retries + 1})")

        if attempt < max_retries:
            time.sleep(_retry_delay(attempt))

    raise last_error


def _unix_seconds(value) -> Optional[float]:
    """Read a unix timestamp the platform may send as a number or a numeric string."""
    if value is None or isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def list_conversations(
    since: datetime,
    agent_id: Optional[str] = None,
    max_pages: Optional[int] = None,
    page_delay: float = 0.0,
) -> Tuple[List[dict], int]:
    """
    List conversations started at or after `since`, following pagination.

    Args:
        since: Start of the lookback window (aware datetime)
        agent_id: Restrict the listing to one agent
        max_pages: Upper bound on pages fetched (defaults to settings.RECONCILE_MAX_PAGES)
        page_delay: Seconds to sleep between page requests

    Returns:
        (conversations, pages_fetched)

    Raises:
        VoicePlatformError: When a page cannot be fetched
    """
    max_pages = max_pages or settings.RECONCILE_MAX_PAGES
    since_unix = int(since.timestamp())
    conversations: List[dict] = []
    cursor = None
    pages = 0

    while pages < max_pages:
        params = {
            'page_size': PAGE_SIZE,
            'call_start_after_unix': since_unix,
        }
        if agent_id:
            params['agent_id'] = agent_id
        if cursor:
            params['cursor'] = cursor

        data = _get_json(LIST_PATH, params)
        pages += 1
        page = data.get('conversations') or []
        logger.info(f"Fetched conversation page {pages}: {len(page)} conversation(s)")

        for conversation in page:
            started = _unix_seconds(conversation.get('start_time_unix_secs'))
            if started is not None and started < since_unix:
                continue
            conversations.append(conversation)

        cursor = data.get('next_cursor')
        has_more = data.get('has_more', bool(cursor))
        if not cursor or not has_more or not page:
            break
        if page_delay:
            time.sleep(page_delay)

    if cursor and pages >= max_pages:
        logger.warning(f"Stopped listing conversations after {max_pages} page(s), more remain")

    return conversations, pages


def get_conversation(conversation_id: str) -> dict:
    """
    Fetch the full detail of one conversation (transcript, analysis, metadata).

    Raises:
        VoicePlatformError: When the detail cannot be fetched
    """
    logger.debug(f"Fetching conversation detail: {conversation_id}")
    return _get_json(DETAIL_PATH.format(conversation_id=conversation_id))
