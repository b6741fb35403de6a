"""
Background dispatch of call completion processing.

Processing normally goes through the Celery queue. When the broker cannot
accept the task, it runs on a small in-process thread pool instead; failures
there are logged and show up only on the WebhookEvent row.
"""
import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Optional

from django.conf import settings
from django.db import close_old_connections

logger = logging.getLogger(__name__)

_executor: Optional[ThreadPoolExecutor] = None
_executor_lock = threading.Lock()


def get_fallback_executor() -> ThreadPoolExecutor:
    global _executor
    with _executor_lock:
        if _executor is None:
            _executor = ThreadPoolExecutor(
                max_workers=settings.FALLBACK_WORKER_COUNT,
                thread_name_prefix='call-processor',
            )
        return _executor


def _run_in_thread(conversation_id: str) -> None:
    from calls.tasks import process_call_completion

    try:
        process_call_completion(conversation_id)
    except Exception as e:
        logger.error(
            f"Fallback processing failed for {conversation_id}: {e}",
            exc_info=True
        )
    finally:
        close_old_connections()


def dispatch_processing(conversation_id: str) -> Optional[Future]:
    """
    Schedule processing of a conversation without blocking the caller.

    Never raises.

    Returns:
        The fallback Future when the thread pool was used, otherwise None
    """
    from calls.tasks import process_call_completion

    try:
        process_call_completion.apply_async((conversation_id,), retry=False)
        logger.info(f"Conversation {conversation_id} enqueued for processing")
        return None
    except Exception as e:
        logger.warning(
            f"Could not enqueue {conversation_id} ({e}), "
            f"processing on fallback worker pool"
        )

    try:
        return get_fallback_executor().submit(_run_in_thread, conversation_id)
    except Exception as e:
        logger.error(f"Fallback dispatch failed for {conversation_id}: {e}", exc_info=True)
        return None
