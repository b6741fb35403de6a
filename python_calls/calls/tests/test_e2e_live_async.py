"""
Live async e2e tests against running services.

Requires the API server, a Celery worker, PostgreSQL and tools/mock_voice_api.py
running, with VOICE_API_BASE_URL pointing at the mock.
Set LIVE_E2E=1 to enable.
"""
import os
import time
import logging
import uuid

import httpx
import psycopg2
import pytest


LIVE_E2E = os.getenv("LIVE_E2E", "").lower() in {"1", "true", "yes"}
API_BASE_URL = os.getenv("LIVE_E2E_API_URL", "http://localhost:8000")
MOCK_VOICE_API_URL = os.getenv("LIVE_E2E_MOCK_VOICE_API_URL", "http://localhost:8081")

logger = logging.getLogger(__name__)


pytestmark = pytest.mark.skipif(
    not LIVE_E2E,
    reason="LIVE_E2E not enabled (set LIVE_E2E=1)",
)


def _ensure_reachable(url: str, name: str) -> None:
    try:
        logger.info("Checking reachability for %s at %s", name, url)
        httpx.get(url, timeout=3.0)
    except httpx.HTTPError:
        pytest.skip(f"{name} not reachable at {url}.")


def _get_db_conn():
    db_name = os.getenv("LIVE_E2E_DB_NAME", os.getenv("DB_NAME", "call_gateway"))
    db_user = os.getenv("LIVE_E2E_DB_USER", os.getenv("DB_USER", "postgres"))
    db_password = os.getenv("LIVE_E2E_DB_PASSWORD", os.getenv("DB_PASSWORD", "postgres"))
    db_host = os.getenv("LIVE_E2E_DB_HOST", os.getenv("DB_HOST", "localhost"))
    db_port = int(os.getenv("LIVE_E2E_DB_PORT", os.getenv("DB_PORT", "5432")))

    try:
        return psycopg2.connect(
            dbname=db_name,
            user=db_user,
            password=db_password,
            host=db_host,
            port=db_port,
        )
    except psycopg2.OperationalError:
        pytest.skip("PostgreSQL not reachable. Ensure the database is up and ports are exposed.")


def _wait_for_status(conversation_id: str, expected_status: str, timeout_seconds: int = 20):
    deadline = time.time() + timeout_seconds
    while time.time() < deadline:
        with _get_db_conn() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    "SELECT processing_status FROM calls_webhookevent WHERE external_conversation_id = %s",
                    (conversation_id,),
                )
                row = cur.fetchone()
                if row and row[0] == expected_status:
                    return True
        time.sleep(0.5)
    return False


def _get_call_and_lead(conversation_id: str):
    with _get_db_conn() as conn:
        with conn.cursor() as cur:
            cur.execute(
                """
                SELECT r.source, r.webhook_delivery_status, l.source, l.requires_callback
                FROM calls_callrecord r
                LEFT JOIN calls_lead l ON l.call_record_id = r.id
                WHERE r.external_conversation_id = %s
                """,
                (conversation_id,),
            )
            return cur.fetchone()


def _format_response(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        body = response.text
    return (
        f"status={response.status_code} "
        f"headers={dict(response.headers)} "
        f"body={body}"
    )


def test_live_webhook_processed_into_lead(post_call_payload):
    _ensure_reachable(f"{API_BASE_URL}/admin/", "Webhook API")

    conversation_id = f"live_{uuid.uuid4().hex[:12]}"
    post_call_payload["conversation_id"] = conversation_id

    logger.info("Posting post-call payload to %s/webhooks/calls/", API_BASE_URL)
    response = httpx.post(
        f"{API_BASE_URL}/webhooks/calls/",
        json=post_call_payload,
        timeout=10.0,
    )
    logger.info("Received response %s", _format_response(response))
    assert response.status_code == 200
    assert response.json()["stored"] is True
    assert response.json()["conversationId"] == conversation_id

    logger.info("Waiting for conversation %s to reach success", conversation_id)
    assert _wait_for_status(conversation_id, "success")

    row = _get_call_and_lead(conversation_id)
    logger.info("Call and lead for %s: %s", conversation_id, row)
    assert row is not None
    record_source, delivery_status, lead_source, requires_callback = row
    assert record_source == "webhook"
    assert delivery_status == "success"
    assert lead_source == "voice_agent"
    assert requires_callback is False


def test_live_reconciliation_heals_missed_call(conversation_detail):
    _ensure_reachable(f"{API_BASE_URL}/admin/", "Webhook API")
    _ensure_reachable(f"{MOCK_VOICE_API_URL}/_health", "Mock voice API")

    conversation_id = f"missed_{uuid.uuid4().hex[:12]}"
    detail = conversation_detail(conversation_id=conversation_id)
    detail["start_time_unix_secs"] = int(time.time()) - 600
    detail["end_time_unix_secs"] = detail["start_time_unix_secs"] + 120

    seeded = httpx.post(f"{MOCK_VOICE_API_URL}/_seed", json=detail, timeout=5.0)
    assert seeded.status_code == 200

    logger.info("Triggering reconciliation at %s/webhooks/calls/reconcile/", API_BASE_URL)
    response = httpx.post(
        f"{API_BASE_URL}/webhooks/calls/reconcile/",
        json={"hoursBack": 1},
        timeout=60.0,
    )
    logger.info("Received response %s", _format_response(response))
    assert response.status_code == 200
    results = response.json()["results"]
    assert results["reconciled"] >= 1

    row = _get_call_and_lead(conversation_id)
    logger.info("Call and lead for %s: %s", conversation_id, row)
    assert row is not None
    record_source, delivery_status, lead_source, requires_callback = row
    assert record_source == "reconciliation"
    assert delivery_status == "missed"
    assert lead_source == "voice_agent_reconciled"
    assert requires_callback is True
