"""
Lightweight mock voice platform API for live reconciliation runs.

Endpoints:
- GET  /v1/convai/conversations          -> paged listing of seeded conversations
- GET  /v1/convai/conversations/<id>     -> full conversation detail
- POST /_seed                            -> adds a conversation detail (JSON body)
- POST /_reset                           -> clears seeded conversations
- GET  /_health                          -> returns 200

Point VOICE_API_BASE_URL at http://localhost:8081 to use it.
"""
import json
from http.server import BaseHTTPRequestHandler, HTTPServer
from typing import Dict
from urllib.parse import parse_qs, urlparse


CONVERSATIONS: Dict[str, dict] = {}

LIST_PREFIX = "/v1/convai/conversations"


def _summary_of(detail: dict) -> dict:
    """Listing entries only carry the summary fields, like the real API."""
    keys = ("conversation_id", "agent_id", "status", "start_time_unix_secs", "call_duration_secs")
    return {key: detail.get(key) for key in keys if key in detail}


class Handler(BaseHTTPRequestHandler):
    def _send_json(self, status_code: int, payload: dict) -> None:
        body = json.dumps(payload).encode("utf-8")
        self.send_response(status_code)
        self.send_header("Content-Type", "application/json")
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        self.wfile.write(body)

    def _list(self, query: dict) -> None:
        page_size = int(query.get("page_size", ["100"])[0])
        offset = int(query.get("cursor", ["0"])[0] or 0)
        agent_id = query.get("agent_id", [None])[0]
        since = int(query.get("call_start_after_unix", ["0"])[0])

        items = [
            _summary_of(detail)
            for detail in CONVERSATIONS.values()
            if (not agent_id or detail.get("agent_id") == agent_id)
            and detail.get("start_time_unix_secs", 0) >= since
        ]
        page = items[offset:offset + page_size]
        next_offset = offset + page_size
        has_more = next_offset < len(items)
        return self._send_json(200, {
            "conversations": page,
            "has_more": has_more,
            "next_cursor": str(next_offset) if has_more else None,
        })

    def do_GET(self):  # noqa: N802
        parsed = urlparse(self.path)

        if parsed.path == "/_health":
            return self._send_json(200, {"status": "ok"})

        if parsed.path == LIST_PREFIX:
            return self._list(parse_qs(parsed.query))

        if parsed.path.startswith(LIST_PREFIX + "/"):
            conversation_id = parsed.path[len(LIST_PREFIX) + 1:]
            detail = CONVERSATIONS.get(conversation_id)
            if detail is None:
                return self._send_json(404, {"detail": "conversation_not_found"})
            return self._send_json(200, detail)

        return self._send_json(404, {"error": "not_found"})

    def do_POST(self):  # noqa: N802
        if self.path == "/_reset":
            CONVERSATIONS.clear()
            return self._send_json(200, {"status": "reset"})

        if self.path == "/_seed":
            length = int(self.headers.get("Content-Length", "0"))
            raw = self.rfile.read(length).decode("utf-8") if length else ""
            try:
                detail = json.loads(raw) if raw else {}
            except json.JSONDecodeError:
                return self._send_json(400, {"error": "invalid_json"})
            if not detail.get("conversation_id"):
                return self._send_json(400, {"error": "conversation_id required"})
            CONVERSATIONS[detail["conversation_id"]] = detail
            return self._send_json(200, {"status": "seeded", "count": len(CONVERSATIONS)})

        return self._send_json(404, {"error": "not_found"})

    def log_message(self, format, *args):  # noqa: A003
        # Silence default logging to keep test output clean.
        return


def main() -> None:
    server = HTTPServer(("0.0.0.0", 8081), Handler)
    server.serve_forever()


if __name__ == "__main__":
    main()
