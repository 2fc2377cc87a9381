from __future__ import annotations

import contextlib
import json
import logging
import os
import socket
from http.server import BaseHTTPRequestHandler, HTTPServer
from pathlib import Path
from typing import Any
from urllib.parse import parse_qs, urlparse

from .db import DEFAULT_SERVER_DB_PATH
from .errors import MalformedDataError, StoreError
from .store import AuthorityStore
from .store.utils import coerce_timestamp

logger = logging.getLogger(__name__)

DEFAULT_MAX_BODY_BYTES = 50 * 1024 * 1024


def _read_body(handler: BaseHTTPRequestHandler, max_body_bytes: int) -> bytes:
    try:
        length = int(handler.headers.get("Content-Length", "0") or 0)
    except ValueError as exc:
        raise ValueError("invalid_content_length") from exc
    if length <= 0:
        return b""
    if length > max_body_bytes:
        raise ValueError("payload_too_large")
    return handler.rfile.read(length)


def _parse_json_body(raw: bytes) -> dict[str, Any] | None:
    if not raw:
        return None
    try:
        data = json.loads(raw.decode("utf-8"))
    except (json.JSONDecodeError, UnicodeDecodeError):
        return None
    return data if isinstance(data, dict) else None


def _send_json(handler: BaseHTTPRequestHandler, payload: Any, status: int = 200) -> None:
    body = json.dumps(payload, ensure_ascii=False).encode("utf-8")
    handler.send_response(status)
    handler.send_header("Content-Type", "application/json; charset=utf-8")
    handler.send_header("Content-Length", str(len(body)))
    handler.end_headers()
    handler.wfile.write(body)


def _watermark(value: object) -> int:
    if value is None:
        return 0
    return coerce_timestamp(value)


def build_sync_handler(
    db_path: Path | None = None, *, max_body_bytes: int = DEFAULT_MAX_BODY_BYTES
):
    resolved_db = Path(db_path or os.environ.get("PHRASESYNC_SERVER_DB") or DEFAULT_SERVER_DB_PATH)

    class SyncHandler(BaseHTTPRequestHandler):
        def log_message(self, format: str, *args: object) -> None:  # noqa: A003
            if os.environ.get("PHRASESYNC_SYNC_LOGS") == "1":
                super().log_message(format, *args)

        def _store(self) -> AuthorityStore:
            return AuthorityStore(resolved_db)

        def do_GET(self) -> None:  # noqa: N802
            parsed = urlparse(self.path)
            if parsed.path == "/health":
                _send_json(self, {"ok": True})
                return

            if parsed.path == "/sync/full-download":
                params = parse_qs(parsed.query)
                user_id = (params.get("userId", [""])[0] or "").strip()
                if not user_id:
                    _send_json(self, {"error": "userId is required"}, status=400)
                    return
                store = self._store()
                try:
                    records = store.all_records(user_id)
                except StoreError:
                    logger.exception("full download failed for %s", user_id)
                    _send_json(self, {"error": "internal_error"}, status=500)
                else:
                    logger.info("full download for %s: %d records", user_id, len(records))
                    _send_json(self, [list(record) for record in records])
                finally:
                    store.close()
                return

            _send_json(self, {"error": "not_found"}, status=404)

        def do_POST(self) -> None:  # noqa: N802
            parsed = urlparse(self.path)
            if parsed.path != "/sync":
                _send_json(self, {"error": "not_found"}, status=404)
                return
            try:
                raw = _read_body(self, max_body_bytes)
            except ValueError as exc:
                if str(exc) == "invalid_content_length":
                    _send_json(self, {"error": "invalid_content_length"}, status=400)
                else:
                    _send_json(self, {"error": "payload_too_large"}, status=413)
                return
            data = _parse_json_body(raw)
            if data is None:
                _send_json(self, {"error": "invalid_json"}, status=400)
                return
            user_id = str(data.get("userId") or "").strip()
            if not user_id:
                _send_json(self, {"error": "userId is required"}, status=400)
                return
            changes = data.get("changes") or []
            if not isinstance(changes, list):
                _send_json(self, {"error": "invalid_changes"}, status=400)
                return
            try:
                since = _watermark(data.get("lastSyncedAt"))
            except MalformedDataError:
                _send_json(self, {"error": "invalid_last_synced_at"}, status=400)
                return
            store = self._store()
            try:
                try:
                    updated = store.apply_changes(user_id, changes)
                except MalformedDataError as exc:
                    _send_json(self, {"error": str(exc) or "invalid_changes"}, status=400)
                    return
                delta = store.changes_since(user_id, since)
                logger.info(
                    "sync %s: received=%d updated=%d returned=%d",
                    user_id,
                    len(changes),
                    updated,
                    len(delta),
                )
                _send_json(self, [list(record) for record in delta])
            except StoreError:
                logger.exception("sync failed for %s", user_id)
                _send_json(self, {"error": "internal_error"}, status=500)
            finally:
                store.close()

    return SyncHandler


def make_server(
    host: str,
    port: int,
    *,
    db_path: Path | None = None,
    max_body_bytes: int = DEFAULT_MAX_BODY_BYTES,
) -> HTTPServer:
    handler = build_sync_handler(db_path, max_body_bytes=max_body_bytes)

    class Server(HTTPServer):
        address_family = socket.AF_INET6 if ":" in host else socket.AF_INET

        def server_bind(self) -> None:
            if self.address_family == socket.AF_INET6:
                with contextlib.suppress(OSError):
                    self.socket.setsockopt(socket.IPPROTO_IPV6, socket.IPV6_V6ONLY, 0)
            super().server_bind()

    return Server((host, port), handler)
