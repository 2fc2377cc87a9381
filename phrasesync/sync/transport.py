from __future__ import annotations

import http.client
import logging
from collections.abc import Sequence
from typing import Any, Protocol
from urllib.parse import urlencode

from ..errors import TransportError
from ..store.types import PhraseRecord
from . import http_client
from .payloads import ServerItem, build_sync_body, decode_triples

logger = logging.getLogger(__name__)


class SyncTransport(Protocol):
    """Network boundary to the remote authority."""

    def push_pull(
        self, user_id: str, deltas: Sequence[PhraseRecord], since: int
    ) -> list[ServerItem]: ...

    def full_download(self, user_id: str) -> list[ServerItem]: ...


def _error_detail(payload: Any) -> str | None:
    if not isinstance(payload, dict):
        return None
    error = payload.get("error")
    if isinstance(error, str):
        return error
    return None


class HttpSyncTransport:
    """JSON-over-HTTP client for the ``/sync`` endpoints."""

    def __init__(self, base_url: str, *, timeout_s: float = 3.0) -> None:
        self.base_url = http_client.build_base_url(base_url)
        if not self.base_url:
            raise ValueError("remote url is required")
        self.timeout_s = timeout_s

    def _request(self, method: str, url: str, *, body: Any = None, action: str) -> Any:
        try:
            status, payload = http_client.request_json(
                method, url, body=body, timeout_s=self.timeout_s
            )
        except (OSError, http.client.HTTPException) as exc:
            detail = str(exc).strip() or exc.__class__.__name__
            raise TransportError(f"{action} failed: {detail}") from exc
        if status != 200:
            detail = _error_detail(payload)
            suffix = f" ({status}: {detail})" if detail else f" ({status})"
            raise TransportError(f"{action} failed{suffix}")
        return payload

    def push_pull(
        self, user_id: str, deltas: Sequence[PhraseRecord], since: int
    ) -> list[ServerItem]:
        body = build_sync_body(user_id, deltas, since)
        logger.debug("push %d changes for %s since %d", len(deltas), user_id, since)
        payload = self._request("POST", f"{self.base_url}/sync", body=body, action="sync")
        return decode_triples(payload)

    def full_download(self, user_id: str) -> list[ServerItem]:
        query = urlencode({"userId": user_id})
        payload = self._request(
            "GET", f"{self.base_url}/sync/full-download?{query}", action="full download"
        )
        return decode_triples(payload)
