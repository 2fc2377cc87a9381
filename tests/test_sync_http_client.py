from __future__ import annotations

import pytest

from phrasesync.errors import TransportError
from phrasesync.sync import HttpSyncTransport, http_client


class _ConnRequestFails:
    def __init__(self, *args, **kwargs) -> None:
        self.closed = False

    def request(self, method, path, body=None, headers=None) -> None:
        raise RuntimeError("boom")

    def close(self) -> None:
        self.closed = True


class _ConnReadFails:
    def __init__(self, *args, **kwargs) -> None:
        self.closed = False

    def request(self, method, path, body=None, headers=None) -> None:
        return

    def getresponse(self):
        return _RespReadFails()

    def close(self) -> None:
        self.closed = True


class _RespReadFails:
    status = 200

    def read(self) -> bytes:
        raise RuntimeError("read failed")


class _ConnRefused:
    def __init__(self, *args, **kwargs) -> None:
        self.closed = False

    def request(self, method, path, body=None, headers=None) -> None:
        raise ConnectionRefusedError(111, "Connection refused")

    def close(self) -> None:
        self.closed = True


class _ConnReturns:
    def __init__(self, status: int, raw: bytes) -> None:
        self.status = status
        self.raw = raw
        self.closed = False
        self.sent: tuple[str, str, bytes | None, dict[str, str]] | None = None

    def request(self, method, path, body=None, headers=None) -> None:
        self.sent = (method, path, body, headers or {})

    def getresponse(self):
        conn = self

        class _Resp:
            status = conn.status

            def read(self) -> bytes:
                return conn.raw

        return _Resp()

    def close(self) -> None:
        self.closed = True


def test_request_json_closes_connection_when_request_raises(monkeypatch) -> None:
    conn = _ConnRequestFails()
    monkeypatch.setattr(http_client, "HTTPConnection", lambda *a, **k: conn)

    with pytest.raises(RuntimeError, match="boom"):
        http_client.request_json("GET", "http://127.0.0.1:3000/health")

    assert conn.closed is True


def test_request_json_closes_connection_when_response_read_raises(monkeypatch) -> None:
    conn = _ConnReadFails()
    monkeypatch.setattr(http_client, "HTTPConnection", lambda *a, **k: conn)

    with pytest.raises(RuntimeError, match="read failed"):
        http_client.request_json("GET", "http://127.0.0.1:3000/health")

    assert conn.closed is True


def test_request_json_sends_json_body_and_query(monkeypatch) -> None:
    conn = _ConnReturns(200, b"[]")
    monkeypatch.setattr(http_client, "HTTPConnection", lambda *a, **k: conn)

    status, payload = http_client.request_json(
        "POST", "http://127.0.0.1:3000/sync?x=1", body={"userId": "u1"}
    )

    assert (status, payload) == (200, [])
    assert conn.sent is not None
    method, path, body, headers = conn.sent
    assert (method, path) == ("POST", "/sync?x=1")
    assert body == b'{"userId": "u1"}'
    assert headers["Content-Type"] == "application/json"


def test_request_json_wraps_non_json_body(monkeypatch) -> None:
    conn = _ConnReturns(502, b"<html>Bad Gateway</html>")
    monkeypatch.setattr(http_client, "HTTPConnection", lambda *a, **k: conn)

    status, payload = http_client.request_json("GET", "http://127.0.0.1:3000/sync")

    assert status == 502
    assert payload == {"error": "non_json_response: <html>Bad Gateway</html>"}


def test_build_base_url() -> None:
    assert http_client.build_base_url("example.com:3000/") == "http://example.com:3000"
    assert http_client.build_base_url("https://sync.example.com") == "https://sync.example.com"
    assert http_client.build_base_url("  ") == ""


def test_transport_requires_url() -> None:
    with pytest.raises(ValueError):
        HttpSyncTransport("")


def test_transport_maps_connection_errors(monkeypatch) -> None:
    conn = _ConnRefused()
    monkeypatch.setattr(http_client, "HTTPConnection", lambda *a, **k: conn)
    transport = HttpSyncTransport("http://127.0.0.1:3000")

    with pytest.raises(TransportError, match="sync failed"):
        transport.push_pull("u1", [], 0)
    assert conn.closed is True


def test_transport_maps_non_json_gateway_error(monkeypatch) -> None:
    conn = _ConnReturns(502, b"Bad Gateway")
    monkeypatch.setattr(http_client, "HTTPConnection", lambda *a, **k: conn)
    transport = HttpSyncTransport("http://127.0.0.1:3000")

    with pytest.raises(TransportError, match=r"full download failed \(502: non_json_response"):
        transport.full_download("u1")
