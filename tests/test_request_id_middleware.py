from __future__ import annotations

from fastapi.testclient import TestClient


def test_preserves_incoming_request_id_header(client):
    incoming_id = "test-request-id-123"
    resp = client.get("/health", headers={"X-Request-ID": incoming_id})

    assert resp.status_code == 200
    assert resp.headers.get("X-Request-ID") == incoming_id


def test_generates_request_id_when_missing(client):
    resp = client.get("/health")

    assert resp.status_code == 200
    assert resp.headers.get("X-Request-ID")
    assert resp.headers.get("X-Request-Duration-ms") is not None


def test_error_responses_carry_request_id(client, upstream):
    upstream.raw_body = b"not json"

    resp = client.get("/api/images", headers={"X-Request-ID": "req-err-1"})

    assert resp.status_code == 502
    assert resp.headers.get("X-Request-ID") == "req-err-1"


def test_uses_request_id_header_from_app_settings(make_app):
    client = TestClient(make_app(request_id_header="X-Correlation-ID"))

    resp = client.get("/health", headers={"X-Correlation-ID": "corr-42"})

    assert resp.status_code == 200
    assert resp.headers.get("X-Correlation-ID") == "corr-42"
    assert "X-Request-ID" not in resp.headers
