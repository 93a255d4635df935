"""End-to-end tests for GET /api/images through the FastAPI app."""

from fastapi.testclient import TestClient


def test_success_returns_canonical_posts_and_miss_header(client, upstream):
    upstream.json_body = {
        "post": [
            {
                "id": 1,
                "tags": "a b",
                "preview_url": "http://x/p.jpg",
                "file_url": "http://x/f.jpg",
                "sample_url": "http://x/s.jpg",
                "rating": "general",
                "score": 5,
                "source": "https://www.pixiv.net/artworks/1",
                "md5": "ignored",
            }
        ]
    }

    response = client.get("/api/images", params={"tags": "a"})

    assert response.status_code == 200
    assert response.headers["X-Cache"] == "MISS"
    body = response.json()
    assert body["count"] == 1
    post = body["post"][0]
    assert post["id"] == 1
    assert post["tags"] == "a b"
    assert post["preview_url"] == "http://x/p.jpg"
    assert post["file_url"] == "http://x/f.jpg"
    assert post["sample_url"] == "http://x/s.jpg"
    assert post["source"] == "https://www.pixiv.net/artworks/1"
    assert "md5" not in post


def test_second_identical_query_is_served_from_cache(client, upstream):
    upstream.json_body = {"post": [{"id": 5}]}

    first = client.get("/api/images", params={"tags": "Cat  dog", "limit": "20"})
    second = client.get("/api/images", params={"tags": "cat dog"})

    assert first.headers["X-Cache"] == "MISS"
    assert second.headers["X-Cache"] == "HIT"
    assert second.json() == first.json()
    assert len(upstream.requests) == 1


def test_missing_fields_are_empty_strings_not_absent(client, upstream):
    upstream.json_body = {"post": [{"id": 1}]}

    post = client.get("/api/images").json()["post"][0]

    for field in ("tags", "preview_url", "file_url", "sample_url"):
        assert post[field] == ""


def test_no_results_is_an_empty_list(client, upstream):
    upstream.json_body = {"@attributes": {"limit": 20, "offset": 0, "count": 0}}

    response = client.get("/api/images", params={"tags": "nothing_matches"})

    assert response.status_code == 200
    assert response.json() == {"count": 0, "post": []}


def test_malformed_params_are_defaulted_before_upstream_call(client, upstream):
    upstream.json_body = []

    response = client.get(
        "/api/images",
        params={
            "tags": "cat dog!!",
            "page": "-1",
            "limit": "500",
            "sort": "bogus",
            "source": "danbooru",
        },
    )

    assert response.status_code == 200
    sent = upstream.last_url
    assert sent.host == "danbooru.donmai.us"
    assert sent.params["tags"] == "cat dog order:id"
    assert sent.params["page"] == "1"
    assert sent.params["limit"] == "100"


def test_danbooru_relative_urls_are_absolutized(client, upstream):
    upstream.json_body = [{"id": 2, "tag_string": "c d", "file_url": "/f2.jpg"}]

    post = client.get("/api/images", params={"source": "danbooru"}).json()["post"][0]

    assert post["id"] == 2
    assert post["tags"] == "c d"
    assert post["file_url"] == "https://danbooru.donmai.us/f2.jpg"


def test_rate_limit_returns_429_with_headers(make_app, upstream):
    client = TestClient(make_app(rate_limit_requests=2))

    assert client.get("/api/images").status_code == 200
    assert client.get("/api/images").status_code == 200
    response = client.get("/api/images")

    assert response.status_code == 429
    assert response.json() == {"error": "Too many requests. Try again later."}
    assert int(response.headers["Retry-After"]) > 0
    assert response.headers["X-RateLimit-Limit"] == "2"
    assert len(upstream.requests) == 1


def test_rate_limit_is_per_forwarded_client(make_app):
    client = TestClient(make_app(rate_limit_requests=1, trust_forwarded_for=True))

    assert client.get("/api/images", headers={"X-Forwarded-For": "1.1.1.1"}).status_code == 200
    assert client.get("/api/images", headers={"X-Forwarded-For": "1.1.1.1"}).status_code == 429
    assert (
        client.get("/api/images", headers={"X-Forwarded-For": "2.2.2.2, 10.0.0.1"}).status_code
        == 200
    )


def test_forwarded_header_is_ignored_by_default(make_app):
    client = TestClient(make_app(rate_limit_requests=1))

    assert client.get("/api/images", headers={"X-Forwarded-For": "1.1.1.1"}).status_code == 200
    assert client.get("/api/images", headers={"X-Forwarded-For": "3.3.3.3"}).status_code == 429


def test_rate_limit_can_be_disabled(make_app):
    client = TestClient(make_app(rate_limit_enabled=False, rate_limit_requests=1))

    for _ in range(3):
        assert client.get("/api/images").status_code == 200


def test_upstream_timeout_returns_504(make_app, upstream):
    upstream.delay_seconds = 5
    client = TestClient(make_app(timeout_seconds=0.05))

    response = client.get("/api/images")

    assert response.status_code == 504
    assert response.json() == {"error": "Request to upstream timed out"}
    assert upstream.cancelled is True


def test_upstream_rejection_passes_status_through(client, upstream):
    upstream.status_code = 403
    upstream.json_body = {"success": False, "message": "secret internals"}

    response = client.get("/api/images")

    assert response.status_code == 403
    assert set(response.json()) == {"error"}
    assert "secret internals" not in response.text


def test_unparseable_upstream_body_returns_502(client, upstream):
    upstream.raw_body = b"<!doctype html><title>Just a moment...</title>"

    response = client.get("/api/images")

    assert response.status_code == 502
    assert set(response.json()) == {"error"}
    assert "doctype" not in response.text


def test_non_get_method_is_rejected_with_error_body(client):
    response = client.post("/api/images")

    assert response.status_code == 405
    assert response.json() == {"error": "Method not allowed"}


def test_health_lists_sources(client):
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok", "sources": ["danbooru", "gelbooru"]}
