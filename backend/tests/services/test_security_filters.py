"""Security Filters - pipeline tests for user-agent, path and rate-limit gates.

Invariants:
    - Rejections are plain text: 403 "Access denied." or 429 "Ip bloqueado."
    - A rejected request never reaches the session layer (no row, no cookie)
    - The 101st request in a window is blocked; the window resets after 15 minutes
"""

import pytest
from httpx import ASGITransport, AsyncClient

from plataforma.services.rate_limiter import RateLimiter


@pytest.mark.parametrize("ua", ["curl/8.4.0", "Wget/1.21", "SomeBot/1.0", "spider-x"])
async def test_blocked_user_agent_gets_403(client, ua):
    res = await client.get("/health", headers={"user-agent": ua})
    assert res.status_code == 403
    assert res.text == "Access denied."
    assert res.headers["content-type"].startswith("text/plain")


@pytest.mark.parametrize("path", [
    "/../.env",
    "/.env",
    "/.git/HEAD",
    "/static/..%2f..%2fetc/passwd",
    "/wp-login.php",
    "/db.sql",
])
async def test_suspicious_path_gets_403(client, path):
    res = await client.get(path)
    assert res.status_code == 403
    assert res.text == "Access denied."


@pytest.mark.parametrize("path", ["/content/pack.zip", "/content/episode-3.tar.gz", "/content/demo.php"])
async def test_content_downloads_pass_path_filter(client, path):
    res = await client.get(path)
    assert res.status_code != 403


async def test_rejected_request_creates_no_session(client, count_sessions):
    res = await client.get("/.env")
    assert res.status_code == 403
    assert "set-cookie" not in res.headers
    assert await count_sessions() == 0


async def test_user_agent_checked_before_path(client):
    res = await client.get("/.env", headers={"user-agent": "curl/8"})
    assert res.status_code == 403


async def test_hundred_and_first_request_is_blocked(client):
    for _ in range(100):
        res = await client.get("/health")
        assert res.status_code == 200

    res = await client.get("/health")
    assert res.status_code == 429
    assert res.text == "Ip bloqueado."


async def test_window_resets_after_fifteen_minutes(build_app, clock):
    limiter = RateLimiter(limit=3, window_seconds=900, clock=clock)
    app = build_app(rate_limiter=limiter)

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
        for _ in range(3):
            assert (await c.get("/health")).status_code == 200
        assert (await c.get("/health")).status_code == 429

        clock.advance(899)
        assert (await c.get("/health")).status_code == 429

        clock.advance(1)
        assert (await c.get("/health")).status_code == 200


async def test_limit_is_per_client_ip(build_app, clock):
    limiter = RateLimiter(limit=1, window_seconds=900, clock=clock)
    app = build_app(rate_limiter=limiter)

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
        first = {"x-forwarded-for": "203.0.113.7"}
        second = {"x-forwarded-for": "198.51.100.4"}
        assert (await c.get("/health", headers=first)).status_code == 200
        assert (await c.get("/health", headers=first)).status_code == 429
        assert (await c.get("/health", headers=second)).status_code == 200


async def test_blocked_paths_do_not_consume_rate_budget(build_app, clock):
    limiter = RateLimiter(limit=1, window_seconds=900, clock=clock)
    app = build_app(rate_limiter=limiter)

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
        assert (await c.get("/.env")).status_code == 403
        assert (await c.get("/health")).status_code == 200
