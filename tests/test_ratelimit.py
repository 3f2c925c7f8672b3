from fastapi.testclient import TestClient

from todo_service.main import create_app
from todo_service.ratelimit import FixedWindowRateLimiter


class TestFixedWindowRateLimiter:
    def test_admits_up_to_max_per_window(self):
        now = [0.0]
        limiter = FixedWindowRateLimiter(2, 60, clock=lambda: now[0])
        assert limiter.hit("a")[:2] == (True, 1)
        assert limiter.hit("a")[:2] == (True, 0)
        allowed, remaining, reset_in = limiter.hit("a")
        assert (allowed, remaining) == (False, 0)
        assert reset_in == 60

    def test_clients_are_counted_separately(self):
        limiter = FixedWindowRateLimiter(1, 60, clock=lambda: 0.0)
        assert limiter.hit("a")[0]
        assert limiter.hit("b")[0]
        assert not limiter.hit("a")[0]

    def test_window_resets(self):
        now = [0.0]
        limiter = FixedWindowRateLimiter(1, 60, clock=lambda: now[0])
        assert limiter.hit("a")[0]
        now[0] = 30.0
        assert not limiter.hit("a")[0]
        now[0] = 60.0
        assert limiter.hit("a")[0]


class TestRateLimitMiddleware:
    def test_rejects_with_429_when_exceeded(self, env):
        env.setenv("RATE_LIMIT_ENABLED", "true")
        env.setenv("RATE_LIMIT_MAX", "2")
        with TestClient(create_app()) as c:
            first = c.get("/health")
            assert first.status_code == 200
            assert first.headers["x-ratelimit-limit"] == "2"
            assert first.headers["x-ratelimit-remaining"] == "1"
            assert c.get("/todos").status_code == 200
            res = c.get("/health")
        assert res.status_code == 429
        assert res.json() == {"error": "Too Many Requests"}
        assert int(res.headers["retry-after"]) > 0

    def test_disabled_in_development(self, client):
        for _ in range(5):
            res = client.get("/health")
            assert res.status_code == 200
            assert "x-ratelimit-limit" not in res.headers
