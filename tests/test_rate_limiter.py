import pytest
import redis
from fastapi import HTTPException
from starlette.requests import Request

from barbershop import rate_limiter


class _PipelineStub:
    def __init__(self, store):
        self.store = store
        self.ops = []

    def incr(self, key):
        self.ops.append(("incr", key))
        return self

    def expire(self, key, seconds):
        self.ops.append(("expire", key))
        return self

    def execute(self):
        results = []
        for op, key in self.ops:
            if op == "incr":
                self.store[key] = self.store.get(key, 0) + 1
                results.append(self.store[key])
            else:
                results.append(True)
        return results


class _RedisStub:
    def __init__(self):
        self.store = {}

    def pipeline(self):
        return _PipelineStub(self.store)


class _BrokenRedis:
    def pipeline(self):
        raise redis.ConnectionError("down")


def _make_request(headers=None):
    headers = headers or {}
    scope = {
        "type": "http",
        "method": "POST",
        "path": "/api/chat",
        "headers": [(k.lower().encode(), v.encode()) for k, v in headers.items()],
        "client": ("10.0.0.1", 1234),
    }
    return Request(scope)


def test_check_rate_limit_counts_per_window():
    client = _RedisStub()

    results = [rate_limiter.check_rate_limit("k", 2, 60, client)[0] for _ in range(3)]

    assert results == [True, True, False]


@pytest.mark.asyncio
async def test_limiter_rejects_after_limit(monkeypatch):
    stub = _RedisStub()
    monkeypatch.setattr(rate_limiter, "RATE_LIMIT_ENABLED", True)
    monkeypatch.setattr(rate_limiter, "get_redis_client", lambda: stub)
    limiter = rate_limiter.create_rate_limiter(1, 60, key_prefix="rate:test")

    await limiter(_make_request())
    with pytest.raises(HTTPException) as exc_info:
        await limiter(_make_request())

    assert exc_info.value.status_code == 429
    assert "Retry-After" in exc_info.value.headers


@pytest.mark.asyncio
async def test_limiter_keys_on_forwarded_client(monkeypatch):
    stub = _RedisStub()
    monkeypatch.setattr(rate_limiter, "RATE_LIMIT_ENABLED", True)
    monkeypatch.setattr(rate_limiter, "get_redis_client", lambda: stub)
    limiter = rate_limiter.create_rate_limiter(1, 60, key_prefix="rate:test")

    await limiter(_make_request({"X-Forwarded-For": "1.1.1.1, 10.0.0.1"}))
    await limiter(_make_request({"X-Forwarded-For": "2.2.2.2"}))

    assert sorted(key.split(":")[2] for key in stub.store) == ["1.1.1.1", "2.2.2.2"]


@pytest.mark.asyncio
async def test_limiter_fails_closed_when_redis_is_down(monkeypatch):
    monkeypatch.setattr(rate_limiter, "RATE_LIMIT_ENABLED", True)
    monkeypatch.setattr(rate_limiter, "get_redis_client", lambda: _BrokenRedis())
    limiter = rate_limiter.create_rate_limiter(1, 60)

    with pytest.raises(HTTPException) as exc_info:
        await limiter(_make_request())

    assert exc_info.value.status_code == 503


@pytest.mark.asyncio
async def test_limiter_disabled(monkeypatch):
    monkeypatch.setattr(rate_limiter, "RATE_LIMIT_ENABLED", False)
    monkeypatch.setattr(rate_limiter, "get_redis_client", lambda: _BrokenRedis())

    await rate_limiter.create_rate_limiter(1, 60)(_make_request())
