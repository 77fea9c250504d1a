import pytest
from fastapi import FastAPI
from httpx import AsyncClient, ASGITransport

from image_transformation.api.rate_limit import RateLimitMiddleware


def build_app(enabled: bool = True) -> FastAPI:
    app = FastAPI()
    app.add_middleware(
        RateLimitMiddleware,
        path_prefix="/api/images",
        max_requests=2,
        window_seconds=60,
        enabled=enabled
    )

    @app.get("/api/images/ping")
    async def ping():
        return {"pong": True}

    @app.get("/health")
    async def health():
        return {"status": "ok"}

    return app


@pytest.mark.asyncio
async def test_excess_requests_are_rejected():
    async with AsyncClient(transport=ASGITransport(app=build_app()), base_url="http://test") as client:
        assert (await client.get("/api/images/ping")).status_code == 200
        assert (await client.get("/api/images/ping")).status_code == 200

        response = await client.get("/api/images/ping")

    assert response.status_code == 429
    assert response.json() == {"success": False, "error": "Too many requests, please try again later"}
    assert response.headers["retry-after"] == "60"


@pytest.mark.asyncio
async def test_other_paths_are_not_counted():
    async with AsyncClient(transport=ASGITransport(app=build_app()), base_url="http://test") as client:
        for _ in range(5):
            assert (await client.get("/health")).status_code == 200
        assert (await client.get("/api/images/ping")).status_code == 200


@pytest.mark.asyncio
async def test_disabled_limiter_lets_everything_through():
    async with AsyncClient(transport=ASGITransport(app=build_app(enabled=False)), base_url="http://test") as client:
        for _ in range(5):
            assert (await client.get("/api/images/ping")).status_code == 200


def test_window_slides_forward():
    limiter = RateLimitMiddleware(app=None, max_requests=2, window_seconds=60)

    assert limiter.allow("10.0.0.1", now=1000.0)
    assert limiter.allow("10.0.0.1", now=1001.0)
    assert not limiter.allow("10.0.0.1", now=1002.0)
    assert limiter.allow("10.0.0.1", now=1061.0)


def test_idle_clients_are_forgotten():
    limiter = RateLimitMiddleware(app=None, max_requests=2, window_seconds=60)

    for i in range(100):
        limiter.allow(f"10.0.0.{i}", now=1000.0)
    assert len(limiter._buckets) == 100

    limiter.allow("10.0.1.1", now=1100.0)

    assert list(limiter._buckets) == ["10.0.1.1"]
