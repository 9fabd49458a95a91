"""Tests for middleware components."""
import pytest
from httpx import AsyncClient, ASGITransport
import structlog

from video_mapper.health import Check, HealthCheck
from video_mapper.main import Service, create_app
from video_mapper.metrics import Metrics


def make_app(checks=None):
    health_check = HealthCheck(checks or [], system_code="up-nvm", name="health", description="desc")
    return create_app(Service(health_check=health_check, metrics=Metrics()))


@pytest.mark.asyncio
async def test_transaction_id_generated():
    """Test that a transaction ID is generated if not provided."""
    transport = ASGITransport(app=make_app())
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        response = await client.get("/__gtg")

    assert response.status_code == 200
    assert response.headers["X-Request-Id"].startswith("tid_")


@pytest.mark.asyncio
async def test_transaction_id_preserved():
    """Test that a provided transaction ID is preserved."""
    transport = ASGITransport(app=make_app())
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        response = await client.get("/__health", headers={"X-Request-Id": "tid_health123"})

    assert response.headers["X-Request-Id"] == "tid_health123"


@pytest.mark.asyncio
async def test_transaction_id_bound_for_logging():
    """Test that checks run with the request's transaction ID in the log context."""
    bound = []

    def checker():
        bound.append(structlog.contextvars.get_contextvars().get("transaction_id"))
        return "ok"

    check = Check(
        id="ctx",
        name="Ctx",
        severity=1,
        business_impact="",
        technical_summary="",
        panic_guide="",
        checker=checker,
    )
    transport = ASGITransport(app=make_app([check]))
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        await client.get("/__health", headers={"X-Request-Id": "tid_ctx"})

    assert bound == ["tid_ctx"]
