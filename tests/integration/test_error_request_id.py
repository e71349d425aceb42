"""Tests for request_id in error responses."""

from collections.abc import AsyncGenerator

import pytest
from httpx import ASGITransport, AsyncClient

from src.jupiter.main import create_app

pytestmark = pytest.mark.integration


@pytest.fixture
async def client() -> AsyncGenerator[AsyncClient]:
    app = create_app()
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
        yield c


async def test_http_exception_includes_request_id(client: AsyncClient) -> None:
    response = await client.get("/api/v1/nonexistent-endpoint")

    assert response.status_code == 404
    data = response.json()
    assert "detail" in data
    assert isinstance(data["request_id"], str)


async def test_unauthorized_includes_request_id(client: AsyncClient) -> None:
    response = await client.get("/api/v1/requests")

    assert response.status_code == 401
    data = response.json()
    assert data["detail"] == "Missing or invalid authorization header"
    assert data["request_id"] is not None


async def test_request_id_header_is_echoed(client: AsyncClient) -> None:
    request_id = "6f1c2a9e4b3d4e5f8a7b6c5d4e3f2a1b"

    response = await client.get("/api/v1/requests", headers={"X-Request-ID": request_id})

    assert response.headers["X-Request-ID"] == request_id
    assert response.json()["request_id"] == request_id
