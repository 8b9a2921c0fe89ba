import pytest
from httpx import AsyncClient


@pytest.mark.asyncio
async def test_request_id_is_echoed(client: AsyncClient) -> None:
    response = await client.get("/health", headers={"X-Request-ID": "req-42"})

    assert response.headers["X-Request-ID"] == "req-42"


@pytest.mark.asyncio
async def test_request_id_is_generated_when_missing(client: AsyncClient) -> None:
    response = await client.get("/health")

    assert len(response.headers["X-Request-ID"]) == 36
