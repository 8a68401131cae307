"""Tests for the liveness endpoint."""

from unittest.mock import patch

from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient


async def test_health_returns_ok(test_app: FastAPI) -> None:
    async with AsyncClient(transport=ASGITransport(app=test_app), base_url="http://test") as client:
        response = await client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok", "service": "postboxd"}


async def test_health_does_not_open_a_session(test_app: FastAPI) -> None:
    with patch("postboxd.database.AsyncSessionLocal") as session_maker:
        async with AsyncClient(transport=ASGITransport(app=test_app), base_url="http://test") as client:
            await client.get("/health")

    session_maker.assert_not_called()
