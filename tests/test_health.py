"""Tests for GET /api/health."""
import pytest
from httpx import AsyncClient

from app.config import settings as config


@pytest.mark.asyncio
async def test_health_returns_200(client: AsyncClient):
    resp = await client.get("/api/health/")
    assert resp.status_code == 200
    data = resp.json()
    assert data["status"] == "healthy"
    assert data["database"] == "ok"
    assert data["gemini"] in ("configured", "missing")


@pytest.mark.asyncio
async def test_health_reports_saved_gemini_key(client: AsyncClient, monkeypatch):
    monkeypatch.setattr(config, "GEMINI_API_KEY", "")
    resp = await client.get("/api/health/")
    assert resp.json()["gemini"] == "missing"

    await client.put("/api/settings", json={"geminiApiKey": "user-key"})
    resp = await client.get("/api/health/")
    assert resp.json()["gemini"] == "configured"


@pytest.mark.asyncio
async def test_root_endpoint(client: AsyncClient):
    resp = await client.get("/")
    assert resp.status_code == 200
    data = resp.json()
    assert data["name"] == "Propel PRD API"
    assert "prds" in data["endpoints"]
