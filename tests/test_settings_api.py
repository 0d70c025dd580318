"""Tests for /api/settings and /api/generate."""
import pytest
from httpx import AsyncClient

from app.services.generation import GenerationError, MissingCredentialError


@pytest.mark.asyncio
async def test_settings_default_and_update(client: AsyncClient):
    resp = await client.get("/api/settings")
    assert resp.status_code == 200
    assert resp.json() == {
        "geminiModel": "gemini-2.5-flash",
        "geminiApiKey": "",
        "webhookUrl": "",
        "email": "",
    }

    resp = await client.put(
        "/api/settings",
        json={"geminiModel": "gemini-pro", "webhookUrl": "https://hooks.example.com/x"},
    )
    assert resp.status_code == 200

    data = (await client.get("/api/settings")).json()
    assert data["geminiModel"] == "gemini-pro"
    assert data["webhookUrl"] == "https://hooks.example.com/x"
    assert data["geminiApiKey"] == ""


@pytest.mark.asyncio
async def test_webhook_test_endpoint(client: AsyncClient, fake_notifier):
    resp = await client.post("/api/settings/webhook/test", json={"url": "https://hooks.example.com/t"})
    assert resp.status_code == 200
    assert resp.json() == {"delivered": True}
    assert fake_notifier.tested == ["https://hooks.example.com/t"]

    resp = await client.post("/api/settings/webhook/test", json={"url": ""})
    assert resp.status_code == 422


@pytest.mark.asyncio
async def test_generate_section_endpoint(client: AsyncClient, fake_generator):
    resp = await client.post(
        "/api/generate/section",
        json={
            "title": "Risk Assessment",
            "context": {"productName": "Acme", "existingSections": {"Problem Statement": "Speed"}},
        },
    )
    assert resp.status_code == 200
    assert resp.json() == {"text": "Generated content"}
    title, context = fake_generator.section_calls[0]
    assert title == "Risk Assessment"
    assert context.existing_sections == {"Problem Statement": "Speed"}


@pytest.mark.asyncio
async def test_generate_description_and_enhance(client: AsyncClient, fake_generator):
    fake_generator.enhanced = "Polished"

    resp = await client.post("/api/generate/description", json={"productName": "Acme"})
    assert resp.json() == {"text": "A product."}

    resp = await client.post("/api/generate/enhance", json={"text": "rough", "instruction": "polish"})
    assert resp.json() == {"text": "Polished"}


@pytest.mark.asyncio
async def test_generate_description_requires_product_name(client: AsyncClient):
    resp = await client.post("/api/generate/description", json={"productName": ""})
    assert resp.status_code == 422


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "error, status_code",
    [(MissingCredentialError("API Key missing"), 400), (GenerationError("upstream down"), 502)],
)
async def test_generation_errors_map_to_status(client: AsyncClient, fake_generator, error, status_code):
    fake_generator.error = error
    resp = await client.post("/api/generate/description", json={"productName": "Acme"})
    assert resp.status_code == status_code
