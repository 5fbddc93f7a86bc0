"""Tests for the HTTP endpoints."""

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from app import app, get_exporter
from conftest import T0
from exporter import UsageExporter


@pytest_asyncio.fixture
async def client(claude_dir):
    exporter = UsageExporter(claude_dir / "stats-cache.json", claude_dir)
    app.dependency_overrides[get_exporter] = lambda: exporter
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


@pytest.mark.asyncio
async def test_metrics(client, write_snapshot, write_log, usage):
    write_snapshot({"modelUsage": {"claude-x": {"inputTokens": 100}}}, mtime=T0)
    write_log([usage(input_tokens=50)], mtime=T0 + 1)

    resp = await client.get("/metrics")

    assert resp.status_code == 200
    assert resp.headers["content-type"].startswith("text/plain")
    assert 'claude_model_input_tokens_total{model="claude-x"} 150.0' in resp.text


@pytest.mark.asyncio
async def test_metrics_without_snapshot(client):
    resp = await client.get("/metrics")
    assert resp.status_code == 200
    assert "claude_exporter_last_refresh_success 0.0" in resp.text


@pytest.mark.asyncio
async def test_report(client, write_snapshot, write_log, usage):
    write_snapshot({"totalSessions": 2, "modelUsage": {"anthropic/claude-x": {"inputTokens": 100}}}, mtime=T0)
    write_log([usage(input_tokens=50)], mtime=T0 + 1)

    resp = await client.get("/api/report")

    assert resp.status_code == 200
    body = resp.json()
    assert body["models"]["claude-x"]["input_tokens"] == 150
    assert body["total_sessions"] == 3
    assert body["live"]["session_count"] == 1
    assert "message_count" in body["today"]


@pytest.mark.asyncio
async def test_report_unavailable(client):
    resp = await client.get("/api/report")
    assert resp.status_code == 503


@pytest.mark.asyncio
async def test_health_and_index(client):
    assert (await client.get("/health")).json() == {"status": "ok"}
    resp = await client.get("/")
    assert resp.status_code == 200
    assert '<a href="/metrics">' in resp.text
