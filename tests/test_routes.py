"""HTTP surface exercised through httpx against the booted app."""

import asyncio

import httpx
import pytest
from fastapi import FastAPI

from conftest import FakeListener, FakeQueue
from sopen.core.boot_sequencer import BootSequencer

USER = {"Authorization": "Bearer user-token"}
ADMIN = {"Authorization": "Bearer admin-token"}


@pytest.mark.asyncio
async def test_root_generates_homepage_on_first_request(client, booted):
    homepage = booted.settings.homepage_path
    assert not homepage.exists()

    response = await client.get("/")

    assert response.status_code == 200
    assert "<h1>Sopen</h1>" in response.text
    assert homepage.exists()
    assert booted.context.artifact_guard.generation_attempts == 1


@pytest.mark.asyncio
async def test_root_serves_existing_homepage_without_generating(client, booted):
    booted.settings.homepage_path.write_text("<p>already here</p>")

    response = await client.get("/")

    assert response.text == "<p>already here</p>"
    assert booted.context.artifact_guard.generation_attempts == 0


@pytest.mark.asyncio
async def test_root_returns_placeholder_when_generation_fails(client, booted, monkeypatch):
    async def broken(target_path):
        raise RuntimeError("disk full")

    monkeypatch.setattr(booted.context.generator, "generate", broken)

    response = await client.get("/")

    assert response.status_code == 503
    assert "initializing" in response.text
    assert response.headers["retry-after"] == "5"


@pytest.mark.asyncio
async def test_status_reports_mode_and_cache(client):
    response = await client.get("/api/status")

    assert response.status_code == 200
    assert response.json() == {"publish_mode": "direct", "cache_available": True, "page_count": 0}


@pytest.mark.asyncio
async def test_health_probes(client, booted):
    assert (await client.get("/health/live")).status_code == 200

    ready = await client.get("/health/ready")
    assert ready.status_code == 200
    assert ready.json()["datastore"] is True

    booted.collaborators.datastore.connected = False
    assert (await client.get("/health/ready")).status_code == 503


@pytest.mark.asyncio
async def test_static_mounts(client, booted):
    (booted.settings.assets_dir / "site.css").write_text("body{}")

    response = await client.get("/assets/site.css")

    assert response.status_code == 200
    assert response.text == "body{}"


@pytest.mark.asyncio
async def test_publish_requires_token(client):
    response = await client.post("/api/publish", json={"slug": "a", "title": "A"})
    assert response.status_code == 401

    response = await client.post("/api/publish", json={"slug": "a", "title": "A"},
                                 headers={"Authorization": "Bearer forged"})
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_direct_publish_writes_page_and_lists_it(client, booted):
    response = await client.post("/api/publish", json={"slug": "first-post", "title": "First <post>"},
                                 headers=USER)

    assert response.status_code == 200
    body = response.json()
    assert body["mode"] == "direct"
    assert body["completed"] is True
    assert (booted.settings.pages_dir / "first-post.html").exists()

    pages = (await client.get("/api/pages")).json()["pages"]
    assert [p["slug"] for p in pages] == ["first-post"]
    assert pages[0]["title"] == "First <post>"

    page = await client.get("/pages/first-post.html")
    assert "By Ada" in page.text
    assert "&lt;post&gt;" in page.text


@pytest.mark.asyncio
async def test_page_listing_is_cached(client, booted):
    await client.get("/api/pages")
    assert "pages:list" in booted.collaborators.cache.store


@pytest.mark.asyncio
async def test_admin_routes_need_admin_claim(client):
    assert (await client.get("/api/admin/boot", headers=USER)).status_code == 403

    response = await client.get("/api/admin/boot", headers=ADMIN)
    assert response.status_code == 200
    report = response.json()
    assert report["dependencies"]["datastore"]["status"] == "connected"
    assert report["dependencies"]["queue"]["status"] == "disabled"
    assert report["publish_mode"] == "direct"


@pytest.mark.asyncio
async def test_admin_regenerates_homepage(client, booted):
    response = await client.post("/api/admin/homepage/regenerate", headers=ADMIN)

    assert response.status_code == 200
    assert booted.settings.homepage_path.exists()


@pytest.mark.asyncio
async def test_dashboard(client, booted):
    assert (await client.get("/dashboard")).status_code == 404

    booted.settings.dashboard_path.write_text("<h1>dash</h1>")
    assert (await client.get("/dashboard")).text == "<h1>dash</h1>"


@pytest.mark.asyncio
async def test_auth_disabled_answers_503(make_settings, make_collaborators):
    from sopen.clients.auth_provider import FirebaseAuthProvider

    settings = make_settings()
    collaborators = make_collaborators(settings, auth=FirebaseAuthProvider(""))
    sequencer = BootSequencer(settings, FastAPI(), collaborators, FakeListener())
    await sequencer.boot()

    transport = httpx.ASGITransport(app=sequencer.app)
    async with httpx.AsyncClient(transport=transport, base_url="http://sopen.test") as c:
        response = await c.post("/api/publish", json={"slug": "a", "title": "A"}, headers=USER)

    assert response.status_code == 503
    await sequencer.shutdown()


@pytest.mark.asyncio
async def test_queued_publish_accepts_or_rejects(make_settings, make_collaborators):
    settings = make_settings(queue_enabled=True, queue_uri="amqp://mq:5672/")
    queue = FakeQueue()
    sequencer = BootSequencer(settings, FastAPI(), make_collaborators(settings, queue=queue), FakeListener())
    await sequencer.boot()
    await sequencer.connector.drain(timeout=1.0)

    transport = httpx.ASGITransport(app=sequencer.app)
    async with httpx.AsyncClient(transport=transport, base_url="http://sopen.test") as c:
        accepted = await c.post("/api/publish", json={"slug": "q", "title": "Q"}, headers=USER)
        queue._connected = False
        rejected = await c.post("/api/publish", json={"slug": "q", "title": "Q"}, headers=USER)

    assert accepted.status_code == 202
    assert accepted.json()["completed"] is False
    assert len(queue.messages) == 1
    assert not (settings.pages_dir / "q.html").exists()
    assert rejected.status_code == 503
    assert rejected.headers["retry-after"] == "30"
    await sequencer.shutdown()


@pytest.mark.asyncio
async def test_concurrent_root_requests_generate_once(client, booted):
    first, second = await asyncio.gather(client.get("/"), client.get("/"))

    assert first.status_code == 200
    assert second.status_code == 200
    assert booted.context.artifact_guard.generation_attempts == 1
