from __future__ import annotations

from datetime import datetime

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from helpdesk.main import create_app

USER = {"X-Actor-Id": "user:1", "X-Actor-Role": "user"}
AGENT = {"X-Actor-Id": "agent:2", "X-Actor-Role": "agent"}
ADMIN = {"X-Actor-Id": "admin:3", "X-Actor-Role": "admin"}


@pytest_asyncio.fixture
async def client(service):
    app = create_app()
    app.state.ticket_service = service
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.mark.asyncio
async def test_printer_down_end_to_end(client: AsyncClient):
    created = await client.post("/tickets", json={"title": "Printer down", "sla_hours": 4}, headers=USER)
    assert created.status_code == 201
    ticket = created.json()
    assert ticket["version"] == 1
    assert ticket["creator_id"] == "user:1"
    deadline = datetime.fromisoformat(ticket["sla_deadline"])
    created_at = datetime.fromisoformat(ticket["created_at"])
    assert (deadline - created_at).total_seconds() == 4 * 3600

    patch_body = {"status": "in_progress", "version": 1}
    first = await client.patch(f"/tickets/{ticket['id']}", json=patch_body, headers=AGENT)
    assert first.status_code == 200
    assert first.json()["version"] == 2
    assert first.json()["status"] == "in_progress"

    replay = await client.patch(f"/tickets/{ticket['id']}", json=patch_body, headers=USER)
    assert replay.status_code == 409
    assert replay.json()["detail"]["kind"] == "conflict"


@pytest.mark.asyncio
async def test_role_violations_and_missing_version(client: AsyncClient):
    ticket = (await client.post("/tickets", json={"title": "Projector"}, headers=USER)).json()
    url = f"/tickets/{ticket['id']}"

    assert (await client.patch(url, json={"status": "closed", "version": 1}, headers=USER)).status_code == 403
    assert (await client.patch(url, json={"sla_hours": 8, "version": 1}, headers=AGENT)).status_code == 403
    assert (await client.patch(url, json={"status": "closed"}, headers=AGENT)).status_code == 400
    assert (await client.patch(url, json={"version": 1}, headers=AGENT)).status_code == 400

    admin_update = await client.patch(url, json={"sla_hours": 8, "version": 1}, headers=ADMIN)
    assert admin_update.status_code == 200
    assert admin_update.json()["sla_hours"] == 8

    assert (await client.patch("/tickets/missing", json={"title": "x", "version": 1}, headers=USER)).status_code == 404


@pytest.mark.asyncio
async def test_comments_and_detail_view(client: AsyncClient):
    ticket = (await client.post("/tickets", json={"title": "Email bouncing"}, headers=USER)).json()
    comments_url = f"/tickets/{ticket['id']}/comments"

    root = await client.post(comments_url, json={"body": "Since this morning"}, headers=USER)
    assert root.status_code == 201
    reply = await client.post(
        comments_url, json={"body": "Checking the relay", "parent_id": root.json()["id"]}, headers=AGENT
    )
    assert reply.status_code == 201
    assert (await client.post(comments_url, json={"body": ""}, headers=USER)).status_code == 400
    assert (await client.post("/tickets/missing/comments", json={"body": "hi"}, headers=USER)).status_code == 404

    detail = await client.get(f"/tickets/{ticket['id']}")
    assert detail.status_code == 200
    body = detail.json()
    assert body["ticket"]["breached"] is False
    assert [node["id"] for node in body["comments"]] == [root.json()["id"]]
    assert [node["id"] for node in body["comments"][0]["children"]] == [reply.json()["id"]]
    assert [entry["action"] for entry in body["timeline"]] == ["create_ticket", "comment", "comment"]

    listing = await client.get("/tickets", params={"search": "relay"})
    assert [item["id"] for item in listing.json()["items"]] == [ticket["id"]]
    assert listing.json()["limit"] == 20


@pytest.mark.asyncio
async def test_malformed_bodies_are_validation_errors(client: AsyncClient):
    no_body = await client.post("/tickets", headers=USER)
    assert no_body.status_code == 400
    assert no_body.json()["detail"] == {"kind": "validation", "message": "title is required"}
    assert (await client.post("/tickets", json={"title": 123}, headers=USER)).status_code == 400
    assert (await client.post("/tickets", json=["Printer down"], headers=USER)).status_code == 400

    ticket = (await client.post("/tickets", json={"title": "Router"}, headers=USER)).json()
    url = f"/tickets/{ticket['id']}"

    missing_version = await client.patch(url, headers=AGENT)
    assert missing_version.status_code == 400
    assert missing_version.json()["detail"]["message"] == "version is required"
    assert (await client.patch(url, json={"version": "abc", "title": "x"}, headers=AGENT)).status_code == 400
    assert (await client.patch(url, json={"version": True, "title": "x"}, headers=AGENT)).status_code == 400

    comments_url = f"{url}/comments"
    assert (await client.post(comments_url, headers=USER)).status_code == 400
    assert (await client.post(comments_url, json={"body": 5}, headers=USER)).status_code == 400
    assert (await client.post(comments_url, json={"body": "hi", "parent_id": 7}, headers=USER)).status_code == 400

    detail = (await client.get(url)).json()
    assert detail["ticket"]["version"] == 1
    assert detail["ticket"]["title"] == "Router"
    assert detail["comments"] == []


@pytest.mark.asyncio
async def test_bad_query_parameters_are_validation_errors(client: AsyncClient):
    response = await client.get("/tickets", params={"limit": 0})

    assert response.status_code == 400
    assert response.json()["detail"]["kind"] == "validation"
