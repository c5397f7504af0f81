"""Service tests for the messages API."""

import json

import pytest

from shared.queues import CODE_AGENT_QUEUE
from worker.repository import MessageRepository

ALICE = {"X-User-ID": "user_alice"}
BOB = {"X-User-ID": "user_bob"}


@pytest.fixture
async def project(client):
    resp = await client.post(
        "/api/projects/", json={"value": "Build a todo app"}, headers=ALICE
    )
    return resp.json()


@pytest.mark.asyncio
async def test_list_messages_in_order_with_fragments(client, session_maker, project):
    repository = MessageRepository(session_maker)
    await repository.save_result(
        project["id"],
        "Here's your todo app.",
        "https://itwpgu0xn55atpf7xisfr-3000.e2b.dev",
        "Todo App",
        {"app/page.tsx": "page"},
    )
    await repository.save_error(project["id"], "Something went wrong. Please try again.")

    resp = await client.get("/api/messages/", params={"project_id": project["id"]}, headers=ALICE)

    assert resp.status_code == 200
    messages = resp.json()
    assert [(m["role"], m["type"]) for m in messages] == [
        ("USER", "RESULT"),
        ("ASSISTANT", "RESULT"),
        ("ASSISTANT", "ERROR"),
    ]
    assert messages[0]["fragment"] is None
    assert messages[1]["fragment"]["title"] == "Todo App"
    assert messages[1]["fragment"]["files"] == {"app/page.tsx": "page"}
    assert messages[2]["fragment"] is None


@pytest.mark.asyncio
async def test_create_message_enqueues_follow_up(client, redis, project):
    resp = await client.post(
        "/api/messages/",
        json={"value": "Add a dark mode", "project_id": project["id"]},
        headers=ALICE,
    )

    assert resp.status_code == 201
    body = resp.json()
    assert body["content"] == "Add a dark mode"
    assert body["role"] == "USER"
    assert body["type"] == "RESULT"
    assert body["fragment"] is None

    entries = await redis.xrange(CODE_AGENT_QUEUE)
    assert len(entries) == 2  # noqa: PLR2004
    follow_up = json.loads(entries[-1][1]["data"])
    assert follow_up == {**follow_up, "value": "Add a dark mode", "project_id": project["id"]}


@pytest.mark.asyncio
async def test_foreign_project_is_not_found(client, redis, project):
    listed = await client.get("/api/messages/", params={"project_id": project["id"]}, headers=BOB)
    created = await client.post(
        "/api/messages/",
        json={"value": "Sneaky edit", "project_id": project["id"]},
        headers=BOB,
    )

    assert listed.status_code == 404
    assert created.status_code == 404
    assert len(await redis.xrange(CODE_AGENT_QUEUE)) == 1


@pytest.mark.asyncio
async def test_create_message_validates_value(client, project):
    resp = await client.post(
        "/api/messages/", json={"value": "", "project_id": project["id"]}, headers=ALICE
    )
    assert resp.status_code == 422
    assert "Message is required" in resp.text

    resp = await client.post(
        "/api/messages/", json={"value": "hi", "project_id": ""}, headers=ALICE
    )
    assert resp.status_code == 422
