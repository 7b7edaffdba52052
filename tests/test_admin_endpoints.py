"""Tests for admin endpoints."""

import asyncio

from fastapi.testclient import TestClient

from assist_signaling.api.app import create_app
from assist_signaling.containers import build_container
from assist_signaling.domain.models import Role
from tests.conftest import FakeConnection


def test_admin_sessions_endpoint(container) -> None:
    app = create_app(container)
    client = TestClient(app)

    async def seed() -> None:
        await container.broker.register("p1", Role.PROFESSIONAL, FakeConnection())
        await container.broker.register("u1", Role.USER, FakeConnection())
        await container.broker.initiate_call("u1")

    asyncio.run(seed())

    response = client.get("/admin/sessions", headers={"X-Admin-Token": "admin-token"})

    assert response.status_code == 200
    data = response.json()
    assert data["sessions"][0]["user_id"] == "u1"
    assert data["sessions"][0]["professional_id"] == "p1"
    assert data["sessions"][0]["status"] == "pending"


def test_admin_requires_token(container) -> None:
    app = create_app(container)
    client = TestClient(app)

    missing = client.get("/admin/queue")
    wrong = client.get("/admin/queue", headers={"X-Admin-Token": "nope"})

    assert missing.status_code == 401
    assert wrong.status_code == 401


def test_admin_disabled_without_configured_token(settings) -> None:
    settings.admin_token = None
    app = create_app(build_container(settings))
    client = TestClient(app)

    response = client.get("/admin/sessions", headers={"X-Admin-Token": "anything"})

    assert response.status_code == 401
