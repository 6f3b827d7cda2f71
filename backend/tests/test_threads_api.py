"""Tests for the thread and audit HTTP routes."""

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from carethread.dependencies import get_engine
from carethread.main import app
from tests.conftest import ADMIN_ID, NURSE_ID, OUTSIDER_ID, OWNER_ID


def as_user(user_id: str, role: str | None = None) -> dict[str, str]:
    headers = {"X-User-Id": user_id}
    if role is not None:
        headers["X-User-Role"] = role
    return headers


OWNER = as_user(OWNER_ID, "HCW-MD")
NURSE = as_user(NURSE_ID, "HCW-RN")
OUTSIDER = as_user(OUTSIDER_ID, "HCW-MD")
ADMIN = as_user(ADMIN_ID, "ADMIN")

ADMISSION = {
    "surname": "Santos",
    "first_name": "Maria",
    "age": 67,
    "sex": "Female",
    "diagnosis": "Community-acquired pneumonia",
    "ward": "Ward 3",
    "room": "301",
}


@pytest_asyncio.fixture
async def client(engine):
    """Async test client with the engine dependency pointed at the test engine."""
    app.dependency_overrides[get_engine] = lambda: engine
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac
    app.dependency_overrides.pop(get_engine, None)


@pytest_asyncio.fixture
async def api_thread(client) -> str:
    """Thread created over HTTP by the owner, with the nurse added."""
    response = await client.post("/api/threads", json=ADMISSION, headers=OWNER)
    thread_id = response.json()["id"]
    await client.post(f"/api/threads/{thread_id}/members", json={"user_id": NURSE_ID}, headers=OWNER)
    return thread_id


# =============================================================================
# Identity and app
# =============================================================================


class TestIdentity:
    @pytest.mark.asyncio
    async def test_missing_user_header(self, client):
        response = await client.get("/api/threads")
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_unknown_role(self, client):
        response = await client.get("/api/threads", headers=as_user("x", "SURGEON"))
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_health_and_security_headers(self, client):
        response = await client.get("/health")
        assert response.json() == {"status": "healthy"}
        assert response.headers["X-Frame-Options"] == "DENY"
        assert response.headers["Cache-Control"] == "no-store"


# =============================================================================
# Threads
# =============================================================================


class TestThreadRoutes:
    @pytest.mark.asyncio
    async def test_create_admission(self, client):
        response = await client.post("/api/threads", json=ADMISSION, headers=OWNER)

        assert response.status_code == 201
        data = response.json()
        assert data["status"] == "active"
        assert data["members"] == [OWNER_ID]
        assert data["main_care_owner_id"] == OWNER_ID

    @pytest.mark.asyncio
    async def test_create_admission_validates_body(self, client):
        response = await client.post("/api/threads", json={"surname": ""}, headers=OWNER)
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_list_threads(self, client, api_thread):
        response = await client.get("/api/threads", headers=OUTSIDER)

        data = response.json()
        assert data["total"] == 1
        row = data["items"][0]
        assert row["id"] == api_thread
        assert row["display_name"] == "Santos, Maria"
        assert row["is_member"] is False

    @pytest.mark.asyncio
    async def test_discharged_tab(self, client, api_thread):
        await client.post(f"/api/threads/{api_thread}/discharge", headers=OWNER)

        active = await client.get("/api/threads", headers=OWNER)
        discharged = await client.get("/api/threads", params={"status": "discharged"}, headers=OWNER)
        assert active.json()["total"] == 0
        assert discharged.json()["items"][0]["id"] == api_thread

    @pytest.mark.asyncio
    async def test_get_admission_requires_membership(self, client, api_thread):
        assert (await client.get(f"/api/threads/{api_thread}", headers=NURSE)).status_code == 200
        response = await client.get(f"/api/threads/{api_thread}", headers=OUTSIDER)
        assert response.status_code == 403
        assert response.json()["code"] == "permission_denied"

    @pytest.mark.asyncio
    async def test_unknown_thread(self, client):
        response = await client.get("/api/threads/missing/messages", headers=OWNER)
        assert response.status_code == 404
        assert response.json()["code"] == "thread_not_found"

    @pytest.mark.asyncio
    async def test_edit_admission(self, client, api_thread):
        response = await client.patch(f"/api/threads/{api_thread}", json={"room": "305"}, headers=NURSE)
        assert response.status_code == 200
        assert response.json()["room"] == "305"
        assert response.json()["ward"] == "Ward 3"

    @pytest.mark.asyncio
    async def test_edit_admission_rejects_null_surname(self, client, api_thread):
        response = await client.patch(f"/api/threads/{api_thread}", json={"surname": None}, headers=OWNER)
        assert response.status_code == 422

        listed = await client.get("/api/threads", params={"search": "santos"}, headers=OWNER)
        assert listed.json()["items"][0]["display_name"] == "Santos, Maria"

    @pytest.mark.asyncio
    async def test_census(self, client, api_thread):
        response = await client.get("/api/threads/census", headers=OWNER)
        assert response.json() == {"active": 1, "discharged": 0}


# =============================================================================
# Messages
# =============================================================================


class TestMessageRoutes:
    @pytest.mark.asyncio
    async def test_send_and_unread(self, client, api_thread):
        response = await client.post(
            f"/api/threads/{api_thread}/messages",
            json={"content": "Vitals stable"},
            headers=NURSE,
        )
        assert response.status_code == 201
        message = response.json()
        assert message["read_by"] == [NURSE_ID]

        unread = await client.get(f"/api/threads/{api_thread}/unread", headers=OWNER)
        assert unread.json() == {"unread_count": 1}
        total = await client.get("/api/threads/unread", headers=OWNER)
        assert total.json() == {"unread_count": 1}

        read = await client.post(f"/api/threads/{api_thread}/messages/{message['id']}/read", headers=OWNER)
        assert read.status_code == 204
        unread = await client.get(f"/api/threads/{api_thread}/unread", headers=OWNER)
        assert unread.json() == {"unread_count": 0}

    @pytest.mark.asyncio
    async def test_list_messages_with_cursor(self, client, api_thread):
        first = await client.get(f"/api/threads/{api_thread}/messages", headers=NURSE)
        cursor = first.json()["last_seq"]
        await client.post(f"/api/threads/{api_thread}/messages", json={"content": "new"}, headers=OWNER)

        response = await client.get(
            f"/api/threads/{api_thread}/messages",
            params={"after_seq": cursor},
            headers=NURSE,
        )
        data = response.json()
        assert [m["content"] for m in data["items"]] == ["new"]
        assert data["last_seq"] == cursor + 1

    @pytest.mark.asyncio
    async def test_non_member_send_forbidden(self, client, api_thread):
        response = await client.post(
            f"/api/threads/{api_thread}/messages",
            json={"content": "hello"},
            headers=OUTSIDER,
        )
        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_image_without_attachment(self, client, api_thread):
        response = await client.post(
            f"/api/threads/{api_thread}/messages",
            json={"kind": "image"},
            headers=OWNER,
        )
        assert response.status_code == 422
        assert response.json()["code"] == "invalid_attachment"

    @pytest.mark.asyncio
    async def test_send_after_discharge(self, client, api_thread):
        await client.post(f"/api/threads/{api_thread}/discharge", headers=OWNER)
        response = await client.post(
            f"/api/threads/{api_thread}/messages",
            json={"content": "late"},
            headers=NURSE,
        )
        assert response.status_code == 409
        assert response.json()["code"] == "thread_closed"

    @pytest.mark.asyncio
    async def test_delete_and_react(self, client, api_thread):
        sent = await client.post(f"/api/threads/{api_thread}/messages", json={"content": "typo"}, headers=NURSE)
        message_id = sent.json()["id"]

        reaction = await client.post(
            f"/api/threads/{api_thread}/messages/{message_id}/reactions",
            json={"reaction": "check"},
            headers=OWNER,
        )
        assert reaction.json() == {"reaction": "check", "held": True}

        forbidden = await client.delete(f"/api/threads/{api_thread}/messages/{message_id}", headers=OWNER)
        assert forbidden.status_code == 403
        deleted = await client.delete(f"/api/threads/{api_thread}/messages/{message_id}", headers=NURSE)
        assert deleted.status_code == 204


# =============================================================================
# Membership and lifecycle
# =============================================================================


class TestMembershipRoutes:
    @pytest.mark.asyncio
    async def test_remove_owner_conflict(self, client, api_thread):
        response = await client.delete(f"/api/threads/{api_thread}/members/{OWNER_ID}", headers=ADMIN)
        assert response.status_code == 409
        assert response.json()["code"] == "cannot_remove_owner"

    @pytest.mark.asyncio
    async def test_leave(self, client, api_thread):
        response = await client.post(f"/api/threads/{api_thread}/leave", headers=NURSE)
        assert response.status_code == 204
        admission = await client.get(f"/api/threads/{api_thread}", headers=OWNER)
        assert admission.json()["members"] == [OWNER_ID]

    @pytest.mark.asyncio
    async def test_transfer_ownership(self, client, api_thread):
        response = await client.post(
            f"/api/threads/{api_thread}/owner",
            json={"new_owner_id": NURSE_ID},
            headers=OWNER,
        )
        assert response.status_code == 200
        assert response.json()["main_care_owner_id"] == NURSE_ID

    @pytest.mark.asyncio
    async def test_readmit(self, client, api_thread):
        await client.post(f"/api/threads/{api_thread}/discharge", headers=OWNER)
        response = await client.post(f"/api/threads/{api_thread}/readmit", headers=NURSE)
        assert response.status_code == 200
        assert response.json()["status"] == "active"


# =============================================================================
# Audit
# =============================================================================


class TestAuditRoutes:
    @pytest.mark.asyncio
    async def test_admin_queries_trail(self, client, api_thread):
        response = await client.get("/api/audit", params={"action": "CREATE"}, headers=ADMIN)

        assert response.status_code == 200
        events = response.json()
        assert len(events) == 1
        assert events[0]["target_id"] == api_thread
        assert events[0]["user_id"] == OWNER_ID

    @pytest.mark.asyncio
    async def test_non_admin_forbidden(self, client):
        response = await client.get("/api/audit", headers=OWNER)
        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_inverted_range(self, client):
        response = await client.get(
            "/api/audit",
            params={"start": "2025-03-02", "end": "2025-03-01"},
            headers=ADMIN,
        )
        assert response.status_code == 422
