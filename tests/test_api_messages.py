"""
Tests for the message HTTP endpoints
"""
import uuid

import pytest
from httpx import AsyncClient
from sqlalchemy import func, select

from sms_common.status import MessageStatus
from sms_service.models import Message
from sms_service.service import QUEUE_FAILURE_PREFIX


async def _count_messages(db_session) -> int:
    return (await db_session.execute(select(func.count()).select_from(Message))).scalar_one()


class TestSubmit:
    async def test_submit_returns_202_and_pending(self, test_client: AsyncClient, valid_payload, publisher):
        response = await test_client.post("/v1/messages", json=valid_payload)

        assert response.status_code == 202
        data = response.json()
        assert data["status"] == "PENDING"
        assert data["failure_reason"] is None
        assert data["sender"] == valid_payload["sender"]
        assert data["recipient"] == valid_payload["recipient"]
        assert data["text"] == "hi"
        assert set(data) == {"id", "sender", "recipient", "text", "status", "failure_reason", "created_at", "updated_at"}
        uuid.UUID(data["id"])
        assert response.headers["location"] == f"/v1/messages/{data['id']}"
        assert len(publisher.bodies) == 1

    async def test_get_returns_identical_resource(self, test_client: AsyncClient, valid_payload):
        created = (await test_client.post("/v1/messages", json=valid_payload)).json()

        response = await test_client.get(f"/v1/messages/{created['id']}")

        assert response.status_code == 200
        assert response.json() == created

    async def test_publish_failure_still_accepted(self, test_client: AsyncClient, valid_payload, publisher, db_session):
        publisher.error = ConnectionError("connection refused")

        response = await test_client.post("/v1/messages", json=valid_payload)

        assert response.status_code == 202
        data = response.json()
        assert data["status"] == "FAILED"
        assert data["failure_reason"].startswith(QUEUE_FAILURE_PREFIX)
        assert "connection refused" in data["failure_reason"]

        stored = (await test_client.get(f"/v1/messages/{data['id']}")).json()
        assert stored["status"] == "FAILED"
        assert stored["failure_reason"]

    @pytest.mark.parametrize(
        "overrides,field",
        [
            ({"sender": "1"}, "sender"),
            ({"sender": "+05551230000"}, "sender"),
            ({"sender": "+1555123000012345"}, "sender"),
            ({"recipient": "not-a-number"}, "recipient"),
            ({"sender": "+1\u0665\u0665\u0665\u0661\u0662\u0663"}, "sender"),
            ({"recipient": "+\uff11\uff15\uff15\uff15\uff10\uff10"}, "recipient"),
            ({"recipient": ""}, "recipient"),
            ({"text": ""}, "text"),
            ({"text": "   \n\t "}, "text"),
            ({"text": "x" * 1601}, "text"),
            ({"text": "bell\x07"}, "text"),
        ],
    )
    async def test_invalid_submit_is_rejected_without_persisting(
        self, test_client: AsyncClient, valid_payload, publisher, db_session, overrides, field
    ):
        payload = {**valid_payload, **overrides}

        response = await test_client.post("/v1/messages", json=payload)

        assert response.status_code == 400
        body = response.json()
        assert body["error_code"] == "VALIDATION_ERROR"
        assert body["status"] == 400
        assert body["title"]
        assert body["timestamp"]
        assert field in {v["field"] for v in body["violations"]}
        assert publisher.bodies == []
        assert await _count_messages(db_session) == 0

    async def test_missing_fields_enumerated(self, test_client: AsyncClient):
        response = await test_client.post("/v1/messages", json={})

        assert response.status_code == 400
        fields = {v["field"] for v in response.json()["violations"]}
        assert fields == {"sender", "recipient", "text"}

    async def test_text_at_max_length_accepted(self, test_client: AsyncClient, valid_payload):
        response = await test_client.post("/v1/messages", json={**valid_payload, "text": "x" * 1600})

        assert response.status_code == 202

    async def test_multiline_text_accepted(self, test_client: AsyncClient, valid_payload):
        response = await test_client.post("/v1/messages", json={**valid_payload, "text": "line one\nline two"})

        assert response.status_code == 202


class TestGetMessage:
    async def test_unknown_id_returns_problem_404(self, test_client: AsyncClient):
        mid = uuid.uuid4()

        response = await test_client.get(f"/v1/messages/{mid}")

        assert response.status_code == 404
        body = response.json()
        assert body["error_code"] == "MESSAGE_NOT_FOUND"
        assert body["status"] == 404
        assert str(mid) in body["detail"]
        assert body["instance"] == f"/v1/messages/{mid}"

    async def test_malformed_id_returns_400(self, test_client: AsyncClient):
        response = await test_client.get("/v1/messages/not-a-uuid")

        assert response.status_code == 400


class TestListings:
    async def test_stats(self, test_client: AsyncClient, message_factory):
        await message_factory(status=MessageStatus.SENT)
        await message_factory(status=MessageStatus.SENT)
        await message_factory(status=MessageStatus.FAILED, failure_reason="Network timeout")
        await message_factory(status=MessageStatus.PENDING)

        response = await test_client.get("/v1/messages/stats")

        assert response.status_code == 200
        assert response.json() == {
            "total_messages": 4,
            "pending_messages": 1,
            "sent_messages": 2,
            "failed_messages": 1,
            "success_rate": pytest.approx(2 / 3),
        }

    async def test_stats_with_no_terminal_messages(self, test_client: AsyncClient, message_factory):
        await message_factory(status=MessageStatus.PENDING)

        data = (await test_client.get("/v1/messages/stats")).json()

        assert data["total_messages"] == 1
        assert data["success_rate"] == 0.0

    async def test_failed_messages(self, test_client: AsyncClient, message_factory):
        await message_factory(status=MessageStatus.FAILED, failure_reason="Phone number blocked")
        await message_factory(status=MessageStatus.SENT)

        response = await test_client.get("/v1/messages/failed", params={"page": 0, "size": 10})

        assert response.status_code == 200
        data = response.json()
        assert data["total_count"] == 1
        assert data["page"] == 0
        assert data["page_size"] == 10
        assert data["total_pages"] == 1
        assert data["messages"][0]["failure_reason"] == "Phone number blocked"

    async def test_user_messages(self, test_client: AsyncClient, message_factory):
        await message_factory(sender="+15550000001", status=MessageStatus.SENT)
        await message_factory(recipient="+15550000001", status=MessageStatus.PENDING)
        await message_factory(sender="+15550000002", recipient="+15550000003")

        response = await test_client.get("/v1/users/+15550000001/messages")

        assert response.status_code == 200
        data = response.json()
        assert data["total_count"] == 2
        assert data["page_size"] == 20

    async def test_user_messages_status_filter(self, test_client: AsyncClient, message_factory):
        await message_factory(sender="+15550000001", status=MessageStatus.SENT)
        await message_factory(sender="+15550000001", status=MessageStatus.PENDING)

        response = await test_client.get("/v1/users/+15550000001/messages", params={"status": "SENT"})

        data = response.json()
        assert data["total_count"] == 1
        assert data["messages"][0]["status"] == "SENT"

    async def test_user_id_rejects_non_ascii_digits(self, test_client: AsyncClient):
        response = await test_client.get("/v1/users/+1\u0665\u0665\u0665\u0661\u0662\u0663/messages")

        assert response.status_code == 400

    async def test_user_id_must_be_phone(self, test_client: AsyncClient):
        response = await test_client.get("/v1/users/alice/messages")

        assert response.status_code == 400
        assert response.json()["error_code"] == "VALIDATION_ERROR"

    @pytest.mark.parametrize("params", [{"size": 0}, {"size": 101}, {"page": -1}, {"status": "QUEUED"}])
    async def test_bad_paging_params(self, test_client: AsyncClient, params):
        response = await test_client.get("/v1/users/+15550000001/messages", params=params)

        assert response.status_code == 400
