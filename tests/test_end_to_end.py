"""
End-to-end flow: submit over HTTP, simulate delivery, post the report back
"""
from httpx import AsyncClient

from sms_common.envelope import FAILURE_REASONS, Envelope
from sms_processor.process import process_envelope
from sms_processor.simulator import DeliverySimulator


async def _deliver(test_client: AsyncClient, publisher, metrics, invoker, success_rate: float) -> dict:
    created = (await test_client.post(
        "/v1/messages",
        json={"sender": "+15551230000", "recipient": "+15559876543", "text": "hi"},
    )).json()
    envelope = Envelope.from_json(publisher.bodies[-1])

    process_envelope(envelope, DeliverySimulator(0, 0, success_rate), invoker, metrics, sleep=lambda s: None)
    response = await test_client.post("/v1/internal/delivery-report", json=invoker.reports[-1].to_payload())
    assert response.status_code == 200
    return created


async def test_successful_delivery(test_client: AsyncClient, publisher, metrics, invoker):
    created = await _deliver(test_client, publisher, metrics, invoker, success_rate=1.0)

    stored = (await test_client.get(f"/v1/messages/{created['id']}")).json()
    assert created["status"] == "PENDING"
    assert stored["status"] == "SENT"
    assert stored["failure_reason"] is None


async def test_failed_delivery(test_client: AsyncClient, publisher, metrics, invoker):
    created = await _deliver(test_client, publisher, metrics, invoker, success_rate=0.0)

    stored = (await test_client.get(f"/v1/messages/{created['id']}")).json()
    assert stored["status"] == "FAILED"
    assert stored["failure_reason"] in FAILURE_REASONS


async def test_stats_after_mixed_deliveries(test_client: AsyncClient, publisher, metrics, invoker):
    await _deliver(test_client, publisher, metrics, invoker, success_rate=1.0)
    await _deliver(test_client, publisher, metrics, invoker, success_rate=1.0)
    await _deliver(test_client, publisher, metrics, invoker, success_rate=0.0)
    await test_client.post(
        "/v1/messages",
        json={"sender": "+15551230000", "recipient": "+15559876543", "text": "still queued"},
    )

    stats = (await test_client.get("/v1/messages/stats")).json()

    assert stats["total_messages"] == 4
    assert stats["pending_messages"] == 1
    assert stats["sent_messages"] == 2
    assert stats["failed_messages"] == 1
    assert abs(stats["success_rate"] - 2 / 3) < 1e-9

    failed = (await test_client.get("/v1/messages/failed")).json()
    assert failed["total_count"] == 1
