"""HTTP tests for the monitoring routes, run against a per-test service."""

import json
from types import SimpleNamespace
from unittest.mock import AsyncMock

import pytest
from fastapi import WebSocketDisconnect, status
from httpx import AsyncClient

from tests.helpers import ScriptedGenerator, make_reading
from vitalwatch.modules.broadcast.events import CriticalEvent
from vitalwatch.modules.broadcast.hub import BroadcastHub
from vitalwatch.modules.monitoring import router as router_module
from vitalwatch.modules.monitoring.service import MonitoringService
from vitalwatch.modules.vitals.models import VitalMetric

BASE = "/api/v1/monitoring"


@pytest.mark.asyncio
async def test_health(client: AsyncClient) -> None:
    response = await client.get("/health")
    assert response.json() == {"status": "ok"}


@pytest.mark.asyncio
async def test_list_patients_includes_current_vitals(
    client: AsyncClient, service: MonitoringService
) -> None:
    service.prime()

    response = await client.get(f"{BASE}/patients")

    assert response.status_code == status.HTTP_200_OK
    body = response.json()
    assert [p["id"] for p in body] == ["patient-1", "patient-2"]
    assert body[0]["currentVitals"]["heartRate"] == 75


@pytest.mark.asyncio
async def test_current_vitals_null_for_unseen_patient(client: AsyncClient) -> None:
    response = await client.get(f"{BASE}/patients/patient-9/vitals/current")

    assert response.status_code == status.HTTP_200_OK
    assert response.json() is None


@pytest.mark.asyncio
async def test_history_and_trends(
    client: AsyncClient, service: MonitoringService, generator: ScriptedGenerator
) -> None:
    generator.push(
        "patient-1",
        *(make_reading("patient-1", heart_rate=value) for value in [100, 100, 100, 100, 120]),
    )
    for _ in range(5):
        await service.controller.tick()

    history = await client.get(f"{BASE}/patients/patient-1/vitals/history", params={"limit": 2})
    trends = await client.get(f"{BASE}/patients/patient-1/trends")

    assert [r["heartRate"] for r in history.json()] == [100, 120]
    assert trends.json()["trends"]["heart_rate"] == "up"
    assert trends.json()["patientId"] == "patient-1"


@pytest.mark.asyncio
async def test_history_rejects_non_positive_limit(client: AsyncClient) -> None:
    response = await client.get(f"{BASE}/patients/patient-1/vitals/history", params={"limit": 0})
    assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY


@pytest.mark.asyncio
async def test_alert_lifecycle(
    client: AsyncClient, service: MonitoringService, generator: ScriptedGenerator
) -> None:
    generator.push("patient-1", make_reading("patient-1", heart_rate=165))
    await service.controller.tick()

    alerts = (await client.get(f"{BASE}/alerts", params={"patient_id": "patient-1"})).json()
    assert len(alerts) == 1
    assert alerts[0]["severity"] == "critical"
    assert alerts[0]["vitalType"] == "heart_rate"
    alert_id = alerts[0]["id"]

    ack = await client.post(f"{BASE}/alerts/{alert_id}/acknowledge")
    assert ack.status_code == status.HTTP_200_OK
    assert ack.json()["acknowledged"] is True

    open_alerts = await client.get(f"{BASE}/alerts", params={"acknowledged": "false"})
    assert open_alerts.json() == []

    cleared = await client.delete(f"{BASE}/alerts/acknowledged")
    assert cleared.json() == {"removed": 1}
    assert (await client.get(f"{BASE}/alerts")).json() == []


@pytest.mark.asyncio
async def test_acknowledge_unknown_alert_returns_404(client: AsyncClient) -> None:
    response = await client.post(f"{BASE}/alerts/missing/acknowledge")

    assert response.status_code == status.HTTP_404_NOT_FOUND
    assert "missing" in response.json()["detail"]


@pytest.mark.asyncio
async def test_filter_alerts_by_severity(
    client: AsyncClient, service: MonitoringService, generator: ScriptedGenerator
) -> None:
    generator.push("patient-1", make_reading("patient-1", heart_rate=55, respiratory_rate=40))
    await service.controller.tick()

    response = await client.get(f"{BASE}/alerts", params={"severity": "warning"})

    assert [a["vitalType"] for a in response.json()] == ["heart_rate"]


@pytest.mark.asyncio
async def test_thresholds_read_and_update(client: AsyncClient) -> None:
    current = (await client.get(f"{BASE}/thresholds")).json()
    assert current["heart_rate"] == {"min": 60, "max": 100, "critical": {"min": 40, "max": 150}}

    response = await client.patch(
        f"{BASE}/thresholds",
        json={"metrics": {"heart_rate": {"min": 55, "max": 110, "critical": {"min": 35, "max": 160}}}},
    )

    assert response.status_code == status.HTTP_200_OK
    assert response.json()["heart_rate"]["critical"]["max"] == 160
    assert response.json()["temperature"]["max"] == 37.2


@pytest.mark.asyncio
async def test_malformed_threshold_update_is_rejected(client: AsyncClient) -> None:
    response = await client.patch(
        f"{BASE}/thresholds",
        json={"metrics": {"heart_rate": {"min": 120, "max": 110, "critical": {"min": 35, "max": 160}}}},
    )

    assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY
    current = (await client.get(f"{BASE}/thresholds")).json()
    assert current["heart_rate"]["min"] == 60


@pytest.mark.asyncio
async def test_simulate_critical(client: AsyncClient) -> None:
    response = await client.post(f"{BASE}/patients/patient-1/simulate-critical")

    assert response.status_code == status.HTTP_200_OK
    body = response.json()
    assert "heart_rate" in body["criticalMetrics"]
    assert any(alert["severity"] == "critical" for alert in body["alerts"])


@pytest.mark.asyncio
async def test_simulate_critical_unknown_patient(client: AsyncClient) -> None:
    response = await client.post(f"{BASE}/patients/ghost/simulate-critical")
    assert response.status_code == status.HTTP_404_NOT_FOUND


@pytest.mark.asyncio
async def test_start_stop_status(client: AsyncClient) -> None:
    started = await client.post(f"{BASE}/start")
    again = await client.post(f"{BASE}/start")
    stopped = await client.post(f"{BASE}/stop")

    assert started.json()["state"] == "running"
    assert again.json()["state"] == "running"
    assert stopped.json()["state"] == "stopped"
    assert (await client.get(f"{BASE}/status")).json()["patients"] == 2


@pytest.mark.asyncio
async def test_sse_stream_queue_serializes_events(hub: BroadcastHub) -> None:
    stream = router_module._StreamQueue(limit=4)
    stream.subscription = hub.subscribe(stream, name="sse")

    await hub.publish(
        CriticalEvent(patient_id="patient-1", critical_metrics=[VitalMetric.HEART_RATE])
    )

    payload = stream.queue.get_nowait()
    assert payload["event"] == "critical_event"
    assert payload["patientId"] == "patient-1"
    assert payload["criticalMetrics"] == ["heart_rate"]


@pytest.mark.asyncio
async def test_lagging_sse_client_is_unsubscribed_instead_of_dropping(
    hub: BroadcastHub,
) -> None:
    stream = router_module._StreamQueue(limit=1)
    stream.subscription = hub.subscribe(stream, name="sse")

    await hub.publish(CriticalEvent(patient_id="patient-1"))
    await hub.publish(CriticalEvent(patient_id="patient-2"))
    await hub.publish(CriticalEvent(patient_id="patient-3"))

    assert stream.queue.get_nowait()["patientId"] == "patient-1"
    assert stream.queue.get_nowait() is None
    assert stream.queue.empty()
    assert stream.subscription.active is False
    assert hub.subscriber_count == 0


@pytest.mark.asyncio
async def test_websocket_receives_events_until_disconnect(service: MonitoringService) -> None:
    sent: list[str] = []

    async def _send_text(data: str) -> None:
        sent.append(data)

    async def _receive_text() -> str:
        await service.controller.tick()
        raise WebSocketDisconnect()

    websocket = SimpleNamespace(
        accept=AsyncMock(), send_text=_send_text, receive_text=_receive_text
    )

    await router_module.websocket_events(websocket, service=service)

    websocket.accept.assert_awaited_once()
    events = [json.loads(item) for item in sent]
    assert [e["event"] for e in events] == ["vital_update", "vital_update"]
    assert service.status().subscribers == 0
