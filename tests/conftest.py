from typing import AsyncGenerator

import pytest
from httpx import ASGITransport, AsyncClient

from tests.helpers import EventRecorder, ScriptedGenerator
from vitalwatch.main import app
from vitalwatch.modules.alerts.manager import AlertManager
from vitalwatch.modules.broadcast.hub import BroadcastHub
from vitalwatch.modules.monitoring.router import get_monitoring_service
from vitalwatch.modules.monitoring.service import MonitoringService
from vitalwatch.modules.patients.registry import PatientRegistry
from vitalwatch.modules.thresholds.config import (
    DEFAULT_THRESHOLDS,
    CriticalRange,
    ThresholdSpec,
    ThresholdTable,
)
from vitalwatch.modules.vitals.history import HistoryStore
from vitalwatch.modules.vitals.models import VitalMetric


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture
def heart_rate_spec() -> ThresholdSpec:
    return ThresholdSpec(min=60, max=100, critical=CriticalRange(min=40, max=150))


@pytest.fixture
def thresholds(heart_rate_spec: ThresholdSpec) -> ThresholdTable:
    """Default table with the heart-rate critical band widened to 40-150."""
    table = ThresholdTable(DEFAULT_THRESHOLDS)
    table.update({VitalMetric.HEART_RATE: heart_rate_spec})
    return table


@pytest.fixture
def generator() -> ScriptedGenerator:
    return ScriptedGenerator()


@pytest.fixture
def hub() -> BroadcastHub:
    return BroadcastHub(callback_timeout=0.2)


@pytest.fixture
def service(
    generator: ScriptedGenerator, thresholds: ThresholdTable, hub: BroadcastHub
) -> MonitoringService:
    return MonitoringService(
        patients=PatientRegistry(),
        generator=generator,
        thresholds=thresholds,
        history=HistoryStore(capacity=20),
        alerts=AlertManager(retention_limit=100),
        hub=hub,
        tick_seconds=0.02,
        default_history_limit=10,
    )


@pytest.fixture
def recorder(service: MonitoringService) -> EventRecorder:
    events = EventRecorder()
    service.subscribe(events, name="recorder")
    return events


@pytest.fixture
async def client(service: MonitoringService) -> AsyncGenerator[AsyncClient, None]:
    app.dependency_overrides[get_monitoring_service] = lambda: service
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c
    app.dependency_overrides.clear()
    await service.stop_monitoring()
