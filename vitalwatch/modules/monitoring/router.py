"""HTTP, SSE and WebSocket surface over the monitoring service."""

import asyncio
import json
from typing import AsyncIterator

import structlog
from fastapi import (
    APIRouter,
    Depends,
    HTTPException,
    Query,
    Request,
    WebSocket,
    WebSocketDisconnect,
    status,
)
from fastapi.responses import StreamingResponse

from vitalwatch.core.config import settings
from vitalwatch.modules.alerts.models import Alert
from vitalwatch.modules.broadcast.events import MonitoringEvent
from vitalwatch.modules.broadcast.hub import Subscription
from vitalwatch.modules.monitoring.schemas import (
    ClearAlertsResponse,
    MonitoringStatus,
    PatientSummary,
    SimulationResponse,
    ThresholdUpdateRequest,
    TrendResponse,
)
from vitalwatch.modules.monitoring.service import MonitoringService, monitoring_service
from vitalwatch.modules.thresholds.config import ThresholdSpec
from vitalwatch.modules.thresholds.evaluator import Severity
from vitalwatch.modules.vitals.models import VitalMetric, VitalSign
from vitalwatch.shared.exceptions import (
    NotFoundError,
    SourceUnavailable,
    ThresholdConfigError,
)

router = APIRouter()
log = structlog.get_logger()


def get_monitoring_service() -> MonitoringService:
    return monitoring_service


# ========== Patients & Vitals ==========


@router.get("/patients", response_model=list[PatientSummary])
def list_patients(
    service: MonitoringService = Depends(get_monitoring_service),
) -> list[PatientSummary]:
    return service.get_patient_summaries()


@router.get("/patients/{patient_id}/vitals/current", response_model=VitalSign | None)
def read_current_vitals(
    patient_id: str, service: MonitoringService = Depends(get_monitoring_service)
) -> VitalSign | None:
    return service.get_current_vitals(patient_id)


@router.get("/patients/{patient_id}/vitals/history", response_model=list[VitalSign])
def read_vital_history(
    patient_id: str,
    limit: int | None = Query(default=None, ge=1),
    service: MonitoringService = Depends(get_monitoring_service),
) -> list[VitalSign]:
    return service.get_vital_history(patient_id, limit)


@router.get("/patients/{patient_id}/trends", response_model=TrendResponse)
def read_trends(
    patient_id: str, service: MonitoringService = Depends(get_monitoring_service)
) -> TrendResponse:
    return TrendResponse(patient_id=patient_id, trends=service.get_trends(patient_id))


@router.post("/patients/{patient_id}/simulate-critical", response_model=SimulationResponse)
async def simulate_critical(
    patient_id: str, service: MonitoringService = Depends(get_monitoring_service)
) -> SimulationResponse:
    try:
        outcome = await service.simulate_critical_event(patient_id)
    except NotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except SourceUnavailable as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)
        ) from exc
    return SimulationResponse(
        patient_id=outcome.patient_id,
        vitals=outcome.reading,
        alerts=outcome.alerts,
        critical_metrics=outcome.critical_metrics,
    )


# ========== Thresholds ==========


@router.get("/thresholds", response_model=dict[VitalMetric, ThresholdSpec])
def read_thresholds(
    service: MonitoringService = Depends(get_monitoring_service),
) -> dict[VitalMetric, ThresholdSpec]:
    return service.get_thresholds()


@router.patch("/thresholds", response_model=dict[VitalMetric, ThresholdSpec])
def update_thresholds(
    body: ThresholdUpdateRequest,
    service: MonitoringService = Depends(get_monitoring_service),
) -> dict[VitalMetric, ThresholdSpec]:
    try:
        return service.update_thresholds(
            {metric: spec.model_dump() for metric, spec in body.metrics.items()}
        )
    except ThresholdConfigError as exc:
        log.warning("threshold update rejected", error=str(exc))
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc)
        ) from exc


# ========== Alerts ==========


@router.get("/alerts", response_model=list[Alert])
def read_alerts(
    patient_id: str | None = None,
    acknowledged: bool | None = None,
    severity: Severity | None = None,
    service: MonitoringService = Depends(get_monitoring_service),
) -> list[Alert]:
    return service.get_alerts(
        patient_id=patient_id, acknowledged=acknowledged, severity=severity
    )


@router.post("/alerts/{alert_id}/acknowledge", response_model=Alert)
async def acknowledge_alert(
    alert_id: str, service: MonitoringService = Depends(get_monitoring_service)
) -> Alert:
    try:
        return await service.acknowledge_alert(alert_id)
    except NotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc


@router.delete("/alerts/acknowledged", response_model=ClearAlertsResponse)
def clear_acknowledged_alerts(
    service: MonitoringService = Depends(get_monitoring_service),
) -> ClearAlertsResponse:
    return ClearAlertsResponse(removed=service.clear_acknowledged_alerts())


# ========== Lifecycle ==========


@router.get("/status", response_model=MonitoringStatus)
def read_status(
    service: MonitoringService = Depends(get_monitoring_service),
) -> MonitoringStatus:
    return service.status()


@router.post("/start", response_model=MonitoringStatus)
async def start_monitoring(
    service: MonitoringService = Depends(get_monitoring_service),
) -> MonitoringStatus:
    await service.start_monitoring()
    return service.status()


@router.post("/stop", response_model=MonitoringStatus)
async def stop_monitoring(
    service: MonitoringService = Depends(get_monitoring_service),
) -> MonitoringStatus:
    await service.stop_monitoring()
    return service.status()


# ========== Event Streams ==========


class _StreamQueue:
    """
    Per-client SSE buffer. A client that falls `limit` events behind is
    unsubscribed and its stream is closed with a `None` sentinel.
    """

    def __init__(self, limit: int) -> None:
        self.limit = limit
        # one spare slot so the sentinel always fits
        self.queue: asyncio.Queue[dict | None] = asyncio.Queue(maxsize=limit + 1)
        self.subscription: Subscription | None = None

    async def __call__(self, event: MonitoringEvent) -> None:
        if self.subscription is None or not self.subscription.active:
            return
        if self.queue.qsize() >= self.limit:
            log.warning(
                "sse client too slow, closing stream",
                event_type=event.event,
                limit=self.limit,
            )
            self.subscription()
            self.queue.put_nowait(None)
            return
        self.queue.put_nowait(event.to_payload())


@router.get("/stream")
async def stream_events(
    request: Request, service: MonitoringService = Depends(get_monitoring_service)
) -> StreamingResponse:
    """
    Server-Sent Events stream of `vital_update`, `critical_event` and
    `alert_acknowledged` payloads, with keepalive comments while idle.
    """

    async def event_generator() -> AsyncIterator[str]:
        stream = _StreamQueue(settings.SSE_QUEUE_SIZE)
        stream.subscription = service.subscribe(stream, name="sse")
        log.info("sse stream connected")
        try:
            while True:
                if await request.is_disconnected():
                    log.info("sse client disconnected")
                    break
                try:
                    payload = await asyncio.wait_for(
                        stream.queue.get(), timeout=settings.SSE_KEEPALIVE_SECONDS
                    )
                except asyncio.TimeoutError:
                    yield ": keepalive\n\n"
                    continue
                if payload is None:
                    break
                yield f"data: {json.dumps(payload)}\n\n"
        finally:
            stream.subscription()
            log.info("sse stream closed")

    return StreamingResponse(
        event_generator(),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",
        },
    )


@router.websocket("/ws")
async def websocket_events(
    websocket: WebSocket, service: MonitoringService = Depends(get_monitoring_service)
) -> None:
    """WebSocket push of the same event payloads as the SSE stream."""
    await websocket.accept()

    async def _send(event: MonitoringEvent) -> None:
        await websocket.send_text(json.dumps(event.to_payload()))

    unsubscribe = service.subscribe(_send, name="websocket")
    log.info("events websocket connected")
    try:
        while True:
            # consumers only listen; reading keeps the disconnect visible
            await websocket.receive_text()
    except WebSocketDisconnect:
        log.info("events websocket disconnected")
    finally:
        unsubscribe()
