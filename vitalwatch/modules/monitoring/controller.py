from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from enum import Enum

import structlog

from vitalwatch.modules.alerts.manager import AlertManager, build_alert_message
from vitalwatch.modules.alerts.models import Alert
from vitalwatch.modules.broadcast.events import CriticalEvent, VitalUpdate
from vitalwatch.modules.broadcast.hub import BroadcastHub
from vitalwatch.modules.patients.registry import PatientRegistry
from vitalwatch.modules.thresholds.config import ThresholdSpec, ThresholdTable
from vitalwatch.modules.thresholds.evaluator import Severity, find_breach
from vitalwatch.modules.vitals.generator import ReadingGenerator
from vitalwatch.modules.vitals.history import HistoryStore
from vitalwatch.modules.vitals.models import VitalMetric, VitalSign
from vitalwatch.shared.exceptions import InvalidReading, SourceUnavailable

log = structlog.get_logger()

# Metrics pushed past the critical band by `simulate_critical_event`, and which way
FORCED_CRITICAL: dict[VitalMetric, str] = {
    VitalMetric.HEART_RATE: "above",
    VitalMetric.BLOOD_PRESSURE_SYSTOLIC: "above",
    VitalMetric.BLOOD_PRESSURE_DIASTOLIC: "above",
    VitalMetric.OXYGEN_SATURATION: "below",
}


class MonitoringState(str, Enum):
    STOPPED = "stopped"
    RUNNING = "running"


@dataclass
class TickOutcome:
    patient_id: str
    reading: VitalSign
    alerts: list[Alert] = field(default_factory=list)
    critical_metrics: list[VitalMetric] = field(default_factory=list)
    rejected_metrics: list[VitalMetric] = field(default_factory=list)


class MonitoringController:
    """
    Owns the periodic tick. Each tick, for every monitored patient: generate a
    reading, append it to history, raise alerts for out-of-band metrics, then
    publish a `VitalUpdate` (and a `CriticalEvent` when anything was critical).
    """

    def __init__(
        self,
        patients: PatientRegistry,
        generator: ReadingGenerator,
        history: HistoryStore,
        alerts: AlertManager,
        hub: BroadcastHub,
        thresholds: ThresholdTable,
        tick_seconds: float,
    ) -> None:
        if tick_seconds <= 0:
            raise ValueError("tick interval must be positive")
        self._patients = patients
        self._generator = generator
        self._history = history
        self._alerts = alerts
        self._hub = hub
        self._thresholds = thresholds
        self._tick_seconds = tick_seconds

        self._task: asyncio.Task[None] | None = None
        self._stop_event: asyncio.Event | None = None
        self._lifecycle_lock = asyncio.Lock()
        self.tick_count = 0

    @property
    def state(self) -> MonitoringState:
        if self._task is not None and not self._task.done():
            return MonitoringState.RUNNING
        return MonitoringState.STOPPED

    @property
    def is_running(self) -> bool:
        return self.state is MonitoringState.RUNNING

    @property
    def tick_seconds(self) -> float:
        return self._tick_seconds

    async def start(self) -> None:
        async with self._lifecycle_lock:
            if self.is_running:
                return
            self._stop_event = asyncio.Event()
            self._task = asyncio.create_task(self._run(self._stop_event))
        log.info("monitoring started", tick_seconds=self._tick_seconds)

    async def stop(self) -> None:
        async with self._lifecycle_lock:
            task, stop_event = self._task, self._stop_event
            if task is None or stop_event is None:
                return
            self._task = None
            self._stop_event = None
            stop_event.set()
            # lets an in-flight tick finish; no tick starts after this returns
            await task
        log.info("monitoring stopped", ticks=self.tick_count)

    async def _run(self, stop_event: asyncio.Event) -> None:
        while True:
            try:
                await asyncio.wait_for(stop_event.wait(), timeout=self._tick_seconds)
                return
            except asyncio.TimeoutError:
                pass
            try:
                await self.tick()
            except Exception:
                log.exception("monitoring tick failed", tick=self.tick_count)

    async def tick(self) -> list[TickOutcome]:
        """Run one pass over every monitored patient."""
        self.tick_count += 1
        specs = self._thresholds.snapshot()
        with structlog.contextvars.bound_contextvars(tick=self.tick_count):
            results = await asyncio.gather(
                *(self._process_patient(patient.id, specs) for patient in self._patients.all())
            )
        return [outcome for outcome in results if outcome is not None]

    async def _process_patient(
        self, patient_id: str, specs: dict[VitalMetric, ThresholdSpec]
    ) -> TickOutcome | None:
        structlog.contextvars.bind_contextvars(patient_id=patient_id)
        try:
            reading = self._generator.generate(patient_id)
        except SourceUnavailable as exc:
            log.warning("patient skipped for tick", reason=str(exc))
            return None
        return await self.ingest(patient_id, reading, specs)

    async def ingest(
        self,
        patient_id: str,
        reading: VitalSign,
        specs: dict[VitalMetric, ThresholdSpec] | None = None,
    ) -> TickOutcome:
        """Append, evaluate and publish one reading."""
        if specs is None:
            specs = self._thresholds.snapshot()
        self._history.append(patient_id, reading)

        outcome = TickOutcome(patient_id=patient_id, reading=reading)
        for metric, value in reading.metric_values().items():
            spec = specs.get(metric)
            if spec is None:
                continue
            try:
                breach = find_breach(value, spec)
            except InvalidReading:
                log.warning(
                    "reading rejected", patient_id=patient_id, metric=metric.value, value=value
                )
                outcome.rejected_metrics.append(metric)
                continue
            if breach is None:
                continue
            alert = self._alerts.raise_alert(
                patient_id,
                metric,
                breach.severity,
                build_alert_message(metric, value, breach),
                value=value,
                threshold=breach.bound,
            )
            outcome.alerts.append(alert)
            if breach.severity is Severity.CRITICAL:
                outcome.critical_metrics.append(metric)

        await self._hub.publish(VitalUpdate(patient_id=patient_id, vitals=reading))
        if outcome.critical_metrics:
            log.info(
                "critical reading",
                patient_id=patient_id,
                metrics=[metric.value for metric in outcome.critical_metrics],
            )
            await self._hub.publish(
                CriticalEvent(patient_id=patient_id, critical_metrics=outcome.critical_metrics)
            )
        return outcome

    async def simulate_critical_event(self, patient_id: str) -> TickOutcome:
        """
        Synthesize a reading outside the critical band and ingest it now,
        independent of the tick cadence.
        """
        self._patients.get(patient_id)
        specs = self._thresholds.snapshot()
        base = self._history.latest(patient_id)
        if base is None:
            base = self._generator.generate(patient_id)

        forced: dict[str, float] = {}
        for metric, direction in FORCED_CRITICAL.items():
            spec = specs.get(metric)
            if spec is not None:
                forced[metric.value] = _beyond_critical(spec, direction)
        if not forced:
            # none of the usual metrics configured; push the first configured one
            metric, spec = next(iter(specs.items()))
            forced = {metric.value: _beyond_critical(spec, "above")}

        values = base.model_dump(include={metric.value for metric in VitalMetric})
        values.update(forced)
        reading = VitalSign(patient_id=patient_id, **values)
        log.info("simulating critical event", patient_id=patient_id, metrics=sorted(forced))
        return await self.ingest(patient_id, reading, specs)


def _beyond_critical(spec: ThresholdSpec, direction: str) -> float:
    margin = max((spec.critical.max - spec.critical.min) * 0.1, 1.0)
    if direction == "below":
        return round(spec.critical.min - margin, 1)
    return round(spec.critical.max + margin, 1)
