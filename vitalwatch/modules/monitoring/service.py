from __future__ import annotations

from typing import Any, Mapping

import structlog

from vitalwatch.core.config import Settings, settings
from vitalwatch.modules.alerts.manager import AlertManager
from vitalwatch.modules.alerts.models import Alert
from vitalwatch.modules.broadcast.events import AlertAcknowledged
from vitalwatch.modules.broadcast.hub import BroadcastHub, SubscriberCallback, Subscription
from vitalwatch.modules.monitoring.controller import MonitoringController, TickOutcome
from vitalwatch.modules.monitoring.schemas import MonitoringStatus, PatientSummary
from vitalwatch.modules.patients.registry import MonitoredPatient, PatientRegistry
from vitalwatch.modules.thresholds.config import ThresholdSpec, ThresholdTable, load_thresholds
from vitalwatch.modules.thresholds.evaluator import Severity
from vitalwatch.modules.vitals.generator import ReadingGenerator, SimulatedReadingGenerator
from vitalwatch.modules.vitals.history import HistoryStore
from vitalwatch.modules.vitals.models import Trend, VitalMetric, VitalSign
from vitalwatch.shared.exceptions import SourceUnavailable

log = structlog.get_logger()


class MonitoringService:
    """Single owner of engine state; the only surface the presentation layer uses."""

    def __init__(
        self,
        patients: PatientRegistry,
        generator: ReadingGenerator,
        thresholds: ThresholdTable,
        history: HistoryStore,
        alerts: AlertManager,
        hub: BroadcastHub,
        tick_seconds: float,
        default_history_limit: int = 50,
    ) -> None:
        self._patients = patients
        self._generator = generator
        self._thresholds = thresholds
        self._history = history
        self._alerts = alerts
        self._hub = hub
        self._default_history_limit = default_history_limit
        self._controller = MonitoringController(
            patients=patients,
            generator=generator,
            history=history,
            alerts=alerts,
            hub=hub,
            thresholds=thresholds,
            tick_seconds=tick_seconds,
        )

    @classmethod
    def from_settings(
        cls, config: Settings, generator: ReadingGenerator | None = None
    ) -> "MonitoringService":
        return cls(
            patients=PatientRegistry(),
            generator=generator or SimulatedReadingGenerator(seed=config.SIMULATION_SEED),
            thresholds=ThresholdTable(load_thresholds(config.THRESHOLDS_FILE)),
            history=HistoryStore(capacity=config.HISTORY_CAPACITY),
            alerts=AlertManager(retention_limit=config.ALERT_RETENTION_LIMIT),
            hub=BroadcastHub(callback_timeout=config.SUBSCRIBER_TIMEOUT_SECONDS),
            tick_seconds=config.MONITORING_TICK_SECONDS,
            default_history_limit=config.HISTORY_DEFAULT_LIMIT,
        )

    @property
    def controller(self) -> MonitoringController:
        return self._controller

    @property
    def patients(self) -> PatientRegistry:
        return self._patients

    def prime(self) -> None:
        """Seed each patient without history with one baseline reading. Nothing is evaluated."""
        for patient in self._patients.all():
            if self._history.latest(patient.id) is not None:
                continue
            try:
                self._history.append(patient.id, self._generator.generate(patient.id))
            except SourceUnavailable as exc:
                log.warning("baseline unavailable", patient_id=patient.id, reason=str(exc))

    # ========== Patients & Vitals ==========

    def get_monitored_patients(self) -> list[MonitoredPatient]:
        return self._patients.all()

    def get_patient_summaries(self) -> list[PatientSummary]:
        return [
            PatientSummary(
                id=patient.id,
                name=patient.name,
                current_vitals=self._history.latest(patient.id),
            )
            for patient in self._patients.all()
        ]

    def get_current_vitals(self, patient_id: str) -> VitalSign | None:
        return self._history.latest(patient_id)

    def get_vital_history(self, patient_id: str, limit: int | None = None) -> list[VitalSign]:
        if limit is None:
            limit = self._default_history_limit
        return self._history.read(patient_id, limit)

    def get_trend(self, patient_id: str, metric: VitalMetric) -> Trend:
        return self._history.trend(patient_id, metric)

    def get_trends(self, patient_id: str) -> dict[VitalMetric, Trend]:
        return self._history.trends(patient_id)

    # ========== Thresholds ==========

    def get_thresholds(self) -> dict[VitalMetric, ThresholdSpec]:
        return self._thresholds.snapshot()

    def update_thresholds(
        self, updates: Mapping[VitalMetric | str, Any]
    ) -> dict[VitalMetric, ThresholdSpec]:
        """Validated partial update; applies from the next tick."""
        updated = self._thresholds.update(updates)
        log.info(
            "thresholds updated",
            metrics=sorted(VitalMetric(metric).value for metric in updates),
        )
        return updated

    # ========== Alerts ==========

    def get_alerts(
        self,
        patient_id: str | None = None,
        acknowledged: bool | None = None,
        severity: Severity | None = None,
    ) -> list[Alert]:
        return self._alerts.query(
            patient_id=patient_id, acknowledged=acknowledged, severity=severity
        )

    async def acknowledge_alert(self, alert_id: str) -> Alert:
        alert = self._alerts.acknowledge(alert_id)
        await self._hub.publish(
            AlertAcknowledged(alert_id=alert.id, patient_id=alert.patient_id)
        )
        return alert

    def clear_acknowledged_alerts(self) -> int:
        removed = self._alerts.clear_acknowledged()
        log.info("acknowledged alerts cleared", removed=removed)
        return removed

    # ========== Subscriptions ==========

    def subscribe(self, callback: SubscriberCallback, name: str | None = None) -> Subscription:
        return self._hub.subscribe(callback, name=name)

    # ========== Lifecycle ==========

    async def start_monitoring(self) -> None:
        await self._controller.start()

    async def stop_monitoring(self) -> None:
        await self._controller.stop()

    def is_active(self) -> bool:
        return self._controller.is_running

    async def simulate_critical_event(self, patient_id: str) -> TickOutcome:
        return await self._controller.simulate_critical_event(patient_id)

    def status(self) -> MonitoringStatus:
        return MonitoringStatus(
            state=self._controller.state.value,
            tick_seconds=self._controller.tick_seconds,
            tick_count=self._controller.tick_count,
            patients=len(self._patients.all()),
            subscribers=self._hub.subscriber_count,
            open_alerts=len(self._alerts.query(acknowledged=False)),
            thresholds_version=self._thresholds.version,
        )


monitoring_service = MonitoringService.from_settings(settings)
