from __future__ import annotations

import threading
import uuid
from collections import OrderedDict
from datetime import datetime, timezone

import structlog

from vitalwatch.modules.alerts.models import Alert
from vitalwatch.modules.thresholds.evaluator import Breach, BoundSide, Severity
from vitalwatch.modules.vitals.models import METRIC_INFO, VitalMetric
from vitalwatch.shared.exceptions import AlertNotFoundError

log = structlog.get_logger()


def format_value(value: float) -> str:
    """Whole numbers without a trailing `.0`; anything else exactly as stored."""
    value = float(value)
    if value.is_integer():
        return str(int(value))
    return repr(value)


def build_alert_message(metric: VitalMetric, value: float, breach: Breach) -> str:
    """e.g. "Heart Rate critical: 165 bpm exceeds upper critical threshold 150"."""
    info = METRIC_INFO[metric]
    relation = "exceeds upper" if breach.side is BoundSide.UPPER else "below lower"
    band = "critical threshold" if breach.severity is Severity.CRITICAL else "threshold"
    return (
        f"{info.label} {breach.severity.value}: {format_value(value)} {info.unit} "
        f"{relation} {band} {format_value(breach.bound)}"
    )


class AlertManager:
    """
    In-memory alert store.

    Every breach gets its own alert; there is no deduplication. When more than
    `retention_limit` alerts are held the oldest are dropped.
    """

    def __init__(self, retention_limit: int | None = None) -> None:
        self._lock = threading.Lock()
        # insertion order == creation order, oldest first
        self._alerts: OrderedDict[str, Alert] = OrderedDict()
        self._retention_limit = retention_limit

    def raise_alert(
        self,
        patient_id: str,
        vital_type: VitalMetric,
        severity: Severity,
        message: str,
        value: float | None = None,
        threshold: float | None = None,
    ) -> Alert:
        if severity is Severity.NORMAL:
            raise ValueError("alerts are only raised for warning or critical readings")

        alert = Alert(
            id=uuid.uuid4().hex,
            patient_id=patient_id,
            vital_type=vital_type,
            severity=severity,
            message=message,
            timestamp=datetime.now(timezone.utc),
            value=value,
            threshold=threshold,
        )
        with self._lock:
            self._alerts[alert.id] = alert
            dropped = self._enforce_retention()
        if dropped:
            log.debug("alert retention limit reached", dropped=dropped)
        return alert

    def get(self, alert_id: str) -> Alert:
        with self._lock:
            alert = self._alerts.get(alert_id)
        if alert is None:
            raise AlertNotFoundError(alert_id)
        return alert

    def query(
        self,
        patient_id: str | None = None,
        acknowledged: bool | None = None,
        severity: Severity | None = None,
    ) -> list[Alert]:
        """Alerts matching every given filter, most recent first."""
        with self._lock:
            alerts = list(reversed(self._alerts.values()))
        if patient_id is not None:
            alerts = [alert for alert in alerts if alert.patient_id == patient_id]
        if acknowledged is not None:
            alerts = [alert for alert in alerts if alert.acknowledged == acknowledged]
        if severity is not None:
            alerts = [alert for alert in alerts if alert.severity == severity]
        return alerts

    def acknowledge(self, alert_id: str) -> Alert:
        with self._lock:
            alert = self._alerts.get(alert_id)
            if alert is None:
                raise AlertNotFoundError(alert_id)
            if not alert.acknowledged:
                alert = alert.model_copy(update={"acknowledged": True})
                self._alerts[alert_id] = alert
        return alert

    def clear_acknowledged(self) -> int:
        with self._lock:
            acknowledged = [key for key, alert in self._alerts.items() if alert.acknowledged]
            for key in acknowledged:
                del self._alerts[key]
        return len(acknowledged)

    def __len__(self) -> int:
        with self._lock:
            return len(self._alerts)

    def _enforce_retention(self) -> int:
        if not self._retention_limit:
            return 0
        dropped = 0
        while len(self._alerts) > self._retention_limit:
            self._alerts.popitem(last=False)
            dropped += 1
        return dropped
