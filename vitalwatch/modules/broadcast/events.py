from datetime import datetime, timezone
from typing import Literal, Union

from pydantic import Field

from vitalwatch.modules.vitals.models import VitalMetric, VitalSign
from vitalwatch.shared.schemas import FrozenCamelModel


def _now() -> datetime:
    return datetime.now(timezone.utc)


class VitalUpdate(FrozenCamelModel):
    """Published once per patient per tick."""

    event: Literal["vital_update"] = "vital_update"
    patient_id: str
    vitals: VitalSign


class CriticalEvent(FrozenCamelModel):
    """Published in addition to `VitalUpdate` when any metric evaluated critical."""

    event: Literal["critical_event"] = "critical_event"
    patient_id: str
    critical_metrics: list[VitalMetric] = Field(default_factory=list)
    timestamp: datetime = Field(default_factory=_now)


class AlertAcknowledged(FrozenCamelModel):
    event: Literal["alert_acknowledged"] = "alert_acknowledged"
    alert_id: str
    patient_id: str
    timestamp: datetime = Field(default_factory=_now)


MonitoringEvent = Union[VitalUpdate, CriticalEvent, AlertAcknowledged]
