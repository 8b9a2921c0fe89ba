from pydantic import Field

from vitalwatch.modules.alerts.models import Alert
from vitalwatch.modules.thresholds.config import CriticalRange
from vitalwatch.modules.vitals.models import Trend, VitalMetric, VitalSign
from vitalwatch.shared.schemas import CamelModel


class PatientSummary(CamelModel):
    id: str
    name: str
    current_vitals: VitalSign | None = None


class MonitoringStatus(CamelModel):
    state: str
    tick_seconds: float
    tick_count: int
    patients: int
    subscribers: int
    open_alerts: int
    thresholds_version: str


class ThresholdSpecUpdate(CamelModel):
    """HTTP body entry for a single metric's new bands."""

    min: float
    max: float
    critical: CriticalRange


class ThresholdUpdateRequest(CamelModel):
    metrics: dict[VitalMetric, ThresholdSpecUpdate] = Field(default_factory=dict)


class TrendResponse(CamelModel):
    patient_id: str
    trends: dict[VitalMetric, Trend]


class SimulationResponse(CamelModel):
    patient_id: str
    vitals: VitalSign
    alerts: list[Alert]
    critical_metrics: list[VitalMetric]


class ClearAlertsResponse(CamelModel):
    removed: int
