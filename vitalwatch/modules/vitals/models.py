import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum

from pydantic import Field

from vitalwatch.shared.schemas import FrozenCamelModel


class VitalMetric(str, Enum):
    """Monitored vital metrics; values match the `VitalSign` field names."""

    HEART_RATE = "heart_rate"
    BLOOD_PRESSURE_SYSTOLIC = "blood_pressure_systolic"
    BLOOD_PRESSURE_DIASTOLIC = "blood_pressure_diastolic"
    TEMPERATURE = "temperature"
    OXYGEN_SATURATION = "oxygen_saturation"
    RESPIRATORY_RATE = "respiratory_rate"
    GLUCOSE_LEVEL = "glucose_level"


class Trend(str, Enum):
    UP = "up"
    DOWN = "down"
    STABLE = "stable"
    NONE = "none"


@dataclass(frozen=True)
class MetricInfo:
    label: str
    unit: str


METRIC_INFO: dict[VitalMetric, MetricInfo] = {
    VitalMetric.HEART_RATE: MetricInfo("Heart Rate", "bpm"),
    VitalMetric.BLOOD_PRESSURE_SYSTOLIC: MetricInfo("Systolic BP", "mmHg"),
    VitalMetric.BLOOD_PRESSURE_DIASTOLIC: MetricInfo("Diastolic BP", "mmHg"),
    VitalMetric.TEMPERATURE: MetricInfo("Temperature", "°C"),
    VitalMetric.OXYGEN_SATURATION: MetricInfo("Oxygen Saturation", "%"),
    VitalMetric.RESPIRATORY_RATE: MetricInfo("Respiratory Rate", "breaths/min"),
    VitalMetric.GLUCOSE_LEVEL: MetricInfo("Glucose", "mg/dL"),
}


class VitalSign(FrozenCamelModel):
    """One timestamped observation for one patient. Never mutated after creation."""

    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    patient_id: str
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    heart_rate: float
    blood_pressure_systolic: float
    blood_pressure_diastolic: float
    temperature: float
    oxygen_saturation: float
    respiratory_rate: float
    glucose_level: float | None = None

    def value_of(self, metric: VitalMetric) -> float | None:
        return getattr(self, metric.value)

    def metric_values(self) -> dict[VitalMetric, float]:
        """Present metric values in declaration order; absent optional metrics are skipped."""
        values: dict[VitalMetric, float] = {}
        for metric in VitalMetric:
            value = self.value_of(metric)
            if value is not None:
                values[metric] = value
        return values
