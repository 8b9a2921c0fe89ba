from datetime import datetime, timezone

from pydantic import Field

from vitalwatch.modules.thresholds.evaluator import Severity
from vitalwatch.modules.vitals.models import VitalMetric
from vitalwatch.shared.schemas import FrozenCamelModel


class Alert(FrozenCamelModel):
    """A recorded threshold breach. Only `acknowledged` ever changes, by replacement."""

    id: str
    patient_id: str
    vital_type: VitalMetric
    severity: Severity
    message: str
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    acknowledged: bool = False
    value: float | None = None
    threshold: float | None = None
