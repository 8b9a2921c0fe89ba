"""Error types raised by the monitoring engine."""


class MonitoringError(Exception):
    """Base class for every engine error."""


class InvalidReading(MonitoringError):
    """A non-finite value reached the threshold evaluator."""

    def __init__(self, value: object, metric: str | None = None) -> None:
        self.value = value
        self.metric = metric
        label = f" for {metric}" if metric else ""
        super().__init__(f"invalid reading{label}: {value!r}")


class SourceUnavailable(MonitoringError):
    """The reading source could not produce a sample for a patient."""

    def __init__(self, patient_id: str, reason: str | None = None) -> None:
        self.patient_id = patient_id
        self.reason = reason
        detail = f": {reason}" if reason else ""
        super().__init__(f"no reading available for patient {patient_id}{detail}")


class NotFoundError(MonitoringError):
    """A caller referenced an entity the engine does not hold."""


class AlertNotFoundError(NotFoundError):
    def __init__(self, alert_id: str) -> None:
        self.alert_id = alert_id
        super().__init__(f"alert {alert_id} not found")


class PatientNotFoundError(NotFoundError):
    def __init__(self, patient_id: str) -> None:
        self.patient_id = patient_id
        super().__init__(f"patient {patient_id} is not monitored")


class ThresholdConfigError(MonitoringError):
    """Threshold configuration is malformed."""
