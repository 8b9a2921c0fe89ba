import pytest

from vitalwatch.modules.alerts.manager import AlertManager, build_alert_message, format_value
from vitalwatch.modules.thresholds.evaluator import Breach, BoundSide, Severity
from vitalwatch.modules.vitals.models import VitalMetric
from vitalwatch.shared.exceptions import AlertNotFoundError, NotFoundError


def _raise(manager: AlertManager, patient_id: str = "patient-1", severity: Severity = Severity.WARNING):
    return manager.raise_alert(patient_id, VitalMetric.HEART_RATE, severity, "Heart Rate breach")


def test_raise_creates_open_alert_with_unique_id() -> None:
    manager = AlertManager()

    first = _raise(manager)
    second = _raise(manager)

    assert first.id != second.id
    assert not first.acknowledged
    assert first.timestamp is not None
    assert len(manager) == 2


def test_raise_rejects_normal_severity() -> None:
    with pytest.raises(ValueError):
        _raise(AlertManager(), severity=Severity.NORMAL)


def test_query_is_most_recent_first_and_filters() -> None:
    manager = AlertManager()
    a = _raise(manager, "patient-1")
    b = _raise(manager, "patient-2", Severity.CRITICAL)
    c = _raise(manager, "patient-1", Severity.CRITICAL)
    manager.acknowledge(a.id)

    assert [alert.id for alert in manager.query()] == [c.id, b.id, a.id]
    assert [alert.id for alert in manager.query(patient_id="patient-1")] == [c.id, a.id]
    assert [alert.id for alert in manager.query(acknowledged=False)] == [c.id, b.id]
    assert [alert.id for alert in manager.query(severity=Severity.CRITICAL)] == [c.id, b.id]
    assert [
        alert.id for alert in manager.query(patient_id="patient-1", acknowledged=True)
    ] == [a.id]


def test_acknowledge_hides_alert_from_open_query_and_is_idempotent() -> None:
    manager = AlertManager()
    alert = _raise(manager)

    acknowledged = manager.acknowledge(alert.id)
    again = manager.acknowledge(alert.id)

    assert acknowledged.acknowledged and again.acknowledged
    assert alert.id not in {a.id for a in manager.query(acknowledged=False)}
    # earlier snapshots are never mutated
    assert alert.acknowledged is False


def test_acknowledge_unknown_id_raises_not_found_without_side_effects() -> None:
    manager = AlertManager()
    alert = _raise(manager)

    with pytest.raises(AlertNotFoundError) as exc_info:
        manager.acknowledge("missing")

    assert isinstance(exc_info.value, NotFoundError)
    assert manager.get(alert.id).acknowledged is False


def test_clear_acknowledged_removes_only_acknowledged() -> None:
    manager = AlertManager()
    keep = _raise(manager)
    gone = [_raise(manager) for _ in range(3)]
    for alert in gone:
        manager.acknowledge(alert.id)

    removed = manager.clear_acknowledged()

    assert removed == 3
    assert [alert.id for alert in manager.query()] == [keep.id]
    assert manager.clear_acknowledged() == 0


def test_retention_limit_drops_oldest() -> None:
    manager = AlertManager(retention_limit=3)
    alerts = [_raise(manager) for _ in range(5)]

    assert [alert.id for alert in manager.query()] == [a.id for a in reversed(alerts[-3:])]


def test_message_names_vital_value_and_bound() -> None:
    critical = build_alert_message(
        VitalMetric.HEART_RATE, 165, Breach(Severity.CRITICAL, BoundSide.UPPER, 150)
    )
    warning = build_alert_message(
        VitalMetric.OXYGEN_SATURATION, 93, Breach(Severity.WARNING, BoundSide.LOWER, 95)
    )

    assert critical == "Heart Rate critical: 165 bpm exceeds upper critical threshold 150"
    assert warning == "Oxygen Saturation warning: 93 % below lower threshold 95"


@pytest.mark.parametrize(
    ("value", "expected"),
    [(165.0, "165"), (37.25, "37.25"), (123.4567, "123.4567"), (2_500_000.0, "2500000")],
)
def test_format_value_keeps_every_digit(value: float, expected: str) -> None:
    assert format_value(value) == expected


def test_message_shows_precise_reading() -> None:
    message = build_alert_message(
        VitalMetric.GLUCOSE_LEVEL, 123.4567, Breach(Severity.WARNING, BoundSide.UPPER, 120)
    )

    assert "123.4567 mg/dL" in message
