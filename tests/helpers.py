"""Shared builders for monitoring tests."""

from __future__ import annotations

from collections import defaultdict, deque
from typing import Any, Deque

from vitalwatch.modules.vitals.models import VitalSign
from vitalwatch.shared.exceptions import SourceUnavailable

NORMAL_VALUES: dict[str, float] = {
    "heart_rate": 75,
    "blood_pressure_systolic": 120,
    "blood_pressure_diastolic": 80,
    "temperature": 36.8,
    "oxygen_saturation": 98,
    "respiratory_rate": 16,
}


def make_reading(patient_id: str = "patient-1", **overrides: Any) -> VitalSign:
    values: dict[str, Any] = {**NORMAL_VALUES, **overrides}
    return VitalSign(patient_id=patient_id, **values)


class ScriptedGenerator:
    """
    Reading source that replays queued readings per patient.

    Queue a `VitalSign` or an exception instance; once a patient's queue is
    empty it yields normal readings.
    """

    def __init__(self) -> None:
        self._queues: dict[str, Deque[Any]] = defaultdict(deque)
        self.calls: list[str] = []

    def push(self, patient_id: str, *items: Any) -> None:
        self._queues[patient_id].extend(items)

    def fail(self, patient_id: str, times: int = 1) -> None:
        for _ in range(times):
            self.push(patient_id, SourceUnavailable(patient_id, "sensor offline"))

    def generate(self, patient_id: str) -> VitalSign:
        self.calls.append(patient_id)
        queue = self._queues[patient_id]
        if queue:
            item = queue.popleft()
            if isinstance(item, Exception):
                raise item
            return item
        return make_reading(patient_id)


class EventRecorder:
    """Plain subscriber callback collecting every event it sees."""

    def __init__(self) -> None:
        self.events: list[Any] = []

    def __call__(self, event: Any) -> None:
        self.events.append(event)

    def of_type(self, name: str) -> list[Any]:
        return [event for event in self.events if event.event == name]
