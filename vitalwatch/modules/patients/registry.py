from __future__ import annotations

import threading
from typing import Iterable

from vitalwatch.shared.exceptions import PatientNotFoundError
from vitalwatch.shared.schemas import FrozenCamelModel


class MonitoredPatient(FrozenCamelModel):
    """Identity reference supplied by the patient registry; opaque to the engine."""

    id: str
    name: str


DEFAULT_PATIENTS = (
    MonitoredPatient(id="patient-1", name="John Doe"),
    MonitoredPatient(id="patient-2", name="Sarah Johnson"),
)


class PatientRegistry:
    """In-memory registry of the patients the engine monitors, in enrolment order."""

    def __init__(self, patients: Iterable[MonitoredPatient] = DEFAULT_PATIENTS) -> None:
        self._lock = threading.Lock()
        self._patients: dict[str, MonitoredPatient] = {}
        for patient in patients:
            self._patients[patient.id] = patient

    def all(self) -> list[MonitoredPatient]:
        with self._lock:
            return list(self._patients.values())

    def get(self, patient_id: str) -> MonitoredPatient:
        with self._lock:
            patient = self._patients.get(patient_id)
        if patient is None:
            raise PatientNotFoundError(patient_id)
        return patient

    def __contains__(self, patient_id: object) -> bool:
        with self._lock:
            return patient_id in self._patients

    def add(self, patient: MonitoredPatient) -> None:
        with self._lock:
            self._patients[patient.id] = patient

    def remove(self, patient_id: str) -> None:
        with self._lock:
            if self._patients.pop(patient_id, None) is None:
                raise PatientNotFoundError(patient_id)
