from __future__ import annotations

import threading
from collections import deque
from typing import Deque

from vitalwatch.modules.vitals.models import Trend, VitalMetric, VitalSign

TREND_WINDOW = 5
TREND_BAND = 0.05


class HistoryStore:
    """Fixed-capacity, per-patient ring buffer of readings, oldest first."""

    def __init__(self, capacity: int) -> None:
        if capacity < 1:
            raise ValueError("history capacity must be at least 1")
        self._capacity = capacity
        self._lock = threading.Lock()
        self._buffers: dict[str, Deque[VitalSign]] = {}

    @property
    def capacity(self) -> int:
        return self._capacity

    def append(self, patient_id: str, reading: VitalSign) -> None:
        with self._lock:
            buffer = self._buffers.get(patient_id)
            if buffer is None:
                buffer = deque(maxlen=self._capacity)
                self._buffers[patient_id] = buffer
            buffer.append(reading)

    def read(self, patient_id: str, limit: int | None = None) -> list[VitalSign]:
        """Return up to `limit` most recent readings, most recent last."""
        with self._lock:
            buffer = self._buffers.get(patient_id)
            if not buffer:
                return []
            readings = list(buffer)
        if limit is None:
            return readings
        if limit <= 0:
            return []
        return readings[-limit:]

    def latest(self, patient_id: str) -> VitalSign | None:
        with self._lock:
            buffer = self._buffers.get(patient_id)
            return buffer[-1] if buffer else None

    def trend(self, patient_id: str, metric: VitalMetric) -> Trend:
        """
        Compare the latest value of `metric` with the mean of the last five
        stored values: more than 5% above is `up`, more than 5% below is `down`.
        Fewer than two samples gives `none`.
        """
        with self._lock:
            buffer = self._buffers.get(patient_id) or ()
            values = [
                value
                for value in (reading.value_of(metric) for reading in buffer)
                if value is not None
            ][-TREND_WINDOW:]

        if len(values) < 2:
            return Trend.NONE
        current = values[-1]
        average = sum(values) / len(values)
        if current > average * (1 + TREND_BAND):
            return Trend.UP
        if current < average * (1 - TREND_BAND):
            return Trend.DOWN
        return Trend.STABLE

    def trends(self, patient_id: str) -> dict[VitalMetric, Trend]:
        return {metric: self.trend(patient_id, metric) for metric in VitalMetric}

    def clear(self, patient_id: str | None = None) -> None:
        with self._lock:
            if patient_id is None:
                self._buffers.clear()
            else:
                self._buffers.pop(patient_id, None)
