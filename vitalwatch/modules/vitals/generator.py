"""Reading sources. The controller only depends on `ReadingGenerator.generate`."""

from __future__ import annotations

import random
import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Protocol

from vitalwatch.modules.vitals.models import VitalSign
from vitalwatch.shared.exceptions import SourceUnavailable


class ReadingGenerator(Protocol):
    def generate(self, patient_id: str) -> VitalSign:
        """Return a complete reading or raise `SourceUnavailable`."""
        ...


@dataclass(frozen=True)
class Baseline:
    heart_rate: float
    blood_pressure_systolic: float
    blood_pressure_diastolic: float
    temperature: float
    oxygen_saturation: float
    respiratory_rate: float


DEFAULT_BASELINES: dict[str, Baseline] = {
    # slightly elevated
    "patient-1": Baseline(78, 128, 82, 37.0, 97, 16),
    "patient-2": Baseline(72, 118, 76, 36.8, 98, 14),
}

# (step range, drift range) per metric
_WALK = {
    "heart_rate": (5.0, 2.0),
    "blood_pressure_systolic": (8.0, 3.0),
    "blood_pressure_diastolic": (5.0, 2.0),
    "temperature": (0.3, 0.1),
    "oxygen_saturation": (2.0, 0.5),
    "respiratory_rate": (3.0, 1.0),
}

# Fraction of the distance to baseline recovered on each step
_REVERSION = 0.1


class SimulatedReadingGenerator:
    """
    Random walk around a per-patient baseline.

    The first reading for a patient is its baseline; later readings step from
    the previous one with a small pull back toward the baseline. Unknown
    patients use the first configured baseline.
    """

    def __init__(
        self,
        baselines: dict[str, Baseline] | None = None,
        seed: int | None = None,
        unavailable: set[str] | None = None,
    ) -> None:
        self._baselines = dict(baselines or DEFAULT_BASELINES)
        if not self._baselines:
            raise ValueError("at least one baseline is required")
        self._default = next(iter(self._baselines.values()))
        self._rng = random.Random(seed)
        self._lock = threading.Lock()
        self._last: dict[str, dict[str, float]] = {}
        self.unavailable: set[str] = set(unavailable or ())

    def baseline_for(self, patient_id: str) -> Baseline:
        return self._baselines.get(patient_id, self._default)

    def generate(self, patient_id: str) -> VitalSign:
        if patient_id in self.unavailable:
            raise SourceUnavailable(patient_id, "simulated feed disabled")

        baseline = self.baseline_for(patient_id)
        with self._lock:
            previous = self._last.get(patient_id)
            if previous is None:
                values = {name: float(getattr(baseline, name)) for name in _WALK}
            else:
                values = {
                    name: self._step(previous[name], float(getattr(baseline, name)), *walk)
                    for name, walk in _WALK.items()
                }
            values = self._round(values)
            self._last[patient_id] = values
            glucose = round(90 + self._rng.random() * 40)

        return VitalSign(
            patient_id=patient_id,
            timestamp=datetime.now(timezone.utc),
            glucose_level=glucose,
            **values,
        )

    def _step(self, last: float, base: float, step_range: float, drift_range: float) -> float:
        variation = (self._rng.random() - 0.5) * step_range
        drift = (self._rng.random() - 0.5) * drift_range
        pull = (base - last) * _REVERSION
        return max(0.0, last + variation + drift + pull)

    @staticmethod
    def _round(values: dict[str, float]) -> dict[str, float]:
        rounded = {name: float(round(value)) for name, value in values.items()}
        rounded["temperature"] = round(values["temperature"], 1)
        rounded["oxygen_saturation"] = min(100.0, rounded["oxygen_saturation"])
        return rounded
