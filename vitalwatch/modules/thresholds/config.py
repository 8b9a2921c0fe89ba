from __future__ import annotations

import json
import math
import threading
from pathlib import Path
from typing import Any, Mapping

import structlog
from pydantic import Field, ValidationError, model_validator

from vitalwatch.modules.vitals.models import VitalMetric
from vitalwatch.shared.exceptions import ThresholdConfigError
from vitalwatch.shared.schemas import FrozenCamelModel

log = structlog.get_logger()


class CriticalRange(FrozenCamelModel):
    min: float
    max: float


class ThresholdSpec(FrozenCamelModel):
    """Normal band `[min, max]` nested inside the critical band."""

    min: float
    max: float
    critical: CriticalRange

    @model_validator(mode="after")
    def check_bands(self) -> "ThresholdSpec":
        bounds = (self.critical.min, self.min, self.max, self.critical.max)
        if not all(math.isfinite(bound) for bound in bounds):
            raise ValueError("threshold bounds must be finite")
        if not self.critical.min <= self.min <= self.max <= self.critical.max:
            raise ValueError(
                "thresholds must satisfy critical.min <= min <= max <= critical.max, "
                f"got {self.critical.min} <= {self.min} <= {self.max} <= {self.critical.max}"
            )
        return self


class ThresholdConfig(FrozenCamelModel):
    version: str = "default-v1"
    metrics: dict[VitalMetric, ThresholdSpec] = Field(min_length=1)


def _spec(low: float, high: float, critical_low: float, critical_high: float) -> ThresholdSpec:
    return ThresholdSpec(
        min=low, max=high, critical=CriticalRange(min=critical_low, max=critical_high)
    )


DEFAULT_THRESHOLDS = ThresholdConfig(
    metrics={
        VitalMetric.HEART_RATE: _spec(60, 100, 40, 140),
        VitalMetric.BLOOD_PRESSURE_SYSTOLIC: _spec(90, 140, 70, 180),
        VitalMetric.BLOOD_PRESSURE_DIASTOLIC: _spec(60, 90, 40, 110),
        VitalMetric.TEMPERATURE: _spec(36.1, 37.2, 35.0, 39.0),
        VitalMetric.OXYGEN_SATURATION: _spec(95, 100, 88, 100),
        VitalMetric.RESPIRATORY_RATE: _spec(12, 20, 8, 30),
    },
)


def parse_thresholds(payload: Any) -> ThresholdConfig:
    try:
        return ThresholdConfig.model_validate(payload)
    except ValidationError as exc:
        raise ThresholdConfigError(f"invalid threshold configuration: {exc}") from exc


def load_thresholds(path: Path | str | None) -> ThresholdConfig:
    """
    Load thresholds from a JSON file.

    An unset or missing file falls back to the defaults. A file that exists but
    does not parse or validate raises `ThresholdConfigError` so start-up fails.
    """
    if path is None:
        return DEFAULT_THRESHOLDS
    path = Path(path)
    try:
        raw = path.read_text()
    except FileNotFoundError:
        log.info("thresholds file not found, using defaults", path=str(path))
        return DEFAULT_THRESHOLDS

    try:
        payload = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ThresholdConfigError(f"thresholds file {path} is not valid JSON: {exc}") from exc

    config = parse_thresholds(payload)
    log.info(
        "thresholds loaded",
        path=str(path),
        version=config.version,
        metrics=[metric.value for metric in config.metrics],
    )
    return config


class ThresholdTable:
    """Process-wide threshold table. Readers take a snapshot per tick."""

    def __init__(self, config: ThresholdConfig = DEFAULT_THRESHOLDS) -> None:
        self._lock = threading.Lock()
        self._config = config

    @property
    def version(self) -> str:
        return self._config.version

    def snapshot(self) -> dict[VitalMetric, ThresholdSpec]:
        with self._lock:
            return dict(self._config.metrics)

    def get(self, metric: VitalMetric) -> ThresholdSpec | None:
        with self._lock:
            return self._config.metrics.get(metric)

    def update(self, updates: Mapping[VitalMetric | str, Any]) -> dict[VitalMetric, ThresholdSpec]:
        """
        Merge per-metric specs into the table. Every spec is validated before any
        is applied; an invalid update leaves the table unchanged.
        """
        with self._lock:
            merged: dict[str, Any] = {
                metric.value: spec.model_dump() for metric, spec in self._config.metrics.items()
            }
            for metric, spec in updates.items():
                key = metric.value if isinstance(metric, VitalMetric) else str(metric)
                merged[key] = spec.model_dump() if isinstance(spec, ThresholdSpec) else spec
            config = parse_thresholds({"version": self._config.version, "metrics": merged})
            self._config = config
            return dict(config.metrics)
