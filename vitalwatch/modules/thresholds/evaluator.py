"""Classify a single reading against its threshold spec."""

from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum

from vitalwatch.modules.thresholds.config import ThresholdSpec
from vitalwatch.shared.exceptions import InvalidReading


class Severity(str, Enum):
    NORMAL = "normal"
    WARNING = "warning"
    CRITICAL = "critical"


class BoundSide(str, Enum):
    LOWER = "lower"
    UPPER = "upper"


@dataclass(frozen=True)
class Breach:
    severity: Severity
    side: BoundSide
    bound: float


def _as_finite(value: float) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise InvalidReading(value)
    if not math.isfinite(value):
        raise InvalidReading(value)
    return float(value)


def evaluate(value: float, spec: ThresholdSpec) -> Severity:
    """Return the severity of `value`; raises `InvalidReading` for NaN or infinite input."""
    value = _as_finite(value)
    if value < spec.critical.min or value > spec.critical.max:
        return Severity.CRITICAL
    if value < spec.min or value > spec.max:
        return Severity.WARNING
    return Severity.NORMAL


def find_breach(value: float, spec: ThresholdSpec) -> Breach | None:
    """Like `evaluate`, but also reports which bound was crossed. None when normal."""
    severity = evaluate(value, spec)
    if severity is Severity.CRITICAL:
        if value < spec.critical.min:
            return Breach(severity, BoundSide.LOWER, spec.critical.min)
        return Breach(severity, BoundSide.UPPER, spec.critical.max)
    if severity is Severity.WARNING:
        if value < spec.min:
            return Breach(severity, BoundSide.LOWER, spec.min)
        return Breach(severity, BoundSide.UPPER, spec.max)
    return None
