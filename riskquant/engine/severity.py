"""
Severity banding on the 0-100 risk score scale.

    score >= 75 → critical
    score >= 50 → high
    score >= 25 → moderate
    else        → low
"""

from enum import StrEnum
from typing import Optional

from riskquant.config import settings


class SeverityBand(StrEnum):
    LOW = "low"
    MODERATE = "moderate"
    HIGH = "high"
    CRITICAL = "critical"


BAND_RANK: dict[SeverityBand, int] = {
    SeverityBand.LOW: 0,
    SeverityBand.MODERATE: 1,
    SeverityBand.HIGH: 2,
    SeverityBand.CRITICAL: 3,
}


def severity_band(
    score: float,
    critical: Optional[float] = None,
    high: Optional[float] = None,
    moderate: Optional[float] = None,
) -> SeverityBand:
    critical = settings.severity_critical_threshold if critical is None else critical
    high = settings.severity_high_threshold if high is None else high
    moderate = settings.severity_moderate_threshold if moderate is None else moderate

    if score >= critical:
        return SeverityBand.CRITICAL
    if score >= high:
        return SeverityBand.HIGH
    if score >= moderate:
        return SeverityBand.MODERATE
    return SeverityBand.LOW
