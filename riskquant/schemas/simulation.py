"""
Simulation parameters and results.

Parameters are plain typed containers; range checks happen in the
simulation engine so that failures surface as InvalidParameterError
naming the offending field.
"""

from enum import StrEnum
from typing import Optional

from pydantic import Field

from riskquant.schemas.base import FrozenDict, FrozenModel


class DistributionType(StrEnum):
    TRIANGULAR = "triangular"
    LOGNORMAL = "lognormal"
    BETA = "beta"
    NORMAL = "normal"
    UNIFORM = "uniform"


class DistributionSpec(FrozenModel):
    """Override for the severity distribution of one or all risks."""
    type: DistributionType = DistributionType.TRIANGULAR
    spread: Optional[float] = None   # Relative half-width in (0, 1]


class SimulationParameters(FrozenModel):
    timeframe_days: int = 90
    iterations: int = 10_000
    distributions: FrozenDict[str, DistributionSpec] = Field(
        default_factory=dict, validate_default=True,
    )
    timeout_seconds: Optional[float] = None


class PercentilePoint(FrozenModel):
    percentile: float
    value: float


class ConfidenceInterval(FrozenModel):
    level: float      # e.g. 95 for a 95% interval
    lower: float
    upper: float


class ValueAtRisk(FrozenModel):
    confidence: float
    value: float


class ExceedancePoint(FrozenModel):
    threshold: float
    probability: float


class HistogramBin(FrozenModel):
    value: float          # Bin centre
    frequency: int
    cumulative: float     # Share of samples at or below this bin


class DistributionStatistics(FrozenModel):
    skewness: float
    kurtosis: float       # Excess kurtosis
    mode: float
    median: float


class TrajectoryPoint(FrozenModel):
    day: int
    probability: float        # 0-100
    impact: float             # 0-100
    expected_severity: float  # Mean sampled severity at this step


class FinancialExposure(FrozenModel):
    currency: str
    expected_loss: float
    value_at_risk: tuple[ValueAtRisk, ...]


class SimulationResult(FrozenModel):
    """
    Summary of a Monte Carlo run for a single risk.

    Invariants:
    - percentiles are non-decreasing in percentile rank
    - value_at_risk is non-decreasing in confidence level
    - trajectory days are strictly increasing and end at timeframe_days
    """
    risk_id: str
    seed: int
    iterations: int
    timeframe_days: int
    distribution: DistributionType
    expected_value: float
    variance: float
    standard_deviation: float
    percentiles: tuple[PercentilePoint, ...]
    confidence_intervals: tuple[ConfidenceInterval, ...]
    value_at_risk: tuple[ValueAtRisk, ...]
    probability_of_exceedance: tuple[ExceedancePoint, ...]
    histogram: tuple[HistogramBin, ...]
    statistics: DistributionStatistics
    best_case: float
    worst_case: float
    trajectory: tuple[TrajectoryPoint, ...]
    financial_exposure: Optional[FinancialExposure] = None

    def percentile(self, rank: float) -> float:
        """Look up a reported percentile by rank."""
        for p in self.percentiles:
            if p.percentile == rank:
                return p.value
        raise KeyError(rank)
