"""
Statistical Summarizer.

Reduces a sample set to the figures reported in a SimulationResult:
- Percentiles (type 7 linear interpolation)
- Confidence intervals for the expected value (normal approximation)
- Value-at-Risk
- Probability of exceedance, histogram and shape statistics
"""

import math
from dataclasses import dataclass
from statistics import NormalDist

import numpy as np
import structlog

from riskquant.exceptions import InsufficientDataError
from riskquant.schemas.simulation import (
    ConfidenceInterval,
    DistributionStatistics,
    ExceedancePoint,
    HistogramBin,
    PercentilePoint,
    ValueAtRisk,
)

logger = structlog.get_logger(__name__)

# ── Configuration ─────────────────────────────────────────────────────────

PERCENTILE_RANKS: tuple[float, ...] = (1, 5, 10, 25, 50, 75, 90, 95, 99)
CONFIDENCE_LEVELS: tuple[float, ...] = (90, 95, 99)
VAR_LEVELS: tuple[float, ...] = (95, 99, 99.9)
HISTOGRAM_BINS: int = 50
MODE_DECIMALS: int = 2
PRECISION: int = 6
ZERO_STD: float = 1e-12        # Below this the samples are treated as constant
MIN_BIN_RANGE: float = 1e-9    # Narrower data gets a unit-wide histogram range


def _r(value: float) -> float:
    return round(float(value), PRECISION)


def quantiles(samples: np.ndarray, ranks: tuple[float, ...]) -> np.ndarray:
    """
    Linear-interpolation quantiles, forced non-decreasing in rank.

    The forcing only absorbs float rounding between adjacent ranks.
    """
    values = np.percentile(samples, ranks, method="linear")
    return np.maximum.accumulate(np.asarray(values, dtype=float))


@dataclass(frozen=True)
class SampleSummary:
    """Summary statistics of one sample set."""
    n: int
    expected_value: float
    variance: float
    standard_deviation: float
    percentiles: tuple[PercentilePoint, ...]
    confidence_intervals: tuple[ConfidenceInterval, ...]
    value_at_risk: tuple[ValueAtRisk, ...]
    probability_of_exceedance: tuple[ExceedancePoint, ...]
    histogram: tuple[HistogramBin, ...]
    statistics: DistributionStatistics


class StatisticalSummarizer:
    """
    Summarize Monte Carlo samples.

    VaR at confidence C is the C-th percentile of the losses: the loss that
    is not exceeded with probability C.
    """

    def __init__(
        self,
        percentile_ranks: tuple[float, ...] = PERCENTILE_RANKS,
        confidence_levels: tuple[float, ...] = CONFIDENCE_LEVELS,
        var_levels: tuple[float, ...] = VAR_LEVELS,
        histogram_bins: int = HISTOGRAM_BINS,
    ):
        self.percentile_ranks = tuple(sorted(percentile_ranks))
        self.confidence_levels = tuple(sorted(confidence_levels))
        self.var_levels = tuple(sorted(var_levels))
        self.histogram_bins = histogram_bins

    def summarize(self, samples: np.ndarray) -> SampleSummary:
        data = np.asarray(samples, dtype=float)
        n = int(data.size)
        if n == 0:
            raise InsufficientDataError(
                "Cannot summarize an empty sample set",
                param="samples",
                required=1,
                actual=0,
            )

        mean = float(np.mean(data))
        variance = float(np.var(data, ddof=1)) if n > 1 else 0.0
        std = math.sqrt(variance)

        pct_values = quantiles(data, self.percentile_ranks)
        percentiles = tuple(
            PercentilePoint(percentile=rank, value=_r(v))
            for rank, v in zip(self.percentile_ranks, pct_values)
        )

        var_values = quantiles(data, self.var_levels)
        value_at_risk = tuple(
            ValueAtRisk(confidence=level, value=_r(v))
            for level, v in zip(self.var_levels, var_values)
        )

        return SampleSummary(
            n=n,
            expected_value=_r(mean),
            variance=_r(variance),
            standard_deviation=_r(std),
            percentiles=percentiles,
            confidence_intervals=self.confidence_intervals(mean, std, n),
            value_at_risk=value_at_risk,
            probability_of_exceedance=self._exceedance(data, mean, std),
            histogram=self._histogram(data),
            statistics=DistributionStatistics(
                skewness=_r(self._skewness(data, mean, std)),
                kurtosis=_r(self._kurtosis(data, mean, std)),
                mode=_r(self._mode(data)),
                median=_r(np.percentile(data, 50, method="linear")),
            ),
        )

    def confidence_intervals(
        self, mean: float, std: float, n: int
    ) -> tuple[ConfidenceInterval, ...]:
        """
        Symmetric intervals for the expected value: mean ± z·s/√n.

        Large iteration counts justify the CLT approximation.
        """
        standard_error = std / math.sqrt(n) if n > 0 else 0.0
        intervals = []
        for level in self.confidence_levels:
            z = NormalDist().inv_cdf(0.5 + level / 200.0)
            half = z * standard_error
            intervals.append(ConfidenceInterval(
                level=level,
                lower=_r(mean - half),
                upper=_r(mean + half),
            ))
        return tuple(intervals)

    def _exceedance(
        self, data: np.ndarray, mean: float, std: float
    ) -> tuple[ExceedancePoint, ...]:
        thresholds = (mean, mean + std, mean + 2 * std)
        return tuple(
            ExceedancePoint(
                threshold=_r(t),
                probability=_r(np.count_nonzero(data > t) / data.size),
            )
            for t in thresholds
        )

    def _histogram(self, data: np.ndarray) -> tuple[HistogramBin, ...]:
        lo, hi = float(data.min()), float(data.max())
        if hi - lo < MIN_BIN_RANGE:
            lo, hi = lo - 0.5, hi + 0.5
        counts, edges = np.histogram(data, bins=self.histogram_bins, range=(lo, hi))
        centres = (edges[:-1] + edges[1:]) / 2.0
        cumulative = np.cumsum(counts) / data.size
        return tuple(
            HistogramBin(value=_r(c), frequency=int(f), cumulative=_r(cum))
            for c, f, cum in zip(centres, counts, cumulative)
        )

    @staticmethod
    def _skewness(data: np.ndarray, mean: float, std: float) -> float:
        n = data.size
        if n < 3 or std <= ZERO_STD:
            return 0.0
        z3 = float(np.sum(((data - mean) / std) ** 3))
        return (n / ((n - 1) * (n - 2))) * z3

    @staticmethod
    def _kurtosis(data: np.ndarray, mean: float, std: float) -> float:
        """Sample excess kurtosis."""
        n = data.size
        if n < 4 or std <= ZERO_STD:
            return 0.0
        z4 = float(np.sum(((data - mean) / std) ** 4))
        return (
            (n * (n + 1)) / ((n - 1) * (n - 2) * (n - 3)) * z4
            - (3 * (n - 1) ** 2) / ((n - 2) * (n - 3))
        )

    @staticmethod
    def _mode(data: np.ndarray) -> float:
        """Most frequent value after rounding to MODE_DECIMALS places."""
        values, counts = np.unique(np.round(data, MODE_DECIMALS), return_counts=True)
        return float(values[int(np.argmax(counts))])
