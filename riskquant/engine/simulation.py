"""
Monte Carlo Simulation Engine.

For one risk:
1. Validate parameters (InvalidParameterError names the bad field)
2. Draw `iterations` severity samples in fixed-size chunks, each chunk
   from its own generator spawned from SeedSequence([seed, hash(risk_id)])
3. Build a time-indexed trajectory over the timeframe
4. Summarize the samples

Chunks may be drawn on a thread pool. They are always concatenated in
chunk order, so the number of workers never changes the result.
"""

import hashlib
import math
import time
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Optional

import numpy as np
import structlog

from riskquant.config import settings
from riskquant.engine.cancellation import CancellationToken
from riskquant.engine.sampler import DistributionSampler
from riskquant.engine.summarizer import StatisticalSummarizer, quantiles
from riskquant.exceptions import InvalidParameterError, SimulationCancelled
from riskquant.schemas.risk import RiskCategory, RiskInput
from riskquant.schemas.simulation import (
    DistributionSpec,
    FinancialExposure,
    SimulationParameters,
    SimulationResult,
    TrajectoryPoint,
    ValueAtRisk,
)

logger = structlog.get_logger(__name__)

ProgressCallback = Callable[[int, int], None]

# ── Configuration ─────────────────────────────────────────────────────────

# Exponential trend rates (probability, impact) over the whole timeframe:
# multiplier = exp(rate × day / timeframe). Negative rates decay.
CATEGORY_TRENDS: dict[RiskCategory, tuple[float, float]] = {
    RiskCategory.CYBERSECURITY: (0.15, 0.10),
    RiskCategory.OPERATIONAL: (-0.05, 0.0),
    RiskCategory.FINANCIAL: (0.05, 0.05),
    RiskCategory.COMPLIANCE: (-0.10, 0.05),
    RiskCategory.STRATEGIC: (0.0, -0.05),
}

# Triangular (low, mode, high) jitter applied per trajectory sub-sample
PROBABILITY_JITTER: tuple[float, float, float] = (0.8, 1.0, 1.2)
IMPACT_JITTER: tuple[float, float, float] = (0.7, 1.0, 1.3)

# Scenario envelope relative to the impact scale
BEST_CASE_FACTOR: float = 0.4
WORST_CASE_FACTOR: float = 1.2

SEVERITY_OVERRIDE_KEY: str = "severity"
PRECISION: int = 6


def _r(value: float) -> float:
    return round(float(value), PRECISION)


def _is_int(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def validate_parameters(
    params: SimulationParameters,
    seed: int,
    max_iterations: Optional[int] = None,
    risk_ids: Optional[set[str]] = None,
) -> None:
    """
    Check simulation parameters before any work is done.

    Args:
        params: Parameters to validate
        seed: RNG seed (non-negative integer)
        max_iterations: Upper bound on iterations
        risk_ids: Known risk ids; distribution overrides must target one
            of these or the "severity" key
    """
    limit = settings.max_iterations if max_iterations is None else max_iterations

    if not _is_int(params.iterations) or params.iterations <= 0:
        raise InvalidParameterError(
            f"iterations must be a positive integer, got {params.iterations!r}",
            param="iterations",
            value=params.iterations,
        )
    if params.iterations > limit:
        raise InvalidParameterError(
            f"iterations must be <= {limit}, got {params.iterations}",
            param="iterations",
            value=params.iterations,
        )
    if not _is_int(params.timeframe_days) or params.timeframe_days <= 0:
        raise InvalidParameterError(
            f"timeframe_days must be a positive integer, got {params.timeframe_days!r}",
            param="timeframe_days",
            value=params.timeframe_days,
        )
    if params.timeout_seconds is not None and not (
        math.isfinite(params.timeout_seconds) and params.timeout_seconds > 0
    ):
        raise InvalidParameterError(
            f"timeout_seconds must be positive, got {params.timeout_seconds!r}",
            param="timeout_seconds",
            value=params.timeout_seconds,
        )
    if not _is_int(seed) or seed < 0:
        raise InvalidParameterError(
            f"seed must be a non-negative integer, got {seed!r}",
            param="seed",
            value=seed,
        )

    for name, spec in params.distributions.items():
        if risk_ids is not None and name != SEVERITY_OVERRIDE_KEY and name not in risk_ids:
            raise InvalidParameterError(
                f"distribution override '{name}' does not match any risk id",
                param=f"distributions.{name}",
                value=name,
            )
        if spec.spread is not None and not (
            math.isfinite(spec.spread) and 0 < spec.spread <= 1
        ):
            raise InvalidParameterError(
                f"spread must be within (0, 1], got {spec.spread!r}",
                param=f"distributions.{name}.spread",
                value=spec.spread,
            )


def risk_seed_sequence(seed: int, risk_id: str) -> np.random.SeedSequence:
    """Seed sequence keyed by (seed, risk id), independent of risk order."""
    digest = hashlib.sha256(risk_id.encode("utf-8")).digest()
    return np.random.SeedSequence([seed, int.from_bytes(digest[:8], "big")])


class SimulationEngine:
    """
    Run Monte Carlo simulations for single risks.

    Stateless between calls: every call builds its own generators from
    the seed it is given.
    """

    def __init__(
        self,
        sampler: Optional[DistributionSampler] = None,
        summarizer: Optional[StatisticalSummarizer] = None,
        max_iterations: Optional[int] = None,
        chunk_size: Optional[int] = None,
        workers: Optional[int] = None,
        trajectory_steps: Optional[int] = None,
        trajectory_sample_size: Optional[int] = None,
    ):
        self.sampler = sampler or DistributionSampler()
        self.summarizer = summarizer or StatisticalSummarizer()
        self.max_iterations = settings.max_iterations if max_iterations is None else max_iterations
        self.chunk_size = max(1, settings.simulation_chunk_size if chunk_size is None else chunk_size)
        self.workers = max(1, settings.simulation_workers if workers is None else workers)
        self.trajectory_steps = max(
            1, settings.trajectory_steps if trajectory_steps is None else trajectory_steps
        )
        self.trajectory_sample_size = max(
            1,
            settings.trajectory_sample_size
            if trajectory_sample_size is None
            else trajectory_sample_size,
        )

    def simulate(
        self,
        risk: RiskInput,
        params: SimulationParameters,
        seed: int,
        cancel_token: Optional[CancellationToken] = None,
        on_progress: Optional[ProgressCallback] = None,
    ) -> SimulationResult:
        """
        Simulate one risk.

        Raises:
            InvalidParameterError: params or seed are malformed
            SimulationCancelled: the token fired or the timeout elapsed
            DistributionError: the sampler kept producing invalid values
        """
        validate_parameters(
            params, seed, max_iterations=self.max_iterations, risk_ids={risk.id}
        )
        token = (cancel_token or CancellationToken()).combined_with_timeout(
            params.timeout_seconds
        )
        return self.run(risk, params, seed, token, on_progress)

    def run(
        self,
        risk: RiskInput,
        params: SimulationParameters,
        seed: int,
        token: CancellationToken,
        on_progress: Optional[ProgressCallback] = None,
    ) -> SimulationResult:
        """
        Simulate one risk with already validated parameters.

        The token is used as given; params.timeout_seconds is not applied
        again, so a caller can share one deadline across several risks.
        """
        spec = params.distributions.get(risk.id) or params.distributions.get(SEVERITY_OVERRIDE_KEY)
        started = time.perf_counter()

        sizes = self._chunk_sizes(params.iterations)
        children = risk_seed_sequence(seed, risk.id).spawn(len(sizes) + 1)
        trajectory_seq, chunk_seqs = children[0], children[1:]

        samples = self._draw_samples(risk, spec, sizes, chunk_seqs, token, on_progress)
        trajectory = self._trajectory(risk, spec, params, trajectory_seq, token)
        summary = self.summarizer.summarize(samples)

        result = SimulationResult(
            risk_id=risk.id,
            seed=seed,
            iterations=params.iterations,
            timeframe_days=params.timeframe_days,
            distribution=self.sampler.family(spec),
            expected_value=summary.expected_value,
            variance=summary.variance,
            standard_deviation=summary.standard_deviation,
            percentiles=summary.percentiles,
            confidence_intervals=summary.confidence_intervals,
            value_at_risk=summary.value_at_risk,
            probability_of_exceedance=summary.probability_of_exceedance,
            histogram=summary.histogram,
            statistics=summary.statistics,
            best_case=_r(BEST_CASE_FACTOR * risk.impact / 100.0),
            worst_case=_r(WORST_CASE_FACTOR * risk.impact / 100.0),
            trajectory=trajectory,
            financial_exposure=self._financial_exposure(risk, samples),
        )

        logger.info(
            "simulation_completed",
            risk_id=risk.id,
            iterations=params.iterations,
            chunks=len(sizes),
            workers=self.workers,
            expected_value=result.expected_value,
            duration_ms=round((time.perf_counter() - started) * 1000, 1),
        )
        return result

    # ── Sampling ──────────────────────────────────────────────────────────

    def _chunk_sizes(self, iterations: int) -> list[int]:
        full, rest = divmod(iterations, self.chunk_size)
        return [self.chunk_size] * full + ([rest] if rest else [])

    def _draw_chunk(
        self,
        risk: RiskInput,
        spec: Optional[DistributionSpec],
        size: int,
        seq: np.random.SeedSequence,
        token: CancellationToken,
    ) -> Optional[np.ndarray]:
        if token.is_cancelled:
            return None
        return self.sampler.sample_many(risk, np.random.default_rng(seq), size, spec)

    def _draw_samples(
        self,
        risk: RiskInput,
        spec: Optional[DistributionSpec],
        sizes: list[int],
        seqs: list[np.random.SeedSequence],
        token: CancellationToken,
        on_progress: Optional[ProgressCallback],
    ) -> np.ndarray:
        total = sum(sizes)
        completed = 0
        chunks: list[np.ndarray] = []

        if self.workers == 1 or len(sizes) == 1:
            for size, seq in zip(sizes, seqs):
                if token.is_cancelled:
                    raise self._cancelled(risk, token, completed, total)
                chunk = self._draw_chunk(risk, spec, size, seq, token)
                if chunk is None:
                    raise self._cancelled(risk, token, completed, total)
                chunks.append(chunk)
                completed += size
                if on_progress is not None:
                    on_progress(completed, total)
            return np.concatenate(chunks)

        with ThreadPoolExecutor(max_workers=self.workers) as pool:
            futures = [
                pool.submit(self._draw_chunk, risk, spec, size, seq, token)
                for size, seq in zip(sizes, seqs)
            ]
            try:
                for size, future in zip(sizes, futures):
                    if token.is_cancelled:
                        raise self._cancelled(risk, token, completed, total)
                    chunk = future.result()
                    if chunk is None:
                        raise self._cancelled(risk, token, completed, total)
                    chunks.append(chunk)
                    completed += size
                    if on_progress is not None:
                        on_progress(completed, total)
            except BaseException:
                for future in futures:
                    future.cancel()
                raise

        return np.concatenate(chunks)

    def _cancelled(
        self,
        risk: RiskInput,
        token: CancellationToken,
        completed: int,
        total: int,
    ) -> SimulationCancelled:
        reason = token.reason or "cancelled"
        logger.warning(
            "simulation_cancelled",
            risk_id=risk.id,
            reason=reason,
            completed_iterations=completed,
            total_iterations=total,
        )
        return SimulationCancelled(
            f"Simulation of risk '{risk.id}' {reason} after {completed}/{total} iterations",
            param="timeout_seconds" if reason == "timeout" else "cancel_token",
            reason=reason,
            completed_iterations=completed,
            total_iterations=total,
        )

    # ── Trajectory ────────────────────────────────────────────────────────

    def _trajectory(
        self,
        risk: RiskInput,
        spec: Optional[DistributionSpec],
        params: SimulationParameters,
        seq: np.random.SeedSequence,
        token: CancellationToken,
    ) -> tuple[TrajectoryPoint, ...]:
        """
        Sub-sample the risk at evenly spaced days.

        Probability and impact follow the category trend, then each
        sub-sample jitters them; the point reports the population means.
        """
        timeframe = params.timeframe_days
        n_steps = min(self.trajectory_steps, timeframe)
        sub_n = min(params.iterations, self.trajectory_sample_size)
        p_rate, i_rate = CATEGORY_TRENDS[risk.category]
        rng = np.random.default_rng(seq)

        points: list[TrajectoryPoint] = []
        for k in range(1, n_steps + 1):
            if token.is_cancelled:
                raise self._cancelled(risk, token, params.iterations, params.iterations)

            day = (k * timeframe) // n_steps
            elapsed = day / timeframe
            p_trend = risk.probability * math.exp(p_rate * elapsed)
            i_trend = risk.impact * math.exp(i_rate * elapsed)

            probability = np.clip(p_trend * rng.triangular(*PROBABILITY_JITTER, size=sub_n), 0, 100)
            impact = np.clip(i_trend * rng.triangular(*IMPACT_JITTER, size=sub_n), 0, 100)
            stepped = risk.model_copy(update={
                "probability": float(probability.mean()),
                "impact": float(impact.mean()),
            })
            severity = self.sampler.sample_many(stepped, rng, sub_n, spec)

            points.append(TrajectoryPoint(
                day=day,
                probability=_r(probability.mean()),
                impact=_r(impact.mean()),
                expected_severity=_r(severity.mean()),
            ))

        return tuple(points)

    # ── Financial exposure ───────────────────────────────────────────────

    def _financial_exposure(
        self, risk: RiskInput, samples: np.ndarray
    ) -> Optional[FinancialExposure]:
        """Map severity samples onto the risk's historical loss range."""
        rng_ = risk.financial_impact
        if rng_ is None:
            return None

        losses = rng_.min + np.clip(samples, 0.0, 1.0) * (rng_.max - rng_.min)
        levels = self.summarizer.var_levels
        values = quantiles(losses, levels)
        return FinancialExposure(
            currency=rng_.currency,
            expected_loss=round(float(np.mean(losses)), 2),
            value_at_risk=tuple(
                ValueAtRisk(confidence=level, value=round(float(v), 2))
                for level, v in zip(levels, values)
            ),
        )
