"""
Distribution Sampler.

Turns a qualitative (probability, impact) pair into continuous severity
samples. Every family is anchored so that its mode equals

    severity = probability/100 × impact/100

and its relative spread shrinks as the rating becomes more extreme:

    r = base_spread × (1 − extremity_damping × |2·severity − 1|)

Randomness always comes from the caller's numpy Generator, so a fixed seed
reproduces the same draws.
"""

import math
from typing import Optional

import numpy as np
import structlog

from riskquant.config import settings
from riskquant.exceptions import DistributionError
from riskquant.schemas.risk import RiskInput
from riskquant.schemas.simulation import DistributionSpec, DistributionType

logger = structlog.get_logger(__name__)

# ── Configuration ─────────────────────────────────────────────────────────

MIN_WIDTH: float = 1e-12   # Narrower than this the distribution is a point mass


class DistributionSampler:
    """
    Draw severity samples for a risk from a parametrised distribution.

    Invalid draws (NaN, inf, negative) are redrawn up to
    max_resample_attempts times before giving up with DistributionError.
    """

    def __init__(
        self,
        distribution: Optional[DistributionType] = None,
        base_spread: Optional[float] = None,
        extremity_damping: Optional[float] = None,
        max_resample_attempts: Optional[int] = None,
    ):
        self.distribution = DistributionType(distribution or settings.default_distribution)
        self.base_spread = settings.base_spread if base_spread is None else base_spread
        self.extremity_damping = (
            settings.extremity_damping if extremity_damping is None else extremity_damping
        )
        self.max_resample_attempts = (
            settings.max_resample_attempts
            if max_resample_attempts is None
            else max_resample_attempts
        )

    def relative_spread(self, severity: float, spec: Optional[DistributionSpec] = None) -> float:
        """Relative half-width of the distribution around its mode."""
        if spec is not None and spec.spread is not None:
            return spec.spread
        extremity = abs(2.0 * severity - 1.0)
        return self.base_spread * (1.0 - self.extremity_damping * extremity)

    def family(self, spec: Optional[DistributionSpec] = None) -> DistributionType:
        return spec.type if spec is not None else self.distribution

    def sample(
        self,
        risk: RiskInput,
        rng: np.random.Generator,
        spec: Optional[DistributionSpec] = None,
    ) -> float:
        """Draw a single severity sample."""
        return float(self.sample_many(risk, rng, 1, spec)[0])

    def sample_many(
        self,
        risk: RiskInput,
        rng: np.random.Generator,
        n: int,
        spec: Optional[DistributionSpec] = None,
    ) -> np.ndarray:
        """Draw n severity samples, resampling invalid values."""
        family = self.family(spec)
        mode = risk.severity
        spread = self.relative_spread(mode, spec)

        draws = np.asarray(self._draw(family, mode, spread, rng, n), dtype=float)
        invalid = ~np.isfinite(draws) | (draws < 0)
        attempts = 0

        while invalid.any():
            if attempts >= self.max_resample_attempts:
                logger.error(
                    "distribution_invalid_samples",
                    risk_id=risk.id,
                    distribution=family.value,
                    spread=spread,
                    n_invalid=int(invalid.sum()),
                    attempts=attempts,
                )
                raise DistributionError(
                    f"{family.value} distribution for risk '{risk.id}' still produced "
                    f"{int(invalid.sum())} invalid samples after {attempts} resampling attempts",
                    param="distribution",
                    attempts=attempts,
                )
            draws[invalid] = self._draw(family, mode, spread, rng, int(invalid.sum()))
            invalid = ~np.isfinite(draws) | (draws < 0)
            attempts += 1

        return draws

    def _draw(
        self,
        family: DistributionType,
        mode: float,
        spread: float,
        rng: np.random.Generator,
        n: int,
    ) -> np.ndarray:
        if mode <= MIN_WIDTH or mode * spread <= MIN_WIDTH:
            return np.full(n, mode, dtype=float)

        if family == DistributionType.TRIANGULAR:
            low = mode * (1.0 - spread)
            high = mode * (1.0 + spread)
            return rng.triangular(low, mode, high, size=n)

        if family == DistributionType.LOGNORMAL:
            # mode of a lognormal is exp(μ − σ²)
            sigma = spread
            mu = math.log(mode) + sigma ** 2
            return rng.lognormal(mu, sigma, size=n)

        if family == DistributionType.BETA:
            kappa = 2.0 + 2.0 / spread ** 2
            m = min(mode, 1.0)
            alpha = 1.0 + m * (kappa - 2.0)
            beta = 1.0 + (1.0 - m) * (kappa - 2.0)
            return rng.beta(alpha, beta, size=n)

        if family == DistributionType.NORMAL:
            return rng.normal(mode, mode * spread / 2.0, size=n)

        if family == DistributionType.UNIFORM:
            return rng.uniform(mode * (1.0 - spread), mode * (1.0 + spread), size=n)

        raise DistributionError(f"Unknown distribution type: {family}", param="distribution")
