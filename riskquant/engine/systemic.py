"""
Systemic Risk Indicators.

Pure function of network metrics, clusters and risks:

    contagion     = w_d·density + w_a·mean(cluster aggregate)
    vulnerability = share of risks sitting in high-risk clusters
    resilience    = 1 − (w_c·contagion + w_v·vulnerability)
    amplification = 1 + contagion × clustering coefficient

Systemic importance of a risk is the mean of its degree and betweenness
centrality.
"""

from typing import Optional, Sequence

import structlog

from riskquant.config import settings
from riskquant.schemas.network import NetworkMetrics, RiskCluster, SystemicRiskIndicators
from riskquant.schemas.risk import RiskInput

logger = structlog.get_logger(__name__)

PRECISION: int = 4


def _clamp(value: float, lo: float = 0.0, hi: float = 1.0) -> float:
    return max(lo, min(hi, value))


class SystemicRiskIndicator:

    def __init__(
        self,
        high_cluster_risk: Optional[float] = None,
        density_weight: Optional[float] = None,
        cluster_weight: Optional[float] = None,
        contagion_weight: Optional[float] = None,
        vulnerability_weight: Optional[float] = None,
    ):
        self.high_cluster_risk = (
            settings.high_cluster_risk if high_cluster_risk is None else high_cluster_risk
        )
        self.density_weight = (
            settings.contagion_density_weight if density_weight is None else density_weight
        )
        self.cluster_weight = (
            settings.contagion_cluster_weight if cluster_weight is None else cluster_weight
        )
        self.contagion_weight = (
            settings.resilience_contagion_weight if contagion_weight is None else contagion_weight
        )
        self.vulnerability_weight = (
            settings.resilience_vulnerability_weight
            if vulnerability_weight is None
            else vulnerability_weight
        )

    def compute(
        self,
        metrics: NetworkMetrics,
        clusters: Sequence[RiskCluster],
        risks: Sequence[RiskInput],
    ) -> SystemicRiskIndicators:
        mean_aggregate = (
            sum(c.aggregate_risk for c in clusters) / len(clusters) if clusters else 0.0
        )
        contagion = _clamp(
            self.density_weight * metrics.density + self.cluster_weight * mean_aggregate
        )

        exposed = {
            risk_id
            for c in clusters
            if c.aggregate_risk >= self.high_cluster_risk
            for risk_id in c.risk_ids
        }
        vulnerability = _clamp(len(exposed) / len(risks)) if risks else 0.0

        resilience = _clamp(
            1.0 - (self.contagion_weight * contagion + self.vulnerability_weight * vulnerability)
        )
        amplification = max(1.0, 1.0 + contagion * metrics.clustering_coefficient)

        importance = {
            risk_id: round(_clamp((m.degree + m.betweenness) / 2.0), PRECISION)
            for risk_id, m in metrics.centrality.items()
        }

        indicators = SystemicRiskIndicators(
            contagion_risk=round(contagion, PRECISION),
            vulnerability_index=round(vulnerability, PRECISION),
            resilience=round(resilience, PRECISION),
            amplification_factor=round(amplification, PRECISION),
            systemic_importance=importance,
        )
        logger.debug(
            "systemic_indicators_computed",
            contagion=indicators.contagion_risk,
            vulnerability=indicators.vulnerability_index,
            resilience=indicators.resilience,
        )
        return indicators
