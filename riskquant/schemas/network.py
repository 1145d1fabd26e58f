"""
Correlation, network and cluster structures for multi-risk analysis.
"""

from enum import StrEnum
from typing import Optional

from pydantic import Field

from riskquant.schemas.base import FrozenDict, FrozenModel


class CorrelationMatrix(FrozenModel):
    """
    Square, symmetric correlation matrix indexed by risk id.

    Diagonal entries are exactly 1.0; off-diagonal entries lie in [-1, 1].
    """
    risk_ids: tuple[str, ...]
    values: tuple[tuple[float, ...], ...]

    def index(self, risk_id: str) -> int:
        return self.risk_ids.index(risk_id)

    def get(self, risk_a: str, risk_b: str) -> float:
        return self.values[self.index(risk_a)][self.index(risk_b)]


class CorrelationType(StrEnum):
    COMMON_CAUSE = "common_cause"     # Shared factor tags
    CASCADING = "cascading"           # Same category, no shared tags
    SYNERGISTIC = "synergistic"       # Related categories
    INDEPENDENT = "independent"


class CorrelationPair(FrozenModel):
    risk_a: str
    risk_b: str
    strength: float
    correlation_type: CorrelationType
    shared_factors: tuple[str, ...] = ()
    explanation: str = ""


class CentralityMeasure(FrozenModel):
    degree: float
    betweenness: float
    closeness: float
    eigenvector: float = 0.0   # Leading-eigenvector share, 0 for isolated risks
    pagerank: float = 0.0


class CriticalPath(FrozenModel):
    risk_ids: tuple[str, ...]
    hops: int
    total_impact: float    # Independent-OR of member severities
    probability: float     # Product of edge correlations along the path
    description: str


class NetworkMetrics(FrozenModel):
    density: float
    clustering_coefficient: float
    average_path_length: Optional[float]   # None when the graph is disconnected
    critical_paths: tuple[CriticalPath, ...]
    edge_count: int
    threshold: float
    centrality: FrozenDict[str, CentralityMeasure]


class RiskCluster(FrozenModel):
    id: str
    name: str
    risk_ids: tuple[str, ...]
    common_factors: tuple[str, ...]
    aggregate_risk: float
    average_correlation: float
    mitigation_strategy: str


class SystemicRiskIndicators(FrozenModel):
    contagion_risk: float
    vulnerability_index: float
    resilience: float
    amplification_factor: float = 1.0
    systemic_importance: FrozenDict[str, float] = Field(
        default_factory=dict, validate_default=True,
    )


class DependencyType(StrEnum):
    SEQUENTIAL = "sequential"       # Same category, one risk tends to follow the other
    CONDITIONAL = "conditional"     # Both hinge on shared factors
    OPERATIONAL = "operational"     # Shared factors reaching an operational risk


class RiskDependency(FrozenModel):
    """Directed link from the more severe risk to the one it drags along."""
    parent_risk_id: str
    child_risk_id: str
    dependency_type: DependencyType
    strength: float
    conditions: tuple[str, ...] = ()


class CorrelationAnalysis(FrozenModel):
    matrix: CorrelationMatrix
    pairs: tuple[CorrelationPair, ...]
    network: NetworkMetrics
    clusters: tuple[RiskCluster, ...]
    systemic: SystemicRiskIndicators
    dependencies: tuple[RiskDependency, ...] = ()
