"""
Risk Cluster Detector.

Clusters are the connected components of the thresholded correlation
graph. A component needs at least two risks to count as a cluster.

Aggregate cluster risk treats members as independent events:

    aggregate = 1 − Π(1 − severity_i)

which stays within [0, 1] however many risks a cluster holds.
"""

import math
from itertools import combinations
from typing import Optional, Sequence

import networkx as nx
import structlog

from riskquant.config import settings
from riskquant.exceptions import InvalidParameterError
from riskquant.schemas.network import CorrelationMatrix, RiskCluster
from riskquant.schemas.risk import RiskCategory, RiskInput

logger = structlog.get_logger(__name__)

# ── Configuration ─────────────────────────────────────────────────────────

MIN_CLUSTER_SIZE: int = 2
PRECISION: int = 4

CATEGORY_STRATEGIES: dict[RiskCategory, str] = {
    RiskCategory.CYBERSECURITY: "Consolidate security controls and monitoring across the affected assets",
    RiskCategory.OPERATIONAL: "Strengthen process redundancy and business continuity for the shared operations",
    RiskCategory.FINANCIAL: "Hedge the common exposure and review concentration limits",
    RiskCategory.COMPLIANCE: "Run a joint compliance review and centralise regulatory tracking",
    RiskCategory.STRATEGIC: "Reassess the shared strategic assumptions at portfolio level",
}


class ClusterDetector:
    """Group correlated risks into clusters."""

    def __init__(self, threshold: Optional[float] = None):
        self.threshold = settings.correlation_threshold if threshold is None else threshold

    def cluster(
        self, risks: Sequence[RiskInput], matrix: CorrelationMatrix
    ) -> list[RiskCluster]:
        """
        Connected components of the graph with edges where ρ > threshold.

        Returns an empty list when no pair clears the threshold.
        """
        ids = tuple(r.id for r in risks)
        if ids != matrix.risk_ids:
            raise InvalidParameterError(
                "Correlation matrix does not match the risk set",
                param="matrix",
            )

        order = {risk_id: i for i, risk_id in enumerate(ids)}
        by_id = {r.id: r for r in risks}

        g = nx.Graph()
        g.add_nodes_from(ids)
        for i, j in combinations(range(len(ids)), 2):
            if matrix.values[i][j] > self.threshold:
                g.add_edge(ids[i], ids[j])

        components = [
            sorted(component, key=order.__getitem__)
            for component in nx.connected_components(g)
            if len(component) >= MIN_CLUSTER_SIZE
        ]

        drafts = []
        for members in components:
            member_risks = [by_id[m] for m in members]
            aggregate = 1.0 - math.prod(1.0 - r.severity for r in member_risks)
            drafts.append((round(aggregate, PRECISION), members, member_risks))

        drafts.sort(key=lambda d: (-d[0], d[1][0]))

        clusters = [
            RiskCluster(
                id=f"cluster-{n}",
                name=self._name(member_risks),
                risk_ids=tuple(members),
                common_factors=self._common_factors(member_risks),
                aggregate_risk=aggregate,
                average_correlation=self._average_correlation(members, matrix),
                mitigation_strategy=self._strategy(member_risks),
            )
            for n, (aggregate, members, member_risks) in enumerate(drafts, start=1)
        ]

        logger.info(
            "clusters_detected",
            n_risks=len(risks),
            n_clusters=len(clusters),
            largest=max((len(c.risk_ids) for c in clusters), default=0),
        )
        return clusters

    @staticmethod
    def _common_factors(members: Sequence[RiskInput]) -> tuple[str, ...]:
        shared = set(members[0].factors)
        for risk in members[1:]:
            shared &= set(risk.factors)
        return tuple(tag for tag in members[0].factors if tag in shared)

    @staticmethod
    def _average_correlation(members: Sequence[str], matrix: CorrelationMatrix) -> float:
        values = [matrix.get(a, b) for a, b in combinations(members, 2)]
        return round(sum(values) / len(values), PRECISION)

    @staticmethod
    def _categories(members: Sequence[RiskInput]) -> list[RiskCategory]:
        seen: list[RiskCategory] = []
        for risk in members:
            if risk.category not in seen:
                seen.append(risk.category)
        return seen

    def _name(self, members: Sequence[RiskInput]) -> str:
        categories = self._categories(members)
        if len(categories) == 1:
            return f"{categories[0].value.capitalize()} risk cluster"
        common = self._common_factors(members)
        if common:
            return f"Shared {common[0]} exposure"
        return "Cross-category risk cluster"

    def _strategy(self, members: Sequence[RiskInput]) -> str:
        common = self._common_factors(members)
        categories = self._categories(members)
        if common:
            return (
                f"Address the shared root cause ({', '.join(common)}) "
                f"across {len(members)} related risks"
            )
        if len(categories) == 1:
            return CATEGORY_STRATEGIES[categories[0]]
        return "Coordinate mitigation owners across " + ", ".join(c.value for c in categories)
