"""
Risk Correlation Engine.

Estimates how strongly pairs of risks move together and analyses the
resulting risk network.

Pairwise correlation blends factor overlap with category affinity and
scales it by how close the two severities are:

    ρ = (w_f·J + w_c·A) × (floor + (1 − floor)·P)

    J = Jaccard index of factor tags; two untagged risks count as
        identical (J = 1) within a category and unrelated (J = 0) across
    A = category affinity (1.0 for the same category)
    P = 1 − |severity_a − severity_b|

Pairs with ρ above the threshold become edges of an undirected graph;
density, clustering, path length, critical paths and centrality are
computed on that graph with networkx. Classified pairs also yield
directed dependencies (sequential, conditional, operational).
"""

import math
from itertools import combinations
from typing import Optional, Sequence

import networkx as nx
import numpy as np
import structlog

from riskquant.config import settings
from riskquant.exceptions import InsufficientDataError, InvalidParameterError
from riskquant.schemas.network import (
    CentralityMeasure,
    CorrelationMatrix,
    CorrelationPair,
    CorrelationType,
    CriticalPath,
    DependencyType,
    NetworkMetrics,
    RiskDependency,
)
from riskquant.schemas.risk import RiskCategory, RiskInput

logger = structlog.get_logger(__name__)

# ── Configuration ─────────────────────────────────────────────────────────

# Affinity between different categories; unlisted pairs get DEFAULT_AFFINITY
CATEGORY_AFFINITY: dict[frozenset[RiskCategory], float] = {
    frozenset({RiskCategory.CYBERSECURITY, RiskCategory.OPERATIONAL}): 0.5,
    frozenset({RiskCategory.FINANCIAL, RiskCategory.STRATEGIC}): 0.5,
    frozenset({RiskCategory.CYBERSECURITY, RiskCategory.COMPLIANCE}): 0.4,
    frozenset({RiskCategory.COMPLIANCE, RiskCategory.OPERATIONAL}): 0.4,
    frozenset({RiskCategory.FINANCIAL, RiskCategory.COMPLIANCE}): 0.3,
    frozenset({RiskCategory.OPERATIONAL, RiskCategory.FINANCIAL}): 0.3,
}
DEFAULT_AFFINITY: float = 0.1
SYNERGY_AFFINITY: float = 0.3        # Related categories from here up
PRECISION: int = 4


def category_affinity(a: RiskCategory, b: RiskCategory) -> float:
    if a == b:
        return 1.0
    return CATEGORY_AFFINITY.get(frozenset({a, b}), DEFAULT_AFFINITY)


def jaccard(a: Sequence[str], b: Sequence[str]) -> float:
    set_a, set_b = set(a), set(b)
    union = set_a | set_b
    if not union:
        return 0.0
    return len(set_a & set_b) / len(union)


def check_risk_set(risks: Sequence[RiskInput], required: int = 2) -> None:
    """Reject risk sets that are too small or reuse an id."""
    if len(risks) < required:
        raise InsufficientDataError(
            f"At least {required} risks are required, got {len(risks)}",
            param="risks",
            required=required,
            actual=len(risks),
        )
    seen: set[str] = set()
    for risk in risks:
        if risk.id in seen:
            raise InvalidParameterError(
                f"Duplicate risk id '{risk.id}'",
                param="risks",
                value=risk.id,
            )
        seen.add(risk.id)


class CorrelationEngine:
    """
    Build the correlation matrix and network metrics for a risk set.

    Risks are processed in the order given; the matrix rows follow it.
    """

    def __init__(
        self,
        threshold: Optional[float] = None,
        factor_weight: Optional[float] = None,
        category_weight: Optional[float] = None,
        severity_floor: Optional[float] = None,
        critical_path_count: Optional[int] = None,
        high_severity_threshold: Optional[float] = None,
    ):
        self.threshold = settings.correlation_threshold if threshold is None else threshold
        self.factor_weight = settings.factor_weight if factor_weight is None else factor_weight
        self.category_weight = (
            settings.category_weight if category_weight is None else category_weight
        )
        self.severity_floor = settings.severity_floor if severity_floor is None else severity_floor
        self.critical_path_count = (
            settings.critical_path_count if critical_path_count is None else critical_path_count
        )
        self.high_severity_threshold = (
            settings.high_severity_threshold
            if high_severity_threshold is None
            else high_severity_threshold
        )

    # ── Correlation ───────────────────────────────────────────────────────

    def pair_correlation(self, a: RiskInput, b: RiskInput) -> float:
        overlap = jaccard(a.factors, b.factors)
        if not a.factors and not b.factors and a.category == b.category:
            overlap = 1.0
        base = (
            self.factor_weight * overlap
            + self.category_weight * category_affinity(a.category, b.category)
        )
        proximity = 1.0 - abs(a.severity - b.severity)
        rho = base * (self.severity_floor + (1.0 - self.severity_floor) * proximity)
        return round(min(1.0, max(0.0, rho)), PRECISION)

    def matrix(self, risks: Sequence[RiskInput]) -> CorrelationMatrix:
        n = len(risks)
        values = [[1.0] * n for _ in range(n)]
        for i, j in combinations(range(n), 2):
            rho = self.pair_correlation(risks[i], risks[j])
            values[i][j] = rho
            values[j][i] = rho
        return CorrelationMatrix(
            risk_ids=tuple(r.id for r in risks),
            values=tuple(tuple(row) for row in values),
        )

    def pairs(
        self, risks: Sequence[RiskInput], matrix: CorrelationMatrix
    ) -> list[CorrelationPair]:
        """Classified pairs whose correlation clears the threshold, strongest first."""
        pairs: list[CorrelationPair] = []
        for i, j in combinations(range(len(risks)), 2):
            strength = matrix.values[i][j]
            if strength <= self.threshold:
                continue
            pairs.append(self._classify(risks[i], risks[j], strength))
        pairs.sort(key=lambda p: (-p.strength, p.risk_a, p.risk_b))
        return pairs

    def _classify(self, a: RiskInput, b: RiskInput, strength: float) -> CorrelationPair:
        shared = tuple(tag for tag in a.factors if tag in b.factors)
        affinity = category_affinity(a.category, b.category)

        if shared:
            kind = CorrelationType.COMMON_CAUSE
            explanation = f"{a.id} and {b.id} share factors: {', '.join(shared)}"
        elif a.category == b.category:
            kind = CorrelationType.CASCADING
            explanation = f"{a.id} and {b.id} are both {a.category.value} risks"
        elif affinity >= SYNERGY_AFFINITY:
            kind = CorrelationType.SYNERGISTIC
            explanation = (
                f"{a.category.value} and {b.category.value} risks tend to compound"
            )
        else:
            kind = CorrelationType.INDEPENDENT
            explanation = f"{a.id} and {b.id} are only weakly related"

        return CorrelationPair(
            risk_a=a.id,
            risk_b=b.id,
            strength=strength,
            correlation_type=kind,
            shared_factors=shared,
            explanation=explanation,
        )

    # ── Network ───────────────────────────────────────────────────────────

    def graph(self, risks: Sequence[RiskInput], matrix: CorrelationMatrix) -> nx.Graph:
        """Thresholded risk graph. Nodes carry severity, edges carry ρ."""
        g = nx.Graph()
        for risk in risks:
            g.add_node(risk.id, severity=risk.severity)
        for i, j in combinations(range(len(risks)), 2):
            rho = matrix.values[i][j]
            if rho > self.threshold:
                g.add_edge(risks[i].id, risks[j].id, weight=rho)
        return g

    def network_metrics(
        self, risks: Sequence[RiskInput], matrix: CorrelationMatrix
    ) -> NetworkMetrics:
        g = self.graph(risks, matrix)

        average_path: Optional[float] = None
        if nx.is_connected(g):
            average_path = round(nx.average_shortest_path_length(g), PRECISION)

        degree = nx.degree_centrality(g)
        betweenness = nx.betweenness_centrality(g, normalized=True)
        closeness = nx.closeness_centrality(g)
        eigenvector = self._eigenvector(g)
        pagerank = nx.pagerank(g, weight="weight")
        centrality = {
            node: CentralityMeasure(
                degree=round(degree[node], PRECISION),
                betweenness=round(betweenness[node], PRECISION),
                closeness=round(closeness[node], PRECISION),
                eigenvector=round(eigenvector[node], PRECISION),
                pagerank=round(pagerank[node], PRECISION),
            )
            for node in g.nodes
        }

        return NetworkMetrics(
            density=round(nx.density(g), PRECISION),
            clustering_coefficient=round(nx.average_clustering(g), PRECISION),
            average_path_length=average_path,
            critical_paths=tuple(self.critical_paths(g)),
            edge_count=g.number_of_edges(),
            threshold=self.threshold,
            centrality=centrality,
        )

    @staticmethod
    def _eigenvector(g: nx.Graph) -> dict[str, float]:
        """
        Weighted eigenvector centrality, solved per connected component.

        Each component's leading eigenvector (unit norm) is scaled by its
        eigenvalue relative to the largest in the graph, so the dominant
        component keeps the usual values. Isolated risks score 0.
        """
        scores = {node: 0.0 for node in g.nodes}
        components: list[tuple[float, list[str], np.ndarray]] = []
        for nodes in nx.connected_components(g):
            if len(nodes) < 2:
                continue
            order = sorted(nodes)
            adjacency = nx.to_numpy_array(g, nodelist=order, weight="weight")
            values, vectors = np.linalg.eigh(adjacency)
            components.append((float(values[-1]), order, np.abs(vectors[:, -1])))

        if not components:
            return scores
        top = max(value for value, _, _ in components)
        for value, order, vector in components:
            for node, x in zip(order, vector):
                scores[node] = float(x) * value / top
        return scores

    def critical_paths(self, g: nx.Graph) -> list[CriticalPath]:
        """
        Longest shortest paths between high-severity risks.

        Ranked by hop count, then summed member severity, then ids. Empty
        when fewer than two high-severity risks are connected.
        """
        severity = nx.get_node_attributes(g, "severity")
        high = sorted(n for n, s in severity.items() if s >= self.high_severity_threshold)

        candidates: list[tuple[int, float, tuple[str, ...]]] = []
        for idx, source in enumerate(high):
            reachable = nx.single_source_shortest_path(g, source)
            for target in high[idx + 1:]:
                path = reachable.get(target)
                if path is None:
                    continue
                candidates.append((
                    len(path) - 1,
                    sum(severity[n] for n in path),
                    tuple(path),
                ))

        candidates.sort(key=lambda c: (-c[0], -c[1], c[2]))

        paths: list[CriticalPath] = []
        for hops, _, nodes in candidates[: self.critical_path_count]:
            total_impact = 1.0 - math.prod(1.0 - severity[n] for n in nodes)
            probability = math.prod(
                g.edges[u, v]["weight"] for u, v in zip(nodes, nodes[1:])
            )
            paths.append(CriticalPath(
                risk_ids=nodes,
                hops=hops,
                total_impact=round(total_impact, PRECISION),
                probability=round(probability, PRECISION),
                description=f"{' -> '.join(nodes)} ({hops} hop{'s' if hops != 1 else ''})",
            ))
        return paths

    # ── Dependencies ──────────────────────────────────────────────────────

    def dependencies(
        self, risks: Sequence[RiskInput], pairs: Sequence[CorrelationPair]
    ) -> list[RiskDependency]:
        """
        Directed dependencies derived from classified pairs.

        Cascading pairs become sequential links. Common-cause pairs become
        conditional links on their shared factors, or operational links
        when either risk is operational. The parent is the more severe
        risk (ties by id). Synergistic and independent pairs are skipped.
        """
        by_id = {r.id: r for r in risks}
        deps: list[RiskDependency] = []
        for pair in pairs:
            a, b = by_id[pair.risk_a], by_id[pair.risk_b]
            if pair.correlation_type == CorrelationType.CASCADING:
                kind = DependencyType.SEQUENTIAL
            elif pair.correlation_type == CorrelationType.COMMON_CAUSE:
                kind = (
                    DependencyType.OPERATIONAL
                    if RiskCategory.OPERATIONAL in (a.category, b.category)
                    else DependencyType.CONDITIONAL
                )
            else:
                continue
            parent, child = sorted((a, b), key=lambda r: (-r.severity, r.id))
            deps.append(RiskDependency(
                parent_risk_id=parent.id,
                child_risk_id=child.id,
                dependency_type=kind,
                strength=pair.strength,
                conditions=pair.shared_factors,
            ))

        deps.sort(key=lambda d: (-d.strength, d.parent_risk_id, d.child_risk_id))
        return deps

    # ── Entry points ──────────────────────────────────────────────────────

    def correlate(
        self, risks: Sequence[RiskInput]
    ) -> tuple[CorrelationMatrix, NetworkMetrics]:
        """
        Correlation matrix and network metrics for at least two risks.

        Raises:
            InsufficientDataError: fewer than two risks
            InvalidParameterError: duplicate risk ids
        """
        matrix, _, metrics = self.analyze(risks)
        return matrix, metrics

    def analyze(
        self, risks: Sequence[RiskInput]
    ) -> tuple[CorrelationMatrix, list[CorrelationPair], NetworkMetrics]:
        check_risk_set(risks)
        matrix = self.matrix(risks)
        pairs = self.pairs(risks, matrix)
        metrics = self.network_metrics(risks, matrix)

        logger.info(
            "correlation_analyzed",
            n_risks=len(risks),
            n_edges=metrics.edge_count,
            density=metrics.density,
            clustering=metrics.clustering_coefficient,
            n_critical_paths=len(metrics.critical_paths),
        )
        return matrix, pairs, metrics
