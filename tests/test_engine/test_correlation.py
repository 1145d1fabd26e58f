"""
Risk Correlation Engine Tests.

Includes property-based tests via Hypothesis.
"""

import pytest
from hypothesis import given, settings as hyp_settings
from hypothesis import strategies as st

from riskquant.engine.correlation import (
    CorrelationEngine,
    category_affinity,
    jaccard,
)
from riskquant.exceptions import InsufficientDataError, InvalidParameterError
from riskquant.schemas import CorrelationType, DependencyType, RiskCategory, RiskInput


def _risk(risk_id, category, probability, impact, factors=()):
    return RiskInput(
        id=risk_id, category=category, probability=probability, impact=impact, factors=factors,
    )


risk_sets = st.lists(
    st.tuples(
        st.sampled_from(list(RiskCategory)),
        st.floats(min_value=0, max_value=100),
        st.floats(min_value=0, max_value=100),
        st.lists(st.sampled_from(["vendor", "legacy", "staffing", "fx", "regulation"]), max_size=3),
    ),
    min_size=2,
    max_size=8,
).map(lambda rows: [
    _risk(f"R{i}", cat, p, imp, tuple(tags)) for i, (cat, p, imp, tags) in enumerate(rows)
])


class TestPairCorrelation:
    """Test the pairwise formula."""

    def setup_method(self):
        self.engine = CorrelationEngine()

    def test_helpers(self):
        assert jaccard((), ()) == 0.0
        assert jaccard(("a", "b"), ("b", "c")) == pytest.approx(1 / 3)
        assert category_affinity(RiskCategory.FINANCIAL, RiskCategory.FINANCIAL) == 1.0
        assert category_affinity(RiskCategory.STRATEGIC, RiskCategory.FINANCIAL) == 0.5
        assert category_affinity(RiskCategory.STRATEGIC, RiskCategory.CYBERSECURITY) == 0.1

    def test_identical_risks_fully_correlated(self):
        """Same category, same factors, same severity → 1.0."""
        a = _risk("A", RiskCategory.CYBERSECURITY, 50, 50, ("phishing",))
        b = _risk("B", RiskCategory.CYBERSECURITY, 50, 50, ("phishing",))
        assert self.engine.pair_correlation(a, b) == 1.0

    def test_shared_factors_and_category_clear_threshold(self):
        """Sharing every factor and the category gives an edge even at opposite severities."""
        a = _risk("A", RiskCategory.OPERATIONAL, 100, 100, ("vendor", "staffing"))
        b = _risk("B", RiskCategory.OPERATIONAL, 0, 0, ("vendor", "staffing"))
        assert self.engine.pair_correlation(a, b) >= 0.5

    def test_unrelated_categories_without_factors_stay_below_threshold(self):
        """Different categories and no shared tags never form an edge."""
        a = _risk("A", RiskCategory.CYBERSECURITY, 50, 50, ("phishing",))
        b = _risk("B", RiskCategory.OPERATIONAL, 50, 50, ("staffing",))
        assert self.engine.pair_correlation(a, b) <= 0.2

    def test_untagged_same_category_pair_forms_edge(self):
        """Two untagged risks of one category share their whole (empty) factor set."""
        a = _risk("A", RiskCategory.FINANCIAL, 95, 95)
        b = _risk("B", RiskCategory.FINANCIAL, 10, 20)
        rho = self.engine.pair_correlation(a, b)
        assert rho == pytest.approx(0.5588, abs=1e-3)
        assert rho > self.engine.threshold

    def test_untagged_across_categories_stays_weak(self):
        a = _risk("A", RiskCategory.CYBERSECURITY, 50, 50)
        b = _risk("B", RiskCategory.STRATEGIC, 50, 50)
        assert self.engine.pair_correlation(a, b) == pytest.approx(0.04)

    def test_one_side_tagged_uses_jaccard(self):
        """Only a pair with no tags at all counts as full overlap."""
        a = _risk("A", RiskCategory.FINANCIAL, 50, 50, ("fx",))
        b = _risk("B", RiskCategory.FINANCIAL, 50, 50)
        assert self.engine.pair_correlation(a, b) == pytest.approx(0.4)

    def test_severity_proximity_scales(self):
        """Closer severities correlate more strongly."""
        a = _risk("A", RiskCategory.FINANCIAL, 50, 50, ("fx",))
        near = _risk("B", RiskCategory.FINANCIAL, 50, 60, ("fx",))
        far = _risk("C", RiskCategory.FINANCIAL, 100, 100, ("fx",))
        assert self.engine.pair_correlation(a, near) > self.engine.pair_correlation(a, far)


class TestCorrelate:
    """Test the matrix and network on a known portfolio."""

    def setup_method(self):
        self.engine = CorrelationEngine()

    def test_single_risk_rejected(self):
        """correlate with one risk → InsufficientDataError."""
        with pytest.raises(InsufficientDataError) as exc:
            self.engine.correlate([_risk("A", RiskCategory.FINANCIAL, 10, 10)])
        assert exc.value.param == "risks"
        assert exc.value.actual == 1

    def test_duplicate_ids_rejected(self):
        risk = _risk("A", RiskCategory.FINANCIAL, 10, 10)
        with pytest.raises(InvalidParameterError) as exc:
            self.engine.correlate([risk, risk])
        assert exc.value.param == "risks"

    def test_matrix_lookup(self, portfolio):
        """Rows follow input order; get() is symmetric."""
        matrix, _ = self.engine.correlate(portfolio)
        assert matrix.risk_ids == ("R1", "R2", "R3", "R4", "R5")
        assert matrix.get("R1", "R2") == matrix.get("R2", "R1")
        assert matrix.get("R1", "R2") == pytest.approx(0.9638, abs=1e-4)

    def test_network_metrics(self, portfolio):
        """R1-R4 form a complete subgraph; R5 is isolated."""
        _, metrics = self.engine.correlate(portfolio)
        assert metrics.edge_count == 6
        assert metrics.density == pytest.approx(0.6)
        assert metrics.clustering_coefficient == pytest.approx(0.8)
        assert metrics.average_path_length is None
        assert metrics.threshold == 0.3

    def test_connected_network_has_path_length(self):
        risks = [
            _risk("A", RiskCategory.FINANCIAL, 50, 50, ("fx",)),
            _risk("B", RiskCategory.FINANCIAL, 50, 50, ("fx",)),
        ]
        _, metrics = self.engine.correlate(risks)
        assert metrics.average_path_length == 1.0

    def test_critical_paths(self, portfolio):
        """High-severity endpoints, ranked by hops then summed severity."""
        _, metrics = self.engine.correlate(portfolio)
        paths = metrics.critical_paths
        assert len(paths) == 3
        assert paths[0].risk_ids == ("R1", "R2")
        assert all(p.hops == 1 for p in paths)
        assert all("R4" not in (p.risk_ids[0], p.risk_ids[-1]) for p in paths)
        for p in paths:
            assert 0 <= p.total_impact <= 1
            assert 0 <= p.probability <= 1

    def test_no_high_severity_no_paths(self):
        """Without high-severity risks the critical path list is empty."""
        risks = [
            _risk("A", RiskCategory.FINANCIAL, 10, 10, ("fx",)),
            _risk("B", RiskCategory.FINANCIAL, 10, 10, ("fx",)),
        ]
        _, metrics = self.engine.correlate(risks)
        assert metrics.critical_paths == ()

    def test_centrality(self, portfolio):
        """Isolated risks have zero centrality."""
        _, metrics = self.engine.correlate(portfolio)
        assert metrics.centrality["R5"].degree == 0.0
        assert metrics.centrality["R1"].degree == pytest.approx(0.75)

    def test_eigenvector_and_pagerank(self, portfolio):
        """PageRank sums to one; isolated risks carry no eigenvector share."""
        _, metrics = self.engine.correlate(portfolio)
        centrality = metrics.centrality
        assert sum(c.pagerank for c in centrality.values()) == pytest.approx(1.0, abs=1e-3)
        assert centrality["R5"].eigenvector == 0.0
        assert centrality["R1"].eigenvector > 0.0
        assert centrality["R1"].pagerank > centrality["R5"].pagerank

    def test_two_node_centrality(self):
        """A single edge splits both measures evenly."""
        risks = [
            _risk("A", RiskCategory.FINANCIAL, 50, 50, ("fx",)),
            _risk("B", RiskCategory.FINANCIAL, 50, 50, ("fx",)),
        ]
        _, metrics = self.engine.correlate(risks)
        for node in ("A", "B"):
            assert metrics.centrality[node].eigenvector == pytest.approx(0.7071, abs=1e-4)
            assert metrics.centrality[node].pagerank == pytest.approx(0.5, abs=1e-4)

    def test_centrality_is_read_only(self, portfolio):
        _, metrics = self.engine.correlate(portfolio)
        with pytest.raises(TypeError):
            metrics.centrality["R1"] = metrics.centrality["R5"]

    def test_pairs_classified(self, portfolio):
        """Shared tags → common cause; strongest pair first."""
        _, pairs, _ = self.engine.analyze(portfolio)
        assert len(pairs) == 6
        assert (pairs[0].risk_a, pairs[0].risk_b) == ("R1", "R2")
        assert pairs[0].correlation_type == CorrelationType.COMMON_CAUSE
        assert pairs[0].shared_factors == ("phishing", "legacy-systems")

    def test_cascading_pair(self):
        """Same category without shared tags → cascading."""
        engine = CorrelationEngine(threshold=0.2)
        risks = [
            _risk("A", RiskCategory.COMPLIANCE, 50, 50),
            _risk("B", RiskCategory.COMPLIANCE, 50, 50),
        ]
        _, pairs, _ = engine.analyze(risks)
        assert pairs[0].correlation_type == CorrelationType.CASCADING


class TestDependencies:
    """Directed dependencies derived from classified pairs."""

    def setup_method(self):
        self.engine = CorrelationEngine()

    def test_portfolio_dependencies(self, portfolio):
        """Common-cause pairs are conditional, or operational when R4 is involved."""
        _, pairs, _ = self.engine.analyze(portfolio)
        deps = self.engine.dependencies(portfolio, pairs)
        assert len(deps) == 6
        first = deps[0]
        assert (first.parent_risk_id, first.child_risk_id) == ("R1", "R2")
        assert first.dependency_type == DependencyType.CONDITIONAL
        assert first.conditions == ("phishing", "legacy-systems")
        with_r4 = [d for d in deps if "R4" in (d.parent_risk_id, d.child_risk_id)]
        assert len(with_r4) == 3
        assert all(d.dependency_type == DependencyType.OPERATIONAL for d in with_r4)
        assert all(d.child_risk_id == "R4" for d in with_r4)
        strengths = [d.strength for d in deps]
        assert strengths == sorted(strengths, reverse=True)

    def test_cascading_pair_is_sequential(self):
        """The more severe risk leads a cascading link."""
        risks = [
            _risk("A", RiskCategory.FINANCIAL, 10, 20),
            _risk("B", RiskCategory.FINANCIAL, 95, 95),
        ]
        _, pairs, _ = self.engine.analyze(risks)
        deps = self.engine.dependencies(risks, pairs)
        assert len(deps) == 1
        assert deps[0].dependency_type == DependencyType.SEQUENTIAL
        assert (deps[0].parent_risk_id, deps[0].child_risk_id) == ("B", "A")
        assert deps[0].conditions == ()
        assert deps[0].strength == pairs[0].strength

    def test_synergistic_pairs_skipped(self):
        engine = CorrelationEngine(threshold=0.1)
        risks = [
            _risk("A", RiskCategory.FINANCIAL, 50, 50, ("fx",)),
            _risk("B", RiskCategory.STRATEGIC, 50, 50, ("market",)),
        ]
        _, pairs, _ = engine.analyze(risks)
        assert pairs[0].correlation_type == CorrelationType.SYNERGISTIC
        assert engine.dependencies(risks, pairs) == []


class TestCorrelationProperties:
    """Property-based matrix and network invariants."""

    @given(risk_sets)
    @hyp_settings(max_examples=50, deadline=None)
    def test_matrix_symmetric_with_unit_diagonal(self, risks):
        """Symmetric, diagonal exactly 1, entries in [-1, 1]."""
        matrix, metrics = CorrelationEngine().correlate(risks)
        n = len(risks)
        for i in range(n):
            assert matrix.values[i][i] == 1.0
            for j in range(n):
                assert matrix.values[i][j] == matrix.values[j][i]
                assert -1.0 <= matrix.values[i][j] <= 1.0
        assert 0.0 <= metrics.density <= 1.0
        assert 0.0 <= metrics.clustering_coefficient <= 1.0
        if metrics.average_path_length is not None:
            assert metrics.average_path_length >= 0
