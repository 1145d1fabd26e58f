"""
Unified Risk Engine Tests.

End-to-end assessments through RiskEngine and the module-level entry points.
"""

import time
from datetime import datetime, timezone

import pytest

import riskquant
from riskquant.engine.cache import AssessmentCache
from riskquant.engine.cancellation import CancellationToken
from riskquant.engine.risk_engine import RiskEngine
from riskquant.engine.simulation import SimulationEngine
from riskquant.exceptions import (
    InsufficientDataError,
    InvalidParameterError,
    SimulationCancelled,
)
from riskquant.schemas import (
    ControlInput,
    ControlType,
    DependencyType,
    DistributionSpec,
    DistributionType,
    RiskCategory,
    RiskFramework,
    RiskInput,
    SimulationParameters,
)

PARAMS = SimulationParameters(timeframe_days=30, iterations=1_000)
WHEN = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


class TestAssessRisk:
    """Full assessment flow."""

    def setup_method(self):
        self.engine = RiskEngine()

    def test_single_risk(self):
        """One risk → simulation and recommendations, no correlation."""
        risk = RiskInput(id="R1", category=RiskCategory.CYBERSECURITY, probability=78, impact=95)
        report = self.engine.assess_risk([risk], PARAMS, RiskFramework.ISO31000, seed=42)
        assert report.risk_ids == ("R1",)
        assert len(report.simulations) == 1
        assert report.correlation is None
        assert report.recommendations
        assert report.residual_risks == ()
        assert report.framework == RiskFramework.ISO31000

    def test_portfolio(self, portfolio):
        """Several risks → correlation, clusters, systemic indicators."""
        report = self.engine.assess_risk(portfolio, PARAMS, "coso", seed=7)
        analysis = report.correlation
        assert analysis is not None
        assert analysis.matrix.risk_ids == tuple(r.id for r in portfolio)
        assert len(analysis.clusters) == 1
        assert 0 <= analysis.systemic.resilience <= 1
        assert any(r.id == "rec-cluster-1-mitigation" for r in report.recommendations)

    def test_portfolio_dependencies(self, portfolio):
        """Common-cause pairs appear as directed dependencies in the report."""
        report = self.engine.assess_risk(portfolio, PARAMS, RiskFramework.COSO, seed=7)
        deps = report.correlation.dependencies
        assert len(deps) == 6
        assert {d.dependency_type for d in deps} == {
            DependencyType.CONDITIONAL,
            DependencyType.OPERATIONAL,
        }

    def test_recommendation_options_applied(self):
        """Budget and focus reach the recommendation ranking."""
        risk = RiskInput(id="C1", category=RiskCategory.CYBERSECURITY, probability=90, impact=95)
        report = self.engine.assess_risk(
            [risk], PARAMS, RiskFramework.COSO, seed=1,
            budget_limit=100_000, priority_focus="time",
        )
        recs = report.recommendations
        assert recs[0].id == "rec-C1-transfer"
        assert [r.id for r in recs[1:]] == ["rec-C1-mitigation", "rec-C1-avoidance"]
        assert all(r.exceeds_budget for r in recs[1:])

    def test_identical_inputs_identical_json(self, portfolio):
        """Same fingerprint → byte-identical report JSON."""
        a = RiskEngine().assess_risk(portfolio, PARAMS, RiskFramework.NIST, seed=3, assessed_at=WHEN)
        b = RiskEngine().assess_risk(portfolio, PARAMS, RiskFramework.NIST, seed=3, assessed_at=WHEN)
        assert a.fingerprint == b.fingerprint
        assert a.model_dump_json() == b.model_dump_json()

    def test_controls_add_residual_results(self, portfolio):
        controls = [
            ControlInput(id="MFA", type=ControlType.PREVENTIVE, effectiveness="high", risk_ids=("R1", "R2")),
            ControlInput(id="AUDIT", type=ControlType.DETECTIVE, effectiveness=40),
        ]
        report = self.engine.assess_risk(portfolio, PARAMS, RiskFramework.COSO, controls=controls)
        assert [r.risk_id for r in report.residual_risks] == [r.id for r in portfolio]
        assert report.residual_risks[0].control_ids == ("MFA", "AUDIT")
        assert report.residual_risks[4].control_ids == ("AUDIT",)

    def test_executive_summary_passed_through(self):
        risk = RiskInput(id="R1", category=RiskCategory.FINANCIAL, probability=30, impact=30)
        report = self.engine.assess_risk(
            [risk], PARAMS, RiskFramework.COSO, executive_summary="Within appetite.",
        )
        assert report.executive_summary == "Within appetite."

    def test_progress_spans_all_risks(self, portfolio):
        calls = []
        self.engine.assess_risk(
            portfolio[:2], PARAMS, RiskFramework.COSO,
            on_progress=lambda done, total: calls.append((done, total)),
        )
        assert calls[-1] == (2_000, 2_000)
        assert [c[0] for c in calls] == sorted(c[0] for c in calls)


class TestValidation:
    """Bad inputs fail before any simulation runs."""

    def setup_method(self):
        self.engine = RiskEngine()
        self.risk = RiskInput(id="R1", category=RiskCategory.FINANCIAL, probability=50, impact=50)

    def test_empty_risk_set(self):
        with pytest.raises(InsufficientDataError):
            self.engine.assess_risk([], PARAMS, RiskFramework.COSO)

    def test_duplicate_ids(self):
        with pytest.raises(InvalidParameterError) as exc:
            self.engine.assess_risk([self.risk, self.risk], PARAMS, RiskFramework.COSO)
        assert exc.value.param == "risks"

    def test_unknown_framework(self):
        with pytest.raises(InvalidParameterError) as exc:
            self.engine.assess_risk([self.risk], PARAMS, "basel")
        assert exc.value.param == "framework"

    def test_unknown_distribution_key(self):
        params = SimulationParameters(iterations=100, distributions={"R9": DistributionSpec()})
        with pytest.raises(InvalidParameterError) as exc:
            self.engine.assess_risk([self.risk], params, RiskFramework.COSO)
        assert exc.value.param == "distributions.R9"

    def test_control_for_unknown_risk(self):
        controls = [ControlInput(id="C1", type=ControlType.PREVENTIVE, risk_ids=("R9",))]
        with pytest.raises(InvalidParameterError) as exc:
            self.engine.assess_risk([self.risk], PARAMS, RiskFramework.COSO, controls=controls)
        assert exc.value.param == "controls"

    @pytest.mark.parametrize("kwargs, param", [
        ({"priority_focus": "speed"}, "priority_focus"),
        ({"budget_limit": 0}, "budget_limit"),
        ({"time_limit_days": -1}, "time_limit_days"),
    ])
    def test_bad_recommendation_options(self, kwargs, param):
        with pytest.raises(InvalidParameterError) as exc:
            self.engine.assess_risk([self.risk], PARAMS, RiskFramework.COSO, **kwargs)
        assert exc.value.param == param

    def test_cancellation_propagates(self):
        """A cancelled assessment raises instead of returning a partial report."""
        token = CancellationToken()
        token.cancel()
        with pytest.raises(SimulationCancelled):
            self.engine.assess_risk([self.risk], PARAMS, RiskFramework.COSO, cancel_token=token)


class TestCaching:

    def test_cache_hit_returns_stored_report(self, portfolio):
        cache = AssessmentCache()
        engine = RiskEngine(cache=cache)
        first = engine.assess_risk(portfolio, PARAMS, RiskFramework.COSO, seed=1)
        second = engine.assess_risk(portfolio, PARAMS, RiskFramework.COSO, seed=1)
        assert second is first
        assert cache.hits == 1

    def test_cache_miss_on_new_seed(self, portfolio):
        cache = AssessmentCache()
        engine = RiskEngine(cache=cache)
        engine.assess_risk(portfolio, PARAMS, RiskFramework.COSO, seed=1)
        engine.assess_risk(portfolio, PARAMS, RiskFramework.COSO, seed=2)
        assert len(cache) == 2

    def test_cached_report_cannot_be_altered(self, portfolio):
        """Mapping fields of a cached report reject writes, so later hits see the original."""
        engine = RiskEngine(cache=AssessmentCache())
        first = engine.assess_risk(portfolio, PARAMS, RiskFramework.COSO, seed=1, assessed_at=WHEN)
        before = first.model_dump_json()
        with pytest.raises(TypeError):
            first.correlation.systemic.systemic_importance["R1"] = 0.0
        with pytest.raises(TypeError):
            first.correlation.network.centrality["R5"] = first.correlation.network.centrality["R1"]
        with pytest.raises(TypeError):
            first.parameters.distributions["severity"] = DistributionSpec()
        again = engine.assess_risk(portfolio, PARAMS, RiskFramework.COSO, seed=1, assessed_at=WHEN)
        assert again.model_dump_json() == before

    def test_caller_parameters_do_not_leak_into_cache(self, portfolio):
        """Changing the caller's overrides dict after the call leaves the cached report intact."""
        overrides = {"severity": DistributionSpec(type=DistributionType.UNIFORM)}
        params = SimulationParameters(timeframe_days=30, iterations=1_000, distributions=overrides)
        engine = RiskEngine(cache=AssessmentCache())
        first = engine.assess_risk(portfolio, params, RiskFramework.COSO, seed=1, assessed_at=WHEN)
        before = first.model_dump_json()
        overrides["R1"] = DistributionSpec(type=DistributionType.BETA)
        again = engine.assess_risk(portfolio, params, RiskFramework.COSO, seed=1, assessed_at=WHEN)
        assert again is first
        assert again.model_dump_json() == before
        assert "R1" not in again.parameters.distributions

    def test_recommendation_options_change_fingerprint(self, portfolio):
        cache = AssessmentCache()
        engine = RiskEngine(cache=cache)
        plain = engine.assess_risk(portfolio, PARAMS, RiskFramework.COSO, seed=1)
        focused = engine.assess_risk(portfolio, PARAMS, RiskFramework.COSO, seed=1, priority_focus="cost")
        assert focused.fingerprint != plain.fingerprint
        assert len(cache) == 2


class _RecordingSimulation(SimulationEngine):
    def __init__(self):
        super().__init__()
        self.tokens = []

    def run(self, risk, params, seed, token, on_progress=None):
        self.tokens.append(token)
        return super().run(risk, params, seed, token, on_progress)


class TestSharedDeadline:
    """timeout_seconds bounds the whole assessment, not each risk."""

    def test_one_token_for_all_risks(self, portfolio):
        simulation = _RecordingSimulation()
        params = SimulationParameters(timeframe_days=30, iterations=1_000, timeout_seconds=60)
        RiskEngine(simulation=simulation).assess_risk(portfolio, params, RiskFramework.COSO)
        assert len(simulation.tokens) == len(portfolio)
        assert all(t is simulation.tokens[0] for t in simulation.tokens)
        assert simulation.tokens[0].timeout_seconds == 60

    def test_caller_token_linked(self, portfolio):
        """Cancelling the caller's token reaches every risk through the shared deadline."""
        simulation = _RecordingSimulation()
        caller = CancellationToken()
        params = SimulationParameters(timeframe_days=30, iterations=1_000, timeout_seconds=60)
        RiskEngine(simulation=simulation).assess_risk(
            portfolio[:2], params, RiskFramework.COSO, cancel_token=caller,
        )
        shared = simulation.tokens[0]
        assert shared is not caller
        caller.cancel()
        assert shared.is_cancelled
        assert shared.reason == "cancelled"

    def test_deadline_spans_risks(self, portfolio):
        """Each risk alone fits the timeout; together they exceed it."""
        simulation = _RecordingSimulation()
        params = SimulationParameters(timeframe_days=30, iterations=1_000, timeout_seconds=0.2)

        with pytest.raises(SimulationCancelled) as exc:
            RiskEngine(simulation=simulation).assess_risk(
                portfolio, params, RiskFramework.COSO,
                on_progress=lambda done, total: time.sleep(0.08),
            )
        assert exc.value.reason == "timeout"
        assert exc.value.param == "timeout_seconds"
        assert 2 <= len(simulation.tokens) < len(portfolio)

    def test_without_timeout_uses_caller_token(self, portfolio):
        simulation = _RecordingSimulation()
        caller = CancellationToken()
        RiskEngine(simulation=simulation).assess_risk(
            portfolio[:2], PARAMS, RiskFramework.COSO, cancel_token=caller,
        )
        assert all(t is caller for t in simulation.tokens)


class TestEntryPoints:

    def test_module_level_assess_risk(self):
        risk = RiskInput(id="R1", category=RiskCategory.STRATEGIC, probability=20, impact=40)
        report = riskquant.assess_risk([risk], PARAMS, RiskFramework.ISO31000, seed=5, assessed_at=WHEN)
        direct = RiskEngine().assess_risk([risk], PARAMS, RiskFramework.ISO31000, seed=5, assessed_at=WHEN)
        assert report.model_dump_json() == direct.model_dump_json()

    @pytest.mark.asyncio
    async def test_async_matches_sync(self, portfolio):
        """The awaitable entry point produces the same report."""
        engine = RiskEngine()
        sync_report = engine.assess_risk(portfolio, PARAMS, RiskFramework.NIST, seed=9, assessed_at=WHEN)
        async_report = await engine.assess_risk_async(
            portfolio, PARAMS, RiskFramework.NIST, seed=9, assessed_at=WHEN,
        )
        assert async_report == sync_report

    @pytest.mark.asyncio
    async def test_module_level_async(self):
        risk = RiskInput(id="R1", category=RiskCategory.OPERATIONAL, probability=20, impact=40)
        report = await riskquant.assess_risk_async([risk], PARAMS, RiskFramework.COSO)
        assert report.risk_ids == ("R1",)
