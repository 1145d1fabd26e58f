"""
Unified Risk Engine — Orchestrates all algorithm components.

This is the single entry point for risk assessment. It:
1. Validates the risk set, parameters, seed and framework
2. Simulates every risk (Monte Carlo)
3. For two or more risks: correlates, clusters, and computes systemic indicators
4. Generates ranked recommendations
5. Applies controls when given (residual risk, appetite)
6. Assembles one immutable report

Every step is deterministic for a given seed, so identical inputs yield
identical reports.
"""

import asyncio
import time
from datetime import datetime
from typing import Optional, Sequence

import structlog

from riskquant.engine.cache import AssessmentCache, assessment_fingerprint
from riskquant.engine.cancellation import CancellationToken
from riskquant.engine.clustering import ClusterDetector
from riskquant.engine.controls import ControlEvaluator
from riskquant.engine.correlation import CorrelationEngine, check_risk_set
from riskquant.engine.recommendations import RecommendationGenerator, check_options
from riskquant.engine.report import ReportAssembler
from riskquant.engine.simulation import ProgressCallback, SimulationEngine, validate_parameters
from riskquant.engine.systemic import SystemicRiskIndicator
from riskquant.exceptions import InsufficientDataError, InvalidParameterError
from riskquant.schemas.network import CorrelationAnalysis
from riskquant.schemas.recommendation import PriorityFocus, RiskTolerance
from riskquant.schemas.report import RiskAssessmentReport, RiskFramework
from riskquant.schemas.risk import ControlInput, RiskInput
from riskquant.schemas.simulation import SimulationParameters

logger = structlog.get_logger(__name__)

DEFAULT_SEED: int = 0


def _framework(value) -> RiskFramework:
    try:
        return RiskFramework(value)
    except ValueError:
        raise InvalidParameterError(
            f"Unknown framework {value!r}; expected one of "
            f"{', '.join(f.value for f in RiskFramework)}",
            param="framework",
            value=value,
        ) from None


def _tolerance(value) -> RiskTolerance:
    try:
        return RiskTolerance(value)
    except ValueError:
        raise InvalidParameterError(
            f"Unknown risk tolerance {value!r}",
            param="risk_tolerance",
            value=value,
        ) from None


class RiskEngine:
    """
    Production risk assessment engine.

    Orchestrates: Simulation → Correlation → Clustering → Systemic → Recommendations → Report
    """

    def __init__(
        self,
        simulation: Optional[SimulationEngine] = None,
        correlation: Optional[CorrelationEngine] = None,
        clustering: Optional[ClusterDetector] = None,
        systemic: Optional[SystemicRiskIndicator] = None,
        recommendations: Optional[RecommendationGenerator] = None,
        controls: Optional[ControlEvaluator] = None,
        assembler: Optional[ReportAssembler] = None,
        cache: Optional[AssessmentCache] = None,
    ):
        self.simulation = simulation or SimulationEngine()
        self.correlation = correlation or CorrelationEngine()
        self.clustering = clustering or ClusterDetector(threshold=self.correlation.threshold)
        self.systemic = systemic or SystemicRiskIndicator()
        self.recommendations = recommendations or RecommendationGenerator()
        self.controls = controls or ControlEvaluator()
        self.assembler = assembler or ReportAssembler()
        self.cache = cache

    def assess_risk(
        self,
        risks: Sequence[RiskInput],
        parameters: SimulationParameters,
        framework: RiskFramework,
        seed: int = DEFAULT_SEED,
        controls: Optional[Sequence[ControlInput]] = None,
        cancel_token: Optional[CancellationToken] = None,
        assessed_at: Optional[datetime] = None,
        executive_summary: str = "",
        risk_tolerance: RiskTolerance = RiskTolerance.MEDIUM,
        on_progress: Optional[ProgressCallback] = None,
        priority_focus: Optional[PriorityFocus] = None,
        budget_limit: Optional[float] = None,
        time_limit_days: Optional[int] = None,
    ) -> RiskAssessmentReport:
        """
        Full quantitative assessment of a risk set.

        Args:
            risks: One or more risks with unique ids
            parameters: Simulation parameters
            framework: Reporting framework (coso, iso31000, nist)
            seed: RNG seed; same inputs and seed give the same report
            controls: Optional controls for residual risk evaluation
            cancel_token: Cooperative cancellation for the simulations
            assessed_at: Report timestamp, defaults to now (UTC)
            executive_summary: Externally written summary text
            risk_tolerance: Target used when describing recommendation benefit
            on_progress: Called with (completed, total) iterations across all risks
            priority_focus: Secondary ranking within a priority (cost, time, impact, feasibility)
            budget_limit: Options costing more are flagged and ranked after those that fit
            time_limit_days: Options taking longer are flagged and ranked after those that fit

        parameters.timeout_seconds bounds the whole assessment: every risk
        shares one deadline.

        Raises:
            InvalidParameterError, InsufficientDataError, SimulationCancelled,
            DistributionError, AssessmentError
        """
        risks = list(risks)
        try:
            check_risk_set(risks, required=1)
            framework = _framework(framework)
            risk_tolerance = _tolerance(risk_tolerance)
            priority_focus = check_options(priority_focus, budget_limit, time_limit_days)
            validate_parameters(
                parameters,
                seed,
                max_iterations=self.simulation.max_iterations,
                risk_ids={r.id for r in risks},
            )
            self._check_controls(risks, controls)
        except (InvalidParameterError, InsufficientDataError) as e:
            logger.warning("assessment_rejected", **e.to_dict())
            raise

        fingerprint = assessment_fingerprint(
            risks, parameters, seed, framework, controls, risk_tolerance,
            recommendation_options={
                "priority_focus": priority_focus,
                "budget_limit": budget_limit,
                "time_limit_days": time_limit_days,
            },
        )
        if self.cache is not None:
            cached = self.cache.get(fingerprint)
            if cached is not None:
                logger.info("assessment_cache_hit", fingerprint=fingerprint[:16])
                if executive_summary and executive_summary != cached.executive_summary:
                    return cached.with_summary(executive_summary)
                return cached

        started = time.perf_counter()
        log = logger.bind(fingerprint=fingerprint[:16], n_risks=len(risks))

        # ── 1. Simulation ────────────────────────────────────────────
        token = (cancel_token or CancellationToken()).combined_with_timeout(
            parameters.timeout_seconds
        )
        total = parameters.iterations * len(risks)
        simulations = []
        for index, risk in enumerate(risks):
            progress = None
            if on_progress is not None:
                offset = index * parameters.iterations
                progress = lambda done, _n, offset=offset: on_progress(offset + done, total)
            simulations.append(self.simulation.run(risk, parameters, seed, token, progress))

        # ── 2. Correlation, clusters, systemic ───────────────────────
        correlation: Optional[CorrelationAnalysis] = None
        clusters = []
        if len(risks) >= 2:
            matrix, pairs, metrics = self.correlation.analyze(risks)
            clusters = self.clustering.cluster(risks, matrix)
            systemic = self.systemic.compute(metrics, clusters, risks)
            correlation = CorrelationAnalysis(
                matrix=matrix,
                pairs=tuple(pairs),
                network=metrics,
                clusters=tuple(clusters),
                systemic=systemic,
                dependencies=tuple(self.correlation.dependencies(risks, pairs)),
            )

        # ── 3. Recommendations ───────────────────────────────────────
        recommendations = self.recommendations.generate(
            risks,
            simulations,
            clusters,
            risk_tolerance=risk_tolerance,
            priority_focus=priority_focus,
            budget_limit=budget_limit,
            time_limit_days=time_limit_days,
        )

        # ── 4. Controls ──────────────────────────────────────────────
        residual_risks = []
        if controls is not None:
            residual_risks = [self.controls.residual_risk(r, controls) for r in risks]

        # ── 5. Report ────────────────────────────────────────────────
        report = self.assembler.assemble(
            risks=risks,
            parameters=parameters,
            framework=framework,
            seed=seed,
            fingerprint=fingerprint,
            simulations=simulations,
            correlation=correlation,
            recommendations=recommendations,
            residual_risks=residual_risks,
            assessed_at=assessed_at,
            executive_summary=executive_summary,
        )

        if self.cache is not None:
            self.cache.put(report)

        log.info(
            "risk_assessed",
            report_id=report.id,
            framework=framework.value,
            iterations=parameters.iterations,
            n_clusters=len(clusters),
            n_recommendations=len(recommendations),
            duration_ms=round((time.perf_counter() - started) * 1000, 1),
        )
        return report

    async def assess_risk_async(self, *args, **kwargs) -> RiskAssessmentReport:
        """Run assess_risk in a worker thread so the event loop stays free."""
        return await asyncio.to_thread(self.assess_risk, *args, **kwargs)

    @staticmethod
    def _check_controls(
        risks: Sequence[RiskInput], controls: Optional[Sequence[ControlInput]]
    ) -> None:
        if not controls:
            return
        known = {r.id for r in risks}
        for control in controls:
            unknown = [rid for rid in control.risk_ids if rid not in known]
            if unknown:
                raise InvalidParameterError(
                    f"Control '{control.id}' references unknown risks: {', '.join(unknown)}",
                    param="controls",
                    value=control.id,
                )


_default_engine: Optional[RiskEngine] = None


def get_risk_engine() -> RiskEngine:
    """Lazily built engine configured from settings."""
    global _default_engine
    if _default_engine is None:
        _default_engine = RiskEngine()
    return _default_engine


def assess_risk(
    risks: Sequence[RiskInput],
    parameters: SimulationParameters,
    framework: RiskFramework,
    **kwargs,
) -> RiskAssessmentReport:
    """Assess risks with the default engine. See RiskEngine.assess_risk."""
    return get_risk_engine().assess_risk(risks, parameters, framework, **kwargs)


async def assess_risk_async(
    risks: Sequence[RiskInput],
    parameters: SimulationParameters,
    framework: RiskFramework,
    **kwargs,
) -> RiskAssessmentReport:
    return await get_risk_engine().assess_risk_async(risks, parameters, framework, **kwargs)
