"""
Recommendation Generator — turns simulated risk levels into treatments.

Rules, keyed by category and severity band (from expected value × 100):
- mitigation    for moderate, high and critical bands (category playbook)
- transfer      for moderate and above in insurable categories
- avoidance     for the critical band
- acceptance    for the low band
- one coordinated mitigation per cluster with aggregate ≥ high_cluster_risk

Each recommendation includes:
- Estimated cost (scaled by band)
- Implementation time in days
- Effectiveness (fraction of the score removed)
- Rationale and expected benefit against the tolerance target

Optional budget and time limits flag options that break them and rank
them after every option that fits; a priority focus (cost, time, impact,
feasibility) orders options within a priority level.
"""

from dataclasses import dataclass
from typing import Optional, Sequence

import structlog

from riskquant.config import settings
from riskquant.engine.severity import SeverityBand, severity_band
from riskquant.exceptions import AssessmentError, InvalidParameterError
from riskquant.schemas.network import RiskCluster
from riskquant.schemas.recommendation import (
    PRIORITY_ORDER,
    Priority,
    PriorityFocus,
    RecommendationType,
    RiskRecommendation,
    RiskTolerance,
)
from riskquant.schemas.risk import RiskCategory, RiskInput
from riskquant.schemas.simulation import SimulationResult

logger = structlog.get_logger(__name__)

# ── Configuration ─────────────────────────────────────────────────────────


@dataclass(frozen=True)
class Playbook:
    """Default mitigation for a risk category."""
    title: str
    base_cost: float
    days: int
    effectiveness: float


PLAYBOOKS: dict[RiskCategory, Playbook] = {
    RiskCategory.CYBERSECURITY: Playbook(
        "Implement zero-trust network architecture", 250_000.0, 120, 0.85
    ),
    RiskCategory.OPERATIONAL: Playbook(
        "Add process redundancy and automated failure monitoring", 120_000.0, 90, 0.75
    ),
    RiskCategory.FINANCIAL: Playbook(
        "Establish a hedging programme with exposure limits", 80_000.0, 60, 0.70
    ),
    RiskCategory.COMPLIANCE: Playbook(
        "Deploy continuous compliance monitoring", 60_000.0, 45, 0.80
    ),
    RiskCategory.STRATEGIC: Playbook(
        "Run scenario planning and diversify strategic commitments", 100_000.0, 180, 0.60
    ),
}

INSURABLE: frozenset[RiskCategory] = frozenset({
    RiskCategory.CYBERSECURITY,
    RiskCategory.OPERATIONAL,
    RiskCategory.FINANCIAL,
})

BAND_COST_MULTIPLIER: dict[SeverityBand, float] = {
    SeverityBand.LOW: 0.5,
    SeverityBand.MODERATE: 1.0,
    SeverityBand.HIGH: 1.5,
    SeverityBand.CRITICAL: 2.0,
}

BAND_PRIORITY: dict[SeverityBand, Priority] = {
    SeverityBand.LOW: Priority.LOW,
    SeverityBand.MODERATE: Priority.MEDIUM,
    SeverityBand.HIGH: Priority.HIGH,
    SeverityBand.CRITICAL: Priority.CRITICAL,
}

TOLERANCE_TARGET: dict[RiskTolerance, float] = {
    RiskTolerance.LOW: 0.5,
    RiskTolerance.MEDIUM: 0.7,
    RiskTolerance.HIGH: 0.9,
}

TRANSFER_PREMIUM_RATE: float = 0.03      # 3% of the maximum financial loss
TRANSFER_BASE_COST: float = 40_000.0     # When no financial range is known
TRANSFER_DAYS: int = 30
TRANSFER_EFFECTIVENESS: float = 0.60

AVOIDANCE_BASE_COST: float = 200_000.0
AVOIDANCE_DAYS: int = 180
AVOIDANCE_EFFECTIVENESS: float = 0.95

ACCEPTANCE_MONITORING_COST: float = 5_000.0
ACCEPTANCE_DAYS: int = 7
ACCEPTANCE_EFFECTIVENESS: float = 0.10

CLUSTER_COST_SHARE: float = 0.6          # Coordinated work reuses effort
CLUSTER_EFFECTIVENESS: float = 0.80
CLUSTER_CRITICAL_AGGREGATE: float = 0.8


def _demote(priority: Priority) -> Priority:
    order = [Priority.LOW, Priority.MEDIUM, Priority.HIGH, Priority.CRITICAL]
    return order[max(0, order.index(priority) - 1)]


def check_options(
    priority_focus=None,
    budget_limit: Optional[float] = None,
    time_limit_days: Optional[int] = None,
) -> Optional[PriorityFocus]:
    """
    Validate recommendation options.

    Returns:
        The parsed priority focus, or None

    Raises:
        InvalidParameterError: unknown focus or a non-positive limit
    """
    focus: Optional[PriorityFocus] = None
    if priority_focus is not None:
        try:
            focus = PriorityFocus(priority_focus)
        except ValueError:
            raise InvalidParameterError(
                f"Unknown priority focus {priority_focus!r}; expected one of "
                f"{', '.join(f.value for f in PriorityFocus)}",
                param="priority_focus",
                value=priority_focus,
            ) from None
    if budget_limit is not None and not budget_limit > 0:
        raise InvalidParameterError(
            f"budget_limit must be positive, got {budget_limit!r}",
            param="budget_limit",
            value=budget_limit,
        )
    if time_limit_days is not None and not time_limit_days > 0:
        raise InvalidParameterError(
            f"time_limit_days must be positive, got {time_limit_days!r}",
            param="time_limit_days",
            value=time_limit_days,
        )
    return focus


def _focus_key(rec: RiskRecommendation, focus: Optional[PriorityFocus]) -> float:
    cost = max(rec.estimated_cost, 1.0)
    if focus == PriorityFocus.COST:
        return rec.estimated_cost
    if focus == PriorityFocus.TIME:
        return float(rec.implementation_time)
    if focus == PriorityFocus.IMPACT:
        return -rec.effectiveness
    if focus == PriorityFocus.FEASIBILITY:
        return -(rec.effectiveness / (cost * max(rec.implementation_time, 1)))
    return -(rec.effectiveness / cost)


class RecommendationGenerator:
    """Generate ranked, costed recommendations for simulated risks."""

    def __init__(
        self,
        cost_cap: Optional[float] = None,
        high_cluster_risk: Optional[float] = None,
    ):
        self.cost_cap = settings.recommendation_cost_cap if cost_cap is None else cost_cap
        self.high_cluster_risk = (
            settings.high_cluster_risk if high_cluster_risk is None else high_cluster_risk
        )

    def generate(
        self,
        risks: Sequence[RiskInput],
        simulations: Sequence[SimulationResult],
        clusters: Sequence[RiskCluster] = (),
        risk_tolerance: RiskTolerance = RiskTolerance.MEDIUM,
        priority_focus: Optional[PriorityFocus] = None,
        budget_limit: Optional[float] = None,
        time_limit_days: Optional[int] = None,
    ) -> list[RiskRecommendation]:
        """
        Generate recommendations for every risk and high-risk cluster.

        Ranking: options within the limits first, then priority, then the
        focus key (cost-effectiveness when no focus is given), then id.

        Args:
            risks: The assessed risks
            simulations: One simulation per risk
            clusters: Clusters from the correlation analysis
            risk_tolerance: Sets the target score reported in expected benefit
            priority_focus: cost | time | impact | feasibility
            budget_limit: Options costing more are flagged exceeds_budget
            time_limit_days: Options taking longer are flagged exceeds_time_limit
        """
        focus = check_options(priority_focus, budget_limit, time_limit_days)
        by_risk = {s.risk_id: s for s in simulations}
        target = TOLERANCE_TARGET[RiskTolerance(risk_tolerance)]
        recs: list[RiskRecommendation] = []

        for risk in risks:
            sim = by_risk.get(risk.id)
            if sim is None:
                raise AssessmentError(
                    f"No simulation available for risk '{risk.id}'",
                    param="simulations",
                )
            score = sim.expected_value * 100.0
            band = severity_band(score)

            if band != SeverityBand.LOW:
                recs.append(self._mitigation(risk, score, band, target))
                if risk.category in INSURABLE:
                    recs.append(self._transfer(risk, score, band, target))
            if band == SeverityBand.CRITICAL:
                recs.append(self._avoidance(risk, score, target))
            if band == SeverityBand.LOW:
                recs.append(self._acceptance(risk, score, target))

        by_id = {r.id: r for r in risks}
        for cluster in clusters:
            if cluster.aggregate_risk >= self.high_cluster_risk:
                recs.append(self._cluster(cluster, by_id, target))

        recs = [self._apply_cost_cap(r) for r in recs]
        recs = [self._apply_limits(r, budget_limit, time_limit_days) for r in recs]
        recs.sort(key=lambda r: (
            r.exceeds_budget or r.exceeds_time_limit,
            -PRIORITY_ORDER[r.priority],
            _focus_key(r, focus),
            r.id,
        ))

        logger.info(
            "recommendations_generated",
            n_risks=len(risks),
            n_recommendations=len(recs),
            n_over_cap=sum(1 for r in recs if r.exceeds_cost_cap),
            n_outside_limits=sum(1 for r in recs if r.exceeds_budget or r.exceeds_time_limit),
            tolerance=str(risk_tolerance),
            focus=str(focus) if focus else None,
        )
        return recs

    # ── Rules ─────────────────────────────────────────────────────────────

    @staticmethod
    def _benefit(score: float, effectiveness: float, target: float) -> str:
        residual = score * (1.0 - effectiveness)
        goal = score * target
        verdict = "meets" if residual <= goal else "misses"
        return (
            f"Lowers risk score from {score:.1f} to about {residual:.1f}; "
            f"{verdict} the tolerance target of {goal:.1f}"
        )

    def _mitigation(
        self, risk: RiskInput, score: float, band: SeverityBand, target: float
    ) -> RiskRecommendation:
        book = PLAYBOOKS[risk.category]
        return RiskRecommendation(
            id=f"rec-{risk.id}-mitigation",
            risk_ids=(risk.id,),
            type=RecommendationType.MITIGATION,
            priority=BAND_PRIORITY[band],
            title=book.title,
            estimated_cost=round(book.base_cost * BAND_COST_MULTIPLIER[band], 2),
            implementation_time=book.days,
            effectiveness=book.effectiveness,
            rationale=f"{band.value.capitalize()} {risk.category.value} risk (score {score:.1f})",
            expected_benefit=self._benefit(score, book.effectiveness, target),
        )

    def _transfer(
        self, risk: RiskInput, score: float, band: SeverityBand, target: float
    ) -> RiskRecommendation:
        if risk.financial_impact is not None:
            cost = risk.financial_impact.max * TRANSFER_PREMIUM_RATE
            basis = f"premium on {risk.financial_impact.max:,.0f} {risk.financial_impact.currency}"
        else:
            cost = TRANSFER_BASE_COST * BAND_COST_MULTIPLIER[band]
            basis = "estimated premium"
        return RiskRecommendation(
            id=f"rec-{risk.id}-transfer",
            risk_ids=(risk.id,),
            type=RecommendationType.TRANSFER,
            priority=_demote(BAND_PRIORITY[band]),
            title=f"Transfer {risk.category.value} exposure through insurance",
            estimated_cost=round(cost, 2),
            implementation_time=TRANSFER_DAYS,
            effectiveness=TRANSFER_EFFECTIVENESS,
            rationale=f"Insurable {risk.category.value} risk; {basis}",
            expected_benefit=self._benefit(score, TRANSFER_EFFECTIVENESS, target),
        )

    def _avoidance(self, risk: RiskInput, score: float, target: float) -> RiskRecommendation:
        return RiskRecommendation(
            id=f"rec-{risk.id}-avoidance",
            risk_ids=(risk.id,),
            type=RecommendationType.AVOIDANCE,
            priority=Priority.CRITICAL,
            title=f"Discontinue or redesign the activity behind {risk.id}",
            estimated_cost=round(
                AVOIDANCE_BASE_COST * BAND_COST_MULTIPLIER[SeverityBand.CRITICAL], 2
            ),
            implementation_time=AVOIDANCE_DAYS,
            effectiveness=AVOIDANCE_EFFECTIVENESS,
            rationale=f"Critical risk score {score:.1f} is outside any reasonable appetite",
            expected_benefit=self._benefit(score, AVOIDANCE_EFFECTIVENESS, target),
        )

    def _acceptance(self, risk: RiskInput, score: float, target: float) -> RiskRecommendation:
        return RiskRecommendation(
            id=f"rec-{risk.id}-acceptance",
            risk_ids=(risk.id,),
            type=RecommendationType.ACCEPTANCE,
            priority=Priority.LOW,
            title="Accept and monitor",
            estimated_cost=ACCEPTANCE_MONITORING_COST,
            implementation_time=ACCEPTANCE_DAYS,
            effectiveness=ACCEPTANCE_EFFECTIVENESS,
            rationale=f"Low risk score {score:.1f}; treatment would cost more than it saves",
            expected_benefit=self._benefit(score, ACCEPTANCE_EFFECTIVENESS, target),
        )

    def _cluster(
        self,
        cluster: RiskCluster,
        by_id: dict[str, RiskInput],
        target: float,
    ) -> RiskRecommendation:
        members = [by_id[m] for m in cluster.risk_ids if m in by_id]
        cost = CLUSTER_COST_SHARE * sum(PLAYBOOKS[r.category].base_cost for r in members)
        days = max(PLAYBOOKS[r.category].days for r in members)
        score = cluster.aggregate_risk * 100.0
        priority = (
            Priority.CRITICAL
            if cluster.aggregate_risk >= CLUSTER_CRITICAL_AGGREGATE
            else Priority.HIGH
        )
        return RiskRecommendation(
            id=f"rec-{cluster.id}-mitigation",
            risk_ids=cluster.risk_ids,
            type=RecommendationType.MITIGATION,
            priority=priority,
            title=f"Coordinated mitigation for {cluster.name}",
            estimated_cost=round(cost, 2),
            implementation_time=days,
            effectiveness=CLUSTER_EFFECTIVENESS,
            rationale=(
                f"Cluster aggregate risk {cluster.aggregate_risk:.2f} across "
                f"{len(cluster.risk_ids)} risks. {cluster.mitigation_strategy}"
            ),
            expected_benefit=self._benefit(score, CLUSTER_EFFECTIVENESS, target),
        )

    def _apply_cost_cap(self, rec: RiskRecommendation) -> RiskRecommendation:
        if rec.estimated_cost <= self.cost_cap:
            return rec
        logger.warning(
            "recommendation_exceeds_cost_cap",
            recommendation_id=rec.id,
            estimated_cost=rec.estimated_cost,
            cost_cap=self.cost_cap,
        )
        return rec.model_copy(update={
            "priority": Priority.CRITICAL,
            "exceeds_cost_cap": True,
            "rationale": (
                f"{rec.rationale}. Estimated cost {rec.estimated_cost:,.0f} exceeds "
                f"the approval cap of {self.cost_cap:,.0f} and needs executive sign-off"
            ),
        })

    @staticmethod
    def _apply_limits(
        rec: RiskRecommendation,
        budget_limit: Optional[float],
        time_limit_days: Optional[int],
    ) -> RiskRecommendation:
        over_budget = budget_limit is not None and rec.estimated_cost > budget_limit
        too_slow = time_limit_days is not None and rec.implementation_time > time_limit_days
        if not (over_budget or too_slow):
            return rec

        notes = []
        if over_budget:
            notes.append(f"cost {rec.estimated_cost:,.0f} is over the budget of {budget_limit:,.0f}")
        if too_slow:
            notes.append(
                f"{rec.implementation_time} days is over the limit of {time_limit_days} days"
            )
        logger.debug(
            "recommendation_outside_limits",
            recommendation_id=rec.id,
            over_budget=over_budget,
            too_slow=too_slow,
        )
        return rec.model_copy(update={
            "exceeds_budget": over_budget,
            "exceeds_time_limit": too_slow,
            "rationale": f"{rec.rationale}. Outside limits: {'; '.join(notes)}",
        })
