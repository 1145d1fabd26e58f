"""
Control evaluation — inherent vs residual risk and appetite checks.

All scores are on the 0-100 scale:

    inherent  = probability × impact / 100
    residual  = max(1, inherent × (1 − effectiveness/100))   (0 if inherent is 0)

Control effectiveness is the type-weighted mean of the individual control
ratings.
"""

from typing import Optional, Sequence

import structlog

from riskquant.schemas.risk import (
    AppetiteAction,
    AppetiteCheck,
    ControlInput,
    ControlType,
    ResidualRiskResult,
    RiskCategory,
    RiskInput,
)

logger = structlog.get_logger(__name__)

# ── Configuration ─────────────────────────────────────────────────────────

CONTROL_WEIGHTS: dict[ControlType, float] = {
    ControlType.PREVENTIVE: 1.0,
    ControlType.DETECTIVE: 0.7,
    ControlType.CORRECTIVE: 0.5,
    ControlType.DIRECTIVE: 0.6,
    ControlType.COMPENSATING: 0.4,
}

RATING_EFFECTIVENESS: dict[str, float] = {
    "high": 80.0,
    "medium": 50.0,
    "low": 20.0,
}

DEFAULT_APPETITE: float = 40.0       # Accept at or below
DEFAULT_TOLERANCE: float = 60.0      # Monitor at or below
ESCALATION_FACTOR: float = 1.5       # Mitigate up to tolerance × this, escalate above
MIN_RESIDUAL: float = 1.0


def control_effectiveness(control: ControlInput) -> float:
    if isinstance(control.effectiveness, str):
        return RATING_EFFECTIVENESS[control.effectiveness]
    return float(control.effectiveness)


class ControlEvaluator:
    """Apply controls to risks and compare the result against appetite."""

    def __init__(
        self,
        appetite: Optional[dict[RiskCategory, float]] = None,
        tolerance: Optional[dict[RiskCategory, float]] = None,
    ):
        self.appetite = appetite or {}
        self.tolerance = tolerance or {}

    def applicable(
        self, risk: RiskInput, controls: Sequence[ControlInput]
    ) -> list[ControlInput]:
        return [c for c in controls if not c.risk_ids or risk.id in c.risk_ids]

    def residual_risk(
        self, risk: RiskInput, controls: Sequence[ControlInput]
    ) -> ResidualRiskResult:
        """
        Residual risk of one risk after the controls that cover it.

        Controls with an empty risk_ids tuple cover every risk.
        """
        inherent = risk.probability * risk.impact / 100.0
        covering = self.applicable(risk, controls)

        total_weight = sum(CONTROL_WEIGHTS[c.type] for c in covering)
        effectiveness = (
            sum(control_effectiveness(c) * CONTROL_WEIGHTS[c.type] for c in covering)
            / total_weight
            if total_weight > 0
            else 0.0
        )

        if inherent <= 0:
            residual = 0.0
        elif not covering:
            residual = inherent
        else:
            residual = min(inherent, max(MIN_RESIDUAL, inherent * (1.0 - effectiveness / 100.0)))

        reduction = (inherent - residual) / inherent * 100.0 if inherent > 0 else 0.0

        result = ResidualRiskResult(
            risk_id=risk.id,
            inherent_risk=round(inherent, 2),
            residual_risk=round(residual, 2),
            control_effectiveness=round(effectiveness, 2),
            risk_reduction=round(reduction, 2),
            control_ids=tuple(c.id for c in covering),
            appetite=self.check_appetite(residual, risk.category),
        )
        logger.debug(
            "residual_risk_computed",
            risk_id=risk.id,
            inherent=result.inherent_risk,
            residual=result.residual_risk,
            n_controls=len(covering),
        )
        return result

    def check_appetite(self, risk_score: float, category: RiskCategory) -> AppetiteCheck:
        """Compare a 0-100 risk score with the category's appetite and tolerance."""
        appetite = self.appetite.get(category, DEFAULT_APPETITE)
        tolerance = self.tolerance.get(category, DEFAULT_TOLERANCE)

        within_appetite = risk_score <= appetite
        within_tolerance = risk_score <= tolerance

        if within_appetite:
            action = AppetiteAction.ACCEPT
        elif within_tolerance:
            action = AppetiteAction.MONITOR
        elif risk_score <= tolerance * ESCALATION_FACTOR:
            action = AppetiteAction.MITIGATE
        else:
            action = AppetiteAction.ESCALATE

        return AppetiteCheck(
            within_appetite=within_appetite,
            within_tolerance=within_tolerance,
            exceeds_by=round(max(0.0, risk_score - tolerance), 2),
            recommended_action=action,
        )
