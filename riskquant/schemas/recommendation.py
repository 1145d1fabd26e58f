from enum import StrEnum

from riskquant.schemas.base import FrozenModel


class RecommendationType(StrEnum):
    MITIGATION = "mitigation"
    TRANSFER = "transfer"
    AVOIDANCE = "avoidance"
    ACCEPTANCE = "acceptance"


class Priority(StrEnum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


PRIORITY_ORDER: dict[Priority, int] = {
    Priority.CRITICAL: 4,
    Priority.HIGH: 3,
    Priority.MEDIUM: 2,
    Priority.LOW: 1,
}


class RiskTolerance(StrEnum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class RiskRecommendation(FrozenModel):
    """A ranked, costed treatment for one risk or a risk cluster."""
    id: str
    risk_ids: tuple[str, ...]
    type: RecommendationType
    priority: Priority
    title: str
    estimated_cost: float
    implementation_time: int        # days
    effectiveness: float            # 0-1
    rationale: str
    expected_benefit: str
    exceeds_cost_cap: bool = False
    exceeds_budget: bool = False
    exceeds_time_limit: bool = False


class PriorityFocus(StrEnum):
    """Secondary ranking key applied within a priority level."""
    COST = "cost"                  # Cheapest first
    TIME = "time"                  # Fastest first
    IMPACT = "impact"              # Most effective first
    FEASIBILITY = "feasibility"    # Most effectiveness per dollar-day first
