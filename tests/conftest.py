"""
Test fixtures for RiskQuant tests.

Provides:
- make_risk factory with sensible defaults
- A small correlated risk portfolio
- Fast simulation parameters
"""

import pytest

from riskquant.schemas import (
    FinancialImpactRange,
    RiskCategory,
    RiskInput,
    SimulationParameters,
)


def make_risk(
    risk_id: str = "R1",
    category: RiskCategory = RiskCategory.CYBERSECURITY,
    probability: float = 60.0,
    impact: float = 70.0,
    factors: tuple[str, ...] = (),
    financial_impact: FinancialImpactRange | None = None,
    **kwargs,
) -> RiskInput:
    return RiskInput(
        id=risk_id,
        title=kwargs.pop("title", f"Risk {risk_id}"),
        category=category,
        probability=probability,
        impact=impact,
        factors=factors,
        financial_impact=financial_impact,
        **kwargs,
    )


@pytest.fixture
def risk_factory():
    return make_risk


@pytest.fixture
def fast_params() -> SimulationParameters:
    return SimulationParameters(timeframe_days=30, iterations=2_000)


@pytest.fixture
def portfolio() -> list[RiskInput]:
    """
    Five risks: three cyber risks sharing factors, one linked operational
    risk and one unrelated strategic risk.
    """
    return [
        make_risk("R1", RiskCategory.CYBERSECURITY, 70, 80, ("phishing", "legacy-systems")),
        make_risk("R2", RiskCategory.CYBERSECURITY, 65, 75, ("phishing", "legacy-systems")),
        make_risk("R3", RiskCategory.CYBERSECURITY, 60, 70, ("legacy-systems",)),
        make_risk("R4", RiskCategory.OPERATIONAL, 55, 60, ("legacy-systems", "staffing")),
        make_risk("R5", RiskCategory.STRATEGIC, 10, 20, ("market-shift",)),
    ]
