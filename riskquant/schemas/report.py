"""
Assessment report — the single immutable output of an analysis run.

Re-running an analysis produces a new report; nothing here is ever
updated in place.
"""

from datetime import datetime
from enum import StrEnum
from typing import Optional

from riskquant.schemas.base import FrozenModel
from riskquant.schemas.network import CorrelationAnalysis
from riskquant.schemas.recommendation import RiskRecommendation
from riskquant.schemas.risk import ResidualRiskResult
from riskquant.schemas.simulation import SimulationParameters, SimulationResult


class RiskFramework(StrEnum):
    COSO = "coso"
    ISO31000 = "iso31000"
    NIST = "nist"


FRAMEWORK_INFO: dict[RiskFramework, dict[str, str]] = {
    RiskFramework.COSO: {
        "name": "COSO Enterprise Risk Management",
        "description": "Committee of Sponsoring Organizations framework for enterprise risk management",
        "version": "2017",
    },
    RiskFramework.ISO31000: {
        "name": "ISO 31000:2018 Risk Management",
        "description": "International standard for risk management principles and guidelines",
        "version": "2018",
    },
    RiskFramework.NIST: {
        "name": "NIST Risk Management Framework",
        "description": "National Institute of Standards and Technology cybersecurity risk framework",
        "version": "SP 800-30 Rev. 1",
    },
}


class ReportMetadata(FrozenModel):
    engine_version: str
    framework_name: str
    framework_version: str
    methodology: str
    tools: tuple[str, ...] = ()
    assumptions: tuple[str, ...] = ()
    limitations: tuple[str, ...] = ()


class RiskAssessmentReport(FrozenModel):
    """
    Complete quantitative assessment of a risk set.

    correlation is None when a single risk was assessed.
    """
    id: str
    fingerprint: str
    framework: RiskFramework
    assessed_at: datetime
    risk_ids: tuple[str, ...]
    parameters: SimulationParameters
    seed: int
    simulations: tuple[SimulationResult, ...]
    correlation: Optional[CorrelationAnalysis] = None
    recommendations: tuple[RiskRecommendation, ...] = ()
    residual_risks: tuple[ResidualRiskResult, ...] = ()
    executive_summary: str = ""
    metadata: ReportMetadata

    def simulation_for(self, risk_id: str) -> SimulationResult:
        for sim in self.simulations:
            if sim.risk_id == risk_id:
                return sim
        raise KeyError(risk_id)

    def with_summary(self, summary: str) -> "RiskAssessmentReport":
        """Return a new report carrying an externally written executive summary."""
        return self.model_copy(update={"executive_summary": summary})
