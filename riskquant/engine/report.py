"""
Report Assembler.

Composes the sub-results of an assessment into one immutable
RiskAssessmentReport. Refuses to build a partial report: a missing
simulation, or a missing correlation analysis for a multi-risk set,
raises AssessmentError.
"""

from datetime import datetime, timezone
from typing import Optional, Sequence

import structlog

from riskquant.config import settings
from riskquant.exceptions import AssessmentError
from riskquant.schemas.network import CorrelationAnalysis
from riskquant.schemas.recommendation import RiskRecommendation
from riskquant.schemas.report import (
    FRAMEWORK_INFO,
    ReportMetadata,
    RiskAssessmentReport,
    RiskFramework,
)
from riskquant.schemas.risk import ResidualRiskResult, RiskInput
from riskquant.schemas.simulation import SimulationParameters, SimulationResult

logger = structlog.get_logger(__name__)

METHODOLOGY = (
    "Monte Carlo simulation of mode-anchored severity distributions, "
    "factor/category correlation network analysis and rule-based treatment selection"
)
TOOLS: tuple[str, ...] = ("numpy", "networkx")
ASSUMPTIONS: tuple[str, ...] = (
    "Severity is probability × impact on a 0-1 scale",
    "Risks inside a cluster are aggregated as independent events",
    "Correlation is estimated from shared factors, category and severity proximity",
)
LIMITATIONS: tuple[str, ...] = (
    "Correlations are structural estimates, not fitted to loss history",
    "Trajectories follow fixed category trends",
    "Recommendation costs are indicative",
)


class ReportAssembler:

    def assemble(
        self,
        risks: Sequence[RiskInput],
        parameters: SimulationParameters,
        framework: RiskFramework,
        seed: int,
        fingerprint: str,
        simulations: Sequence[SimulationResult],
        correlation: Optional[CorrelationAnalysis] = None,
        recommendations: Sequence[RiskRecommendation] = (),
        residual_risks: Sequence[ResidualRiskResult] = (),
        assessed_at: Optional[datetime] = None,
        executive_summary: str = "",
    ) -> RiskAssessmentReport:
        """
        Build the report.

        Simulations are reordered to follow the risk order.

        Raises:
            AssessmentError: a required sub-result is missing
        """
        by_risk = {s.risk_id: s for s in simulations}
        missing = [r.id for r in risks if r.id not in by_risk]
        if missing:
            logger.error("report_incomplete", missing_simulations=missing)
            raise AssessmentError(
                f"Missing simulation results for: {', '.join(missing)}",
                param="simulations",
            )
        if len(risks) >= 2 and correlation is None:
            logger.error("report_incomplete", missing="correlation", n_risks=len(risks))
            raise AssessmentError(
                "Correlation analysis is required when assessing two or more risks",
                param="correlation",
            )

        framework = RiskFramework(framework)
        info = FRAMEWORK_INFO[framework]

        report = RiskAssessmentReport(
            id=f"rpt-{fingerprint[:16]}",
            fingerprint=fingerprint,
            framework=framework,
            assessed_at=assessed_at or datetime.now(timezone.utc),
            risk_ids=tuple(r.id for r in risks),
            parameters=parameters,
            seed=seed,
            simulations=tuple(by_risk[r.id] for r in risks),
            correlation=correlation,
            recommendations=tuple(recommendations),
            residual_risks=tuple(residual_risks),
            executive_summary=executive_summary,
            metadata=ReportMetadata(
                engine_version=settings.app_version,
                framework_name=info["name"],
                framework_version=info["version"],
                methodology=METHODOLOGY,
                tools=TOOLS,
                assumptions=ASSUMPTIONS,
                limitations=LIMITATIONS,
            ),
        )

        logger.info(
            "report_assembled",
            report_id=report.id,
            framework=framework.value,
            n_risks=len(risks),
            n_recommendations=len(report.recommendations),
        )
        return report
