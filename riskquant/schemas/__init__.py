from riskquant.schemas.network import (
    CentralityMeasure,
    CorrelationAnalysis,
    CorrelationMatrix,
    CorrelationPair,
    CorrelationType,
    CriticalPath,
    DependencyType,
    NetworkMetrics,
    RiskCluster,
    RiskDependency,
    SystemicRiskIndicators,
)
from riskquant.schemas.recommendation import (
    Priority,
    PriorityFocus,
    RecommendationType,
    RiskRecommendation,
    RiskTolerance,
)
from riskquant.schemas.report import (
    FRAMEWORK_INFO,
    ReportMetadata,
    RiskAssessmentReport,
    RiskFramework,
)
from riskquant.schemas.risk import (
    AppetiteAction,
    AppetiteCheck,
    ControlInput,
    ControlType,
    FinancialImpactRange,
    ResidualRiskResult,
    RiskCategory,
    RiskInput,
)
from riskquant.schemas.simulation import (
    ConfidenceInterval,
    DistributionSpec,
    DistributionStatistics,
    DistributionType,
    ExceedancePoint,
    FinancialExposure,
    HistogramBin,
    PercentilePoint,
    SimulationParameters,
    SimulationResult,
    TrajectoryPoint,
    ValueAtRisk,
)

__all__ = [
    "AppetiteAction",
    "AppetiteCheck",
    "CentralityMeasure",
    "ConfidenceInterval",
    "ControlInput",
    "ControlType",
    "CorrelationAnalysis",
    "CorrelationMatrix",
    "CorrelationPair",
    "CorrelationType",
    "CriticalPath",
    "DependencyType",
    "DistributionSpec",
    "DistributionStatistics",
    "DistributionType",
    "ExceedancePoint",
    "FRAMEWORK_INFO",
    "FinancialExposure",
    "FinancialImpactRange",
    "HistogramBin",
    "NetworkMetrics",
    "PercentilePoint",
    "Priority",
    "PriorityFocus",
    "RecommendationType",
    "ReportMetadata",
    "ResidualRiskResult",
    "RiskAssessmentReport",
    "RiskCategory",
    "RiskCluster",
    "RiskDependency",
    "RiskFramework",
    "RiskInput",
    "RiskRecommendation",
    "RiskTolerance",
    "SimulationParameters",
    "SimulationResult",
    "SystemicRiskIndicators",
    "TrajectoryPoint",
    "ValueAtRisk",
]
