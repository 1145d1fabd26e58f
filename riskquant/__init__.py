"""
RiskQuant — Quantitative Risk Analysis Engine.

Architecture:
    riskquant/
    ├── schemas/         # Pydantic data model (inputs, results, report)
    ├── engine/          # Sampler, simulation, correlation, clusters, recommendations
    ├── config.py        # pydantic-settings configuration
    ├── exceptions.py    # Error hierarchy with error codes and recovery hints
    └── logging_config.py

Module Boundaries:
    - Pure computation: no persistence, no network, no UI
    - Inputs are validated risk records, outputs are immutable reports
    - Same inputs and seed always produce the same report

Data Flow:
    Risks → Simulation → Statistics → Correlation → Clusters → Systemic
    → Recommendations → Report

Version: 1.0.0
"""

from riskquant.engine.risk_engine import RiskEngine, assess_risk, assess_risk_async

__version__ = "1.0.0"

__all__ = ["RiskEngine", "assess_risk", "assess_risk_async", "__version__"]
