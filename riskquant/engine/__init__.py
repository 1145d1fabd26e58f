"""
RiskQuant Algorithm Engine — quantitative risk analysis.

Components:
- sampler: Mode-anchored severity distributions with extremity-damped spread
- summarizer: Percentiles, confidence intervals, VaR, exceedance, histogram
- simulation: Seeded, chunked Monte Carlo simulation with cancellation
- correlation: Pairwise risk correlation and network metrics
- clustering: Connected-component risk clusters with independent-OR aggregation
- systemic: Contagion, vulnerability, resilience and amplification indicators
- recommendations: Rule-based, costed and ranked treatments
- controls: Residual risk and appetite checks
- report: Immutable report assembly
- risk_engine: Orchestration and the assess_risk entry point
"""
