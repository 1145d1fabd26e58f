"""
RiskQuant Configuration.

Pydantic Settings v2 — loads from .env, environment variables.
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Engine settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    # ── Application ──────────────────────────────────────────────────────
    app_name: str = "RiskQuant"
    app_version: str = "1.0.0"
    environment: str = Field(default="development", alias="ENVIRONMENT")

    # ── Simulation ───────────────────────────────────────────────────────
    max_iterations: int = Field(default=100_000, alias="RISK_MAX_ITERATIONS")
    simulation_chunk_size: int = Field(default=1_000, alias="RISK_SIMULATION_CHUNK_SIZE")
    simulation_workers: int = Field(
        default=1, alias="RISK_SIMULATION_WORKERS",
        description="Threads used to draw simulation chunks (1 = inline)",
    )
    trajectory_steps: int = Field(default=10, alias="RISK_TRAJECTORY_STEPS")
    trajectory_sample_size: int = Field(default=500, alias="RISK_TRAJECTORY_SAMPLE_SIZE")

    # Sampler
    default_distribution: str = Field(default="triangular", alias="RISK_DEFAULT_DISTRIBUTION")
    base_spread: float = Field(default=0.5, alias="RISK_BASE_SPREAD")
    extremity_damping: float = Field(default=0.6, alias="RISK_EXTREMITY_DAMPING")
    max_resample_attempts: int = Field(default=10, alias="RISK_MAX_RESAMPLE_ATTEMPTS")

    # ── Correlation network ──────────────────────────────────────────────
    correlation_threshold: float = Field(default=0.3, alias="RISK_CORRELATION_THRESHOLD")
    factor_weight: float = Field(default=0.6, alias="RISK_FACTOR_WEIGHT")
    category_weight: float = Field(default=0.4, alias="RISK_CATEGORY_WEIGHT")
    severity_floor: float = Field(
        default=0.5, alias="RISK_SEVERITY_FLOOR",
        description="Share of the correlation kept when severities are far apart",
    )
    critical_path_count: int = Field(default=3, alias="RISK_CRITICAL_PATH_COUNT")
    high_severity_threshold: float = Field(default=0.4, alias="RISK_HIGH_SEVERITY_THRESHOLD")

    # ── Systemic indicators ──────────────────────────────────────────────
    high_cluster_risk: float = Field(default=0.6, alias="RISK_HIGH_CLUSTER_RISK")
    contagion_density_weight: float = Field(default=0.5, alias="RISK_CONTAGION_DENSITY_WEIGHT")
    contagion_cluster_weight: float = Field(default=0.5, alias="RISK_CONTAGION_CLUSTER_WEIGHT")
    resilience_contagion_weight: float = Field(default=0.6, alias="RISK_RESILIENCE_CONTAGION_WEIGHT")
    resilience_vulnerability_weight: float = Field(
        default=0.4, alias="RISK_RESILIENCE_VULNERABILITY_WEIGHT",
    )

    # ── Recommendations ──────────────────────────────────────────────────
    recommendation_cost_cap: float = Field(default=500_000.0, alias="RISK_RECOMMENDATION_COST_CAP")
    severity_critical_threshold: float = Field(default=75.0, alias="SEVERITY_CRITICAL_THRESHOLD")
    severity_high_threshold: float = Field(default=50.0, alias="SEVERITY_HIGH_THRESHOLD")
    severity_moderate_threshold: float = Field(default=25.0, alias="SEVERITY_MODERATE_THRESHOLD")

    # ── Cache ────────────────────────────────────────────────────────────
    cache_max_entries: int = Field(default=256, alias="RISK_CACHE_MAX_ENTRIES")

    # ── Operational ──────────────────────────────────────────────────────
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    log_format: str = Field(default="console", alias="LOG_FORMAT")


settings = Settings()
