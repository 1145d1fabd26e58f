"""
Risk and control records consumed by the engine.

Records arrive already validated by the host application; the constraints
here only guard the numeric ranges the algorithms rely on.
"""

from enum import StrEnum
from typing import Literal, Optional, Union

from pydantic import Field, field_validator, model_validator

from riskquant.schemas.base import FrozenModel


class RiskCategory(StrEnum):
    CYBERSECURITY = "cybersecurity"
    OPERATIONAL = "operational"
    FINANCIAL = "financial"
    COMPLIANCE = "compliance"
    STRATEGIC = "strategic"


class FinancialImpactRange(FrozenModel):
    """Historical monetary loss range for a risk."""
    min: float = Field(ge=0)
    max: float = Field(ge=0)
    currency: str = "USD"

    @model_validator(mode="after")
    def _check_bounds(self) -> "FinancialImpactRange":
        if self.max < self.min:
            raise ValueError(f"max ({self.max}) must be >= min ({self.min})")
        return self


class RiskInput(FrozenModel):
    """A qualitative risk record."""
    id: str = Field(min_length=1)
    title: str = ""
    category: RiskCategory
    probability: float = Field(ge=0, le=100)   # 0-100
    impact: float = Field(ge=0, le=100)        # 0-100
    factors: tuple[str, ...] = ()
    financial_impact: Optional[FinancialImpactRange] = None
    owner: Optional[str] = None

    @field_validator("factors", mode="before")
    @classmethod
    def _normalize_factors(cls, v):
        if v is None:
            return ()
        seen: list[str] = []
        for tag in v:
            norm = str(tag).strip().lower()
            if norm and norm not in seen:
                seen.append(norm)
        return tuple(seen)

    @property
    def severity(self) -> float:
        """probability × impact on a 0-1 scale."""
        return (self.probability / 100.0) * (self.impact / 100.0)

    @property
    def risk_score(self) -> float:
        """Severity on the 0-100 scale used for banding."""
        return self.severity * 100.0


# ── Controls ─────────────────────────────────────────────────────────────


class ControlType(StrEnum):
    PREVENTIVE = "preventive"
    DETECTIVE = "detective"
    CORRECTIVE = "corrective"
    DIRECTIVE = "directive"
    COMPENSATING = "compensating"


class ControlInput(FrozenModel):
    """A control record. Empty risk_ids means the control covers every risk."""
    id: str = Field(min_length=1)
    type: ControlType
    effectiveness: Union[float, Literal["high", "medium", "low"]] = 0.0
    risk_ids: tuple[str, ...] = ()

    @field_validator("effectiveness")
    @classmethod
    def _check_effectiveness(cls, v):
        if isinstance(v, (int, float)) and not 0 <= v <= 100:
            raise ValueError("numeric effectiveness must be within 0-100")
        return v


class AppetiteAction(StrEnum):
    ACCEPT = "accept"
    MONITOR = "monitor"
    MITIGATE = "mitigate"
    ESCALATE = "escalate"


class AppetiteCheck(FrozenModel):
    """Risk score compared against category appetite and tolerance."""
    within_appetite: bool
    within_tolerance: bool
    exceeds_by: float
    recommended_action: AppetiteAction


class ResidualRiskResult(FrozenModel):
    """Inherent vs residual risk after applying controls (0-100 scale)."""
    risk_id: str
    inherent_risk: float
    residual_risk: float
    control_effectiveness: float   # 0-100
    risk_reduction: float          # % of inherent risk removed
    control_ids: tuple[str, ...] = ()
    appetite: AppetiteCheck
