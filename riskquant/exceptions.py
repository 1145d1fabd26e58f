"""
Custom exceptions for RiskQuant.

Provides structured error handling with recovery hints and error codes.
Every error names the parameter that caused it.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional


class ErrorCode(str, Enum):
    """Standard error codes for RiskQuant."""
    # Input errors (1xxx)
    INVALID_PARAMETER = "E1001"
    INSUFFICIENT_DATA = "E1002"

    # Computation errors (2xxx)
    DISTRIBUTION_ERROR = "E2001"
    SIMULATION_CANCELLED = "E2002"
    ASSESSMENT_INCOMPLETE = "E2003"


@dataclass
class RecoveryHint:
    """A hint for recovering from an error."""
    action: str
    description: str
    auto_retry: bool = False
    requires_human: bool = False


class RiskQuantError(Exception):
    """
    Base exception for RiskQuant.

    All engine exceptions inherit from this class.
    """

    def __init__(
        self,
        message: str,
        error_code: ErrorCode,
        param: Optional[str] = None,
        recovery_hint: Optional[RecoveryHint] = None,
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.param = param
        self.recovery_hint = recovery_hint

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging/API responses."""
        result: Dict[str, Any] = {
            "error_code": self.error_code.value,
            "message": self.message,
        }
        if self.param is not None:
            result["param"] = self.param

        if self.recovery_hint:
            result["recovery"] = {
                "action": self.recovery_hint.action,
                "description": self.recovery_hint.description,
                "auto_retry": self.recovery_hint.auto_retry,
            }

        return result

    def __str__(self) -> str:
        return f"[{self.error_code.value}] {self.message}"


class InvalidParameterError(RiskQuantError):
    """Raised when simulation or analysis parameters are malformed."""

    def __init__(self, message: str, param: str, value: Any = None):
        super().__init__(
            message=message,
            error_code=ErrorCode.INVALID_PARAMETER,
            param=param,
            recovery_hint=RecoveryHint(
                action="fix_input",
                description=f"Check and fix the '{param}' parameter",
            ),
        )
        self.value = value


class InsufficientDataError(RiskQuantError):
    """Raised when an analysis needs more risks than were supplied."""

    def __init__(self, message: str, param: str = "risks", required: int = 2, actual: int = 0):
        super().__init__(
            message=message,
            error_code=ErrorCode.INSUFFICIENT_DATA,
            param=param,
            recovery_hint=RecoveryHint(
                action="add_data",
                description=f"Provide at least {required} items for '{param}'",
            ),
        )
        self.required = required
        self.actual = actual


class DistributionError(RiskQuantError):
    """
    Raised when the sampler keeps producing invalid values.

    Valid inputs never trigger this; it points at a misconfigured
    distribution rather than at the risk data.
    """

    def __init__(self, message: str, param: str = "distribution", attempts: int = 0):
        super().__init__(
            message=message,
            error_code=ErrorCode.DISTRIBUTION_ERROR,
            param=param,
            recovery_hint=RecoveryHint(
                action="check_config",
                description="Review the distribution family and spread settings",
                requires_human=True,
            ),
        )
        self.attempts = attempts


class SimulationCancelled(RiskQuantError):
    """Raised when a simulation is cancelled or times out before completing."""

    def __init__(
        self,
        message: str,
        param: str = "cancel_token",
        reason: str = "cancelled",
        completed_iterations: int = 0,
        total_iterations: int = 0,
    ):
        super().__init__(
            message=message,
            error_code=ErrorCode.SIMULATION_CANCELLED,
            param=param,
            recovery_hint=RecoveryHint(
                action="retry_with_fewer_iterations",
                description="Retry with fewer iterations or a longer timeout",
                auto_retry=False,
            ),
        )
        self.reason = reason
        self.completed_iterations = completed_iterations
        self.total_iterations = total_iterations


class AssessmentError(RiskQuantError):
    """Raised when a report would be assembled from incomplete sub-results."""

    def __init__(self, message: str, param: str):
        super().__init__(
            message=message,
            error_code=ErrorCode.ASSESSMENT_INCOMPLETE,
            param=param,
        )
