"""
Assessment memoization.

An assessment is a pure function of its inputs, so a canonical fingerprint
of (risks, parameters, seed, framework, controls, tolerance and
recommendation options) identifies the report it produces.
AssessmentCache keeps the most recently used reports in memory; it is
owned by the caller and never shared implicitly. Reports are fully
immutable, so a cache hit can hand back the stored object itself.
"""

import hashlib
import json
import threading
from collections import OrderedDict
from typing import Any, Mapping, Optional, Sequence

import structlog

from riskquant.config import settings
from riskquant.schemas.recommendation import RiskTolerance
from riskquant.schemas.report import RiskAssessmentReport, RiskFramework
from riskquant.schemas.risk import ControlInput, RiskInput
from riskquant.schemas.simulation import SimulationParameters

logger = structlog.get_logger(__name__)

FINGERPRINT_VERSION = "2"


def assessment_fingerprint(
    risks: Sequence[RiskInput],
    parameters: SimulationParameters,
    seed: int,
    framework: RiskFramework,
    controls: Optional[Sequence[ControlInput]] = None,
    risk_tolerance: RiskTolerance = RiskTolerance.MEDIUM,
    recommendation_options: Optional[Mapping[str, Any]] = None,
) -> str:
    """SHA-256 of the canonical JSON form of every assessment input."""
    payload = {
        "version": FINGERPRINT_VERSION,
        "risks": [r.model_dump(mode="json") for r in risks],
        "parameters": parameters.model_dump(mode="json"),
        "seed": seed,
        "framework": str(framework),
        "controls": [c.model_dump(mode="json") for c in controls or ()],
        "risk_tolerance": str(risk_tolerance),
        "recommendation_options": {
            k: v for k, v in (recommendation_options or {}).items() if v is not None
        },
    }
    canonical = json.dumps(payload, sort_keys=True, separators=(",", ":"), ensure_ascii=False)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


class AssessmentCache:
    """Bounded LRU map from fingerprint to report."""

    def __init__(self, max_entries: Optional[int] = None):
        self.max_entries = max(1, settings.cache_max_entries if max_entries is None else max_entries)
        self._entries: OrderedDict[str, RiskAssessmentReport] = OrderedDict()
        self._lock = threading.Lock()
        self.hits = 0
        self.misses = 0

    def get(self, fingerprint: str) -> Optional[RiskAssessmentReport]:
        with self._lock:
            report = self._entries.get(fingerprint)
            if report is None:
                self.misses += 1
                return None
            self._entries.move_to_end(fingerprint)
            self.hits += 1
            return report

    def put(self, report: RiskAssessmentReport) -> None:
        with self._lock:
            self._entries[report.fingerprint] = report
            self._entries.move_to_end(report.fingerprint)
            while len(self._entries) > self.max_entries:
                evicted, _ = self._entries.popitem(last=False)
                logger.debug("assessment_cache_evicted", fingerprint=evicted[:16])

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, fingerprint: str) -> bool:
        return fingerprint in self._entries
