"""
Run a risk assessment from a JSON file.

Input format:
    {
      "risks": [{"id": "R1", "category": "cybersecurity", "probability": 78, "impact": 95, ...}],
      "parameters": {"timeframe_days": 90, "iterations": 10000},
      "framework": "iso31000",
      "seed": 42,
      "controls": [{"id": "C1", "type": "preventive", "effectiveness": "high"}],
      "recommendations": {"priority_focus": "cost", "budget_limit": 250000, "time_limit_days": 90}
    }

Usage:
    python scripts/run_assessment.py input.json [--seed 42] [--json-logs]

Prints the report JSON to stdout.
"""

import argparse
import json
import sys
from pathlib import Path

import structlog

from riskquant.engine.risk_engine import RiskEngine
from riskquant.exceptions import RiskQuantError
from riskquant.logging_config import configure_logging
from riskquant.schemas import ControlInput, RiskInput, SimulationParameters

logger = structlog.get_logger("run_assessment")


def main() -> int:
    parser = argparse.ArgumentParser(description="Run a quantitative risk assessment")
    parser.add_argument("input", type=Path, help="JSON file with risks and parameters")
    parser.add_argument("--seed", type=int, default=None, help="Override the seed in the file")
    parser.add_argument("--framework", default=None, help="coso | iso31000 | nist")
    parser.add_argument("--priority-focus", default=None, help="cost | time | impact | feasibility")
    parser.add_argument("--json-logs", action="store_true", help="Emit JSON log lines")
    parser.add_argument("--log-level", default="WARNING")
    args = parser.parse_args()

    # Logs go to stdout with the report, so keep them quiet by default
    configure_logging(level=args.log_level, fmt="json" if args.json_logs else "console")

    payload = json.loads(args.input.read_text(encoding="utf-8"))
    risks = [RiskInput.model_validate(r) for r in payload["risks"]]
    parameters = SimulationParameters.model_validate(payload.get("parameters", {}))
    controls = payload.get("controls")
    options = payload.get("recommendations", {})

    try:
        report = RiskEngine().assess_risk(
            risks,
            parameters,
            args.framework or payload.get("framework", "iso31000"),
            seed=args.seed if args.seed is not None else payload.get("seed", 0),
            controls=[ControlInput.model_validate(c) for c in controls] if controls is not None else None,
            executive_summary=payload.get("executive_summary", ""),
            priority_focus=args.priority_focus or options.get("priority_focus"),
            budget_limit=options.get("budget_limit"),
            time_limit_days=options.get("time_limit_days"),
        )
    except RiskQuantError as e:
        logger.error("assessment_failed", **e.to_dict())
        print(json.dumps(e.to_dict(), indent=2), file=sys.stderr)
        return 1

    print(report.model_dump_json(indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main())
