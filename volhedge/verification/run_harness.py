# volhedge/verification/run_harness.py
# Deterministic Verification Harness -- Entry Point.
#
# Standard invocation:
#   python -m volhedge.verification.run_harness \
#       --scenario volhedge/verification/scenarios/baseline.json \
#       --runs-dir runs
#
# The scenario is executed twice (ER and RE passes, each on a fresh
# VaultEngine). Per-step state digests, event-log head hashes and outcomes
# must match exactly, and every step's "expect" must match its outcome.
#
# EXIT CODES:
#   0  -- All checks passed.
#   1  -- DETERMINISM_BREACH (ER and RE differ).
#   3  -- CONTRACT_VIOLATION (expectation mismatch, malformed scenario).
#   4  -- Internal harness error.
#
# Single-threaded. No subprocesses. No random number generation.

import argparse
import json
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

from volhedge.core.risk_layer.exceptions import VaultError
from volhedge.verification.execution_recorder import ScenarioError
from volhedge.verification.harness_version import HARNESS_VERSION, STORAGE_FORMAT_VERSION
from volhedge.verification.replay_engine import replay_scenario
from volhedge.verification.run_report import summarize

EXIT_PASS = 0
EXIT_DETERMINISM_BREACH = 1
EXIT_CONTRACT_VIOLATION = 3
EXIT_INTERNAL_ERROR = 4


def _parse_args(argv: Optional[List[str]]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="volhedge Deterministic Verification Harness v" + HARNESS_VERSION,
        prog="python -m volhedge.verification.run_harness",
    )
    parser.add_argument(
        "--scenario",
        required=True,
        help="Path to a scenario JSON file.",
    )
    parser.add_argument(
        "--runs-dir",
        default=None,
        help="Directory for the output run record. Nothing is written when omitted.",
    )
    return parser.parse_args(argv)


def _fail(code: int, failure_type: str, detail: str) -> int:
    sys.stderr.write(failure_type + ": " + detail + "\n")
    return code


def _write_record(runs_dir: Path, scenario_name: str, payload: Dict[str, Any]) -> Path:
    runs_dir.mkdir(parents=True, exist_ok=True)
    path = runs_dir / (scenario_name + "_run_record.json")
    path.write_text(json.dumps(payload, indent=2, sort_keys=True), encoding="utf-8")
    return path


def main(argv: Optional[List[str]] = None) -> int:
    args = _parse_args(argv)
    scenario_path = Path(args.scenario)

    try:
        scenario = json.loads(scenario_path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        return _fail(EXIT_CONTRACT_VIOLATION, "CONTRACT_VIOLATION", "cannot load scenario: " + str(exc))

    try:
        er_records, re_records, mismatches = replay_scenario(scenario)
    except (ScenarioError, VaultError, KeyError, TypeError) as exc:
        return _fail(EXIT_CONTRACT_VIOLATION, "CONTRACT_VIOLATION", repr(exc))
    except Exception as exc:
        return _fail(EXIT_INTERNAL_ERROR, "HARNESS_INTERNAL_ERROR", repr(exc))

    if mismatches:
        first = mismatches[0]
        return _fail(
            EXIT_DETERMINISM_BREACH,
            "DETERMINISM_BREACH",
            "{} mismatch(es); first at step {} field {}".format(
                len(mismatches), first.index, first.field
            ),
        )

    unmet = [r for r in er_records if not r.matches_expectation]
    if unmet:
        r = unmet[0]
        return _fail(
            EXIT_CONTRACT_VIOLATION,
            "CONTRACT_VIOLATION",
            "step {} ({}) expected {} got {}".format(r.index, r.op, r.expected, r.outcome),
        )

    report = summarize(er_records)
    scenario_name = str(scenario.get("name", scenario_path.stem))
    print(
        "volhedge DVH PASS\n"
        f"Scenario:        {scenario_name}\n"
        f"Steps:           {report.steps} ({report.ok_steps} OK, {report.rejected_steps} rejected)\n"
        f"Vol score p95:   {report.vol_score_p95_bps:.1f} bps\n"
        f"Hedge fills:     {report.hedge_fill_count}\n"
        f"Final digest:    {er_records[-1].state_digest}"
    )

    if args.runs_dir is not None:
        payload = {
            "harness_version": HARNESS_VERSION,
            "storage_format_version": STORAGE_FORMAT_VERSION,
            "scenario": scenario_name,
            "timestamp_iso": datetime.now(timezone.utc).isoformat(),
            "report": report.to_dict(),
            "records": [r.to_dict() for r in er_records],
        }
        path = _write_record(Path(args.runs_dir), scenario_name, payload)
        print(f"Run record:      {path}")

    return EXIT_PASS


if __name__ == "__main__":
    sys.exit(main())
