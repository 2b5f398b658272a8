#!/usr/bin/env python3
# =============================================================================
# VOLHEDGE v1.0.0 -- CI CHECKS RUNNER
# File:   scripts/run_ci_checks.py
# =============================================================================
#
# PURPOSE
# -------
# Runs the CI gate in two sequential stages:
#   Stage 1: pytest (all tests + coverage enforcement >= 90%, via pytest-cov)
#   Stage 2: DVH (deterministic replay of the bundled baseline scenario)
#
# Exit codes:
#   0 -- All stages passed.
#   1 -- Stage 1 (pytest) failed.
#   2 -- Stage 2 (DVH) failed.
#
# Usage:
#   python scripts/run_ci_checks.py
# =============================================================================

from __future__ import annotations

import pathlib
import subprocess
import sys

# ---------------------------------------------------------------------------
# Paths
# ---------------------------------------------------------------------------
_REPO_ROOT = pathlib.Path(__file__).parent.parent
_PYTHON    = sys.executable
_SCENARIO  = _REPO_ROOT / "volhedge" / "verification" / "scenarios" / "baseline.json"

_COVERAGE_FLOOR = 90


def _separator(char: str = "=", width: int = 72) -> str:
    return char * width


def _run(cmd: list[str], label: str) -> int:
    """Run a subprocess command, stream stdout/stderr live, return exit code."""
    print(_separator())
    print(f"CI STAGE: {label}")
    print(f"CMD:      {' '.join(cmd)}")
    print(_separator("-"))
    sys.stdout.flush()

    proc = subprocess.run(cmd, cwd=str(_REPO_ROOT))
    return proc.returncode


def _fail(stage: str, rc: int, code: int) -> int:
    print(_separator())
    print(f"CI RESULT: FAIL  [stage={stage}  exit_code={rc}]")
    print(f"Merge BLOCKED: {stage} stage did not pass.")
    print(_separator())
    sys.stdout.flush()
    return code


def main() -> int:
    print(_separator())
    print("VOLHEDGE CI GATE -- starting")
    print(_separator())
    sys.stdout.flush()

    pytest_rc = _run(
        [
            _PYTHON, "-m", "pytest",
            "--cov=volhedge",
            "--cov-report=term-missing",
            f"--cov-fail-under={_COVERAGE_FLOOR}",
        ],
        f"pytest (tests + coverage >= {_COVERAGE_FLOOR}%)",
    )
    if pytest_rc != 0:
        return _fail("pytest", pytest_rc, 1)

    print(_separator("-"))
    print("CI STAGE pytest: PASS")
    sys.stdout.flush()

    dvh_rc = _run(
        [_PYTHON, "-m", "volhedge.verification.run_harness", "--scenario", str(_SCENARIO)],
        "DVH (Deterministic Verification Harness)",
    )
    if dvh_rc != 0:
        return _fail("dvh", dvh_rc, 2)

    print(_separator("-"))
    print("CI STAGE dvh: PASS")
    print(_separator())
    print("CI RESULT: PASS  [stages=pytest,dvh]")
    print("Merge permitted.")
    print(_separator())
    sys.stdout.flush()
    return 0


if __name__ == "__main__":
    sys.exit(main())
