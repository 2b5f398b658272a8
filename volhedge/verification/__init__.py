# volhedge/verification/__init__.py
# Deterministic Verification Harness for the hedge policy engine.
#
# Development and verification dependency only; nothing in volhedge.core,
# volhedge.governance or volhedge.orchestrator imports from here.
#
# ENTRY POINT:
#   python -m volhedge.verification.run_harness --scenario [path] [--runs-dir path]

from .harness_version import HARNESS_VERSION, STORAGE_FORMAT_VERSION
from .step_record import StepRecord
from .execution_recorder import ExecutionRecorder, ScenarioError, SCENARIO_OPS
from .replay_engine import ReplayEngine, StepMismatch, compare_runs, replay_scenario
from .run_report import RunReport, summarize
