# volhedge/verification/replay_engine.py
# ReplayEngine -- re-executes a scenario to produce the RE-stage records and
# compares them with the ER stage.
#
# The ReplayEngine is structurally identical to the ExecutionRecorder but
# produces records with stage="RE". No state is shared between ER and RE
# passes; each builds its own VaultEngine.

from dataclasses import dataclass
from typing import Any, List, Mapping, Tuple

from volhedge.verification.execution_recorder import ExecutionRecorder
from volhedge.verification.step_record import StepRecord

# Fields that must match bit-for-bit between ER and RE.
_COMPARED_FIELDS: Tuple[str, ...] = (
    "op",
    "outcome",
    "state_digest",
    "event_head_hash",
)


@dataclass(frozen=True)
class StepMismatch:
    index:    int
    field:    str
    er_value: Any
    re_value: Any


class ReplayEngine:
    def __init__(self) -> None:
        self._recorder = ExecutionRecorder(stage="RE")

    def replay(self, scenario: Mapping[str, Any]) -> List[StepRecord]:
        return self._recorder.record_scenario(scenario)


def compare_runs(er_records: List[StepRecord], re_records: List[StepRecord]) -> List[StepMismatch]:
    """Exact comparison; a length difference is reported at the first missing index."""
    mismatches: List[StepMismatch] = []
    for er_rec, re_rec in zip(er_records, re_records):
        for name in _COMPARED_FIELDS:
            a, b = getattr(er_rec, name), getattr(re_rec, name)
            if a != b:
                mismatches.append(StepMismatch(er_rec.index, name, a, b))
    if len(er_records) != len(re_records):
        mismatches.append(StepMismatch(
            min(len(er_records), len(re_records)), "length", len(er_records), len(re_records)
        ))
    return mismatches


def replay_scenario(scenario: Mapping[str, Any]) -> Tuple[List[StepRecord], List[StepRecord], List[StepMismatch]]:
    """Run ER and RE passes and compare them."""
    er_records = ExecutionRecorder(stage="ER").record_scenario(scenario)
    re_records = ReplayEngine().replay(scenario)
    return er_records, re_records, compare_runs(er_records, re_records)
