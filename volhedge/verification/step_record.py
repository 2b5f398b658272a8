# volhedge/verification/step_record.py
# StepRecord: what the harness observes after each scenario step.

from dataclasses import asdict, dataclass
from typing import Any, Dict, Optional


@dataclass(frozen=True)
class StepRecord:
    """
    Observation after one scenario step.

    Fields:
      index                 -- position of the step in the scenario (0 = init).
      op                    -- VaultEngine method name.
      stage                 -- "ER" for the first execution, "RE" for the replay.
      outcome               -- "OK" or the raised VaultError class name.
      expected              -- the step's "expect" value, if any.
      state_digest          -- SHA-256 of the full VaultState after the step.
      event_head_hash       -- EventLogger head hash after the step.
      vol_score_bps         -- tracked metrics for the run report.
      band_bps
      min_hedge_interval_slots
      hedge_fill_count
      avg_fill_slippage_bps
    """
    index:                    int
    op:                       str
    stage:                    str
    outcome:                  str
    expected:                 Optional[str]
    state_digest:             str
    event_head_hash:          str
    vol_score_bps:            int
    band_bps:                 int
    min_hedge_interval_slots: int
    hedge_fill_count:         int
    avg_fill_slippage_bps:    int

    @property
    def matches_expectation(self) -> bool:
        return self.expected is None or self.expected == self.outcome

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
