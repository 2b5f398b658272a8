# volhedge/verification/run_report.py
# RunReport -- summary statistics over the StepRecords of one scenario run.
#
# Reporting only. Nothing here feeds back into vault state, so the float
# statistics do not affect determinism of the engine itself.

from dataclasses import asdict, dataclass
from typing import Any, Dict, List

import numpy as np

from volhedge.verification.step_record import StepRecord


@dataclass(frozen=True)
class RunReport:
    steps:                  int
    ok_steps:               int
    rejected_steps:         int
    outcome_counts:         Dict[str, int]
    vol_score_mean_bps:     float
    vol_score_p95_bps:      float
    vol_score_max_bps:      int
    band_mean_bps:          float
    band_max_bps:           int
    interval_min_slots:     int
    hedge_fill_count:       int
    final_avg_slippage_bps: int

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def summarize(records: List[StepRecord]) -> RunReport:
    """Aggregate a non-empty list of StepRecords."""
    if not records:
        raise ValueError("summarize: records must be non-empty")

    scores = np.array([r.vol_score_bps for r in records], dtype=float)
    bands = np.array([r.band_bps for r in records], dtype=float)
    intervals = np.array([r.min_hedge_interval_slots for r in records], dtype=np.int64)

    outcomes, counts = np.unique([r.outcome for r in records], return_counts=True)
    outcome_counts = {str(o): int(c) for o, c in zip(outcomes, counts)}
    ok = outcome_counts.get("OK", 0)
    last = records[-1]

    return RunReport(
        steps=len(records),
        ok_steps=ok,
        rejected_steps=len(records) - ok,
        outcome_counts=outcome_counts,
        vol_score_mean_bps=float(np.mean(scores)),
        vol_score_p95_bps=float(np.percentile(scores, 95)),
        vol_score_max_bps=int(np.max(scores)),
        band_mean_bps=float(np.mean(bands)),
        band_max_bps=int(np.max(bands)),
        interval_min_slots=int(np.min(intervals)),
        hedge_fill_count=last.hedge_fill_count,
        final_avg_slippage_bps=last.avg_fill_slippage_bps,
    )
