# volhedge/verification/execution_recorder.py
# ExecutionRecorder -- runs a JSON scenario through a fresh VaultEngine and
# records one StepRecord per step.
#
# Scenario format:
#   {
#     "name":      "baseline",
#     "authority": "auth",
#     "init_slot": 0,
#     "params":    { ...VaultParams fields, enums by value... },
#     "steps": [
#       {"op": "update_oracle_price", "caller": "k1", "slot": 10,
#        "unix_time": 1000, "args": {...}, "expect": "OK"},
#       ...
#     ]
#   }
#
# Every step's "op" must name a method in SCENARIO_OPS. Domain errors
# (VaultError) are recorded as the step outcome; anything else propagates.
# No state is shared between recorder instances.

from typing import Any, Callable, Dict, List, Mapping

from volhedge.core.oracle_gate import PriceObservation
from volhedge.core.risk_layer.domain import (
    CallContext,
    ExtremeDriftAction,
    FeedId,
    OracleFeedChoice,
    VaultParams,
    VolMode,
)
from volhedge.core.risk_layer.exceptions import VaultError
from volhedge.orchestrator.vault_engine import VaultEngine
from volhedge.verification.step_record import StepRecord


SCENARIO_OPS = frozenset({
    "deposit_reserve",
    "deposit_and_stake",
    "update_implied_vol",
    "update_carry_inputs",
    "update_oracle_price",
    "update_epoch_and_policy",
    "request_hedge",
    "confirm_hedge",
    "reset_hedge_request",
    "acknowledge_extreme_event",
    "add_keeper",
    "remove_keeper",
    "deposit_keeper_bond",
    "set_policy_bounds",
    "set_policy_stability",
    "set_vol_model",
    "set_vol_weights",
    "set_oracle_config",
    "set_hedge_sizing",
    "set_risk_caps",
    "set_keeper_controls",
    "set_confirm_config",
    "set_paused",
    "set_emergency_withdraw_enabled",
    "set_pending_authority",
    "accept_authority",
    "set_keeper_admin",
})

_ENUM_ARGS: Dict[str, Callable[[Any], Any]] = {
    "vol_mode": VolMode,
    "oracle_feed_choice": OracleFeedChoice,
    "extreme_drift_action": ExtremeDriftAction,
}


class ScenarioError(ValueError):
    """Malformed scenario document. Maps to harness exit code 3."""


def _decode_observations(raw: Mapping[str, Any]) -> Dict[FeedId, PriceObservation]:
    out: Dict[FeedId, PriceObservation] = {}
    for feed_name, body in raw.items():
        try:
            feed = FeedId(feed_name)
        except ValueError:
            raise ScenarioError("unknown feed " + repr(feed_name)) from None
        out[feed] = PriceObservation(
            feed_id=feed,
            price_fp=body["price_fp"],
            confidence_fp=body["confidence_fp"],
            publish_time=body["publish_time"],
        )
    return out


def _decode_args(op: str, raw: Mapping[str, Any]) -> Dict[str, Any]:
    args: Dict[str, Any] = {}
    for key, value in raw.items():
        if key in _ENUM_ARGS:
            value = _ENUM_ARGS[key](value)
        elif key == "observations" and op == "update_oracle_price":
            value = _decode_observations(value)
        args[key] = value
    return args


class ExecutionRecorder:
    """
    Executes scenarios and produces StepRecords for one stage ("ER" / "RE").
    Each call to record_scenario builds a new VaultEngine.
    """

    def __init__(self, stage: str = "ER") -> None:
        if stage not in ("ER", "RE"):
            raise ValueError("stage must be 'ER' or 'RE'; got " + repr(stage))
        self._stage = stage

    def _observe(
        self,
        engine: VaultEngine,
        vault_key: str,
        index: int,
        op: str,
        outcome: str,
        expected: Any,
    ) -> StepRecord:
        state = engine.get_vault(vault_key)
        return StepRecord(
            index=index,
            op=op,
            stage=self._stage,
            outcome=outcome,
            expected=expected,
            state_digest=engine.state_digest(vault_key),
            event_head_hash=engine.logger.head_hash(),
            vol_score_bps=state.vol_score_bps,
            band_bps=state.band_bps,
            min_hedge_interval_slots=state.min_hedge_interval_slots,
            hedge_fill_count=state.hedge.hedge_fill_count,
            avg_fill_slippage_bps=state.hedge.avg_fill_slippage_bps,
        )

    def record_scenario(self, scenario: Mapping[str, Any]) -> List[StepRecord]:
        for key in ("authority", "params", "steps"):
            if key not in scenario:
                raise ScenarioError("scenario is missing '" + key + "'")

        engine = VaultEngine()
        vault_key = scenario["authority"]
        init_ctx = CallContext(vault_key, scenario.get("init_slot", 0), 0)
        engine.initialize_vault(init_ctx, VaultParams.from_mapping(scenario["params"]))
        records: List[StepRecord] = [
            self._observe(engine, vault_key, 0, "initialize_vault", "OK", None)
        ]

        for index, step in enumerate(scenario["steps"], start=1):
            op = step.get("op")
            if op not in SCENARIO_OPS:
                raise ScenarioError("step " + str(index) + ": unknown op " + repr(op))
            ctx = CallContext(step["caller"], step["slot"], step.get("unix_time", 0))
            args = _decode_args(op, step.get("args", {}))
            try:
                getattr(engine, op)(vault_key, ctx, **args)
                outcome = "OK"
            except VaultError as exc:
                outcome = type(exc).__name__
            records.append(
                self._observe(engine, vault_key, index, op, outcome, step.get("expect"))
            )
        return records
