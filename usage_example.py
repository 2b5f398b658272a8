# usage_example.py
# Minimal usage example for volhedge/orchestrator/vault_engine.py.
# This file is not part of the volhedge package. For reference only.

from volhedge.core.oracle_gate import PriceObservation
from volhedge.core.risk_layer import (
    CallContext,
    ExtremeDriftAction,
    FeedId,
    OracleFeedChoice,
    VaultParams,
    VolMode,
)
from volhedge.orchestrator.vault_engine import VaultEngine

params = VaultParams(
    min_band_bps=100, max_band_bps=1100,
    min_interval_slots=10, max_interval_slots=110,
    vol_weight_realized_bps=6000, vol_weight_implied_bps=4000,
    min_samples=2, min_return_spacing_slots=1,
    policy_update_min_slots=10, max_policy_slew_bps=10000, hysteresis_bps=100,
    vol_mode=VolMode.STDEV, ewma_alpha_bps=1000,
    max_staked_sol=10_000, max_abs_hedge_notional_usd=1_000_000,
    max_hedge_per_sol_usd_fp=500_000_000, min_reserve_bps=1000,
    oracle_feed_choice=OracleFeedChoice.AUTO_PREFER_USD_THEN_USDC,
    max_price_age_seconds=60, max_confidence_bps=100, max_price_jump_bps=2000,
    target_delta_bps=10000, lst_beta_fp=1_000_000,
    max_confirm_delay_slots=20,
    extreme_drift_bps=0, extreme_drift_action=ExtremeDriftAction.REQUIRE_ACK,
    max_updates_per_epoch=10, keeper_bond_required_lamports=0,
)

engine = VaultEngine()
engine.initialize_vault(CallContext("auth", 0, 0), params)
engine.add_keeper("auth", CallContext("auth", 1, 0), "k1")
engine.deposit_reserve("auth", CallContext("auth", 2, 0), 100)
engine.deposit_and_stake("auth", CallContext("auth", 3, 0), 1000)


def push(slot: int, now: int, price_fp: int) -> None:
    obs = PriceObservation(FeedId.SOL_USD, price_fp, 100_000, now)
    engine.update_oracle_price("auth", CallContext("k1", slot, now), {FeedId.SOL_USD: obs})


push(10, 1000, 100_000_000)
push(20, 1010, 110_000_000)
push(30, 1020, 99_000_000)
engine.update_implied_vol("auth", CallContext("k1", 31, 1020), 500)
engine.update_epoch_and_policy("auth", CallContext("k1", 40, 1020))

state = engine.get_vault("auth")
# returns: +10%, -10%  -> stdev 100_000 fp -> realized 1000 bps
# score = (1000 * 6000 + 500 * 4000) / 10000 = 800
# band = 100 + 1000 * 800 / 10000 = 180, interval = 110 - 100 * 800 / 10000 = 102
print(f"realized={state.realized_vol_bps} score={state.vol_score_bps} "
      f"band={state.band_bps} interval={state.min_hedge_interval_slots}")

outcome = engine.request_hedge("auth", CallContext("anyone", 50, 1020))
print(f"request_id={outcome.request_id} target={outcome.target_hedge_notional_usd}")

# Expected output:
# realized=1000 score=800 band=180 interval=102
# request_id=1 target=-99000
