# =============================================================================
# VOLHEDGE v1.0.0 -- POLICY MAPPER
# File:   volhedge/core/policy_mapper.py
# =============================================================================
#
# SCOPE
# -----
# Epoch tick: advances the epoch, recomputes realized vol and the blended
# score, and maps the score onto the two policy outputs:
#
#   band_bps                 = min_band + (max_band - min_band) * score / 10000
#   min_hedge_interval_slots = max_interval - (max_interval - min_interval) * score / 10000
#
# Higher volatility widens the drift band and shortens the hedge interval.
#
# STABILITY CONTROLS (applied in this order)
# ------------------------------------------
#   1. cooldown    slot - last_policy_update_slot >= policy_update_min_slots,
#                  else PolicyCooldownError (no state change).
#   2. degraded    oracle DEGRADED -> band / interval frozen, cooldown clock
#                  not advanced.
#   3. carry bias  expected carry >= +50 bps/day -> targets +2%,
#                  <= -50 bps/day -> targets -2%; result clamped into bounds.
#   4. hysteresis  targets adopted only if |score - last_used| >= hysteresis_bps
#                  (always on the first update).
#   5. slew        per-update change capped at max(current * slew / 10000, 1).
#
# DETERMINISM CONSTRAINTS
# -----------------------
# DET-01  Integer arithmetic only.
# DET-02  All inputs explicit.
# =============================================================================

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Optional, Tuple

from volhedge.utils.constants import (
    BPS_DENOM,
    CARRY_BIAS_BPS,
    CARRY_BIAS_THRESHOLD_BPS,
    PRICE_FP_SCALE,
)
from volhedge.core.fixed_point import clamp, div_trunc
from volhedge.core.risk_layer.exceptions import PolicyCooldownError
from volhedge.core.score_blender import blend_vol_score
from volhedge.core.state_layer import VaultEvent, VaultState
from volhedge.core.volatility_engine import compute_realized_vol_bps
from volhedge.core.keeper_registry import reset_epoch_counters


# =============================================================================
# SECTION 1 -- PURE MAPPING HELPERS
# =============================================================================

def map_by_bps(score_bps: int, lo: int, hi: int) -> int:
    """lo at score 0, hi at score 10000."""
    return lo + (hi - lo) * score_bps // BPS_DENOM


def map_inverse_by_bps(score_bps: int, lo: int, hi: int) -> int:
    """hi at score 0, lo at score 10000."""
    return hi - (hi - lo) * score_bps // BPS_DENOM


def carry_bias_bps(expected_carry_bps: int) -> int:
    if expected_carry_bps >= CARRY_BIAS_THRESHOLD_BPS:
        return CARRY_BIAS_BPS
    if expected_carry_bps <= -CARRY_BIAS_THRESHOLD_BPS:
        return -CARRY_BIAS_BPS
    return 0


def apply_bias(value: int, bias_bps: int, lo: int, hi: int) -> int:
    """Scale value by (1 + bias) and clamp back into [lo, hi]."""
    biased = value + div_trunc(value * bias_bps, BPS_DENOM)
    return clamp(biased, lo, hi)


def slew_limit(current: int, target: int, max_slew_bps: int) -> int:
    """
    Move current toward target by at most max(current * slew / 10000, 1).

    A current value of 0 has no scale to slew against and jumps to target.
    """
    if current == 0:
        return target
    max_delta = max(current * max_slew_bps // BPS_DENOM, 1)
    if target > current:
        return min(target, current + max_delta)
    return max(target, current - max_delta)


def hysteresis_passes(score_bps: int, last_used_bps: int, hysteresis_bps: int) -> bool:
    if last_used_bps == 0:
        return True
    return abs(score_bps - last_used_bps) >= hysteresis_bps


# =============================================================================
# SECTION 2 -- POLICY DECISION
# =============================================================================

@dataclass(frozen=True)
class PolicyDecision:
    """
    Result of mapping one vol score.

    target_*   : bias-adjusted targets before hysteresis / slew.
    band_bps / interval_slots : values to store after hysteresis and slew.
    hysteresis_pass : whether the score moved enough to adopt the targets.
    """

    target_band_bps:       int
    target_interval_slots: int
    band_bps:              int
    interval_slots:        int
    hysteresis_pass:       bool


def decide_policy(state: VaultState, score_bps: int) -> PolicyDecision:
    p = state.params
    bias = carry_bias_bps(state.expected_carry_bps)
    target_band = apply_bias(
        map_by_bps(score_bps, p.min_band_bps, p.max_band_bps),
        bias, p.min_band_bps, p.max_band_bps,
    )
    target_interval = apply_bias(
        map_inverse_by_bps(score_bps, p.min_interval_slots, p.max_interval_slots),
        bias, p.min_interval_slots, p.max_interval_slots,
    )

    passed = hysteresis_passes(score_bps, state.last_vol_score_used_for_policy, p.hysteresis_bps)
    if not passed:
        return PolicyDecision(
            target_band, target_interval,
            state.band_bps, state.min_hedge_interval_slots, False,
        )

    band = clamp(
        slew_limit(state.band_bps, target_band, p.max_policy_slew_bps),
        p.min_band_bps, p.max_band_bps,
    )
    interval = clamp(
        slew_limit(state.min_hedge_interval_slots, target_interval, p.max_policy_slew_bps),
        p.min_interval_slots, p.max_interval_slots,
    )
    return PolicyDecision(target_band, target_interval, band, interval, True)


def remap_to_bounds(state: VaultState) -> Tuple[int, int]:
    """
    Band / interval after a bounds change: re-map the current score,
    slew from the current values, clamp into the new bounds. Hysteresis is
    not consulted.
    """
    p = state.params
    target_band = map_by_bps(state.vol_score_bps, p.min_band_bps, p.max_band_bps)
    target_interval = map_inverse_by_bps(
        state.vol_score_bps, p.min_interval_slots, p.max_interval_slots
    )
    band = clamp(
        slew_limit(state.band_bps, target_band, p.max_policy_slew_bps),
        p.min_band_bps, p.max_band_bps,
    )
    interval = clamp(
        slew_limit(state.min_hedge_interval_slots, target_interval, p.max_policy_slew_bps),
        p.min_interval_slots, p.max_interval_slots,
    )
    return band, interval


def nav_usd_or_none(state: VaultState) -> Optional[int]:
    spot = state.oracle.spot_price_fp
    if spot <= 0:
        return None
    return (state.staked_sol + state.reserve_sol) * spot // PRICE_FP_SCALE


# =============================================================================
# SECTION 3 -- STATE TRANSITION
# =============================================================================

def update_epoch_and_policy(
    state: VaultState,
    slot: int,
) -> Tuple[VaultState, Tuple[VaultEvent, ...]]:
    """
    One epoch tick. Raises PolicyCooldownError inside the cooldown window.

    The epoch always advances and keeper counters reset. With a degraded
    oracle the policy outputs are frozen and the cooldown clock is left
    where it was, so the next healthy tick is not delayed.
    """
    p = state.params
    last = state.last_policy_update_slot
    if last is not None and slot - last < p.policy_update_min_slots:
        raise PolicyCooldownError(slot, last, p.policy_update_min_slots)

    epoch = state.epoch + 1
    state = replace(state, epoch=epoch, keepers=reset_epoch_counters(state.keepers))
    events = [VaultEvent("EpochUpdated", {"epoch": epoch})]

    if state.oracle.oracle_degraded:
        events.append(
            VaultEvent(
                "PolicyFrozen",
                {
                    "band_bps": state.band_bps,
                    "min_hedge_interval_slots": state.min_hedge_interval_slots,
                    "reason": state.oracle.last_reject_reason.value
                    if state.oracle.last_reject_reason else None,
                },
            )
        )
        events.append(VaultEvent("NavSnapshot", {"nav_usd": nav_usd_or_none(state)}))
        return state, tuple(events)

    realized = compute_realized_vol_bps(
        p.vol_mode, state.returns, state.ewma_variance_fp2,
        p.min_samples, state.realized_vol_bps,
    )
    score = blend_vol_score(
        realized, state.implied_vol_bps,
        p.vol_weight_realized_bps, p.vol_weight_implied_bps,
    )
    state = replace(state, realized_vol_bps=realized, vol_score_bps=score)
    decision = decide_policy(state, score)

    if decision.hysteresis_pass:
        state = replace(
            state,
            band_bps=decision.band_bps,
            min_hedge_interval_slots=decision.interval_slots,
            last_vol_score_used_for_policy=score,
            last_policy_update_slot=slot,
        )
    else:
        state = replace(state, last_policy_update_slot=slot)

    events.append(
        VaultEvent(
            "PolicyUpdated",
            {
                "realized_vol_bps": realized,
                "vol_score_bps": score,
                "band_bps": state.band_bps,
                "min_hedge_interval_slots": state.min_hedge_interval_slots,
                "target_band_bps": decision.target_band_bps,
                "target_interval_slots": decision.target_interval_slots,
                "hysteresis_pass": decision.hysteresis_pass,
            },
        )
    )
    events.append(VaultEvent("NavSnapshot", {"nav_usd": nav_usd_or_none(state)}))
    return state, tuple(events)


__all__ = [
    "map_by_bps",
    "map_inverse_by_bps",
    "carry_bias_bps",
    "apply_bias",
    "slew_limit",
    "hysteresis_passes",
    "PolicyDecision",
    "decide_policy",
    "remap_to_bounds",
    "nav_usd_or_none",
    "update_epoch_and_policy",
]
