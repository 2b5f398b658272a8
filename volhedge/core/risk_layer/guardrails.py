# =============================================================================
# VOLHEDGE v1.0.0 -- RISK & CONTROL LAYER
# File:   volhedge/core/risk_layer/guardrails.py
# =============================================================================
#
# SCOPE
# -----
# Risk guardrails over the simulated exposures:
#   - stake cap and reserve ratio on deposit_and_stake
#   - hedge notional cap and per-SOL leverage ceiling on hedge sizing
#   - NAV computation
#
# TWO SIZING POLICIES
# -------------------
#   clamp  -- clamp_to_notional_cap: the hedge TARGET computed at request
#             time is silently clamped to +-max_abs_hedge_notional_usd.
#   reject -- enforce_leverage_ceiling / enforce_notional_cap: realized
#             positions (and the unclamped request target, for leverage)
#             that break a limit raise a GuardrailViolationError.
#
# DETERMINISM CONSTRAINTS
# -----------------------
# DET-01  Integer arithmetic only. Reserve ratio compared by cross
#         multiplication; no division in the check.
# DET-02  Pure functions of explicit inputs.
# =============================================================================

from __future__ import annotations

from dataclasses import replace
from typing import Any, Tuple

from volhedge.utils.constants import BPS_DENOM, FP_SCALE, PRICE_FP_SCALE
from volhedge.core.state_layer import VaultEvent, VaultState
from .domain import VaultParams
from .exceptions import (
    CapExceededError,
    LeverageExceededError,
    OracleNotReadyError,
    ParamValidationError,
    ReserveTooLowError,
)


# =============================================================================
# SECTION 1 -- INPUT CHECKS
# =============================================================================

def require_positive_amount(field_name: str, value: Any) -> None:
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise ParamValidationError(field_name, value, "must be an int > 0")


# =============================================================================
# SECTION 2 -- PURE CHECKS
# =============================================================================

def reserve_ratio_ok(reserve_sol: int, staked_sol: int, min_reserve_bps: int) -> bool:
    """reserve * 10000 >= staked * min_reserve_bps, exact."""
    return reserve_sol * BPS_DENOM >= staked_sol * min_reserve_bps


def enforce_reserve_ratio(reserve_sol: int, staked_sol: int, min_reserve_bps: int) -> None:
    if not reserve_ratio_ok(reserve_sol, staked_sol, min_reserve_bps):
        raise ReserveTooLowError(reserve_sol, staked_sol, min_reserve_bps)


def enforce_stake_cap(staked_sol: int, max_staked_sol: int) -> None:
    if staked_sol > max_staked_sol:
        raise CapExceededError("staked_sol", staked_sol, max_staked_sol)


def leverage_ceiling_usd(staked_sol: int, max_hedge_per_sol_usd_fp: int) -> int:
    return staked_sol * max_hedge_per_sol_usd_fp // FP_SCALE


def enforce_leverage_ceiling(
    hedge_notional_usd: int,
    staked_sol: int,
    max_hedge_per_sol_usd_fp: int,
) -> None:
    """
    Reject policy: |hedge| <= staked * max_hedge_per_sol / 1e6.

    With nothing staked only a zero hedge is allowed.
    """
    ceiling = leverage_ceiling_usd(staked_sol, max_hedge_per_sol_usd_fp)
    if staked_sol == 0 and hedge_notional_usd != 0:
        raise LeverageExceededError(hedge_notional_usd, staked_sol, 0)
    if abs(hedge_notional_usd) > ceiling:
        raise LeverageExceededError(hedge_notional_usd, staked_sol, ceiling)


def enforce_notional_cap(hedge_notional_usd: int, max_abs_hedge_notional_usd: int) -> None:
    """Reject policy for realized positions."""
    if abs(hedge_notional_usd) > max_abs_hedge_notional_usd:
        raise CapExceededError(
            "hedge_notional_usd", hedge_notional_usd, max_abs_hedge_notional_usd
        )


def clamp_to_notional_cap(target_notional_usd: int, max_abs_hedge_notional_usd: int) -> int:
    """Clamp policy for computed targets."""
    if target_notional_usd > max_abs_hedge_notional_usd:
        return max_abs_hedge_notional_usd
    if target_notional_usd < -max_abs_hedge_notional_usd:
        return -max_abs_hedge_notional_usd
    return target_notional_usd


def check_exposures_within(state: VaultState, params: VaultParams) -> None:
    """Current exposures must already satisfy a proposed set of caps."""
    enforce_stake_cap(state.staked_sol, params.max_staked_sol)
    enforce_notional_cap(state.hedge_notional_usd, params.max_abs_hedge_notional_usd)
    enforce_leverage_ceiling(
        state.hedge_notional_usd, state.staked_sol, params.max_hedge_per_sol_usd_fp
    )
    enforce_reserve_ratio(state.reserve_sol, state.staked_sol, params.min_reserve_bps)


def compute_nav_usd(state: VaultState) -> int:
    """(staked + reserve) valued at spot. Raises when holdings exist but no price."""
    holdings = state.staked_sol + state.reserve_sol
    if state.oracle.spot_price_fp <= 0:
        if holdings == 0:
            return 0
        raise OracleNotReadyError("no accepted price to value holdings.")
    return holdings * state.oracle.spot_price_fp // PRICE_FP_SCALE


# =============================================================================
# SECTION 3 -- STATE TRANSITIONS
# =============================================================================

def deposit_reserve(
    state: VaultState,
    amount_sol: int,
) -> Tuple[VaultState, Tuple[VaultEvent, ...]]:
    require_positive_amount("amount_sol", amount_sol)
    reserve = state.reserve_sol + amount_sol
    event = VaultEvent("ReserveUpdated", {"amount_sol": amount_sol, "reserve_sol": reserve})
    return replace(state, reserve_sol=reserve), (event,)


def deposit_and_stake(
    state: VaultState,
    amount_sol: int,
) -> Tuple[VaultState, Tuple[VaultEvent, ...]]:
    """Stake amount_sol: cap check first, then the reserve ratio on the new total."""
    require_positive_amount("amount_sol", amount_sol)
    staked = state.staked_sol + amount_sol
    enforce_stake_cap(staked, state.params.max_staked_sol)
    enforce_reserve_ratio(state.reserve_sol, staked, state.params.min_reserve_bps)
    event = VaultEvent("StakeAllocated", {"amount_sol": amount_sol, "staked_sol": staked})
    return replace(state, staked_sol=staked), (event,)


__all__ = [
    "require_positive_amount",
    "reserve_ratio_ok",
    "enforce_reserve_ratio",
    "enforce_stake_cap",
    "leverage_ceiling_usd",
    "enforce_leverage_ceiling",
    "enforce_notional_cap",
    "clamp_to_notional_cap",
    "check_exposures_within",
    "compute_nav_usd",
    "deposit_reserve",
    "deposit_and_stake",
]
