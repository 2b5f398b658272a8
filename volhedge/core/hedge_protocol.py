# =============================================================================
# VOLHEDGE v1.0.0 -- HEDGE PROTOCOL
# File:   volhedge/core/hedge_protocol.py
# =============================================================================
#
# SCOPE
# -----
# Two-phase hedge intent / fulfillment protocol.
#
#   Idle --request_hedge--> Requested --confirm_hedge--> Idle
#                           Requested --(expiry, next request)--> Idle + missed
#                           Requested --reset_hedge_request----> Idle + missed
#
# request_hedge is permissionless; the checks decide whether a hedge is due.
# confirm_hedge is a privileged keeper call reporting the realized fill.
#
# REQUEST CHECKS (in order)
# -------------------------
#   1. not paused
#   2. no extreme drift event pending acknowledgement
#   3. oracle healthy with a positive EMA
#   4. outstanding request: auto-expired when older than the confirm delay,
#      otherwise RequestOutstandingError
#   5. slot - last_hedge_slot >= min_hedge_interval_slots
#   6. |ema - ref| * 10000 >= ref * band_bps   (ref = EMA at last request)
#   7. extreme drift circuit breaker: fires when extreme_drift_bps > 0, a
#      reference exists and drift_bps >= extreme_drift_bps (inclusive;
#      drift_bps is capped at 10000).
#   8. leverage ceiling on the raw target (reject), notional cap (clamp)
#
# SIZING
# ------
#   target = -(staked * spot / 1e6 * target_delta_bps / 10000 * lst_beta_fp / 1e6)
#   Negative: the hedge is a short against the staked long.
#
# DETERMINISM CONSTRAINTS
# -----------------------
# DET-01  Integer arithmetic only.
# DET-02  Request ids are monotonic; never reused.
# =============================================================================

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import List, Optional, Tuple

from volhedge.utils.constants import BPS_DENOM, FP_SCALE, MAX_PRICE_FP, PRICE_FP_SCALE
from volhedge.core.fixed_point import relative_change_bps
from volhedge.core.risk_layer.domain import ExtremeDriftAction
from volhedge.core.risk_layer.exceptions import (
    ConfirmExpiredError,
    DriftNotMetError,
    ExtremeEventPendingError,
    HedgeTooSoonError,
    NoOutstandingRequestError,
    OracleDegradedError,
    OracleNotReadyError,
    ParamValidationError,
    PausedError,
    RequestOutstandingError,
    WrongRequestIdError,
)
from volhedge.core.risk_layer.guardrails import (
    clamp_to_notional_cap,
    enforce_leverage_ceiling,
    enforce_notional_cap,
)
from volhedge.core.state_layer import HedgeBook, VaultEvent, VaultState


# =============================================================================
# SECTION 1 -- OUTCOMES
# =============================================================================

@dataclass(frozen=True)
class HedgeRequestOutcome:
    """
    request_id is None when the circuit breaker fired instead of issuing a
    request (extreme_event is then True).
    """

    request_id:                Optional[int]
    drift_bps:                 int
    target_hedge_notional_usd: int
    delta_gap_usd:             int
    extreme_event:             bool
    expired_request_id:        Optional[int]


@dataclass(frozen=True)
class HedgeConfirmOutcome:
    request_id:            int
    hedge_notional_usd:    int
    slippage_bps:          int
    avg_fill_slippage_bps: int
    hedge_fill_count:      int


# =============================================================================
# SECTION 2 -- PURE HELPERS
# =============================================================================

def compute_target_hedge_notional(
    staked_sol: int,
    spot_price_fp: int,
    target_delta_bps: int,
    lst_beta_fp: int,
) -> int:
    value_usd = staked_sol * spot_price_fp // PRICE_FP_SCALE
    delta_usd = value_usd * target_delta_bps // BPS_DENOM
    return -(delta_usd * lst_beta_fp // FP_SCALE)


def drift_exceeds_band(ema_price_fp: int, reference_fp: int, band_bps: int) -> bool:
    if reference_fp <= 0:
        return True
    return abs(ema_price_fp - reference_fp) * BPS_DENOM >= reference_fp * band_bps


def compute_slippage_bps(fill_price_fp: int, reference_fp: int) -> int:
    return relative_change_bps(fill_price_fp, reference_fp)


def confirm_window_expired(hedge: HedgeBook, slot: int, max_confirm_delay_slots: int) -> bool:
    return slot - hedge.request_slot > max_confirm_delay_slots


# =============================================================================
# SECTION 3 -- request_hedge
# =============================================================================

def request_hedge(
    state: VaultState,
    slot: int,
) -> Tuple[VaultState, Tuple[VaultEvent, ...], HedgeRequestOutcome]:
    p = state.params
    if state.paused:
        raise PausedError("request_hedge")
    if state.hedge.extreme_event_pending:
        raise ExtremeEventPendingError("request_hedge")

    oracle = state.oracle
    if oracle.oracle_degraded:
        raise OracleDegradedError(
            oracle.last_reject_reason.value if oracle.last_reject_reason else None
        )
    if not oracle.oracle_ok or oracle.ema_price_fp <= 0:
        raise OracleNotReadyError("no accepted oracle price yet.")

    events: List[VaultEvent] = []
    hedge = state.hedge
    expired_id: Optional[int] = None
    if hedge.request_outstanding:
        if not confirm_window_expired(hedge, slot, p.max_confirm_delay_slots):
            raise RequestOutstandingError(hedge.last_hedge_request_id, hedge.request_slot)
        expired_id = hedge.last_hedge_request_id
        hedge = replace(
            hedge,
            request_outstanding=False,
            missed_confirms=hedge.missed_confirms + 1,
        )
        events.append(
            VaultEvent(
                "HedgeConfirmMissed",
                {"request_id": expired_id, "missed_confirms": hedge.missed_confirms},
            )
        )

    if hedge.last_hedge_slot is not None:
        if slot - hedge.last_hedge_slot < state.min_hedge_interval_slots:
            raise HedgeTooSoonError(slot, hedge.last_hedge_slot, state.min_hedge_interval_slots)

    reference = hedge.last_hedge_ema_price_fp
    drift_bps = relative_change_bps(oracle.ema_price_fp, reference)
    if not drift_exceeds_band(oracle.ema_price_fp, reference, state.band_bps):
        raise DriftNotMetError(drift_bps, state.band_bps)

    if (
        p.extreme_drift_bps > 0
        and reference > 0
        and drift_bps >= p.extreme_drift_bps
    ):
        if not hedge.extreme_event_acknowledged:
            hedge = replace(hedge, extreme_event_pending=True)
            paused = state.paused or p.extreme_drift_action is ExtremeDriftAction.PAUSE
            new_state = replace(state, hedge=hedge, paused=paused)
            events.append(
                VaultEvent(
                    "ExtremeDriftFlagged",
                    {
                        "drift_bps": drift_bps,
                        "action": p.extreme_drift_action.value,
                        "paused": paused,
                    },
                )
            )
            outcome = HedgeRequestOutcome(None, drift_bps, 0, 0, True, expired_id)
            return new_state, tuple(events), outcome

    raw_target = compute_target_hedge_notional(
        state.staked_sol, oracle.spot_price_fp, p.target_delta_bps, p.lst_beta_fp
    )
    enforce_leverage_ceiling(raw_target, state.staked_sol, p.max_hedge_per_sol_usd_fp)
    target = clamp_to_notional_cap(raw_target, p.max_abs_hedge_notional_usd)
    delta_gap = target - state.hedge_notional_usd

    request_id = hedge.last_hedge_request_id + 1
    hedge = replace(
        hedge,
        request_outstanding=True,
        last_hedge_request_id=request_id,
        request_slot=slot,
        target_hedge_notional_usd=target,
        spot_price_at_request_fp=oracle.spot_price_fp,
        last_hedge_slot=slot,
        last_hedge_ema_price_fp=oracle.ema_price_fp,
        extreme_event_acknowledged=False,
    )
    events.append(
        VaultEvent(
            "HedgeRequested",
            {
                "request_id": request_id,
                "drift_bps": drift_bps,
                "target_hedge_notional_usd": target,
                "delta_gap_usd": delta_gap,
            },
        )
    )
    outcome = HedgeRequestOutcome(request_id, drift_bps, target, delta_gap, False, expired_id)
    return replace(state, hedge=hedge), tuple(events), outcome


# =============================================================================
# SECTION 4 -- confirm_hedge
# =============================================================================

def confirm_hedge(
    state: VaultState,
    slot: int,
    request_id: int,
    hedge_delta_usd: int,
    fill_price_fp: int,
) -> Tuple[VaultState, Tuple[VaultEvent, ...], HedgeConfirmOutcome]:
    """
    Apply a realized fill. An expired confirmation is rejected and leaves
    the request outstanding; the next request_hedge expires it.
    """
    p = state.params
    if state.paused:
        raise PausedError("confirm_hedge")
    for name, value in (("request_id", request_id), ("hedge_delta_usd", hedge_delta_usd)):
        if isinstance(value, bool) or not isinstance(value, int):
            raise ParamValidationError(name, value, "must be an int")
    if (
        isinstance(fill_price_fp, bool)
        or not isinstance(fill_price_fp, int)
        or not (0 < fill_price_fp <= MAX_PRICE_FP)
    ):
        raise ParamValidationError("fill_price_fp", fill_price_fp, "must be in (0, MAX_PRICE_FP]")

    hedge = state.hedge
    if not hedge.request_outstanding:
        raise NoOutstandingRequestError("confirm_hedge")
    if request_id != hedge.last_hedge_request_id:
        raise WrongRequestIdError(request_id, hedge.last_hedge_request_id)
    if confirm_window_expired(hedge, slot, p.max_confirm_delay_slots):
        raise ConfirmExpiredError(request_id, slot, hedge.request_slot, p.max_confirm_delay_slots)

    new_hedge_notional = state.hedge_notional_usd + hedge_delta_usd
    enforce_notional_cap(new_hedge_notional, p.max_abs_hedge_notional_usd)
    enforce_leverage_ceiling(new_hedge_notional, state.staked_sol, p.max_hedge_per_sol_usd_fp)

    slippage = compute_slippage_bps(fill_price_fp, hedge.spot_price_at_request_fp)
    n = hedge.hedge_fill_count
    avg = (hedge.avg_fill_slippage_bps * n + slippage) // (n + 1)
    hedge = replace(
        hedge,
        request_outstanding=False,
        hedge_fill_count=n + 1,
        avg_fill_slippage_bps=avg,
        last_fill_slot=slot,
    )
    new_state = replace(state, hedge=hedge, hedge_notional_usd=new_hedge_notional)
    event = VaultEvent(
        "HedgeConfirmed",
        {
            "request_id": request_id,
            "hedge_delta_usd": hedge_delta_usd,
            "hedge_notional_usd": new_hedge_notional,
            "slippage_bps": slippage,
            "avg_fill_slippage_bps": avg,
        },
    )
    outcome = HedgeConfirmOutcome(request_id, new_hedge_notional, slippage, avg, n + 1)
    return new_state, (event,), outcome


# =============================================================================
# SECTION 5 -- AUTHORITY RECOVERY
# =============================================================================

def reset_hedge_request(state: VaultState) -> Tuple[VaultState, Tuple[VaultEvent, ...]]:
    hedge = state.hedge
    if not hedge.request_outstanding:
        raise NoOutstandingRequestError("reset_hedge_request")
    hedge = replace(
        hedge,
        request_outstanding=False,
        missed_confirms=hedge.missed_confirms + 1,
    )
    event = VaultEvent(
        "HedgeConfirmMissed",
        {"request_id": hedge.last_hedge_request_id, "missed_confirms": hedge.missed_confirms},
    )
    return replace(state, hedge=hedge), (event,)


def acknowledge_extreme_event(state: VaultState) -> Tuple[VaultState, Tuple[VaultEvent, ...]]:
    """Clear the pending flag and allow the next request past the breaker once."""
    if not state.hedge.extreme_event_pending:
        raise ParamValidationError(
            "extreme_event_pending", False, "must be True to acknowledge"
        )
    hedge = replace(
        state.hedge,
        extreme_event_pending=False,
        extreme_event_acknowledged=True,
    )
    return replace(state, hedge=hedge), (VaultEvent("ExtremeDriftAcknowledged", {}),)


__all__ = [
    "HedgeRequestOutcome",
    "HedgeConfirmOutcome",
    "compute_target_hedge_notional",
    "drift_exceeds_band",
    "compute_slippage_bps",
    "confirm_window_expired",
    "request_hedge",
    "confirm_hedge",
    "reset_hedge_request",
    "acknowledge_extreme_event",
]
