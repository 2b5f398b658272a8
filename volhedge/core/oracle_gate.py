# =============================================================================
# VOLHEDGE v1.0.0 -- ORACLE GATE
# File:   volhedge/core/oracle_gate.py
# =============================================================================
#
# SCOPE
# -----
# Validates externally pushed price observations, selects the feed per
# OracleFeedChoice, maintains the EMA price and the sticky health flag, and
# forwards accepted prices to the volatility engine.
#
# A failed observation never raises: the gate acts as a circuit breaker and
# marks the oracle DEGRADED. Dependent operations (policy update, hedge
# request) consult the health flag. Malformed input (non-int fields, unknown
# feed) is rejected earlier, when the PriceObservation is constructed, with
# ParamValidationError.
#
# VALIDATION ORDER (first failure wins)
# -------------------------------------
#   1. sanity       0 < price <= MAX_PRICE_FP
#   2. staleness    publish_time > 0, publish_time <= now,
#                   now - publish_time <= max_price_age_seconds
#   3. confidence   conf * 10000 <= price * max_confidence_bps
#   4. jump         |price - last| * 10000 <= last * max_price_jump_bps
#                   (skipped until a first price has been accepted)
#
# EMA
# ---
#   ema = ema * (10000 - k) / 10000 + price * k / 10000,  k = EMA_SMOOTHING_BPS
#   The first accepted price seeds the EMA.
#
# DETERMINISM CONSTRAINTS
# -----------------------
# DET-01  Integer arithmetic only.
# DET-02  now is the caller-supplied unix_time; no clock reads.
# =============================================================================

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Mapping, Optional, Tuple

from volhedge.utils.constants import BPS_DENOM, EMA_SMOOTHING_BPS, MAX_PRICE_FP
from volhedge.core.risk_layer.domain import (
    FeedId,
    OracleFeedChoice,
    OracleHealth,
    OracleRejectReason,
    VaultParams,
)
from volhedge.core.risk_layer.exceptions import ParamValidationError
from volhedge.core.state_layer import VaultEvent, VaultState
from volhedge.core.volatility_engine import record_return


# =============================================================================
# SECTION 1 -- TYPES
# =============================================================================

@dataclass(frozen=True)
class PriceObservation:
    """
    One reading from a price feed, already decoded to 1e6 fixed point.

    feed_id:        which feed produced it.
    price_fp:       price, 1e6 scale.
    confidence_fp:  confidence interval half-width, 1e6 scale.
    publish_time:   unix seconds the feed published the price.
    """

    feed_id:       FeedId
    price_fp:      int
    confidence_fp: int
    publish_time:  int

    def __post_init__(self) -> None:
        if not isinstance(self.feed_id, FeedId):
            raise ParamValidationError(
                field_name="feed_id",
                value=self.feed_id,
                constraint="must be a FeedId member",
            )
        for name in ("price_fp", "confidence_fp", "publish_time"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int):
                raise ParamValidationError(
                    field_name=name,
                    value=value,
                    constraint="must be an int",
                )


@dataclass(frozen=True)
class GateVerdict:
    """Outcome of gating. observation is set only when accepted."""

    accepted:      bool
    observation:   Optional[PriceObservation]
    reject_reason: Optional[OracleRejectReason]
    rejected_feed: Optional[FeedId]


_CANDIDATES = {
    OracleFeedChoice.USD_ONLY: (FeedId.SOL_USD,),
    OracleFeedChoice.USDC_ONLY: (FeedId.SOL_USDC,),
    OracleFeedChoice.AUTO_PREFER_USD_THEN_USDC: (FeedId.SOL_USD, FeedId.SOL_USDC),
}


# =============================================================================
# SECTION 2 -- PURE VALIDATION
# =============================================================================

def candidate_feeds(choice: OracleFeedChoice) -> Tuple[FeedId, ...]:
    return _CANDIDATES[choice]


def validate_observation(
    obs: PriceObservation,
    now: int,
    params: VaultParams,
    last_accepted_price_fp: int,
) -> Optional[OracleRejectReason]:
    """Return None when obs passes every check, else the first failing reason."""
    if obs.price_fp <= 0:
        return OracleRejectReason.NON_POSITIVE_PRICE
    if obs.price_fp > MAX_PRICE_FP:
        return OracleRejectReason.PRICE_OUT_OF_RANGE

    if obs.publish_time <= 0:
        return OracleRejectReason.MISSING_PUBLISH_TIME
    if obs.publish_time > now:
        return OracleRejectReason.PUBLISH_TIME_IN_FUTURE
    if now - obs.publish_time > params.max_price_age_seconds:
        return OracleRejectReason.STALE

    if obs.confidence_fp < 0 or (
        obs.confidence_fp * BPS_DENOM > obs.price_fp * params.max_confidence_bps
    ):
        return OracleRejectReason.CONFIDENCE_TOO_WIDE

    if last_accepted_price_fp > 0:
        jump = abs(obs.price_fp - last_accepted_price_fp) * BPS_DENOM
        if jump > last_accepted_price_fp * params.max_price_jump_bps:
            return OracleRejectReason.PRICE_JUMP

    return None


def select_observation(
    observations: Mapping[FeedId, PriceObservation],
    now: int,
    params: VaultParams,
    last_accepted_price_fp: int,
) -> GateVerdict:
    """
    Walk the candidate feeds in preference order; first valid one wins.

    On total failure the verdict reports the first candidate's reason.
    """
    first_reason: Optional[OracleRejectReason] = None
    first_feed: Optional[FeedId] = None
    for feed in candidate_feeds(params.oracle_feed_choice):
        obs = observations.get(feed)
        if obs is None:
            reason: Optional[OracleRejectReason] = OracleRejectReason.FEED_UNAVAILABLE
        else:
            reason = validate_observation(obs, now, params, last_accepted_price_fp)
        if reason is None:
            return GateVerdict(True, obs, None, None)
        if first_reason is None:
            first_reason, first_feed = reason, feed
    return GateVerdict(False, None, first_reason, first_feed)


def update_ema(prev_ema_fp: int, price_fp: int) -> int:
    if prev_ema_fp <= 0:
        return price_fp
    return (
        prev_ema_fp * (BPS_DENOM - EMA_SMOOTHING_BPS) // BPS_DENOM
        + price_fp * EMA_SMOOTHING_BPS // BPS_DENOM
    )


# =============================================================================
# SECTION 3 -- STATE TRANSITION
# =============================================================================

def apply_price_update(
    state: VaultState,
    observations: Mapping[FeedId, PriceObservation],
    slot: int,
    now: int,
) -> Tuple[VaultState, Tuple[VaultEvent, ...]]:
    """
    Gate the observations and update the oracle snapshot.

    Rejected: health -> DEGRADED, last_reject_reason recorded, nothing else
    changes. Accepted: snapshot + EMA updated, return recorded.
    """
    oracle = state.oracle
    verdict = select_observation(observations, now, state.params, oracle.last_accepted_price_fp)

    obs = verdict.observation
    if not verdict.accepted or obs is None:
        degraded = replace(
            oracle,
            health=OracleHealth.DEGRADED,
            last_reject_reason=verdict.reject_reason,
        )
        event = VaultEvent(
            "OracleDegraded",
            {
                "feed": verdict.rejected_feed.value if verdict.rejected_feed else None,
                "reason": verdict.reject_reason.value if verdict.reject_reason else None,
            },
        )
        return replace(state, oracle=degraded), (event,)

    ema = update_ema(oracle.ema_price_fp, obs.price_fp)
    accepted = replace(
        oracle,
        spot_price_fp=obs.price_fp,
        ema_price_fp=ema,
        confidence_fp=obs.confidence_fp,
        publish_time=obs.publish_time,
        feed_used=obs.feed_id,
        health=OracleHealth.HEALTHY,
        last_reject_reason=None,
        last_accepted_price_fp=obs.price_fp,
    )
    new_state = replace(state, oracle=accepted)
    events = (
        VaultEvent(
            "OraclePriceUpdated",
            {"feed_used": obs.feed_id.value, "price_fp": obs.price_fp, "ema_fp": ema},
        ),
    )
    new_state, vol_events = record_return(new_state, obs.price_fp, slot)
    return new_state, events + vol_events


__all__ = [
    "PriceObservation",
    "GateVerdict",
    "candidate_feeds",
    "validate_observation",
    "select_observation",
    "update_ema",
    "apply_price_update",
]
