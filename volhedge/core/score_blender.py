# volhedge/core/score_blender.py
# Blends realized and implied volatility into the single vol score that
# drives the policy mapper, and records the keeper-fed market inputs
# (implied vol, carry rates).
#
# Score:
#   vol_score_bps = clamp((realized * w_realized + implied * w_implied) / 10000,
#                         0, 10000)
# With weights summing to 10000 and both inputs in [0, 10000] the clamp is
# a no-op; it is kept so that the output range never depends on params.

from __future__ import annotations

from dataclasses import replace
from typing import Tuple

from volhedge.utils.constants import BPS_DENOM
from volhedge.core.fixed_point import clamp_bps
from volhedge.core.risk_layer.exceptions import ParamValidationError
from volhedge.core.state_layer import VaultEvent, VaultState


def blend_vol_score(
    realized_vol_bps: int,
    implied_vol_bps: int,
    weight_realized_bps: int,
    weight_implied_bps: int,
) -> int:
    """
    >>> blend_vol_score(6000, 500, 6000, 4000)
    3800
    """
    weighted = (
        realized_vol_bps * weight_realized_bps
        + implied_vol_bps * weight_implied_bps
    )
    return clamp_bps(weighted // BPS_DENOM)


def set_implied_vol(
    state: VaultState,
    implied_vol_bps: int,
) -> Tuple[VaultState, Tuple[VaultEvent, ...]]:
    """Store implied vol clamped to [0, 10000]. The score is blended at epoch tick."""
    if isinstance(implied_vol_bps, bool) or not isinstance(implied_vol_bps, int):
        raise ParamValidationError("implied_vol_bps", implied_vol_bps, "must be an int")
    implied = clamp_bps(implied_vol_bps)
    event = VaultEvent("ImpliedVolUpdated", {"implied_vol_bps": implied})
    return replace(state, implied_vol_bps=implied), (event,)


def set_carry_inputs(
    state: VaultState,
    funding_bps_per_day: int,
    borrow_bps_per_day: int,
    staking_bps_per_day: int,
) -> Tuple[VaultState, Tuple[VaultEvent, ...]]:
    for name, value in (
        ("funding_bps_per_day", funding_bps_per_day),
        ("borrow_bps_per_day", borrow_bps_per_day),
        ("staking_bps_per_day", staking_bps_per_day),
    ):
        if isinstance(value, bool) or not isinstance(value, int):
            raise ParamValidationError(name, value, "must be an int")
    new_state = replace(
        state,
        funding_bps_per_day=funding_bps_per_day,
        borrow_bps_per_day=borrow_bps_per_day,
        staking_bps_per_day=staking_bps_per_day,
    )
    event = VaultEvent(
        "CarryInputsUpdated",
        {
            "funding_bps_per_day": funding_bps_per_day,
            "borrow_bps_per_day": borrow_bps_per_day,
            "staking_bps_per_day": staking_bps_per_day,
            "expected_carry_bps": new_state.expected_carry_bps,
        },
    )
    return new_state, (event,)


__all__ = [
    "blend_vol_score",
    "set_implied_vol",
    "set_carry_inputs",
]
