# =============================================================================
# VOLHEDGE v1.0.0 -- VOLATILITY ENGINE
# File:   volhedge/core/volatility_engine.py
# =============================================================================
#
# SCOPE
# -----
# Implements:
#   - compute_return_fp(price, reference)          -> clamped 1e6 return
#   - ewma_update(prev_var, return_fp, alpha_bps)  -> new EWMA variance
#   - stdev_vol_bps / ewma_vol_bps / mad_vol_bps   -> estimator outputs
#   - compute_realized_vol_bps(...)                -> mode dispatch + min_samples gate
#   - record_return(state, price_fp, slot)         -> VaultState transition
#
# CONSTRAINTS
# -----------
# stdlib only. Integer arithmetic only; no float anywhere.
# No random. No datetime.now(). No file I/O. No logging.
#
# ESTIMATORS
# ----------
# All three estimators produce a dispersion in return units (1e6) that is
# converted to bps as  min(std_fp * 10000 / 1e6, 10000).
#
#   STDEV  population stdev:  mean = sum/n,  var = sum((r-mean)^2) / n
#   EWMA   var_t = var_{t-1}*(10000-a)/10000 + min(r^2, MAX_VAR)*a/10000
#          vol = isqrt(var_t)
#   MAD    median(|r - median(r)|) * 14826 / 10000
#
# Every variance is clamped to MAX_VAR_FP2 before the square root.
#
# INVARIANTS
# ----------
# INV-VE-01  Recorded returns lie in [-MAX_RETURN_ABS_FP, MAX_RETURN_ABS_FP].
# INV-VE-02  Estimator outputs lie in [0, 10000].
# INV-VE-03  With fewer than min_samples returns the prior realized vol is kept.
# INV-VE-04  Returns closer than min_return_spacing_slots are skipped silently.
# INV-VE-05  The first recorded price only seeds the reference; no return.
# =============================================================================

from __future__ import annotations

from dataclasses import replace
from typing import List, Sequence, Tuple

from volhedge.utils.constants import (
    BPS_DENOM,
    MAD_SCALE_DEN,
    MAD_SCALE_NUM,
    MAX_RETURN_ABS_FP,
    MAX_VAR_FP2,
    MAX_VOL_BPS,
    RET_FP_SCALE,
)
from volhedge.core.fixed_point import clamp, div_trunc, isqrt, median_trunc
from volhedge.core.risk_layer.domain import VolMode
from volhedge.core.state_layer import ReturnsRing, VaultEvent, VaultState


# ---------------------------------------------------------------------------
# Return arithmetic
# ---------------------------------------------------------------------------

def compute_return_fp(price_fp: int, reference_fp: int) -> int:
    """Simple return of price vs reference, 1e6 scaled, clamped to +-25%."""
    if reference_fp <= 0:
        raise ValueError("compute_return_fp: reference_fp must be > 0")
    raw = div_trunc((price_fp - reference_fp) * RET_FP_SCALE, reference_fp)
    return clamp(raw, -MAX_RETURN_ABS_FP, MAX_RETURN_ABS_FP)


def ewma_update(prev_var_fp2: int, return_fp: int, alpha_bps: int) -> int:
    x2 = min(return_fp * return_fp, MAX_VAR_FP2)
    var = (
        prev_var_fp2 * (BPS_DENOM - alpha_bps) // BPS_DENOM
        + x2 * alpha_bps // BPS_DENOM
    )
    return min(var, MAX_VAR_FP2)


# ---------------------------------------------------------------------------
# Estimators
# ---------------------------------------------------------------------------

def std_fp_to_bps(std_fp: int) -> int:
    """Convert a 1e6-scaled dispersion to bps, capped at 10000."""
    return min(std_fp * BPS_DENOM // RET_FP_SCALE, MAX_VOL_BPS)


def stdev_vol_bps(samples: Sequence[int]) -> int:
    n = len(samples)
    if n == 0:
        return 0
    mean = div_trunc(sum(samples), n)
    var = sum((r - mean) * (r - mean) for r in samples) // n
    return std_fp_to_bps(isqrt(min(var, MAX_VAR_FP2)))


def ewma_vol_bps(var_fp2: int) -> int:
    return std_fp_to_bps(isqrt(min(var_fp2, MAX_VAR_FP2)))


def mad_vol_bps(samples: Sequence[int]) -> int:
    """
    Robust estimator: median absolute deviation scaled to a normal sigma.

    A single outlier moves this much less than the population stdev.
    """
    if not samples:
        return 0
    med = median_trunc(samples)
    deviations: List[int] = [abs(r - med) for r in samples]
    mad = median_trunc(deviations)
    return std_fp_to_bps(mad * MAD_SCALE_NUM // MAD_SCALE_DEN)


def compute_realized_vol_bps(
    vol_mode: VolMode,
    ring: ReturnsRing,
    ewma_var_fp2: int,
    min_samples: int,
    prior_vol_bps: int,
) -> int:
    """
    Realized vol for the configured estimator.

    Insufficient data (ring.count < min_samples) returns prior_vol_bps
    unchanged, for every mode.
    """
    if ring.count < min_samples:
        return prior_vol_bps
    if vol_mode is VolMode.STDEV:
        return stdev_vol_bps(ring.samples())
    if vol_mode is VolMode.EWMA:
        return ewma_vol_bps(ewma_var_fp2)
    if vol_mode is VolMode.MAD:
        return mad_vol_bps(ring.samples())
    raise ValueError("compute_realized_vol_bps: unknown vol_mode " + repr(vol_mode))


# ---------------------------------------------------------------------------
# State transition
# ---------------------------------------------------------------------------

def record_return(
    state: VaultState,
    price_fp: int,
    slot: int,
) -> Tuple[VaultState, Tuple[VaultEvent, ...]]:
    """
    Feed an accepted price into the return window.

    Seeds the reference on first use, skips prices inside the spacing
    gate, otherwise pushes one clamped return and updates the EWMA
    accumulator. The accumulator is maintained in every vol_mode so that
    switching estimators does not start from an empty variance.
    """
    ring = state.returns
    if ring.last_recorded_slot is None or ring.last_recorded_price_fp <= 0:
        seeded = replace(ring, last_recorded_slot=slot, last_recorded_price_fp=price_fp)
        return replace(state, returns=seeded), ()

    if slot - ring.last_recorded_slot < state.params.min_return_spacing_slots:
        return state, ()

    ret = compute_return_fp(price_fp, ring.last_recorded_price_fp)
    new_ring = replace(
        ring.push(ret),
        last_recorded_slot=slot,
        last_recorded_price_fp=price_fp,
    )
    new_var = ewma_update(state.ewma_variance_fp2, ret, state.params.ewma_alpha_bps)
    new_state = replace(state, returns=new_ring, ewma_variance_fp2=new_var)
    event = VaultEvent(
        "OracleReturnRecorded",
        {"return_fp": ret, "sample_count": new_ring.count},
    )
    return new_state, (event,)


__all__ = [
    "compute_return_fp",
    "ewma_update",
    "std_fp_to_bps",
    "stdev_vol_bps",
    "ewma_vol_bps",
    "mad_vol_bps",
    "compute_realized_vol_bps",
    "record_return",
]
