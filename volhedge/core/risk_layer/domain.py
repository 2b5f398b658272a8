# =============================================================================
# VOLHEDGE v1.0.0 -- RISK & CONTROL LAYER
# File:   volhedge/core/risk_layer/domain.py
# =============================================================================
#
# SCOPE
# -----
# Frozen domain types shared by every vault component:
#   enumerations (VolMode, OracleFeedChoice, FeedId, ExtremeDriftAction,
#   OracleHealth, OracleRejectReason), the validated configuration record
#   VaultParams, and the per-call CallContext.
#
# No oracle logic. No policy logic. No hedge logic.
#
# DEPENDENCIES
# ------------
#   stdlib:    dataclasses, enum, typing
#   internal:  volhedge.utils.constants, .exceptions
#   PROHIBITED: numpy, datetime.now(), random, file IO, network IO
#
# VALIDATION PHILOSOPHY
# ---------------------
# Validation is fail-fast and layered, in this fixed order:
#
#   V1  Type         -- every numeric field is an int (bool rejected).
#                       Raises ParamValidationError(field, value, "must be an int").
#   V2  Sign / Range -- field-local constraints (> 0, <= 10000, etc.).
#                       Raises ParamValidationError(field_name, value, constraint).
#   V3  Enum         -- VolMode / OracleFeedChoice / ExtremeDriftAction membership.
#                       Raises ParamValidationError with an enum constraint.
#   V4  Cross-field  -- min <= max pairs, vol weights summing to 10000,
#                       EWMA alpha required when the EWMA estimator is selected.
#                       Raises ParamConsistencyError.
#
# There is NO silent coercion anywhere in this module.
#
# DETERMINISM CONSTRAINTS
# -----------------------
# DET-01  No stochastic operations.
# DET-02  All inputs passed explicitly. No module-level mutable reads.
# DET-03  All dataclasses are frozen; no mutation path exists.
# DET-04  No datetime.now() / time.time(). Slots and unix time are caller-supplied.
#
# INVARIANTS ENFORCED (VaultParams)
# ---------------------------------
#   INV-VP-01  min_band_bps <= max_band_bps <= 10000.
#   INV-VP-02  min_interval_slots <= max_interval_slots.
#   INV-VP-03  vol_weight_realized_bps + vol_weight_implied_bps == 10000.
#   INV-VP-04  1 <= min_samples <= N_RETURNS.
#   INV-VP-05  min_return_spacing_slots, policy_update_min_slots > 0.
#   INV-VP-06  0 < max_policy_slew_bps <= 10000; hysteresis_bps <= 10000.
#   INV-VP-07  0 < ewma_alpha_bps <= 10000 when vol_mode is EWMA.
#   INV-VP-08  max_staked_sol, max_abs_hedge_notional_usd,
#              max_hedge_per_sol_usd_fp, lst_beta_fp > 0.
#   INV-VP-09  every *_bps ratio field <= 10000.
#   INV-VP-10  max_price_age_seconds, max_confirm_delay_slots,
#              max_updates_per_epoch > 0.
# =============================================================================

from __future__ import annotations

from dataclasses import dataclass, fields as dataclass_fields
from enum import Enum
from typing import Any, Dict, Mapping

from volhedge.utils.constants import BPS_DENOM, N_RETURNS
from .exceptions import ParamConsistencyError, ParamValidationError


# =============================================================================
# SECTION 1 -- ENUMERATIONS
# =============================================================================

class VolMode(str, Enum):
    """
    Realized volatility estimator.

    STDEV -- population standard deviation of the return window.
    EWMA  -- square root of an exponentially weighted variance accumulator.
    MAD   -- median absolute deviation scaled to sigma (x 1.4826).
    """
    STDEV = "STDEV"
    EWMA  = "EWMA"
    MAD   = "MAD"


class FeedId(str, Enum):
    SOL_USD  = "SOL_USD"
    SOL_USDC = "SOL_USDC"


class OracleFeedChoice(str, Enum):
    """
    Which feed(s) the oracle gate may accept.

    AUTO_PREFER_USD_THEN_USDC tries SOL_USD first and falls back to
    SOL_USDC when the USD observation fails validation.
    """
    USD_ONLY                  = "USD_ONLY"
    USDC_ONLY                 = "USDC_ONLY"
    AUTO_PREFER_USD_THEN_USDC = "AUTO_PREFER_USD_THEN_USDC"


class ExtremeDriftAction(str, Enum):
    """
    Circuit-breaker action when drift exceeds extreme_drift_bps.

    PAUSE       -- pause the vault and flag the event.
    REQUIRE_ACK -- flag the event; hedging resumes after authority ack.
    """
    PAUSE       = "PAUSE"
    REQUIRE_ACK = "REQUIRE_ACK"


class OracleHealth(str, Enum):
    UNINITIALIZED = "UNINITIALIZED"
    HEALTHY       = "HEALTHY"
    DEGRADED      = "DEGRADED"


class OracleRejectReason(str, Enum):
    """Why a price observation was rejected. First failing check wins."""
    FEED_UNAVAILABLE       = "FEED_UNAVAILABLE"
    NON_POSITIVE_PRICE     = "NON_POSITIVE_PRICE"
    PRICE_OUT_OF_RANGE     = "PRICE_OUT_OF_RANGE"
    MISSING_PUBLISH_TIME   = "MISSING_PUBLISH_TIME"
    PUBLISH_TIME_IN_FUTURE = "PUBLISH_TIME_IN_FUTURE"
    STALE                  = "STALE"
    CONFIDENCE_TOO_WIDE    = "CONFIDENCE_TOO_WIDE"
    PRICE_JUMP             = "PRICE_JUMP"


# =============================================================================
# SECTION 2 -- INTERNAL VALIDATION HELPERS
# =============================================================================

def _check_int(field_name: str, value: Any) -> None:
    """V1: value must be an int and not a bool."""
    if isinstance(value, bool) or not isinstance(value, int):
        raise ParamValidationError(
            field_name=field_name,
            value=value,
            constraint="must be an int",
        )


def _check_positive(field_name: str, value: int) -> None:
    """V2: value must be strictly > 0."""
    if value <= 0:
        raise ParamValidationError(
            field_name=field_name,
            value=value,
            constraint="must be > 0",
        )


def _check_non_negative(field_name: str, value: int) -> None:
    if value < 0:
        raise ParamValidationError(
            field_name=field_name,
            value=value,
            constraint="must be >= 0",
        )


def _check_bps(field_name: str, value: int) -> None:
    """V2: value must be in [0, 10000]."""
    if not (0 <= value <= BPS_DENOM):
        raise ParamValidationError(
            field_name=field_name,
            value=value,
            constraint="must be in [0, 10000]",
        )


def _check_enum(field_name: str, value: Any, enum_cls: type) -> None:
    if not isinstance(value, enum_cls):
        raise ParamValidationError(
            field_name=field_name,
            value=value,
            constraint="must be a valid " + enum_cls.__name__ + " member",
        )


def _check_le(field_a: str, value_a: int, field_b: str, value_b: int) -> None:
    if value_a > value_b:
        raise ParamConsistencyError(
            field_a=field_a,
            value_a=value_a,
            field_b=field_b,
            value_b=value_b,
            invariant_description=field_a + " must be <= " + field_b,
        )


_ENUM_FIELDS: Dict[str, type] = {
    "vol_mode":             VolMode,
    "oracle_feed_choice":   OracleFeedChoice,
    "extreme_drift_action": ExtremeDriftAction,
}


# =============================================================================
# SECTION 3 -- VaultParams
# =============================================================================

@dataclass(frozen=True)
class VaultParams:
    """
    Complete, validated vault configuration.

    No defaults are provided; every field must be supplied explicitly.
    Configuration changes build a new VaultParams via dataclasses.replace,
    so a rejected change never leaves a half-applied configuration.

    Fields:
        min_band_bps / max_band_bps:
            Drift band bounds. Higher vol score -> wider band.
        min_interval_slots / max_interval_slots:
            Hedge interval bounds. Higher vol score -> shorter interval.
        vol_weight_realized_bps / vol_weight_implied_bps:
            Score blend weights; must sum to 10000.
        min_samples:
            Returns required before realized vol is recomputed.
        min_return_spacing_slots:
            Minimum slot gap between recorded returns.
        policy_update_min_slots:
            Cooldown between applied policy updates.
        max_policy_slew_bps:
            Max relative change of band / interval per update.
        hysteresis_bps:
            Min vol score change needed to adopt new policy targets.
        vol_mode / ewma_alpha_bps:
            Estimator selection and EWMA smoothing.
        max_staked_sol, max_abs_hedge_notional_usd, max_hedge_per_sol_usd_fp,
        min_reserve_bps:
            Risk caps.
        oracle_feed_choice, max_price_age_seconds, max_confidence_bps,
        max_price_jump_bps:
            Oracle gating.
        target_delta_bps, lst_beta_fp:
            Hedge sizing: fraction of staked value to hedge, LST beta (1e6).
        max_confirm_delay_slots:
            Slots a hedge request stays confirmable.
        extreme_drift_bps / extreme_drift_action:
            Circuit breaker; 0 disables it.
        max_updates_per_epoch, keeper_bond_required_lamports:
            Keeper rate limit and bond requirement.
    """

    min_band_bps:                   int
    max_band_bps:                   int
    min_interval_slots:             int
    max_interval_slots:             int
    vol_weight_realized_bps:        int
    vol_weight_implied_bps:         int
    min_samples:                    int
    min_return_spacing_slots:       int
    policy_update_min_slots:        int
    max_policy_slew_bps:            int
    hysteresis_bps:                 int
    vol_mode:                       VolMode
    ewma_alpha_bps:                 int
    max_staked_sol:                 int
    max_abs_hedge_notional_usd:     int
    max_hedge_per_sol_usd_fp:       int
    min_reserve_bps:                int
    oracle_feed_choice:             OracleFeedChoice
    max_price_age_seconds:          int
    max_confidence_bps:             int
    max_price_jump_bps:             int
    target_delta_bps:               int
    lst_beta_fp:                    int
    max_confirm_delay_slots:        int
    extreme_drift_bps:              int
    extreme_drift_action:           ExtremeDriftAction
    max_updates_per_epoch:          int
    keeper_bond_required_lamports:  int

    def __post_init__(self) -> None:
        # V1 -- types
        for f in dataclass_fields(self):
            if f.name in _ENUM_FIELDS:
                continue
            _check_int(f.name, getattr(self, f.name))

        # V2 -- sign / range
        for name in (
            "min_band_bps",
            "max_band_bps",
            "vol_weight_realized_bps",
            "vol_weight_implied_bps",
            "hysteresis_bps",
            "ewma_alpha_bps",
            "min_reserve_bps",
            "max_confidence_bps",
            "max_price_jump_bps",
            "target_delta_bps",
            "extreme_drift_bps",
        ):
            _check_bps(name, getattr(self, name))

        for name in (
            "min_return_spacing_slots",
            "policy_update_min_slots",
            "max_policy_slew_bps",
            "max_staked_sol",
            "max_abs_hedge_notional_usd",
            "max_hedge_per_sol_usd_fp",
            "max_price_age_seconds",
            "lst_beta_fp",
            "max_confirm_delay_slots",
            "max_updates_per_epoch",
        ):
            _check_positive(name, getattr(self, name))

        _check_non_negative("min_interval_slots", self.min_interval_slots)
        _check_non_negative("max_interval_slots", self.max_interval_slots)
        _check_non_negative(
            "keeper_bond_required_lamports", self.keeper_bond_required_lamports
        )

        if self.max_policy_slew_bps > BPS_DENOM:
            raise ParamValidationError(
                field_name="max_policy_slew_bps",
                value=self.max_policy_slew_bps,
                constraint="must be in (0, 10000]",
            )
        if not (1 <= self.min_samples <= N_RETURNS):
            raise ParamValidationError(
                field_name="min_samples",
                value=self.min_samples,
                constraint="must be in [1, " + str(N_RETURNS) + "]",
            )

        # V3 -- enums
        for name, enum_cls in _ENUM_FIELDS.items():
            _check_enum(name, getattr(self, name), enum_cls)

        # V4 -- cross-field
        _check_le("min_band_bps", self.min_band_bps, "max_band_bps", self.max_band_bps)
        _check_le(
            "min_interval_slots", self.min_interval_slots,
            "max_interval_slots", self.max_interval_slots,
        )
        weight_sum = self.vol_weight_realized_bps + self.vol_weight_implied_bps
        if weight_sum != BPS_DENOM:
            raise ParamConsistencyError(
                field_a="vol_weight_realized_bps",
                value_a=self.vol_weight_realized_bps,
                field_b="vol_weight_implied_bps",
                value_b=self.vol_weight_implied_bps,
                invariant_description="vol weights must sum to 10000",
            )
        if self.vol_mode is VolMode.EWMA and self.ewma_alpha_bps == 0:
            raise ParamConsistencyError(
                field_a="ewma_alpha_bps",
                value_a=self.ewma_alpha_bps,
                field_b="vol_mode",
                value_b=self.vol_mode.value,
                invariant_description="ewma_alpha_bps must be > 0 when vol_mode is EWMA",
            )

    # -------------------------------------------------------------------------
    # Plain-value conversion
    # -------------------------------------------------------------------------

    def to_mapping(self) -> Dict[str, Any]:
        """Return the params as plain JSON-safe values (enums by value)."""
        out: Dict[str, Any] = {}
        for f in dataclass_fields(self):
            value = getattr(self, f.name)
            out[f.name] = value.value if isinstance(value, Enum) else value
        return out

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "VaultParams":
        """
        Build VaultParams from plain values, e.g. a JSON scenario file.

        Enum fields accept their string value. Missing or unknown keys
        raise ParamValidationError; all other validation is __post_init__'s.
        """
        names = [f.name for f in dataclass_fields(cls)]
        for key in data:
            if key not in names:
                raise ParamValidationError(
                    field_name=str(key),
                    value=data[key],
                    constraint="is not a VaultParams field",
                )
        kwargs: Dict[str, Any] = {}
        for name in names:
            if name not in data:
                raise ParamValidationError(
                    field_name=name,
                    value=None,
                    constraint="is required",
                )
            value = data[name]
            enum_cls = _ENUM_FIELDS.get(name)
            if enum_cls is not None and not isinstance(value, enum_cls):
                try:
                    value = enum_cls(value)
                except ValueError:
                    raise ParamValidationError(
                        field_name=name,
                        value=value,
                        constraint="must be a valid " + enum_cls.__name__ + " member",
                    ) from None
            kwargs[name] = value
        return cls(**kwargs)


# =============================================================================
# SECTION 4 -- CallContext
# =============================================================================

@dataclass(frozen=True)
class CallContext:
    """
    Who is calling and when.

    caller:     opaque identity of the signer (authority, keeper, user).
    slot:       ledger slot of the call; drives every slot-based gate.
    unix_time:  wall-clock seconds; used only for oracle staleness.
    """

    caller:    str
    slot:      int
    unix_time: int

    def __post_init__(self) -> None:
        if not isinstance(self.caller, str) or not self.caller:
            raise ParamValidationError(
                field_name="caller",
                value=self.caller,
                constraint="must be a non-empty string",
            )
        _check_int("slot", self.slot)
        _check_non_negative("slot", self.slot)
        _check_int("unix_time", self.unix_time)
        _check_non_negative("unix_time", self.unix_time)


__all__ = [
    "VolMode",
    "FeedId",
    "OracleFeedChoice",
    "ExtremeDriftAction",
    "OracleHealth",
    "OracleRejectReason",
    "VaultParams",
    "CallContext",
]
