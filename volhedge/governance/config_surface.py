# volhedge/governance/config_surface.py
# Version: 1.0.0
# Authority-controlled configuration and lifecycle surface.
#
# Every params change rebuilds VaultParams through dataclasses.replace, so
# validation runs in full and a rejected change leaves the vault untouched.
# Accepted params / role changes bump config_version and recompute
# config_hash. Lifecycle flags (paused, emergency withdraw) do not.

from __future__ import annotations

from dataclasses import replace
from typing import Any, Tuple

from volhedge.core.integrity_layer import IntegrityLayer
from volhedge.core.policy_mapper import remap_to_bounds
from volhedge.core.risk_layer.domain import ExtremeDriftAction, OracleFeedChoice, VolMode
from volhedge.core.risk_layer.exceptions import ParamValidationError, UnauthorizedError
from volhedge.core.risk_layer.guardrails import check_exposures_within
from volhedge.core.state_layer import VaultEvent, VaultState

Transition = Tuple[VaultState, Tuple[VaultEvent, ...]]

_INTEGRITY = IntegrityLayer()


def require_authority(state: VaultState, caller: str) -> None:
    if caller != state.authority:
        raise UnauthorizedError(caller, "the vault authority")


def _require_identity(field_name: str, value: Any) -> None:
    if not isinstance(value, str) or not value:
        raise ParamValidationError(field_name, value, "must be a non-empty string")


def _require_bool(field_name: str, value: Any) -> None:
    if not isinstance(value, bool):
        raise ParamValidationError(field_name, value, "must be a bool")


def bump_config(state: VaultState, section: str) -> Transition:
    """New config_version and config_hash for state's current roles and params."""
    version = state.config_version + 1
    config_hash = _INTEGRITY.compute_config_hash(
        state.authority, state.keeper_admin, state.params
    )
    new_state = replace(state, config_version=version, config_hash=config_hash)
    event = VaultEvent(
        "ConfigUpdated",
        {"section": section, "config_version": version, "config_hash": config_hash},
    )
    return new_state, (event,)


def _update_params(state: VaultState, caller: str, section: str, **changes: Any) -> Transition:
    require_authority(state, caller)
    params = replace(state.params, **changes)
    return bump_config(replace(state, params=params), section)


# ---------------------------------------------------------------------------
# Params sections
# ---------------------------------------------------------------------------

def set_policy_bounds(
    state: VaultState,
    caller: str,
    min_band_bps: int,
    max_band_bps: int,
    min_interval_slots: int,
    max_interval_slots: int,
) -> Transition:
    """New bounds; band / interval are re-mapped from the current score."""
    new_state, events = _update_params(
        state, caller, "policy_bounds",
        min_band_bps=min_band_bps,
        max_band_bps=max_band_bps,
        min_interval_slots=min_interval_slots,
        max_interval_slots=max_interval_slots,
    )
    band, interval = remap_to_bounds(new_state)
    new_state = replace(new_state, band_bps=band, min_hedge_interval_slots=interval)
    return new_state, events


def set_policy_stability(
    state: VaultState,
    caller: str,
    policy_update_min_slots: int,
    max_policy_slew_bps: int,
    hysteresis_bps: int,
    extreme_drift_bps: int,
    extreme_drift_action: ExtremeDriftAction,
) -> Transition:
    return _update_params(
        state, caller, "policy_stability",
        policy_update_min_slots=policy_update_min_slots,
        max_policy_slew_bps=max_policy_slew_bps,
        hysteresis_bps=hysteresis_bps,
        extreme_drift_bps=extreme_drift_bps,
        extreme_drift_action=extreme_drift_action,
    )


def set_vol_model(
    state: VaultState,
    caller: str,
    vol_mode: VolMode,
    ewma_alpha_bps: int,
    min_samples: int,
    min_return_spacing_slots: int,
) -> Transition:
    return _update_params(
        state, caller, "vol_model",
        vol_mode=vol_mode,
        ewma_alpha_bps=ewma_alpha_bps,
        min_samples=min_samples,
        min_return_spacing_slots=min_return_spacing_slots,
    )


def set_vol_weights(
    state: VaultState,
    caller: str,
    vol_weight_realized_bps: int,
    vol_weight_implied_bps: int,
) -> Transition:
    return _update_params(
        state, caller, "vol_weights",
        vol_weight_realized_bps=vol_weight_realized_bps,
        vol_weight_implied_bps=vol_weight_implied_bps,
    )


def set_oracle_config(
    state: VaultState,
    caller: str,
    oracle_feed_choice: OracleFeedChoice,
    max_price_age_seconds: int,
    max_confidence_bps: int,
    max_price_jump_bps: int,
) -> Transition:
    return _update_params(
        state, caller, "oracle",
        oracle_feed_choice=oracle_feed_choice,
        max_price_age_seconds=max_price_age_seconds,
        max_confidence_bps=max_confidence_bps,
        max_price_jump_bps=max_price_jump_bps,
    )


def set_hedge_sizing(
    state: VaultState,
    caller: str,
    target_delta_bps: int,
    lst_beta_fp: int,
) -> Transition:
    return _update_params(
        state, caller, "hedge_sizing",
        target_delta_bps=target_delta_bps,
        lst_beta_fp=lst_beta_fp,
    )


def set_risk_caps(
    state: VaultState,
    caller: str,
    max_staked_sol: int,
    max_abs_hedge_notional_usd: int,
    max_hedge_per_sol_usd_fp: int,
    min_reserve_bps: int,
) -> Transition:
    """Caps that the current exposures already break are rejected."""
    new_state, events = _update_params(
        state, caller, "risk_caps",
        max_staked_sol=max_staked_sol,
        max_abs_hedge_notional_usd=max_abs_hedge_notional_usd,
        max_hedge_per_sol_usd_fp=max_hedge_per_sol_usd_fp,
        min_reserve_bps=min_reserve_bps,
    )
    check_exposures_within(new_state, new_state.params)
    return new_state, events


def set_keeper_controls(
    state: VaultState,
    caller: str,
    max_updates_per_epoch: int,
    keeper_bond_required_lamports: int,
) -> Transition:
    return _update_params(
        state, caller, "keeper_controls",
        max_updates_per_epoch=max_updates_per_epoch,
        keeper_bond_required_lamports=keeper_bond_required_lamports,
    )


def set_confirm_config(state: VaultState, caller: str, max_confirm_delay_slots: int) -> Transition:
    return _update_params(
        state, caller, "confirm",
        max_confirm_delay_slots=max_confirm_delay_slots,
    )


# ---------------------------------------------------------------------------
# Roles
# ---------------------------------------------------------------------------

def set_pending_authority(state: VaultState, caller: str, new_authority: str) -> Transition:
    require_authority(state, caller)
    _require_identity("new_authority", new_authority)
    new_state = replace(state, pending_authority=new_authority)
    return new_state, (VaultEvent("PendingAuthoritySet", {"pending_authority": new_authority}),)


def accept_authority(state: VaultState, caller: str) -> Transition:
    """Second step of the transfer; keeper admin follows the authority."""
    if state.pending_authority is None or caller != state.pending_authority:
        raise UnauthorizedError(caller, "the pending authority")
    moved = replace(
        state,
        authority=caller,
        keeper_admin=caller,
        pending_authority=None,
    )
    new_state, events = bump_config(moved, "authority")
    return new_state, (VaultEvent("AuthorityAccepted", {"authority": caller}),) + events


def set_keeper_admin(state: VaultState, caller: str, new_keeper_admin: str) -> Transition:
    require_authority(state, caller)
    _require_identity("new_keeper_admin", new_keeper_admin)
    new_state, events = bump_config(replace(state, keeper_admin=new_keeper_admin), "keeper_admin")
    return new_state, (VaultEvent("KeeperAdminSet", {"keeper_admin": new_keeper_admin}),) + events


# ---------------------------------------------------------------------------
# Lifecycle flags
# ---------------------------------------------------------------------------

def set_paused(state: VaultState, caller: str, paused: bool) -> Transition:
    require_authority(state, caller)
    _require_bool("paused", paused)
    return replace(state, paused=paused), (VaultEvent("PausedSet", {"paused": paused}),)


def set_emergency_withdraw_enabled(state: VaultState, caller: str, enabled: bool) -> Transition:
    require_authority(state, caller)
    _require_bool("enabled", enabled)
    return (
        replace(state, emergency_withdraw_enabled=enabled),
        (VaultEvent("EmergencyModeSet", {"enabled": enabled}),),
    )


__all__ = [
    "require_authority",
    "bump_config",
    "set_policy_bounds",
    "set_policy_stability",
    "set_vol_model",
    "set_vol_weights",
    "set_oracle_config",
    "set_hedge_sizing",
    "set_risk_caps",
    "set_keeper_controls",
    "set_confirm_config",
    "set_pending_authority",
    "accept_authority",
    "set_keeper_admin",
    "set_paused",
    "set_emergency_withdraw_enabled",
]
