# volhedge/orchestrator/vault_engine.py
# Version: 1.0.0
# External orchestration layer: keyed vault store + operation dispatch.
#
# Each public method is one atomic operation:
#   1. load the current frozen VaultState for vault_key
#   2. run the gates (paused, role / keeper checks)
#   3. run the pure transition from volhedge.core / volhedge.governance
#   4. swap the stored state and record the emitted events
# Any exception in steps 1-3 leaves the store and the event log untouched.
#
# The vault key is the identity that initialized the vault. It does not
# change when authority is transferred.
#
# Standard import:
#   from volhedge.orchestrator.vault_engine import VaultEngine

from typing import Callable, Dict, Mapping, Optional, Tuple

from volhedge.core.hedge_protocol import (
    HedgeConfirmOutcome,
    HedgeRequestOutcome,
    acknowledge_extreme_event,
    confirm_hedge,
    request_hedge,
    reset_hedge_request,
)
from volhedge.core.integrity_layer import IntegrityLayer
from volhedge.core.keeper_registry import (
    add_keeper,
    authorize_keeper_call,
    deposit_keeper_bond,
    record_keeper_call,
    remove_keeper,
    touch_heartbeat,
)
from volhedge.core.logging_layer import EventLogger
from volhedge.core.oracle_gate import PriceObservation, apply_price_update
from volhedge.core.policy_mapper import update_epoch_and_policy
from volhedge.core.risk_layer.domain import (
    CallContext,
    ExtremeDriftAction,
    FeedId,
    OracleFeedChoice,
    VaultParams,
    VolMode,
)
from volhedge.core.risk_layer.exceptions import (
    ParamValidationError,
    PausedError,
    VaultExistsError,
    VaultNotFoundError,
)
from volhedge.core.risk_layer.guardrails import (
    compute_nav_usd,
    deposit_and_stake,
    deposit_reserve,
)
from volhedge.core.score_blender import set_carry_inputs, set_implied_vol
from volhedge.core.state_layer import VaultEvent, VaultState, create_initial_state
from volhedge.governance import config_surface

Events = Tuple[VaultEvent, ...]


class VaultEngine:
    """
    In-memory, single-writer store of vaults keyed by initializing authority.

    Parameters
    ----------
    logger : EventLogger to record events into. A fresh one is created when
             omitted; it is exposed as .logger either way.
    """

    def __init__(self, logger: Optional[EventLogger] = None) -> None:
        self._vaults: Dict[str, VaultState] = {}
        self._logger: EventLogger = logger if logger is not None else EventLogger()
        self._integrity: IntegrityLayer = IntegrityLayer()

    @property
    def logger(self) -> EventLogger:
        return self._logger

    # -----------------------------------------------------------------------
    # Store
    # -----------------------------------------------------------------------

    def get_vault(self, vault_key: str) -> VaultState:
        """Read-only snapshot. Repeated calls on an unchanged vault are identical."""
        state = self._vaults.get(vault_key)
        if state is None:
            raise VaultNotFoundError(vault_key)
        return state

    def vault_keys(self) -> Tuple[str, ...]:
        return tuple(sorted(self._vaults))

    def state_digest(self, vault_key: str) -> str:
        return self._integrity.state_digest(self.get_vault(vault_key))

    def nav_usd(self, vault_key: str) -> int:
        return compute_nav_usd(self.get_vault(vault_key))

    def _commit(self, vault_key: str, state: VaultState, events: Events, slot: int) -> None:
        self._vaults[vault_key] = state
        for event in events:
            self._logger.log_event(event.event_type, event.data, slot, vault_key)

    # -----------------------------------------------------------------------
    # Call shapes
    # -----------------------------------------------------------------------

    def _open_call(
        self,
        vault_key: str,
        ctx: CallContext,
        operation: str,
        transition: Callable[[VaultState], Tuple[VaultState, Events]],
    ) -> VaultState:
        """Permissionless, blocked while paused."""
        state = self.get_vault(vault_key)
        if state.paused:
            raise PausedError(operation)
        new_state, events = transition(state)
        self._commit(vault_key, new_state, events, ctx.slot)
        return new_state

    def _keeper_call(
        self,
        vault_key: str,
        ctx: CallContext,
        operation: str,
        transition: Callable[[VaultState], Tuple[VaultState, Events, object]],
        counted: bool = True,
    ) -> object:
        """Privileged keeper call: paused gate, keeper gate, transition, count."""
        state = self.get_vault(vault_key)
        if state.paused:
            raise PausedError(operation)
        authorize_keeper_call(state, ctx.caller)
        new_state, events, result = transition(state)
        if counted:
            new_state = record_keeper_call(new_state, ctx.caller, ctx.slot)
        else:
            new_state = touch_heartbeat(new_state, ctx.caller, ctx.slot)
        self._commit(vault_key, new_state, events, ctx.slot)
        return result

    def _admin_call(
        self,
        vault_key: str,
        ctx: CallContext,
        transition: Callable[[VaultState], Tuple[VaultState, Events]],
    ) -> VaultState:
        """Authority / keeper-admin call; role checks live in the transition."""
        new_state, events = transition(self.get_vault(vault_key))
        self._commit(vault_key, new_state, events, ctx.slot)
        return new_state

    # -----------------------------------------------------------------------
    # Lifecycle
    # -----------------------------------------------------------------------

    def initialize_vault(self, ctx: CallContext, params: VaultParams) -> VaultState:
        vault_key = ctx.caller
        if vault_key in self._vaults:
            raise VaultExistsError(vault_key)
        if not isinstance(params, VaultParams):
            raise ParamValidationError(
                field_name="params",
                value=params,
                constraint="must be a VaultParams instance",
            )
        config_hash = self._integrity.compute_config_hash(vault_key, vault_key, params)
        state = create_initial_state(vault_key, params, config_hash)
        event = VaultEvent(
            "VaultInitialized",
            {"authority": vault_key, "config_version": state.config_version, "config_hash": config_hash},
        )
        self._commit(vault_key, state, (event,), ctx.slot)
        return state

    # -----------------------------------------------------------------------
    # Exposures
    # -----------------------------------------------------------------------

    def deposit_reserve(self, vault_key: str, ctx: CallContext, amount_sol: int) -> VaultState:
        return self._open_call(
            vault_key, ctx, "deposit_reserve",
            lambda s: deposit_reserve(s, amount_sol),
        )

    def deposit_and_stake(self, vault_key: str, ctx: CallContext, amount_sol: int) -> VaultState:
        return self._open_call(
            vault_key, ctx, "deposit_and_stake",
            lambda s: deposit_and_stake(s, amount_sol),
        )

    # -----------------------------------------------------------------------
    # Keeper-fed inputs
    # -----------------------------------------------------------------------

    def update_implied_vol(self, vault_key: str, ctx: CallContext, implied_vol_bps: int) -> None:
        self._keeper_call(
            vault_key, ctx, "update_implied_vol",
            lambda s: set_implied_vol(s, implied_vol_bps) + (None,),
        )

    def update_carry_inputs(
        self,
        vault_key: str,
        ctx: CallContext,
        funding_bps_per_day: int,
        borrow_bps_per_day: int,
        staking_bps_per_day: int,
    ) -> None:
        self._keeper_call(
            vault_key, ctx, "update_carry_inputs",
            lambda s: set_carry_inputs(
                s, funding_bps_per_day, borrow_bps_per_day, staking_bps_per_day
            ) + (None,),
        )

    def update_oracle_price(
        self,
        vault_key: str,
        ctx: CallContext,
        observations: Mapping[FeedId, PriceObservation],
    ) -> None:
        """Never raises for a bad observation; the oracle turns DEGRADED instead."""
        self._keeper_call(
            vault_key, ctx, "update_oracle_price",
            lambda s: apply_price_update(s, observations, ctx.slot, ctx.unix_time) + (None,),
        )

    def update_epoch_and_policy(self, vault_key: str, ctx: CallContext) -> None:
        self._keeper_call(
            vault_key, ctx, "update_epoch_and_policy",
            lambda s: update_epoch_and_policy(s, ctx.slot) + (None,),
            counted=False,
        )

    # -----------------------------------------------------------------------
    # Hedge protocol
    # -----------------------------------------------------------------------

    def request_hedge(self, vault_key: str, ctx: CallContext) -> HedgeRequestOutcome:
        new_state, events, outcome = request_hedge(self.get_vault(vault_key), ctx.slot)
        self._commit(vault_key, new_state, events, ctx.slot)
        return outcome

    def confirm_hedge(
        self,
        vault_key: str,
        ctx: CallContext,
        request_id: int,
        hedge_delta_usd: int,
        fill_price_fp: int,
    ) -> HedgeConfirmOutcome:
        return self._keeper_call(
            vault_key, ctx, "confirm_hedge",
            lambda s: confirm_hedge(s, ctx.slot, request_id, hedge_delta_usd, fill_price_fp),
        )

    def reset_hedge_request(self, vault_key: str, ctx: CallContext) -> VaultState:
        def transition(s: VaultState) -> Tuple[VaultState, Events]:
            config_surface.require_authority(s, ctx.caller)
            return reset_hedge_request(s)
        return self._admin_call(vault_key, ctx, transition)

    def acknowledge_extreme_event(self, vault_key: str, ctx: CallContext) -> VaultState:
        def transition(s: VaultState) -> Tuple[VaultState, Events]:
            config_surface.require_authority(s, ctx.caller)
            return acknowledge_extreme_event(s)
        return self._admin_call(vault_key, ctx, transition)

    # -----------------------------------------------------------------------
    # Keepers
    # -----------------------------------------------------------------------

    def add_keeper(self, vault_key: str, ctx: CallContext, keeper_id: str) -> VaultState:
        def transition(s: VaultState) -> Tuple[VaultState, Events]:
            new_state, events = add_keeper(s, ctx.caller, keeper_id)
            if new_state is s:
                return s, ()
            bumped, cfg_events = config_surface.bump_config(new_state, "keepers")
            return bumped, events + cfg_events
        return self._admin_call(vault_key, ctx, transition)

    def remove_keeper(self, vault_key: str, ctx: CallContext, keeper_id: str) -> VaultState:
        def transition(s: VaultState) -> Tuple[VaultState, Events]:
            new_state, events = remove_keeper(s, ctx.caller, keeper_id)
            if new_state is s:
                return s, ()
            bumped, cfg_events = config_surface.bump_config(new_state, "keepers")
            return bumped, events + cfg_events
        return self._admin_call(vault_key, ctx, transition)

    def deposit_keeper_bond(self, vault_key: str, ctx: CallContext, amount_lamports: int) -> VaultState:
        return self._open_call(
            vault_key, ctx, "deposit_keeper_bond",
            lambda s: deposit_keeper_bond(s, ctx.caller, amount_lamports),
        )

    # -----------------------------------------------------------------------
    # Authority configuration
    # -----------------------------------------------------------------------

    def set_policy_bounds(
        self, vault_key: str, ctx: CallContext,
        min_band_bps: int, max_band_bps: int,
        min_interval_slots: int, max_interval_slots: int,
    ) -> VaultState:
        return self._admin_call(vault_key, ctx, lambda s: config_surface.set_policy_bounds(
            s, ctx.caller, min_band_bps, max_band_bps, min_interval_slots, max_interval_slots,
        ))

    def set_policy_stability(
        self, vault_key: str, ctx: CallContext,
        policy_update_min_slots: int, max_policy_slew_bps: int, hysteresis_bps: int,
        extreme_drift_bps: int, extreme_drift_action: ExtremeDriftAction,
    ) -> VaultState:
        return self._admin_call(vault_key, ctx, lambda s: config_surface.set_policy_stability(
            s, ctx.caller, policy_update_min_slots, max_policy_slew_bps, hysteresis_bps,
            extreme_drift_bps, extreme_drift_action,
        ))

    def set_vol_model(
        self, vault_key: str, ctx: CallContext,
        vol_mode: VolMode, ewma_alpha_bps: int, min_samples: int, min_return_spacing_slots: int,
    ) -> VaultState:
        return self._admin_call(vault_key, ctx, lambda s: config_surface.set_vol_model(
            s, ctx.caller, vol_mode, ewma_alpha_bps, min_samples, min_return_spacing_slots,
        ))

    def set_vol_weights(
        self, vault_key: str, ctx: CallContext,
        vol_weight_realized_bps: int, vol_weight_implied_bps: int,
    ) -> VaultState:
        return self._admin_call(vault_key, ctx, lambda s: config_surface.set_vol_weights(
            s, ctx.caller, vol_weight_realized_bps, vol_weight_implied_bps,
        ))

    def set_oracle_config(
        self, vault_key: str, ctx: CallContext,
        oracle_feed_choice: OracleFeedChoice, max_price_age_seconds: int,
        max_confidence_bps: int, max_price_jump_bps: int,
    ) -> VaultState:
        return self._admin_call(vault_key, ctx, lambda s: config_surface.set_oracle_config(
            s, ctx.caller, oracle_feed_choice, max_price_age_seconds,
            max_confidence_bps, max_price_jump_bps,
        ))

    def set_hedge_sizing(
        self, vault_key: str, ctx: CallContext, target_delta_bps: int, lst_beta_fp: int,
    ) -> VaultState:
        return self._admin_call(vault_key, ctx, lambda s: config_surface.set_hedge_sizing(
            s, ctx.caller, target_delta_bps, lst_beta_fp,
        ))

    def set_risk_caps(
        self, vault_key: str, ctx: CallContext,
        max_staked_sol: int, max_abs_hedge_notional_usd: int,
        max_hedge_per_sol_usd_fp: int, min_reserve_bps: int,
    ) -> VaultState:
        return self._admin_call(vault_key, ctx, lambda s: config_surface.set_risk_caps(
            s, ctx.caller, max_staked_sol, max_abs_hedge_notional_usd,
            max_hedge_per_sol_usd_fp, min_reserve_bps,
        ))

    def set_keeper_controls(
        self, vault_key: str, ctx: CallContext,
        max_updates_per_epoch: int, keeper_bond_required_lamports: int,
    ) -> VaultState:
        return self._admin_call(vault_key, ctx, lambda s: config_surface.set_keeper_controls(
            s, ctx.caller, max_updates_per_epoch, keeper_bond_required_lamports,
        ))

    def set_confirm_config(
        self, vault_key: str, ctx: CallContext, max_confirm_delay_slots: int,
    ) -> VaultState:
        return self._admin_call(vault_key, ctx, lambda s: config_surface.set_confirm_config(
            s, ctx.caller, max_confirm_delay_slots,
        ))

    def set_paused(self, vault_key: str, ctx: CallContext, paused: bool) -> VaultState:
        return self._admin_call(
            vault_key, ctx, lambda s: config_surface.set_paused(s, ctx.caller, paused)
        )

    def set_emergency_withdraw_enabled(self, vault_key: str, ctx: CallContext, enabled: bool) -> VaultState:
        return self._admin_call(
            vault_key, ctx,
            lambda s: config_surface.set_emergency_withdraw_enabled(s, ctx.caller, enabled),
        )

    def set_pending_authority(self, vault_key: str, ctx: CallContext, new_authority: str) -> VaultState:
        return self._admin_call(
            vault_key, ctx,
            lambda s: config_surface.set_pending_authority(s, ctx.caller, new_authority),
        )

    def accept_authority(self, vault_key: str, ctx: CallContext) -> VaultState:
        return self._admin_call(
            vault_key, ctx, lambda s: config_surface.accept_authority(s, ctx.caller)
        )

    def set_keeper_admin(self, vault_key: str, ctx: CallContext, new_keeper_admin: str) -> VaultState:
        return self._admin_call(
            vault_key, ctx,
            lambda s: config_surface.set_keeper_admin(s, ctx.caller, new_keeper_admin),
        )
