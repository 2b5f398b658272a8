# volhedge/core/keeper_registry.py
# Keeper set management, bonding and per-epoch rate limiting.
#
# Privileged keeper calls (implied vol, carry inputs, oracle price, epoch
# tick, hedge confirmation) are accepted from a registered keeper or from
# the vault authority. Bond and rate-limit checks apply to registered
# keepers only; an authority that is not itself registered is exempt.
#
# Invariants:
#   len(keepers) <= MAX_KEEPERS
#   keeper ids are unique
#   update_count resets to 0 for every keeper on each epoch tick

from __future__ import annotations

from dataclasses import replace
from typing import Optional, Tuple

from volhedge.utils.constants import MAX_KEEPERS
from volhedge.core.risk_layer.exceptions import (
    KeeperBondInsufficientError,
    KeeperRateLimitedError,
    KeeperSetFullError,
    ParamValidationError,
    UnauthorizedError,
)
from volhedge.core.state_layer import KeeperSlot, VaultEvent, VaultState


def _replace_keeper(
    keepers: Tuple[KeeperSlot, ...],
    updated: KeeperSlot,
) -> Tuple[KeeperSlot, ...]:
    return tuple(updated if k.keeper_id == updated.keeper_id else k for k in keepers)


def _require_keeper_admin(state: VaultState, caller: str) -> None:
    if caller != state.keeper_admin:
        raise UnauthorizedError(caller, "the keeper admin")


# ---------------------------------------------------------------------------
# Keeper set (keeper admin)
# ---------------------------------------------------------------------------

def add_keeper(
    state: VaultState,
    caller: str,
    keeper_id: str,
) -> Tuple[VaultState, Tuple[VaultEvent, ...]]:
    """
    Register keeper_id. Adding an existing keeper is a no-op.

    The caller bumps the config version when the returned state differs.
    """
    _require_keeper_admin(state, caller)
    if not isinstance(keeper_id, str) or not keeper_id:
        raise ParamValidationError("keeper_id", keeper_id, "must be a non-empty string")
    if state.find_keeper(keeper_id) is not None:
        return state, ()
    if len(state.keepers) >= MAX_KEEPERS:
        raise KeeperSetFullError(keeper_id, MAX_KEEPERS)
    new_state = replace(state, keepers=state.keepers + (KeeperSlot(keeper_id=keeper_id),))
    return new_state, (VaultEvent("KeeperSet", {"keeper_id": keeper_id, "is_added": True}),)


def remove_keeper(
    state: VaultState,
    caller: str,
    keeper_id: str,
) -> Tuple[VaultState, Tuple[VaultEvent, ...]]:
    """Deregister keeper_id; its bond and counters are discarded. Absent id is a no-op."""
    _require_keeper_admin(state, caller)
    if state.find_keeper(keeper_id) is None:
        return state, ()
    remaining = tuple(k for k in state.keepers if k.keeper_id != keeper_id)
    new_state = replace(state, keepers=remaining)
    return new_state, (VaultEvent("KeeperSet", {"keeper_id": keeper_id, "is_added": False}),)


# ---------------------------------------------------------------------------
# Bonding
# ---------------------------------------------------------------------------

def deposit_keeper_bond(
    state: VaultState,
    caller: str,
    amount_lamports: int,
) -> Tuple[VaultState, Tuple[VaultEvent, ...]]:
    keeper = state.find_keeper(caller)
    if keeper is None:
        raise UnauthorizedError(caller, "a registered keeper")
    if isinstance(amount_lamports, bool) or not isinstance(amount_lamports, int) or amount_lamports <= 0:
        raise ParamValidationError("amount_lamports", amount_lamports, "must be an int > 0")
    updated = replace(keeper, bond_lamports=keeper.bond_lamports + amount_lamports)
    new_state = replace(state, keepers=_replace_keeper(state.keepers, updated))
    event = VaultEvent(
        "KeeperBondUpdated",
        {"keeper_id": caller, "bond_lamports": updated.bond_lamports},
    )
    return new_state, (event,)


# ---------------------------------------------------------------------------
# Privileged-call gate
# ---------------------------------------------------------------------------

def authorize_keeper_call(state: VaultState, caller: str) -> Optional[KeeperSlot]:
    """
    Check that caller may perform a privileged keeper call.

    Returns the caller's KeeperSlot when registered (None for an
    unregistered authority). Raises UnauthorizedError,
    KeeperBondInsufficientError or KeeperRateLimitedError.
    """
    keeper = state.find_keeper(caller)
    if keeper is None:
        if caller == state.authority:
            return None
        raise UnauthorizedError(caller, "a keeper or the authority")

    required = state.params.keeper_bond_required_lamports
    if keeper.bond_lamports < required:
        raise KeeperBondInsufficientError(caller, keeper.bond_lamports, required)

    max_updates = state.params.max_updates_per_epoch
    if keeper.update_count >= max_updates:
        raise KeeperRateLimitedError(caller, keeper.update_count, max_updates)
    return keeper


def record_keeper_call(state: VaultState, caller: str, slot: int) -> VaultState:
    """Count one privileged call against caller's epoch budget and heartbeat."""
    keeper = state.find_keeper(caller)
    if keeper is None:
        return state
    updated = replace(keeper, update_count=keeper.update_count + 1, heartbeat_slot=slot)
    return replace(state, keepers=_replace_keeper(state.keepers, updated))


def touch_heartbeat(state: VaultState, caller: str, slot: int) -> VaultState:
    """Heartbeat only; used by the epoch tick, which is not counted."""
    keeper = state.find_keeper(caller)
    if keeper is None:
        return state
    return replace(
        state,
        keepers=_replace_keeper(state.keepers, replace(keeper, heartbeat_slot=slot)),
    )


def reset_epoch_counters(keepers: Tuple[KeeperSlot, ...]) -> Tuple[KeeperSlot, ...]:
    return tuple(replace(k, update_count=0) for k in keepers)


__all__ = [
    "add_keeper",
    "remove_keeper",
    "deposit_keeper_bond",
    "authorize_keeper_call",
    "record_keeper_call",
    "touch_heartbeat",
    "reset_epoch_counters",
]
