# =============================================================================
# VOLHEDGE v1.0.0 -- STATE LAYER -- VaultState
# File:   volhedge/core/state_layer.py
# =============================================================================
#
# SCOPE
# -----
# The single long-lived VaultState aggregate and the frozen value objects
# nested inside it: ReturnsRing, OracleSnapshot, HedgeBook, KeeperSlot.
# Also VaultEvent, the record every transition emits for the event sink.
#
# No oracle gating. No policy math. No hedge logic. No logging.
#
# DEPENDENCIES
# ------------
# stdlib: dataclasses, typing.
# internal: volhedge.utils.constants, volhedge.core.risk_layer.domain
#
# DETERMINISM CONSTRAINTS
# -----------------------
# DET-01  No stochastic operations.
# DET-02  All state objects are frozen; every change builds a new object via
#         dataclasses.replace. A transition that raises leaves no trace.
# DET-03  No datetime.now().
#
# INVARIANTS ENFORCED
# -------------------
# INV-RR-01  ReturnsRing.values always has exactly N_RETURNS entries.
# INV-RR-02  0 <= cursor < N_RETURNS, 0 <= count <= N_RETURNS.
# INV-KS-01  keeper_id non-empty; bond / update_count >= 0.
# =============================================================================

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, Dict, Optional, Tuple

from volhedge.utils.constants import INITIAL_CONFIG_VERSION, N_RETURNS
from volhedge.core.risk_layer.domain import (
    FeedId,
    OracleHealth,
    OracleRejectReason,
    VaultParams,
)


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------

class StateError(Exception):
    """Raised when a state value object is constructed with invalid contents."""


# ---------------------------------------------------------------------------
# ReturnsRing
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ReturnsRing:
    """
    Fixed-capacity circular buffer of recorded returns (1e6 fixed point).

    values:                 N_RETURNS slots; unused slots hold 0.
    cursor:                 index the next push writes to.
    count:                  number of valid samples (saturates at N_RETURNS).
    last_recorded_slot:     slot of the last recorded price, None before seeding.
    last_recorded_price_fp: reference price for the next return, 0 before seeding.
    """

    values:                 Tuple[int, ...] = (0,) * N_RETURNS
    cursor:                 int = 0
    count:                  int = 0
    last_recorded_slot:     Optional[int] = None
    last_recorded_price_fp: int = 0

    def __post_init__(self) -> None:
        if len(self.values) != N_RETURNS:
            raise StateError(
                "ReturnsRing.values must have " + str(N_RETURNS)
                + " entries; got " + str(len(self.values))
            )
        if not (0 <= self.cursor < N_RETURNS):
            raise StateError("ReturnsRing.cursor out of range: " + str(self.cursor))
        if not (0 <= self.count <= N_RETURNS):
            raise StateError("ReturnsRing.count out of range: " + str(self.count))

    def push(self, value: int) -> "ReturnsRing":
        """Return a new ring with value written at cursor, overwriting the oldest."""
        values = list(self.values)
        values[self.cursor] = value
        return replace(
            self,
            values=tuple(values),
            cursor=(self.cursor + 1) % N_RETURNS,
            count=min(self.count + 1, N_RETURNS),
        )

    def samples(self) -> Tuple[int, ...]:
        """Valid samples, oldest first."""
        if self.count < N_RETURNS:
            return self.values[: self.count]
        return self.values[self.cursor:] + self.values[: self.cursor]


# ---------------------------------------------------------------------------
# OracleSnapshot
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class OracleSnapshot:
    """Last accepted observation plus the sticky health flag."""

    spot_price_fp:          int = 0
    ema_price_fp:           int = 0
    confidence_fp:          int = 0
    publish_time:           int = 0
    feed_used:              Optional[FeedId] = None
    health:                 OracleHealth = OracleHealth.UNINITIALIZED
    last_reject_reason:     Optional[OracleRejectReason] = None
    last_accepted_price_fp: int = 0

    @property
    def oracle_ok(self) -> bool:
        return self.health is OracleHealth.HEALTHY

    @property
    def oracle_degraded(self) -> bool:
        return self.health is OracleHealth.DEGRADED


# ---------------------------------------------------------------------------
# HedgeBook
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class HedgeBook:
    """
    Hedge request/confirm protocol state.

    Idle      <=> request_outstanding is False.
    Requested <=> request_outstanding is True; last_hedge_request_id is the
                  only id confirm_hedge accepts.
    """

    request_outstanding:        bool = False
    last_hedge_request_id:      int = 0
    request_slot:               int = 0
    target_hedge_notional_usd:  int = 0
    spot_price_at_request_fp:   int = 0
    last_hedge_slot:            Optional[int] = None
    last_hedge_ema_price_fp:    int = 0
    hedge_fill_count:           int = 0
    avg_fill_slippage_bps:      int = 0
    last_fill_slot:             Optional[int] = None
    missed_confirms:            int = 0
    extreme_event_pending:      bool = False
    extreme_event_acknowledged: bool = False


# ---------------------------------------------------------------------------
# KeeperSlot
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class KeeperSlot:
    keeper_id:      str
    bond_lamports:  int = 0
    update_count:   int = 0
    heartbeat_slot: Optional[int] = None

    def __post_init__(self) -> None:
        if not isinstance(self.keeper_id, str) or not self.keeper_id:
            raise StateError("KeeperSlot.keeper_id must be a non-empty string")
        if self.bond_lamports < 0 or self.update_count < 0:
            raise StateError(
                "KeeperSlot counters must be >= 0 for keeper " + repr(self.keeper_id)
            )


# ---------------------------------------------------------------------------
# VaultState
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class VaultState:
    """
    The complete state of one vault.

    Every vault operation is a pure function VaultState -> VaultState.
    Nested groups (oracle, returns, hedge, keepers) are frozen value objects
    replaced wholesale on change.
    """

    # governance
    authority:                  str
    keeper_admin:               str
    params:                     VaultParams
    config_hash:                str
    config_version:             int = INITIAL_CONFIG_VERSION
    pending_authority:          Optional[str] = None
    keepers:                    Tuple[KeeperSlot, ...] = ()
    paused:                     bool = False
    emergency_withdraw_enabled: bool = False

    # exposures
    staked_sol:                 int = 0
    reserve_sol:                int = 0
    hedge_notional_usd:         int = 0

    # oracle / volatility
    oracle:                     OracleSnapshot = field(default_factory=OracleSnapshot)
    returns:                    ReturnsRing = field(default_factory=ReturnsRing)
    ewma_variance_fp2:          int = 0
    realized_vol_bps:           int = 0
    implied_vol_bps:            int = 0
    vol_score_bps:              int = 0

    # carry inputs (bps per day, signed)
    funding_bps_per_day:        int = 0
    borrow_bps_per_day:         int = 0
    staking_bps_per_day:        int = 0

    # policy
    band_bps:                       int = 0
    min_hedge_interval_slots:       int = 0
    last_policy_update_slot:        Optional[int] = None
    last_vol_score_used_for_policy: int = 0
    epoch:                          int = 0

    # hedge protocol
    hedge:                      HedgeBook = field(default_factory=HedgeBook)

    @property
    def expected_carry_bps(self) -> int:
        return (
            self.staking_bps_per_day
            + self.funding_bps_per_day
            - self.borrow_bps_per_day
        )

    def find_keeper(self, keeper_id: str) -> Optional[KeeperSlot]:
        for slot in self.keepers:
            if slot.keeper_id == keeper_id:
                return slot
        return None


def create_initial_state(authority: str, params: VaultParams, config_hash: str) -> VaultState:
    """
    Fresh vault: band at its minimum, interval at its maximum (calm
    defaults), no keepers, keeper admin defaults to the authority.
    """
    return VaultState(
        authority=authority,
        keeper_admin=authority,
        params=params,
        config_hash=config_hash,
        band_bps=params.min_band_bps,
        min_hedge_interval_slots=params.max_interval_slots,
    )


# ---------------------------------------------------------------------------
# VaultEvent
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class VaultEvent:
    """A state-change notification produced by a transition."""

    event_type: str
    data:       Dict[str, Any]


__all__ = [
    "StateError",
    "ReturnsRing",
    "OracleSnapshot",
    "HedgeBook",
    "KeeperSlot",
    "VaultState",
    "VaultEvent",
    "create_initial_state",
]
