# =============================================================================
# VOLHEDGE v1.0.0 -- RISK & CONTROL LAYER
# File:   volhedge/core/risk_layer/exceptions.py
# =============================================================================
#
# SCOPE
# -----
# Defines the exception hierarchy for every vault operation.
# All exceptions are pure value objects: no side effects, no logging,
# no external references, no I/O of any kind.
#
# EXCEPTION HIERARCHY
# -------------------
#   VaultError(Exception)                        -- base; never raised directly
#     InvalidParamsError                         -- (a) validation
#       ParamValidationError                     --     field-local violation
#       ParamConsistencyError                    --     cross-field violation
#       KeeperSetFullError                       --     keeper capacity reached
#     AuthorizationError                         -- (b) authorization
#       UnauthorizedError
#       KeeperBondInsufficientError
#     RetriableError                             -- (c) rate / cooldown
#       KeeperRateLimitedError
#       PolicyCooldownError
#       HedgeTooSoonError
#     ConditionNotMetError                       -- (d) benign, no action needed
#       DriftNotMetError
#     GuardrailViolationError                    -- (e) risk guardrail
#       CapExceededError
#       ReserveTooLowError
#       LeverageExceededError
#     ProtocolStateError                         -- (f) hedge protocol state
#       NoOutstandingRequestError
#       WrongRequestIdError
#       RequestOutstandingError
#       ConfirmExpiredError
#       ExtremeEventPendingError
#     LifecycleError                             -- (g) lifecycle / oracle
#       PausedError
#       OracleNotReadyError
#       OracleDegradedError
#       VaultNotFoundError
#       VaultExistsError
#
# DETERMINISM GUARANTEES
# ----------------------
# DET-01  No stochastic operations.
# DET-02  All message content is derived exclusively from constructor arguments.
# DET-03  No side effects. Exception construction is a pure value operation.
# DET-04  No module-level mutable state.
#
# MESSAGE CONTRACT
# ----------------
# Every exception message is:
#   - Deterministic: identical inputs -> identical message string.
#   - Explicit: field name and violating value always included.
#   - ASCII-safe.
#   - Prefixed with the concrete class name.
#
# =============================================================================

from __future__ import annotations

from typing import Any, Optional


# =============================================================================
# SECTION 1 -- BASE EXCEPTION
# =============================================================================

class VaultError(Exception):
    """
    Base class for all vault operation exceptions.

    Never raised directly. Use a concrete subclass.

    Attributes:
        field_name:  Name of the offending field, or empty string if not
                     applicable.
        value:       The offending value, or None if the violation is
                     relational rather than field-local.
        message:     Human-readable description. Always non-empty.
    """

    def __init__(
        self,
        message:    str,
        field_name: str = "",
        value:      Any = None,
    ) -> None:
        if not isinstance(message, str) or not message:
            raise ValueError(
                "VaultError: message must be a non-empty string"
            )
        if not isinstance(field_name, str):
            raise ValueError(
                "VaultError: field_name must be a string"
            )
        super().__init__(message)
        self.field_name: str = field_name
        self.value:      Any = value
        self.message:    str = message

    def __repr__(self) -> str:
        return (
            self.__class__.__name__
            + "(field_name=" + repr(self.field_name)
            + ", value=" + repr(self.value)
            + ", message=" + repr(self.message)
            + ")"
        )

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, VaultError):
            return NotImplemented
        return (
            type(self) is type(other)
            and self.field_name == other.field_name
            and self.value == other.value
            and self.message == other.message
        )

    __hash__ = Exception.__hash__


def _msg(cls_name: str, body: str) -> str:
    return cls_name + ": " + body


# =============================================================================
# SECTION 2 -- TAXONOMY BASES (never raised directly)
# =============================================================================

class InvalidParamsError(VaultError):
    """(a) Rejected before any state change: malformed or inconsistent input."""


class AuthorizationError(VaultError):
    """(b) Caller lacks the role or bond required for the operation."""


class RetriableError(VaultError):
    """(c) Rate limit or cooldown; the same call may succeed later."""


class ConditionNotMetError(VaultError):
    """(d) Benign: the operation has nothing to do right now."""


class GuardrailViolationError(VaultError):
    """(e) A risk cap, leverage ceiling or reserve ratio would be breached."""


class ProtocolStateError(VaultError):
    """(f) Hedge request/confirm protocol is in the wrong state."""


class LifecycleError(VaultError):
    """(g) Vault lifecycle or oracle readiness blocks the operation."""


# =============================================================================
# SECTION 3 -- (a) VALIDATION
# =============================================================================

class ParamValidationError(InvalidParamsError):
    """
    Raised when a field value violates a range, sign, type, or membership
    constraint.

    Message format:
        "ParamValidationError: field '<field_name>' violates constraint
         '<constraint>': got <value>."
    """

    def __init__(
        self,
        field_name:  str,
        value:       Any,
        constraint:  str,
    ) -> None:
        if not field_name:
            raise ValueError(
                "ParamValidationError: field_name must be a non-empty string"
            )
        if not isinstance(constraint, str) or not constraint:
            raise ValueError(
                "ParamValidationError: constraint must be a non-empty string"
            )
        message = (
            "ParamValidationError: field '"
            + field_name
            + "' violates constraint '"
            + constraint
            + "': got "
            + repr(value)
            + "."
        )
        super().__init__(message=message, field_name=field_name, value=value)
        self.constraint: str = constraint


class ParamConsistencyError(InvalidParamsError):
    """
    Raised when two fields are individually valid but together violate a
    cross-field invariant (e.g. min_band_bps > max_band_bps).

    The base class field_name / value carry field_a / value_a; field_b and
    value_b are available as additional attributes.
    """

    def __init__(
        self,
        field_a:               str,
        value_a:               Any,
        field_b:               str,
        value_b:               Any,
        invariant_description: str,
    ) -> None:
        if not field_a or not field_b:
            raise ValueError(
                "ParamConsistencyError: field_a and field_b must be non-empty"
            )
        if not isinstance(invariant_description, str) or not invariant_description:
            raise ValueError(
                "ParamConsistencyError: invariant_description must be non-empty"
            )
        message = (
            "ParamConsistencyError: cross-field invariant violated -- "
            + invariant_description
            + ". Field '"
            + field_a
            + "' = "
            + repr(value_a)
            + ", field '"
            + field_b
            + "' = "
            + repr(value_b)
            + "."
        )
        super().__init__(message=message, field_name=field_a, value=value_a)
        self.field_a:               str = field_a
        self.value_a:               Any = value_a
        self.field_b:               str = field_b
        self.value_b:               Any = value_b
        self.invariant_description: str = invariant_description


class KeeperSetFullError(InvalidParamsError):
    def __init__(self, keeper_id: str, capacity: int) -> None:
        super().__init__(
            message=_msg(
                "KeeperSetFullError",
                "cannot add keeper " + repr(keeper_id)
                + "; keeper set is at capacity " + str(capacity) + ".",
            ),
            field_name="keeper_id",
            value=keeper_id,
        )
        self.capacity: int = capacity


# =============================================================================
# SECTION 4 -- (b) AUTHORIZATION
# =============================================================================

class UnauthorizedError(AuthorizationError):
    """Caller is not the authority / keeper admin / keeper the call requires."""

    def __init__(self, caller: str, required_role: str) -> None:
        super().__init__(
            message=_msg(
                "UnauthorizedError",
                "caller " + repr(caller) + " is not " + required_role + ".",
            ),
            field_name="caller",
            value=caller,
        )
        self.required_role: str = required_role


class KeeperBondInsufficientError(AuthorizationError):
    def __init__(self, keeper_id: str, bond_lamports: int, required_lamports: int) -> None:
        super().__init__(
            message=_msg(
                "KeeperBondInsufficientError",
                "keeper " + repr(keeper_id) + " bond " + str(bond_lamports)
                + " is below required " + str(required_lamports) + ".",
            ),
            field_name="bond_lamports",
            value=bond_lamports,
        )
        self.keeper_id:         str = keeper_id
        self.required_lamports: int = required_lamports


# =============================================================================
# SECTION 5 -- (c) RATE / COOLDOWN
# =============================================================================

class KeeperRateLimitedError(RetriableError):
    def __init__(self, keeper_id: str, update_count: int, max_updates: int) -> None:
        super().__init__(
            message=_msg(
                "KeeperRateLimitedError",
                "keeper " + repr(keeper_id) + " used " + str(update_count)
                + " of " + str(max_updates) + " updates this epoch.",
            ),
            field_name="update_count",
            value=update_count,
        )
        self.keeper_id:   str = keeper_id
        self.max_updates: int = max_updates


class PolicyCooldownError(RetriableError):
    def __init__(self, slot: int, last_update_slot: int, min_slots: int) -> None:
        super().__init__(
            message=_msg(
                "PolicyCooldownError",
                "slot " + str(slot) + " is within " + str(min_slots)
                + " slots of last policy update at " + str(last_update_slot) + ".",
            ),
            field_name="slot",
            value=slot,
        )
        self.last_update_slot: int = last_update_slot
        self.min_slots:        int = min_slots


class HedgeTooSoonError(RetriableError):
    def __init__(self, slot: int, last_hedge_slot: int, min_interval_slots: int) -> None:
        super().__init__(
            message=_msg(
                "HedgeTooSoonError",
                "slot " + str(slot) + " is within " + str(min_interval_slots)
                + " slots of last hedge at " + str(last_hedge_slot) + ".",
            ),
            field_name="slot",
            value=slot,
        )
        self.last_hedge_slot:    int = last_hedge_slot
        self.min_interval_slots: int = min_interval_slots


# =============================================================================
# SECTION 6 -- (d) CONDITION NOT MET
# =============================================================================

class DriftNotMetError(ConditionNotMetError):
    def __init__(self, drift_bps: int, band_bps: int) -> None:
        super().__init__(
            message=_msg(
                "DriftNotMetError",
                "price drift " + str(drift_bps) + " bps is inside band "
                + str(band_bps) + " bps.",
            ),
            field_name="drift_bps",
            value=drift_bps,
        )
        self.band_bps: int = band_bps


# =============================================================================
# SECTION 7 -- (e) GUARDRAILS
# =============================================================================

class CapExceededError(GuardrailViolationError):
    def __init__(self, field_name: str, value: int, cap: int) -> None:
        super().__init__(
            message=_msg(
                "CapExceededError",
                "field '" + field_name + "' value " + str(value)
                + " exceeds cap " + str(cap) + ".",
            ),
            field_name=field_name,
            value=value,
        )
        self.cap: int = cap


class ReserveTooLowError(GuardrailViolationError):
    def __init__(self, reserve_sol: int, staked_sol: int, min_reserve_bps: int) -> None:
        super().__init__(
            message=_msg(
                "ReserveTooLowError",
                "reserve " + str(reserve_sol) + " SOL is below "
                + str(min_reserve_bps) + " bps of staked " + str(staked_sol) + " SOL.",
            ),
            field_name="reserve_sol",
            value=reserve_sol,
        )
        self.staked_sol:      int = staked_sol
        self.min_reserve_bps: int = min_reserve_bps


class LeverageExceededError(GuardrailViolationError):
    def __init__(self, hedge_notional_usd: int, staked_sol: int, ceiling_usd: int) -> None:
        super().__init__(
            message=_msg(
                "LeverageExceededError",
                "hedge notional " + str(hedge_notional_usd) + " USD exceeds ceiling "
                + str(ceiling_usd) + " USD for " + str(staked_sol) + " staked SOL.",
            ),
            field_name="hedge_notional_usd",
            value=hedge_notional_usd,
        )
        self.staked_sol:  int = staked_sol
        self.ceiling_usd: int = ceiling_usd


# =============================================================================
# SECTION 8 -- (f) PROTOCOL STATE
# =============================================================================

class NoOutstandingRequestError(ProtocolStateError):
    def __init__(self, operation: str) -> None:
        super().__init__(
            message=_msg(
                "NoOutstandingRequestError",
                operation + " requires an outstanding hedge request.",
            ),
            field_name="request_outstanding",
            value=False,
        )


class WrongRequestIdError(ProtocolStateError):
    def __init__(self, request_id: int, expected_request_id: int) -> None:
        super().__init__(
            message=_msg(
                "WrongRequestIdError",
                "request id " + str(request_id) + " does not match outstanding id "
                + str(expected_request_id) + ".",
            ),
            field_name="request_id",
            value=request_id,
        )
        self.expected_request_id: int = expected_request_id


class RequestOutstandingError(ProtocolStateError):
    def __init__(self, request_id: int, request_slot: int) -> None:
        super().__init__(
            message=_msg(
                "RequestOutstandingError",
                "hedge request " + str(request_id) + " from slot "
                + str(request_slot) + " is still awaiting confirmation.",
            ),
            field_name="request_id",
            value=request_id,
        )
        self.request_slot: int = request_slot


class ConfirmExpiredError(ProtocolStateError):
    def __init__(self, request_id: int, slot: int, request_slot: int, max_delay_slots: int) -> None:
        super().__init__(
            message=_msg(
                "ConfirmExpiredError",
                "confirmation of request " + str(request_id) + " at slot "
                + str(slot) + " is more than " + str(max_delay_slots)
                + " slots after request slot " + str(request_slot) + ".",
            ),
            field_name="slot",
            value=slot,
        )
        self.request_id:      int = request_id
        self.request_slot:    int = request_slot
        self.max_delay_slots: int = max_delay_slots


class ExtremeEventPendingError(ProtocolStateError):
    def __init__(self, operation: str) -> None:
        super().__init__(
            message=_msg(
                "ExtremeEventPendingError",
                operation + " is blocked until the extreme drift event is acknowledged.",
            ),
            field_name="extreme_event_pending",
            value=True,
        )


# =============================================================================
# SECTION 9 -- (g) LIFECYCLE / ORACLE
# =============================================================================

class PausedError(LifecycleError):
    def __init__(self, operation: str) -> None:
        super().__init__(
            message=_msg("PausedError", operation + " is not permitted while paused."),
            field_name="paused",
            value=True,
        )


class OracleNotReadyError(LifecycleError):
    def __init__(self, detail: str) -> None:
        super().__init__(
            message=_msg("OracleNotReadyError", detail),
            field_name="oracle",
            value=None,
        )


class OracleDegradedError(LifecycleError):
    def __init__(self, reject_reason: Optional[str]) -> None:
        super().__init__(
            message=_msg(
                "OracleDegradedError",
                "oracle is degraded (last reject reason: " + str(reject_reason) + ").",
            ),
            field_name="oracle_health",
            value=reject_reason,
        )


class VaultNotFoundError(LifecycleError):
    def __init__(self, vault_key: str) -> None:
        super().__init__(
            message=_msg("VaultNotFoundError", "no vault for key " + repr(vault_key) + "."),
            field_name="vault_key",
            value=vault_key,
        )


class VaultExistsError(LifecycleError):
    def __init__(self, vault_key: str) -> None:
        super().__init__(
            message=_msg("VaultExistsError", "vault already initialized for key " + repr(vault_key) + "."),
            field_name="vault_key",
            value=vault_key,
        )


# =============================================================================
# MODULE __all__
# =============================================================================

__all__ = [
    "VaultError",
    "InvalidParamsError",
    "AuthorizationError",
    "RetriableError",
    "ConditionNotMetError",
    "GuardrailViolationError",
    "ProtocolStateError",
    "LifecycleError",
    "ParamValidationError",
    "ParamConsistencyError",
    "KeeperSetFullError",
    "UnauthorizedError",
    "KeeperBondInsufficientError",
    "KeeperRateLimitedError",
    "PolicyCooldownError",
    "HedgeTooSoonError",
    "DriftNotMetError",
    "CapExceededError",
    "ReserveTooLowError",
    "LeverageExceededError",
    "NoOutstandingRequestError",
    "WrongRequestIdError",
    "RequestOutstandingError",
    "ConfirmExpiredError",
    "ExtremeEventPendingError",
    "PausedError",
    "OracleNotReadyError",
    "OracleDegradedError",
    "VaultNotFoundError",
    "VaultExistsError",
]
