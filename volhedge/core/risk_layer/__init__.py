from .exceptions import (
    VaultError,
    InvalidParamsError,
    AuthorizationError,
    RetriableError,
    ConditionNotMetError,
    GuardrailViolationError,
    ProtocolStateError,
    LifecycleError,
    ParamValidationError,
    ParamConsistencyError,
    KeeperSetFullError,
    UnauthorizedError,
    KeeperBondInsufficientError,
    KeeperRateLimitedError,
    PolicyCooldownError,
    HedgeTooSoonError,
    DriftNotMetError,
    CapExceededError,
    ReserveTooLowError,
    LeverageExceededError,
    NoOutstandingRequestError,
    WrongRequestIdError,
    RequestOutstandingError,
    ConfirmExpiredError,
    ExtremeEventPendingError,
    PausedError,
    OracleNotReadyError,
    OracleDegradedError,
    VaultNotFoundError,
    VaultExistsError,
)
from .domain import (
    CallContext,
    ExtremeDriftAction,
    FeedId,
    OracleFeedChoice,
    OracleHealth,
    OracleRejectReason,
    VaultParams,
    VolMode,
)

# guardrails depends on volhedge.core.state_layer, which imports .domain;
# import it as volhedge.core.risk_layer.guardrails.

__all__ = [
    # Exceptions
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
    # Enumerations
    "VolMode",
    "FeedId",
    "OracleFeedChoice",
    "ExtremeDriftAction",
    "OracleHealth",
    "OracleRejectReason",
    # Domain dataclasses
    "VaultParams",
    "CallContext",
]
