# volhedge/core/__init__.py
# Core canonical types for the hedge policy engine.

from volhedge.core.integrity_layer import IntegrityLayer
from volhedge.core.logging_layer import EventLogger, Event, EventFilter, LoggingError
from volhedge.core.state_layer import (
    HedgeBook,
    KeeperSlot,
    OracleSnapshot,
    ReturnsRing,
    VaultEvent,
    VaultState,
)
from volhedge.core.oracle_gate import PriceObservation
from volhedge.core.hedge_protocol import HedgeConfirmOutcome, HedgeRequestOutcome
