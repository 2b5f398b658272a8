# volhedge/core/logging_layer.py
# Event Logging Layer
#
# Scope: Event-sourced, hash-chained logging of vault state changes.
# This is the event sink: operations emit VaultEvents, the engine records
# them here after the state change is committed. Correctness of the vault
# never depends on what is stored here.
#
# Zero tolerance for lost events. No file IO. No global mutable state.
# All slots are caller-supplied. All hashes are deterministic.
#
# Canonical import:
#   from volhedge.core.logging_layer import EventLogger, Event, EventFilter
#
# Dependencies: volhedge.core.integrity_layer
# Prohibited: datetime.now(), uuid, random, file IO, global mutable state

# ===========================================================================
# SECTION 1 -- STDLIB IMPORTS
# ===========================================================================

import math
from dataclasses import dataclass
from typing import Any, Dict, Iterator, List, Optional

# ===========================================================================
# SECTION 2 -- INTERNAL DEPENDENCY
# ===========================================================================

from volhedge.core.integrity_layer import IntegrityLayer

# ===========================================================================
# SECTION 3 -- CONSTANTS
# ===========================================================================

# Sentinel strings logged in place of non-finite floats; the event is never
# silently dropped.
_NAN_SENTINEL: str = "NaN_DETECTED"
_INF_SENTINEL: str = "Inf_DETECTED"

_HASH_SEP: str = "|"

_GENESIS_LABEL: str = "volhedge event log genesis"

# ===========================================================================
# SECTION 4 -- DATACLASSES: Event, EventFilter
# ===========================================================================

@dataclass(frozen=True)
class Event:
    """
    Immutable record of a single vault event.

    Fields
    ------
    id         : Deterministic identifier derived from the logger counter.
    type       : Event name (e.g. HedgeRequested, PolicyUpdated).
    slot       : Caller-supplied slot of the operation that emitted it.
    vault_key  : Vault the event belongs to ("" for engine-level events).
    data       : Sanitized key-value payload.
    prev_hash  : hash of the previous event, or the genesis hash.
    hash       : SHA-256 over (prev_hash, id, type, slot, vault_key, data).
    """
    id: str
    type: str
    slot: int
    vault_key: str
    data: Dict[str, Any]
    prev_hash: str
    hash: str


@dataclass
class EventFilter:
    """
    Filter specification for EventLogger.query_events().

    All fields are optional. Omitted fields apply no constraint.
    start_slot / end_slot are inclusive; limit keeps the oldest matches.
    """
    event_type: Optional[str] = None
    vault_key: Optional[str] = None
    start_slot: Optional[int] = None
    end_slot: Optional[int] = None
    limit: Optional[int] = None


# ===========================================================================
# SECTION 5 -- INTERNAL HELPERS
# ===========================================================================

def _sanitize_numeric(value: Any) -> Any:
    if isinstance(value, float):
        if math.isnan(value):
            return _NAN_SENTINEL
        if math.isinf(value):
            return _INF_SENTINEL
    return value


def _sanitize_data(data: Dict[str, Any]) -> Dict[str, Any]:
    """Return a new dict with float values sanitized. Input is not mutated."""
    return {k: _sanitize_numeric(v) for k, v in data.items()}


def _hash_body(
    event_id: str,
    event_type: str,
    slot: int,
    vault_key: str,
    data: Dict[str, Any],
) -> str:
    """
    Hash preimage body, fields in fixed order:
        event_id | event_type | slot | vault_key | repr(sorted(data.items()))
    """
    return (
        event_id
        + _HASH_SEP
        + event_type
        + _HASH_SEP
        + str(slot)
        + _HASH_SEP
        + vault_key
        + _HASH_SEP
        + repr(sorted(data.items()))
    )


def _make_event_id(counter: int) -> str:
    """Format: "EVT-{counter:016d}". Zero-padded for lexicographic order."""
    return "EVT-{:016d}".format(counter)


# ===========================================================================
# SECTION 6 -- EventLogger
# ===========================================================================

class EventLogger:
    """
    Event-sourced logger with deterministic hash-chain integrity.

    Storage
    -------
    Events are held in an instance-level list. No file IO. No global
    state. Each EventLogger instance is fully independent.

    Zero lost events
    ----------------
    log_event() raises LoggingError on invalid input instead of silently
    discarding the event.
    """

    def __init__(self) -> None:
        self._store: List[Event] = []
        self._counter: int = 0
        self._integrity: IntegrityLayer = IntegrityLayer()
        self._genesis_hash: str = self._integrity.genesis_hash(_GENESIS_LABEL)

    # -----------------------------------------------------------------------
    # SECTION 6.1 -- log_event
    # -----------------------------------------------------------------------

    def log_event(
        self,
        event_type: str,
        data: Dict[str, Any],
        slot: int,
        vault_key: str = "",
    ) -> str:
        """
        Record one event. Return the assigned event ID.

        Raises
        ------
        LoggingError : If event_type is empty, data is not a dict, or slot
                       is not a non-negative int.
        """
        if not event_type:
            raise LoggingError("event_type must be a non-empty string")
        if not isinstance(data, dict):
            raise LoggingError(
                "data must be a dict; got: {}".format(type(data))
            )
        if isinstance(slot, bool) or not isinstance(slot, int) or slot < 0:
            raise LoggingError(
                "slot must be a non-negative int; got: {!r}".format(slot)
            )
        if not isinstance(vault_key, str):
            raise LoggingError("vault_key must be a string")

        self._counter += 1
        event_id: str = _make_event_id(self._counter)
        sanitized: Dict[str, Any] = _sanitize_data(data)
        prev_hash: str = self._store[-1].hash if self._store else self._genesis_hash
        event_hash: str = self._integrity.chain_hash(
            prev_hash, _hash_body(event_id, event_type, slot, vault_key, sanitized)
        )

        self._store.append(
            Event(
                id=event_id,
                type=event_type,
                slot=slot,
                vault_key=vault_key,
                data=sanitized,
                prev_hash=prev_hash,
                hash=event_hash,
            )
        )
        return event_id

    # -----------------------------------------------------------------------
    # SECTION 6.2 -- query_events
    # -----------------------------------------------------------------------

    def query_events(self, filter: EventFilter) -> List[Event]:
        """
        Return events matching the filter, oldest first.

        Filtering order: event_type, vault_key, start_slot, end_slot, limit.
        """
        if filter is None:
            raise LoggingError("filter must not be None")

        results: List[Event] = []
        for event in self._store:
            if filter.event_type is not None and event.type != filter.event_type:
                continue
            if filter.vault_key is not None and event.vault_key != filter.vault_key:
                continue
            if filter.start_slot is not None and event.slot < filter.start_slot:
                continue
            if filter.end_slot is not None and event.slot > filter.end_slot:
                continue
            results.append(event)

        if filter.limit is not None:
            results = results[: filter.limit]

        return results

    # -----------------------------------------------------------------------
    # SECTION 6.3 -- get_event_stream
    # -----------------------------------------------------------------------

    def get_event_stream(self, start_slot: int = 0) -> Iterator[Event]:
        """Yield events in insertion order with slot >= start_slot."""
        if isinstance(start_slot, bool) or not isinstance(start_slot, int):
            raise LoggingError(
                "start_slot must be an int; got: {}".format(type(start_slot))
            )
        for event in self._store:
            if event.slot >= start_slot:
                yield event

    # -----------------------------------------------------------------------
    # SECTION 6.4 -- verify_chain / event_count / head_hash
    # -----------------------------------------------------------------------

    def verify_chain(self) -> bool:
        """Recompute every link; False on the first mismatch."""
        prev_hash = self._genesis_hash
        for event in self._store:
            if event.prev_hash != prev_hash:
                return False
            expected = self._integrity.chain_hash(
                prev_hash,
                _hash_body(event.id, event.type, event.slot, event.vault_key, event.data),
            )
            if expected != event.hash:
                return False
            prev_hash = event.hash
        return True

    def event_count(self) -> int:
        return len(self._store)

    def head_hash(self) -> str:
        """Hash of the newest event, or the genesis hash when empty."""
        return self._store[-1].hash if self._store else self._genesis_hash


# ===========================================================================
# SECTION 7 -- EXCEPTIONS
# ===========================================================================

class LoggingError(Exception):
    """
    Raised by EventLogger when an invariant is violated.

    Never silently swallowed. Every call site either handles LoggingError
    or lets it propagate.
    """


__all__ = [
    "Event",
    "EventFilter",
    "EventLogger",
    "LoggingError",
]
