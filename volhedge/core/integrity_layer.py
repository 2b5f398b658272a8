# volhedge/core/integrity_layer.py
# Version: 1.0.0
# Integrity / hashing layer.
#
# =============================================================================
# SCOPE
# =============================================================================
#
#   - config_hash:   SHA-256 over a domain tag and the canonical JSON of the
#                    authority, keeper admin and VaultParams. Recomputed on
#                    every configuration change.
#   - state_digest:  SHA-256 over the canonical JSON of a full VaultState.
#                    Used by the replay harness to compare runs bit-for-bit.
#   - chain_hash:    SHA-256 link used by the EventLogger hash chain.
#
# IMPORT RULES:
#   volhedge/core/ imports from the standard library and volhedge.core /
#   volhedge.utils only.
#
# DETERMINISM GUARANTEES:
#   DET-01  No stochastic operations. No uuid, no os.urandom, no random.
#   DET-02  All inputs passed explicitly. No module-level mutable reads.
#   DET-03  No side effects. No IO.
#   DET-04  All hashing is deterministic SHA-256 over canonical byte sequences
#           (sorted keys, compact separators, enums by value).
#
# PROHIBITED ACTIONS CONFIRMED ABSENT:
#   - No logging calls
#   - No print statements
#   - No os.environ / os.getenv
#   - No module-level mutable containers
#
# =============================================================================

from __future__ import annotations

import json
from dataclasses import fields, is_dataclass
from enum import Enum
from hashlib import sha256
from typing import Any, Dict

from volhedge.utils.constants import CONFIG_HASH_DOMAIN
from volhedge.core.risk_layer.domain import VaultParams


# =============================================================================
# SECTION 1: INTERNAL PURE HELPERS
# =============================================================================

def _sha256_hex(data: bytes) -> str:
    return sha256(data).hexdigest()


def to_canonical(obj: Any) -> Any:
    """
    Convert dataclasses, enums, tuples and dicts into plain JSON values.

    Dataclass fields keep their declaration names; enums become their
    value; tuples become lists; dict keys become strings (enum keys by
    value). Anything else is returned as-is.
    """
    if isinstance(obj, Enum):
        return obj.value
    if is_dataclass(obj) and not isinstance(obj, type):
        return {f.name: to_canonical(getattr(obj, f.name)) for f in fields(obj)}
    if isinstance(obj, (list, tuple)):
        return [to_canonical(v) for v in obj]
    if isinstance(obj, dict):
        return {
            (k.value if isinstance(k, Enum) else str(k)): to_canonical(v)
            for k, v in obj.items()
        }
    return obj


def canonical_json(obj: Any) -> str:
    """Compact, sorted-key, ASCII-only JSON of to_canonical(obj)."""
    return json.dumps(to_canonical(obj), sort_keys=True, separators=(",", ":"))


# =============================================================================
# SECTION 2: INTEGRITY LAYER
# =============================================================================

class IntegrityLayer:
    """
    Stateless hashing service.

    No instance variables are read or written by any method; a new
    instance may be created freely at any call site.
    """

    def compute_config_hash(
        self,
        authority: str,
        keeper_admin: str,
        params: VaultParams,
    ) -> str:
        """
        Hash of the effective configuration.

        preimage = CONFIG_HASH_DOMAIN || "|" || canonical_json({
            "authority", "keeper_admin", "params"
        })
        """
        payload: Dict[str, Any] = {
            "authority": authority,
            "keeper_admin": keeper_admin,
            "params": params.to_mapping(),
        }
        raw: str = CONFIG_HASH_DOMAIN + "|" + canonical_json(payload)
        return _sha256_hex(raw.encode("utf-8"))

    def state_digest(self, state: Any) -> str:
        """SHA-256 of canonical_json(state). Any dataclass is accepted."""
        return _sha256_hex(canonical_json(state).encode("utf-8"))

    def chain_hash(self, prev_hash: str, body: str) -> str:
        """current_hash = SHA-256(prev_hash || body)."""
        return _sha256_hex((prev_hash + body).encode("utf-8"))

    def genesis_hash(self, label: str) -> str:
        return _sha256_hex(label.encode("utf-8"))


__all__ = [
    "IntegrityLayer",
    "canonical_json",
    "to_canonical",
]
