# volhedge/utils/constants.py
# Version: 1.0.0
# All fixed-point scales and hard caps used by the hedge policy engine.
# Changes alter config hashes and replay digests; treat as a release change.
#
# Standard import pattern:
#   from volhedge.utils.constants import (
#       BPS_DENOM,
#       FP_SCALE,
#       N_RETURNS,
#       MAX_KEEPERS,
#   )


# ---------------------------------------------------------------------------
# FIXED-POINT SCALES
# ---------------------------------------------------------------------------

BPS_DENOM:       int = 10_000       # 1 bps = 1 / BPS_DENOM
FP_SCALE:        int = 1_000_000    # generic fixed-point scale
RET_FP_SCALE:    int = FP_SCALE     # returns are scaled by 1e6
PRICE_FP_SCALE:  int = FP_SCALE     # prices are scaled by 1e6
MAX_VOL_BPS:     int = BPS_DENOM    # vol / score ceiling (100%)


# ---------------------------------------------------------------------------
# VOLATILITY WINDOW
# ---------------------------------------------------------------------------

N_RETURNS:          int = 32
MAX_RETURN_ABS_FP:  int = 250_000                   # +-25% per recorded return
MAX_VAR_FP2:        int = 10_000_000_000_000_000    # 1e16, variance clamp
MAD_SCALE_NUM:      int = 14_826                    # MAD -> sigma, 1.4826
MAD_SCALE_DEN:      int = 10_000


# ---------------------------------------------------------------------------
# ORACLE
# ---------------------------------------------------------------------------

MAX_PRICE_FP:       int = 10_000_000_000_000        # 1e13, i.e. $10M per SOL
EMA_SMOOTHING_BPS:  int = 2_000                     # k for the oracle EMA


# ---------------------------------------------------------------------------
# POLICY
# ---------------------------------------------------------------------------

CARRY_BIAS_THRESHOLD_BPS:  int = 50     # |expected carry| trigger, bps/day
CARRY_BIAS_BPS:            int = 200    # relative band / interval bias


# ---------------------------------------------------------------------------
# KEEPERS / CONFIG
# ---------------------------------------------------------------------------

MAX_KEEPERS:            int = 8
INITIAL_CONFIG_VERSION: int = 1
CONFIG_HASH_DOMAIN:     str = "volhedge-config-v1"
