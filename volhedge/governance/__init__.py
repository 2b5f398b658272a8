# volhedge/governance/__init__.py
# Version: 1.0.0

from volhedge.governance.config_surface import (
    accept_authority,
    bump_config,
    require_authority,
    set_confirm_config,
    set_emergency_withdraw_enabled,
    set_hedge_sizing,
    set_keeper_admin,
    set_keeper_controls,
    set_oracle_config,
    set_paused,
    set_pending_authority,
    set_policy_bounds,
    set_policy_stability,
    set_risk_caps,
    set_vol_model,
    set_vol_weights,
)
