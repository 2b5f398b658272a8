from dataclasses import FrozenInstanceError

import pytest

from volhedge.core.risk_layer import (
    CallContext,
    ExtremeDriftAction,
    OracleFeedChoice,
    ParamConsistencyError,
    ParamValidationError,
    VaultParams,
    VolMode,
)


class TestEnums:
    def test_values(self):
        assert [m.value for m in VolMode] == ["STDEV", "EWMA", "MAD"]
        assert OracleFeedChoice("AUTO_PREFER_USD_THEN_USDC") is OracleFeedChoice.AUTO_PREFER_USD_THEN_USDC
        assert ExtremeDriftAction("PAUSE") is ExtremeDriftAction.PAUSE

    def test_str_mixin(self):
        assert VolMode.EWMA == "EWMA"


class TestVaultParamsValid:
    def test_valid_construction(self, valid_params):
        assert valid_params.min_band_bps == 100
        assert valid_params.vol_mode is VolMode.STDEV

    def test_frozen(self, valid_params):
        with pytest.raises(FrozenInstanceError):
            valid_params.min_band_bps = 5  # type: ignore[misc]

    def test_zero_intervals_allowed(self, params_factory):
        params = params_factory(min_interval_slots=0, max_interval_slots=0)
        assert params.max_interval_slots == 0

    def test_equal_bounds_allowed(self, params_factory):
        params = params_factory(min_band_bps=500, max_band_bps=500)
        assert params.min_band_bps == params.max_band_bps

    def test_stdev_mode_allows_zero_alpha(self, params_factory):
        assert params_factory(ewma_alpha_bps=0).ewma_alpha_bps == 0


class TestVaultParamsV1Type:
    @pytest.mark.parametrize("value", [True, 1.0, "100", None])
    def test_non_int_rejected(self, params_factory, value):
        with pytest.raises(ParamValidationError) as exc_info:
            params_factory(min_band_bps=value)
        assert exc_info.value.constraint == "must be an int"

    def test_type_checked_before_range(self, params_factory):
        with pytest.raises(ParamValidationError) as exc_info:
            params_factory(max_staked_sol=-1.5)
        assert exc_info.value.constraint == "must be an int"


class TestVaultParamsV2Range:
    @pytest.mark.parametrize("field_name", [
        "min_band_bps", "max_band_bps", "hysteresis_bps", "ewma_alpha_bps",
        "min_reserve_bps", "max_confidence_bps", "max_price_jump_bps",
        "target_delta_bps", "extreme_drift_bps",
    ])
    def test_bps_fields_bounded(self, params_factory, field_name):
        with pytest.raises(ParamValidationError) as exc_info:
            params_factory(**{field_name: 10_001})
        assert exc_info.value.field_name == field_name

    @pytest.mark.parametrize("field_name", [
        "min_return_spacing_slots", "policy_update_min_slots", "max_policy_slew_bps",
        "max_staked_sol", "max_abs_hedge_notional_usd", "max_hedge_per_sol_usd_fp",
        "max_price_age_seconds", "lst_beta_fp", "max_confirm_delay_slots",
        "max_updates_per_epoch",
    ])
    def test_positive_fields(self, params_factory, field_name):
        with pytest.raises(ParamValidationError) as exc_info:
            params_factory(**{field_name: 0})
        assert exc_info.value.constraint == "must be > 0"

    def test_negative_bond_rejected(self, params_factory):
        with pytest.raises(ParamValidationError):
            params_factory(keeper_bond_required_lamports=-1)

    def test_slew_upper_bound(self, params_factory):
        with pytest.raises(ParamValidationError):
            params_factory(max_policy_slew_bps=10_001)

    @pytest.mark.parametrize("value", [0, 33])
    def test_min_samples_range(self, params_factory, value):
        with pytest.raises(ParamValidationError) as exc_info:
            params_factory(min_samples=value)
        assert exc_info.value.field_name == "min_samples"

    def test_min_samples_full_window_allowed(self, params_factory):
        assert params_factory(min_samples=32).min_samples == 32


class TestVaultParamsV3Enum:
    def test_plain_string_rejected(self, params_factory):
        with pytest.raises(ParamValidationError) as exc_info:
            params_factory(vol_mode="STDEV")
        assert "VolMode" in exc_info.value.constraint

    def test_wrong_enum_rejected(self, params_factory):
        with pytest.raises(ParamValidationError):
            params_factory(oracle_feed_choice=VolMode.MAD)


class TestVaultParamsV4CrossField:
    def test_band_order(self, params_factory):
        with pytest.raises(ParamConsistencyError):
            params_factory(min_band_bps=1200, max_band_bps=1100)

    def test_interval_order(self, params_factory):
        with pytest.raises(ParamConsistencyError):
            params_factory(min_interval_slots=111)

    def test_weights_sum(self, params_factory):
        with pytest.raises(ParamConsistencyError) as exc_info:
            params_factory(vol_weight_realized_bps=6000, vol_weight_implied_bps=3000)
        assert "sum to 10000" in exc_info.value.message

    def test_ewma_requires_alpha(self, params_factory):
        with pytest.raises(ParamConsistencyError):
            params_factory(vol_mode=VolMode.EWMA, ewma_alpha_bps=0)


class TestVaultParamsMapping:
    def test_to_mapping_uses_enum_values(self, valid_params):
        data = valid_params.to_mapping()
        assert data["vol_mode"] == "STDEV"
        assert data["oracle_feed_choice"] == "AUTO_PREFER_USD_THEN_USDC"
        assert len(data) == 28

    def test_from_mapping_rebuilds_equal_params(self, valid_params):
        assert VaultParams.from_mapping(valid_params.to_mapping()) == valid_params

    def test_unknown_key(self, valid_params):
        data = valid_params.to_mapping()
        data["leverage"] = 3
        with pytest.raises(ParamValidationError) as exc_info:
            VaultParams.from_mapping(data)
        assert exc_info.value.constraint == "is not a VaultParams field"

    def test_missing_key(self, valid_params):
        data = valid_params.to_mapping()
        del data["hysteresis_bps"]
        with pytest.raises(ParamValidationError) as exc_info:
            VaultParams.from_mapping(data)
        assert exc_info.value.field_name == "hysteresis_bps"
        assert exc_info.value.constraint == "is required"

    def test_bad_enum_value(self, valid_params):
        data = valid_params.to_mapping()
        data["vol_mode"] = "GARCH"
        with pytest.raises(ParamValidationError):
            VaultParams.from_mapping(data)


class TestCallContext:
    def test_valid(self):
        ctx = CallContext("k1", 10, 1000)
        assert ctx.caller == "k1"

    @pytest.mark.parametrize("caller,slot,unix_time", [
        ("", 0, 0),
        (None, 0, 0),
        ("k1", -1, 0),
        ("k1", 0, -1),
        ("k1", True, 0),
        ("k1", 1.0, 0),
    ])
    def test_invalid(self, caller, slot, unix_time):
        with pytest.raises(ParamValidationError):
            CallContext(caller, slot, unix_time)
