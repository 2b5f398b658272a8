from dataclasses import replace

import pytest

from volhedge.core.integrity_layer import IntegrityLayer
from volhedge.core.oracle_gate import PriceObservation
from volhedge.core.risk_layer import (
    CallContext,
    ExtremeDriftAction,
    FeedId,
    OracleFeedChoice,
    OracleHealth,
    VaultParams,
    VolMode,
)
from volhedge.core.state_layer import OracleSnapshot, create_initial_state
from volhedge.orchestrator.vault_engine import VaultEngine


# Same values as volhedge/verification/scenarios/baseline.json.
BASE_PARAMS = dict(
    min_band_bps=100,
    max_band_bps=1100,
    min_interval_slots=10,
    max_interval_slots=110,
    vol_weight_realized_bps=6000,
    vol_weight_implied_bps=4000,
    min_samples=2,
    min_return_spacing_slots=1,
    policy_update_min_slots=10,
    max_policy_slew_bps=10000,
    hysteresis_bps=100,
    vol_mode=VolMode.STDEV,
    ewma_alpha_bps=1000,
    max_staked_sol=10_000,
    max_abs_hedge_notional_usd=1_000_000,
    max_hedge_per_sol_usd_fp=500_000_000,
    min_reserve_bps=1000,
    oracle_feed_choice=OracleFeedChoice.AUTO_PREFER_USD_THEN_USDC,
    max_price_age_seconds=60,
    max_confidence_bps=100,
    max_price_jump_bps=2000,
    target_delta_bps=10000,
    lst_beta_fp=1_000_000,
    max_confirm_delay_slots=20,
    extreme_drift_bps=0,
    extreme_drift_action=ExtremeDriftAction.REQUIRE_ACK,
    max_updates_per_epoch=10,
    keeper_bond_required_lamports=0,
)


@pytest.fixture
def params_factory():
    """Build VaultParams from the baseline values with keyword overrides."""
    def _make(**overrides) -> VaultParams:
        values = dict(BASE_PARAMS)
        values.update(overrides)
        return VaultParams(**values)
    return _make


@pytest.fixture
def valid_params(params_factory) -> VaultParams:
    return params_factory()


@pytest.fixture
def state_factory(params_factory):
    """Fresh VaultState for authority 'auth' with overridden params."""
    def _make(**overrides):
        params = params_factory(**overrides)
        config_hash = IntegrityLayer().compute_config_hash("auth", "auth", params)
        return create_initial_state("auth", params, config_hash)
    return _make


@pytest.fixture
def fresh_state(state_factory):
    return state_factory()


@pytest.fixture
def hedge_ready_state(fresh_state):
    """
    1000 SOL staked, 100 SOL reserve, healthy oracle at $100 (spot == EMA),
    band 100 bps, interval 10 slots, no hedge history.
    """
    oracle = OracleSnapshot(
        spot_price_fp=100_000_000,
        ema_price_fp=100_000_000,
        confidence_fp=100_000,
        publish_time=1000,
        feed_used=FeedId.SOL_USD,
        health=OracleHealth.HEALTHY,
        last_accepted_price_fp=100_000_000,
    )
    return replace(
        fresh_state,
        staked_sol=1000,
        reserve_sol=100,
        oracle=oracle,
        band_bps=100,
        min_hedge_interval_slots=10,
    )


@pytest.fixture
def observation():
    """PriceObservation factory; defaults to SOL_USD with 0.1 USD confidence."""
    def _make(price_fp, publish_time, confidence_fp=100_000, feed=FeedId.SOL_USD):
        return PriceObservation(
            feed_id=feed,
            price_fp=price_fp,
            confidence_fp=confidence_fp,
            publish_time=publish_time,
        )
    return _make


@pytest.fixture
def ctx():
    def _make(caller, slot, unix_time=0) -> CallContext:
        return CallContext(caller=caller, slot=slot, unix_time=unix_time)
    return _make


@pytest.fixture
def engine() -> VaultEngine:
    return VaultEngine()


@pytest.fixture
def funded_engine(engine, valid_params, ctx) -> VaultEngine:
    """Vault 'auth' with keeper k1, 100 SOL reserve and 1000 SOL staked."""
    engine.initialize_vault(ctx("auth", 0), valid_params)
    engine.add_keeper("auth", ctx("auth", 1), "k1")
    engine.deposit_reserve("auth", ctx("auth", 2), 100)
    engine.deposit_and_stake("auth", ctx("auth", 3), 1000)
    return engine


@pytest.fixture
def priced_engine(funded_engine, ctx, observation) -> VaultEngine:
    """
    funded_engine after three prices ($100, $110, $99), implied vol 500 bps
    and one epoch tick at slot 40.

    returns +10%, -10%  -> realized 1000 bps
    score  (1000 * 6000 + 500 * 4000) / 10000 = 800
    band   100 + 1000 * 800 / 10000 = 180
    interval 110 - 100 * 800 / 10000 = 102
    EMA    100.0 -> 102.0 -> 101.4
    """
    for slot, now, price in (
        (10, 1000, 100_000_000),
        (20, 1010, 110_000_000),
        (30, 1020, 99_000_000),
    ):
        obs = observation(price, now)
        funded_engine.update_oracle_price("auth", ctx("k1", slot, now), {obs.feed_id: obs})
    funded_engine.update_implied_vol("auth", ctx("k1", 31, 1020), 500)
    funded_engine.update_epoch_and_policy("auth", ctx("k1", 40, 1020))
    return funded_engine
