import pytest

from volhedge.core.logging_layer import EventFilter, EventLogger
from volhedge.core.risk_layer import (
    ConfirmExpiredError,
    HedgeTooSoonError,
    KeeperBondInsufficientError,
    KeeperRateLimitedError,
    OracleDegradedError,
    OracleHealth,
    ParamValidationError,
    PausedError,
    PolicyCooldownError,
    RequestOutstandingError,
    ReserveTooLowError,
    UnauthorizedError,
    VaultExistsError,
    VaultNotFoundError,
    WrongRequestIdError,
)


def _event_types(engine):
    return [e.type for e in engine.logger.get_event_stream()]


class TestLifecycle:
    def test_initialize(self, engine, valid_params, ctx):
        state = engine.initialize_vault(ctx("auth", 0), valid_params)
        assert state.authority == "auth"
        assert state.config_version == 1
        assert engine.get_vault("auth") is state
        assert engine.vault_keys() == ("auth",)
        assert _event_types(engine) == ["VaultInitialized"]

    def test_double_initialize(self, engine, valid_params, ctx):
        engine.initialize_vault(ctx("auth", 0), valid_params)
        with pytest.raises(VaultExistsError):
            engine.initialize_vault(ctx("auth", 1), valid_params)

    def test_params_type_checked(self, engine, valid_params, ctx):
        with pytest.raises(ParamValidationError) as exc_info:
            engine.initialize_vault(ctx("auth", 0), valid_params.to_mapping())
        assert exc_info.value.field_name == "params"
        assert exc_info.value.constraint == "must be a VaultParams instance"
        assert engine.vault_keys() == ()
        assert engine.logger.event_count() == 0

    def test_unknown_vault(self, engine, ctx):
        with pytest.raises(VaultNotFoundError):
            engine.get_vault("nobody")
        with pytest.raises(VaultNotFoundError):
            engine.deposit_reserve("nobody", ctx("x", 0), 1)

    def test_vaults_independent(self, funded_engine, valid_params, ctx):
        funded_engine.initialize_vault(ctx("other", 5), valid_params)
        assert funded_engine.get_vault("other").staked_sol == 0
        assert funded_engine.get_vault("auth").staked_sol == 1000
        assert funded_engine.vault_keys() == ("auth", "other")

    def test_injected_logger(self, valid_params, ctx):
        from volhedge.orchestrator.vault_engine import VaultEngine
        logger = EventLogger()
        engine = VaultEngine(logger=logger)
        engine.initialize_vault(ctx("auth", 0), valid_params)
        assert engine.logger is logger
        assert logger.event_count() == 1


class TestReads:
    def test_idempotent_reads(self, priced_engine):
        assert priced_engine.get_vault("auth") is priced_engine.get_vault("auth")
        assert priced_engine.state_digest("auth") == priced_engine.state_digest("auth")

    def test_nav(self, priced_engine):
        assert priced_engine.nav_usd("auth") == 108_900


class TestAtomicity:
    def test_rejected_call_leaves_store_and_log(self, funded_engine, ctx):
        digest = funded_engine.state_digest("auth")
        count = funded_engine.logger.event_count()
        with pytest.raises(ReserveTooLowError):
            funded_engine.deposit_and_stake("auth", ctx("auth", 4), 1)
        assert funded_engine.state_digest("auth") == digest
        assert funded_engine.logger.event_count() == count

    def test_rejected_keeper_call_not_counted(self, funded_engine, ctx):
        with pytest.raises(ParamValidationError):
            funded_engine.update_implied_vol("auth", ctx("k1", 5), "high")
        assert funded_engine.get_vault("auth").find_keeper("k1").update_count == 0


class TestExposures:
    def test_reserve_boundary(self, funded_engine):
        state = funded_engine.get_vault("auth")
        assert state.reserve_sol == 100
        assert state.staked_sol == 1000

    def test_paused_blocks_open_calls(self, funded_engine, ctx):
        funded_engine.set_paused("auth", ctx("auth", 5), True)
        with pytest.raises(PausedError):
            funded_engine.deposit_reserve("auth", ctx("auth", 6), 10)
        with pytest.raises(PausedError):
            funded_engine.update_implied_vol("auth", ctx("k1", 6), 500)
        with pytest.raises(PausedError):
            funded_engine.request_hedge("auth", ctx("user", 6))
        funded_engine.set_paused("auth", ctx("auth", 7), False)
        funded_engine.deposit_reserve("auth", ctx("auth", 8), 10)
        assert funded_engine.get_vault("auth").reserve_sol == 110


class TestKeeperGate:
    def test_stranger_rejected(self, funded_engine, ctx):
        with pytest.raises(UnauthorizedError):
            funded_engine.update_implied_vol("auth", ctx("mallory", 5), 500)

    def test_bond_gating(self, funded_engine, ctx):
        funded_engine.set_keeper_controls("auth", ctx("auth", 4), 10, 1_000_000)
        with pytest.raises(KeeperBondInsufficientError):
            funded_engine.update_implied_vol("auth", ctx("k1", 5), 500)
        funded_engine.deposit_keeper_bond("auth", ctx("k1", 6), 1_000_000)
        funded_engine.update_implied_vol("auth", ctx("k1", 7), 500)
        assert funded_engine.get_vault("auth").implied_vol_bps == 500

    def test_authority_exempt_from_bond(self, funded_engine, ctx):
        funded_engine.set_keeper_controls("auth", ctx("auth", 4), 10, 1_000_000)
        funded_engine.update_implied_vol("auth", ctx("auth", 5), 700)
        assert funded_engine.get_vault("auth").implied_vol_bps == 700

    def test_rate_limit_resets_on_epoch(self, funded_engine, ctx):
        funded_engine.set_keeper_controls("auth", ctx("auth", 4), 2, 0)
        funded_engine.update_implied_vol("auth", ctx("k1", 5), 100)
        funded_engine.update_implied_vol("auth", ctx("k1", 6), 200)
        with pytest.raises(KeeperRateLimitedError):
            funded_engine.update_implied_vol("auth", ctx("k1", 7), 300)
        funded_engine.update_epoch_and_policy("auth", ctx("k1", 10))
        keeper = funded_engine.get_vault("auth").find_keeper("k1")
        assert keeper.update_count == 0
        assert keeper.heartbeat_slot == 10
        funded_engine.update_implied_vol("auth", ctx("k1", 11), 300)

    def test_counted_calls(self, funded_engine, ctx):
        funded_engine.update_carry_inputs("auth", ctx("k1", 5), 30, 10, 40)
        keeper = funded_engine.get_vault("auth").find_keeper("k1")
        assert keeper.update_count == 1
        assert keeper.heartbeat_slot == 5
        assert funded_engine.get_vault("auth").expected_carry_bps == 60


class TestKeeperSet:
    def test_add_bumps_version_once(self, engine, valid_params, ctx):
        engine.initialize_vault(ctx("auth", 0), valid_params)
        engine.add_keeper("auth", ctx("auth", 1), "k1")
        assert engine.get_vault("auth").config_version == 2
        engine.add_keeper("auth", ctx("auth", 2), "k1")
        assert engine.get_vault("auth").config_version == 2

    def test_remove(self, funded_engine, ctx):
        funded_engine.remove_keeper("auth", ctx("auth", 5), "k1")
        state = funded_engine.get_vault("auth")
        assert state.keepers == ()
        assert state.config_version == 3
        with pytest.raises(UnauthorizedError):
            funded_engine.update_implied_vol("auth", ctx("k1", 6), 500)

    def test_remove_absent_no_version_bump(self, funded_engine, ctx):
        funded_engine.remove_keeper("auth", ctx("auth", 5), "k9")
        assert funded_engine.get_vault("auth").config_version == 2


class TestPolicyFlow:
    def test_epoch_outputs(self, priced_engine):
        state = priced_engine.get_vault("auth")
        assert state.realized_vol_bps == 1000
        assert state.vol_score_bps == 800
        assert state.band_bps == 180
        assert state.min_hedge_interval_slots == 102
        assert state.oracle.ema_price_fp == 101_400_000
        assert state.epoch == 1

    def test_cooldown(self, priced_engine, ctx):
        with pytest.raises(PolicyCooldownError):
            priced_engine.update_epoch_and_policy("auth", ctx("k1", 45))

    def test_events_logged(self, priced_engine):
        found = priced_engine.logger.query_events(EventFilter(event_type="PolicyUpdated"))
        assert len(found) == 1
        assert found[0].data["band_bps"] == 180
        assert found[0].vault_key == "auth"
        assert priced_engine.logger.verify_chain()

    def test_degraded_oracle(self, priced_engine, ctx, observation):
        stale = observation(99_000_000, 900)
        priced_engine.update_oracle_price("auth", ctx("k1", 45, 1030), {stale.feed_id: stale})
        state = priced_engine.get_vault("auth")
        assert state.oracle.health is OracleHealth.DEGRADED
        with pytest.raises(OracleDegradedError):
            priced_engine.request_hedge("auth", ctx("user", 50))
        priced_engine.update_epoch_and_policy("auth", ctx("k1", 50))
        frozen = priced_engine.get_vault("auth")
        assert frozen.epoch == 2
        assert frozen.band_bps == 180
        assert frozen.last_policy_update_slot == 40

    def test_degraded_ticks_do_not_arm_cooldown(self, priced_engine, ctx, observation):
        stale = observation(99_000_000, 900)
        priced_engine.update_oracle_price("auth", ctx("k1", 45, 1030), {stale.feed_id: stale})
        priced_engine.update_implied_vol("auth", ctx("k1", 46), 600)
        priced_engine.update_epoch_and_policy("auth", ctx("k1", 50))
        priced_engine.update_epoch_and_policy("auth", ctx("k1", 51))
        state = priced_engine.get_vault("auth")
        assert state.epoch == 3
        assert state.find_keeper("k1").update_count == 0
        assert state.band_bps == 180


class TestHedgeFlow:
    def test_request_and_confirm(self, priced_engine, ctx):
        outcome = priced_engine.request_hedge("auth", ctx("user", 50))
        assert outcome.request_id == 1
        assert outcome.target_hedge_notional_usd == -99_000
        with pytest.raises(RequestOutstandingError):
            priced_engine.request_hedge("auth", ctx("user", 51))
        with pytest.raises(WrongRequestIdError):
            priced_engine.confirm_hedge("auth", ctx("k1", 55), 2, -99_000, 99_099_000)
        confirm = priced_engine.confirm_hedge("auth", ctx("k1", 56), 1, -99_000, 99_099_000)
        assert confirm.slippage_bps == 10
        state = priced_engine.get_vault("auth")
        assert state.hedge.hedge_fill_count == 1
        assert state.hedge.avg_fill_slippage_bps == 10
        assert state.hedge_notional_usd == -99_000
        with pytest.raises(HedgeTooSoonError):
            priced_engine.request_hedge("auth", ctx("user", 60))

    def test_confirm_requires_keeper(self, priced_engine, ctx):
        priced_engine.request_hedge("auth", ctx("user", 50))
        with pytest.raises(UnauthorizedError):
            priced_engine.confirm_hedge("auth", ctx("user", 55), 1, -99_000, 99_099_000)

    def test_expired_confirm_then_reset(self, priced_engine, ctx):
        priced_engine.request_hedge("auth", ctx("user", 50))
        with pytest.raises(ConfirmExpiredError):
            priced_engine.confirm_hedge("auth", ctx("k1", 71), 1, -99_000, 99_099_000)
        assert priced_engine.get_vault("auth").hedge.request_outstanding
        with pytest.raises(UnauthorizedError):
            priced_engine.reset_hedge_request("auth", ctx("k1", 72))
        priced_engine.reset_hedge_request("auth", ctx("auth", 72))
        hedge = priced_engine.get_vault("auth").hedge
        assert not hedge.request_outstanding
        assert hedge.missed_confirms == 1
        assert "HedgeConfirmMissed" in _event_types(priced_engine)


class TestAuthority:
    def test_transfer_keeps_vault_key(self, funded_engine, ctx):
        funded_engine.set_pending_authority("auth", ctx("auth", 5), "new")
        funded_engine.accept_authority("auth", ctx("new", 6))
        state = funded_engine.get_vault("auth")
        assert state.authority == "new"
        assert state.keeper_admin == "new"
        with pytest.raises(UnauthorizedError):
            funded_engine.set_paused("auth", ctx("auth", 7), True)
        funded_engine.set_paused("auth", ctx("new", 7), True)
        assert funded_engine.get_vault("auth").paused

    def test_config_setters_route_through_engine(self, funded_engine, ctx):
        funded_engine.set_vol_weights("auth", ctx("auth", 5), 5000, 5000)
        funded_engine.set_confirm_config("auth", ctx("auth", 6), 30)
        funded_engine.set_emergency_withdraw_enabled("auth", ctx("auth", 7), True)
        state = funded_engine.get_vault("auth")
        assert state.params.vol_weight_realized_bps == 5000
        assert state.params.max_confirm_delay_slots == 30
        assert state.emergency_withdraw_enabled
        assert state.config_version == 4
