from dataclasses import replace

import pytest

from volhedge.core.hedge_protocol import (
    acknowledge_extreme_event,
    compute_slippage_bps,
    compute_target_hedge_notional,
    confirm_hedge,
    confirm_window_expired,
    drift_exceeds_band,
    request_hedge,
    reset_hedge_request,
)
from volhedge.core.risk_layer import (
    CapExceededError,
    ConfirmExpiredError,
    DriftNotMetError,
    ExtremeDriftAction,
    ExtremeEventPendingError,
    HedgeTooSoonError,
    LeverageExceededError,
    NoOutstandingRequestError,
    OracleDegradedError,
    OracleHealth,
    OracleNotReadyError,
    OracleRejectReason,
    ParamValidationError,
    PausedError,
    RequestOutstandingError,
    WrongRequestIdError,
)
from volhedge.core.state_layer import HedgeBook, OracleSnapshot


def _with_price(state, price_fp):
    """Move spot and EMA together to price_fp."""
    oracle = replace(
        state.oracle,
        spot_price_fp=price_fp,
        ema_price_fp=price_fp,
        last_accepted_price_fp=price_fp,
    )
    return replace(state, oracle=oracle)


@pytest.fixture
def requested_state(hedge_ready_state):
    """Request 1 issued at slot 50 against a $100 spot."""
    state, _, _ = request_hedge(hedge_ready_state, 50)
    return state


class TestPureHelpers:
    def test_target_full_delta(self):
        assert compute_target_hedge_notional(1000, 100_000_000, 10_000, 1_000_000) == -100_000

    def test_target_half_delta_with_beta(self):
        assert compute_target_hedge_notional(1000, 100_000_000, 5000, 1_200_000) == -60_000

    def test_target_zero_when_nothing_staked(self):
        assert compute_target_hedge_notional(0, 100_000_000, 10_000, 1_000_000) == 0

    def test_drift_at_band_passes(self):
        assert drift_exceeds_band(101_000_000, 100_000_000, 100)

    def test_drift_inside_band(self):
        assert not drift_exceeds_band(100_999_999, 100_000_000, 100)

    def test_drift_without_reference(self):
        assert drift_exceeds_band(100_000_000, 0, 10_000)

    def test_slippage(self):
        assert compute_slippage_bps(99_099_000, 99_000_000) == 10

    def test_confirm_window(self):
        book = HedgeBook(request_outstanding=True, request_slot=50)
        assert not confirm_window_expired(book, 70, 20)
        assert confirm_window_expired(book, 71, 20)


class TestRequestHedge:
    def test_first_request(self, hedge_ready_state):
        state, events, outcome = request_hedge(hedge_ready_state, 50)
        assert outcome.request_id == 1
        assert outcome.drift_bps == 10_000
        assert outcome.target_hedge_notional_usd == -100_000
        assert outcome.delta_gap_usd == -100_000
        assert not outcome.extreme_event
        assert outcome.expired_request_id is None
        hedge = state.hedge
        assert hedge.request_outstanding
        assert hedge.last_hedge_request_id == 1
        assert hedge.request_slot == 50
        assert hedge.last_hedge_slot == 50
        assert hedge.last_hedge_ema_price_fp == 100_000_000
        assert hedge.spot_price_at_request_fp == 100_000_000
        assert [e.event_type for e in events] == ["HedgeRequested"]
        assert events[0].data["request_id"] == 1

    def test_paused(self, hedge_ready_state):
        with pytest.raises(PausedError):
            request_hedge(replace(hedge_ready_state, paused=True), 50)

    def test_extreme_event_pending(self, hedge_ready_state):
        state = replace(hedge_ready_state, hedge=HedgeBook(extreme_event_pending=True))
        with pytest.raises(ExtremeEventPendingError):
            request_hedge(state, 50)

    def test_degraded_oracle(self, hedge_ready_state):
        oracle = replace(
            hedge_ready_state.oracle,
            health=OracleHealth.DEGRADED,
            last_reject_reason=OracleRejectReason.PRICE_JUMP,
        )
        with pytest.raises(OracleDegradedError) as exc_info:
            request_hedge(replace(hedge_ready_state, oracle=oracle), 50)
        assert exc_info.value.value == "PRICE_JUMP"

    def test_oracle_not_ready(self, hedge_ready_state):
        with pytest.raises(OracleNotReadyError):
            request_hedge(replace(hedge_ready_state, oracle=OracleSnapshot()), 50)

    def test_outstanding_within_window(self, requested_state):
        with pytest.raises(RequestOutstandingError):
            request_hedge(_with_price(requested_state, 102_000_000), 70)

    def test_outstanding_auto_expires(self, requested_state):
        moved = _with_price(requested_state, 102_000_000)
        state, events, outcome = request_hedge(moved, 71)
        assert outcome.request_id == 2
        assert outcome.expired_request_id == 1
        assert outcome.target_hedge_notional_usd == -102_000
        assert state.hedge.missed_confirms == 1
        assert [e.event_type for e in events] == ["HedgeConfirmMissed", "HedgeRequested"]

    def test_failed_request_discards_expiry(self, requested_state):
        # EMA unchanged: drift 0 is inside the band, nothing is committed
        with pytest.raises(DriftNotMetError):
            request_hedge(requested_state, 71)
        assert requested_state.hedge.missed_confirms == 0

    def test_interval_gate(self, hedge_ready_state):
        book = HedgeBook(last_hedge_slot=50, last_hedge_ema_price_fp=90_000_000)
        state = replace(hedge_ready_state, hedge=book)
        with pytest.raises(HedgeTooSoonError):
            request_hedge(state, 59)
        _, _, outcome = request_hedge(state, 60)
        assert outcome.request_id == 1

    def test_drift_not_met(self, hedge_ready_state):
        book = HedgeBook(last_hedge_slot=0, last_hedge_ema_price_fp=100_000_000)
        state = replace(_with_price(hedge_ready_state, 100_500_000), hedge=book)
        with pytest.raises(DriftNotMetError) as exc_info:
            request_hedge(state, 50)
        assert exc_info.value.value == 50
        assert exc_info.value.band_bps == 100

    def test_leverage_rejected(self, hedge_ready_state, params_factory):
        state = replace(hedge_ready_state, params=params_factory(max_hedge_per_sol_usd_fp=50_000_000))
        with pytest.raises(LeverageExceededError):
            request_hedge(state, 50)

    def test_target_clamped_to_notional_cap(self, hedge_ready_state, params_factory):
        state = replace(hedge_ready_state, params=params_factory(max_abs_hedge_notional_usd=40_000))
        _, _, outcome = request_hedge(state, 50)
        assert outcome.target_hedge_notional_usd == -40_000

    def test_delta_gap_against_existing_hedge(self, hedge_ready_state):
        state = replace(hedge_ready_state, hedge_notional_usd=-60_000)
        _, _, outcome = request_hedge(state, 50)
        assert outcome.delta_gap_usd == -40_000


class TestExtremeDrift:
    @pytest.fixture
    def drifted_state(self, hedge_ready_state, params_factory):
        """Previous hedge at EMA $100, EMA now $110, breaker at 500 bps."""
        params = params_factory(extreme_drift_bps=500)
        book = HedgeBook(last_hedge_request_id=1, last_hedge_slot=0, last_hedge_ema_price_fp=100_000_000)
        return replace(_with_price(hedge_ready_state, 110_000_000), params=params, hedge=book)

    def test_breaker_flags_instead_of_requesting(self, drifted_state):
        state, events, outcome = request_hedge(drifted_state, 50)
        assert outcome.request_id is None
        assert outcome.extreme_event
        assert outcome.drift_bps == 1000
        assert state.hedge.extreme_event_pending
        assert not state.hedge.request_outstanding
        assert not state.paused
        assert events[-1].event_type == "ExtremeDriftFlagged"

    def test_pending_blocks_next_request(self, drifted_state):
        state, _, _ = request_hedge(drifted_state, 50)
        with pytest.raises(ExtremeEventPendingError):
            request_hedge(state, 60)

    def test_pause_action(self, drifted_state, params_factory):
        params = params_factory(extreme_drift_bps=500, extreme_drift_action=ExtremeDriftAction.PAUSE)
        state, events, _ = request_hedge(replace(drifted_state, params=params), 50)
        assert state.paused
        assert events[-1].data["paused"] is True

    def test_acknowledge_allows_one_request(self, drifted_state):
        flagged, _, _ = request_hedge(drifted_state, 50)
        acked, events = acknowledge_extreme_event(flagged)
        assert not acked.hedge.extreme_event_pending
        assert acked.hedge.extreme_event_acknowledged
        assert events[0].event_type == "ExtremeDriftAcknowledged"
        state, _, outcome = request_hedge(acked, 60)
        assert outcome.request_id == 2
        assert not state.hedge.extreme_event_acknowledged

    def test_acknowledge_without_pending_raises(self, hedge_ready_state):
        with pytest.raises(ParamValidationError):
            acknowledge_extreme_event(hedge_ready_state)

    def test_drift_equal_to_threshold_fires(self, drifted_state, params_factory):
        state = replace(drifted_state, params=params_factory(extreme_drift_bps=1000))
        _, _, outcome = request_hedge(state, 50)
        assert outcome.drift_bps == 1000
        assert outcome.extreme_event

    def test_drift_below_threshold_requests(self, drifted_state, params_factory):
        state = replace(drifted_state, params=params_factory(extreme_drift_bps=1001))
        _, _, outcome = request_hedge(state, 50)
        assert not outcome.extreme_event
        assert outcome.request_id == 2

    def test_disabled_breaker(self, drifted_state, params_factory):
        state = replace(drifted_state, params=params_factory(extreme_drift_bps=0))
        _, _, outcome = request_hedge(state, 50)
        assert outcome.request_id == 2

    def test_first_request_never_trips_breaker(self, hedge_ready_state, params_factory):
        state = replace(hedge_ready_state, params=params_factory(extreme_drift_bps=1))
        _, _, outcome = request_hedge(state, 50)
        assert outcome.request_id == 1


class TestConfirmHedge:
    def test_confirm(self, requested_state):
        state, events, outcome = confirm_hedge(requested_state, 55, 1, -100_000, 100_100_000)
        assert outcome.request_id == 1
        assert outcome.hedge_notional_usd == -100_000
        assert outcome.slippage_bps == 10
        assert outcome.avg_fill_slippage_bps == 10
        assert outcome.hedge_fill_count == 1
        assert state.hedge_notional_usd == -100_000
        assert not state.hedge.request_outstanding
        assert state.hedge.last_fill_slot == 55
        assert events[0].event_type == "HedgeConfirmed"

    def test_running_average(self, hedge_ready_state):
        book = HedgeBook(
            request_outstanding=True,
            last_hedge_request_id=2,
            request_slot=50,
            spot_price_at_request_fp=100_000_000,
            hedge_fill_count=1,
            avg_fill_slippage_bps=10,
        )
        state = replace(hedge_ready_state, hedge=book)
        _, _, outcome = confirm_hedge(state, 55, 2, -1000, 100_300_000)
        assert outcome.slippage_bps == 30
        assert outcome.avg_fill_slippage_bps == 20
        assert outcome.hedge_fill_count == 2

    def test_no_outstanding(self, hedge_ready_state):
        with pytest.raises(NoOutstandingRequestError):
            confirm_hedge(hedge_ready_state, 55, 1, -100_000, 100_000_000)

    def test_wrong_id(self, requested_state):
        with pytest.raises(WrongRequestIdError) as exc_info:
            confirm_hedge(requested_state, 55, 2, -100_000, 100_000_000)
        assert exc_info.value.expected_request_id == 1

    def test_window_boundary(self, requested_state):
        confirm_hedge(requested_state, 70, 1, -100_000, 100_000_000)
        with pytest.raises(ConfirmExpiredError):
            confirm_hedge(requested_state, 71, 1, -100_000, 100_000_000)

    def test_notional_cap_checked_first(self, requested_state, params_factory):
        state = replace(requested_state, params=params_factory(max_hedge_per_sol_usd_fp=50_000_000))
        with pytest.raises(CapExceededError):
            confirm_hedge(state, 55, 1, -1_000_001, 100_000_000)

    def test_leverage_rejected(self, requested_state, params_factory):
        state = replace(requested_state, params=params_factory(max_hedge_per_sol_usd_fp=50_000_000))
        with pytest.raises(LeverageExceededError):
            confirm_hedge(state, 55, 1, -60_000, 100_000_000)

    @pytest.mark.parametrize("request_id,delta,fill", [
        (True, -1, 100_000_000),
        (1, 1.5, 100_000_000),
        (1, -1, 0),
        (1, -1, 10_000_000_000_001),
    ])
    def test_invalid_arguments(self, requested_state, request_id, delta, fill):
        with pytest.raises(ParamValidationError):
            confirm_hedge(requested_state, 55, request_id, delta, fill)

    def test_paused(self, requested_state):
        with pytest.raises(PausedError):
            confirm_hedge(replace(requested_state, paused=True), 55, 1, -100_000, 100_000_000)


class TestResetHedgeRequest:
    def test_idle_raises(self, hedge_ready_state):
        with pytest.raises(NoOutstandingRequestError):
            reset_hedge_request(hedge_ready_state)

    def test_reset_counts_missed(self, requested_state):
        state, events = reset_hedge_request(requested_state)
        assert not state.hedge.request_outstanding
        assert state.hedge.missed_confirms == 1
        assert state.hedge.last_hedge_request_id == 1
        assert events[0].data == {"request_id": 1, "missed_confirms": 1}
