"""
Tests for pool lifecycle observability

Tests:
- EventBus pub/sub mechanism
- Events emitted by the pool on success, none on rejection
- Prometheus metrics integration
"""
import logging

import pytest

from protocol.config.params import SCALE
from protocol.types.common import OpType, ValidationError
from ledger.core.access import AccessControl
from ledger.core.asset import InMemoryAssetLedger
from ledger.core.clock import ManualClock
from ledger.core.events import (
    EventBus, STAKED, REWARD_PAID, WITHDRAWAL_REQUESTED, WITHDRAWAL_COMPLETED, ANNUAL_RATE_UPDATED,
)
from ledger.core.pool import StakingPool
from ledger.core.state import PoolRecord
from ledger.observability import metrics_registry

START = 1_700_000_040
POOL = "stkpool"
OPERATOR = "operator"
WAIT = 600
TOKEN = SCALE


# ═══════════════════════════════════════════════════════════════════
# FIXTURES
# ═══════════════════════════════════════════════════════════════════

@pytest.fixture
def clean_event_bus():
    """Provide a clean EventBus for each test."""
    return EventBus()


@pytest.fixture
def pool(clean_event_bus):
    """Pool wired to the clean bus, alice funded with 10_000 tokens."""
    asset = InMemoryAssetLedger()
    asset.mint("alice", 10_000 * TOKEN)
    asset.approve("alice", POOL, 10**30)
    asset.mint(POOL, 100_000 * TOKEN)
    return StakingPool(
        asset,
        AccessControl.with_operators([OPERATOR]),
        PoolRecord(annual_rate=30_000_000, wait_duration=WAIT),
        pool_address=POOL,
        clock=ManualClock(START),
        events=clean_event_bus,
    )


def record(bus, event_type):
    seen = []
    bus.subscribe(event_type, lambda **data: seen.append(data))
    return seen


def sample(name, labels=None):
    return metrics_registry.get_sample_value(name, labels or {}) or 0


# ═══════════════════════════════════════════════════════════════════
# EVENTBUS TESTS
# ═══════════════════════════════════════════════════════════════════

def test_eventbus_subscribe_and_emit(clean_event_bus):
    """Test basic subscribe and emit functionality."""
    bus = clean_event_bus
    callback_data = []

    def callback(**data):
        callback_data.append(data)

    bus.subscribe(STAKED, callback)
    delivered = bus.emit(STAKED, account='alice', amount=42)

    assert delivered == 1
    assert callback_data == [{'account': 'alice', 'amount': 42}]
    # other events stay silent
    assert bus.emit(REWARD_PAID, account='alice', amount=1) == 0


def test_eventbus_rejects_unknown_events(clean_event_bus):
    bus = clean_event_bus

    with pytest.raises(ValueError):
        bus.subscribe('test_event', lambda **data: None)
    with pytest.raises(ValueError):
        bus.emit('test_event')


def test_eventbus_error_is_logged_and_isolated(clean_event_bus, caplog):
    """Test that errors in callbacks don't break event emission."""
    bus = clean_event_bus
    good_callback_called = []

    def bad_callback(**data):
        raise ValueError("Test error")

    def good_callback(**data):
        good_callback_called.append(True)

    bus.subscribe(STAKED, bad_callback)
    bus.subscribe(STAKED, good_callback)

    with caplog.at_level(logging.ERROR, logger="ledger.core.events"):
        delivered = bus.emit(STAKED)

    assert delivered == 1
    assert len(good_callback_called) == 1
    assert "Test error" in caplog.text


# ═══════════════════════════════════════════════════════════════════
# POOL EVENT TESTS
# ═══════════════════════════════════════════════════════════════════

def test_stake_emits_event(pool):
    seen = record(pool.events, STAKED)
    pool.stake("alice", "alice", 100 * TOKEN)

    assert seen == [{"account": "alice", "caller": "alice", "amount": 100 * TOKEN}]


def test_request_event_carries_unlock_time(pool):
    seen = record(pool.events, WITHDRAWAL_REQUESTED)
    pool.stake("alice", "alice", 100 * TOKEN)
    pool.clock.advance_ticks(10)
    request = pool.request_withdrawal("alice", "alice")

    assert len(seen) == 1
    assert seen[0]["unlock_at"] == pool.clock.now() + WAIT
    assert seen[0]["locked_amount"] == request.locked_amount


def test_complete_event_reports_payout(pool):
    seen = record(pool.events, WITHDRAWAL_COMPLETED)
    pool.stake("alice", "alice", 100 * TOKEN)
    pool.clock.advance_ticks(60)
    pool.request_withdrawal("alice", "alice")
    pool.clock.advance(WAIT)
    paid = pool.complete_withdrawal("alice", "alice")

    assert seen == [{"account": "alice", "caller": "alice", "amount": paid}]


def test_rejected_call_emits_nothing(pool):
    staked = record(pool.events, STAKED)
    rewards = record(pool.events, REWARD_PAID)

    with pytest.raises(ValidationError):
        pool.stake("alice", "alice", 0)
    # nothing banked yet: a claim is a silent no-op
    assert pool.get_reward("alice", "alice") == 0

    assert staked == []
    assert rewards == []


def test_listener_failure_does_not_undo_call(pool):
    def explode(**data):
        raise RuntimeError("listener down")

    pool.events.subscribe(STAKED, explode)
    pool.stake("alice", "alice", 100 * TOKEN)

    assert pool.total_staked == 100 * TOKEN


def test_rate_update_event(pool):
    seen = record(pool.events, ANNUAL_RATE_UPDATED)
    pool.set_annual_rate(OPERATOR, 10_000_000)

    assert seen == [{"caller": OPERATOR, "old": 30_000_000, "new": 10_000_000}]


# ═══════════════════════════════════════════════════════════════════
# METRICS TESTS
# ═══════════════════════════════════════════════════════════════════

def test_gauges_follow_pool_state(pool):
    pool.stake("alice", "alice", 250 * TOKEN)
    assert sample('stakeledger_total_staked') == 250 * TOKEN
    assert sample('stakeledger_accounts_total') == 1
    assert sample('stakeledger_annual_rate') == 30_000_000

    pool.request_withdrawal("alice", "alice")
    assert sample('stakeledger_pending_withdrawals') == 1

    pool.set_wait_duration(OPERATOR, 7_200)
    assert sample('stakeledger_wait_duration_seconds') == 7_200


def test_operation_counters(pool):
    labels = {"op_type": OpType.STAKE.value}
    ok_before = sample('stakeledger_operations_total', labels)
    failed_before = sample('stakeledger_operation_failures_total', labels)

    pool.stake("alice", "alice", TOKEN)
    with pytest.raises(ValidationError):
        pool.stake("alice", "alice", 0)

    assert sample('stakeledger_operations_total', labels) == ok_before + 1
    assert sample('stakeledger_operation_failures_total', labels) == failed_before + 1


def test_rewards_paid_counter(pool):
    before = sample('stakeledger_rewards_paid_total')
    pool.stake("alice", "alice", 1_000 * TOKEN)
    pool.clock.advance_ticks(1_440)

    paid = pool.get_reward("alice", "alice")

    assert paid > 0
    assert sample('stakeledger_rewards_paid_total') == before + paid
