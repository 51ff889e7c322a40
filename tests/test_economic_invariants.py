# MIT License
# Copyright (c) 2025 Hashborn

"""
Economic Invariant Tests

Tests that economic invariants hold under mixed operation sequences:
1. Claim conservation (asset out == claimed rewards + withdrawn principal)
2. No over-payment (asset out <= stake plus interest a full-time compounder could earn)
3. total_staked == sum of principals after every call
4. principal > 0 implies virtual_balance > 0
5. Asset held by the pool always covers staked principal
"""

import pytest

from protocol.config.params import MINUTES_PER_YEAR, SCALE
from protocol.math.fixed_point import scaled_mul, scaled_pow
from protocol.types.common import InterestModel, ValidationError
from ledger.core.access import AccessControl
from ledger.core.asset import InMemoryAssetLedger
from ledger.core.clock import ManualClock
from ledger.core.pool import StakingPool
from ledger.core.state import PoolRecord

START = 1_700_000_040
POOL = "stkpool"
OPERATOR = "operator"
USERS = ["alice", "bob", "carol"]
TOKEN = SCALE
INITIAL = 10_000 * TOKEN
RESERVE = 1_000_000 * TOKEN
ANNUAL_RATE = 30_000_000
TICK_RATE = ANNUAL_RATE // MINUTES_PER_YEAR
# fixed-point truncation differs between checkpointed and one-shot growth
ROUNDING = 10**4


class Tracker:
    """
    Books every payout the pool reports, per account.

    `owed` is an independent upper bound of what the pool may still pay an
    account: everything staked plus compounding every tick on the unpaid
    value, frozen periods included.
    """

    def __init__(self):
        self.claimed = {u: 0 for u in USERS}
        self.withdrawn = {u: 0 for u in USERS}
        self.staked = {u: 0 for u in USERS}
        self.owed = {u: 0 for u in USERS}

    def advance(self, ticks):
        factor = scaled_pow(SCALE + TICK_RATE, ticks)
        for user in USERS:
            self.owed[user] = scaled_mul(self.owed[user], factor) + ROUNDING

    def paid(self, user, amount):
        self.owed[user] -= amount
        assert self.owed[user] >= 0, f"{user} paid {-self.owed[user]} more than ever accrued"


def build(model: InterestModel):
    clock = ManualClock(START)
    asset = InMemoryAssetLedger()
    for user in USERS:
        asset.mint(user, INITIAL)
        asset.approve(user, POOL, 10**30)
    asset.mint(POOL, RESERVE)
    access = AccessControl.with_operators([OPERATOR])
    pool = StakingPool(asset, access, PoolRecord(annual_rate=ANNUAL_RATE, wait_duration=600, interest_model=model),
                       pool_address=POOL, clock=clock)
    return pool, asset, clock


def check_invariants(pool, asset):
    state = pool.state
    assert state.pool.total_staked == state.total_principal()
    for acc in state.get_all_accounts():
        if acc.principal > 0:
            assert acc.virtual_balance > 0
        assert acc.virtual_balance >= acc.principal or acc.principal == 0
    assert asset.balance_of(POOL) >= state.pool.total_staked


def run_scenario(pool, asset, clock, tracker):
    steps = [
        ("stake", "alice", 1_000 * TOKEN),
        ("stake", "bob", 2_500 * TOKEN),
        ("tick", None, 720),
        ("claim", "alice", 0),
        ("stake", "carol", 400 * TOKEN),
        ("tick", None, 1_440),
        ("withdraw", "bob", 1_000 * TOKEN),
        ("claim", "bob", 12_345),
        ("request", "carol", None),
        ("tick", None, 60),
        ("claim", "carol", 0),              # claim while pending
        ("stake", "alice", 300 * TOKEN),
        ("tick", None, 10),
        ("complete", "carol", None),
        ("tick", None, 10_080),
        ("request", "alice", None),
        ("claim", "alice", 50_000),         # partial claim while pending
        ("cancel", "alice", None),
        ("tick", None, 2_000),
        ("exit", "alice", None),
        ("request", "bob", None),
        ("tick", None, 5),
        ("claim", "bob", 0),
        ("cancel", "bob", None),
        ("tick", None, 100),
        ("exit", "bob", None),
        ("claim", "carol", 0),
    ]
    for op, who, arg in steps:
        if op == "tick":
            clock.advance_ticks(arg)
            tracker.advance(arg)
        elif op == "stake":
            pool.stake(who, who, arg)
            tracker.staked[who] += arg
            tracker.owed[who] += arg
        elif op == "withdraw":
            amount = pool.withdraw(who, who, arg)
            tracker.withdrawn[who] += amount
            tracker.paid(who, amount)
        elif op == "claim":
            amount = pool.get_reward(who, who, arg)
            tracker.claimed[who] += amount
            tracker.paid(who, amount)
        elif op == "request":
            pool.request_withdrawal(who, who)
        elif op == "cancel":
            pool.cancel_withdrawal(who, who)
        elif op == "complete":
            amount = pool.complete_withdrawal(who, who)
            tracker.withdrawn[who] += amount
            tracker.paid(who, amount)
        elif op == "exit":
            principal, reward = pool.exit(who, who)
            tracker.withdrawn[who] += principal
            tracker.claimed[who] += reward
            tracker.paid(who, principal + reward)
        check_invariants(pool, asset)


@pytest.mark.parametrize("model", [InterestModel.COMPOUND, InterestModel.LINEAR])
def test_claim_conservation(model):
    """
    Invariant:
        asset received by account == claimed rewards + withdrawn principal
        asset received by account <= stake + interest ever accrued
    """
    pool, asset, clock = build(model)
    tracker = Tracker()
    run_scenario(pool, asset, clock, tracker)

    for user in USERS:
        received = asset.balance_of(user) - (INITIAL - tracker.staked[user])
        assert received == tracker.claimed[user] + tracker.withdrawn[user]
        assert received >= tracker.staked[user]
        assert tracker.owed[user] >= 0

    # nothing created or destroyed overall
    total = sum(asset.balance_of(u) for u in USERS) + asset.balance_of(POOL)
    assert total == len(USERS) * INITIAL + RESERVE


def test_everyone_exited_leaves_no_stake():
    pool, asset, clock = build(InterestModel.COMPOUND)
    run_scenario(pool, asset, clock, Tracker())

    assert pool.total_staked == 0
    assert asset.balance_of(POOL) == pool.surplus()
    for user in USERS:
        info = pool.get_user_info(user)
        assert info.principal == 0
        assert info.virtual_balance == 0


def test_interest_paid_once_on_completed_withdrawal():
    """The locked amount includes interest, so no banked reward remains afterwards."""
    pool, asset, clock = build(InterestModel.COMPOUND)
    pool.stake("alice", "alice", 1_000 * TOKEN)
    clock.advance_ticks(30 * 1_440)
    request = pool.request_withdrawal("alice", "alice")
    clock.advance(600)

    paid = pool.complete_withdrawal("alice", "alice")

    assert paid == request.locked_amount > 1_000 * TOKEN
    assert pool.earned("alice") == 0
    assert pool.get_reward("alice", "alice") == 0
    assert asset.balance_of("alice") == INITIAL - 1_000 * TOKEN + paid


def test_claim_during_wait_is_not_paid_twice():
    """
    Invariant:
        reward claimed while pending + completed payout == locked amount
    """
    pool, asset, clock = build(InterestModel.COMPOUND)
    pool.stake("alice", "alice", 1_000 * TOKEN)
    clock.advance_ticks(MINUTES_PER_YEAR)
    request = pool.request_withdrawal("alice", "alice")
    interest = request.locked_amount - 1_000 * TOKEN

    reward = pool.get_reward("alice", "alice")
    clock.advance(600)
    paid = pool.complete_withdrawal("alice", "alice")

    assert reward == interest
    assert paid == 1_000 * TOKEN
    assert asset.balance_of("alice") == INITIAL + interest


def test_rejected_calls_do_not_break_invariants():
    pool, asset, clock = build(InterestModel.COMPOUND)
    pool.stake("alice", "alice", 100 * TOKEN)

    for call in (lambda: pool.withdraw("alice", "alice", 101 * TOKEN),
                 lambda: pool.stake("alice", "alice", 0),
                 lambda: pool.complete_withdrawal("alice", "alice"),
                 lambda: pool.exit("bob", "bob")):
        with pytest.raises(ValidationError):
            call()
        check_invariants(pool, asset)

    assert pool.total_staked == 100 * TOKEN
