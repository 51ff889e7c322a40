# MIT License
# Copyright (c) 2025 Hashborn

"""
Staking pool entry points.

Every mutating call runs under the reentrancy latch against a clone of the
ledger. The clone becomes the live state before any asset transfer; a failed
transfer restores the previous state and re-raises, so a call either applies
completely or not at all.
"""
from typing import Callable, Optional, Tuple, Any
import logging

from protocol.config.params import PoolConfig
from protocol.types.common import OpType, Role, Unauthorized, ValidationError
from .access import AccessControl
from .accounts import UserInfo, WithdrawalRequest
from .asset import AssetLedger
from .clock import Clock
from .engine import StakingEngine
from .events import (
    EventBus, STAKED, WITHDRAWN, REWARD_PAID, WITHDRAWAL_REQUESTED, WITHDRAWAL_CANCELLED,
    WITHDRAWAL_COMPLETED, ANNUAL_RATE_UPDATED, WAIT_DURATION_UPDATED, EMERGENCY_WITHDRAWAL,
)
from .guard import ReentrancyGuard, non_reentrant
from .state import LedgerState, PoolRecord
from .withdrawals import WithdrawalStatus, status_of
from ..observability import metrics
from ..storage.db import StorageDB

logger = logging.getLogger(__name__)


class StakingPool:
    def __init__(self,
                 asset: AssetLedger,
                 access: AccessControl,
                 pool: PoolRecord,
                 pool_address: str = "pool",
                 clock: Optional[Clock] = None,
                 db: Optional[StorageDB] = None,
                 events: Optional[EventBus] = None):
        self.asset = asset
        self.access = access
        self.pool_address = pool_address
        self.clock = clock or Clock()
        self.events = events or EventBus()
        self.guard = ReentrancyGuard()

        if db is not None:
            self.state = LedgerState.load(db, pool)
        else:
            self.state = LedgerState(pool)
        metrics.update_metrics(self)

    @classmethod
    def from_config(cls, config: PoolConfig, asset: AssetLedger, admin: Optional[str] = None, **kwargs) -> 'StakingPool':
        """Builds a pool from a preset, granting OPERATOR to the preset's operators."""
        access = AccessControl.with_operators(config.operators, admin=admin)
        record = PoolRecord(
            annual_rate=config.annual_rate,
            wait_duration=config.wait_duration,
            interest_model=config.interest_model,
        )
        logger.info(f"Pool {config.pool_id} at {config.pool_address}: rate={config.annual_rate}, wait={config.wait_duration}s")
        return cls(asset, access, record, pool_address=config.pool_address, **kwargs)

    # --- Capability checks ---

    def _authorize(self, caller: str, account: str) -> None:
        """Account actions: the account itself or any operator."""
        if caller != account and not self.access.has_role(Role.OPERATOR, caller):
            raise Unauthorized(f"{caller} may not act for {account}", caller=caller, account=account)

    def _require_operator(self, caller: str) -> None:
        self.access.require_role(Role.OPERATOR, caller)

    # --- Atomic execution ---

    def _execute(self,
                 op_type: OpType,
                 mutate: Callable[[StakingEngine], Any],
                 transfer: Optional[Callable[[Any], None]] = None) -> Any:
        previous = self.state
        working = previous.clone()
        try:
            result = mutate(StakingEngine(working, self.clock))
            # Bookkeeping is final before value moves
            self.state = working
            if transfer is not None:
                transfer(result)
        except ValidationError as e:
            self.state = previous
            metrics.record_operation(op_type, ok=False)
            logger.warning(f"{op_type.value} rejected ({e.reason}): {e}")
            raise
        except Exception as e:
            self.state = previous
            metrics.record_operation(op_type, ok=False)
            logger.warning(f"{op_type.value} failed, state rolled back: {e}")
            raise

        self.state.persist()
        metrics.record_operation(op_type)
        metrics.update_metrics(self)
        return result

    def _pay(self, recipient: str, amount: int) -> None:
        if amount > 0:
            self.asset.transfer(self.pool_address, recipient, amount)

    # --- Account operations ---

    @non_reentrant
    def stake(self, caller: str, account: str, amount: int) -> int:
        """Stakes `amount` for `account`, pulled from `caller`."""
        def mutate(engine: StakingEngine) -> int:
            self._authorize(caller, account)
            return engine.stake(account, amount)

        def transfer(staked: int) -> None:
            self.asset.transfer_from(self.pool_address, caller, self.pool_address, staked)

        staked = self._execute(OpType.STAKE, mutate, transfer)
        self.events.emit(STAKED, account=account, caller=caller, amount=staked)
        return staked

    @non_reentrant
    def withdraw(self, caller: str, account: str, amount: int) -> int:
        def mutate(engine: StakingEngine) -> int:
            self._authorize(caller, account)
            return engine.withdraw(account, amount)

        withdrawn = self._execute(OpType.WITHDRAW, mutate, lambda paid: self._pay(account, paid))
        metrics.principal_withdrawn_total.inc(withdrawn)
        self.events.emit(WITHDRAWN, account=account, caller=caller, amount=withdrawn)
        return withdrawn

    @non_reentrant
    def get_reward(self, caller: str, account: str, amount: int = 0) -> int:
        """Pays up to `amount` of banked rewards (0 = all). Returns the amount paid."""
        def mutate(engine: StakingEngine) -> int:
            self._authorize(caller, account)
            return engine.get_reward(account, amount)

        reward = self._execute(OpType.GET_REWARD, mutate, lambda paid: self._pay(account, paid))
        if reward > 0:
            metrics.rewards_paid_total.inc(reward)
            self.events.emit(REWARD_PAID, account=account, caller=caller, amount=reward)
        return reward

    @non_reentrant
    def exit(self, caller: str, account: str) -> Tuple[int, int]:
        """Withdraws all principal and claims all rewards. Returns (principal, reward)."""
        def mutate(engine: StakingEngine) -> Tuple[int, int]:
            self._authorize(caller, account)
            return engine.exit(account)

        def transfer(amounts: Tuple[int, int]) -> None:
            principal, reward = amounts
            self._pay(account, principal)
            self._pay(account, reward)

        principal, reward = self._execute(OpType.EXIT, mutate, transfer)
        metrics.principal_withdrawn_total.inc(principal)
        metrics.rewards_paid_total.inc(reward)
        self.events.emit(WITHDRAWN, account=account, caller=caller, amount=principal)
        if reward > 0:
            self.events.emit(REWARD_PAID, account=account, caller=caller, amount=reward)
        return principal, reward

    # --- Delayed withdrawal ---

    @non_reentrant
    def request_withdrawal(self, caller: str, account: str) -> WithdrawalRequest:
        def mutate(engine: StakingEngine) -> WithdrawalRequest:
            self._authorize(caller, account)
            return engine.withdrawals.request(account)

        request = self._execute(OpType.REQUEST_WITHDRAWAL, mutate)
        self.events.emit(
            WITHDRAWAL_REQUESTED,
            account=account,
            caller=caller,
            locked_amount=request.locked_amount,
            unlock_at=request.unlock_at,
        )
        return request

    @non_reentrant
    def cancel_withdrawal(self, caller: str, account: str) -> WithdrawalRequest:
        def mutate(engine: StakingEngine) -> WithdrawalRequest:
            self._authorize(caller, account)
            return engine.withdrawals.cancel(account)

        request = self._execute(OpType.CANCEL_WITHDRAWAL, mutate)
        self.events.emit(WITHDRAWAL_CANCELLED, account=account, caller=caller, locked_amount=request.locked_amount)
        return request

    @non_reentrant
    def complete_withdrawal(self, caller: str, account: str) -> int:
        """Pays the locked amount of an unlocked request. Returns the amount paid."""
        def mutate(engine: StakingEngine) -> Tuple[int, int]:
            self._authorize(caller, account)
            request = engine.state.get_account(account).withdrawal_request
            payout = engine.withdrawals.complete(account)
            return payout, request.requested_at

        payout, requested_at = self._execute(
            OpType.COMPLETE_WITHDRAWAL, mutate, lambda result: self._pay(account, result[0])
        )
        metrics.principal_withdrawn_total.inc(payout)
        metrics.withdrawal_wait_seconds.observe(max(0, self.clock.now() - requested_at))
        self.events.emit(WITHDRAWAL_COMPLETED, account=account, caller=caller, amount=payout)
        return payout

    # --- Operator ---

    @non_reentrant
    def set_annual_rate(self, caller: str, rate: int) -> None:
        def mutate(engine: StakingEngine) -> int:
            self._require_operator(caller)
            return engine.set_annual_rate(rate)

        old = self._execute(OpType.SET_ANNUAL_RATE, mutate)
        self.events.emit(ANNUAL_RATE_UPDATED, caller=caller, old=old, new=rate)

    @non_reentrant
    def set_wait_duration(self, caller: str, seconds: int) -> None:
        def mutate(engine: StakingEngine) -> int:
            self._require_operator(caller)
            return engine.set_wait_duration(seconds)

        old = self._execute(OpType.SET_WAIT_DURATION, mutate)
        self.events.emit(WAIT_DURATION_UPDATED, caller=caller, old=old, new=seconds)

    @non_reentrant
    def emergency_withdraw(self, caller: str, amount: int, recipient: str, force: bool = False) -> int:
        """Sweeps asset held beyond staked principal. `force` lifts the surplus bound."""
        def mutate(engine: StakingEngine) -> int:
            self._require_operator(caller)
            return engine.check_emergency_withdraw(amount, recipient, self.asset.balance_of(self.pool_address), force)

        swept = self._execute(OpType.EMERGENCY_WITHDRAW, mutate, lambda swept: self._pay(recipient, swept))
        logger.info(f"Emergency withdrawal of {swept} to {recipient} by {caller}")
        self.events.emit(EMERGENCY_WITHDRAWAL, caller=caller, recipient=recipient, amount=swept, forced=force)
        return swept

    # --- Views ---

    @property
    def total_staked(self) -> int:
        return self.state.pool.total_staked

    @property
    def annual_rate(self) -> int:
        return self.state.pool.annual_rate

    @property
    def wait_duration(self) -> int:
        return self.state.pool.wait_duration

    def surplus(self) -> int:
        return StakingEngine(self.state, self.clock).surplus(self.asset.balance_of(self.pool_address))

    def earned(self, account: str) -> int:
        engine = StakingEngine(self.state, self.clock)
        return engine.accrual.earned(self.state.get_account(account))

    def compounded_balance(self, account: str, as_of_tick: Optional[int] = None) -> int:
        engine = StakingEngine(self.state, self.clock)
        return engine.accrual.compounded_balance(self.state.get_account(account), as_of_tick)

    def withdrawal_status(self, account: str) -> WithdrawalStatus:
        return status_of(self.state.get_account(account))

    def get_user_info(self, account: str) -> UserInfo:
        acc = self.state.get_account(account)
        request = acc.withdrawal_request
        return UserInfo(
            address=account,
            earned=self.earned(account),
            principal=acc.principal,
            virtual_balance=acc.virtual_balance,
            last_accrual_tick=acc.last_accrual_tick,
            has_pending_request=request is not None,
            unlock_at=request.unlock_at if request else None,
        )
