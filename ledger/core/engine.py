"""
Pool ledger operations.

The engine mutates a LedgerState in place and returns the amounts the caller
must move on the asset ledger. It performs no transfers, no access checks and
no locking; StakingPool wraps it with those.
"""
import logging
from typing import Tuple

from protocol.config.params import SCALE
from protocol.math.fixed_point import checked_add, checked_sub
from protocol.types.common import InterestModel, ValidationError
from .accrual import AccrualLedger
from .clock import Clock
from .state import LedgerState
from .withdrawals import WithdrawalDelay, require_no_pending_request

logger = logging.getLogger(__name__)


class StakingEngine:
    def __init__(self, state: LedgerState, clock: Clock):
        self.state = state
        self.clock = clock
        self.accrual = AccrualLedger(state, clock)
        self.withdrawals = WithdrawalDelay(state, self.accrual, clock)

    # --- Account operations ---

    def stake(self, address: str, amount: int) -> int:
        if amount <= 0:
            raise ValidationError("zero_amount", "Stake amount must be > 0")
        account = self.state.get_account(address)
        require_no_pending_request(account)

        account = self.accrual.realize(account)
        # Bootstrap: a basis of zero means nothing has compounded yet
        account.virtual_balance = checked_add(account.base_balance, amount)
        account.principal = checked_add(account.principal, amount)
        self.state.pool.total_staked = checked_add(self.state.pool.total_staked, amount)
        self.state.set_account(account)

        logger.info(f"Staked {amount} for {address} (principal={account.principal})")
        return amount

    def withdraw(self, address: str, amount: int) -> int:
        """
        Withdraws `amount` of principal without delay.

        The virtual balance shrinks by the same fraction as the principal. The
        ratio is computed in fixed point, multiply before divide.
        """
        if amount <= 0:
            raise ValidationError("zero_amount", "Withdraw amount must be > 0")
        account = self.state.get_account(address)
        require_no_pending_request(account)
        if amount > account.principal:
            raise ValidationError(
                "insufficient_principal",
                f"Insufficient principal: have {account.principal}, need {amount}",
            )
        if amount > self.state.pool.total_staked:
            raise ValidationError("insufficient_principal", f"Withdraw {amount} exceeds total staked")

        account = self.accrual.realize(account)
        ratio = (amount * SCALE) // account.principal
        reduction = (account.virtual_balance * ratio) // SCALE
        account.principal = checked_sub(account.principal, amount)
        if account.principal == 0:
            account.virtual_balance = 0
        elif self.state.pool.interest_model == InterestModel.LINEAR:
            # Linear interest accrues on principal only
            account.virtual_balance = account.principal
        else:
            account.virtual_balance = checked_sub(account.virtual_balance, reduction)
        self.state.pool.total_staked = checked_sub(self.state.pool.total_staked, amount)
        self.state.set_account(account)

        logger.info(f"Withdrew {amount} for {address} (principal={account.principal})")
        return amount

    def get_reward(self, address: str, amount: int = 0) -> int:
        """
        Claims banked rewards. `amount == 0` claims everything.

        Returns the amount to pay, 0 when there is nothing to claim. The paid
        interest stops compounding: the virtual balance is re-based by the paid
        amount, never below principal. A pending request's locked amount follows
        the virtual balance, so completing it never pays the claimed interest
        again.
        """
        if amount < 0:
            raise ValidationError("negative_amount", "Reward amount must be >= 0")
        account = self.state.get_account(address)
        if account.principal == 0 and account.banked_rewards == 0:
            return 0
        account = self.accrual.realize(account)

        reward = account.banked_rewards if amount == 0 else min(amount, account.banked_rewards)
        if reward == 0:
            return 0

        account.banked_rewards = checked_sub(account.banked_rewards, reward)
        if account.principal > 0:
            account.virtual_balance = max(account.principal, account.virtual_balance - reward)
            if account.has_pending_request:
                account.withdrawal_request.locked_amount = account.virtual_balance
        self.state.set_account(account)

        logger.info(f"Reward {reward} claimed for {address}")
        return reward

    def exit(self, address: str) -> Tuple[int, int]:
        """Full withdraw plus full claim. Returns (principal, reward)."""
        account = self.state.get_account(address)
        require_no_pending_request(account)
        if account.principal == 0:
            raise ValidationError("nothing_staked", f"Nothing staked for {address}")

        reward = self.get_reward(address, 0)
        principal = self.withdraw(address, self.state.get_account(address).principal)
        return principal, reward

    # --- Pool policy ---

    def set_annual_rate(self, rate: int) -> int:
        if rate < 0:
            raise ValidationError("invalid_rate", f"Annual rate must be >= 0, got {rate}")
        old = self.state.pool.annual_rate
        # Interest up to now is owed at the old rate
        for account in self.state.get_all_accounts():
            if account.principal > 0:
                self.accrual.realize(account)
        self.state.pool.annual_rate = rate
        self.state.pool.global_last_tick = max(self.state.pool.global_last_tick, self.clock.current_tick())
        logger.info(f"Annual rate changed {old} -> {rate}")
        return old

    def set_wait_duration(self, seconds: int) -> int:
        if seconds < 0:
            raise ValidationError("invalid_wait_duration", f"Wait duration must be >= 0, got {seconds}")
        old = self.state.pool.wait_duration
        self.state.pool.wait_duration = seconds
        logger.info(f"Wait duration changed {old}s -> {seconds}s")
        return old

    def surplus(self, asset_balance: int) -> int:
        """Asset held by the pool beyond staked principal."""
        return max(0, asset_balance - self.state.pool.total_staked)

    def check_emergency_withdraw(self, amount: int, recipient: str, asset_balance: int, force: bool = False) -> int:
        if not recipient:
            raise ValidationError("zero_recipient", "Recipient required")
        if amount <= 0:
            raise ValidationError("zero_amount", "Amount must be > 0")
        surplus = self.surplus(asset_balance)
        if amount > surplus and not force:
            raise ValidationError(
                "exceeds_surplus",
                f"Amount {amount} exceeds surplus {surplus}",
                surplus=surplus,
            )
        if force and amount > surplus:
            logger.warning(f"Forced emergency withdrawal of {amount} exceeds surplus {surplus}")
        return amount
