"""
Per-account accrual ledger.

Interest is computed lazily per account from its last checkpoint tick. Nothing
runs in the background: every mutating operation calls `realize` first so the
account's own balance changes apply to an up-to-date basis.
"""
import logging
from typing import Optional

from protocol.config.params import SCALE, MINUTES_PER_YEAR
from protocol.math.fixed_point import checked_add, checked_sub, scaled_mul, scaled_pow
from protocol.types.common import InterestModel
from .accounts import AccountRecord
from .clock import Clock
from .state import LedgerState

logger = logging.getLogger(__name__)


class AccrualLedger:
    def __init__(self, state: LedgerState, clock: Clock):
        self.state = state
        self.clock = clock

    def per_tick_rate(self) -> int:
        """Annual rate spread over minute ticks. Always read from the live pool record."""
        return self.state.pool.annual_rate // MINUTES_PER_YEAR

    def grow(self, base: int, elapsed: int) -> int:
        """Balance `base` after `elapsed` ticks under the pool's interest model."""
        if elapsed <= 0 or base == 0:
            return base
        rate = self.per_tick_rate()
        if self.state.pool.interest_model == InterestModel.LINEAR:
            return checked_add(base, base * rate * elapsed // SCALE)
        growth_factor = scaled_pow(SCALE + rate, elapsed)
        return scaled_mul(base, growth_factor)

    def compounded_balance(self, account: AccountRecord, as_of_tick: Optional[int] = None) -> int:
        """
        Balance of the compounding basis as of `as_of_tick` (default: now).

        Pure function of the stored record. Returns the stored basis unchanged
        when no whole tick has elapsed or nothing is staked.
        """
        if as_of_tick is None:
            as_of_tick = self.clock.current_tick()
        base = account.base_balance
        if account.principal == 0 or as_of_tick <= account.last_accrual_tick:
            return base
        elapsed = as_of_tick - account.last_accrual_tick
        return self.grow(base, elapsed)

    def earned(self, account: AccountRecord) -> int:
        """Banked rewards plus interest accrued since the last checkpoint."""
        if account.principal == 0 or account.has_pending_request:
            return account.banked_rewards
        accrued = checked_sub(self.compounded_balance(account), account.base_balance)
        return checked_add(account.banked_rewards, accrued)

    def realize(self, account: AccountRecord) -> AccountRecord:
        """
        Checkpoint: fold interest accrued up to the current tick into the record.

        Must run before the caller mutates principal or virtual balance. A record
        with a pending withdrawal request is frozen and left untouched.
        """
        if account.has_pending_request:
            logger.debug(f"Accrual frozen for {account.address} (withdrawal pending)")
            return account

        now_tick = self.clock.current_tick()
        if account.principal > 0:
            grown = self.compounded_balance(account, now_tick)
            accrued = checked_sub(grown, account.base_balance)
            account.banked_rewards = checked_add(account.banked_rewards, accrued)
            if self.state.pool.interest_model == InterestModel.COMPOUND:
                account.virtual_balance = grown
        account.last_accrual_tick = now_tick
        self.state.pool.global_last_tick = max(self.state.pool.global_last_tick, now_tick)

        self.state.set_account(account)
        logger.debug(
            f"Realized {account.address} at tick {now_tick}: "
            f"banked={account.banked_rewards}, virtual={account.virtual_balance}"
        )
        return account
