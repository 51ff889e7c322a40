"""
Withdrawal-delay state machine.

    ACTIVE --request--> PENDING_WITHDRAWAL --cancel--> ACTIVE
                                           --complete (after unlock)--> ACTIVE (dormant)

While pending, the account's virtual balance is locked for exit and accrual is
frozen.
"""
import logging
from enum import Enum

from protocol.math.fixed_point import checked_sub
from protocol.types.common import ValidationError
from .accounts import AccountRecord, WithdrawalRequest
from .accrual import AccrualLedger
from .clock import Clock
from .state import LedgerState

logger = logging.getLogger(__name__)


class WithdrawalStatus(str, Enum):
    ACTIVE = "active"
    PENDING_WITHDRAWAL = "pending_withdrawal"


def status_of(account: AccountRecord) -> WithdrawalStatus:
    if account.has_pending_request:
        return WithdrawalStatus.PENDING_WITHDRAWAL
    return WithdrawalStatus.ACTIVE


def require_no_pending_request(account: AccountRecord) -> None:
    if account.has_pending_request:
        raise ValidationError("request_pending", f"Withdrawal request pending for {account.address}")


class WithdrawalDelay:
    def __init__(self, state: LedgerState, accrual: AccrualLedger, clock: Clock):
        self.state = state
        self.accrual = accrual
        self.clock = clock

    def request(self, address: str) -> WithdrawalRequest:
        """
        Locks the account's full virtual balance for exit after the wait duration.

        Rewards are realized first, the frozen snapshot is what `earned` reports
        until the request is cancelled or completed.
        """
        account = self.state.get_account(address)
        if account.principal == 0:
            raise ValidationError("no_principal", f"Nothing staked for {address}")
        require_no_pending_request(account)

        account = self.accrual.realize(account)
        now = self.clock.now()
        request = WithdrawalRequest(
            requested_at=now,
            locked_amount=account.virtual_balance,
            unlock_at=now + self.state.pool.wait_duration,
        )
        account.withdrawal_request = request
        self.state.set_account(account)

        logger.info(f"Withdrawal requested by {address}: locked={request.locked_amount}, unlock_at={request.unlock_at}")
        return request

    def cancel(self, address: str) -> WithdrawalRequest:
        """Clears the request. Accrual resumes from the checkpoint taken at request time."""
        account = self.state.get_account(address)
        request = account.withdrawal_request
        if request is None:
            raise ValidationError("no_request", f"No withdrawal request for {address}")

        account.withdrawal_request = None
        self.state.set_account(account)

        logger.info(f"Withdrawal cancelled by {address}")
        return request

    def complete(self, address: str) -> int:
        """
        Finalizes an unlocked request and returns the amount to pay out.

        The locked amount carries the compounded interest, so that share is
        consumed from banked rewards.
        """
        account = self.state.get_account(address)
        request = account.withdrawal_request
        if request is None:
            raise ValidationError("no_request", f"No withdrawal request for {address}")
        now = self.clock.now()
        if now < request.unlock_at:
            raise ValidationError(
                "wait_not_elapsed",
                f"Withdrawal for {address} unlocks at {request.unlock_at}, now {now}",
                unlock_at=request.unlock_at,
            )

        payout = request.locked_amount
        interest_share = max(0, payout - account.principal)
        account.banked_rewards -= min(account.banked_rewards, interest_share)

        self.state.pool.total_staked = checked_sub(self.state.pool.total_staked, account.principal)
        account.principal = 0
        account.virtual_balance = 0
        account.withdrawal_request = None
        self.state.set_account(account)

        logger.info(f"Withdrawal completed for {address}: paid={payout}")
        return payout
