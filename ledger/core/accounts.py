from pydantic import BaseModel
from typing import Optional

class WithdrawalRequest(BaseModel):
    """A pending full withdrawal. Its presence freezes accrual for the account."""
    requested_at: int       # Wall-clock seconds when requested
    locked_amount: int      # Virtual balance snapshot paid out on completion
    unlock_at: int          # requested_at + wait_duration at request time

class AccountRecord(BaseModel):
    address: str
    principal: int = 0              # Raw deposited amount
    virtual_balance: int = 0        # Compounding basis (principal + interest folded in)
    banked_rewards: int = 0         # Realized, claimable, not yet paid
    last_accrual_tick: int = 0      # Minute tick of the last checkpoint

    withdrawal_request: Optional[WithdrawalRequest] = None

    @property
    def has_pending_request(self) -> bool:
        return self.withdrawal_request is not None

    @property
    def base_balance(self) -> int:
        """Virtual balance, or principal before the first checkpoint populated it."""
        return self.virtual_balance if self.virtual_balance > 0 else self.principal

class UserInfo(BaseModel):
    address: str
    earned: int
    principal: int
    virtual_balance: int
    last_accrual_tick: int
    has_pending_request: bool
    unlock_at: Optional[int] = None
