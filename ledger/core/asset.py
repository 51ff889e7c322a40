"""
Fungible asset ledger.

The staking pool only needs balance_of, transfer and transfer_from with
throw-on-failure semantics. InMemoryAssetLedger is a complete implementation
of that contract, used for simulations and tests.
"""
from typing import Callable, Dict, List, Tuple
import logging

from protocol.types.common import TransferError

logger = logging.getLogger(__name__)


class AssetLedger:
    """Interface of the external asset ledger."""

    def balance_of(self, owner: str) -> int:
        raise NotImplementedError

    def transfer(self, sender: str, recipient: str, amount: int) -> None:
        raise NotImplementedError

    def transfer_from(self, spender: str, owner: str, recipient: str, amount: int) -> None:
        raise NotImplementedError


class InMemoryAssetLedger(AssetLedger):
    def __init__(self, balances: Dict[str, int] = None):
        self.balances: Dict[str, int] = dict(balances or {})
        self.allowances: Dict[Tuple[str, str], int] = {}
        # Called after every successful movement: hook(sender, recipient, amount)
        self.transfer_hooks: List[Callable[[str, str, int], None]] = []

    def balance_of(self, owner: str) -> int:
        return self.balances.get(owner, 0)

    def mint(self, owner: str, amount: int) -> None:
        if amount < 0:
            raise TransferError(f"Cannot mint negative amount {amount}")
        self.balances[owner] = self.balance_of(owner) + amount

    def approve(self, owner: str, spender: str, amount: int) -> None:
        if amount < 0:
            raise TransferError(f"Cannot approve negative amount {amount}")
        self.allowances[(owner, spender)] = amount

    def allowance(self, owner: str, spender: str) -> int:
        return self.allowances.get((owner, spender), 0)

    def _move(self, sender: str, recipient: str, amount: int) -> None:
        if amount < 0:
            raise TransferError(f"Negative transfer amount {amount}")
        if not recipient:
            raise TransferError("Transfer to empty recipient")
        have = self.balance_of(sender)
        if have < amount:
            raise TransferError(f"Insufficient balance: {sender} has {have}, needs {amount}")
        before = dict(self.balances)
        self.balances[sender] = have - amount
        self.balances[recipient] = self.balance_of(recipient) + amount
        logger.debug(f"Asset transfer {sender} -> {recipient}: {amount}")
        try:
            for hook in self.transfer_hooks:
                hook(sender, recipient, amount)
        except Exception:
            # A failing hook reverts the whole transfer
            self.balances = before
            raise

    def transfer(self, sender: str, recipient: str, amount: int) -> None:
        self._move(sender, recipient, amount)

    def transfer_from(self, spender: str, owner: str, recipient: str, amount: int) -> None:
        allowed = self.allowance(owner, spender)
        if allowed < amount:
            raise TransferError(f"Insufficient allowance: {spender} may move {allowed} of {owner}, needs {amount}")
        self.allowances[(owner, spender)] = allowed - amount
        try:
            self._move(owner, recipient, amount)
        except Exception:
            self.allowances[(owner, spender)] = allowed
            raise
