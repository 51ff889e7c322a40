from typing import Dict, List, Optional
import logging
from pydantic import BaseModel
from protocol.types.common import InterestModel
from .accounts import AccountRecord
from ..storage.db import StorageDB

logger = logging.getLogger(__name__)

POOL_KEY = "pool"
ACCOUNT_PREFIX = "acc:"

class PoolRecord(BaseModel):
    annual_rate: int                # scale 1e8
    wait_duration: int              # seconds
    total_staked: int = 0           # sum of all principals
    global_last_tick: int = 0       # diagnostic only
    interest_model: InterestModel = InterestModel.COMPOUND

class LedgerState:
    def __init__(self, pool: PoolRecord, db: Optional[StorageDB] = None, accounts: Dict[str, AccountRecord] = None):
        self.db = db
        self.pool = pool
        # address -> AccountRecord
        self._accounts: Dict[str, AccountRecord] = accounts if accounts is not None else {}

    def clone(self) -> 'LedgerState':
        """Creates a working copy of the state. Nothing is shared with the original."""
        new_accounts = {k: v.model_copy(deep=True) for k, v in self._accounts.items()}
        return LedgerState(self.pool.model_copy(), self.db, new_accounts)

    def get_account(self, address: str) -> AccountRecord:
        if address in self._accounts:
            return self._accounts[address]

        if self.db is not None:
            raw_json = self.db.get_state(f"{ACCOUNT_PREFIX}{address}")
            if raw_json:
                acc = AccountRecord.model_validate_json(raw_json)
                self._accounts[address] = acc
                return acc

        # Implicit zeroed account, stored on first set_account
        return AccountRecord(address=address)

    def set_account(self, account: AccountRecord):
        self._accounts[account.address] = account

    def get_all_accounts(self) -> List[AccountRecord]:
        return list(self._accounts.values())

    def total_principal(self) -> int:
        return sum(acc.principal for acc in self._accounts.values())

    def pending_requests(self) -> int:
        return sum(1 for acc in self._accounts.values() if acc.has_pending_request)

    def persist(self):
        """Writes pool record and all accounts to DB."""
        if self.db is None:
            return
        items = {POOL_KEY: self.pool.model_dump_json()}
        for addr, acc in self._accounts.items():
            items[f"{ACCOUNT_PREFIX}{addr}"] = acc.model_dump_json()
        self.db.set_many(items)

    @classmethod
    def load(cls, db: StorageDB, default_pool: PoolRecord) -> 'LedgerState':
        """Restores a ledger from DB, or starts a fresh one with `default_pool`."""
        raw_pool = db.get_state(POOL_KEY)
        pool = PoolRecord.model_validate_json(raw_pool) if raw_pool else default_pool

        accounts = {}
        for key, value in db.get_state_by_prefix(ACCOUNT_PREFIX).items():
            addr = key[len(ACCOUNT_PREFIX):]
            accounts[addr] = AccountRecord.model_validate_json(value)

        if raw_pool:
            logger.info(f"Ledger loaded: {len(accounts)} accounts, total_staked={pool.total_staked}")
        else:
            logger.info("Ledger initialized empty")
        return cls(pool, db, accounts)
