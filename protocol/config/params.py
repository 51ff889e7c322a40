# MIT License
# Copyright (c) 2025 Hashborn

import os
from typing import Dict, Optional
from ..types.common import InterestModel

# Global Constants
DECIMALS = 8
SCALE = 10**DECIMALS             # fixed-point denominator, matches the asset precision

SECONDS_PER_TICK = 60
MINUTES_PER_YEAR = 525_600       # ticks per (365 day) year
MAX_UINT256 = 2**256 - 1

POOL_ENV_VAR = "STAKELEDGER_POOL"

class PoolConfig:
    def __init__(self,
                 pool_id: str,
                 annual_rate: int,
                 wait_duration: int,
                 interest_model: InterestModel = InterestModel.COMPOUND,
                 pool_address: str = "pool",
                 operators: Optional[list] = None):
        if annual_rate < 0:
            raise ValueError(f"annual_rate must be >= 0, got {annual_rate}")
        if wait_duration < 0:
            raise ValueError(f"wait_duration must be >= 0, got {wait_duration}")
        self.pool_id = pool_id
        self.annual_rate = annual_rate          # scale 1e8, 30_000_000 = 30%
        self.wait_duration = wait_duration      # seconds
        self.interest_model = interest_model
        self.pool_address = pool_address        # address holding the staked asset
        self.operators = list(operators or [])

POOLS: Dict[str, PoolConfig] = {
    "devnet": PoolConfig(
        pool_id="stk-devnet-1",
        annual_rate=30_000_000,         # 30%
        wait_duration=60,               # 1 minute, fast iteration
        pool_address="stkpool-devnet",
        operators=["stkoperator-devnet"],
    ),
    "testnet": PoolConfig(
        pool_id="stk-testnet-1",
        annual_rate=12_000_000,         # 12%
        wait_duration=24 * 3600,        # 1 day
        pool_address="stkpool-testnet",
    ),
    "mainnet": PoolConfig(
        pool_id="stk-mainnet-1",
        annual_rate=5_000_000,          # 5%
        wait_duration=7 * 24 * 3600,    # 7 days
        pool_address="stkpool-mainnet",
    ),
}

def get_pool_config(name: Optional[str] = None) -> PoolConfig:
    """
    Resolve a pool preset.

    Explicit name wins, then the STAKELEDGER_POOL environment variable,
    then devnet.
    """
    key = name or os.environ.get(POOL_ENV_VAR, "devnet")
    if key not in POOLS:
        raise ValueError(f"Unknown pool preset: {key} (known: {', '.join(sorted(POOLS))})")
    return POOLS[key]
