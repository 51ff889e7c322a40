# MIT License
# Copyright (c) 2025 Hashborn

"""
Prometheus Metrics Exporter

Exports staking ledger metrics in Prometheus format.

Metrics:
- Pool totals (total staked, accounts, pending withdrawals)
- Pool policy (annual rate, wait duration)
- Operation counts and failures by type
- Value paid out (rewards, principal)
"""

from prometheus_client import Counter, Gauge, Histogram, CollectorRegistry

# Create registry for metrics
metrics_registry = CollectorRegistry()

# ═══════════════════════════════════════════════════════════════════
# POOL METRICS
# ═══════════════════════════════════════════════════════════════════

total_staked = Gauge(
    'stakeledger_total_staked',
    'Sum of staked principal (minimal units)',
    registry=metrics_registry
)

accounts_total = Gauge(
    'stakeledger_accounts_total',
    'Number of accounts with non-zero principal',
    registry=metrics_registry
)

pending_withdrawals = Gauge(
    'stakeledger_pending_withdrawals',
    'Number of accounts with a pending withdrawal request',
    registry=metrics_registry
)

annual_rate = Gauge(
    'stakeledger_annual_rate',
    'Annual interest rate (scale 1e8)',
    registry=metrics_registry
)

wait_duration_seconds = Gauge(
    'stakeledger_wait_duration_seconds',
    'Withdrawal wait duration for new requests',
    registry=metrics_registry
)

# ═══════════════════════════════════════════════════════════════════
# OPERATION METRICS
# ═══════════════════════════════════════════════════════════════════

operations_total = Counter(
    'stakeledger_operations_total',
    'Total number of successful pool operations',
    ['op_type'],
    registry=metrics_registry
)

operation_failures_total = Counter(
    'stakeledger_operation_failures_total',
    'Total number of rejected or failed pool operations',
    ['op_type'],
    registry=metrics_registry
)

rewards_paid_total = Counter(
    'stakeledger_rewards_paid_total',
    'Total rewards paid out (minimal units)',
    registry=metrics_registry
)

principal_withdrawn_total = Counter(
    'stakeledger_principal_withdrawn_total',
    'Total principal paid out, including locked amounts of completed requests',
    registry=metrics_registry
)

withdrawal_wait_seconds = Histogram(
    'stakeledger_withdrawal_wait_seconds',
    'Time from withdrawal request to completion',
    buckets=[60, 3600, 6 * 3600, 24 * 3600, 3 * 24 * 3600, 7 * 24 * 3600, 30 * 24 * 3600],
    registry=metrics_registry
)


# ═══════════════════════════════════════════════════════════════════
# HELPER FUNCTIONS
# ═══════════════════════════════════════════════════════════════════

def update_metrics(pool):
    """
    Update all gauges from pool state.
    Counters are updated by the pool as operations happen.

    Args:
        pool: StakingPool instance
    """
    state = pool.state

    total_staked.set(state.pool.total_staked)
    annual_rate.set(state.pool.annual_rate)
    wait_duration_seconds.set(state.pool.wait_duration)
    pending_withdrawals.set(state.pending_requests())
    accounts_total.set(len([acc for acc in state.get_all_accounts() if acc.principal > 0]))


def record_operation(op_type, ok: bool = True):
    """
    Count a pool operation.

    Args:
        op_type: OpType of the call
        ok: False when the call was rejected or rolled back
    """
    if ok:
        operations_total.labels(op_type=op_type.value).inc()
    else:
        operation_failures_total.labels(op_type=op_type.value).inc()
