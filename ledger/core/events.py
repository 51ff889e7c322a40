"""
Pool lifecycle events.

StakingPool emits one event per successful call, after the new state is
committed, so listeners never observe rolled-back effects. Listeners run
synchronously in the emitting thread and cannot fail the call.
"""
from typing import Any, Callable, Dict, List
import logging

logger = logging.getLogger(__name__)

STAKED = "staked"
WITHDRAWN = "withdrawn"
REWARD_PAID = "reward_paid"
WITHDRAWAL_REQUESTED = "withdrawal_requested"
WITHDRAWAL_CANCELLED = "withdrawal_cancelled"
WITHDRAWAL_COMPLETED = "withdrawal_completed"
ANNUAL_RATE_UPDATED = "annual_rate_updated"
WAIT_DURATION_UPDATED = "wait_duration_updated"
EMERGENCY_WITHDRAWAL = "emergency_withdrawal"

POOL_EVENTS = frozenset({
    STAKED, WITHDRAWN, REWARD_PAID,
    WITHDRAWAL_REQUESTED, WITHDRAWAL_CANCELLED, WITHDRAWAL_COMPLETED,
    ANNUAL_RATE_UPDATED, WAIT_DURATION_UPDATED, EMERGENCY_WITHDRAWAL,
})

Listener = Callable[..., None]


def _check_event(event_type: str) -> None:
    if event_type not in POOL_EVENTS:
        raise ValueError(f"Unknown pool event: {event_type}")


class EventBus:
    """Per-pool listener registry, keyed by pool event name."""

    def __init__(self):
        self.listeners: Dict[str, List[Listener]] = {name: [] for name in POOL_EVENTS}

    def subscribe(self, event_type: str, callback: Listener) -> None:
        """
        Register `callback(**data)` for one pool event.

        Args:
            event_type: one of POOL_EVENTS (e.g. 'staked', 'withdrawal_requested')
            callback: called with the event fields as keyword arguments
        """
        _check_event(event_type)
        self.listeners[event_type].append(callback)
        logger.debug(f"Subscribed to pool event: {event_type}")

    def emit(self, event_type: str, **data: Any) -> int:
        """
        Deliver an event. Returns the number of listeners that handled it.

        A failing listener is logged and skipped; the others still run.
        """
        _check_event(event_type)
        delivered = 0
        for callback in list(self.listeners[event_type]):
            try:
                callback(**data)
                delivered += 1
            except Exception as e:
                logger.error(f"Listener for {event_type} failed: {e}", exc_info=True)
        logger.debug(f"Pool event {event_type} delivered to {delivered} listener(s)")
        return delivered
