# src/eduquest/rewards/reconciler.py

from __future__ import annotations

"""
Reward reconciler.

A small polling loop that finishes reward grants the ledger failed to confirm:
- asks the manager for completed tasks still marked reward_pending,
- retries the grant (the manager keeps it idempotent),
- logs and keeps going on failure; the next sweep tries again.

Status transitions are never rolled back; this loop is the only recovery path.
"""

import asyncio
import logging

from ..tasks.task_manager import TaskLifecycleManager

logger = logging.getLogger(__name__)


async def reconcile_once(manager: TaskLifecycleManager) -> int:
    """One sweep. Returns the number of rewards granted."""
    try:
        granted = await manager.retry_pending_rewards()
    except Exception:
        logger.exception("retry_pending_rewards crashed")
        return 0
    if granted:
        logger.info("Reconciler granted %d pending reward(s)", granted)
    return granted


async def run_reward_reconciler(
        manager: TaskLifecycleManager,
        *,
        interval_seconds: float = 30.0,
        stop_event: asyncio.Event | None = None,
) -> None:
    """
    Sweep every interval_seconds until stop_event is set (or the task is cancelled).
    """
    sleep_s = max(0.01, float(interval_seconds))

    while stop_event is None or not stop_event.is_set():
        await reconcile_once(manager)

        if stop_event is None:
            await asyncio.sleep(sleep_s)
            continue
        try:
            await asyncio.wait_for(stop_event.wait(), timeout=sleep_s)
        except asyncio.TimeoutError:
            pass

    logger.info("Reward reconciler stopped.")
