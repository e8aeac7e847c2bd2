# tests/test_reconciler.py

from __future__ import annotations

import asyncio

import pytest

from eduquest.rewards.reconciler import reconcile_once, run_reward_reconciler
from eduquest.tasks.task_models import TaskStatus

AUTO_TASK = "task_personal_meditation"


@pytest.mark.asyncio
async def test_reconcile_once_grants_pending(manager, ledger) -> None:
    ledger.fail = True
    res = await manager.complete_task(f"u1:{AUTO_TASK}")
    assert not res.ok

    assert await reconcile_once(manager) == 0

    ledger.fail = False
    assert await reconcile_once(manager) == 1
    ut = manager.get_user_task(f"u1:{AUTO_TASK}")
    assert ut.status == TaskStatus.COMPLETED
    assert ut.reward_granted is True


@pytest.mark.asyncio
async def test_reconciler_loop_runs_until_stopped(manager, ledger) -> None:
    ledger.fail = True
    await manager.complete_task(f"u1:{AUTO_TASK}")
    ledger.fail = False

    stop = asyncio.Event()
    runner = asyncio.create_task(run_reward_reconciler(manager, interval_seconds=0.01, stop_event=stop))

    await asyncio.sleep(0.05)
    stop.set()
    await asyncio.wait_for(runner, timeout=1.0)

    assert manager.get_user_task(f"u1:{AUTO_TASK}").reward_granted is True
    # currency + xp, exactly once
    assert len(ledger.calls) == 2


@pytest.mark.asyncio
async def test_reconcile_once_survives_a_crashing_manager() -> None:
    class Broken:
        async def retry_pending_rewards(self) -> int:
            raise RuntimeError("boom")

    assert await reconcile_once(Broken()) == 0
