# src/eduquest/core/state.py

from __future__ import annotations

import asyncio
import threading
from collections.abc import Callable, Coroutine
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, TypeVar

from .ports import RewardLedger

if TYPE_CHECKING:
    from ..core.runtime import BackgroundLoop
    from ..tasks.task_catalog import TaskCatalog
    from ..tasks.task_manager import TaskLifecycleManager
    from ..tasks.task_store import UserTaskStore

T = TypeVar("T")


@dataclass
class AppState:
    # Store Settings on the state for easy access in other modules later.
    settings: Any

    catalog: TaskCatalog
    ledger: RewardLedger
    manager: TaskLifecycleManager
    store: UserTaskStore | None = None

    # Event loop thread that owns the manager (None in tests: ops run via asyncio.run).
    runner: BackgroundLoop | None = None
    lock: threading.Lock = field(default_factory=threading.Lock)

    def run(self, coro: Coroutine[Any, Any, T]) -> T:
        """Run a manager coroutine from synchronous code (console commands)."""
        if self.runner is not None:
            return self.runner.submit(coro)
        return asyncio.run(coro)

    def call(self, fn: Callable[..., T], *args: Any) -> T:
        """Run a synchronous manager method on the loop that owns the manager."""

        async def _call() -> T:
            return fn(*args)

        return self.run(_call())
