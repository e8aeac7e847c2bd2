# tests/fakes.py

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field

from eduquest.core.errors import LedgerError


@dataclass(slots=True, frozen=True)
class LedgerCall:
    kind: str  # "currency" | "xp"
    amount: int
    user_id: str
    source_id: str


@dataclass(slots=True)
class FakeRewardLedger:
    """
    Fake RewardLedger used by manager tests.

    - Records successful calls for assertions
    - `fail=True` makes every call raise LedgerError (nothing is recorded)
    - `fail_xp=True` fails only add_xp, after add_currency went through
    - `gate` (optional) blocks add_currency until the event is set
    """

    calls: list[LedgerCall] = field(default_factory=list)
    fail: bool = False
    fail_xp: bool = False
    gate: asyncio.Event | None = None

    async def add_currency(self, amount: int, *, user_id: str, source_id: str) -> None:
        if self.gate is not None:
            await self.gate.wait()
        if self.fail:
            raise LedgerError("award-playcoins: HTTP 503: unavailable")
        self.calls.append(LedgerCall("currency", amount, user_id, source_id))

    async def add_xp(self, amount: int, *, user_id: str, source_id: str) -> None:
        if self.fail or self.fail_xp:
            raise LedgerError("update-xp-level: HTTP 503: unavailable")
        self.calls.append(LedgerCall("xp", amount, user_id, source_id))

    def total(self, kind: str) -> int:
        return sum(c.amount for c in self.calls if c.kind == kind)


class FakeClock:
    """Deterministic clock: every call advances by one second."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        self.now += 1.0
        return self.now


class FailingRepo:
    """UserTaskRepo whose writes always fail (sqlite locked, disk full, ...)."""

    def list_user_tasks(self, user_id: str) -> list:
        return []

    def save_user_task(self, user_task) -> None:
        raise OSError("disk full")

    def list_pending_rewards(self, user_id: str | None = None, limit: int = 32) -> list:
        return []

    def add_review(self, review) -> None:
        raise OSError("disk full")

    def add_reward_grant(self, grant) -> None:
        raise OSError("disk full")

    def get_reward_grant(self, user_task_id: str) -> None:
        return None
