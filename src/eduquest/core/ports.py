# src/eduquest/core/ports.py

from __future__ import annotations

"""
Ports (interfaces) used by the core.

The task lifecycle manager depends on Protocols instead of concrete implementations.
This keeps the reward backend and storage swappable and makes testing easier.
"""

from typing import Any, Awaitable, Protocol


class RewardLedger(Protocol):
    """
    External economy service (currency wallet + XP/levels).

    Implementations raise LedgerError on failure; the return value is ignored.
    `source_id` tags the ledger entry with the user task. The backend does not
    deduplicate on it; callers must not repeat a leg that already succeeded.
    """

    def add_currency(self, amount: int, *, user_id: str, source_id: str) -> Awaitable[None]: ...

    def add_xp(self, amount: int, *, user_id: str, source_id: str) -> Awaitable[None]: ...


class UserTaskRepo(Protocol):
    # Load / write-through
    def list_user_tasks(self, user_id: str) -> list[Any]: ...
    def save_user_task(self, user_task: Any) -> None: ...

    # Reconciler
    def list_pending_rewards(self, user_id: str | None = None, limit: int = 32) -> list[Any]: ...

    # Audit trail
    def add_review(self, review: Any) -> None: ...
    def add_reward_grant(self, grant: Any) -> None: ...
    def get_reward_grant(self, user_task_id: str) -> Any | None: ...
