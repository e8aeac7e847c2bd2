# src/eduquest/tasks/task_views.py

"""
Derived views over (user tasks, catalog).

Pure functions: no stored state, recomputed on every read.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence

from .task_catalog import TaskCatalog
from .task_models import (
    DEFAULT_MAX_RETRIES,
    STATUS_PRIORITY,
    TaskCategory,
    TaskStats,
    TaskStatus,
    UserTask,
    UserTaskContext,
)

ALL_CATEGORIES = "all"

CategoryFilter = TaskCategory | str


def filter_by_category(
    user_tasks: Iterable[UserTask],
    catalog: TaskCatalog,
    category: CategoryFilter,
) -> list[UserTask]:
    """Keep tasks whose definition is in `category`; "all" passes everything through."""
    if category == ALL_CATEGORIES:
        return list(user_tasks)

    out: list[UserTask] = []
    for ut in user_tasks:
        d = catalog.get(ut.task_id)
        if d is not None and d.category == category:
            out.append(ut)
    return out


def with_status(user_tasks: Iterable[UserTask], status: TaskStatus) -> list[UserTask]:
    return [ut for ut in user_tasks if ut.status == status]


def sort_by_priority(user_tasks: Iterable[UserTask]) -> list[UserTask]:
    # sorted() is stable: ties keep their original order.
    return sorted(user_tasks, key=lambda ut: STATUS_PRIORITY[ut.status])


def compute_stats(filtered: Sequence[UserTask], all_user_tasks: Iterable[UserTask], catalog: TaskCatalog) -> TaskStats:
    """
    Counts come from the filtered set.

    total_currency/total_xp are the catalog-wide potential (every task, unfiltered);
    earned_currency/earned_xp sum the rewards actually granted to this user.
    """
    earned_currency = 0
    earned_xp = 0
    for ut in all_user_tasks:
        if not ut.reward_granted:
            continue
        d = catalog.get(ut.task_id)
        if d is None:
            continue
        earned_currency += d.reward.currency
        earned_xp += d.reward.xp

    return TaskStats(
        completed=len(with_status(filtered, TaskStatus.COMPLETED)),
        in_progress=len(with_status(filtered, TaskStatus.IN_PROGRESS)),
        available=len(with_status(filtered, TaskStatus.AVAILABLE)),
        locked=len(with_status(filtered, TaskStatus.LOCKED)),
        total_currency=catalog.total_currency(),
        total_xp=catalog.total_xp(),
        earned_currency=earned_currency,
        earned_xp=earned_xp,
    )


def resolve_context(
    user_task: UserTask | None,
    catalog: TaskCatalog,
    *,
    default_max_retries: int = DEFAULT_MAX_RETRIES,
) -> UserTaskContext | None:
    """Selected-task view; None when the task or its definition cannot be resolved."""
    if user_task is None:
        return None
    d = catalog.get(user_task.task_id)
    if d is None:
        return None

    max_retries = d.state_rules.retry_limit(default_max_retries)
    return UserTaskContext(
        user_task=user_task,
        task_definition=d,
        can_start_task=d.state_rules.allow_skip or user_task.status == TaskStatus.AVAILABLE,
        can_submit_proof=user_task.status == TaskStatus.IN_PROGRESS,
        can_retry=user_task.status == TaskStatus.REJECTED and user_task.rejection_count < max_retries,
    )
