# tests/test_task_views.py

from __future__ import annotations

from dataclasses import replace

from eduquest.tasks.task_catalog import seed_catalog, seed_user_tasks
from eduquest.tasks.task_models import StateRules, TaskStatus, UserTask
from eduquest.tasks.task_views import compute_stats, filter_by_category, resolve_context, sort_by_priority


def _ut(task_id: str, status: TaskStatus, **kw) -> UserTask:
    return UserTask(id=f"u1:{task_id}", task_id=task_id, user_id="u1", status=status, updated_at=0.0, **kw)


def test_filter_by_category_keeps_catalog_order() -> None:
    catalog = seed_catalog()
    rows = seed_user_tasks(catalog, "u1", now_ts=0.0)

    family = filter_by_category(rows, catalog, "family")
    assert [ut.task_id for ut in family] == [
        "task_family_cooking",
        "task_family_budget",
        "task_family_storytelling",
    ]
    assert filter_by_category(rows, catalog, "all") == rows


def test_filter_by_category_drops_rows_without_definition() -> None:
    catalog = seed_catalog()
    rows = [_ut("task_gone", TaskStatus.AVAILABLE), _ut("task_personal_reading", TaskStatus.AVAILABLE)]

    assert [ut.task_id for ut in filter_by_category(rows, catalog, "personal")] == ["task_personal_reading"]


def test_sort_by_priority_is_stable() -> None:
    rows = [
        _ut("a", TaskStatus.LOCKED),
        _ut("b", TaskStatus.AVAILABLE),
        _ut("c", TaskStatus.COMPLETED),
        _ut("d", TaskStatus.IN_PROGRESS),
        _ut("e", TaskStatus.AVAILABLE),
        _ut("f", TaskStatus.UNDER_REVIEW),
        _ut("g", TaskStatus.REJECTED),
        _ut("h", TaskStatus.AWAITING_PROOF),
    ]

    ordered = [ut.task_id for ut in sort_by_priority(rows)]

    assert ordered == ["d", "b", "e", "f", "h", "c", "g", "a"]


def test_compute_stats_counts_filtered_and_sums_catalog() -> None:
    catalog = seed_catalog()
    rows = seed_user_tasks(catalog, "u1", now_ts=0.0)
    rows[0] = replace(rows[0], status=TaskStatus.COMPLETED, reward_granted=True)  # cooking: 25 / 50
    rows[1] = replace(rows[1], status=TaskStatus.IN_PROGRESS)

    family = filter_by_category(rows, catalog, "family")
    st = compute_stats(family, rows, catalog)

    assert (st.completed, st.in_progress, st.available, st.locked) == (1, 1, 1, 0)
    assert st.total_currency == 402
    assert st.total_xp == 840
    assert st.earned_currency == 25
    assert st.earned_xp == 50

    everything = compute_stats(rows, rows, catalog)
    assert everything.locked == 2
    assert everything.available == 9


def test_resolve_context_flags() -> None:
    catalog = seed_catalog()

    ctx = resolve_context(_ut("task_family_cooking", TaskStatus.IN_PROGRESS), catalog)
    assert ctx is not None
    assert ctx.can_start_task is False
    assert ctx.can_submit_proof is True
    assert ctx.can_retry is False

    # cooking allows 3 attempts; a rejected row below the budget may retry.
    ctx = resolve_context(_ut("task_family_cooking", TaskStatus.REJECTED, rejection_count=1), catalog)
    assert ctx.can_retry is True

    ctx = resolve_context(_ut("task_family_cooking", TaskStatus.REJECTED, rejection_count=3), catalog)
    assert ctx.can_retry is False

    assert resolve_context(None, catalog) is None
    assert resolve_context(_ut("task_gone", TaskStatus.AVAILABLE), catalog) is None


def test_resolve_context_falls_back_to_default_budget() -> None:
    catalog = seed_catalog()
    d = catalog.get("task_personal_meditation")
    assert d is not None
    assert d.state_rules == StateRules()

    rejected = _ut("task_personal_meditation", TaskStatus.REJECTED, rejection_count=1)
    assert resolve_context(rejected, catalog, default_max_retries=2).can_retry is True
    assert resolve_context(rejected, catalog, default_max_retries=1).can_retry is False
