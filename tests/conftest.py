# tests/conftest.py

from __future__ import annotations

from pathlib import Path
from types import SimpleNamespace

import pytest

from eduquest.core.state import AppState
from eduquest.tasks.task_catalog import TaskCatalog, seed_catalog, seed_user_tasks
from eduquest.tasks.task_manager import TaskLifecycleManager

from .fakes import FakeClock, FakeRewardLedger

USER_ID = "u1"


@pytest.fixture()
def settings(tmp_path: Path) -> SimpleNamespace:
    """
    Minimal settings object compatible with AppState and bootstrap.

    We intentionally use a SimpleNamespace rather than importing real config,
    to keep unit tests isolated and deterministic.
    """
    return SimpleNamespace(
        app_name="eduquest-test",
        log_level="INFO",
        reconciler_log_level="WARNING",
        user_id=USER_ID,
        catalog_path=None,
        default_max_retries=3,
        ledger_mode="memory",
        ledger_base_url="",
        ledger_api_key=None,
        ledger_timeout_seconds=1.0,
        reconcile_interval_seconds=0.01,
        data_dir=tmp_path / "data",
        tasks_db_path=tmp_path / "data" / "tasks.sqlite3",
    )


@pytest.fixture()
def catalog() -> TaskCatalog:
    return seed_catalog()


@pytest.fixture()
def ledger() -> FakeRewardLedger:
    return FakeRewardLedger()


@pytest.fixture()
def manager(catalog: TaskCatalog, ledger: FakeRewardLedger) -> TaskLifecycleManager:
    """Manager over the built-in curriculum, no persistence."""
    return TaskLifecycleManager(
        catalog,
        seed_user_tasks(catalog, USER_ID, now_ts=0.0),
        ledger,
        clock=FakeClock(),
    )


@pytest.fixture()
def state(settings: SimpleNamespace, manager: TaskLifecycleManager, ledger: FakeRewardLedger) -> AppState:
    """AppState without a background loop: commands run coroutines via asyncio.run."""
    return AppState(
        settings=settings,
        catalog=manager.catalog,
        ledger=ledger,
        manager=manager,
    )
