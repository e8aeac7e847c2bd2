# src/eduquest/cli/bootstrap.py

"""
CLI bootstrap helpers.

This module is the "composition root":
- loads settings once,
- ensures local (gitignored) directories exist,
- wires concrete implementations into AppState (catalog/store/ledger/manager),
- seeds the configured user's task rows on first run.
"""

from __future__ import annotations

import logging

from ..config import get_settings
from ..core.ports import RewardLedger
from ..core.state import AppState
from ..rewards.http_ledger import HttpRewardLedger, friendly_ledger_error_message
from ..rewards.memory_ledger import InMemoryRewardLedger
from ..tasks.task_catalog import TaskCatalog, load_catalog, seed_catalog, seed_user_tasks
from ..tasks.task_manager import TaskLifecycleManager
from ..tasks.task_store import UserTaskStore

logger = logging.getLogger(__name__)


def _ensure_local_dirs(settings) -> None:
    settings.data_dir.mkdir(parents=True, exist_ok=True)
    settings.tasks_db_path.parent.mkdir(parents=True, exist_ok=True)


def build_catalog(settings) -> TaskCatalog:
    path = getattr(settings, "catalog_path", None)
    if path:
        return load_catalog(path)
    return seed_catalog()


def build_ledger(settings) -> RewardLedger:
    if getattr(settings, "ledger_mode", "memory") == "http":
        try:
            return HttpRewardLedger(
                settings.ledger_base_url,
                api_key=settings.ledger_api_key,
                timeout_seconds=settings.ledger_timeout_seconds,
            )
        except RuntimeError as e:
            logger.warning("%s Using the in-memory ledger.", friendly_ledger_error_message(e))
    return InMemoryRewardLedger()


def create_initial_state(*, settings=None) -> AppState:
    """
    Create AppState from the provided settings.

    Keeping settings injectable makes the app easier to test and avoids hidden global config reads.
    If settings is None, falls back to get_settings().
    """
    if settings is None:
        settings = get_settings()

    _ensure_local_dirs(settings)

    catalog = build_catalog(settings)
    store = UserTaskStore(settings.tasks_db_path)
    store.seed_user_tasks(seed_user_tasks(catalog, settings.user_id))

    # Rows whose task left the catalog are kept; operations on them report NotFound.
    user_tasks = store.list_user_tasks(settings.user_id)
    ledger = build_ledger(settings)

    manager = TaskLifecycleManager(
        catalog,
        user_tasks,
        ledger,
        repo=store,
        default_max_retries=settings.default_max_retries,
    )
    logger.info(
        "Loaded %d tasks for user=%s (catalog=%d, ledger=%s)",
        len(user_tasks),
        settings.user_id,
        len(catalog),
        type(ledger).__name__,
    )

    return AppState(
        settings=settings,
        catalog=catalog,
        ledger=ledger,
        manager=manager,
        store=store,
    )
