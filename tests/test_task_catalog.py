# tests/test_task_catalog.py

from __future__ import annotations

import json
from pathlib import Path

import pytest

from eduquest.tasks.task_catalog import (
    SEED_TASKS,
    TaskCatalog,
    definition_from_dict,
    definition_to_dict,
    load_catalog,
    seed_catalog,
    seed_user_tasks,
)
from eduquest.tasks.task_models import ProofType, ReviewType, TaskStatus


def test_seed_catalog_lookup() -> None:
    catalog = seed_catalog()

    assert len(catalog) == 13
    assert "task_physics_lever" in catalog
    assert catalog.get("nope") is None

    reading = catalog.get("task_personal_reading")
    assert reading is not None
    assert reading.proof_policy.type == ProofType.TEXT
    assert reading.proof_policy.review_type == ReviewType.AUTO

    budget = catalog.get("task_family_budget")
    assert budget.proof_policy.review_type == ReviewType.MANUAL


def test_duplicate_task_ids_are_rejected() -> None:
    with pytest.raises(ValueError, match="duplicate"):
        TaskCatalog([SEED_TASKS[0], SEED_TASKS[0]])


def test_seed_user_tasks_locks_gated_tasks() -> None:
    rows = seed_user_tasks(seed_catalog(), "kid", now_ts=5.0)

    locked = {ut.task_id for ut in rows if ut.status == TaskStatus.LOCKED}
    assert locked == {"task_village_sanitation", "task_chemistry_extraction"}
    assert rows[0].id == "kid:task_family_cooking"
    assert all(ut.updated_at == 5.0 for ut in rows)
    assert all(not ut.reward_granted for ut in rows)


def test_load_catalog_from_json_file(tmp_path: Path) -> None:
    path = tmp_path / "catalog.json"
    path.write_text(json.dumps({"tasks": [definition_to_dict(d) for d in SEED_TASKS]}), "utf-8")

    catalog = load_catalog(path)

    assert list(catalog) == list(SEED_TASKS)


def test_load_catalog_rejects_bad_shape(tmp_path: Path) -> None:
    path = tmp_path / "catalog.json"
    path.write_text(json.dumps({"items": []}), "utf-8")

    with pytest.raises(ValueError):
        load_catalog(path)


def test_definition_from_dict_defaults() -> None:
    d = definition_from_dict({"id": "t1", "category": "village"})

    assert d.title == "t1"
    assert d.proof_policy.type == ProofType.NONE
    assert d.reward.currency == 0
    assert d.state_rules.max_retries is None

    with pytest.raises(ValueError):
        definition_from_dict({"title": "no id"})
    with pytest.raises(ValueError):
        definition_from_dict({"id": "t2", "reward": {"currency": -1}})
