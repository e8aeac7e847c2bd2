# src/eduquest/tasks/task_catalog.py

"""
Task catalog: the ordered, read-only list of TaskDefinitions.

The catalog is either the built-in curriculum seed (SEED_TASKS) or a JSON file
with the same shape as `definition_to_dict` produces.
"""

from __future__ import annotations

import json
import logging
import time
from collections.abc import Iterable, Iterator, Mapping
from pathlib import Path
from typing import Any

from .task_models import (
    ProofPolicy,
    ProofType,
    ReviewerRole,
    ReviewType,
    Reward,
    StateRules,
    TaskCategory,
    TaskDefinition,
    TaskDifficulty,
    TaskStatus,
    TimeFrame,
    UserTask,
    VisibilityRules,
)

logger = logging.getLogger(__name__)

IMAGE_TYPES = frozenset({"image/jpeg", "image/png", "image/webp"})
MAX_PHOTO_BYTES = 5 * 1024 * 1024


class TaskCatalog:
    """Ordered collection of task definitions with lookup by id."""

    def __init__(self, definitions: Iterable[TaskDefinition]) -> None:
        self._items: list[TaskDefinition] = []
        self._by_id: dict[str, TaskDefinition] = {}
        for d in definitions:
            if d.id in self._by_id:
                raise ValueError(f"duplicate task id in catalog: {d.id}")
            self._items.append(d)
            self._by_id[d.id] = d

    def __iter__(self) -> Iterator[TaskDefinition]:
        return iter(self._items)

    def __len__(self) -> int:
        return len(self._items)

    def __contains__(self, task_id: object) -> bool:
        return task_id in self._by_id

    def get(self, task_id: str) -> TaskDefinition | None:
        return self._by_id.get(task_id)

    def total_currency(self) -> int:
        return sum(d.reward.currency for d in self._items)

    def total_xp(self) -> int:
        return sum(d.reward.xp for d in self._items)


# ---- dict <-> dataclass ----


def _opt_int(raw: Any) -> int | None:
    if raw is None or raw == "":
        return None
    return int(raw)


def definition_from_dict(data: Mapping[str, Any]) -> TaskDefinition:
    """Build a TaskDefinition from a plain mapping (JSON catalog entry)."""
    task_id = str(data.get("id") or "").strip()
    if not task_id:
        raise ValueError("task id is required")

    reward_raw = data.get("reward") or {}
    policy_raw = data.get("proof_policy") or {}
    rules_raw = data.get("state_rules") or {}
    vis_raw = data.get("visibility_rules") or {}

    role_raw = policy_raw.get("reviewer_role")
    accepted = policy_raw.get("accepted_file_types")

    return TaskDefinition(
        id=task_id,
        title=str(data.get("title") or task_id),
        description=str(data.get("description") or ""),
        category=TaskCategory(data.get("category", "personal")),
        difficulty=TaskDifficulty(data.get("difficulty", "easy")),
        reward=Reward(
            currency=int(reward_raw.get("currency", 0)),
            xp=int(reward_raw.get("xp", 0)),
            badge_id=reward_raw.get("badge_id"),
        ),
        proof_policy=ProofPolicy(
            type=ProofType(policy_raw.get("type", "none")),
            review_type=ReviewType(policy_raw.get("review_type", "manual")),
            reviewer_role=ReviewerRole(role_raw) if role_raw else None,
            max_file_size=_opt_int(policy_raw.get("max_file_size")),
            accepted_file_types=frozenset(accepted) if accepted else None,
            min_text_length=_opt_int(policy_raw.get("min_text_length")),
            max_text_length=_opt_int(policy_raw.get("max_text_length")),
        ),
        state_rules=StateRules(
            max_retries=_opt_int(rules_raw.get("max_retries")),
            allow_skip=bool(rules_raw.get("allow_skip", False)),
        ),
        visibility_rules=VisibilityRules(
            prerequisite_task_ids=frozenset(vis_raw.get("prerequisite_task_ids") or ()),
            min_level_required=_opt_int(vis_raw.get("min_level_required")),
        ),
        estimated_minutes=_opt_int(data.get("estimated_minutes")),
        time_frame=TimeFrame(data.get("time_frame", "anytime")),
    )


def definition_to_dict(d: TaskDefinition) -> dict[str, Any]:
    p = d.proof_policy
    return {
        "id": d.id,
        "title": d.title,
        "description": d.description,
        "category": d.category.value,
        "difficulty": d.difficulty.value,
        "estimated_minutes": d.estimated_minutes,
        "time_frame": d.time_frame.value,
        "reward": {"currency": d.reward.currency, "xp": d.reward.xp, "badge_id": d.reward.badge_id},
        "proof_policy": {
            "type": p.type.value,
            "review_type": p.review_type.value,
            "reviewer_role": p.reviewer_role.value if p.reviewer_role else None,
            "max_file_size": p.max_file_size,
            "accepted_file_types": sorted(p.accepted_file_types) if p.accepted_file_types else None,
            "min_text_length": p.min_text_length,
            "max_text_length": p.max_text_length,
        },
        "state_rules": {"max_retries": d.state_rules.max_retries, "allow_skip": d.state_rules.allow_skip},
        "visibility_rules": {
            "prerequisite_task_ids": sorted(d.visibility_rules.prerequisite_task_ids),
            "min_level_required": d.visibility_rules.min_level_required,
        },
    }


def load_catalog(path: str | Path) -> TaskCatalog:
    """
    Load a catalog from JSON.

    Accepted shapes: a list of task objects, or {"tasks": [...]}.
    """
    path = Path(path)
    data = json.loads(path.read_text("utf-8"))
    if isinstance(data, dict):
        data = data.get("tasks")
    if not isinstance(data, list):
        raise ValueError(f"catalog {path} must be a list of tasks or an object with 'tasks'")

    catalog = TaskCatalog(definition_from_dict(item) for item in data)
    logger.info("Loaded task catalog from %s (%d tasks)", path, len(catalog))
    return catalog


# ---- built-in curriculum seed ----


def _photo_policy(role: ReviewerRole) -> ProofPolicy:
    return ProofPolicy(
        type=ProofType.PHOTO,
        review_type=ReviewType.MANUAL,
        reviewer_role=role,
        max_file_size=MAX_PHOTO_BYTES,
        accepted_file_types=IMAGE_TYPES,
    )


def _text_policy(role: ReviewerRole, min_words: int, max_words: int) -> ProofPolicy:
    # "system" reviewers check text automatically.
    review = ReviewType.AUTO if role == ReviewerRole.SYSTEM else ReviewType.MANUAL
    return ProofPolicy(
        type=ProofType.TEXT,
        review_type=review,
        reviewer_role=role,
        min_text_length=min_words,
        max_text_length=max_words,
    )


_AUTO_POLICY = ProofPolicy(type=ProofType.AUTO, review_type=ReviewType.AUTO, reviewer_role=ReviewerRole.SYSTEM)


SEED_TASKS: tuple[TaskDefinition, ...] = (
    # ---- family ----
    TaskDefinition(
        id="task_family_cooking",
        title="Help with family cooking",
        description="Assist in preparing a meal and document what you learned about nutrition",
        category=TaskCategory.FAMILY,
        difficulty=TaskDifficulty.EASY,
        reward=Reward(currency=25, xp=50),
        proof_policy=_photo_policy(ReviewerRole.PARENT),
        state_rules=StateRules(max_retries=3),
        estimated_minutes=45,
        time_frame=TimeFrame.THIS_WEEK,
    ),
    TaskDefinition(
        id="task_family_budget",
        title="Help with family budget planning",
        description="Assist parents in tracking expenses for one week and identify savings opportunities",
        category=TaskCategory.FAMILY,
        difficulty=TaskDifficulty.MEDIUM,
        reward=Reward(currency=35, xp=70),
        proof_policy=_text_policy(ReviewerRole.PARENT, 150, 500),
        state_rules=StateRules(max_retries=2),
        estimated_minutes=60,
        time_frame=TimeFrame.THIS_WEEK,
    ),
    TaskDefinition(
        id="task_family_storytelling",
        title="Record family stories",
        description="Interview an elder family member and record their story (text summary)",
        category=TaskCategory.FAMILY,
        difficulty=TaskDifficulty.EASY,
        reward=Reward(currency=20, xp=40, badge_id="storyteller"),
        proof_policy=_text_policy(ReviewerRole.PARENT, 100, 400),
        estimated_minutes=30,
    ),
    # ---- village ----
    TaskDefinition(
        id="task_village_clean_water",
        title="Clean water awareness drive",
        description="Educate 3 neighbors about clean water practices",
        category=TaskCategory.VILLAGE,
        difficulty=TaskDifficulty.MEDIUM,
        reward=Reward(currency=50, xp=100, badge_id="health_champion"),
        proof_policy=_text_policy(ReviewerRole.COMMUNITY, 150, 500),
        state_rules=StateRules(max_retries=2),
        estimated_minutes=90,
        time_frame=TimeFrame.THIS_WEEK,
    ),
    TaskDefinition(
        id="task_village_tree_planting",
        title="Plant a tree in your community",
        description="Plant a sapling in your village and document its location and care plan",
        category=TaskCategory.VILLAGE,
        difficulty=TaskDifficulty.MEDIUM,
        reward=Reward(currency=40, xp=80, badge_id="eco_warrior"),
        proof_policy=_photo_policy(ReviewerRole.COMMUNITY),
        state_rules=StateRules(max_retries=3),
        estimated_minutes=45,
        time_frame=TimeFrame.THIS_WEEK,
    ),
    TaskDefinition(
        id="task_village_sanitation",
        title="Organize community sanitation drive",
        description="Lead a cleanup activity in your village and document the before/after",
        category=TaskCategory.VILLAGE,
        difficulty=TaskDifficulty.HARD,
        reward=Reward(currency=60, xp=120, badge_id="community_leader"),
        proof_policy=_photo_policy(ReviewerRole.COMMUNITY),
        state_rules=StateRules(max_retries=2),
        visibility_rules=VisibilityRules(prerequisite_task_ids=frozenset({"task_village_tree_planting"})),
        estimated_minutes=120,
        time_frame=TimeFrame.THIS_WEEK,
    ),
    # ---- subject ----
    TaskDefinition(
        id="task_physics_lever",
        title="Build a lever system",
        description="Demonstrate a simple lever using household items (Physics)",
        category=TaskCategory.SUBJECT,
        difficulty=TaskDifficulty.MEDIUM,
        reward=Reward(currency=30, xp=75),
        proof_policy=_photo_policy(ReviewerRole.TEACHER),
        state_rules=StateRules(max_retries=2),
        estimated_minutes=45,
        time_frame=TimeFrame.THIS_WEEK,
    ),
    TaskDefinition(
        id="task_chemistry_extraction",
        title="Extract natural dye",
        description="Extract color from natural sources (Chemistry)",
        category=TaskCategory.SUBJECT,
        difficulty=TaskDifficulty.HARD,
        reward=Reward(currency=45, xp=100),
        proof_policy=_photo_policy(ReviewerRole.TEACHER),
        state_rules=StateRules(max_retries=2),
        visibility_rules=VisibilityRules(min_level_required=3),
        estimated_minutes=90,
        time_frame=TimeFrame.THIS_WEEK,
    ),
    TaskDefinition(
        id="task_biology_observation",
        title="Observe and document biodiversity",
        description="Find 5 different plants/insects in nature and document them",
        category=TaskCategory.SUBJECT,
        difficulty=TaskDifficulty.EASY,
        reward=Reward(currency=35, xp=70),
        proof_policy=_photo_policy(ReviewerRole.TEACHER),
        state_rules=StateRules(max_retries=3),
        estimated_minutes=60,
        time_frame=TimeFrame.THIS_WEEK,
    ),
    TaskDefinition(
        id="task_math_measurement",
        title="Measure and calculate room area",
        description="Measure a room and calculate its area using geometry",
        category=TaskCategory.SUBJECT,
        difficulty=TaskDifficulty.MEDIUM,
        reward=Reward(currency=25, xp=60),
        proof_policy=_text_policy(ReviewerRole.TEACHER, 150, 500),
        state_rules=StateRules(max_retries=2),
        estimated_minutes=45,
    ),
    # ---- personal ----
    TaskDefinition(
        id="task_personal_meditation",
        title="Practice mindfulness meditation",
        description="Complete a 10-minute guided meditation",
        category=TaskCategory.PERSONAL,
        difficulty=TaskDifficulty.EASY,
        reward=Reward(currency=10, xp=20),
        proof_policy=_AUTO_POLICY,
        estimated_minutes=15,
        time_frame=TimeFrame.TODAY,
    ),
    TaskDefinition(
        id="task_personal_exercise",
        title="Complete 30-minute exercise routine",
        description="Do any form of physical activity for 30 minutes",
        category=TaskCategory.PERSONAL,
        difficulty=TaskDifficulty.EASY,
        reward=Reward(currency=15, xp=30),
        proof_policy=_AUTO_POLICY,
        estimated_minutes=35,
        time_frame=TimeFrame.TODAY,
    ),
    TaskDefinition(
        id="task_personal_reading",
        title="Read for 20 minutes",
        description="Read any educational content for 20 minutes",
        category=TaskCategory.PERSONAL,
        difficulty=TaskDifficulty.EASY,
        reward=Reward(currency=12, xp=25),
        proof_policy=_text_policy(ReviewerRole.SYSTEM, 50, 200),
        estimated_minutes=25,
        time_frame=TimeFrame.TODAY,
    ),
)


def seed_catalog() -> TaskCatalog:
    return TaskCatalog(SEED_TASKS)


def user_task_id(user_id: str, task_id: str) -> str:
    return f"{user_id}:{task_id}"


def seed_user_tasks(catalog: TaskCatalog, user_id: str, *, now_ts: float | None = None) -> list[UserTask]:
    """
    Initial UserTask rows for a user: one per catalog entry.

    Tasks gated by prerequisites or a minimum level start locked; the rest are available.
    """
    if now_ts is None:
        now_ts = time.time()

    out: list[UserTask] = []
    for d in catalog:
        vis = d.visibility_rules
        gated = bool(vis.prerequisite_task_ids) or bool(vis.min_level_required)
        out.append(
            UserTask(
                id=user_task_id(user_id, d.id),
                task_id=d.id,
                user_id=user_id,
                status=TaskStatus.LOCKED if gated else TaskStatus.AVAILABLE,
                updated_at=now_ts,
            )
        )
    return out
