# src/eduquest/tasks/task_models.py

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum

DEFAULT_MAX_RETRIES = 3


class TaskStatus(StrEnum):
    """
    UserTask lifecycle status.

    Notes:
    - "awaiting_proof" is never entered by the manager itself; rows seeded in
      that state are approved the same way as "under_review".
    """

    LOCKED = "locked"
    AVAILABLE = "available"
    IN_PROGRESS = "in_progress"
    AWAITING_PROOF = "awaiting_proof"
    UNDER_REVIEW = "under_review"
    COMPLETED = "completed"
    REJECTED = "rejected"

    @classmethod
    def from_db(cls, raw: str | None) -> TaskStatus:
        if not raw:
            return cls.LOCKED
        try:
            return cls(raw)
        except ValueError:
            return cls.LOCKED


REVIEWABLE_STATUSES = frozenset({TaskStatus.UNDER_REVIEW, TaskStatus.AWAITING_PROOF})

# Lower sorts first in the task list.
STATUS_PRIORITY: dict[TaskStatus, int] = {
    TaskStatus.IN_PROGRESS: 0,
    TaskStatus.AVAILABLE: 1,
    TaskStatus.UNDER_REVIEW: 2,
    TaskStatus.AWAITING_PROOF: 2,
    TaskStatus.COMPLETED: 3,
    TaskStatus.REJECTED: 4,
    TaskStatus.LOCKED: 5,
}


class TaskCategory(StrEnum):
    FAMILY = "family"
    VILLAGE = "village"
    SUBJECT = "subject"
    PERSONAL = "personal"


class TaskDifficulty(StrEnum):
    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"


class TimeFrame(StrEnum):
    TODAY = "today"
    THIS_WEEK = "this_week"
    ANYTIME = "anytime"


class ProofType(StrEnum):
    NONE = "none"
    PHOTO = "photo"
    TEXT = "text"
    AUTO = "auto"


class ReviewType(StrEnum):
    AUTO = "auto"
    MANUAL = "manual"


class ReviewerRole(StrEnum):
    PARENT = "parent"
    TEACHER = "teacher"
    COMMUNITY = "community"
    SYSTEM = "system"


@dataclass(slots=True, frozen=True)
class Reward:
    currency: int = 0
    xp: int = 0
    badge_id: str | None = None

    def __post_init__(self) -> None:
        if self.currency < 0 or self.xp < 0:
            raise ValueError("reward amounts must be >= 0")


@dataclass(slots=True, frozen=True)
class ProofPolicy:
    type: ProofType
    review_type: ReviewType
    reviewer_role: ReviewerRole | None = None
    max_file_size: int | None = None  # bytes
    accepted_file_types: frozenset[str] | None = None
    min_text_length: int | None = None  # words
    max_text_length: int | None = None  # words


@dataclass(slots=True, frozen=True)
class StateRules:
    max_retries: int | None = None
    allow_skip: bool = False

    def __post_init__(self) -> None:
        if self.max_retries is not None and self.max_retries < 1:
            raise ValueError("max_retries must be >= 1")

    def retry_limit(self, default: int = DEFAULT_MAX_RETRIES) -> int:
        return self.max_retries or default


@dataclass(slots=True, frozen=True)
class VisibilityRules:
    prerequisite_task_ids: frozenset[str] = frozenset()
    min_level_required: int | None = None


@dataclass(slots=True, frozen=True)
class TaskDefinition:
    id: str
    title: str
    description: str
    category: TaskCategory
    difficulty: TaskDifficulty
    reward: Reward
    proof_policy: ProofPolicy
    state_rules: StateRules = StateRules()
    visibility_rules: VisibilityRules = VisibilityRules()
    estimated_minutes: int | None = None
    time_frame: TimeFrame = TimeFrame.ANYTIME


@dataclass(slots=True)
class UserTask:
    id: str
    task_id: str
    user_id: str
    status: TaskStatus
    updated_at: float

    started_at: float | None = None
    proof_submitted_at: float | None = None
    completed_at: float | None = None
    rejected_at: float | None = None

    current_proof_id: str | None = None
    rejection_reason: str | None = None
    rejection_count: int = 0

    reward_granted: bool = False
    reward_granted_at: float | None = None
    # completed, but the ledger has not confirmed the grant yet
    reward_pending: bool = False
    # legs the ledger already confirmed; a retry skips them
    currency_granted: bool = False
    xp_granted: bool = False


# ---- Proof variants ----


@dataclass(slots=True, frozen=True)
class PhotoProof:
    id: str
    file_url: str
    file_size_bytes: int | None = None
    mime_type: str | None = None

    proof_type = ProofType.PHOTO


@dataclass(slots=True, frozen=True)
class TextProof:
    id: str
    content: str

    proof_type = ProofType.TEXT

    @property
    def word_count(self) -> int:
        # str.split() without args drops empty tokens.
        return len((self.content or "").split())


@dataclass(slots=True, frozen=True)
class NoProof:
    id: str

    proof_type = ProofType.NONE


Proof = PhotoProof | TextProof | NoProof


# ---- Derived views ----


@dataclass(slots=True, frozen=True)
class TaskStats:
    completed: int
    in_progress: int
    available: int
    locked: int
    # Catalog-wide potential, not per-user earnings.
    total_currency: int
    total_xp: int
    earned_currency: int = 0
    earned_xp: int = 0


@dataclass(slots=True, frozen=True)
class UserTaskContext:
    user_task: UserTask
    task_definition: TaskDefinition
    can_start_task: bool
    can_submit_proof: bool
    can_retry: bool


@dataclass(slots=True, frozen=True)
class ReviewRecord:
    """Audit row for a moderation decision."""

    user_task_id: str
    decision: str  # "approved" | "rejected"
    feedback: str | None
    reviewed_at: float


@dataclass(slots=True, frozen=True)
class RewardGrant:
    """Audit row for a confirmed ledger grant."""

    user_task_id: str
    user_id: str
    task_id: str
    currency_awarded: int
    xp_awarded: int
    badge_id: str | None
    granted_at: float
    reason_code: str = "task_completion"

