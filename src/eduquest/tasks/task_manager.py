# src/eduquest/tasks/task_manager.py

from __future__ import annotations

"""
Task lifecycle manager.

Owns one user's UserTask table and moves rows through the state machine:

    locked -> available -> in_progress -> under_review -> completed
    in_progress -> completed (auto review, or complete_task for auto-proof tasks)
    under_review -> in_progress (rejected, retries left) | rejected (retry budget spent)

Every public operation:
- computes the new UserTask value and swaps it into the table in one step
  (before the first await, so callers never observe a half-applied transition),
- never raises a TaskError across the boundary: failures come back as a
  TaskResult and are kept in `last_error`.

Reward grants are idempotent. A completed task whose ledger call failed keeps
reward_pending=True; retry_pending_rewards() (driven by the reconciler) finishes it,
skipping any leg (currency, xp) the ledger already confirmed.
"""

import logging
import time
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import replace

from ..core.errors import (
    ExternalFailure,
    InvalidState,
    NotFound,
    TaskError,
    TaskResult,
    UnsupportedOperation,
)
from ..core.ports import RewardLedger, UserTaskRepo
from .proof_validation import validate_proof
from .task_catalog import TaskCatalog
from .task_models import (
    DEFAULT_MAX_RETRIES,
    REVIEWABLE_STATUSES,
    Proof,
    ProofType,
    ReviewRecord,
    ReviewType,
    RewardGrant,
    TaskCategory,
    TaskDefinition,
    TaskStats,
    TaskStatus,
    UserTask,
    UserTaskContext,
)
from .task_views import (
    ALL_CATEGORIES,
    CategoryFilter,
    compute_stats,
    filter_by_category,
    resolve_context,
    sort_by_priority,
    with_status,
)

logger = logging.getLogger(__name__)


class TaskLifecycleManager:
    def __init__(
        self,
        catalog: TaskCatalog,
        user_tasks: Iterable[UserTask],
        ledger: RewardLedger,
        *,
        repo: UserTaskRepo | None = None,
        default_max_retries: int = DEFAULT_MAX_RETRIES,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._catalog = catalog
        self._ledger = ledger
        self._repo = repo
        self._default_max_retries = max(1, int(default_max_retries))
        self._clock = clock

        # dict keeps insertion order; derived views rely on it.
        self._user_tasks: dict[str, UserTask] = {}
        for ut in user_tasks:
            if ut.id in self._user_tasks:
                raise ValueError(f"duplicate user task id: {ut.id}")
            self._user_tasks[ut.id] = ut

        # user_task ids with a ledger call in flight
        self._granting: set[str] = set()

        self.selected_task_id: str | None = None
        self.selected_category: CategoryFilter = ALL_CATEGORIES
        self.is_loading = False
        self.last_error: TaskError | None = None

    # ---- lookups ----

    @property
    def catalog(self) -> TaskCatalog:
        return self._catalog

    @property
    def user_tasks(self) -> list[UserTask]:
        return list(self._user_tasks.values())

    def get_user_task(self, user_task_id: str) -> UserTask | None:
        return self._user_tasks.get(user_task_id)

    def _require_user_task(self, user_task_id: str) -> UserTask:
        ut = self._user_tasks.get(user_task_id)
        if ut is None:
            raise NotFound(f"User task not found: {user_task_id}")
        return ut

    def _require_definition(self, ut: UserTask) -> TaskDefinition:
        d = self._catalog.get(ut.task_id)
        if d is None:
            raise NotFound(f"Task definition not found: {ut.task_id}")
        return d

    # ---- boundary ----

    async def _run(self, action: str, op: Callable[[], Awaitable[None]]) -> TaskResult:
        self.is_loading = True
        self.last_error = None
        try:
            await op()
        except TaskError as e:
            self.last_error = e
            if isinstance(e, ExternalFailure):
                logger.error("%s failed (%s): %s", action, e.kind.value, e.message)
            else:
                logger.warning("%s failed (%s): %s", action, e.kind.value, e.message)
            return TaskResult.failure(e)
        finally:
            self.is_loading = False
        return TaskResult.success()

    def _commit(self, updated: UserTask) -> None:
        """Swap the new row into the table, then write it through to the repo."""
        self._user_tasks[updated.id] = updated
        if self._repo is None:
            return
        try:
            self._repo.save_user_task(updated)
        except Exception as e:
            logger.exception("save_user_task failed id=%s", updated.id)
            raise ExternalFailure(f"Failed to persist task {updated.id}") from e

    def _audit_review(self, user_task_id: str, decision: str, feedback: str | None) -> None:
        if self._repo is None:
            return
        review = ReviewRecord(
            user_task_id=user_task_id,
            decision=decision,
            feedback=feedback,
            reviewed_at=self._clock(),
        )
        try:
            self._repo.add_review(review)
        except Exception:
            # The decision itself is already committed; the audit row is advisory.
            logger.exception("add_review failed user_task_id=%s", user_task_id)

    # ---- transitions ----

    async def start_task(self, task_id: str) -> TaskResult:
        """available -> in_progress, looked up by task definition id."""

        async def op() -> None:
            ut = next((u for u in self._user_tasks.values() if u.task_id == task_id), None)
            if ut is None:
                raise NotFound(f"Task not found: {task_id}")
            if ut.status != TaskStatus.AVAILABLE:
                raise InvalidState(f"Cannot start task in {ut.status.value} state")

            now = self._clock()
            self._commit(replace(ut, status=TaskStatus.IN_PROGRESS, started_at=now, updated_at=now))
            self.selected_task_id = ut.id
            logger.info("Task %s -> in_progress", ut.id)

        return await self._run("start_task", op)

    async def submit_proof(self, user_task_id: str, proof: Proof) -> TaskResult:
        """
        in_progress -> completed (auto review) | under_review (manual review).

        Invalid proof leaves the task untouched.
        """

        async def op() -> None:
            ut = self._require_user_task(user_task_id)
            if ut.status != TaskStatus.IN_PROGRESS:
                raise InvalidState(f"Cannot submit proof for task in {ut.status.value} state")

            d = self._require_definition(ut)
            policy = d.proof_policy
            if policy.type == ProofType.AUTO:
                raise UnsupportedOperation("Auto-verified tasks are completed with complete_task, not proof")

            validate_proof(proof, policy)

            now = self._clock()
            if policy.review_type == ReviewType.AUTO:
                updated = replace(
                    ut,
                    status=TaskStatus.COMPLETED,
                    current_proof_id=proof.id,
                    proof_submitted_at=now,
                    completed_at=now,
                    updated_at=now,
                    reward_pending=not ut.reward_granted,
                )
            else:
                updated = replace(
                    ut,
                    status=TaskStatus.UNDER_REVIEW,
                    current_proof_id=proof.id,
                    proof_submitted_at=now,
                    updated_at=now,
                )

            self._commit(updated)
            logger.info("Task %s -> %s (proof=%s)", ut.id, updated.status.value, proof.id)

            if updated.status == TaskStatus.COMPLETED:
                await self._grant_reward(ut.id, d)

        return await self._run("submit_proof", op)

    async def approve_proof(self, user_task_id: str, feedback: str | None = None) -> TaskResult:
        """under_review | awaiting_proof -> completed. Feedback only goes to the review log."""

        async def op() -> None:
            ut = self._require_user_task(user_task_id)
            if ut.status not in REVIEWABLE_STATUSES:
                raise InvalidState(f"Cannot approve proof for task in {ut.status.value} state")

            d = self._require_definition(ut)
            now = self._clock()
            self._commit(
                replace(
                    ut,
                    status=TaskStatus.COMPLETED,
                    completed_at=now,
                    updated_at=now,
                    reward_pending=not ut.reward_granted,
                )
            )
            self._audit_review(ut.id, "approved", feedback)
            logger.info("Task %s approved -> completed", ut.id)

            await self._grant_reward(ut.id, d)

        return await self._run("approve_proof", op)

    async def reject_proof(self, user_task_id: str, reason: str) -> TaskResult:
        """
        Send the task back for another attempt, or pin it at rejected once the
        retry budget is spent. Rejecting an already rejected task changes nothing.
        """

        async def op() -> None:
            ut = self._require_user_task(user_task_id)
            d = self._require_definition(ut)

            if ut.status == TaskStatus.REJECTED:
                logger.info("Task %s already rejected; ignoring reject", ut.id)
                return
            if ut.status in (TaskStatus.LOCKED, TaskStatus.AVAILABLE, TaskStatus.COMPLETED):
                raise InvalidState(f"Cannot reject proof for task in {ut.status.value} state")

            max_retries = d.state_rules.retry_limit(self._default_max_retries)
            new_count = min(ut.rejection_count + 1, max_retries)
            next_status = TaskStatus.IN_PROGRESS if new_count < max_retries else TaskStatus.REJECTED

            now = self._clock()
            self._commit(
                replace(
                    ut,
                    status=next_status,
                    rejection_reason=reason,
                    rejection_count=new_count,
                    rejected_at=now,
                    updated_at=now,
                )
            )
            self._audit_review(ut.id, "rejected", reason)
            logger.info(
                "Task %s rejected (%d/%d) -> %s", ut.id, new_count, max_retries, next_status.value
            )

        return await self._run("reject_proof", op)

    async def complete_task(self, user_task_id: str) -> TaskResult:
        """
        Completion path for auto-proof tasks only.

        Completing an already completed task grants nothing new.
        """

        async def op() -> None:
            ut = self._require_user_task(user_task_id)
            d = self._require_definition(ut)
            if d.proof_policy.type != ProofType.AUTO:
                raise UnsupportedOperation("Only auto-proof tasks can be completed manually")

            if ut.status == TaskStatus.COMPLETED:
                # Still pending from an earlier ledger failure: retry it.
                await self._grant_reward(ut.id, d)
                return
            if ut.status in (TaskStatus.LOCKED, TaskStatus.REJECTED):
                raise InvalidState(f"Cannot complete task in {ut.status.value} state")

            now = self._clock()
            self._commit(
                replace(
                    ut,
                    status=TaskStatus.COMPLETED,
                    started_at=ut.started_at if ut.started_at is not None else now,
                    completed_at=now,
                    updated_at=now,
                    reward_pending=not ut.reward_granted,
                )
            )
            logger.info("Task %s -> completed (auto)", ut.id)

            await self._grant_reward(ut.id, d)

        return await self._run("complete_task", op)

    # ---- reward grant ----

    def _recorded_grant(self, user_task_id: str) -> RewardGrant | None:
        if self._repo is None:
            return None
        try:
            return self._repo.get_reward_grant(user_task_id)
        except Exception as e:
            logger.exception("get_reward_grant failed id=%s", user_task_id)
            raise ExternalFailure(f"Failed to read reward grant for task {user_task_id}") from e

    async def _grant_reward(self, user_task_id: str, d: TaskDefinition) -> None:
        """
        Pay the reward leg by leg, then record the grant.

        Each confirmed leg is committed before the next one starts, and the
        grant audit row is written before the row is marked granted. A retry
        (same process or after a restart) never repeats a confirmed leg.
        """
        ut = self._user_tasks.get(user_task_id)
        if ut is None or ut.reward_granted or user_task_id in self._granting:
            return

        reward = d.reward
        recorded = self._recorded_grant(user_task_id)
        if recorded is not None:
            # Grant row exists: only the final row save was lost.
            self._commit(
                replace(
                    ut,
                    reward_granted=True,
                    reward_granted_at=recorded.granted_at,
                    reward_pending=False,
                    currency_granted=True,
                    xp_granted=True,
                )
            )
            logger.info("Reward already recorded user_task_id=%s", user_task_id)
            return

        self._granting.add(user_task_id)
        try:
            legs = (
                ("currency_granted", reward.currency, self._ledger.add_currency),
                ("xp_granted", reward.xp, self._ledger.add_xp),
            )
            for leg, amount, pay in legs:
                # The backend rejects zero amounts, so those legs have nothing to pay.
                if amount <= 0 or getattr(self._user_tasks[user_task_id], leg):
                    continue
                try:
                    await pay(amount, user_id=ut.user_id, source_id=ut.id)
                except Exception as e:
                    logger.exception("Reward grant failed user_task_id=%s leg=%s", user_task_id, leg)
                    raise ExternalFailure(
                        f"Task {user_task_id} is completed but the reward grant failed: {e}"
                    ) from e
                self._commit(replace(self._user_tasks[user_task_id], **{leg: True}))
        finally:
            self._granting.discard(user_task_id)

        now = self._clock()
        current = self._user_tasks[user_task_id]
        if self._repo is not None:
            grant = RewardGrant(
                user_task_id=user_task_id,
                user_id=current.user_id,
                task_id=current.task_id,
                currency_awarded=reward.currency,
                xp_awarded=reward.xp,
                badge_id=reward.badge_id,
                granted_at=now,
            )
            try:
                self._repo.add_reward_grant(grant)
            except Exception as e:
                logger.exception("add_reward_grant failed user_task_id=%s", user_task_id)
                raise ExternalFailure(f"Failed to record reward grant for task {user_task_id}") from e

        self._commit(replace(current, reward_granted=True, reward_granted_at=now, reward_pending=False))
        logger.info(
            "Reward granted user_task_id=%s currency=%d xp=%d", user_task_id, reward.currency, reward.xp
        )

    def _pending_reward_ids(self) -> list[str]:
        ids = [
            ut.id
            for ut in self._user_tasks.values()
            if ut.status == TaskStatus.COMPLETED and ut.reward_pending and not ut.reward_granted
        ]
        if self._repo is None:
            return ids

        try:
            stored = self._repo.list_pending_rewards(limit=max(32, len(self._user_tasks)))
        except Exception:
            logger.exception("list_pending_rewards failed")
            return ids

        for row in stored:
            ut = self._user_tasks.get(row.id)
            if ut is None or row.id in ids or ut.status != TaskStatus.COMPLETED:
                continue
            if ut.reward_granted:
                # Granted here, but the granted row never reached the store.
                try:
                    self._commit(ut)
                except ExternalFailure as e:
                    self.last_error = e
                continue
            ids.append(row.id)
        return ids

    async def retry_pending_rewards(self) -> int:
        """
        Re-run the grant for completed tasks still waiting on the ledger.

        With a repo, stored pending rows are swept too; a stored row that is
        already granted in memory is written back. Returns grants made.
        """
        granted = 0
        for user_task_id in self._pending_reward_ids():
            ut = self._user_tasks[user_task_id]
            d = self._catalog.get(ut.task_id)
            if d is None:
                logger.warning("Pending reward for unknown task definition %s", ut.task_id)
                continue
            try:
                await self._grant_reward(user_task_id, d)
            except TaskError as e:
                self.last_error = e
                logger.warning("Pending reward retry failed id=%s: %s", user_task_id, e.message)
                continue
            if self._user_tasks[user_task_id].reward_granted:
                granted += 1
        return granted

    # ---- unlocks ----

    def unlock_ready_tasks(self, level: int | None = None) -> list[str]:
        """
        locked -> available once every prerequisite is completed and, when a
        level is given, it meets min_level_required. Returns unlocked ids.
        """
        completed = {ut.task_id for ut in self._user_tasks.values() if ut.status == TaskStatus.COMPLETED}
        unlocked: list[str] = []
        for ut in list(self._user_tasks.values()):
            if ut.status != TaskStatus.LOCKED:
                continue
            d = self._catalog.get(ut.task_id)
            if d is None:
                continue
            vis = d.visibility_rules
            if not vis.prerequisite_task_ids <= completed:
                continue
            if vis.min_level_required and (level is None or level < vis.min_level_required):
                continue

            now = self._clock()
            try:
                self._commit(replace(ut, status=TaskStatus.AVAILABLE, updated_at=now))
            except ExternalFailure as e:
                self.last_error = e
                continue
            unlocked.append(ut.id)
            logger.info("Task %s unlocked", ut.id)
        return unlocked

    # ---- UI state ----

    def select_task(self, user_task_id: str | None) -> None:
        self.selected_task_id = user_task_id

    def filter_by_category(self, category: TaskCategory | str) -> None:
        if category == ALL_CATEGORIES:
            self.selected_category = ALL_CATEGORIES
        else:
            self.selected_category = TaskCategory(category)

    # ---- derived views ----

    def _category_filtered(self) -> list[UserTask]:
        return filter_by_category(self._user_tasks.values(), self._catalog, self.selected_category)

    @property
    def filtered_tasks(self) -> list[UserTask]:
        return sort_by_priority(self._category_filtered())

    @property
    def available_tasks(self) -> list[UserTask]:
        return with_status(self._category_filtered(), TaskStatus.AVAILABLE)

    @property
    def in_progress_tasks(self) -> list[UserTask]:
        return with_status(self._category_filtered(), TaskStatus.IN_PROGRESS)

    @property
    def completed_tasks(self) -> list[UserTask]:
        return with_status(self._category_filtered(), TaskStatus.COMPLETED)

    @property
    def locked_tasks(self) -> list[UserTask]:
        return with_status(self._category_filtered(), TaskStatus.LOCKED)

    @property
    def task_stats(self) -> TaskStats:
        return compute_stats(self._category_filtered(), self._user_tasks.values(), self._catalog)

    @property
    def selected_task(self) -> UserTaskContext | None:
        if self.selected_task_id is None:
            return None
        return resolve_context(
            self._user_tasks.get(self.selected_task_id),
            self._catalog,
            default_max_retries=self._default_max_retries,
        )
