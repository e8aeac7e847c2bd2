# src/eduquest/cli/commands.py

from __future__ import annotations

import inspect
import logging
import uuid
from collections.abc import Callable
from datetime import datetime
from typing import cast

from ..core.errors import TaskResult
from ..core.state import AppState
from ..rewards.reconciler import reconcile_once
from ..tasks.task_models import PhotoProof, TaskCategory, TextProof, UserTask
from ..tasks.task_views import ALL_CATEGORIES

CommandEmitter = Callable[[str], None]
CommandHandler2 = Callable[[AppState, list[str]], str]
CommandHandler3 = Callable[[AppState, list[str], CommandEmitter | None], str]
CommandHandler = CommandHandler2 | CommandHandler3

logger = logging.getLogger(__name__)


class CommandRegistry:
    """Simple slash-command registry used by the console connector (/help, /tasks, ...)."""

    def __init__(self) -> None:
        self._handlers: dict[str, CommandHandler] = {}
        self._help: dict[str, str] = {}

    def register(
        self,
        name: str,
        handler: CommandHandler,
        help_text: str,
        aliases: list[str] | None = None,
    ) -> None:
        aliases = aliases or []
        key = name.lower()
        self._handlers[key] = handler
        self._help[key] = help_text
        for alias in aliases:
            self._handlers[alias.lower()] = handler

    def handle(
        self,
        state: AppState,
        line: str,
        emit: CommandEmitter | None = None,
    ) -> str | None:
        """
        Handle a string like "/command args".
        Returns a reply string or None if not a command.
        """
        if not line.startswith("/"):
            return None

        parts = line[1:].split()
        if not parts:
            return "Empty command. Use /help to list available commands."

        name = parts[0].lower()
        args = parts[1:]

        handler = self._handlers.get(name)
        if not handler:
            return f"Unknown command: /{name}. Use /help to list available commands."

        try:
            nparams = len(inspect.signature(handler).parameters)
        except (TypeError, ValueError):
            nparams = 3

        if nparams >= 3:
            h3 = cast(CommandHandler3, handler)
            return h3(state, args, emit)

        h2 = cast(CommandHandler2, handler)
        return h2(state, args)

    def build_help(self) -> str:
        lines = ["Available commands:"]
        for name, help_text in self._help.items():
            lines.append(f"  /{name} - {help_text}")
        return "\n".join(lines)


registry = CommandRegistry()


def _fmt_ts(ts: float | None) -> str:
    if ts is None:
        return "-"
    return datetime.fromtimestamp(ts).astimezone().strftime("%Y-%m-%d %H:%M:%S")


def _resolve_user_task_id(state: AppState, ref: str) -> str:
    """Accept either a user task id or a task definition id."""
    manager = state.manager
    if manager.get_user_task(ref) is not None:
        return ref
    for ut in manager.user_tasks:
        if ut.task_id == ref:
            return ut.id
    return ref


def _render_result(result: TaskResult, ok_text: str) -> str:
    if result.ok:
        return ok_text
    kind = result.error_kind.value if result.error_kind else "error"
    return f"Failed [{kind}]: {result.message}"


def _render_row(state: AppState, ut: UserTask) -> str:
    d = state.catalog.get(ut.task_id)
    title = d.title if d else "(unknown task)"
    reward = f"{d.reward.currency} coins / {d.reward.xp} xp" if d else "-"
    flag = " [reward pending]" if ut.reward_pending else ""
    return f"  [{ut.status.value:<14}] {ut.task_id:<28} {title} ({reward}){flag}"


def cmd_help(state: AppState, args: list[str]) -> str:
    return registry.build_help()


def cmd_status(state: AppState, args: list[str]) -> str:
    s = state.settings
    err = state.manager.last_error
    last = f"{err.kind.value}: {err.message}" if err else "none"
    return (
        "Status:\n"
        f"  User: {getattr(s, 'user_id', '-')}\n"
        f"  Ledger: {type(state.ledger).__name__}\n"
        f"  Category filter: {state.manager.selected_category}\n"
        f"  Last error: {last}"
    )


def cmd_tasks(state: AppState, args: list[str]) -> str:
    """
    /tasks             -> list tasks in the current filter (priority order)
    /tasks <category>  -> switch filter first (family | village | subject | personal | all)
    """
    if args:
        reply = cmd_filter(state, args)
        if reply.startswith("Unknown"):
            return reply

    rows = state.manager.filtered_tasks
    if not rows:
        return "No tasks in this filter."
    lines = [f"Tasks ({state.manager.selected_category}):"]
    lines.extend(_render_row(state, ut) for ut in rows)
    return "\n".join(lines)


def cmd_filter(state: AppState, args: list[str]) -> str:
    if not args:
        return f"Current filter: {state.manager.selected_category}. Use /filter <category|all>."
    raw = args[0].lower()
    valid = [ALL_CATEGORIES] + [c.value for c in TaskCategory]
    if raw not in valid:
        return f"Unknown category: {raw}. Choose one of: {', '.join(valid)}."
    state.call(state.manager.filter_by_category, raw)
    return f"Filter set to {raw}."


def _select_task(manager, user_task_id: str):
    manager.select_task(user_task_id)
    return manager.selected_task


def cmd_show(state: AppState, args: list[str]) -> str:
    """/show <task>  -> select the task and show its detail."""
    if not args:
        ctx = state.manager.selected_task
        if ctx is None:
            return "No task selected. Use /show <task_id>."
    else:
        ctx = state.call(_select_task, state.manager, _resolve_user_task_id(state, args[0]))
        if ctx is None:
            return f"Task not found: {args[0]}"

    ut, d = ctx.user_task, ctx.task_definition
    p = d.proof_policy
    return (
        f"{d.title} ({d.category.value}, {d.difficulty.value})\n"
        f"  {d.description}\n"
        f"  Reward: {d.reward.currency} coins, {d.reward.xp} xp\n"
        f"  Proof: {p.type.value}, review {p.review_type.value}\n"
        f"  Status: {ut.status.value} (rejections {ut.rejection_count})\n"
        f"  Started: {_fmt_ts(ut.started_at)}  Completed: {_fmt_ts(ut.completed_at)}\n"
        f"  Last rejection: {ut.rejection_reason or '-'}\n"
        f"  Can start: {ctx.can_start_task}  Can submit proof: {ctx.can_submit_proof}  "
        f"Can retry: {ctx.can_retry}"
    )


def cmd_start(state: AppState, args: list[str]) -> str:
    if not args:
        return "Usage: /start <task_id>"
    ut_id = _resolve_user_task_id(state, args[0])
    ut = state.manager.get_user_task(ut_id)
    task_id = ut.task_id if ut else args[0]
    result = state.run(state.manager.start_task(task_id))
    return _render_result(result, f"Started {task_id}.")


def cmd_submit(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    """
    /submit text <task> <words...>
    /submit photo <task> <url> [size_bytes] [mime_type]
    """
    usage = "Usage: /submit text <task> <text...> | /submit photo <task> <url> [size_bytes] [mime_type]"
    if len(args) < 3:
        return usage

    kind, ref, rest = args[0].lower(), args[1], args[2:]
    ut_id = _resolve_user_task_id(state, ref)
    proof_id = uuid.uuid4().hex

    if kind == "text":
        proof = TextProof(id=proof_id, content=" ".join(rest))
    elif kind == "photo":
        size: int | None = None
        if len(rest) > 1:
            try:
                size = int(rest[1])
            except ValueError:
                return "size_bytes must be an integer."
        mime = rest[2] if len(rest) > 2 else None
        proof = PhotoProof(id=proof_id, file_url=rest[0], file_size_bytes=size, mime_type=mime)
    else:
        return usage

    if emit:
        emit(f"Submitting {kind} proof for {ut_id}...")
    result = state.run(state.manager.submit_proof(ut_id, proof))
    ut = state.manager.get_user_task(ut_id)
    status = ut.status.value if ut else "?"
    return _render_result(result, f"Proof submitted. Task is now {status}.")


def cmd_approve(state: AppState, args: list[str]) -> str:
    if not args:
        return "Usage: /approve <task> [feedback...]"
    ut_id = _resolve_user_task_id(state, args[0])
    feedback = " ".join(args[1:]) or None
    result = state.run(state.manager.approve_proof(ut_id, feedback))
    return _render_result(result, f"Approved {ut_id}.")


def cmd_reject(state: AppState, args: list[str]) -> str:
    if len(args) < 2:
        return "Usage: /reject <task> <reason...>"
    ut_id = _resolve_user_task_id(state, args[0])
    result = state.run(state.manager.reject_proof(ut_id, " ".join(args[1:])))
    ut = state.manager.get_user_task(ut_id)
    status = ut.status.value if ut else "?"
    return _render_result(result, f"Rejected {ut_id}. Task is now {status}.")


def cmd_complete(state: AppState, args: list[str]) -> str:
    if not args:
        return "Usage: /complete <task>"
    ut_id = _resolve_user_task_id(state, args[0])
    result = state.run(state.manager.complete_task(ut_id))
    return _render_result(result, f"Completed {ut_id}.")


def cmd_stats(state: AppState, args: list[str]) -> str:
    st = state.manager.task_stats
    return (
        f"Stats ({state.manager.selected_category}):\n"
        f"  Completed: {st.completed}  In progress: {st.in_progress}  "
        f"Available: {st.available}  Locked: {st.locked}\n"
        f"  Earned: {st.earned_currency} coins, {st.earned_xp} xp\n"
        f"  Catalog potential: {st.total_currency} coins, {st.total_xp} xp"
    )


def cmd_unlock(state: AppState, args: list[str]) -> str:
    """/unlock [level]  -> unlock tasks whose prerequisites are met."""
    level: int | None = None
    if args:
        try:
            level = int(args[0])
        except ValueError:
            return "Usage: /unlock [level]"
    else:
        level_of = getattr(state.ledger, "level_of", None)
        if callable(level_of):
            level = level_of(getattr(state.settings, "user_id", ""))

    unlocked = state.call(state.manager.unlock_ready_tasks, level)
    if not unlocked:
        return "Nothing to unlock."
    return "Unlocked: " + ", ".join(unlocked)


def cmd_reconcile(state: AppState, args: list[str]) -> str:
    granted = state.run(reconcile_once(state.manager))
    return f"Granted {granted} pending reward(s)."


registry.register("help", cmd_help, help_text="Show available commands.", aliases=["h", "?"])
registry.register("status", cmd_status, help_text="Show user, ledger, filter and last error.")
registry.register("tasks", cmd_tasks, help_text="List tasks: /tasks [category|all].", aliases=["ls"])
registry.register("filter", cmd_filter, help_text="Filter tasks by category: /filter <category|all>.")
registry.register("show", cmd_show, help_text="Select a task and show details: /show <task>.")
registry.register("start", cmd_start, help_text="Start an available task: /start <task>.")
registry.register("submit", cmd_submit, help_text="Submit proof: /submit text|photo <task> ...")
registry.register("approve", cmd_approve, help_text="Approve proof: /approve <task> [feedback].")
registry.register("reject", cmd_reject, help_text="Reject proof: /reject <task> <reason>.")
registry.register("complete", cmd_complete, help_text="Complete an auto-verified task: /complete <task>.")
registry.register("stats", cmd_stats, help_text="Show task counts and rewards.")
registry.register("unlock", cmd_unlock, help_text="Unlock tasks whose prerequisites are met: /unlock [level].")
registry.register("reconcile", cmd_reconcile, help_text="Retry reward grants the ledger did not confirm.")
