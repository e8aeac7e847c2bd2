# tests/test_commands.py

from __future__ import annotations

import asyncio
import threading

from eduquest.cli.commands import CommandRegistry, registry
from eduquest.core.runtime import start_background_loop


def test_command_registry_routes_2_and_3_params(state) -> None:
    reg = CommandRegistry()
    called = {"h2": 0, "h3": 0}
    notes: list[str] = []

    def h2(state, args):
        called["h2"] += 1
        return "h2:" + ",".join(args)

    def h3(state, args, emit):
        called["h3"] += 1
        if emit is not None:
            emit("note")
        return "h3"

    reg.register("a", h2, "a", aliases=["aa"])
    reg.register("b", h3, "b")

    assert reg.handle(state, "/a x y") == "h2:x,y"
    assert reg.handle(state, "/AA") == "h2:"
    assert reg.handle(state, "/b", emit=notes.append) == "h3"
    assert called == {"h2": 2, "h3": 1}
    assert notes == ["note"]
    assert "/a - a" in reg.build_help()


def test_command_registry_unknown_and_non_command(state) -> None:
    reg = CommandRegistry()
    assert reg.handle(state, "hello") is None
    assert "Unknown command" in (reg.handle(state, "/nope") or "")
    assert "Empty command" in (reg.handle(state, "/") or "")


def test_start_and_complete_auto_task(state, ledger) -> None:
    assert registry.handle(state, "/start task_personal_meditation") == "Started task_personal_meditation."
    assert (
        registry.handle(state, "/complete task_personal_meditation")
        == "Completed u1:task_personal_meditation."
    )

    stats = registry.handle(state, "/stats") or ""
    assert "Completed: 1" in stats
    assert "Earned: 10 coins, 20 xp" in stats
    assert len(ledger.calls) == 2


def test_failures_render_error_kind(state) -> None:
    reply = registry.handle(state, "/complete task_family_cooking") or ""
    assert reply.startswith("Failed [unsupported_operation]")

    reply = registry.handle(state, "/start task_village_sanitation") or ""
    assert reply.startswith("Failed [invalid_state]")

    status = registry.handle(state, "/status") or ""
    assert "invalid_state" in status


def test_submit_text_proof_for_system_reviewed_task(state) -> None:
    registry.handle(state, "/start task_personal_reading")
    words = " ".join(["read"] * 49)

    reply = registry.handle(state, f"/submit text task_personal_reading {words}") or ""
    assert reply.startswith("Failed [validation_error]")

    reply = registry.handle(state, f"/submit text task_personal_reading {words} more") or ""
    assert reply == "Proof submitted. Task is now completed."


def test_submit_photo_then_review(state) -> None:
    registry.handle(state, "/start task_physics_lever")
    emitted: list[str] = []

    reply = registry.handle(
        state,
        "/submit photo task_physics_lever https://cdn.test/lever.jpg 2048 image/png",
        emit=emitted.append,
    )
    assert reply == "Proof submitted. Task is now under_review."
    assert emitted and "Submitting photo proof" in emitted[0]

    reply = registry.handle(state, "/reject task_physics_lever lever is not visible") or ""
    assert reply == "Rejected u1:task_physics_lever. Task is now in_progress."

    show = registry.handle(state, "/show task_physics_lever") or ""
    assert "Last rejection: lever is not visible" in show
    assert "Can submit proof: True" in show


def test_filter_and_tasks_listing(state) -> None:
    assert "Unknown category" in (registry.handle(state, "/filter sports") or "")

    listing = registry.handle(state, "/tasks village") or ""
    lines = listing.splitlines()
    assert lines[0] == "Tasks (village):"
    assert len(lines) == 4
    assert "task_village_sanitation" in lines[-1]


def test_unlock_uses_given_level(state) -> None:
    assert registry.handle(state, "/unlock") == "Nothing to unlock."
    assert registry.handle(state, "/unlock 3") == "Unlocked: u1:task_chemistry_extraction"


def test_reconcile_command(state, ledger) -> None:
    ledger.fail = True
    registry.handle(state, "/complete task_personal_exercise")
    ledger.fail = False

    assert registry.handle(state, "/reconcile") == "Granted 1 pending reward(s)."


def test_sync_commands_run_on_the_loop_thread(state, monkeypatch) -> None:
    async def idle(stop_event: asyncio.Event) -> None:
        await stop_event.wait()

    threads: list[str] = []
    unlock_ready_tasks = state.manager.unlock_ready_tasks

    def recording_unlock(level=None):
        threads.append(threading.current_thread().name)
        return unlock_ready_tasks(level)

    monkeypatch.setattr(state.manager, "unlock_ready_tasks", recording_unlock)
    state.runner = start_background_loop(idle, name="commands-loop")
    try:
        assert registry.handle(state, "/unlock 3") == "Unlocked: u1:task_chemistry_extraction"
        assert registry.handle(state, "/filter village") == "Filter set to village."
        assert "Status: available" in (registry.handle(state, "/show task_physics_lever") or "")
    finally:
        state.runner.stop()
        state.runner.join(timeout=5.0)

    assert threads == ["commands-loop"]
    assert state.manager.selected_category == "village"
    assert state.manager.selected_task_id == "u1:task_physics_lever"
