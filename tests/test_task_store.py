"""Tests for TaskStore change detection and events."""

import pytest

from triggerbrew.orchestrator.event_bus import TASK_CREATED, TASK_UPDATED


async def test_create_task_emits_event(task_store, event_bus):
    task = await task_store.create_task("Fix login", priority="high", owner="sam")
    assert task["id"].startswith("task-")
    assert task["priority"] == "high"
    created = event_bus.get_history(TASK_CREATED)
    assert created[0]["task_id"] == task["id"]


async def test_create_task_validation(task_store):
    with pytest.raises(ValueError, match="title"):
        await task_store.create_task("   ")
    with pytest.raises(ValueError, match="priority"):
        await task_store.create_task("x", priority="urgent")
    with pytest.raises(ValueError, match="Parent"):
        await task_store.create_task("x", parent_id="task-missing")


async def test_update_reports_only_real_changes(task_store, event_bus):
    task = await task_store.create_task("Fix login", content="body")
    updated, changed = await task_store.update_task(
        task["id"], title="Fix login", content="new body", owner="kim",
    )
    assert changed == ["content", "owner"]
    assert updated["content"] == "new body"
    events = event_bus.get_history(TASK_UPDATED)
    assert events[-1]["changed_fields"] == ["content", "owner"]


async def test_noop_update_emits_nothing(task_store, event_bus):
    task = await task_store.create_task("Same")
    _, changed = await task_store.update_task(task["id"], title="Same")
    assert changed == []
    assert event_bus.get_history(TASK_UPDATED) == []


async def test_update_errors(task_store):
    with pytest.raises(KeyError):
        await task_store.update_task("task-missing", title="x")
    task = await task_store.create_task("t")
    with pytest.raises(ValueError, match="Unknown task fields"):
        await task_store.update_task(task["id"], colour="red")
    with pytest.raises(ValueError, match="priority"):
        await task_store.update_task(task["id"], priority="whenever")


async def test_list_subtasks(task_store):
    parent = await task_store.create_task("Parent")
    await task_store.create_task("Child A", parent_id=parent["id"])
    await task_store.create_task("Child B", parent_id=parent["id"])
    subtasks = await task_store.list_subtasks(parent["id"])
    assert sorted(s["title"] for s in subtasks) == ["Child A", "Child B"]


async def test_update_rejects_blank_title(task_store):
    task = await task_store.create_task("Keep me")
    for title in (None, "", "   "):
        with pytest.raises(ValueError, match="title"):
            await task_store.update_task(task["id"], title=title)
    assert (await task_store.get_task(task["id"]))["title"] == "Keep me"


async def test_update_rejects_bad_parent(task_store):
    task = await task_store.create_task("Child")
    with pytest.raises(ValueError, match="Parent task not found"):
        await task_store.update_task(task["id"], parent_id="task-nope")
    with pytest.raises(ValueError, match="own parent"):
        await task_store.update_task(task["id"], parent_id=task["id"])


async def test_update_moves_and_clears_parent(task_store):
    parent = await task_store.create_task("Parent")
    child = await task_store.create_task("Child")
    moved, changed = await task_store.update_task(child["id"], parent_id=parent["id"])
    assert changed == ["parent_id"]
    assert moved["parent_id"] == parent["id"]
    cleared, _ = await task_store.update_task(child["id"], parent_id=None)
    assert cleared["parent_id"] is None
