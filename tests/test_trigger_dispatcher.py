"""Tests for TriggerDispatcher: evaluation, execution logging, scheduling."""

from datetime import datetime, timedelta, timezone

import pytest

from triggerbrew.agents.runner import AgentRunError, AgentRunner
from triggerbrew.conditions.models import FilterCondition, TriggerCondition
from triggerbrew.conditions.trigger_config import InputTrigger, TriggerConfig
from triggerbrew.orchestrator.event_bus import AGENT_TRIGGERED
from triggerbrew.orchestrator.trigger_dispatcher import TriggerDispatcher

T0 = datetime(2026, 3, 1, 9, 0, tzinfo=timezone.utc)


class RecordingRunner(AgentRunner):
    def __init__(self, error: Exception | None = None):
        self.requests = []
        self.error = error

    async def run(self, request):
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        return {"ok": True, "agent": request.agent_id}


class Clock:
    def __init__(self, now):
        self.now = now

    def __call__(self):
        return self.now


def _config(trigger_type="on_update", value="bug", enabled=True):
    return TriggerConfig(
        enabled=enabled,
        input_triggers=[InputTrigger(
            id="it1",
            input_id="task_title",
            conditions=[
                TriggerCondition(id="c0", trigger_type=trigger_type),
                FilterCondition(id="c1", operator="contains", value=value),
            ],
            condition_logic="0 AND 1",
        )],
    )


def _scheduled_config(interval=None):
    return TriggerConfig(
        enabled=True,
        interval_minutes=interval,
        input_triggers=[InputTrigger(
            id="it1",
            input_id="task_title",
            conditions=[TriggerCondition(id="c0", trigger_type="scheduled",
                                         scheduled_time="09:00")],
            condition_logic="0",
        )],
    )


@pytest.fixture
def runner():
    return RecordingRunner()


@pytest.fixture
def clock():
    return Clock(T0)


@pytest.fixture
def dispatcher(agent_store, task_store, runner, clock):
    return TriggerDispatcher(agent_store, task_store, runner, clock=clock)


async def test_fires_runs_and_logs(dispatcher, agent_store, task_store, runner):
    task = await task_store.create_task("Login bug", priority="high")
    agent = await agent_store.create_agent("Triage", model="m", prompt="p",
                                           trigger_config=_config())

    result = await dispatcher.check_and_execute(
        "on_update", {"type": "task", "id": task["id"]}, ["title"],
    )

    assert result["checked_agents"] == 1
    assert result["executed_agents"] == 1
    assert result["results"][0] == {
        "agent_id": agent["id"], "agent_name": "Triage", "success": True,
        "output": {"ok": True, "agent": agent["id"]},
    }
    request = runner.requests[0]
    assert request.inputs["task_title"] == "Login bug"
    assert request.inputs["task_priority"] == "high"
    assert request.context == {"source": "trigger", "triggerType": "on_update",
                               "taskId": task["id"]}

    execution = (await agent_store.list_executions(agent["id"]))[0]
    assert execution["conditions_met"] is True
    assert execution["executed"] is True
    assert execution["changed_fields"] == ["title"]
    assert execution["source_entity_id"] == task["id"]
    refreshed = await agent_store.get_agent(agent["id"])
    assert refreshed["last_trigger_execution"] == T0.isoformat()


async def test_unmet_conditions_are_logged_not_run(dispatcher, agent_store, task_store, runner):
    task = await task_store.create_task("New feature")
    agent = await agent_store.create_agent("Triage", trigger_config=_config())

    result = await dispatcher.check_and_execute("on_update", {"type": "task", "id": task["id"]})

    assert result == {"checked_agents": 1, "executed_agents": 0, "results": []}
    assert runner.requests == []
    execution = (await agent_store.list_executions(agent["id"]))[0]
    assert execution["conditions_met"] is False
    assert execution["executed"] is False


async def test_disabled_agents_are_skipped(dispatcher, agent_store, task_store):
    task = await task_store.create_task("bug")
    agent = await agent_store.create_agent("Off", trigger_config=_config(enabled=False))
    result = await dispatcher.check_and_execute("on_update", {"type": "task", "id": task["id"]})
    assert result["executed_agents"] == 0
    assert await agent_store.list_executions(agent["id"]) == []


async def test_runner_failure_is_recorded(agent_store, task_store, clock):
    runner = RecordingRunner(AgentRunError("HTTP 500"))
    dispatcher = TriggerDispatcher(agent_store, task_store, runner, clock=clock)
    task = await task_store.create_task("bug")
    agent = await agent_store.create_agent("Flaky", trigger_config=_config())

    result = await dispatcher.check_and_execute("on_update", {"type": "task", "id": task["id"]})

    assert result["executed_agents"] == 0
    assert result["results"][0]["success"] is False
    assert result["results"][0]["error"] == "HTTP 500"
    execution = (await agent_store.list_executions(agent["id"]))[0]
    assert execution["error_message"] == "HTTP 500"
    assert (await agent_store.get_agent(agent["id"]))["last_trigger_execution"] is None


async def test_unexpected_error_does_not_abort_batch(agent_store, task_store, clock):
    class PickyRunner(RecordingRunner):
        async def run(self, request):
            if request.prompt == "explode":
                raise RuntimeError("kaboom")
            return await super().run(request)

    dispatcher = TriggerDispatcher(agent_store, task_store, PickyRunner(), clock=clock)
    task = await task_store.create_task("bug")
    await agent_store.create_agent("A", prompt="explode", trigger_config=_config())
    await agent_store.create_agent("B", prompt="fine", trigger_config=_config())

    result = await dispatcher.check_and_execute("on_update", {"type": "task", "id": task["id"]})

    assert result["checked_agents"] == 2
    assert result["executed_agents"] == 1
    by_name = {r["agent_name"]: r for r in result["results"]}
    assert by_name["A"]["success"] is False
    assert "kaboom" in by_name["A"]["error"]
    assert by_name["B"]["success"] is True


async def test_agent_id_limits_check(dispatcher, agent_store, task_store):
    task = await task_store.create_task("bug")
    first = await agent_store.create_agent("A", trigger_config=_config())
    await agent_store.create_agent("B", trigger_config=_config())
    result = await dispatcher.check_and_execute(
        "on_update", {"type": "task", "id": task["id"]}, agent_id=first["id"],
    )
    assert result["checked_agents"] == 1
    assert result["results"][0]["agent_id"] == first["id"]

    missing = await dispatcher.check_and_execute("on_update", agent_id="agent-missing")
    assert missing["checked_agents"] == 0


async def test_invalid_requests(dispatcher):
    with pytest.raises(ValueError, match="Unknown trigger type"):
        await dispatcher.check_and_execute("on_delete")
    with pytest.raises(KeyError):
        await dispatcher.check_and_execute("on_update", {"type": "task", "id": "task-missing"})


async def test_on_demand_ignores_source_entity(dispatcher, agent_store, runner):
    config = TriggerConfig(enabled=True, input_triggers=[InputTrigger(
        id="it1", input_id="task_title",
        conditions=[TriggerCondition(id="c0", trigger_type="on_demand")],
        condition_logic="0",
    )])
    await agent_store.create_agent("Manual", trigger_config=config)
    result = await dispatcher.check_and_execute(
        "on_demand", {"type": "task", "id": "task-missing"},
    )
    assert result["executed_agents"] == 1
    assert runner.requests[0].inputs == {}


async def test_scheduled_interval(dispatcher, agent_store, clock):
    await agent_store.create_agent("Nightly", trigger_config=_scheduled_config(interval=30))

    first = await dispatcher.check_and_execute("scheduled")
    assert first["executed_agents"] == 1

    clock.now = T0 + timedelta(minutes=10)
    second = await dispatcher.check_and_execute("scheduled")
    assert second["checked_agents"] == 1
    assert second["executed_agents"] == 0

    clock.now = T0 + timedelta(minutes=31)
    third = await dispatcher.check_and_execute("scheduled")
    assert third["executed_agents"] == 1


async def test_scheduled_uses_default_interval(agent_store, task_store, runner, clock):
    dispatcher = TriggerDispatcher(
        agent_store, task_store, runner, default_interval_minutes=120, clock=clock,
    )
    await agent_store.create_agent("Nightly", trigger_config=_scheduled_config())
    assert (await dispatcher.check_and_execute("scheduled"))["executed_agents"] == 1
    clock.now = T0 + timedelta(minutes=90)
    assert (await dispatcher.check_and_execute("scheduled"))["executed_agents"] == 0
    clock.now = T0 + timedelta(minutes=120)
    assert (await dispatcher.check_and_execute("scheduled"))["executed_agents"] == 1


async def test_subtask_titles_are_an_input(dispatcher, agent_store, task_store, runner):
    parent = await task_store.create_task("Epic bug")
    await task_store.create_task("Write test", parent_id=parent["id"])
    await agent_store.create_agent("Triage", trigger_config=_config())
    await dispatcher.check_and_execute("on_update", {"type": "task", "id": parent["id"]})
    assert runner.requests[0].inputs["task_subtasks"] == ["Write test"]


async def test_task_events_fire_triggers(agent_store, task_store, event_bus, runner, clock):
    dispatcher = TriggerDispatcher(agent_store, task_store, runner, clock=clock)
    dispatcher.attach(event_bus)
    agent = await agent_store.create_agent("Greeter", trigger_config=_config("on_create"))

    await task_store.create_task("bug in signup")
    await event_bus.drain()

    assert len(runner.requests) == 1
    triggered = event_bus.get_history(AGENT_TRIGGERED)
    assert triggered == [{"type": AGENT_TRIGGERED, "agent_id": agent["id"],
                          "trigger_type": "on_create"}]
