"""Decide which agents fire for an event, and run them."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Callable

from triggerbrew.agents.runner import AgentRequest, AgentRunError, AgentRunner
from triggerbrew.conditions.models import TRIGGER_TYPES
from triggerbrew.conditions.trigger_config import TriggerConfig, evaluate_trigger_config
from triggerbrew.orchestrator.agent_store import AgentStore
from triggerbrew.orchestrator.event_bus import (
    AGENT_TRIGGERED,
    TASK_CREATED,
    TASK_UPDATED,
    EventBus,
)
from triggerbrew.orchestrator.task_store import TaskStore

logger = logging.getLogger(__name__)

# Agent input id -> task column.
INPUT_FIELDS = {
    "task_title": "title",
    "task_pitch": "pitch",
    "task_content": "content",
    "task_priority": "priority",
    "task_column": "column_name",
    "task_owner": "owner",
}

_TASK_ENTITY_TYPES = ("task", "tasks")


def _parse_ts(value: str) -> datetime:
    ts = datetime.fromisoformat(value)
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts


class TriggerDispatcher:
    """Check every agent's trigger config against an event.

    Parameters
    ----------
    agent_store, task_store:
        Storage for agents (and the execution log) and for task data.
    runner:
        Executes agents whose triggers fire.
    default_interval_minutes:
        Minimum gap between scheduled runs when an agent sets none.
    clock:
        Returns "now"; injectable for tests.
    """

    def __init__(
        self,
        agent_store: AgentStore,
        task_store: TaskStore,
        runner: AgentRunner,
        default_interval_minutes: int = 60,
        event_bus: EventBus | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._agents = agent_store
        self._tasks = task_store
        self._runner = runner
        self._default_interval = default_interval_minutes
        self._event_bus = event_bus
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    # ------------------------------------------------------------------
    # Event bus wiring
    # ------------------------------------------------------------------

    def attach(self, event_bus: EventBus) -> None:
        """Fire ``on_create`` / ``on_update`` triggers from task events."""
        self._event_bus = event_bus
        event_bus.subscribe(TASK_CREATED, self._on_task_created)
        event_bus.subscribe(TASK_UPDATED, self._on_task_updated)

    async def _on_task_created(self, event: dict[str, Any]) -> None:
        await self.check_and_execute(
            "on_create", source_entity={"type": "task", "id": event["task_id"]},
        )

    async def _on_task_updated(self, event: dict[str, Any]) -> None:
        await self.check_and_execute(
            "on_update",
            source_entity={"type": "task", "id": event["task_id"]},
            changed_fields=event.get("changed_fields"),
        )

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------

    async def check_and_execute(
        self,
        trigger_type: str,
        source_entity: dict[str, str] | None = None,
        changed_fields: list[str] | None = None,
        agent_id: str | None = None,
    ) -> dict[str, Any]:
        """Evaluate triggers for one event and run the agents that fire.

        Returns ``{"checked_agents", "executed_agents", "results"}`` where
        ``results`` has one entry per fired agent.

        Raises
        ------
        ValueError
            If *trigger_type* is not a known trigger type.
        KeyError
            If *source_entity* names a task that does not exist.
        """
        if trigger_type not in TRIGGER_TYPES:
            raise ValueError(f"Unknown trigger type {trigger_type!r}")

        if agent_id is not None:
            agent = await self._agents.get_agent(agent_id)
            agents = [agent] if agent and agent.get("trigger_config") else []
        else:
            agents = await self._agents.list_agents(with_triggers_only=True)

        entity = None
        if source_entity and trigger_type != "on_demand":
            entity = await self._load_entity(source_entity)

        inputs = await self._build_inputs(entity) if entity else {}
        results: list[dict[str, Any]] = []
        executed = 0

        for agent in agents:
            try:
                outcome = await self._check_agent(
                    agent, trigger_type, source_entity, changed_fields, inputs,
                )
            except Exception as exc:
                logger.exception("Error processing agent %s", agent["id"])
                outcome = {
                    "agent_id": agent["id"],
                    "agent_name": agent["name"],
                    "success": False,
                    "error": str(exc),
                }
            if outcome is None:
                continue
            results.append(outcome)
            if outcome["success"]:
                executed += 1

        logger.info(
            "Trigger %s: checked %d agents, executed %d",
            trigger_type, len(agents), executed,
            extra={"trigger_type": trigger_type},
        )
        return {
            "checked_agents": len(agents),
            "executed_agents": executed,
            "results": results,
        }

    async def _check_agent(
        self,
        agent: dict,
        trigger_type: str,
        source_entity: dict[str, str] | None,
        changed_fields: list[str] | None,
        inputs: dict[str, Any],
    ) -> dict[str, Any] | None:
        config = TriggerConfig.from_dict(agent["trigger_config"])
        if not config.enabled:
            logger.debug("Agent %s has no enabled trigger", agent["id"])
            return None

        if trigger_type == "scheduled" and not self._is_due(agent, config):
            logger.debug("Agent %s not due for a scheduled run yet", agent["id"])
            return None

        evaluation = evaluate_trigger_config(config, trigger_type, inputs)
        execution_id = await self._agents.record_execution(
            agent["id"],
            trigger_type,
            evaluation.fired,
            source_entity_type=(source_entity or {}).get("type"),
            source_entity_id=(source_entity or {}).get("id"),
            changed_fields=changed_fields,
        )
        if not evaluation.fired:
            return None

        request = AgentRequest(
            agent_id=agent["id"],
            model=agent["model"],
            prompt=agent["prompt"],
            inputs=inputs,
            context={
                "source": "trigger",
                "triggerType": trigger_type,
                "taskId": (source_entity or {}).get("id"),
            },
        )
        logger.info("Executing agent %s", agent["id"], extra={"agent_id": agent["id"]})
        try:
            output = await self._runner.run(request)
        except AgentRunError as exc:
            logger.warning("Agent %s failed: %s", agent["id"], exc)
            await self._agents.mark_execution(execution_id, False, str(exc))
            return {
                "agent_id": agent["id"],
                "agent_name": agent["name"],
                "success": False,
                "error": str(exc),
            }

        await self._agents.touch_last_execution(agent["id"], self._clock().isoformat())
        await self._agents.mark_execution(execution_id, True)
        if self._event_bus is not None:
            await self._event_bus.emit(
                AGENT_TRIGGERED, {"agent_id": agent["id"], "trigger_type": trigger_type}
            )
        return {
            "agent_id": agent["id"],
            "agent_name": agent["name"],
            "success": True,
            "output": output,
        }

    def _is_due(self, agent: dict, config: TriggerConfig) -> bool:
        last = agent.get("last_trigger_execution")
        if not last:
            return True
        interval = timedelta(minutes=config.interval_minutes or self._default_interval)
        return self._clock() - _parse_ts(last) >= interval

    async def _load_entity(self, source_entity: dict[str, str]) -> dict | None:
        entity_type = source_entity.get("type", "")
        if entity_type not in _TASK_ENTITY_TYPES:
            logger.warning("Unsupported source entity type %r", entity_type)
            return None
        task = await self._tasks.get_task(source_entity["id"])
        if task is None:
            raise KeyError(source_entity["id"])
        return task

    async def _build_inputs(self, task: dict) -> dict[str, Any]:
        inputs = {
            input_id: task.get(column)
            for input_id, column in INPUT_FIELDS.items()
            if task.get(column) is not None
        }
        subtasks = await self._tasks.list_subtasks(task["id"])
        if subtasks:
            inputs["task_subtasks"] = [s["title"] for s in subtasks]
        return inputs
