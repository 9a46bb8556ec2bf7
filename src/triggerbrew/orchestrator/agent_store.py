"""Agents, their trigger configuration, and the trigger execution log."""

from __future__ import annotations

import json
import logging
import uuid

from triggerbrew.conditions.trigger_config import TriggerConfig
from triggerbrew.orchestrator.database import Database, utcnow

logger = logging.getLogger(__name__)

_AGENT_FIELDS = ("name", "model", "prompt", "pitch")


def _decode_agent(row: dict | None) -> dict | None:
    if row is None:
        return None
    agent = dict(row)
    raw = agent.get("trigger_config")
    agent["trigger_config"] = json.loads(raw) if raw else None
    return agent


def _decode_execution(row: dict) -> dict:
    execution = dict(row)
    execution["changed_fields"] = json.loads(execution.get("changed_fields") or "[]")
    execution["conditions_met"] = bool(execution["conditions_met"])
    execution["executed"] = bool(execution["executed"])
    return execution


class AgentStore:
    """CRUD for agents plus the bookkeeping the trigger dispatcher needs.

    ``trigger_config`` is stored as JSON in the camelCase shape produced by
    :meth:`TriggerConfig.to_dict`.
    """

    def __init__(self, db: Database) -> None:
        self._db = db

    # ------------------------------------------------------------------
    # Agents
    # ------------------------------------------------------------------

    async def create_agent(
        self,
        name: str,
        model: str = "",
        prompt: str = "",
        pitch: str | None = None,
        trigger_config: TriggerConfig | None = None,
        agent_id: str | None = None,
    ) -> dict:
        if not name or not name.strip():
            raise ValueError("Agent name must not be empty")
        agent_id = agent_id or f"agent-{uuid.uuid4().hex[:12]}"
        now = utcnow()
        config_json = json.dumps(trigger_config.to_dict()) if trigger_config else None
        await self._db.execute(
            "INSERT INTO agents "
            "(id, name, model, prompt, pitch, trigger_config, created_at, updated_at) "
            "VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
            (agent_id, name, model, prompt, pitch, config_json, now, now),
        )
        logger.info("Created agent %s (%s)", agent_id, name)
        return await self.get_agent(agent_id)

    async def get_agent(self, agent_id: str) -> dict | None:
        row = await self._db.execute_fetchone(
            "SELECT * FROM agents WHERE id = ?", (agent_id,)
        )
        return _decode_agent(row)

    async def list_agents(self, with_triggers_only: bool = False) -> list[dict]:
        sql = "SELECT * FROM agents"
        if with_triggers_only:
            sql += " WHERE trigger_config IS NOT NULL"
        rows = await self._db.execute_fetchall(sql + " ORDER BY created_at")
        return [_decode_agent(r) for r in rows]

    async def update_agent(
        self,
        agent_id: str,
        trigger_config: TriggerConfig | None = None,
        **changes,
    ) -> dict | None:
        """Update basic fields and/or the trigger config; None if missing."""
        unknown = set(changes) - set(_AGENT_FIELDS)
        if unknown:
            raise ValueError(f"Unknown agent fields: {sorted(unknown)}")

        updates = {k: v for k, v in changes.items() if v is not None}
        if trigger_config is not None:
            updates["trigger_config"] = json.dumps(trigger_config.to_dict())
        if not updates:
            return await self.get_agent(agent_id)

        assignments = ", ".join(f"{k} = ?" for k in updates)
        params = tuple(updates.values()) + (utcnow(), agent_id)
        count = await self._db.execute(
            f"UPDATE agents SET {assignments}, updated_at = ? WHERE id = ?", params
        )
        if count == 0:
            return None
        return await self.get_agent(agent_id)

    async def delete_agent(self, agent_id: str) -> bool:
        count = await self._db.execute("DELETE FROM agents WHERE id = ?", (agent_id,))
        if count:
            logger.info("Deleted agent %s", agent_id)
        return count > 0

    async def touch_last_execution(self, agent_id: str, when: str | None = None) -> None:
        await self._db.execute(
            "UPDATE agents SET last_trigger_execution = ? WHERE id = ?",
            (when or utcnow(), agent_id),
        )

    # ------------------------------------------------------------------
    # Trigger executions
    # ------------------------------------------------------------------

    async def record_execution(
        self,
        agent_id: str,
        trigger_type: str,
        conditions_met: bool,
        source_entity_type: str | None = None,
        source_entity_id: str | None = None,
        changed_fields: list[str] | None = None,
    ) -> int:
        """Log one trigger check; returns the execution id."""
        return await self._db.execute_insert(
            "INSERT INTO trigger_executions "
            "(agent_id, trigger_type, source_entity_type, source_entity_id, "
            " changed_fields, conditions_met, executed, created_at) "
            "VALUES (?, ?, ?, ?, ?, ?, 0, ?)",
            (
                agent_id,
                trigger_type,
                source_entity_type or "none",
                source_entity_id or "",
                json.dumps(changed_fields or []),
                int(conditions_met),
                utcnow(),
            ),
        )

    async def mark_execution(
        self, execution_id: int, executed: bool, error_message: str | None = None,
    ) -> None:
        await self._db.execute(
            "UPDATE trigger_executions SET executed = ?, error_message = ? WHERE id = ?",
            (int(executed), error_message, execution_id),
        )

    async def list_executions(self, agent_id: str, limit: int = 50) -> list[dict]:
        rows = await self._db.execute_fetchall(
            "SELECT * FROM trigger_executions WHERE agent_id = ? "
            "ORDER BY id DESC LIMIT ?",
            (agent_id, limit),
        )
        return [_decode_execution(r) for r in rows]
