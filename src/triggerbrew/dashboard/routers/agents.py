"""Agent CRUD, trigger-config validation, and trigger checks."""

from __future__ import annotations

from fastapi import APIRouter, HTTPException

from triggerbrew.conditions.trigger_config import TriggerConfig, validate_trigger_config
from triggerbrew.dashboard.models import CheckTriggersBody, CreateAgentBody, UpdateAgentBody
from triggerbrew.dashboard.routers._deps import get_orch

router = APIRouter()


def _checked_config(raw: dict | None) -> TriggerConfig | None:
    """Parse and validate a trigger config, raising 422 with all errors."""
    if raw is None:
        return None
    try:
        config = TriggerConfig.from_dict(raw)
    except ValueError as e:
        raise HTTPException(422, str(e))
    report = validate_trigger_config(config)
    if not report.valid:
        raise HTTPException(422, detail=report.to_dict())
    return config


@router.get("/api/agents")
async def list_agents():
    orch = get_orch()
    return await orch.agent_store.list_agents()


@router.post("/api/agents", status_code=201)
async def create_agent(body: CreateAgentBody):
    orch = get_orch()
    config = _checked_config(body.trigger_config)
    try:
        return await orch.agent_store.create_agent(
            name=body.name,
            model=body.model,
            prompt=body.prompt,
            pitch=body.pitch,
            trigger_config=config,
        )
    except ValueError as e:
        raise HTTPException(400, str(e))


@router.get("/api/agents/{agent_id}")
async def get_agent(agent_id: str):
    orch = get_orch()
    agent = await orch.agent_store.get_agent(agent_id)
    if agent is None:
        raise HTTPException(404, f"Agent not found: {agent_id}")
    return agent


@router.patch("/api/agents/{agent_id}")
async def update_agent(agent_id: str, body: UpdateAgentBody):
    orch = get_orch()
    config = _checked_config(body.trigger_config)
    agent = await orch.agent_store.update_agent(
        agent_id,
        trigger_config=config,
        name=body.name,
        model=body.model,
        prompt=body.prompt,
        pitch=body.pitch,
    )
    if agent is None:
        raise HTTPException(404, f"Agent not found: {agent_id}")
    return agent


@router.delete("/api/agents/{agent_id}")
async def delete_agent(agent_id: str):
    orch = get_orch()
    if not await orch.agent_store.delete_agent(agent_id):
        raise HTTPException(404, f"Agent not found: {agent_id}")
    return {"status": "ok"}


@router.post("/api/agents/{agent_id}/trigger-config/validate")
async def validate_agent_trigger_config(agent_id: str):
    orch = get_orch()
    agent = await orch.agent_store.get_agent(agent_id)
    if agent is None:
        raise HTTPException(404, f"Agent not found: {agent_id}")
    config = TriggerConfig.from_dict(agent["trigger_config"])
    return validate_trigger_config(config).to_dict()


@router.get("/api/agents/{agent_id}/executions")
async def list_executions(agent_id: str, limit: int = 50):
    orch = get_orch()
    if await orch.agent_store.get_agent(agent_id) is None:
        raise HTTPException(404, f"Agent not found: {agent_id}")
    return await orch.agent_store.list_executions(agent_id, limit=min(limit, 500))


@router.post("/api/triggers/check")
async def check_triggers(body: CheckTriggersBody):
    orch = get_orch()
    source = body.source_entity.model_dump() if body.source_entity else None
    try:
        return await orch.dispatcher.check_and_execute(
            body.trigger_type,
            source_entity=source,
            changed_fields=body.changed_fields,
            agent_id=body.agent_id,
        )
    except ValueError as e:
        raise HTTPException(400, str(e))
    except KeyError as e:
        raise HTTPException(404, f"Source entity not found: {e.args[0]}")
