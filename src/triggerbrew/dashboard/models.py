"""Pydantic request bodies shared across routers."""

from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, Field


class ValidateLogicBody(BaseModel):
    logic: str = ""
    conditions_count: int = Field(ge=0)


class AppendConditionBody(BaseModel):
    conditions: list[dict[str, Any]] = Field(default_factory=list)
    condition_logic: str = ""
    condition: Optional[dict[str, Any]] = None
    kind: str = "trigger"


class RemoveConditionBody(BaseModel):
    conditions: list[dict[str, Any]]
    condition_logic: str = ""
    index: int


class EvaluateLogicBody(BaseModel):
    condition_logic: str = ""
    results: list[bool]


class CreateAgentBody(BaseModel):
    name: str
    model: str = ""
    prompt: str = ""
    pitch: Optional[str] = None
    trigger_config: Optional[dict[str, Any]] = None


class UpdateAgentBody(BaseModel):
    name: Optional[str] = None
    model: Optional[str] = None
    prompt: Optional[str] = None
    pitch: Optional[str] = None
    trigger_config: Optional[dict[str, Any]] = None


class SourceEntity(BaseModel):
    type: str
    id: str


class CheckTriggersBody(BaseModel):
    trigger_type: str
    source_entity: Optional[SourceEntity] = None
    changed_fields: Optional[list[str]] = None
    agent_id: Optional[str] = None


class CreateTaskBody(BaseModel):
    title: str
    pitch: Optional[str] = None
    content: Optional[str] = None
    priority: str = "medium"
    column_name: Optional[str] = None
    owner: Optional[str] = None
    parent_id: Optional[str] = None


class UpdateTaskBody(BaseModel):
    title: Optional[str] = None
    pitch: Optional[str] = None
    content: Optional[str] = None
    priority: Optional[str] = None
    column_name: Optional[str] = None
    owner: Optional[str] = None
    parent_id: Optional[str] = None
