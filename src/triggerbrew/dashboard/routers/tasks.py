"""Task endpoints and health check."""

from __future__ import annotations

from fastapi import APIRouter, HTTPException
from fastapi.responses import JSONResponse

from triggerbrew.dashboard.models import CreateTaskBody, UpdateTaskBody
from triggerbrew.dashboard.routers._deps import get_orch, get_orch_optional

router = APIRouter()


@router.get("/api/health")
async def health():
    orch = get_orch_optional()
    if orch is None:
        return {"status": "ok", "db": "not_initialized"}
    try:
        await orch.db.execute_fetchone("SELECT 1")
        return {"status": "ok", "db": "connected"}
    except Exception as e:
        return JSONResponse(status_code=503, content={"status": "degraded", "db": str(e)})


@router.post("/api/tasks", status_code=201)
async def create_task(body: CreateTaskBody):
    orch = get_orch()
    try:
        return await orch.task_store.create_task(**body.model_dump())
    except ValueError as e:
        raise HTTPException(400, str(e))


@router.get("/api/tasks/{task_id}")
async def get_task(task_id: str):
    orch = get_orch()
    task = await orch.task_store.get_task(task_id)
    if task is None:
        raise HTTPException(404, f"Task not found: {task_id}")
    return task


@router.patch("/api/tasks/{task_id}")
async def update_task(task_id: str, body: UpdateTaskBody):
    orch = get_orch()
    changes = body.model_dump(exclude_unset=True)
    try:
        task, changed = await orch.task_store.update_task(task_id, **changes)
    except KeyError:
        raise HTTPException(404, f"Task not found: {task_id}")
    except ValueError as e:
        raise HTTPException(400, str(e))
    return {"task": task, "changed_fields": changed}
