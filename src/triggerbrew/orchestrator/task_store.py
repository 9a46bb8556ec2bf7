"""Task CRUD with change detection.

Only the fields agents read as inputs are stored here; rendering and
board layout live elsewhere.
"""

from __future__ import annotations

import logging
import uuid

from triggerbrew.orchestrator.database import Database, utcnow
from triggerbrew.orchestrator.event_bus import TASK_CREATED, TASK_UPDATED, EventBus

logger = logging.getLogger(__name__)

# Columns callers may set on create/update.
TASK_FIELDS = ("title", "pitch", "content", "priority", "column_name", "owner", "parent_id")

PRIORITIES = ("critical", "high", "medium", "low")


class TaskStore:
    """Create and update tasks, emitting events the trigger dispatcher reacts to."""

    def __init__(self, db: Database, event_bus: EventBus | None = None) -> None:
        self._db = db
        self._event_bus = event_bus

    async def create_task(
        self,
        title: str,
        pitch: str | None = None,
        content: str | None = None,
        priority: str = "medium",
        column_name: str | None = None,
        owner: str | None = None,
        parent_id: str | None = None,
        task_id: str | None = None,
    ) -> dict:
        if not title or not title.strip():
            raise ValueError("Task title must not be empty")
        if priority not in PRIORITIES:
            raise ValueError(f"Invalid priority {priority!r}; expected one of {PRIORITIES}")
        if parent_id is not None and await self.get_task(parent_id) is None:
            raise ValueError(f"Parent task not found: {parent_id}")

        task_id = task_id or f"task-{uuid.uuid4().hex[:12]}"
        now = utcnow()
        await self._db.execute(
            "INSERT INTO tasks "
            "(id, title, pitch, content, priority, column_name, owner, parent_id, "
            " created_at, updated_at) "
            "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
            (task_id, title, pitch, content, priority, column_name, owner,
             parent_id, now, now),
        )
        task = await self.get_task(task_id)
        logger.info("Created task %s", task_id)
        if self._event_bus is not None:
            await self._event_bus.emit(TASK_CREATED, {"task_id": task_id})
        return task

    async def get_task(self, task_id: str) -> dict | None:
        return await self._db.execute_fetchone(
            "SELECT * FROM tasks WHERE id = ?", (task_id,)
        )

    async def list_subtasks(self, task_id: str) -> list[dict]:
        return await self._db.execute_fetchall(
            "SELECT * FROM tasks WHERE parent_id = ? ORDER BY created_at", (task_id,)
        )

    async def update_task(self, task_id: str, **changes) -> tuple[dict, list[str]]:
        """Apply *changes* and return ``(task, changed_fields)``.

        Fields whose value does not actually change are not reported and
        no event is emitted when nothing changed.

        Raises
        ------
        KeyError
            If the task does not exist.
        ValueError
            If an unknown field is passed, the title is blank, or the
            parent does not exist (or is the task itself).
        """
        unknown = set(changes) - set(TASK_FIELDS)
        if unknown:
            raise ValueError(f"Unknown task fields: {sorted(unknown)}")
        if "priority" in changes and changes["priority"] not in PRIORITIES:
            raise ValueError(f"Invalid priority {changes['priority']!r}")
        if "title" in changes and not (changes["title"] or "").strip():
            raise ValueError("Task title must not be empty")

        current = await self.get_task(task_id)
        if current is None:
            raise KeyError(task_id)

        parent_id = changes.get("parent_id")
        if parent_id is not None:
            if parent_id == task_id:
                raise ValueError("A task cannot be its own parent")
            if await self.get_task(parent_id) is None:
                raise ValueError(f"Parent task not found: {parent_id}")

        changed = [k for k in TASK_FIELDS if k in changes and changes[k] != current[k]]
        if not changed:
            return current, []

        assignments = ", ".join(f"{k} = ?" for k in changed)
        params = tuple(changes[k] for k in changed) + (utcnow(), task_id)
        await self._db.execute(
            f"UPDATE tasks SET {assignments}, updated_at = ? WHERE id = ?", params
        )
        task = await self.get_task(task_id)
        logger.info("Updated task %s: %s", task_id, ", ".join(changed))
        if self._event_bus is not None:
            await self._event_bus.emit(
                TASK_UPDATED, {"task_id": task_id, "changed_fields": changed}
            )
        return task, changed
