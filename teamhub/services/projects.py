"""
Projects and tasks.

Thin persistence glue. Each operation authorizes against the workspace it
names before touching storage, and every lookup is scoped by that workspace
so an id from another tenant reads as "not found".
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any

from teamhub.auth.capabilities import Permission
from teamhub.auth.policies import authorize
from teamhub.core.errors import NotFoundError
from teamhub.core.models import Project, Task, TaskPriority, TaskStatus
from teamhub.core.utils import utc_now
from teamhub.storage.base import Collections, MetadataStorage

logger = logging.getLogger(__name__)

MAX_LIST = 1000


class ProjectService:
    """Workspace-scoped CRUD for projects and their tasks."""

    def __init__(self, storage: MetadataStorage):
        self.storage = storage

    async def _scoped(self, collection: str, workspace_id: str, id: str) -> dict[str, Any]:
        doc = await self.storage.get(collection, id)
        if not doc or doc.get("workspace_id") != workspace_id:
            raise NotFoundError(f"{collection[:-1].capitalize()} not found")
        return doc

    # -------------------------------------------------------------------------
    # Projects
    # -------------------------------------------------------------------------

    async def create_project(
        self,
        user_id: str,
        workspace_id: str,
        name: str,
        description: str = "",
        emoji: str | None = None,
    ) -> Project:
        await authorize(self.storage, user_id, workspace_id, Permission.CREATE_PROJECT)
        project = Project(
            workspace_id=workspace_id,
            name=name,
            description=description,
            created_by=user_id,
            **({"emoji": emoji} if emoji else {}),
        )
        await self.storage.insert(Collections.PROJECTS, project.id, project.to_doc())
        return project

    async def list_projects(self, user_id: str, workspace_id: str) -> list[Project]:
        await authorize(self.storage, user_id, workspace_id, Permission.VIEW_ONLY)
        docs = await self.storage.query(
            Collections.PROJECTS, {"workspace_id": workspace_id}, limit=MAX_LIST
        )
        return [Project.from_doc(d) for d in docs]

    async def get_project(self, user_id: str, workspace_id: str, project_id: str) -> Project:
        await authorize(self.storage, user_id, workspace_id, Permission.VIEW_ONLY)
        return Project.from_doc(await self._scoped(Collections.PROJECTS, workspace_id, project_id))

    async def update_project(
        self,
        user_id: str,
        workspace_id: str,
        project_id: str,
        **changes: Any,
    ) -> Project:
        await authorize(self.storage, user_id, workspace_id, Permission.EDIT_PROJECT)
        project = Project.from_doc(await self._scoped(Collections.PROJECTS, workspace_id, project_id))

        allowed = {k: v for k, v in changes.items() if k in ("name", "description", "emoji") and v is not None}
        project = project.model_copy(update={**allowed, "updated_at": utc_now()})
        await self.storage.save(Collections.PROJECTS, project.id, project.to_doc())
        return project

    async def delete_project(self, user_id: str, workspace_id: str, project_id: str) -> None:
        """Delete a project and its tasks."""
        await authorize(self.storage, user_id, workspace_id, Permission.DELETE_PROJECT)
        await self._scoped(Collections.PROJECTS, workspace_id, project_id)

        tasks = await self.storage.delete_many(
            Collections.TASKS, {"workspace_id": workspace_id, "project_id": project_id}
        )
        await self.storage.delete(Collections.PROJECTS, project_id)
        logger.info(f"Project {project_id} deleted by {user_id} ({tasks} tasks)")

    # -------------------------------------------------------------------------
    # Tasks
    # -------------------------------------------------------------------------

    async def create_task(
        self,
        user_id: str,
        workspace_id: str,
        project_id: str,
        title: str,
        description: str = "",
        status: TaskStatus = TaskStatus.TODO,
        priority: TaskPriority = TaskPriority.MEDIUM,
        assigned_to: str | None = None,
        due_date: datetime | None = None,
    ) -> Task:
        await authorize(self.storage, user_id, workspace_id, Permission.CREATE_TASK)
        await self._scoped(Collections.PROJECTS, workspace_id, project_id)

        task = Task(
            workspace_id=workspace_id,
            project_id=project_id,
            title=title,
            description=description,
            status=status,
            priority=priority,
            assigned_to=assigned_to,
            created_by=user_id,
            due_date=due_date,
        )
        await self.storage.insert(Collections.TASKS, task.id, task.to_doc())
        return task

    async def list_tasks(
        self,
        user_id: str,
        workspace_id: str,
        project_id: str | None = None,
        status: TaskStatus | None = None,
    ) -> list[Task]:
        await authorize(self.storage, user_id, workspace_id, Permission.VIEW_ONLY)
        filters: dict[str, Any] = {"workspace_id": workspace_id}
        if project_id:
            filters["project_id"] = project_id
        if status:
            filters["status"] = status.value
        docs = await self.storage.query(Collections.TASKS, filters, limit=MAX_LIST)
        return [Task.from_doc(d) for d in docs]

    async def update_task(
        self,
        user_id: str,
        workspace_id: str,
        task_id: str,
        **changes: Any,
    ) -> Task:
        await authorize(self.storage, user_id, workspace_id, Permission.EDIT_TASK)
        task = Task.from_doc(await self._scoped(Collections.TASKS, workspace_id, task_id))

        fields = ("title", "description", "status", "priority", "assigned_to", "due_date")
        allowed = {k: v for k, v in changes.items() if k in fields and v is not None}
        task = Task.model_validate({**task.model_dump(), **allowed, "updated_at": utc_now()})
        await self.storage.save(Collections.TASKS, task.id, task.to_doc())
        return task

    async def delete_task(self, user_id: str, workspace_id: str, task_id: str) -> None:
        await authorize(self.storage, user_id, workspace_id, Permission.DELETE_TASK)
        await self._scoped(Collections.TASKS, workspace_id, task_id)
        await self.storage.delete(Collections.TASKS, task_id)

    # -------------------------------------------------------------------------
    # Analytics
    # -------------------------------------------------------------------------

    async def analytics(
        self,
        user_id: str,
        workspace_id: str,
        project_id: str | None = None,
    ) -> dict[str, int]:
        """Task counts for a workspace, or one project in it."""
        tasks = await self.list_tasks(user_id, workspace_id, project_id=project_id)
        now = utc_now()
        return {
            "total_tasks": len(tasks),
            "overdue_tasks": sum(
                1 for t in tasks
                if t.due_date and t.due_date < now and t.status != TaskStatus.DONE
            ),
            "completed_tasks": sum(1 for t in tasks if t.status == TaskStatus.DONE),
        }
