# =============================================================================
# Project & Task API Routes
# =============================================================================
#
# Projects:
#   POST   /workspaces/{workspace_id}/projects
#   GET    /workspaces/{workspace_id}/projects
#   GET    /workspaces/{workspace_id}/projects/{project_id}
#   PATCH  /workspaces/{workspace_id}/projects/{project_id}
#   DELETE /workspaces/{workspace_id}/projects/{project_id}
#
# Tasks:
#   POST   /workspaces/{workspace_id}/projects/{project_id}/tasks
#   GET    /workspaces/{workspace_id}/projects/{project_id}/tasks
#   GET    /workspaces/{workspace_id}/tasks             - All tasks, filterable
#   PATCH  /workspaces/{workspace_id}/tasks/{task_id}
#   DELETE /workspaces/{workspace_id}/tasks/{task_id}
#
# Analytics:
#   GET    /workspaces/{workspace_id}/analytics
#   GET    /workspaces/{workspace_id}/projects/{project_id}/analytics
#
# =============================================================================

from datetime import datetime

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from teamhub.auth.context import AuthContext
from teamhub.auth.policies import get_storage, require_auth
from teamhub.core.models import TaskPriority, TaskStatus
from teamhub.services.projects import ProjectService
from teamhub.storage.base import StorageProvider

router = APIRouter(prefix="/workspaces/{workspace_id}", tags=["projects"])


# =============================================================================
# Request Models
# =============================================================================

class CreateProjectRequest(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    description: str = ""
    emoji: str | None = None


class UpdateProjectRequest(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=100)
    description: str | None = None
    emoji: str | None = None


class CreateTaskRequest(BaseModel):
    title: str = Field(min_length=1, max_length=200)
    description: str = ""
    status: TaskStatus = TaskStatus.TODO
    priority: TaskPriority = TaskPriority.MEDIUM
    assigned_to: str | None = None
    due_date: datetime | None = None


class UpdateTaskRequest(BaseModel):
    title: str | None = Field(default=None, min_length=1, max_length=200)
    description: str | None = None
    status: TaskStatus | None = None
    priority: TaskPriority | None = None
    assigned_to: str | None = None
    due_date: datetime | None = None


def get_project_service(storage: StorageProvider = Depends(get_storage)) -> ProjectService:
    return ProjectService(storage.metadata)


# =============================================================================
# Projects
# =============================================================================

@router.post("/projects", status_code=201)
async def create_project(
    workspace_id: str,
    data: CreateProjectRequest,
    ctx: AuthContext = Depends(require_auth()),
    service: ProjectService = Depends(get_project_service),
):
    project = await service.create_project(
        ctx.user_id, workspace_id, data.name, data.description, data.emoji
    )
    return {"project": project.to_doc()}


@router.get("/projects")
async def list_projects(
    workspace_id: str,
    ctx: AuthContext = Depends(require_auth()),
    service: ProjectService = Depends(get_project_service),
):
    projects = await service.list_projects(ctx.user_id, workspace_id)
    return {"projects": [p.to_doc() for p in projects]}


@router.get("/projects/{project_id}")
async def get_project(
    workspace_id: str,
    project_id: str,
    ctx: AuthContext = Depends(require_auth()),
    service: ProjectService = Depends(get_project_service),
):
    project = await service.get_project(ctx.user_id, workspace_id, project_id)
    return {"project": project.to_doc()}


@router.patch("/projects/{project_id}")
async def update_project(
    workspace_id: str,
    project_id: str,
    data: UpdateProjectRequest,
    ctx: AuthContext = Depends(require_auth()),
    service: ProjectService = Depends(get_project_service),
):
    project = await service.update_project(
        ctx.user_id, workspace_id, project_id, **data.model_dump(exclude_unset=True)
    )
    return {"project": project.to_doc()}


@router.delete("/projects/{project_id}")
async def delete_project(
    workspace_id: str,
    project_id: str,
    ctx: AuthContext = Depends(require_auth()),
    service: ProjectService = Depends(get_project_service),
):
    await service.delete_project(ctx.user_id, workspace_id, project_id)
    return {"message": "Project deleted"}


# =============================================================================
# Tasks
# =============================================================================

@router.post("/projects/{project_id}/tasks", status_code=201)
async def create_task(
    workspace_id: str,
    project_id: str,
    data: CreateTaskRequest,
    ctx: AuthContext = Depends(require_auth()),
    service: ProjectService = Depends(get_project_service),
):
    task = await service.create_task(ctx.user_id, workspace_id, project_id, **data.model_dump())
    return {"task": task.to_doc()}


@router.get("/projects/{project_id}/tasks")
async def list_project_tasks(
    workspace_id: str,
    project_id: str,
    status: TaskStatus | None = None,
    ctx: AuthContext = Depends(require_auth()),
    service: ProjectService = Depends(get_project_service),
):
    tasks = await service.list_tasks(ctx.user_id, workspace_id, project_id=project_id, status=status)
    return {"tasks": [t.to_doc() for t in tasks]}


@router.get("/tasks")
async def list_tasks(
    workspace_id: str,
    project_id: str | None = None,
    status: TaskStatus | None = None,
    ctx: AuthContext = Depends(require_auth()),
    service: ProjectService = Depends(get_project_service),
):
    tasks = await service.list_tasks(ctx.user_id, workspace_id, project_id=project_id, status=status)
    return {"tasks": [t.to_doc() for t in tasks]}


@router.patch("/tasks/{task_id}")
async def update_task(
    workspace_id: str,
    task_id: str,
    data: UpdateTaskRequest,
    ctx: AuthContext = Depends(require_auth()),
    service: ProjectService = Depends(get_project_service),
):
    task = await service.update_task(
        ctx.user_id, workspace_id, task_id, **data.model_dump(exclude_unset=True)
    )
    return {"task": task.to_doc()}


@router.delete("/tasks/{task_id}")
async def delete_task(
    workspace_id: str,
    task_id: str,
    ctx: AuthContext = Depends(require_auth()),
    service: ProjectService = Depends(get_project_service),
):
    await service.delete_task(ctx.user_id, workspace_id, task_id)
    return {"message": "Task deleted"}


# =============================================================================
# Analytics
# =============================================================================

@router.get("/analytics")
async def workspace_analytics(
    workspace_id: str,
    ctx: AuthContext = Depends(require_auth()),
    service: ProjectService = Depends(get_project_service),
):
    return {"analytics": await service.analytics(ctx.user_id, workspace_id)}


@router.get("/projects/{project_id}/analytics")
async def project_analytics(
    workspace_id: str,
    project_id: str,
    ctx: AuthContext = Depends(require_auth()),
    service: ProjectService = Depends(get_project_service),
):
    await service.get_project(ctx.user_id, workspace_id, project_id)
    return {"analytics": await service.analytics(ctx.user_id, workspace_id, project_id)}
