# =============================================================================
# Workspace API Routes
# =============================================================================
#
# Endpoints:
#   POST   /workspaces                                  - Create (caller becomes owner)
#   GET    /workspaces                                  - Workspaces the caller belongs to
#   GET    /workspaces/{workspace_id}                   - Workspace details
#   PATCH  /workspaces/{workspace_id}                   - Rename / describe
#   DELETE /workspaces/{workspace_id}                   - Delete with all content
#   POST   /workspaces/{workspace_id}/switch            - Set last active workspace
#   POST   /workspaces/{workspace_id}/leave             - Leave (non-owners)
#   POST   /workspaces/{workspace_id}/invite-code       - Regenerate invite code
#
# Members:
#   GET    /workspaces/{workspace_id}/members
#   PATCH  /workspaces/{workspace_id}/members/{user_id} - Change role
#   DELETE /workspaces/{workspace_id}/members/{user_id} - Remove member
#
# Invites:
#   POST   /invites/{invite_code}/join                  - Join as MEMBER
#
# Routes only authenticate; WorkspaceService authorizes every call against
# the workspace it names.
#
# =============================================================================

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from teamhub.auth.context import AuthContext
from teamhub.auth.policies import get_storage, require_auth
from teamhub.core.models import RoleName
from teamhub.services.workspaces import WorkspaceService
from teamhub.storage.base import StorageProvider

router = APIRouter(tags=["workspaces"])


# =============================================================================
# Request Models
# =============================================================================

class CreateWorkspaceRequest(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    description: str = Field(default="", max_length=500)


class UpdateWorkspaceRequest(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=100)
    description: str | None = Field(default=None, max_length=500)


class ChangeRoleRequest(BaseModel):
    role: RoleName


def get_workspace_service(storage: StorageProvider = Depends(get_storage)) -> WorkspaceService:
    return WorkspaceService(storage.metadata)


# =============================================================================
# Workspaces
# =============================================================================

@router.post("/workspaces", status_code=201)
async def create_workspace(
    data: CreateWorkspaceRequest,
    ctx: AuthContext = Depends(require_auth()),
    service: WorkspaceService = Depends(get_workspace_service),
):
    workspace = await service.create_workspace(ctx.user_id, data.name, data.description)
    return {"workspace": workspace.to_doc()}


@router.get("/workspaces")
async def list_workspaces(
    ctx: AuthContext = Depends(require_auth()),
    service: WorkspaceService = Depends(get_workspace_service),
):
    workspaces = await service.list_user_workspaces(ctx.user_id)
    return {"workspaces": [w.to_doc() for w in workspaces]}


@router.get("/workspaces/{workspace_id}")
async def get_workspace(
    workspace_id: str,
    ctx: AuthContext = Depends(require_auth()),
    service: WorkspaceService = Depends(get_workspace_service),
):
    workspace = await service.get_workspace(ctx.user_id, workspace_id)
    return {"workspace": workspace.to_doc()}


@router.patch("/workspaces/{workspace_id}")
async def update_workspace(
    workspace_id: str,
    data: UpdateWorkspaceRequest,
    ctx: AuthContext = Depends(require_auth()),
    service: WorkspaceService = Depends(get_workspace_service),
):
    workspace = await service.update_workspace(
        ctx.user_id, workspace_id, name=data.name, description=data.description
    )
    return {"workspace": workspace.to_doc()}


@router.delete("/workspaces/{workspace_id}")
async def delete_workspace(
    workspace_id: str,
    ctx: AuthContext = Depends(require_auth()),
    service: WorkspaceService = Depends(get_workspace_service),
):
    await service.delete_workspace(ctx.user_id, workspace_id)
    return {"message": "Workspace deleted"}


@router.post("/workspaces/{workspace_id}/switch")
async def switch_workspace(
    workspace_id: str,
    ctx: AuthContext = Depends(require_auth()),
    service: WorkspaceService = Depends(get_workspace_service),
):
    workspace = await service.switch_workspace(ctx.user_id, workspace_id)
    return {"workspace": workspace.to_doc()}


@router.post("/workspaces/{workspace_id}/leave")
async def leave_workspace(
    workspace_id: str,
    ctx: AuthContext = Depends(require_auth()),
    service: WorkspaceService = Depends(get_workspace_service),
):
    await service.leave_workspace(ctx.user_id, workspace_id)
    return {"message": "Left workspace"}


@router.post("/workspaces/{workspace_id}/invite-code")
async def regenerate_invite_code(
    workspace_id: str,
    ctx: AuthContext = Depends(require_auth()),
    service: WorkspaceService = Depends(get_workspace_service),
):
    workspace = await service.regenerate_invite_code(ctx.user_id, workspace_id)
    return {"invite_code": workspace.invite_code}


# =============================================================================
# Members
# =============================================================================

@router.get("/workspaces/{workspace_id}/members")
async def list_members(
    workspace_id: str,
    ctx: AuthContext = Depends(require_auth()),
    service: WorkspaceService = Depends(get_workspace_service),
):
    members = await service.get_members(ctx.user_id, workspace_id)
    return {"members": [m.to_doc() for m in members]}


@router.patch("/workspaces/{workspace_id}/members/{user_id}")
async def change_member_role(
    workspace_id: str,
    user_id: str,
    data: ChangeRoleRequest,
    ctx: AuthContext = Depends(require_auth()),
    service: WorkspaceService = Depends(get_workspace_service),
):
    member = await service.change_member_role(ctx.user_id, workspace_id, user_id, data.role)
    return {"member": member.to_doc()}


@router.delete("/workspaces/{workspace_id}/members/{user_id}")
async def remove_member(
    workspace_id: str,
    user_id: str,
    ctx: AuthContext = Depends(require_auth()),
    service: WorkspaceService = Depends(get_workspace_service),
):
    await service.remove_member(ctx.user_id, workspace_id, user_id)
    return {"message": "Member removed"}


# =============================================================================
# Invites
# =============================================================================

@router.post("/invites/{invite_code}/join")
async def join_workspace(
    invite_code: str,
    ctx: AuthContext = Depends(require_auth()),
    service: WorkspaceService = Depends(get_workspace_service),
):
    """Join the workspace this code belongs to, as MEMBER."""
    member = await service.join(ctx.user_id, invite_code)
    return {"member": member.to_doc(), "workspace_id": member.workspace_id}
