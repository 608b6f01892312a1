"""Services - workspace-scoped operations guarded by the auth core."""

from teamhub.services.workspaces import WorkspaceService
from teamhub.services.projects import ProjectService

__all__ = [
    "WorkspaceService",
    "ProjectService",
]
