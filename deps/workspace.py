
# deps/workspace.py
from fastapi import Depends, HTTPException, Query

from db import get_conn
from deps.auth import CurrentUser, get_current_user
from app.programs import repository as programs_repo


class WorkspaceContext:
    def __init__(self, workspace_id: str, user: CurrentUser):
        self.workspace_id = workspace_id
        self.user = user


def require_workspace_member(workspace_id: str, user_id: str) -> None:
    with get_conn() as conn:
        if not programs_repo.is_workspace_member(conn, workspace_id=workspace_id, user_id=user_id):
            # Don't reveal whether the workspace exists
            raise HTTPException(status_code=404, detail="WORKSPACE_NOT_FOUND")


def get_workspace_context(
    workspace_id: str = Query(..., min_length=1),
    user: CurrentUser = Depends(get_current_user),
) -> WorkspaceContext:
    require_workspace_member(workspace_id, user.user_id)
    return WorkspaceContext(workspace_id=workspace_id, user=user)
