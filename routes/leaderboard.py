

# routes/leaderboard.py
from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, HTTPException

from db import get_conn
from deps.workspace import WorkspaceContext, get_workspace_context
from app.leaderboard.service import get_leaderboard
from app.programs import repository as programs_repo
from schemas import LeaderboardPartner

router = APIRouter(prefix="/v1", tags=["leaderboard"])


@router.get("/programs/{program_id}/leaderboard", response_model=List[LeaderboardPartner])
def program_leaderboard(
    program_id: str,
    ctx: WorkspaceContext = Depends(get_workspace_context),
):
    with get_conn() as conn:
        # Same 404 for a missing program and one owned by another workspace
        if not programs_repo.get_program(conn, program_id=program_id, workspace_id=ctx.workspace_id):
            raise HTTPException(status_code=404, detail="PROGRAM_NOT_FOUND")
        return get_leaderboard(conn, program_id=program_id)
