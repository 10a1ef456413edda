
# routes/rewards.py
from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends

from deps.auth import CurrentUser, get_current_user
from deps.workspace import WorkspaceContext, get_workspace_context, require_workspace_member
from app.rewards import service as rewards_service
from schemas import CreateRewardRequest, RewardResponse, UpdateRewardRequest

router = APIRouter(prefix="/v1/programs/{program_id}/rewards", tags=["rewards"])


@router.get("", response_model=List[RewardResponse])
def list_rewards(program_id: str, ctx: WorkspaceContext = Depends(get_workspace_context)):
    return rewards_service.list_rewards(program_id=program_id, workspace_id=ctx.workspace_id)


@router.post("", response_model=RewardResponse, status_code=201)
def create_reward(
    program_id: str,
    body: CreateRewardRequest,
    user: CurrentUser = Depends(get_current_user),
):
    require_workspace_member(body.workspace_id, user.user_id)
    return rewards_service.create_reward(
        program_id=program_id,
        workspace_id=body.workspace_id,
        event=body.event,
        type=body.type,
        amount=body.amount,
        max_duration=body.max_duration,
        max_amount=body.max_amount,
        partner_ids=body.partner_ids,
    )


@router.patch("/{reward_id}", response_model=RewardResponse)
def update_reward(
    program_id: str,
    reward_id: str,
    body: UpdateRewardRequest,
    user: CurrentUser = Depends(get_current_user),
):
    require_workspace_member(body.workspace_id, user.user_id)
    return rewards_service.update_reward(
        program_id=program_id,
        workspace_id=body.workspace_id,
        reward_id=reward_id,
        type=body.type,
        amount=body.amount,
        max_duration=body.max_duration,
        max_amount=body.max_amount,
        partner_ids=body.partner_ids,
    )


@router.delete("/{reward_id}")
def delete_reward(program_id: str, reward_id: str, ctx: WorkspaceContext = Depends(get_workspace_context)):
    return rewards_service.delete_reward(
        program_id=program_id,
        workspace_id=ctx.workspace_id,
        reward_id=reward_id,
    )
