

# routes/payouts.py
from __future__ import annotations

from typing import List, Literal, Optional, Union

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query

from schemas import (
    ConfirmPayoutsRequest,
    ConfirmPayoutsResponse,
    MarkPayoutPaidResponse,
    PayoutCountResponse,
    PayoutResponse,
    PayoutStatusCount,
    PayoutStatusName,
)

from db import get_conn
from deps.auth import get_current_user, CurrentUser
from deps.workspace import WorkspaceContext, get_workspace_context, require_workspace_member
from app.payouts import repository as payouts_repo
from app.payouts import service as payouts_service
from app.programs import repository as programs_repo

router = APIRouter(prefix="/v1", tags=["payouts"])

MAX_PAGE_SIZE = 100


def _require_program(conn, program_id: str, workspace_id: str) -> dict:
    program = programs_repo.get_program(conn, program_id=program_id, workspace_id=workspace_id)
    if not program:
        raise HTTPException(status_code=404, detail="PROGRAM_NOT_FOUND")
    return program


def _to_payout_response(row: dict) -> PayoutResponse:
    return PayoutResponse(
        id=row["id"],
        program_id=row["program_id"],
        invoice_id=row.get("invoice_id"),
        user_id=row.get("user_id"),
        amount=int(row["amount"]),
        status=row["status"],
        paypal_transfer_id=row.get("paypal_transfer_id"),
        period_start=row.get("period_start"),
        period_end=row.get("period_end"),
        paid_at=row.get("paid_at"),
        created_at=row["created_at"],
        partner={
            "id": row["partner_id"],
            "name": row.get("partner_name"),
            "email": row.get("partner_email"),
            "image": row.get("partner_image"),
            "payouts_enabled_at": row.get("partner_payouts_enabled_at"),
        },
    )


@router.post("/payouts/confirm", response_model=ConfirmPayoutsResponse)
def confirm_payouts(
    body: ConfirmPayoutsRequest,
    background_tasks: BackgroundTasks,
    user: CurrentUser = Depends(get_current_user),
):
    require_workspace_member(body.workspace_id, user.user_id)
    return payouts_service.confirm_payouts(
        workspace_id=body.workspace_id,
        payment_method_id=body.payment_method_id,
        user_id=user.user_id,
        jobs=background_tasks,
    )


@router.get("/programs/{program_id}/payouts", response_model=List[PayoutResponse])
def list_program_payouts(
    program_id: str,
    ctx: WorkspaceContext = Depends(get_workspace_context),
    status: Optional[PayoutStatusName] = Query(None),
    partner_id: Optional[str] = Query(None),
    invoice_id: Optional[str] = Query(None),
    sort_by: Literal["period_start", "amount", "paid_at"] = Query("amount"),
    sort_order: Literal["asc", "desc"] = Query("desc"),
    page: int = Query(1, ge=1),
    page_size: int = Query(MAX_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
):
    with get_conn() as conn:
        _require_program(conn, program_id, ctx.workspace_id)
        rows = payouts_repo.list_payouts(
            conn,
            program_id=program_id,
            status=status,
            partner_id=partner_id,
            invoice_id=invoice_id,
            sort_by=sort_by,
            sort_order=sort_order,
            page=page,
            page_size=page_size,
        )
    return [_to_payout_response(r) for r in rows]


@router.get(
    "/programs/{program_id}/payouts/count",
    response_model=Union[PayoutCountResponse, List[PayoutStatusCount]],
)
def count_program_payouts(
    program_id: str,
    ctx: WorkspaceContext = Depends(get_workspace_context),
    status: Optional[PayoutStatusName] = Query(None),
    partner_id: Optional[str] = Query(None),
    invoice_id: Optional[str] = Query(None),
    group_by: Optional[Literal["status"]] = Query(None),
):
    with get_conn() as conn:
        _require_program(conn, program_id, ctx.workspace_id)
        if group_by == "status":
            return payouts_repo.count_payouts_by_status(
                conn, program_id=program_id, partner_id=partner_id, invoice_id=invoice_id
            )
        count = payouts_repo.count_payouts(
            conn, program_id=program_id, status=status, partner_id=partner_id, invoice_id=invoice_id
        )
    return {"count": count}


@router.post("/programs/{program_id}/payouts/{payout_id}/mark-paid", response_model=MarkPayoutPaidResponse)
def mark_payout_paid(
    program_id: str,
    payout_id: str,
    ctx: WorkspaceContext = Depends(get_workspace_context),
):
    with get_conn() as conn:
        _require_program(conn, program_id, ctx.workspace_id)
    return payouts_service.mark_payout_paid(
        program_id=program_id,
        payout_id=payout_id,
        user_id=ctx.user.user_id,
    )
