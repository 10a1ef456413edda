
# schemas.py
from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field
from datetime import datetime
from typing import Optional, List, Literal

PayoutStatusName = Literal["pending", "processing", "completed", "failed", "canceled"]
RewardEvent = Literal["click", "lead", "sale"]
RewardType = Literal["flat", "percentage"]


# -------- PAYPAL WEBHOOK --------
class PaypalPayoutItemFee(BaseModel):
    currency: str
    value: str


class PaypalPayoutItem(BaseModel):
    receiver: str
    sender_item_id: str  # our payout id


class PaypalPayoutResource(BaseModel):
    sender_batch_id: str  # our invoice id
    payout_item_id: str
    payout_item_fee: PaypalPayoutItemFee
    payout_item: PaypalPayoutItem


class PaypalPayoutEvent(BaseModel):
    event_type: str
    resource: PaypalPayoutResource


# -------- PAYOUTS --------
class ConfirmPayoutsRequest(BaseModel):
    workspace_id: str = Field(min_length=1)
    payment_method_id: str = Field(min_length=1)


class ConfirmPayoutsResponse(BaseModel):
    ok: bool
    invoice_id: str
    invoice_number: str
    payout_count: int
    amount: int
    fee: int
    total: int


class PayoutPartner(BaseModel):
    id: str
    name: Optional[str] = None
    email: Optional[str] = None
    image: Optional[str] = None
    payouts_enabled_at: Optional[datetime] = None


class PayoutResponse(BaseModel):
    id: str
    program_id: str
    invoice_id: Optional[str] = None
    user_id: Optional[str] = None
    amount: int
    status: PayoutStatusName
    paypal_transfer_id: Optional[str] = None
    period_start: Optional[datetime] = None
    period_end: Optional[datetime] = None
    paid_at: Optional[datetime] = None
    created_at: datetime
    partner: PayoutPartner


class PayoutCountResponse(BaseModel):
    count: int


class PayoutStatusCount(BaseModel):
    status: PayoutStatusName
    count: int


class MarkPayoutPaidResponse(BaseModel):
    ok: bool
    payout_id: str
    status: PayoutStatusName


# -------- LEADERBOARD --------
class LeaderboardPartner(BaseModel):
    # strict: aggregation results must already be ints, never coerced from strings
    model_config = ConfigDict(strict=True)

    id: str
    name: str
    image: str
    clicks: int = Field(ge=0)
    leads: int = Field(ge=0)
    sales: int = Field(ge=0)
    saleAmount: int = Field(ge=0)


# -------- REWARDS --------
class RewardBase(BaseModel):
    type: RewardType
    amount: int = Field(ge=0)
    max_duration: Optional[int] = None  # months; None = lifetime
    max_amount: Optional[int] = Field(default=None, ge=0)


class CreateRewardRequest(RewardBase):
    workspace_id: str
    event: RewardEvent
    partner_ids: Optional[List[str]] = None


class UpdateRewardRequest(RewardBase):
    workspace_id: str
    partner_ids: Optional[List[str]] = None


class RewardResponse(BaseModel):
    id: str
    program_id: str
    event: RewardEvent
    type: RewardType
    amount: int
    max_duration: Optional[int] = None
    max_amount: Optional[int] = None
    partners_count: int = 0
    created_at: datetime
    updated_at: datetime
