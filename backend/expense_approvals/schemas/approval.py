"""Pydantic schemas for approval request endpoints."""
import uuid
from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field


# ─── Approval request output ───

class ApproverSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    name: str
    email: str
    role: str


class ApprovalRequestOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    expense_id: uuid.UUID
    approver_id: uuid.UUID
    step_order: int
    status: str
    comment: str | None
    decided_at: datetime | None
    created_at: datetime

    # Expense summary fields (filled in by the route)
    expense_status: str | None = None
    amount: Decimal | None = None
    currency: str | None = None
    category: str | None = None


class HistoryItem(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    step_order: int
    status: str
    comment: str | None
    decided_at: datetime | None
    approver: ApproverSummary


# ─── Decision request bodies ───

class DecisionRequest(BaseModel):
    comment: str | None = Field(default=None, max_length=2000)


class OverrideRequest(BaseModel):
    action: str = Field(..., description="approve or reject")
    comment: str | None = Field(default=None, max_length=2000)


class DecisionResult(BaseModel):
    success: bool = True
    expense_id: uuid.UUID
    expense_status: str
    message: str
    request: ApprovalRequestOut


# ─── Paginated list response ───

class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    pages: int


class ApprovalListResponse(BaseModel):
    items: list[ApprovalRequestOut]
    pagination: Pagination


class StatsOut(BaseModel):
    total: int
    pending: int
    approved: int
    rejected: int
