"""Pydantic schemas for expense submission."""
import uuid
from datetime import date
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field

from expense_approvals.schemas.approval import ApprovalRequestOut


class ExpenseCreate(BaseModel):
    amount: Decimal = Field(..., gt=0)
    currency: str = Field(default="USD", min_length=3, max_length=3)
    category: str | None = None
    description: str | None = None
    expense_date: date | None = None


class SkippedStepOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    step_order: int
    role: str | None
    specific_user_id: uuid.UUID | None
    reason: str


class SubmissionOut(BaseModel):
    expense_id: uuid.UUID
    status: str
    amount_in_company_currency: Decimal | None = None
    requests: list[ApprovalRequestOut]
    skipped_steps: list[SkippedStepOut]
