"""Pydantic schemas for approval flow definitions."""
import uuid
from datetime import datetime

from pydantic import BaseModel, ConfigDict


# ─── Steps ───

class FlowStepIn(BaseModel):
    role: str | None = None
    specific_user_id: uuid.UUID | None = None


class FlowStepOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    step_order: int
    role: str | None
    specific_user_id: uuid.UUID | None


# ─── Flows ───

class FlowIn(BaseModel):
    # Rule checks live in services.flows.validate_flow so that every failing
    # rule is reported together.
    name: str = ""
    rule_type: str | None = None
    percentage_threshold: int | None = None
    specific_approver_id: uuid.UUID | None = None
    steps: list[FlowStepIn] = []


class FlowUpdate(BaseModel):
    name: str | None = None
    rule_type: str | None = None
    percentage_threshold: int | None = None
    specific_approver_id: uuid.UUID | None = None
    steps: list[FlowStepIn] | None = None


class FlowOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    company_id: uuid.UUID
    name: str
    rule_type: str
    percentage_threshold: int | None
    specific_approver_id: uuid.UUID | None
    steps: list[FlowStepOut]
    created_at: datetime
    updated_at: datetime
