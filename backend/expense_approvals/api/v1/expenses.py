"""Expense submission and approval history endpoints.

  POST /expenses                         - create + generate approval requests
  GET  /expenses/{expense_id}/approvals  - approval history
"""
import logging
import uuid
from typing import Annotated

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from expense_approvals.core.deps import get_current_user, get_uow
from expense_approvals.db.session import get_session
from expense_approvals.models import Company, Expense, ExpenseStatus, User
from expense_approvals.repositories import SqlAlchemyUnitOfWork
from expense_approvals.schemas.approval import ApprovalRequestOut, HistoryItem
from expense_approvals.schemas.expense import ExpenseCreate, SkippedStepOut, SubmissionOut
from expense_approvals.services import fx
from expense_approvals.services import queries
from expense_approvals.services.approval import ApprovalEngine

logger = logging.getLogger(__name__)

router = APIRouter()

CurrentUser = Annotated[User, Depends(get_current_user)]


@router.post(
    "",
    response_model=SubmissionOut,
    status_code=status.HTTP_201_CREATED,
    summary="Submit an expense and generate its approval requests",
)
def submit_expense(
    body: ExpenseCreate,
    current_user: CurrentUser,
    db: Annotated[Session, Depends(get_session)],
    uow: Annotated[SqlAlchemyUnitOfWork, Depends(get_uow)],
):
    company = db.get(Company, current_user.company_id)
    currency = body.currency.upper()
    company_currency = company.currency if company is not None else currency

    # Flushed, not committed: submit_expense commits the row together with
    # its requests, or rolls both back.
    expense = Expense(
        company_id=current_user.company_id,
        user_id=current_user.id,
        status=ExpenseStatus.PENDING.value,
        amount=body.amount,
        currency=currency,
        amount_in_company_currency=fx.convert(body.amount, currency, company_currency),
        category=body.category,
        description=body.description,
        expense_date=body.expense_date,
    )
    db.add(expense)
    db.flush()

    result = ApprovalEngine(uow).submit_expense(expense.id, actor_id=current_user.id)
    return SubmissionOut(
        expense_id=result.expense_id,
        status=result.status,
        amount_in_company_currency=expense.amount_in_company_currency,
        requests=[ApprovalRequestOut.model_validate(r) for r in result.requests],
        skipped_steps=[SkippedStepOut.model_validate(s) for s in result.skipped_steps],
    )


@router.get(
    "/{expense_id}/approvals",
    response_model=list[HistoryItem],
    summary="Approval history of one expense",
)
def approval_history(
    expense_id: uuid.UUID,
    current_user: CurrentUser,
    uow: Annotated[SqlAlchemyUnitOfWork, Depends(get_uow)],
):
    return queries.get_history(uow, expense_id, current_user)
