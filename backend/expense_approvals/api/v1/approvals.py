"""Approval request endpoints (JWT required).

  GET  /approvals                       - my queue (or my decided requests)
  GET  /approvals/pending               - my pending requests, paginated
  GET  /approvals/company/all           - company feed (ADMIN)
  GET  /approvals/company/stats         - request counts by status (ADMIN)
  POST /approvals/{request_id}/approve
  POST /approvals/{request_id}/reject
  POST /approvals/{request_id}/override - force a decision (ADMIN)
"""
import logging
import uuid
from decimal import Decimal
from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request

from expense_approvals.core.config import settings
from expense_approvals.core.deps import get_current_user, get_uow, require_role
from expense_approvals.core.limiter import limiter
from expense_approvals.models import ApprovalRequest, Decision, User
from expense_approvals.repositories import SqlAlchemyUnitOfWork
from expense_approvals.schemas.approval import (
    ApprovalListResponse,
    ApprovalRequestOut,
    DecisionRequest,
    DecisionResult,
    OverrideRequest,
    Pagination,
    StatsOut,
)
from expense_approvals.services import queries
from expense_approvals.services.approval import ApprovalEngine, DecisionOutcome

logger = logging.getLogger(__name__)

router = APIRouter()

CurrentUser = Annotated[User, Depends(get_current_user)]
AdminUser = Annotated[User, Depends(require_role("ADMIN"))]
Uow = Annotated[SqlAlchemyUnitOfWork, Depends(get_uow)]


# ─── Serialisation helpers ───

def _request_out(approval: ApprovalRequest) -> ApprovalRequestOut:
    out = ApprovalRequestOut.model_validate(approval)
    expense = approval.expense
    if expense is not None:
        out.expense_status = expense.status
        out.amount = Decimal(str(expense.amount)) if expense.amount is not None else None
        out.currency = expense.currency
        out.category = expense.category
    return out


def _list_response(page: queries.Page) -> ApprovalListResponse:
    return ApprovalListResponse(
        items=[_request_out(r) for r in page.items],
        pagination=Pagination(page=page.page, limit=page.limit, total=page.total, pages=page.pages),
    )


def _decision_result(outcome: DecisionOutcome) -> DecisionResult:
    return DecisionResult(
        expense_id=outcome.expense_id,
        expense_status=outcome.expense_status,
        message=outcome.message,
        request=ApprovalRequestOut.model_validate(outcome.request),
    )


# ─── Queues ───

@router.get("", response_model=ApprovalListResponse, summary="List my approval requests")
def list_my_approvals(
    current_user: CurrentUser,
    uow: Uow,
    include_resolved: bool = Query(False, description="If true, return decided requests instead of pending"),
    page: int = Query(1, ge=1),
    limit: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
):
    return _list_response(
        queries.list_my_approvals(uow, current_user, page, limit, include_resolved=include_resolved)
    )


@router.get("/pending", response_model=ApprovalListResponse, summary="List my pending approval requests")
def list_pending(
    current_user: CurrentUser,
    uow: Uow,
    page: int = Query(1, ge=1),
    limit: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    order: str = Query("newest", description="newest or step_order"),
):
    return _list_response(queries.list_pending(uow, current_user, page, limit, order))


@router.get("/company/all", response_model=ApprovalListResponse, summary="All approval requests in my company")
def list_company_approvals(
    current_user: AdminUser,
    uow: Uow,
    status: str | None = Query(None, description="PENDING, APPROVED or REJECTED"),
    page: int = Query(1, ge=1),
    limit: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
):
    return _list_response(queries.list_company_approvals(uow, current_user, status, page, limit))


@router.get("/company/stats", response_model=StatsOut, summary="Approval request counts by status")
def company_stats(current_user: AdminUser, uow: Uow):
    stats = queries.company_stats(uow, current_user)
    return StatsOut(
        total=stats.total, pending=stats.pending, approved=stats.approved, rejected=stats.rejected
    )


# ─── Decisions ───

@router.post("/{request_id}/approve", response_model=DecisionResult, summary="Approve a request")
@limiter.limit(settings.DECISION_RATE_LIMIT)
def approve_request(
    request: Request,
    request_id: uuid.UUID,
    current_user: CurrentUser,
    uow: Uow,
    body: DecisionRequest | None = None,
):
    outcome = ApprovalEngine(uow).decide(
        request_id, current_user.id, Decision.APPROVE, body.comment if body else None
    )
    return _decision_result(outcome)


@router.post("/{request_id}/reject", response_model=DecisionResult, summary="Reject a request")
@limiter.limit(settings.DECISION_RATE_LIMIT)
def reject_request(
    request: Request,
    request_id: uuid.UUID,
    current_user: CurrentUser,
    uow: Uow,
    body: DecisionRequest | None = None,
):
    outcome = ApprovalEngine(uow).decide(
        request_id, current_user.id, Decision.REJECT, body.comment if body else None
    )
    return _decision_result(outcome)


@router.post("/{request_id}/override", response_model=DecisionResult, summary="Force a decision (admin)")
def override_request(
    request_id: uuid.UUID,
    body: OverrideRequest,
    current_user: CurrentUser,
    uow: Uow,
):
    # Admin check lives in ApprovalEngine.override.
    outcome = ApprovalEngine(uow).override(request_id, current_user.id, body.action, body.comment)
    return _decision_result(outcome)
