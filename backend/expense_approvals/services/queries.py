"""Read-side views over approval requests: queues, history, company feed."""
import math
import uuid
from dataclasses import dataclass, field
from typing import Any

from expense_approvals.core.config import settings
from expense_approvals.core.exceptions import ForbiddenError, NotFoundError, ValidationError
from expense_approvals.models import HISTORY_VIEWER_ROLES, ApprovalRequest, RequestStatus, User
from expense_approvals.repositories.base import UnitOfWork

PENDING_ORDERS = ("newest", "step_order")
_DECIDED = (RequestStatus.APPROVED.value, RequestStatus.REJECTED.value)


@dataclass
class Page:
    page: int
    limit: int
    total: int
    items: list[Any] = field(default_factory=list)

    @property
    def pages(self) -> int:
        return math.ceil(self.total / self.limit) if self.total else 0


@dataclass
class CompanyStats:
    total: int
    pending: int
    approved: int
    rejected: int


def clamp_paging(page: int | None, limit: int | None) -> tuple[int, int]:
    """Normalise page/limit: page >= 1, 1 <= limit <= MAX_PAGE_SIZE."""
    page = max(page or 1, 1)
    limit = limit or settings.DEFAULT_PAGE_SIZE
    limit = min(max(limit, 1), settings.MAX_PAGE_SIZE)
    return page, limit


def _require_admin(caller: User) -> None:
    if not caller.is_admin:
        raise ForbiddenError("Admin access required")


def list_pending(
    uow: UnitOfWork,
    caller: User,
    page: int | None = 1,
    limit: int | None = None,
    order: str = "newest",
) -> Page:
    """The caller's PENDING requests, newest first or by step_order."""
    if order not in PENDING_ORDERS:
        raise ValidationError(f"Order must be one of: {', '.join(PENDING_ORDERS)}")
    page, limit = clamp_paging(page, limit)
    items, total = uow.requests.list_for_approver(
        caller.id,
        (RequestStatus.PENDING.value,),
        order,
        offset=(page - 1) * limit,
        limit=limit,
    )
    return Page(page=page, limit=limit, total=total, items=items)


def list_my_approvals(
    uow: UnitOfWork,
    caller: User,
    page: int | None = 1,
    limit: int | None = None,
    include_resolved: bool = True,
) -> Page:
    """Requests assigned to the caller.

    With ``include_resolved`` the caller's decided requests are returned, most
    recent decision first; without it this is the pending queue.
    """
    if not include_resolved:
        return list_pending(uow, caller, page, limit)
    page, limit = clamp_paging(page, limit)
    items, total = uow.requests.list_for_approver(
        caller.id, _DECIDED, "decided", offset=(page - 1) * limit, limit=limit
    )
    return Page(page=page, limit=limit, total=total, items=items)


def get_history(uow: UnitOfWork, expense_id: uuid.UUID, caller: User) -> list[ApprovalRequest]:
    expense = uow.expenses.get(expense_id)
    if expense is None:
        raise NotFoundError("Expense not found")
    if expense.user_id != caller.id and not (
        caller.role in HISTORY_VIEWER_ROLES and caller.company_id == expense.company_id
    ):
        raise ForbiddenError("Not authorized to view this expense's approval history")
    return uow.requests.for_expense(expense.id)


def list_company_approvals(
    uow: UnitOfWork,
    caller: User,
    status: str | None = None,
    page: int | None = 1,
    limit: int | None = None,
) -> Page:
    _require_admin(caller)
    if status:
        status = status.upper()
        if status not in {s.value for s in RequestStatus}:
            raise ValidationError(
                f"Status must be one of: {', '.join(s.value for s in RequestStatus)}"
            )
    else:
        status = None
    page, limit = clamp_paging(page, limit)
    items, total = uow.requests.list_for_company(
        caller.company_id, status, offset=(page - 1) * limit, limit=limit
    )
    return Page(page=page, limit=limit, total=total, items=items)


def company_stats(uow: UnitOfWork, caller: User) -> CompanyStats:
    _require_admin(caller)
    counts = uow.requests.count_by_status(caller.company_id)
    return CompanyStats(
        total=sum(counts.values()),
        pending=counts.get(RequestStatus.PENDING.value, 0),
        approved=counts.get(RequestStatus.APPROVED.value, 0),
        rejected=counts.get(RequestStatus.REJECTED.value, 0),
    )


def can_user_approve(uow: UnitOfWork, user_id: uuid.UUID, request_id: uuid.UUID) -> bool:
    request = uow.requests.get(request_id)
    if request is None:
        return False
    if request.approver_id == user_id:
        return True
    user = uow.users.get(user_id)
    if user is None:
        return False
    expense = uow.expenses.get(request.expense_id)
    return expense is not None and user.admin_of(expense.company_id)
