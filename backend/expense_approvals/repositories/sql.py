"""SQLAlchemy implementations of the engine repositories.

Status writes are single conditional UPDATE statements so that the database,
not the Python process, decides whether a transition is still legal. They run
with ``synchronize_session=False``; every read therefore uses
``populate_existing`` so callers never see a stale identity-map copy.
"""
import uuid
from datetime import datetime

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session, selectinload

from expense_approvals.models import (
    ApprovalFlow,
    ApprovalFlowStep,
    ApprovalRequest,
    AuditLog,
    Expense,
    RequestStatus,
    User,
)

_FRESH = {"populate_existing": True}


# ─── Flows & steps ───

class SqlFlowRepository:
    def __init__(self, session: Session):
        self.session = session

    def add(self, flow: ApprovalFlow) -> ApprovalFlow:
        self.session.add(flow)
        self.session.flush()
        return flow

    def get(self, flow_id: uuid.UUID, company_id: uuid.UUID | None = None) -> ApprovalFlow | None:
        stmt = (
            select(ApprovalFlow)
            .options(selectinload(ApprovalFlow.steps))
            .where(ApprovalFlow.id == flow_id)
            .execution_options(**_FRESH)
        )
        if company_id is not None:
            stmt = stmt.where(ApprovalFlow.company_id == company_id)
        return self.session.execute(stmt).scalars().first()

    def list_for_company(self, company_id: uuid.UUID) -> list[ApprovalFlow]:
        stmt = (
            select(ApprovalFlow)
            .options(selectinload(ApprovalFlow.steps))
            .where(ApprovalFlow.company_id == company_id)
            .order_by(ApprovalFlow.created_at.desc())
            .execution_options(**_FRESH)
        )
        return list(self.session.execute(stmt).scalars().all())

    def first_for_company(self, company_id: uuid.UUID) -> ApprovalFlow | None:
        # "First" is the oldest flow; there is no per-category flow selection.
        stmt = (
            select(ApprovalFlow)
            .options(selectinload(ApprovalFlow.steps))
            .where(ApprovalFlow.company_id == company_id)
            .order_by(ApprovalFlow.created_at.asc(), ApprovalFlow.id.asc())
            .limit(1)
            .execution_options(**_FRESH)
        )
        return self.session.execute(stmt).scalars().first()

    def delete(self, flow: ApprovalFlow) -> None:
        self.session.delete(flow)  # steps go with it (delete-orphan cascade)
        self.session.flush()


class SqlStepRepository:
    def __init__(self, session: Session):
        self.session = session

    def for_flow(self, flow_id: uuid.UUID) -> list[ApprovalFlowStep]:
        stmt = (
            select(ApprovalFlowStep)
            .where(ApprovalFlowStep.flow_id == flow_id)
            .order_by(ApprovalFlowStep.step_order.asc())
            .execution_options(**_FRESH)
        )
        return list(self.session.execute(stmt).scalars().all())

    def replace(self, flow: ApprovalFlow, steps: list[ApprovalFlowStep]) -> list[ApprovalFlowStep]:
        # Flush the deletes first: the unit of work would otherwise insert the
        # new rows before deleting the old ones and trip uq_flow_step_order.
        flow.steps.clear()
        self.session.flush()
        flow.steps.extend(steps)
        self.session.flush()
        return list(flow.steps)


# ─── Approval requests ───

class SqlRequestRepository:
    def __init__(self, session: Session):
        self.session = session

    def add(self, request: ApprovalRequest) -> ApprovalRequest:
        self.session.add(request)
        self.session.flush()
        return request

    def get(self, request_id: uuid.UUID) -> ApprovalRequest | None:
        return self.session.get(ApprovalRequest, request_id, populate_existing=True)

    def for_expense(self, expense_id: uuid.UUID) -> list[ApprovalRequest]:
        stmt = (
            select(ApprovalRequest)
            .where(ApprovalRequest.expense_id == expense_id)
            .order_by(ApprovalRequest.step_order.asc(), ApprovalRequest.created_at.asc())
            .execution_options(**_FRESH)
        )
        return list(self.session.execute(stmt).scalars().all())

    def transition(
        self, request_id: uuid.UUID, status: str, comment: str | None, decided_at: datetime
    ) -> bool:
        result = self.session.execute(
            update(ApprovalRequest)
            .where(
                ApprovalRequest.id == request_id,
                ApprovalRequest.status == RequestStatus.PENDING.value,
            )
            .values(status=status, comment=comment, decided_at=decided_at)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    def force(
        self, request_id: uuid.UUID, status: str, comment: str | None, decided_at: datetime
    ) -> None:
        self.session.execute(
            update(ApprovalRequest)
            .where(ApprovalRequest.id == request_id)
            .values(status=status, comment=comment, decided_at=decided_at)
            .execution_options(synchronize_session=False)
        )

    def list_for_approver(
        self,
        approver_id: uuid.UUID,
        statuses: tuple[str, ...],
        order: str,
        offset: int,
        limit: int,
    ) -> tuple[list[ApprovalRequest], int]:
        filters = [
            ApprovalRequest.approver_id == approver_id,
            ApprovalRequest.status.in_(statuses),
        ]
        total = self.session.scalar(
            select(func.count()).select_from(ApprovalRequest).where(*filters)
        ) or 0

        if order == "step_order":
            ordering = (ApprovalRequest.step_order.asc(), ApprovalRequest.created_at.desc())
        elif order == "decided":
            ordering = (ApprovalRequest.decided_at.desc().nulls_last(), ApprovalRequest.created_at.desc())
        else:
            ordering = (ApprovalRequest.created_at.desc(),)

        stmt = (
            select(ApprovalRequest)
            .options(selectinload(ApprovalRequest.expense))
            .where(*filters)
            .order_by(*ordering)
            .offset(offset)
            .limit(limit)
            .execution_options(**_FRESH)
        )
        return list(self.session.execute(stmt).scalars().all()), total

    def list_for_company(
        self, company_id: uuid.UUID, status: str | None, offset: int, limit: int
    ) -> tuple[list[ApprovalRequest], int]:
        filters = [Expense.company_id == company_id]
        if status is not None:
            filters.append(ApprovalRequest.status == status)

        total = self.session.scalar(
            select(func.count(ApprovalRequest.id))
            .join(Expense, ApprovalRequest.expense_id == Expense.id)
            .where(*filters)
        ) or 0

        stmt = (
            select(ApprovalRequest)
            .join(Expense, ApprovalRequest.expense_id == Expense.id)
            .options(selectinload(ApprovalRequest.expense))
            .where(*filters)
            .order_by(ApprovalRequest.created_at.desc())
            .offset(offset)
            .limit(limit)
            .execution_options(**_FRESH)
        )
        return list(self.session.execute(stmt).scalars().all()), total

    def count_by_status(self, company_id: uuid.UUID) -> dict[str, int]:
        rows = self.session.execute(
            select(ApprovalRequest.status, func.count(ApprovalRequest.id))
            .join(Expense, ApprovalRequest.expense_id == Expense.id)
            .where(Expense.company_id == company_id)
            .group_by(ApprovalRequest.status)
        ).all()
        return {status: count for status, count in rows}


# ─── Expenses ───

class SqlExpenseRepository:
    def __init__(self, session: Session):
        self.session = session

    def get(self, expense_id: uuid.UUID, for_update: bool = False) -> Expense | None:
        stmt = select(Expense).where(Expense.id == expense_id).execution_options(**_FRESH)
        if for_update:
            # Serialises every decision/override on the same expense.
            stmt = stmt.with_for_update()
        return self.session.execute(stmt).scalars().first()

    def set_status(self, expense_id: uuid.UUID, status: str, expected_version: int) -> bool:
        result = self.session.execute(
            update(Expense)
            .where(Expense.id == expense_id, Expense.version == expected_version)
            .values(status=status, version=Expense.version + 1)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    def attach_flow(self, expense_id: uuid.UUID, flow_id: uuid.UUID) -> None:
        self.session.execute(
            update(Expense)
            .where(Expense.id == expense_id)
            .values(approval_flow_id=flow_id)
            .execution_options(synchronize_session=False)
        )

    def detach_flow(self, flow_id: uuid.UUID) -> int:
        result = self.session.execute(
            update(Expense)
            .where(Expense.approval_flow_id == flow_id)
            .values(approval_flow_id=None)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount


# ─── Users & audit ───

class SqlUserRepository:
    def __init__(self, session: Session):
        self.session = session

    def get(self, user_id: uuid.UUID) -> User | None:
        return self.session.get(User, user_id)

    def with_role(self, company_id: uuid.UUID, role: str) -> list[User]:
        stmt = (
            select(User)
            .where(
                User.company_id == company_id,
                User.role == role,
                User.is_active.is_(True),
            )
            .order_by(User.created_at.asc(), User.id.asc())
        )
        return list(self.session.execute(stmt).scalars().all())


class SqlAuditRepository:
    def __init__(self, session: Session):
        self.session = session

    def add(self, entry: AuditLog) -> AuditLog:
        self.session.add(entry)
        self.session.flush()  # get id without committing; caller controls the transaction
        return entry


class SqlAlchemyUnitOfWork:
    """Groups the repositories over one Session; the engine owns commit/rollback."""

    def __init__(self, session: Session):
        self.session = session
        self.flows = SqlFlowRepository(session)
        self.steps = SqlStepRepository(session)
        self.requests = SqlRequestRepository(session)
        self.expenses = SqlExpenseRepository(session)
        self.users = SqlUserRepository(session)
        self.audit = SqlAuditRepository(session)

    def commit(self) -> None:
        self.session.commit()

    def rollback(self) -> None:
        self.session.rollback()

    def flush(self) -> None:
        self.session.flush()
