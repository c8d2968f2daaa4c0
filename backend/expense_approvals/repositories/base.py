"""Narrow storage interfaces consumed by the approval engine.

The engine never touches a Session directly. It talks to these protocols
through a unit of work, so it runs unchanged against the SQLAlchemy
implementation (``repositories.sql``) or any in-memory stand-in.
"""
import uuid
from datetime import datetime
from typing import Any, Protocol

from expense_approvals.models import (
    ApprovalFlow,
    ApprovalFlowStep,
    ApprovalRequest,
    AuditLog,
    Expense,
    User,
)


class FlowRepository(Protocol):
    def add(self, flow: ApprovalFlow) -> ApprovalFlow: ...

    def get(self, flow_id: uuid.UUID, company_id: uuid.UUID | None = None) -> ApprovalFlow | None: ...

    def list_for_company(self, company_id: uuid.UUID) -> list[ApprovalFlow]: ...

    def first_for_company(self, company_id: uuid.UUID) -> ApprovalFlow | None: ...

    def delete(self, flow: ApprovalFlow) -> None: ...


class StepRepository(Protocol):
    def for_flow(self, flow_id: uuid.UUID) -> list[ApprovalFlowStep]: ...

    def replace(self, flow: ApprovalFlow, steps: list[ApprovalFlowStep]) -> list[ApprovalFlowStep]: ...


class RequestRepository(Protocol):
    def add(self, request: ApprovalRequest) -> ApprovalRequest: ...

    def get(self, request_id: uuid.UUID) -> ApprovalRequest | None: ...

    def for_expense(self, expense_id: uuid.UUID) -> list[ApprovalRequest]: ...

    def transition(
        self, request_id: uuid.UUID, status: str, comment: str | None, decided_at: datetime
    ) -> bool:
        """Move a PENDING request to ``status``. False if it was not PENDING."""
        ...

    def force(
        self, request_id: uuid.UUID, status: str, comment: str | None, decided_at: datetime
    ) -> None: ...

    def list_for_approver(
        self,
        approver_id: uuid.UUID,
        statuses: tuple[str, ...],
        order: str,
        offset: int,
        limit: int,
    ) -> tuple[list[ApprovalRequest], int]: ...

    def list_for_company(
        self, company_id: uuid.UUID, status: str | None, offset: int, limit: int
    ) -> tuple[list[ApprovalRequest], int]: ...

    def count_by_status(self, company_id: uuid.UUID) -> dict[str, int]: ...


class ExpenseRepository(Protocol):
    def get(self, expense_id: uuid.UUID, for_update: bool = False) -> Expense | None: ...

    def set_status(self, expense_id: uuid.UUID, status: str, expected_version: int) -> bool:
        """Compare-and-swap on ``version``. False if the row moved underneath us."""
        ...

    def attach_flow(self, expense_id: uuid.UUID, flow_id: uuid.UUID) -> None: ...

    def detach_flow(self, flow_id: uuid.UUID) -> int: ...


class UserRepository(Protocol):
    def get(self, user_id: uuid.UUID) -> User | None: ...

    def with_role(self, company_id: uuid.UUID, role: str) -> list[User]:
        """Active members of the company holding ``role``, oldest first."""
        ...


class AuditRepository(Protocol):
    def add(self, entry: AuditLog) -> AuditLog: ...


class UnitOfWork(Protocol):
    flows: FlowRepository
    steps: StepRepository
    requests: RequestRepository
    expenses: ExpenseRepository
    users: UserRepository
    audit: AuditRepository

    def commit(self) -> None: ...

    def rollback(self) -> None: ...

    def flush(self) -> Any: ...
