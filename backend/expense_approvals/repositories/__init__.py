"""Approval engine repositories."""
from expense_approvals.repositories.base import (
    AuditRepository,
    ExpenseRepository,
    FlowRepository,
    RequestRepository,
    StepRepository,
    UnitOfWork,
    UserRepository,
)
from expense_approvals.repositories.sql import SqlAlchemyUnitOfWork

__all__ = [
    "AuditRepository", "ExpenseRepository", "FlowRepository", "RequestRepository",
    "StepRepository", "UnitOfWork", "UserRepository",
    "SqlAlchemyUnitOfWork",
]
