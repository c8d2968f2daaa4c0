from expense_approvals.models.user import Company, User, ROLES, HISTORY_VIEWER_ROLES
from expense_approvals.models.expense import Expense, ExpenseStatus
from expense_approvals.models.approval import (
    ApprovalFlow,
    ApprovalFlowStep,
    ApprovalRequest,
    Decision,
    RequestStatus,
    RuleType,
)
from expense_approvals.models.audit import AuditLog

__all__ = [
    "Company", "User", "ROLES", "HISTORY_VIEWER_ROLES",
    "Expense", "ExpenseStatus",
    "ApprovalFlow", "ApprovalFlowStep", "ApprovalRequest",
    "Decision", "RequestStatus", "RuleType",
    "AuditLog",
]
