"""Approval workflow engine: request generation, decisions and overrides.

All operations run against a ``UnitOfWork`` and finish with exactly one
commit. Any exception rolls the unit of work back and propagates, so the
request write and the expense write land together or not at all.

Concurrency model: every operation that writes an expense first locks its
row (``SELECT … FOR UPDATE``). Request transitions are conditional updates
(``WHERE status = 'PENDING'``) and expense writes compare-and-swap on
``Expense.version``. Two approvers racing on the last two pending requests
are therefore serialised, and the second one observes the first one's
approval and finalizes the expense.
"""
import logging
import uuid
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime

from expense_approvals.core.config import settings
from expense_approvals.core.exceptions import (
    ConcurrentUpdateError,
    ConflictError,
    ForbiddenError,
    NotFoundError,
    ValidationError,
)
from expense_approvals.db.base import utcnow
from expense_approvals.models import (
    ApprovalFlowStep,
    ApprovalRequest,
    Decision,
    Expense,
    ExpenseStatus,
    RequestStatus,
)
from expense_approvals.repositories.base import UnitOfWork
from expense_approvals.services import audit as audit_svc
from expense_approvals.services.aggregation import UnanimousPolicy, policy_for
from expense_approvals.services.resolver import ApproverResolver

logger = logging.getLogger(__name__)

_ACTION_ALIASES = {
    "approve": Decision.APPROVE,
    "approved": Decision.APPROVE,
    "reject": Decision.REJECT,
    "rejected": Decision.REJECT,
}


@dataclass
class SkippedStep:
    step_order: int
    role: str | None
    specific_user_id: uuid.UUID | None
    reason: str = "no approver resolved"


@dataclass
class SubmissionResult:
    expense_id: uuid.UUID
    status: str
    requests: list[ApprovalRequest] = field(default_factory=list)
    skipped_steps: list[SkippedStep] = field(default_factory=list)

    @property
    def auto_approved(self) -> bool:
        return not self.requests


@dataclass
class DecisionOutcome:
    expense_id: uuid.UUID
    expense_status: str
    message: str
    request: ApprovalRequest


def parse_decision(action: Decision | str) -> Decision:
    """Accept APPROVE/REJECT in any case, plus the APPROVED/REJECTED status spelling."""
    if isinstance(action, Decision):
        return action
    decision = _ACTION_ALIASES.get(str(action).strip().lower())
    if decision is None:
        raise ValidationError("Action must be approve or reject")
    return decision


def _decision_message(decision: Decision, before: str, after: str, unanimous: bool) -> str:
    if decision is Decision.APPROVE:
        if after == ExpenseStatus.APPROVED.value:
            if before == ExpenseStatus.APPROVED.value:
                return "Approval recorded, expense already approved"
            if unanimous:
                return "Expense approved - all approvals received"
            return "Expense approved - approval rule satisfied"
        if after == ExpenseStatus.PENDING.value:
            return "Approval recorded, waiting for remaining approvals"
        return "Approval recorded, expense already rejected"
    if after == ExpenseStatus.REJECTED.value:
        if before == ExpenseStatus.REJECTED.value:
            return "Rejection recorded, expense already rejected"
        return "Expense rejected"
    if after == ExpenseStatus.PENDING.value:
        return "Rejection recorded, waiting for remaining approvals"
    return "Rejection recorded, expense already approved"


class ApprovalEngine:
    """Materializes approval requests and folds decisions into expense status.

    Args:
        uow: Unit of work over the flow, step, request, expense, user and audit
            repositories.
        resolver: Step → approver resolution; defaults to an ``ApproverResolver``
            using the ``APPROVER_TIE_BREAK`` setting.
        rule_type_policies: Aggregate by the flow's ``rule_type`` instead of the
            default unanimous policy. Defaults to ``RULE_TYPE_POLICIES_ENABLED``.
        clock: Source of ``decided_at`` timestamps.
    """

    def __init__(
        self,
        uow: UnitOfWork,
        resolver: ApproverResolver | None = None,
        rule_type_policies: bool | None = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.uow = uow
        self.resolver = resolver or ApproverResolver(uow.users, settings.APPROVER_TIE_BREAK)
        if rule_type_policies is None:
            rule_type_policies = settings.RULE_TYPE_POLICIES_ENABLED
        self.rule_type_policies = rule_type_policies
        self.clock = clock

    # ─── Submission ───

    def submit_expense(self, expense_id: uuid.UUID, actor_id: uuid.UUID | None = None) -> SubmissionResult:
        """Generate one PENDING request per resolvable step of the company's flow.

        With no flow, an empty flow, or no resolvable approver at all, the
        expense is approved on the spot with zero requests.
        """
        uow = self.uow
        try:
            expense = self._lock_expense(expense_id)
            if expense.status != ExpenseStatus.PENDING.value:
                raise ConflictError(f"Expense is already {expense.status}")
            if uow.requests.for_expense(expense.id):
                raise ConflictError("Approval requests were already generated for this expense")

            flow = uow.flows.first_for_company(expense.company_id)
            steps = uow.steps.for_flow(flow.id) if flow is not None else []

            result = SubmissionResult(expense_id=expense.id, status=expense.status)
            for step in steps:
                approver_id = self.resolver.resolve(step, expense.company_id)
                if approver_id is None:
                    result.skipped_steps.append(self._skip_step(expense, step, actor_id))
                    continue
                result.requests.append(
                    uow.requests.add(
                        ApprovalRequest(
                            expense_id=expense.id,
                            approver_id=approver_id,
                            step_order=step.step_order,
                            status=RequestStatus.PENDING.value,
                        )
                    )
                )

            if result.auto_approved:
                self._write_status(expense, ExpenseStatus.APPROVED.value)
                result.status = ExpenseStatus.APPROVED.value
                audit_svc.log(
                    uow,
                    action="expense_auto_approved",
                    entity_type="expense",
                    entity_id=expense.id,
                    actor_id=actor_id,
                    before={"status": ExpenseStatus.PENDING.value},
                    after={"status": result.status},
                    notes="No approval flow or no resolvable approver",
                )
            else:
                uow.expenses.attach_flow(expense.id, flow.id)
                audit_svc.log(
                    uow,
                    action="approval_requests_created",
                    entity_type="expense",
                    entity_id=expense.id,
                    actor_id=actor_id,
                    after={
                        "flow_id": flow.id,
                        "requests": [
                            {"request_id": r.id, "approver_id": r.approver_id, "step_order": r.step_order}
                            for r in result.requests
                        ],
                    },
                )
            uow.commit()
        except Exception:
            uow.rollback()
            raise

        logger.info(
            "Expense submitted: expense=%s status=%s requests=%d skipped=%d",
            expense_id, result.status, len(result.requests), len(result.skipped_steps),
        )
        return result

    def _skip_step(self, expense: Expense, step: ApprovalFlowStep, actor_id: uuid.UUID | None) -> SkippedStep:
        skipped = SkippedStep(
            step_order=step.step_order,
            role=step.role,
            specific_user_id=step.specific_user_id,
        )
        logger.warning(
            "Approval step skipped: expense=%s step=%s role=%s (no approver in company %s)",
            expense.id, step.step_order, step.role, expense.company_id,
        )
        audit_svc.log(
            self.uow,
            action="approval_step_skipped",
            entity_type="expense",
            entity_id=expense.id,
            actor_id=actor_id,
            after={"step_order": step.step_order, "role": step.role, "flow_id": step.flow_id},
            notes=skipped.reason,
        )
        return skipped

    # ─── Ordinary decision ───

    def decide(
        self,
        request_id: uuid.UUID,
        actor_id: uuid.UUID,
        action: Decision | str,
        comment: str | None = None,
    ) -> DecisionOutcome:
        """Apply an approver's verdict to one request and recompute the expense status.

        Raises:
            ValidationError: ``action`` is not approve/reject.
            NotFoundError: the request (or its expense) does not exist.
            ForbiddenError: ``actor_id`` is neither the assigned approver nor an ADMIN
                of the expense's company.
            ConflictError: the request was already decided.
        """
        decision = parse_decision(action)
        uow = self.uow
        try:
            request = uow.requests.get(request_id)
            if request is None:
                raise NotFoundError("Approval request not found")
            expense = self._lock_expense(request.expense_id)
            if request.approver_id != actor_id:
                actor = uow.users.get(actor_id)
                if actor is None or not actor.admin_of(expense.company_id):
                    raise ForbiddenError("Not authorized to decide this request")
            if request.status != RequestStatus.PENDING.value:
                raise ConflictError("Request already processed")

            before = {"request_status": request.status, "expense_status": expense.status}

            if not uow.requests.transition(request.id, decision.status, comment, self.clock()):
                raise ConflictError("Request already processed")

            requests = uow.requests.for_expense(expense.id)
            flow = None
            if self.rule_type_policies and expense.approval_flow_id is not None:
                flow = uow.flows.get(expense.approval_flow_id)
            policy = policy_for(flow, self.rule_type_policies)

            new_status = expense.status
            target = policy.resolve(expense.status, decision, request, requests)
            if target is not None and target != expense.status:
                self._write_status(expense, target)
                new_status = target

            audit_svc.log(
                uow,
                action="approval_request_decided",
                entity_type="approval_request",
                entity_id=request.id,
                actor_id=actor_id,
                before=before,
                after={"request_status": decision.status, "expense_status": new_status},
                notes=comment,
            )
            uow.commit()
        except Exception:
            uow.rollback()
            raise

        logger.info(
            "Approval decision: request=%s action=%s actor=%s expense=%s status=%s",
            request_id, decision.value, actor_id, request.expense_id, new_status,
        )
        return DecisionOutcome(
            expense_id=request.expense_id,
            expense_status=new_status,
            message=_decision_message(
                decision, before["expense_status"], new_status, isinstance(policy, UnanimousPolicy)
            ),
            request=request,
        )

    # ─── Administrative override ───

    def override(
        self,
        request_id: uuid.UUID,
        actor_id: uuid.UUID,
        action: Decision | str,
        comment: str | None = None,
    ) -> DecisionOutcome:
        """Force a request and its expense to ``action``, whatever their current state.

        No PENDING check and no aggregation: this is the only path that can
        un-approve or un-reject an expense.
        """
        decision = parse_decision(action)
        uow = self.uow
        try:
            actor = uow.users.get(actor_id)
            if actor is None or not actor.is_admin:
                raise ForbiddenError("Admin access required")
            request = uow.requests.get(request_id)
            if request is None:
                raise NotFoundError("Approval request not found")

            expense = self._lock_expense(request.expense_id)
            if not actor.admin_of(expense.company_id):
                raise ForbiddenError("Admin access required")
            before = {"request_status": request.status, "expense_status": expense.status}
            comment = comment or f"Admin override: {decision.value.lower()}"

            uow.requests.force(request.id, decision.status, comment, self.clock())
            self._write_status(expense, decision.status)

            audit_svc.log(
                uow,
                action="expense_overridden",
                entity_type="approval_request",
                entity_id=request.id,
                actor_id=actor_id,
                before=before,
                after={"request_status": decision.status, "expense_status": decision.status},
                notes=comment,
            )
            uow.commit()
        except Exception:
            uow.rollback()
            raise

        logger.info(
            "Admin override: request=%s action=%s admin=%s expense=%s (was %s)",
            request_id, decision.value, actor_id, request.expense_id, before["expense_status"],
        )
        label = "approved" if decision is Decision.APPROVE else "rejected"
        return DecisionOutcome(
            expense_id=request.expense_id,
            expense_status=decision.status,
            message=f"Expense {label} by admin override",
            request=uow.requests.get(request.id) or request,
        )

    # ─── Helpers ───

    def _lock_expense(self, expense_id: uuid.UUID) -> Expense:
        expense = self.uow.expenses.get(expense_id, for_update=True)
        if expense is None:
            raise NotFoundError("Expense not found")
        return expense

    def _write_status(self, expense: Expense, status: str) -> None:
        if not self.uow.expenses.set_status(expense.id, status, expected_version=expense.version):
            raise ConcurrentUpdateError(
                f"Expense {expense.id} changed while being updated; retry the operation"
            )
