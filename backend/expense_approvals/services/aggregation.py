"""Expense status aggregation after an ordinary decision.

Every policy answers one question: given the expense's current status, the
decision just applied, and the fresh state of all the expense's requests,
which status should the expense move to (``None`` = leave it alone)?

``UnanimousPolicy`` is the behaviour the engine always applies unless
``RULE_TYPE_POLICIES_ENABLED`` is set; it ignores the flow's rule type. The
other policies are selected from the flow's ``rule_type`` only when that
setting is on.
"""
import uuid
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Protocol

from expense_approvals.models import ApprovalFlow, ApprovalRequest, Decision, ExpenseStatus, RequestStatus, RuleType

PENDING = ExpenseStatus.PENDING.value
APPROVED = ExpenseStatus.APPROVED.value
REJECTED = ExpenseStatus.REJECTED.value


@dataclass(frozen=True)
class Tally:
    total: int
    approved: int
    rejected: int
    pending: int

    def share_met(self, threshold: int) -> bool:
        return self.approved * 100 >= threshold * self.total

    def share_reachable(self, threshold: int) -> bool:
        return (self.approved + self.pending) * 100 >= threshold * self.total


def _effective_status(request: ApprovalRequest, decided: ApprovalRequest, decision: Decision) -> str:
    return decision.status if request.id == decided.id else request.status


def tally(
    requests: Sequence[ApprovalRequest], decided: ApprovalRequest, decision: Decision
) -> Tally:
    statuses = [_effective_status(r, decided, decision) for r in requests]
    if decided.id not in {r.id for r in requests}:
        statuses.append(decision.status)
    return Tally(
        total=len(statuses),
        approved=statuses.count(RequestStatus.APPROVED.value),
        rejected=statuses.count(RequestStatus.REJECTED.value),
        pending=statuses.count(RequestStatus.PENDING.value),
    )


class AggregationPolicy(Protocol):
    def resolve(
        self,
        expense_status: str,
        decision: Decision,
        decided: ApprovalRequest,
        requests: Sequence[ApprovalRequest],
    ) -> str | None: ...


class UnanimousPolicy:
    """Every request must approve; the first rejection finalizes the expense.

    A rejection is written unconditionally (siblings stay PENDING and are
    orphaned). An approval only finalizes an expense that is still PENDING,
    so a rejection always wins and an ordinary decision never un-rejects.
    """

    def resolve(self, expense_status, decision, decided, requests):
        if decision is Decision.REJECT:
            return REJECTED
        if expense_status == PENDING and tally(requests, decided, decision).pending == 0:
            return APPROVED
        return None


class PercentagePolicy:
    """Approve once the approved share reaches the threshold; reject once it cannot."""

    def __init__(self, threshold: int):
        self.threshold = threshold

    def resolve(self, expense_status, decision, decided, requests):
        if expense_status != PENDING:
            return None
        counts = tally(requests, decided, decision)
        if counts.share_met(self.threshold):
            return APPROVED
        if not counts.share_reachable(self.threshold):
            return REJECTED
        return None


class SpecificApproverPolicy:
    """The named approver's verdict is final; other verdicts aggregate as ``fallback``."""

    def __init__(self, approver_id: uuid.UUID, fallback: AggregationPolicy | None = None):
        self.approver_id = approver_id
        self.fallback = fallback or UnanimousPolicy()

    def resolve(self, expense_status, decision, decided, requests):
        if decided.approver_id == self.approver_id:
            if decision is Decision.REJECT:
                return REJECTED
            return APPROVED if expense_status == PENDING else None
        return self.fallback.resolve(expense_status, decision, decided, requests)


class HybridPolicy:
    """Approve when the named approver approves OR the threshold is met.

    Reject once neither path can still succeed. A path that is not
    configured (no threshold, or the named approver holds no request on this
    expense) counts as unavailable; with both unavailable the policy behaves
    like ``UnanimousPolicy``.
    """

    def __init__(self, threshold: int | None, approver_id: uuid.UUID | None):
        self.threshold = threshold
        self.approver_id = approver_id

    def resolve(self, expense_status, decision, decided, requests):
        named = [
            _effective_status(r, decided, decision)
            for r in requests
            if self.approver_id is not None and r.approver_id == self.approver_id
        ]
        if self.threshold is None and not named:
            return UnanimousPolicy().resolve(expense_status, decision, decided, requests)
        if expense_status != PENDING:
            return None

        counts = tally(requests, decided, decision)
        if RequestStatus.APPROVED.value in named:
            return APPROVED
        if self.threshold is not None and counts.share_met(self.threshold):
            return APPROVED

        named_possible = RequestStatus.PENDING.value in named
        share_possible = self.threshold is not None and counts.share_reachable(self.threshold)
        if not named_possible and not share_possible:
            return REJECTED
        return None


def policy_for(flow: ApprovalFlow | None, rule_type_policies: bool = False) -> AggregationPolicy:
    """Pick the aggregation policy for an expense generated from ``flow``."""
    if flow is None or not rule_type_policies:
        return UnanimousPolicy()

    if flow.rule_type == RuleType.PERCENTAGE.value and flow.percentage_threshold is not None:
        return PercentagePolicy(flow.percentage_threshold)
    if flow.rule_type == RuleType.SPECIFIC.value and flow.specific_approver_id is not None:
        return SpecificApproverPolicy(flow.specific_approver_id)
    if flow.rule_type == RuleType.HYBRID.value:
        return HybridPolicy(flow.percentage_threshold, flow.specific_approver_id)
    return UnanimousPolicy()
