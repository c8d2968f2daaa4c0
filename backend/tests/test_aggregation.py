"""Tests for expense status aggregation policies (pure, no database)."""
import uuid

import pytest

from expense_approvals.models import ApprovalFlow, ApprovalRequest, Decision
from expense_approvals.services.aggregation import (
    HybridPolicy,
    PercentagePolicy,
    SpecificApproverPolicy,
    UnanimousPolicy,
    policy_for,
)


# ─── Helpers ──────────────────────────────────────────────────────────────────

def _requests(*statuses: str, approvers: list[uuid.UUID] | None = None) -> list[ApprovalRequest]:
    approvers = approvers or [uuid.uuid4() for _ in statuses]
    return [
        ApprovalRequest(
            id=uuid.uuid4(),
            expense_id=uuid.uuid4(),
            approver_id=approver,
            step_order=position,
            status=status,
        )
        for position, (status, approver) in enumerate(zip(statuses, approvers), start=1)
    ]


# ─── Unanimous ────────────────────────────────────────────────────────────────

def test_unanimous_waits_for_pending_siblings():
    requests = _requests("PENDING", "PENDING")
    assert UnanimousPolicy().resolve("PENDING", Decision.APPROVE, requests[0], requests) is None


def test_unanimous_approves_on_last_pending():
    requests = _requests("APPROVED", "PENDING")
    assert UnanimousPolicy().resolve("PENDING", Decision.APPROVE, requests[1], requests) == "APPROVED"


def test_unanimous_reject_short_circuits():
    requests = _requests("PENDING", "PENDING", "PENDING")
    assert UnanimousPolicy().resolve("PENDING", Decision.REJECT, requests[1], requests) == "REJECTED"


def test_unanimous_approval_never_un_rejects():
    requests = _requests("REJECTED", "PENDING")
    assert UnanimousPolicy().resolve("REJECTED", Decision.APPROVE, requests[1], requests) is None


def test_decided_request_counts_with_new_status_even_if_stale():
    # The sibling list may still show the decided request as PENDING.
    requests = _requests("APPROVED", "PENDING")
    assert UnanimousPolicy().resolve("PENDING", Decision.APPROVE, requests[1], requests) == "APPROVED"


# ─── Percentage ───────────────────────────────────────────────────────────────

@pytest.mark.parametrize("statuses, decided_index, decision, expected", [
    (("PENDING", "PENDING", "PENDING", "PENDING"), 0, Decision.APPROVE, None),
    (("APPROVED", "PENDING", "PENDING", "PENDING"), 1, Decision.APPROVE, "APPROVED"),
    (("REJECTED", "PENDING", "PENDING", "PENDING"), 1, Decision.REJECT, None),
    (("REJECTED", "REJECTED", "PENDING", "PENDING"), 2, Decision.REJECT, "REJECTED"),
])
def test_percentage_threshold_50(statuses, decided_index, decision, expected):
    requests = _requests(*statuses)
    policy = PercentagePolicy(50)
    assert policy.resolve("PENDING", decision, requests[decided_index], requests) == expected


def test_percentage_leaves_final_expense_alone():
    requests = _requests("APPROVED", "PENDING")
    assert PercentagePolicy(50).resolve("REJECTED", Decision.APPROVE, requests[1], requests) is None


# ─── Specific approver ────────────────────────────────────────────────────────

def test_specific_approver_approval_is_final():
    cfo = uuid.uuid4()
    requests = _requests("PENDING", "PENDING", approvers=[uuid.uuid4(), cfo])
    policy = SpecificApproverPolicy(cfo)
    assert policy.resolve("PENDING", Decision.APPROVE, requests[1], requests) == "APPROVED"


def test_specific_approver_rejection_is_final():
    cfo = uuid.uuid4()
    requests = _requests("APPROVED", "PENDING", approvers=[uuid.uuid4(), cfo])
    assert SpecificApproverPolicy(cfo).resolve("PENDING", Decision.REJECT, requests[1], requests) == "REJECTED"


def test_other_approvers_fall_back_to_unanimous():
    cfo = uuid.uuid4()
    requests = _requests("PENDING", "PENDING", approvers=[uuid.uuid4(), cfo])
    policy = SpecificApproverPolicy(cfo)
    assert policy.resolve("PENDING", Decision.APPROVE, requests[0], requests) is None
    assert policy.resolve("PENDING", Decision.REJECT, requests[0], requests) == "REJECTED"


# ─── Hybrid ───────────────────────────────────────────────────────────────────

def test_hybrid_named_approver_wins():
    cfo = uuid.uuid4()
    requests = _requests("PENDING", "PENDING", "PENDING", approvers=[uuid.uuid4(), uuid.uuid4(), cfo])
    policy = HybridPolicy(100, cfo)
    assert policy.resolve("PENDING", Decision.APPROVE, requests[2], requests) == "APPROVED"


def test_hybrid_threshold_path():
    cfo = uuid.uuid4()
    requests = _requests("APPROVED", "PENDING", "PENDING", approvers=[uuid.uuid4(), uuid.uuid4(), cfo])
    policy = HybridPolicy(60, cfo)
    assert policy.resolve("PENDING", Decision.APPROVE, requests[1], requests) == "APPROVED"


def test_hybrid_rejects_when_neither_path_remains():
    cfo = uuid.uuid4()
    requests = _requests("REJECTED", "PENDING", "REJECTED", approvers=[uuid.uuid4(), uuid.uuid4(), cfo])
    policy = HybridPolicy(60, cfo)
    assert policy.resolve("PENDING", Decision.REJECT, requests[0], requests) == "REJECTED"


def test_hybrid_keeps_waiting_while_a_path_is_open():
    cfo = uuid.uuid4()
    requests = _requests("REJECTED", "PENDING", "PENDING", approvers=[uuid.uuid4(), uuid.uuid4(), cfo])
    policy = HybridPolicy(60, cfo)
    assert policy.resolve("PENDING", Decision.REJECT, requests[0], requests) is None


# ─── policy_for ───────────────────────────────────────────────────────────────

def test_policy_for_defaults_to_unanimous_when_disabled():
    flow = ApprovalFlow(rule_type="PERCENTAGE", percentage_threshold=50)
    assert isinstance(policy_for(flow, rule_type_policies=False), UnanimousPolicy)
    assert isinstance(policy_for(None, rule_type_policies=True), UnanimousPolicy)


def test_policy_for_selects_by_rule_type_when_enabled():
    approver = uuid.uuid4()
    assert isinstance(
        policy_for(ApprovalFlow(rule_type="PERCENTAGE", percentage_threshold=50), True), PercentagePolicy
    )
    assert isinstance(
        policy_for(ApprovalFlow(rule_type="SPECIFIC", specific_approver_id=approver), True),
        SpecificApproverPolicy,
    )
    assert isinstance(
        policy_for(ApprovalFlow(rule_type="HYBRID", percentage_threshold=50), True), HybridPolicy
    )
    assert isinstance(policy_for(ApprovalFlow(rule_type="UNANIMOUS"), True), UnanimousPolicy)
