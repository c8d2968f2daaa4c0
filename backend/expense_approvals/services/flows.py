"""Approval flow definitions: validation and CRUD.

A flow is a company-scoped template: a rule type, the optional
threshold/specific-approver fields, and an ordered list of steps naming a
role or a specific user. ``step_order`` is assigned from list position
(1-based) every time steps are written, and a step list on update replaces
the old one wholesale.
"""
import logging
import uuid
from typing import Any

from expense_approvals.core.exceptions import NotFoundError, ValidationError
from expense_approvals.models import ROLES, ApprovalFlow, ApprovalFlowStep, RuleType
from expense_approvals.repositories.base import UnitOfWork
from expense_approvals.services import audit as audit_svc

logger = logging.getLogger(__name__)

RULE_TYPES = tuple(r.value for r in RuleType)
_FLOW_FIELDS = ("name", "rule_type", "percentage_threshold", "specific_approver_id", "steps")


# ─── Validation ───

def _as_uuid(value: Any) -> uuid.UUID | None:
    if value is None or value == "":
        return None
    if isinstance(value, uuid.UUID):
        return value
    return uuid.UUID(str(value))


def _whole_number(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return int(number) if number.is_integer() else None


def validate_flow(
    name: str | None,
    rule_type: str | None,
    steps: list[dict] | None,
    percentage_threshold: Any = None,
    specific_approver_id: Any = None,
) -> list[str]:
    """Return one message per failed rule; an empty list means the flow is valid."""
    errors: list[str] = []

    if not name or not str(name).strip():
        errors.append("Name is required")
    elif len(str(name).strip()) < 2:
        errors.append("Name must be at least 2 characters")

    if rule_type not in RULE_TYPES:
        errors.append(f"Rule type must be one of: {', '.join(RULE_TYPES)}")

    if not steps:
        errors.append("At least one approval step is required")
    else:
        for position, step in enumerate(steps, start=1):
            role = step.get("role")
            specific_user_id = step.get("specific_user_id")
            if not role and not specific_user_id:
                errors.append(f"Step {position}: either role or specific_user_id is required")
                continue
            if role and role not in ROLES:
                errors.append(f"Step {position}: role '{role}' is not a recognized role")
            if specific_user_id:
                try:
                    _as_uuid(specific_user_id)
                except ValueError:
                    errors.append(f"Step {position}: specific_user_id is not a valid id")

    if percentage_threshold is not None:
        threshold = _whole_number(percentage_threshold)
        if threshold is None or not 1 <= threshold <= 100:
            errors.append("Percentage threshold must be a whole number between 1 and 100")
    elif rule_type == RuleType.PERCENTAGE.value:
        errors.append("Percentage threshold is required for PERCENTAGE rule")

    if rule_type == RuleType.SPECIFIC.value and not specific_approver_id:
        errors.append("Specific approver is required for SPECIFIC rule")

    if specific_approver_id:
        try:
            _as_uuid(specific_approver_id)
        except ValueError:
            errors.append("Specific approver is not a valid id")

    return errors


def _build_steps(steps: list[dict]) -> list[ApprovalFlowStep]:
    return [
        ApprovalFlowStep(
            step_order=position,
            role=step.get("role") or None,
            specific_user_id=_as_uuid(step.get("specific_user_id")),
        )
        for position, step in enumerate(steps, start=1)
    ]


def _snapshot(flow: ApprovalFlow) -> dict:
    return {
        "name": flow.name,
        "rule_type": flow.rule_type,
        "percentage_threshold": flow.percentage_threshold,
        "specific_approver_id": flow.specific_approver_id,
        "steps": [
            {"step_order": s.step_order, "role": s.role, "specific_user_id": s.specific_user_id}
            for s in flow.steps
        ],
    }


# ─── CRUD ───

def create_flow(
    uow: UnitOfWork,
    company_id: uuid.UUID,
    name: str,
    rule_type: str | None,
    steps: list[dict],
    percentage_threshold: int | None = None,
    specific_approver_id: uuid.UUID | str | None = None,
    actor_id: uuid.UUID | None = None,
) -> ApprovalFlow:
    rule_type = rule_type or RuleType.UNANIMOUS.value
    errors = validate_flow(name, rule_type, steps, percentage_threshold, specific_approver_id)
    if errors:
        raise ValidationError(errors)

    try:
        flow = ApprovalFlow(
            company_id=company_id,
            name=name.strip(),
            rule_type=rule_type,
            percentage_threshold=_whole_number(percentage_threshold),
            specific_approver_id=_as_uuid(specific_approver_id),
            steps=_build_steps(steps),
        )
        uow.flows.add(flow)
        audit_svc.log(
            uow,
            action="approval_flow_created",
            entity_type="approval_flow",
            entity_id=flow.id,
            actor_id=actor_id,
            after=_snapshot(flow),
        )
        uow.commit()
    except Exception:
        uow.rollback()
        raise

    logger.info(
        "Approval flow created: flow=%s company=%s rule_type=%s steps=%d",
        flow.id, company_id, rule_type, len(flow.steps),
    )
    return flow


def get_flow(uow: UnitOfWork, flow_id: uuid.UUID, company_id: uuid.UUID) -> ApprovalFlow:
    flow = uow.flows.get(flow_id, company_id=company_id)
    if flow is None:
        raise NotFoundError("Approval flow not found")
    return flow


def list_flows(uow: UnitOfWork, company_id: uuid.UUID) -> list[ApprovalFlow]:
    return uow.flows.list_for_company(company_id)


def get_company_flow(uow: UnitOfWork, company_id: uuid.UUID) -> ApprovalFlow | None:
    """The flow the engine applies to new expenses: the company's oldest."""
    return uow.flows.first_for_company(company_id)


def update_flow(
    uow: UnitOfWork,
    flow_id: uuid.UUID,
    company_id: uuid.UUID,
    changes: dict[str, Any],
    actor_id: uuid.UUID | None = None,
) -> ApprovalFlow:
    """Patch the provided fields; a provided ``steps`` list replaces all steps."""
    flow = get_flow(uow, flow_id, company_id)
    changes = {k: v for k, v in changes.items() if k in _FLOW_FIELDS}

    merged = {
        "name": changes.get("name", flow.name),
        "rule_type": changes.get("rule_type") or flow.rule_type,
        "percentage_threshold": changes.get("percentage_threshold", flow.percentage_threshold),
        "specific_approver_id": changes.get("specific_approver_id", flow.specific_approver_id),
        "steps": changes["steps"] if "steps" in changes else [
            {"role": s.role, "specific_user_id": s.specific_user_id} for s in flow.steps
        ],
    }
    errors = validate_flow(**merged)
    if errors:
        raise ValidationError(errors)

    before = _snapshot(flow)
    try:
        flow.name = merged["name"].strip()
        flow.rule_type = merged["rule_type"]
        threshold = merged["percentage_threshold"]
        flow.percentage_threshold = _whole_number(threshold)
        flow.specific_approver_id = _as_uuid(merged["specific_approver_id"])
        if "steps" in changes:
            uow.steps.replace(flow, _build_steps(changes["steps"]))
        uow.flush()
        audit_svc.log(
            uow,
            action="approval_flow_updated",
            entity_type="approval_flow",
            entity_id=flow.id,
            actor_id=actor_id,
            before=before,
            after=_snapshot(flow),
        )
        uow.commit()
    except Exception:
        uow.rollback()
        raise

    logger.info("Approval flow updated: flow=%s fields=%s", flow.id, sorted(changes))
    return flow


def delete_flow(
    uow: UnitOfWork,
    flow_id: uuid.UUID,
    company_id: uuid.UUID,
    actor_id: uuid.UUID | None = None,
) -> None:
    flow = get_flow(uow, flow_id, company_id)
    before = _snapshot(flow)
    try:
        detached = uow.expenses.detach_flow(flow.id)
        uow.flows.delete(flow)
        audit_svc.log(
            uow,
            action="approval_flow_deleted",
            entity_type="approval_flow",
            entity_id=flow_id,
            actor_id=actor_id,
            before=before,
            notes=f"{detached} expense(s) detached from the flow",
        )
        uow.commit()
    except Exception:
        uow.rollback()
        raise

    logger.info("Approval flow deleted: flow=%s company=%s", flow_id, company_id)
