"""Approval flow definition endpoints (ADMIN only).

  POST   /flows
  GET    /flows
  GET    /flows/{flow_id}
  PUT    /flows/{flow_id}
  DELETE /flows/{flow_id}
"""
import uuid
from typing import Annotated

from fastapi import APIRouter, Depends, Response, status

from expense_approvals.core.deps import get_uow, require_role
from expense_approvals.models import User
from expense_approvals.repositories import SqlAlchemyUnitOfWork
from expense_approvals.schemas.flow import FlowIn, FlowOut, FlowUpdate
from expense_approvals.services import flows as flow_svc

router = APIRouter()

AdminUser = Annotated[User, Depends(require_role("ADMIN"))]
Uow = Annotated[SqlAlchemyUnitOfWork, Depends(get_uow)]


@router.post("", response_model=FlowOut, status_code=status.HTTP_201_CREATED)
def create_flow(body: FlowIn, current_user: AdminUser, uow: Uow):
    return flow_svc.create_flow(
        uow,
        company_id=current_user.company_id,
        name=body.name,
        rule_type=body.rule_type,
        steps=[s.model_dump() for s in body.steps],
        percentage_threshold=body.percentage_threshold,
        specific_approver_id=body.specific_approver_id,
        actor_id=current_user.id,
    )


@router.get("", response_model=list[FlowOut])
def list_flows(current_user: AdminUser, uow: Uow):
    return flow_svc.list_flows(uow, current_user.company_id)


@router.get("/{flow_id}", response_model=FlowOut)
def get_flow(flow_id: uuid.UUID, current_user: AdminUser, uow: Uow):
    return flow_svc.get_flow(uow, flow_id, current_user.company_id)


@router.put("/{flow_id}", response_model=FlowOut)
def update_flow(flow_id: uuid.UUID, body: FlowUpdate, current_user: AdminUser, uow: Uow):
    return flow_svc.update_flow(
        uow,
        flow_id,
        current_user.company_id,
        body.model_dump(exclude_unset=True),
        actor_id=current_user.id,
    )


@router.delete("/{flow_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_flow(flow_id: uuid.UUID, current_user: AdminUser, uow: Uow):
    flow_svc.delete_flow(uow, flow_id, current_user.company_id, actor_id=current_user.id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
