from fastapi import APIRouter

from expense_approvals.api.v1 import approvals, expenses, flows

api_router = APIRouter()

api_router.include_router(flows.router, prefix="/flows", tags=["flows"])
api_router.include_router(expenses.router, prefix="/expenses", tags=["expenses"])
api_router.include_router(approvals.router, prefix="/approvals", tags=["approvals"])
