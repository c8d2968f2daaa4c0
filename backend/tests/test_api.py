"""End-to-end tests for the /api/v1 routes over in-memory SQLite."""
import uuid

import pytest
from httpx import AsyncClient, ASGITransport

from expense_approvals.core.deps import get_current_user
from expense_approvals.core.limiter import limiter
from expense_approvals.core.security import create_access_token
from expense_approvals.db.session import get_session
from expense_approvals.main import app


# ─── Fixtures ─────────────────────────────────────────────────────────────────

@pytest.fixture
def api(session_factory):
    """Route every request's session to the test database."""
    def _override_session():
        with session_factory() as s:
            yield s

    app.dependency_overrides[get_session] = _override_session
    limiter.reset()
    try:
        yield
    finally:
        app.dependency_overrides.clear()


def as_user(user):
    app.dependency_overrides[get_current_user] = lambda: user


def client() -> AsyncClient:
    return AsyncClient(transport=ASGITransport(app=app), base_url="http://test")


async def _submit(user, amount="100.00", currency="USD") -> dict:
    as_user(user)
    async with client() as c:
        response = await c.post("/api/v1/expenses", json={"amount": amount, "currency": currency})
    assert response.status_code == 201, response.text
    return response.json()


# ─── Flows ────────────────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_admin_creates_flow(api, acme):
    as_user(acme["admin"])
    async with client() as c:
        response = await c.post(
            "/api/v1/flows",
            json={"name": "Big tickets", "steps": [{"role": "DIRECTOR"}, {"role": "FINANCE"}]},
        )
    assert response.status_code == 201
    data = response.json()
    assert data["rule_type"] == "UNANIMOUS"
    assert [(s["step_order"], s["role"]) for s in data["steps"]] == [(1, "DIRECTOR"), (2, "FINANCE")]


@pytest.mark.asyncio
async def test_invalid_flow_returns_all_messages(api, acme):
    as_user(acme["admin"])
    async with client() as c:
        response = await c.post("/api/v1/flows", json={"name": "", "rule_type": "SPECIFIC", "steps": []})
    assert response.status_code == 400
    assert response.json() == {
        "error": "Validation failed",
        "details": [
            "Name is required",
            "At least one approval step is required",
            "Specific approver is required for SPECIFIC rule",
        ],
    }


@pytest.mark.asyncio
async def test_non_admin_cannot_manage_flows(api, acme):
    as_user(acme["m1"])
    async with client() as c:
        response = await c.get("/api/v1/flows")
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_update_and_delete_flow(api, acme):
    as_user(acme["admin"])
    flow_id = acme["flow"].id
    async with client() as c:
        updated = await c.put(f"/api/v1/flows/{flow_id}", json={"steps": [{"role": "FINANCE"}]})
        deleted = await c.delete(f"/api/v1/flows/{flow_id}")
        missing = await c.get(f"/api/v1/flows/{flow_id}")

    assert updated.status_code == 200
    assert [s["role"] for s in updated.json()["steps"]] == ["FINANCE"]
    assert deleted.status_code == 204
    assert missing.status_code == 404
    assert missing.json() == {"detail": "Approval flow not found"}


# ─── Submission ───────────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_submit_expense_generates_requests(api, acme):
    data = await _submit(acme["employee"])

    assert data["status"] == "PENDING"
    assert {r["approver_id"] for r in data["requests"]} == {str(acme["m1"].id), str(acme["f1"].id)}
    assert data["skipped_steps"] == []


@pytest.mark.asyncio
async def test_submit_converts_to_company_currency(api, acme):
    data = await _submit(acme["employee"], amount="100.00", currency="eur")
    assert float(data["amount_in_company_currency"]) == pytest.approx(108.0)


@pytest.mark.asyncio
async def test_submit_without_flow_auto_approves(api, factory):
    company = factory.company("Flowless")
    owner = factory.user(company, "EMPLOYEE")

    data = await _submit(owner, amount="50.00")
    assert data["status"] == "APPROVED"
    assert data["requests"] == []


# ─── Decisions ────────────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_approve_then_approve_approves_expense(api, acme):
    data = await _submit(acme["employee"])
    requests = {r["approver_id"]: r["id"] for r in data["requests"]}

    as_user(acme["m1"])
    async with client() as c:
        first = await c.post(f"/api/v1/approvals/{requests[str(acme['m1'].id)]}/approve", json={"comment": "ok"})
    as_user(acme["f1"])
    async with client() as c:
        second = await c.post(f"/api/v1/approvals/{requests[str(acme['f1'].id)]}/approve")

    assert first.status_code == 200
    assert first.json()["expense_status"] == "PENDING"
    assert first.json()["request"]["comment"] == "ok"
    assert second.json()["expense_status"] == "APPROVED"
    assert second.json()["message"] == "Expense approved - all approvals received"


@pytest.mark.asyncio
async def test_reject_then_repeat_conflicts(api, acme):
    data = await _submit(acme["employee"])
    request_id = next(r["id"] for r in data["requests"] if r["approver_id"] == str(acme["m1"].id))

    as_user(acme["m1"])
    async with client() as c:
        rejected = await c.post(f"/api/v1/approvals/{request_id}/reject", json={"comment": "No receipt"})
        repeated = await c.post(f"/api/v1/approvals/{request_id}/reject")

    assert rejected.json()["expense_status"] == "REJECTED"
    assert rejected.json()["message"] == "Expense rejected"
    assert repeated.status_code == 409
    assert repeated.json() == {"detail": "Request already processed"}


@pytest.mark.asyncio
async def test_decide_as_wrong_user_forbidden(api, acme):
    data = await _submit(acme["employee"])
    request_id = next(r["id"] for r in data["requests"] if r["approver_id"] == str(acme["m1"].id))

    as_user(acme["employee"])
    async with client() as c:
        response = await c.post(f"/api/v1/approvals/{request_id}/approve")
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_decide_unknown_request_not_found(api, acme):
    as_user(acme["m1"])
    async with client() as c:
        response = await c.post(f"/api/v1/approvals/{uuid.uuid4()}/approve")
    assert response.status_code == 404


# ─── Override ─────────────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_override_by_admin(api, acme):
    data = await _submit(acme["employee"])
    request_id = data["requests"][0]["id"]

    as_user(acme["admin"])
    async with client() as c:
        response = await c.post(f"/api/v1/approvals/{request_id}/override", json={"action": "approve"})

    assert response.status_code == 200
    body = response.json()
    assert body["expense_status"] == "APPROVED"
    assert body["message"] == "Expense approved by admin override"
    assert body["request"]["comment"] == "Admin override: approve"


@pytest.mark.asyncio
async def test_override_by_non_admin_forbidden(api, acme):
    data = await _submit(acme["employee"])
    as_user(acme["m1"])
    async with client() as c:
        response = await c.post(
            f"/api/v1/approvals/{data['requests'][0]['id']}/override", json={"action": "reject"}
        )
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_override_with_bad_action(api, acme):
    data = await _submit(acme["employee"])
    as_user(acme["admin"])
    async with client() as c:
        response = await c.post(
            f"/api/v1/approvals/{data['requests'][0]['id']}/override", json={"action": "maybe"}
        )
    assert response.status_code == 400
    assert response.json()["details"] == ["Action must be approve or reject"]


# ─── Queries ──────────────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_pending_queue_pagination_envelope(api, acme):
    for _ in range(3):
        await _submit(acme["employee"])

    as_user(acme["m1"])
    async with client() as c:
        response = await c.get("/api/v1/approvals/pending", params={"page": 1, "limit": 2})

    body = response.json()
    assert response.status_code == 200
    assert body["pagination"] == {"page": 1, "limit": 2, "total": 3, "pages": 2}
    assert len(body["items"]) == 2
    assert body["items"][0]["expense_status"] == "PENDING"
    assert body["items"][0]["currency"] == "USD"


@pytest.mark.asyncio
async def test_history_visibility(api, acme):
    data = await _submit(acme["employee"])
    url = f"/api/v1/expenses/{data['expense_id']}/approvals"

    as_user(acme["employee"])
    async with client() as c:
        owner_view = await c.get(url)
    as_user(acme["f1"])
    async with client() as c:
        finance_view = await c.get(url)

    assert owner_view.status_code == 200
    assert [h["approver"]["role"] for h in owner_view.json()] == ["MANAGER", "FINANCE"]
    assert finance_view.status_code == 403


@pytest.mark.asyncio
async def test_company_endpoints_admin_only(api, acme):
    await _submit(acme["employee"])

    as_user(acme["admin"])
    async with client() as c:
        feed = await c.get("/api/v1/approvals/company/all", params={"status": "PENDING"})
        stats = await c.get("/api/v1/approvals/company/stats")
    as_user(acme["m1"])
    async with client() as c:
        denied = await c.get("/api/v1/approvals/company/all")

    assert feed.json()["pagination"]["total"] == 2
    assert stats.json() == {"total": 2, "pending": 2, "approved": 0, "rejected": 0}
    assert denied.status_code == 403


# ─── Authentication ───────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_bearer_token_authenticates(api, acme):
    token = create_access_token(str(acme["m1"].id), "MANAGER", str(acme["company"].id))
    async with client() as c:
        response = await c.get(
            "/api/v1/approvals/pending", headers={"Authorization": f"Bearer {token}"}
        )
    assert response.status_code == 200
    assert response.json()["pagination"]["total"] == 0


@pytest.mark.asyncio
async def test_missing_token_is_401(api):
    async with client() as c:
        response = await c.get("/api/v1/approvals/pending")
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_garbage_token_is_401(api):
    async with client() as c:
        response = await c.get(
            "/api/v1/approvals/pending", headers={"Authorization": "Bearer not-a-jwt"}
        )
    assert response.status_code == 401
