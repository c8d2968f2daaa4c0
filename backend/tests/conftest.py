"""Shared fixtures: an in-memory SQLite database behind the real repositories."""
import uuid
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from expense_approvals.db.base import Base
from expense_approvals.models import (
    ApprovalFlow,
    ApprovalFlowStep,
    Company,
    Expense,
    ExpenseStatus,
    User,
)
from expense_approvals.repositories import SqlAlchemyUnitOfWork
from expense_approvals.services.approval import ApprovalEngine

EPOCH = datetime(2024, 1, 1, tzinfo=timezone.utc)


class Factory:
    """Creates committed rows with strictly increasing ``created_at`` values."""

    def __init__(self, session: Session):
        self.session = session
        self._tick = 0

    def _next_time(self) -> datetime:
        self._tick += 1
        return EPOCH + timedelta(minutes=self._tick)

    def _save(self, obj):
        self.session.add(obj)
        self.session.commit()
        return obj

    def company(self, name: str = "Acme Corp", currency: str = "USD") -> Company:
        return self._save(Company(name=name, currency=currency, created_at=self._next_time()))

    def user(self, company: Company, role: str, name: str | None = None, is_active: bool = True) -> User:
        name = name or f"{role.title()} {self._tick + 1}"
        return self._save(
            User(
                company_id=company.id,
                email=f"{uuid.uuid4().hex[:10]}@example.com",
                name=name,
                role=role,
                is_active=is_active,
                created_at=self._next_time(),
            )
        )

    def flow(
        self,
        company: Company,
        steps: list[dict],
        name: str = "Standard",
        rule_type: str = "UNANIMOUS",
        percentage_threshold: int | None = None,
        specific_approver_id: uuid.UUID | None = None,
    ) -> ApprovalFlow:
        return self._save(
            ApprovalFlow(
                company_id=company.id,
                name=name,
                rule_type=rule_type,
                percentage_threshold=percentage_threshold,
                specific_approver_id=specific_approver_id,
                created_at=self._next_time(),
                steps=[
                    ApprovalFlowStep(
                        step_order=position,
                        role=step.get("role"),
                        specific_user_id=step.get("specific_user_id"),
                    )
                    for position, step in enumerate(steps, start=1)
                ],
            )
        )

    def expense(self, owner: User, amount: str = "100.00", currency: str = "USD") -> Expense:
        return self._save(
            Expense(
                company_id=owner.company_id,
                user_id=owner.id,
                status=ExpenseStatus.PENDING.value,
                amount=Decimal(amount),
                currency=currency,
                amount_in_company_currency=Decimal(amount),
                category="Travel",
                description="Client visit",
                created_at=self._next_time(),
            )
        )


@pytest.fixture
def db_engine():
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return sessionmaker(bind=db_engine, expire_on_commit=False, autoflush=False)


@pytest.fixture
def session(session_factory):
    with session_factory() as s:
        yield s


@pytest.fixture
def uow(session) -> SqlAlchemyUnitOfWork:
    return SqlAlchemyUnitOfWork(session)


@pytest.fixture
def factory(session) -> Factory:
    return Factory(session)


@pytest.fixture
def engine(uow) -> ApprovalEngine:
    return ApprovalEngine(uow, rule_type_policies=False)


@pytest.fixture
def acme(factory):
    """Company with one user per role and a MANAGER → FINANCE flow."""
    company = factory.company()
    people = {
        "employee": factory.user(company, "EMPLOYEE", "Eve Employee"),
        "m1": factory.user(company, "MANAGER", "Max Manager"),
        "f1": factory.user(company, "FINANCE", "Fay Finance"),
        "admin": factory.user(company, "ADMIN", "Ada Admin"),
    }
    flow = factory.flow(company, [{"role": "MANAGER"}, {"role": "FINANCE"}])
    return {"company": company, "flow": flow, **people}
