"""Seed script: creates tables, a demo company, its users and an approval flow.

Idempotent: checks for existing records before inserting.
Run: python backend/scripts/seed.py
Prints a dev bearer token for each seeded user.
"""
from sqlalchemy import select
from sqlalchemy.orm import Session

from expense_approvals.core.security import create_access_token
from expense_approvals.db.base import Base
from expense_approvals.db.session import SessionLocal, engine
from expense_approvals.models import Company, User
from expense_approvals.repositories import SqlAlchemyUnitOfWork
from expense_approvals.services import flows as flow_svc

COMPANY_NAME = "Acme Corp"
USERS = [
    ("admin@acme.example", "Ada Admin", "ADMIN"),
    ("manager@acme.example", "Max Manager", "MANAGER"),
    ("finance@acme.example", "Fay Finance", "FINANCE"),
    ("director@acme.example", "Dan Director", "DIRECTOR"),
    ("employee@acme.example", "Eve Employee", "EMPLOYEE"),
]


# ─── Upsert helpers ───────────────────────────────────────────────────────────

def _upsert_company(db: Session) -> Company:
    company = db.execute(select(Company).where(Company.name == COMPANY_NAME)).scalars().first()
    if company:
        print(f"  [skip] Company {COMPANY_NAME}")
        return company
    company = Company(name=COMPANY_NAME, currency="USD")
    db.add(company)
    db.flush()
    print(f"  [new]  Company {COMPANY_NAME}")
    return company


def _upsert_user(db: Session, company: Company, email: str, name: str, role: str) -> User:
    user = db.execute(select(User).where(User.email == email)).scalars().first()
    if user:
        print(f"  [skip] User {email}")
        return user
    user = User(company_id=company.id, email=email, name=name, role=role, is_active=True)
    db.add(user)
    db.flush()
    print(f"  [new]  User {email} ({role})")
    return user


def seed() -> None:
    Base.metadata.create_all(engine)

    with SessionLocal() as db:
        company = _upsert_company(db)
        users = [_upsert_user(db, company, *row) for row in USERS]
        db.commit()

        uow = SqlAlchemyUnitOfWork(db)
        if flow_svc.get_company_flow(uow, company.id) is None:
            flow = flow_svc.create_flow(
                uow,
                company_id=company.id,
                name="Standard expense approval",
                rule_type="UNANIMOUS",
                steps=[{"role": "MANAGER"}, {"role": "FINANCE"}],
                actor_id=users[0].id,
            )
            print(f"  [new]  Flow {flow.name} ({len(flow.steps)} steps)")
        else:
            print("  [skip] Flow")

        print("\nDev tokens:")
        for user in users:
            token = create_access_token(str(user.id), user.role, str(company.id))
            print(f"  {user.role:<9} {user.email:<24} {token}")


if __name__ == "__main__":
    seed()
