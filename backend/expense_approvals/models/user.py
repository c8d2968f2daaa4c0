"""Company and user rows.

Both are owned by the user/company service; the approval engine only reads
them (role lookup for approver resolution, role checks for decisions).
"""
import uuid

from sqlalchemy import Boolean, ForeignKey, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from expense_approvals.db.base import Base, TimestampMixin, UUIDMixin

ROLES = ("EMPLOYEE", "MANAGER", "FINANCE", "DIRECTOR", "ADMIN")

# Roles allowed to read any expense's approval history.
HISTORY_VIEWER_ROLES = ("MANAGER", "ADMIN")


class Company(Base, UUIDMixin, TimestampMixin):
    __tablename__ = "companies"

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="USD")


class User(Base, UUIDMixin, TimestampMixin):
    __tablename__ = "users"

    company_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("companies.id"), nullable=False, index=True
    )
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    role: Mapped[str] = mapped_column(String(50), nullable=False)  # see ROLES
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    @property
    def is_admin(self) -> bool:
        return self.role == "ADMIN"

    def admin_of(self, company_id: uuid.UUID) -> bool:
        return self.is_admin and self.company_id == company_id
