import enum
import uuid
from datetime import date
from decimal import Decimal

from sqlalchemy import Date, ForeignKey, Integer, Numeric, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from expense_approvals.db.base import Base, TimestampMixin, UUIDMixin


class ExpenseStatus(str, enum.Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class Expense(Base, UUIDMixin, TimestampMixin):
    """A submitted claim. Only the approval engine writes ``status``."""

    __tablename__ = "expenses"

    company_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("companies.id"), nullable=False, index=True
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("users.id"), nullable=False, index=True
    )
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=ExpenseStatus.PENDING.value
    )
    amount: Mapped[Decimal] = mapped_column(Numeric(18, 4), nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False)
    amount_in_company_currency: Mapped[Decimal | None] = mapped_column(Numeric(18, 4), nullable=True)
    category: Mapped[str | None] = mapped_column(String(100), nullable=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    expense_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    # Flow whose steps generated this expense's requests; null when auto-approved.
    approval_flow_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("approval_flows.id", ondelete="SET NULL"), nullable=True
    )
    # Bumped on every status write; the conditional update compares against it.
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    approval_requests: Mapped[list["ApprovalRequest"]] = relationship(
        "ApprovalRequest",
        back_populates="expense",
        order_by="ApprovalRequest.step_order",
    )
