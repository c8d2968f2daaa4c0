import enum
import uuid
from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Integer, String, Text, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from expense_approvals.db.base import Base, TimestampMixin, UUIDMixin


class RuleType(str, enum.Enum):
    UNANIMOUS = "UNANIMOUS"
    PERCENTAGE = "PERCENTAGE"
    SPECIFIC = "SPECIFIC"
    HYBRID = "HYBRID"


class RequestStatus(str, enum.Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class Decision(str, enum.Enum):
    APPROVE = "APPROVE"
    REJECT = "REJECT"

    @property
    def status(self) -> str:
        """Terminal request/expense status this decision produces."""
        return RequestStatus.APPROVED.value if self is Decision.APPROVE else RequestStatus.REJECTED.value


class ApprovalFlow(Base, UUIDMixin, TimestampMixin):
    """Company-scoped template naming who must approve an expense."""

    __tablename__ = "approval_flows"

    company_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("companies.id"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    rule_type: Mapped[str] = mapped_column(
        String(20), nullable=False, default=RuleType.UNANIMOUS.value
    )
    percentage_threshold: Mapped[int | None] = mapped_column(Integer, nullable=True)  # 1-100
    specific_approver_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("users.id"), nullable=True
    )

    steps: Mapped[list["ApprovalFlowStep"]] = relationship(
        "ApprovalFlowStep",
        back_populates="flow",
        cascade="all, delete-orphan",
        order_by="ApprovalFlowStep.step_order",
    )


class ApprovalFlowStep(Base, UUIDMixin, TimestampMixin):
    """One position in a flow: a role or a specific user."""

    __tablename__ = "approval_flow_steps"
    __table_args__ = (UniqueConstraint("flow_id", "step_order", name="uq_flow_step_order"),)

    flow_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("approval_flows.id", ondelete="CASCADE"), nullable=False, index=True
    )
    step_order: Mapped[int] = mapped_column(Integer, nullable=False)
    role: Mapped[str | None] = mapped_column(String(50), nullable=True)
    specific_user_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("users.id"), nullable=True
    )

    flow: Mapped["ApprovalFlow"] = relationship("ApprovalFlow", back_populates="steps")


class ApprovalRequest(Base, UUIDMixin, TimestampMixin):
    """A per-step work item for one expense and one resolved approver.

    ``step_order`` is carried for display and history only; every request of
    an expense is actionable from the moment it is created.
    """

    __tablename__ = "approval_requests"

    expense_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("expenses.id", ondelete="CASCADE"), nullable=False, index=True
    )
    approver_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("users.id"), nullable=False, index=True
    )
    step_order: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=RequestStatus.PENDING.value, index=True
    )
    comment: Mapped[str | None] = mapped_column(Text, nullable=True)
    decided_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    expense: Mapped["Expense"] = relationship("Expense", back_populates="approval_requests")
    approver: Mapped["User"] = relationship("User", lazy="joined")
