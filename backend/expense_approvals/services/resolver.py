"""Approver resolution for a single flow step."""
import logging
import uuid
from collections.abc import Callable, Sequence
from datetime import datetime, timezone

from expense_approvals.core.exceptions import AmbiguousApproverError, ValidationError
from expense_approvals.models import ApprovalFlowStep, User
from expense_approvals.repositories.base import UserRepository

logger = logging.getLogger(__name__)

TieBreak = Callable[[str, Sequence[User]], User]


def _utc_naive(value: datetime) -> datetime:
    # SQLite hands back naive UTC values, freshly created rows carry aware ones.
    if value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def earliest_created(role: str, candidates: Sequence[User]) -> User:
    """Pick the longest-standing member; ties fall back to id order."""
    return min(candidates, key=lambda u: (_utc_naive(u.created_at), str(u.id)))


def require_unique(role: str, candidates: Sequence[User]) -> User:
    if len(candidates) > 1:
        raise AmbiguousApproverError(
            f"{len(candidates)} active users hold role '{role}'; "
            "approver resolution requires exactly one."
        )
    return candidates[0]


TIE_BREAK_POLICIES: dict[str, TieBreak] = {
    "earliest_created": earliest_created,
    "require_unique": require_unique,
}


class ApproverResolver:
    """Resolve a step to a concrete approver id, or None when nobody qualifies.

    Role steps pick among the company's active members holding the role,
    using the configured tie-break. Specific-user steps are returned as is;
    membership of that user is the flow author's responsibility.
    """

    def __init__(self, users: UserRepository, tie_break: str | TieBreak = "earliest_created"):
        if isinstance(tie_break, str):
            if tie_break not in TIE_BREAK_POLICIES:
                raise ValidationError(
                    f"Unknown approver tie-break '{tie_break}'. "
                    f"Expected one of: {', '.join(TIE_BREAK_POLICIES)}"
                )
            tie_break = TIE_BREAK_POLICIES[tie_break]
        self.users = users
        self.tie_break = tie_break

    def resolve(self, step: ApprovalFlowStep, company_id: uuid.UUID) -> uuid.UUID | None:
        if step.role:
            candidates = self.users.with_role(company_id, step.role)
            if not candidates:
                return None
            if len(candidates) > 1:
                logger.debug(
                    "Step %s: %d candidates for role %s in company %s",
                    step.step_order, len(candidates), step.role, company_id,
                )
            return self.tie_break(step.role, candidates).id
        if step.specific_user_id:
            return step.specific_user_id
        return None
