"""Error taxonomy raised by the approval engine and mapped to HTTP in main.py."""


class ApprovalError(Exception):
    """Base class for every engine error that is the caller's to handle."""

    status_code = 500

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class ValidationError(ApprovalError):
    """Malformed flow/step/decision input. Carries one message per failed rule."""

    status_code = 400

    def __init__(self, errors: list[str] | str):
        if isinstance(errors, str):
            errors = [errors]
        self.errors = list(errors)
        super().__init__("; ".join(self.errors) or "Validation failed")


class NotFoundError(ApprovalError):
    status_code = 404


class ForbiddenError(ApprovalError):
    status_code = 403


class ConflictError(ApprovalError):
    """The request was already decided (or the expense already submitted)."""

    status_code = 409


class AmbiguousApproverError(ConflictError):
    """More than one company member holds the step's role under ``require_unique``."""


class ConcurrentUpdateError(ConflictError):
    """The expense row version moved between read and conditional write."""
