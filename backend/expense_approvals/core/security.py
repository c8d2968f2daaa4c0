from datetime import datetime, timedelta, timezone

from jose import jwt

from expense_approvals.core.config import settings


# ─── JWT ──────────────────────────────────────────────────────────────────────
#
# Token issuance belongs to the identity service. create_access_token exists so
# that scripts/seed.py and the tests can mint tokens in the same format.

def create_access_token(subject: str, role: str, company_id: str | None = None) -> str:
    expire = datetime.now(timezone.utc) + timedelta(
        minutes=settings.JWT_ACCESS_TOKEN_EXPIRE_MINUTES
    )
    claims = {"sub": subject, "role": role, "exp": expire, "type": "access"}
    if company_id:
        claims["company_id"] = company_id
    return jwt.encode(claims, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def decode_token(token: str) -> dict:
    """Raises JWTError on invalid/expired token."""
    return jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM])
