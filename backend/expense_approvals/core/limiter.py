"""Rate limiter singleton: import from here to avoid circular deps.

Decision endpoints are limited per bearer token so that approvers sharing a
NAT gateway do not throttle each other; anonymous calls fall back to the
client address.
"""
from fastapi import Request
from slowapi import Limiter
from slowapi.util import get_remote_address


def caller_key(request: Request) -> str:
    auth = request.headers.get("authorization", "")
    scheme, _, token = auth.partition(" ")
    if scheme.lower() == "bearer" and token:
        return f"token:{token[-32:]}"
    return get_remote_address(request)


limiter = Limiter(key_func=caller_key)
