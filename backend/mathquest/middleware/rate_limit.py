from slowapi import Limiter
from starlette.requests import Request


def get_real_client_ip(request: Request) -> str:
    """Resolve the requester's identity.

    The service sits behind a reverse proxy, so the first X-Forwarded-For hop
    is the original client. Direct connections fall back to the socket peer.
    This address doubles as the quota-ledger identity.
    """
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        first_hop = forwarded.split(",")[0].strip()
        if first_hop:
            return first_hop
    return request.client.host if request.client else "unknown"


limiter = Limiter(key_func=get_real_client_ip)
