"""Admin API key check and request helpers."""

import hmac
from typing import Optional

from fastapi import Header, Request

from gateway import config
from gateway.exceptions import InvalidAPIKeyError


async def require_api_key(x_api_key: Optional[str] = Header(None)) -> None:
    """
    FastAPI dependency guarding operator endpoints.

    Args:
        x_api_key: X-API-Key header value

    Raises:
        InvalidAPIKeyError: If the key is missing, wrong or no key is configured
    """
    expected = config.ADMIN_API_KEY
    if not expected or not x_api_key:
        raise InvalidAPIKeyError("Missing or invalid API key")
    if not hmac.compare_digest(x_api_key.encode("utf-8"), expected.encode("utf-8")):
        raise InvalidAPIKeyError("Missing or invalid API key")


def client_ip(request: Request) -> Optional[str]:
    """
    Client address of the request.

    The socket peer is used unless it is listed in RELAY_TRUSTED_PROXIES.
    Behind a trusted proxy, X-Forwarded-For is read right to left and the
    first hop that is not itself a trusted proxy is returned.
    """
    peer = request.client.host if request.client else None
    if peer is None or peer not in config.TRUSTED_PROXIES:
        return peer

    forwarded = request.headers.get("x-forwarded-for")
    if not forwarded:
        return peer

    hops = [hop.strip() for hop in forwarded.split(",") if hop.strip()]
    for hop in reversed(hops):
        if hop not in config.TRUSTED_PROXIES:
            return hop
    return hops[0] if hops else peer
