"""
Client identity inference for rate limiting.

The identity is an abuse-dampening signal, not authentication: any caller
can set these headers unless a trusted reverse proxy overwrites them.
"""

from fastapi import Request

UNKNOWN_CLIENT = "unknown"


def get_client_id(request: Request, trust_proxy_headers: bool = True) -> str:
    """Extract the caller identity from proxy headers.

    Order: first ``X-Forwarded-For`` entry, then ``X-Real-IP``, then
    ``"unknown"``. With ``trust_proxy_headers`` off, the socket peer is
    used instead of the headers.
    """
    if not trust_proxy_headers:
        if request.client and request.client.host:
            return request.client.host
        return UNKNOWN_CLIENT

    forwarded_for = request.headers.get("X-Forwarded-For")
    if forwarded_for:
        first = forwarded_for.split(",")[0].strip()
        if first:
            return first

    real_ip = request.headers.get("X-Real-IP")
    if real_ip and real_ip.strip():
        return real_ip.strip()

    return UNKNOWN_CLIENT
