"""
Client IP helpers used by login attempt logging and throttling.
"""

import ipaddress
from typing import Optional


def is_private_ip(ip: Optional[str]) -> bool:
    """True for private, loopback and link-local addresses; False for anything unparsable."""
    if not ip:
        return False
    try:
        addr = ipaddress.ip_address(ip.strip())
    except ValueError:
        return False
    return addr.is_private or addr.is_loopback or addr.is_link_local


def extract_client_ip(request) -> str:
    """First hop of X-Forwarded-For, then X-Real-IP, then the socket peer."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    real_ip = request.headers.get("x-real-ip")
    if real_ip:
        return real_ip.strip()
    return request.client.host if request.client else "unknown"


def extract_user_agent(request, limit: int = 500) -> str:
    return (request.headers.get("user-agent") or "")[:limit]
