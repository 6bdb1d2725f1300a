"""
Client IP extraction.

Behind a proxy or load balancer the peer address is the proxy; the client is
taken from the forwarding headers instead.
"""
from typing import Optional

from fastapi import Request


def get_client_ip(request: Request) -> Optional[str]:
    """
    Extract the client IP from the request.

    Checked in order:
    1. X-Forwarded-For (first entry of "client, proxy1, proxy2")
    2. X-Real-IP
    3. CF-Connecting-IP
    4. True-Client-IP
    5. request.client.host

    These headers can be forged by clients; the proxy in front of the service
    must strip incoming copies and set its own.
    """
    x_forwarded_for = request.headers.get("X-Forwarded-For")
    if x_forwarded_for:
        client_ip = x_forwarded_for.split(",")[0].strip()
        if client_ip:
            return client_ip

    for header in ("X-Real-IP", "CF-Connecting-IP", "True-Client-IP"):
        value = request.headers.get(header)
        if value and value.strip():
            return value.strip()

    if request.client:
        return request.client.host

    return None
