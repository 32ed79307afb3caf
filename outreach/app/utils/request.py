"""Request metadata helpers (client IP behind proxies, user agent)."""
from fastapi import Request


def client_ip(request: Request) -> str:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    real_ip = request.headers.get("x-real-ip")
    if real_ip:
        return real_ip.strip()
    if request.client and request.client.host:
        return request.client.host
    return "unknown"


def user_agent(request: Request) -> str:
    return (request.headers.get("user-agent") or "unknown")[:512]
