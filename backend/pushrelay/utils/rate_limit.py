"""Per-client request limits for the HTTP API."""
from fastapi import Request
from slowapi import Limiter


def _get_client_ip(request: Request) -> str:
    # Behind a proxy the first X-Forwarded-For entry is the client
    xff = request.headers.get("x-forwarded-for")
    if xff:
        return xff.split(",")[0].strip()
    if request.client and request.client.host:
        return request.client.host
    return "127.0.0.1"


def build_limiter(limit: str) -> Limiter:
    """Limiter applying ``limit`` (e.g. "100 per 15 minutes") to every route."""
    return Limiter(key_func=_get_client_ip, default_limits=[limit])
