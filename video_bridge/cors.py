from typing import Iterable, Optional

ALLOW_HEADERS = "Content-Type, Authorization, x-bridge-auth"
ALLOW_METHODS = "GET, POST, OPTIONS"


def resolve_origin(origin: Optional[str], allowed_origins: Iterable[str]) -> str:
    """Reflect allow-listed or localhost origins, otherwise fall back to the wildcard."""
    if not origin:
        return "*"
    if origin in allowed_origins or "localhost" in origin:
        return origin
    return "*"


def cors_headers(origin: Optional[str], allowed_origins: Iterable[str]) -> dict:
    allow_origin = resolve_origin(origin, list(allowed_origins))
    headers = {
        "Access-Control-Allow-Origin": allow_origin,
        "Access-Control-Allow-Headers": ALLOW_HEADERS,
        "Access-Control-Allow-Methods": ALLOW_METHODS,
    }
    if allow_origin != "*":
        # browsers reject credentials alongside a wildcard origin
        headers["Access-Control-Allow-Credentials"] = "true"
        headers["Vary"] = "Origin"
    return headers
