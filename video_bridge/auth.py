import hmac
import logging
from typing import Optional

from .errors import AuthError

logger = logging.getLogger(__name__)

AUTH_HEADER = "x-bridge-auth"


def is_authorized(token: Optional[str], secret: Optional[str]) -> bool:
    """True only when both values are present and byte-identical."""
    if not token or not secret:
        return False
    return hmac.compare_digest(token.encode("utf-8"), secret.encode("utf-8"))


def require_auth(token: Optional[str], secret: Optional[str]) -> None:
    if not secret:
        logger.error("BRIDGE_SECRET_KEY is not configured; rejecting request")
    if not is_authorized(token, secret):
        logger.warning("Invalid or missing %s token (present=%s)", AUTH_HEADER, bool(token))
        raise AuthError("Unauthorized. Invalid or missing token.")
