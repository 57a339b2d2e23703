"""Error taxonomy for the bridge.

Every error carries the HTTP status it maps to, so handlers can raise at the
point of failure and the web layer converts once at the boundary.
"""
from typing import Any, Optional


class BridgeError(Exception):
    status_code = 500

    def __init__(self, message: str, details: Any = None, **extra):
        super().__init__(message)
        self.message = message
        self.details = details
        self.extra = extra

    def to_dict(self) -> dict:
        body = {"error": self.message}
        if self.details is not None:
            body["details"] = self.details
        body.update(self.extra)
        return body


class ConfigurationError(BridgeError):
    status_code = 500


class AuthError(BridgeError):
    status_code = 401


class RateLimitError(BridgeError):
    status_code = 429


class ValidationError(BridgeError):
    status_code = 400


class ProviderError(BridgeError):
    """A call to the Leonardo API failed. `details` holds the provider body when available."""

    status_code = 500


class UploadInitError(ProviderError):
    pass


class UploadTransferError(ProviderError):
    pass


class GenerationSubmitError(ProviderError):
    pass


class NoGenerationIdError(ProviderError):
    pass


class StatusCheckError(ProviderError):
    pass


def provider_detail(exc: Exception) -> Optional[Any]:
    """Best-effort extraction of the provider's error payload from a requests exception."""
    response = getattr(exc, "response", None)
    if response is None:
        return str(exc)
    try:
        return response.json()
    except Exception:
        return getattr(response, "text", None) or str(exc)
