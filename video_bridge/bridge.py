"""Start-generation and check-status operations, independent of the web framework.

The Flask app in `app.py` handles auth, rate limiting and CORS, then calls
into these functions with an already-parsed body.
"""
import logging
from typing import Any, Mapping, Optional

from .errors import ValidationError
from .leonardo import LeonardoClient
from .models import GenerationRequest

logger = logging.getLogger(__name__)


def start_generation(body: Any, client_factory) -> dict:
    """Upload the image, submit the generation and return the client response.

    `client_factory` is called only after the body validated, so a missing
    provider key never masks a 400 and no provider call happens on bad input.
    """
    request = GenerationRequest.from_body(body)
    logger.info(
        f"[generate-video-bridge] image decoded: {len(request.image_bytes)} bytes, ext={request.extension}, "
        f"prompt={'yes' if request.prompt else 'no'}"
    )

    client: LeonardoClient = client_factory()
    image_id = client.upload_image(request.image_bytes, request.extension)
    job = client.submit_generation(image_id, prompt=request.prompt, motion_strength=request.motion_strength)
    return job.to_response()


def resolve_generation_id(
    explicit: Optional[str] = None, body: Any = None, query: Optional[Mapping[str, str]] = None
) -> str:
    """Find the generation id: path parameter, then JSON body, then query string."""
    candidates = [explicit]
    if isinstance(body, dict):
        candidates.append(body.get("generationId"))
    if query:
        candidates.extend([query.get("generationId"), query.get("id")])
    for candidate in candidates:
        if candidate is not None and str(candidate).strip():
            return str(candidate).strip()
    raise ValidationError("generationId is required.")


def check_status(generation_id: str, client_factory) -> dict:
    client: LeonardoClient = client_factory()
    return client.get_generation_status(generation_id).to_response()
