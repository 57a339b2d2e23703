import base64
import binascii
import re
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from .errors import ValidationError

IMAGE_TO_VIDEO = "image-to-video"
MOTION_SVD = "motion-svd"

DEFAULT_MOTION_STRENGTH = 5
MIN_MOTION_STRENGTH = 1
MAX_MOTION_STRENGTH = 10

_DATA_URL_PREFIX = re.compile(r"^data:[^;,]*;base64,", re.IGNORECASE)


def clamp_motion_strength(value: Any) -> int:
    """Coerce to an int in [1, 10]; missing or non-numeric values use the default."""
    if value is None or isinstance(value, bool):
        return DEFAULT_MOTION_STRENGTH
    try:
        strength = int(float(value))
    except (TypeError, ValueError):
        return DEFAULT_MOTION_STRENGTH
    if strength == 0:
        # 0 means unset
        return DEFAULT_MOTION_STRENGTH
    return max(MIN_MOTION_STRENGTH, min(strength, MAX_MOTION_STRENGTH))


def decode_image(image_base64: str) -> bytes:
    cleaned = _DATA_URL_PREFIX.sub("", image_base64.strip())
    cleaned = "".join(cleaned.split())
    try:
        data = base64.b64decode(cleaned, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise ValidationError("Failed to decode image_base64. Check the format.", details=str(exc))
    if not data:
        raise ValidationError("Failed to decode image_base64. Decoded image is empty.")
    return data


@dataclass
class GenerationRequest:
    image_bytes: bytes
    extension: str
    prompt: Optional[str] = None
    motion_strength: int = DEFAULT_MOTION_STRENGTH

    @classmethod
    def from_body(cls, body: Any) -> "GenerationRequest":
        """Validate a start-generation JSON body. Raises ValidationError (400)."""
        if not isinstance(body, dict):
            raise ValidationError("Request body must be a JSON object.")

        image_base64 = body.get("image_base64")
        if not image_base64 or not isinstance(image_base64, str):
            raise ValidationError("Parameter 'image_base64' is required.")

        ext = body.get("ext")
        if not ext or not isinstance(ext, str) or not ext.strip().lstrip("."):
            raise ValidationError("Parameter 'ext' (image extension) is required.")

        prompt = body.get("prompt")
        if prompt is not None and not isinstance(prompt, str):
            raise ValidationError("Parameter 'prompt' must be a string.")
        prompt = prompt.strip() if prompt else None

        return cls(
            image_bytes=decode_image(image_base64),
            extension=ext.strip().lstrip(".").lower(),
            prompt=prompt or None,
            motion_strength=clamp_motion_strength(body.get("motionStrength")),
        )


@dataclass
class UploadHandshake:
    image_id: str
    target_url: str
    form_fields: Dict[str, str] = field(default_factory=dict)


@dataclass
class GenerationJob:
    generation_id: str
    endpoint: str
    image_id: str
    motion_strength: int
    api_credit_cost: Optional[float] = None

    def to_response(self) -> dict:
        return {
            "success": True,
            "generationId": self.generation_id,
            "imageId": self.image_id,
            "apiCreditCost": self.api_credit_cost,
            "message": "Video generation started successfully!",
            "motionStrength": self.motion_strength,
            "endpoint": self.endpoint,
        }


@dataclass
class GenerationStatus:
    status: str
    video_url: Optional[str]
    raw: Any = None

    def to_response(self) -> dict:
        return {"success": True, "status": self.status, "videoUrl": self.video_url, "data": self.raw}
