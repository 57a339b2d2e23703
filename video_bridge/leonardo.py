import json
import logging
import re
from typing import Any, Optional
from urllib.parse import quote, urlparse

import requests

from .config import DEFAULT_API_URL
from .errors import (
    GenerationSubmitError,
    NoGenerationIdError,
    StatusCheckError,
    UploadInitError,
    UploadTransferError,
    provider_detail,
)
from .extract import first_match
from .models import (
    DEFAULT_MOTION_STRENGTH,
    IMAGE_TO_VIDEO,
    MOTION_SVD,
    GenerationJob,
    GenerationStatus,
    UploadHandshake,
    clamp_motion_strength,
)

logger = logging.getLogger(__name__)

# Job id / credit cost locations, most specific first.
GENERATION_ID_RULES = {
    IMAGE_TO_VIDEO: (
        "motionVideoGenerationJob.generationId",
        "imageToVideoMotionJob.generationId",
        "motionSvdGenerationJob.generationId",
        "motionGeneration.id",
        "sdGenerationJob.generationId",
        "generationId",
    ),
    MOTION_SVD: (
        "motionSvdGenerationJob.generationId",
        "motionGeneration.id",
        "generationId",
    ),
}

CREDIT_COST_RULES = {
    IMAGE_TO_VIDEO: (
        "motionVideoGenerationJob.apiCreditCost",
        "imageToVideoMotionJob.apiCreditCost",
        "motionSvdGenerationJob.apiCreditCost",
        "apiCreditCost",
    ),
    MOTION_SVD: (
        "motionSvdGenerationJob.apiCreditCost",
        "apiCreditCost",
    ),
}

GENERATION_ENVELOPES = ("generations_by_pk", "generation")
ASSET_LIST_KEYS = ("generated_images", "generatedImages", "assets")
VIDEO_URL_RULES = ("motionMP4URL", "videoUrl", "video_url")
VIDEO_EXTENSION = ".mp4"

STATUS_ALIASES = {
    "complete": "complete",
    "completed": "complete",
    "pending": "pending",
    "processing": "processing",
    "in_progress": "processing",
    "running": "processing",
    "failed": "failed",
    "error": "failed",
}

_BEARER_PREFIX = re.compile(r"^bearer\s+", re.IGNORECASE)
_CONTROL_CHARS = re.compile(r"[\r\n\t]")


def build_bearer_header(raw_key: Optional[str]) -> str:
    """Normalize a configured API key into exactly one ``Bearer <key>`` header value.

    Keys pasted into dashboards often arrive with stray newlines, quotes or an
    existing "Bearer " prefix.
    """
    if not raw_key:
        return ""
    key = _CONTROL_CHARS.sub("", str(raw_key)).strip()
    previous = None
    while key != previous:
        previous = key
        for mark in ('"', "'"):
            if len(key) >= 2 and key.startswith(mark) and key.endswith(mark):
                key = key[1:-1].strip()
        key = _BEARER_PREFIX.sub("", key).strip()
    return f"Bearer {key}"


def _mime_type(extension: str) -> str:
    ext = extension.lower()
    if ext == "jpg":
        ext = "jpeg"
    return f"image/{ext}"


def _is_video_url(value: Any) -> bool:
    return isinstance(value, str) and urlparse(value).path.lower().endswith(VIDEO_EXTENSION)


def normalize_status(raw_status: Any) -> str:
    if raw_status is None or raw_status == "":
        return "processing"
    return STATUS_ALIASES.get(str(raw_status).strip().lower(), "unknown")


def unwrap_generation(payload: Any) -> Any:
    """The provider nests the record under `generations_by_pk` on some versions only.

    An envelope present but null means the provider has no such generation.
    """
    if isinstance(payload, dict):
        for key in GENERATION_ENVELOPES:
            if key in payload and (payload[key] is None or isinstance(payload[key], dict)):
                return payload[key]
    return payload


def find_video_url(generation: Any) -> Optional[str]:
    if not isinstance(generation, dict):
        return None
    assets = None
    for key in ASSET_LIST_KEYS:
        if isinstance(generation.get(key), list) and generation[key]:
            assets = generation[key]
            break
    if not assets or not isinstance(assets[0], dict):
        return None
    first = assets[0]
    video_url = first_match(first, VIDEO_URL_RULES)
    if video_url:
        return video_url
    return first_match(first, ("url",), predicate=_is_video_url)


def normalize_generation(generation: Any) -> GenerationStatus:
    """Derive status and a playable video URL from a provider generation record.

    A playable asset is the authoritative completion signal, so a found video
    URL forces the status to ``complete`` whatever the provider reports.
    """
    if generation is None:
        return GenerationStatus(status="unknown", video_url=None, raw=None)
    raw_status = generation.get("status") if isinstance(generation, dict) else None
    status = normalize_status(raw_status)
    video_url = find_video_url(generation)
    if video_url:
        status = "complete"
    return GenerationStatus(status=status, video_url=video_url, raw=generation)


def parse_handshake(payload: Any) -> UploadHandshake:
    upload = payload.get("uploadInitImage") if isinstance(payload, dict) else None
    upload = upload or {}
    image_id = upload.get("id")
    target_url = upload.get("url")
    fields = upload.get("fields")
    if not image_id or not target_url or not fields:
        raise UploadInitError("Invalid init-image response from Leonardo.", details=payload)
    if isinstance(fields, str):
        # fields arrive double-encoded as a JSON string
        try:
            fields = json.loads(fields)
        except ValueError as exc:
            raise UploadInitError("Could not parse upload fields from Leonardo.", details=str(exc))
    if not isinstance(fields, dict):
        raise UploadInitError("Upload fields from Leonardo are not an object.", details=payload)
    return UploadHandshake(image_id=str(image_id), target_url=target_url, form_fields={k: str(v) for k, v in fields.items()})


class LeonardoClient:
    """Client for the Leonardo.ai REST endpoints the bridge proxies.

    Every step is a single blocking attempt with an explicit timeout; failures
    surface as the matching `ProviderError` subclass carrying the provider's
    error body where one was returned.
    """

    def __init__(self, api_key: str, api_url: Optional[str] = None, timeout: float = 120):
        self.api_key = api_key
        self.api_url = (api_url or DEFAULT_API_URL).rstrip("/")
        self.timeout = timeout

    def _headers(self, **extra) -> dict:
        headers = {"Authorization": build_bearer_header(self.api_key), "Accept": "application/json"}
        headers.update(extra)
        return headers

    # -- upload -----------------------------------------------------------

    def init_upload(self, extension: str) -> UploadHandshake:
        url = f"{self.api_url}/init-image"
        try:
            resp = requests.post(
                url,
                json={"extension": extension},
                headers=self._headers(**{"Content-Type": "application/json"}),
                timeout=self.timeout,
            )
            resp.raise_for_status()
            payload = resp.json()
        except (requests.RequestException, ValueError) as exc:
            logger.error(f"init-image request failed: {exc}")
            raise UploadInitError("Failed to initialize the Leonardo upload.", details=provider_detail(exc)) from exc

        handshake = parse_handshake(payload)
        logger.info(f"Init upload succeeded. imageId={handshake.image_id}")
        return handshake

    def transfer_image(self, handshake: UploadHandshake, image_bytes: bytes, extension: str) -> None:
        filename = f"{handshake.image_id}.{extension}"
        files = {"file": (filename, image_bytes, _mime_type(extension))}
        try:
            # presigned S3 POST: no auth header, the form fields carry the signature
            resp = requests.post(handshake.target_url, data=handshake.form_fields, files=files, timeout=self.timeout)
            resp.raise_for_status()
        except requests.RequestException as exc:
            logger.error(f"Multipart upload failed for imageId={handshake.image_id}: {exc}")
            raise UploadTransferError(
                "Multipart upload to the provider storage failed.", details=provider_detail(exc), imageId=handshake.image_id
            ) from exc
        logger.info(f"Upload completed for imageId={handshake.image_id} ({len(image_bytes)} bytes)")

    def upload_image(self, image_bytes: bytes, extension: str) -> str:
        handshake = self.init_upload(extension)
        self.transfer_image(handshake, image_bytes, extension)
        return handshake.image_id

    # -- generation -------------------------------------------------------

    def submit_generation(
        self, image_id: str, prompt: Optional[str] = None, motion_strength: Any = DEFAULT_MOTION_STRENGTH
    ) -> GenerationJob:
        strength = clamp_motion_strength(motion_strength)
        if prompt:
            endpoint = IMAGE_TO_VIDEO
            url = f"{self.api_url}/generations-image-to-video"
            body = {
                "imageId": image_id,
                "imageType": "UPLOADED",
                "model": "MOTION2",
                "resolution": "RESOLUTION_1080",
                "prompt": prompt,
            }
        else:
            endpoint = MOTION_SVD
            url = f"{self.api_url}/generations-motion-svd"
            body = {"imageId": image_id, "isInitImage": True, "motionStrength": strength}

        try:
            resp = requests.post(
                url, json=body, headers=self._headers(**{"Content-Type": "application/json"}), timeout=self.timeout
            )
            resp.raise_for_status()
            payload = resp.json()
        except (requests.RequestException, ValueError) as exc:
            logger.error(f"{endpoint} submission failed for imageId={image_id}: {exc}")
            raise GenerationSubmitError(
                "Failed to start video generation.", details=provider_detail(exc), imageId=image_id
            ) from exc

        generation_id = first_match(payload, GENERATION_ID_RULES[endpoint])
        if not generation_id:
            logger.error(f"Leonardo returned no generationId: {payload}")
            raise NoGenerationIdError("Leonardo did not return a generationId.", response=payload, imageId=image_id)

        job = GenerationJob(
            generation_id=str(generation_id),
            endpoint=endpoint,
            image_id=image_id,
            motion_strength=strength,
            api_credit_cost=first_match(payload, CREDIT_COST_RULES[endpoint]),
        )
        logger.info(f"Video generation started. generationId={job.generation_id} endpoint={endpoint}")
        return job

    # -- status -----------------------------------------------------------

    def get_generation_status(self, generation_id: str) -> GenerationStatus:
        url = f"{self.api_url}/generations/{quote(str(generation_id), safe='')}"
        try:
            resp = requests.get(url, headers=self._headers(), timeout=self.timeout)
            resp.raise_for_status()
            payload = resp.json()
        except (requests.RequestException, ValueError) as exc:
            logger.error(f"Status check failed for {generation_id}: {exc}")
            raise StatusCheckError("Failed to check video status.", details=provider_detail(exc)) from exc

        status = normalize_generation(unwrap_generation(payload))
        logger.info(f"Status {generation_id}: {status.status}")
        return status
