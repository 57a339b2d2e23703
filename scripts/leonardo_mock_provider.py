"""Small Flask app that simulates the Leonardo endpoints the bridge calls.

It implements the upload handshake, both generation variants and status
polling. A generation reports PENDING on its first poll and COMPLETE with a
`motionMP4URL` afterwards.

Run locally for development:
    python scripts/leonardo_mock_provider.py

Then point LEONARDO_API_URL to http://localhost:9092
"""
import hashlib
import json
import os
import uuid

from flask import Flask, jsonify, request

app = Flask(__name__)

# generation id -> number of status polls seen
_polls = {}


def _base_url() -> str:
    return request.host_url.rstrip("/")


@app.route("/init-image", methods=["POST"])
def init_image():
    payload = request.get_json(force=True, silent=True) or {}
    extension = payload.get("extension") or "png"
    image_id = str(uuid.uuid4())
    fields = {"key": f"uploads/{image_id}.{extension}", "policy": "mock-policy", "x-amz-signature": "mock"}
    # the real API double-encodes the fields as a JSON string
    return jsonify({"uploadInitImage": {"id": image_id, "url": f"{_base_url()}/upload", "fields": json.dumps(fields)}})


@app.route("/upload", methods=["POST"])
def upload():
    if "file" not in request.files or "key" not in request.form:
        return jsonify({"error": "missing file or key"}), 400
    return "", 204


def _new_generation_id(image_id: str) -> str:
    h = hashlib.sha1(f"{image_id}{uuid.uuid4()}".encode("utf-8")).hexdigest()[:12]
    generation_id = f"gen-{h}"
    _polls[generation_id] = 0
    return generation_id


@app.route("/generations-motion-svd", methods=["POST"])
def motion_svd():
    payload = request.get_json(force=True, silent=True) or {}
    if not payload.get("imageId"):
        return jsonify({"error": "imageId is required"}), 400
    generation_id = _new_generation_id(payload["imageId"])
    return jsonify({"motionSvdGenerationJob": {"generationId": generation_id, "apiCreditCost": 25}})


@app.route("/generations-image-to-video", methods=["POST"])
def image_to_video():
    payload = request.get_json(force=True, silent=True) or {}
    if not payload.get("imageId") or not payload.get("prompt"):
        return jsonify({"error": "imageId and prompt are required"}), 400
    generation_id = _new_generation_id(payload["imageId"])
    return jsonify({"motionVideoGenerationJob": {"generationId": generation_id, "apiCreditCost": 40}})


@app.route("/generations/<generation_id>", methods=["GET"])
def generation(generation_id):
    if generation_id not in _polls:
        return jsonify({"error": "generation not found"}), 404
    _polls[generation_id] += 1
    if _polls[generation_id] < 2:
        record = {"id": generation_id, "status": "PENDING", "generated_images": []}
    else:
        record = {
            "id": generation_id,
            "status": "COMPLETE",
            "generated_images": [{"id": f"{generation_id}-0", "motionMP4URL": f"https://videos.example/{generation_id}.mp4"}],
        }
    return jsonify({"generations_by_pk": record})


if __name__ == "__main__":
    port = int(os.getenv("LEONARDO_MOCK_PORT", "9092"))
    app.run(host="0.0.0.0", port=port)
