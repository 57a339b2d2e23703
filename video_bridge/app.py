"""Flask app exposing the bridge endpoints.

Routes mirror the serverless functions of the hosted deployment, so both the
short paths and the `/.netlify/functions/...` paths resolve:

- POST      /generate-video-bridge
- GET|POST  /check-video-status[/<generation_id>]
- GET|POST  /health
- GET|POST  /test-cors

Run locally:
    python -m video_bridge.app --port 8888
"""
import logging
import os
from datetime import datetime, timezone
from typing import Optional

from dotenv import load_dotenv
from flask import Flask, jsonify, request
from werkzeug.exceptions import HTTPException

from .auth import AUTH_HEADER, require_auth
from .bridge import check_status, resolve_generation_id, start_generation
from .config import BridgeConfig
from .cors import cors_headers
from .errors import BridgeError, RateLimitError, ValidationError
from .leonardo import LeonardoClient
from .logging_setup import configure_logging
from .rate_limiter import build_rate_limiter, client_address, now_ms

logger = logging.getLogger(__name__)

NETLIFY_PREFIX = "/.netlify/functions"


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def create_app(config: Optional[BridgeConfig] = None, rate_limiter=None, clock=now_ms) -> Flask:
    config = config or BridgeConfig.from_env()
    rate_limiter = rate_limiter or build_rate_limiter(config)

    app = Flask(__name__)
    app.config["BRIDGE_CONFIG"] = config

    def client_factory() -> LeonardoClient:
        return LeonardoClient(config.require_api_key(), api_url=config.api_base_url, timeout=config.request_timeout)

    def authenticate():
        require_auth(request.headers.get(AUTH_HEADER), config.bridge_secret_key)

    @app.before_request
    def answer_preflight():
        if request.method == "OPTIONS":
            return "", 200

    @app.after_request
    def apply_cors(response):
        for name, value in cors_headers(request.headers.get("Origin"), config.allowed_origins).items():
            response.headers[name] = value
        return response

    @app.errorhandler(BridgeError)
    def handle_bridge_error(exc: BridgeError):
        return jsonify(exc.to_dict()), exc.status_code

    @app.errorhandler(HTTPException)
    def handle_http_error(exc: HTTPException):
        body = {"error": exc.name}
        if exc.code == 405:
            body["method"] = request.method
        return jsonify(body), exc.code

    @app.errorhandler(Exception)
    def handle_unexpected(exc: Exception):
        logger.exception("Unhandled error while serving %s", request.path)
        return jsonify({"error": "Internal server error"}), 500

    @app.route("/generate-video-bridge", methods=["POST"])
    @app.route(f"{NETLIFY_PREFIX}/generate-video-bridge", methods=["POST"])
    def generate_video_bridge():
        logger.info("[generate-video-bridge] new request")
        authenticate()

        address = client_address(request.headers, request.remote_addr)
        if not rate_limiter.admit(address, clock()):
            logger.warning(f"[generate-video-bridge] rate limit exceeded for {address}")
            raise RateLimitError("Too many requests. Try again later.")

        body = request.get_json(force=True, silent=True)
        if body is None:
            raise ValidationError("Invalid JSON")
        return jsonify(start_generation(body, client_factory))

    @app.route("/check-video-status", methods=["GET", "POST"])
    @app.route("/check-video-status/<generation_id>", methods=["GET", "POST"])
    @app.route(f"{NETLIFY_PREFIX}/check-video-status", methods=["GET", "POST"])
    @app.route(f"{NETLIFY_PREFIX}/check-video-status/<generation_id>", methods=["GET", "POST"])
    def check_video_status(generation_id=None):
        authenticate()
        body = request.get_json(force=True, silent=True) if request.method == "POST" else None
        resolved = resolve_generation_id(generation_id, body, request.args)
        return jsonify(check_status(resolved, client_factory))

    @app.route("/health", methods=["GET", "POST"])
    @app.route(f"{NETLIFY_PREFIX}/health", methods=["GET", "POST"])
    def health():
        return jsonify({
            "status": "ok",
            "message": "Bridge server is running",
            "timestamp": _utc_now_iso(),
            "environment": config.environment_flags(),
            "method": request.method,
        })

    @app.route("/test-cors", methods=["GET", "POST"])
    @app.route(f"{NETLIFY_PREFIX}/test-cors", methods=["GET", "POST"])
    def test_cors():
        return jsonify({
            "message": "CORS test - request received successfully!",
            "origin": request.headers.get("Origin") or "Not provided",
            "timestamp": _utc_now_iso(),
            "method": request.method,
        })

    return app


def main(argv=None):
    import argparse

    dotenv_path = os.path.join(os.getcwd(), ".env")
    load_dotenv(dotenv_path=dotenv_path)

    parser = argparse.ArgumentParser(description="Leonardo video generation bridge")
    parser.add_argument("--host", default=os.getenv("BRIDGE_HOST", "0.0.0.0"))
    parser.add_argument("--port", type=int, default=int(os.getenv("BRIDGE_PORT", "8888")))
    parser.add_argument("--debug", action="store_true", help="Run the Flask debug server")
    args = parser.parse_args(argv)

    config = BridgeConfig.from_env()
    configure_logging(config.log_level)
    if not config.leonardo_api_key:
        logger.warning("LEONARDO_API_KEY is not set; generation requests will fail with 500")
    if not config.bridge_secret_key:
        logger.warning("BRIDGE_SECRET_KEY is not set; every authenticated request will be rejected")

    app = create_app(config)
    app.run(host=args.host, port=args.port, debug=args.debug)


if __name__ == "__main__":
    main()
