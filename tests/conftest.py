import base64

import pytest
import requests

from video_bridge.app import create_app
from video_bridge.config import BridgeConfig
from video_bridge.rate_limiter import InMemoryRateLimiter

SECRET = "bridge-secret"
API_URL = "https://leonardo.test/api/rest/v1"
# 1x1 transparent PNG
PNG_BYTES = base64.b64decode(
    "iVBORw0KGgoAAAANSUhEUgAAAAEAAAABCAQAAAC1HAwCAAAAC0lEQVR42mNkYAAAAAYAAjCB0C8AAAAASUVORK5CYII="
)
PNG_BASE64 = base64.b64encode(PNG_BYTES).decode("ascii")


class DummyResp:
    def __init__(self, data=None, status_code=200, text=None):
        self._data = data
        self.status_code = status_code
        self.text = text if text is not None else ("" if data is None else str(data))

    def raise_for_status(self):
        if not (200 <= self.status_code < 300):
            raise requests.HTTPError(f"HTTP {self.status_code}", response=self)

    def json(self):
        if self._data is None:
            raise ValueError("No JSON body")
        return self._data


@pytest.fixture
def config():
    return BridgeConfig(
        leonardo_api_key="leo-key",
        bridge_secret_key=SECRET,
        allowed_origins=["https://app.example.com"],
        api_base_url=API_URL,
        request_timeout=5,
    )


@pytest.fixture
def app(config):
    app = create_app(config, rate_limiter=InMemoryRateLimiter(max_requests=10, window_ms=60000))
    app.config["TESTING"] = True
    return app


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def auth_headers():
    return {"x-bridge-auth": SECRET}


class FakeLeonardo:
    """Routes monkeypatched `requests.post`/`requests.get` calls to canned provider responses."""

    def __init__(self):
        self.calls = []
        self.init_response = DummyResp({
            "uploadInitImage": {
                "id": "img-123",
                "url": "https://s3.test/upload",
                "fields": '{"key": "uploads/img-123.png", "policy": "p"}',
            }
        })
        self.upload_response = DummyResp(None, status_code=204)
        self.svd_response = DummyResp({"motionSvdGenerationJob": {"generationId": "gen-svd", "apiCreditCost": 25}})
        self.i2v_response = DummyResp({"motionVideoGenerationJob": {"generationId": "gen-i2v", "apiCreditCost": 40}})
        self.status_response = DummyResp({"generations_by_pk": {"id": "gen-svd", "status": "PENDING", "generated_images": []}})

    def post(self, url, json=None, data=None, files=None, headers=None, timeout=None):
        self.calls.append({"method": "POST", "url": url, "json": json, "data": data, "files": files, "headers": headers})
        if url.endswith("/init-image"):
            return self.init_response
        if url == "https://s3.test/upload":
            return self.upload_response
        if url.endswith("/generations-motion-svd"):
            return self.svd_response
        if url.endswith("/generations-image-to-video"):
            return self.i2v_response
        raise RuntimeError("Unexpected call: %s" % url)

    def get(self, url, headers=None, timeout=None):
        self.calls.append({"method": "GET", "url": url, "headers": headers})
        if "/generations/" in url:
            return self.status_response
        raise RuntimeError("Unexpected call: %s" % url)

    def urls(self):
        return [c["url"] for c in self.calls]


@pytest.fixture
def leonardo(monkeypatch):
    fake = FakeLeonardo()
    monkeypatch.setattr("requests.post", fake.post)
    monkeypatch.setattr("requests.get", fake.get)
    return fake


@pytest.fixture
def png_base64():
    return PNG_BASE64


@pytest.fixture
def png_bytes():
    return PNG_BYTES
